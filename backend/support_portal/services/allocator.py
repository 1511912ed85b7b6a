"""Sequential ticket IDs backed by the singleton ``counters/tickets`` row.

The sequence is scoped to the calendar year (UTC): the row remembers which
year its count belongs to and restarts at zero when the year changes. The
counter write is conditional on the values that were read, so two
transactions that observed the same count cannot both commit.
"""

from datetime import datetime, timezone

from sqlalchemy import update
from sqlmodel import Session, select

from support_portal.core.errors import AllocationConflict
from support_portal.models.counter import TICKET_COUNTER, TicketCounter


def format_ticket_id(year: int, sequence: int) -> str:
    return f"TKT-{year}-{sequence:04d}"


def load_counter(session: Session) -> TicketCounter | None:
    return session.exec(
        select(TicketCounter)
        .where(TicketCounter.name == TICKET_COUNTER)
        .execution_options(populate_existing=True)
    ).first()


def ensure_counter(session: Session) -> TicketCounter:
    counter = load_counter(session)
    if counter is None:
        counter = TicketCounter(name=TICKET_COUNTER, count=0, period=0)
        session.add(counter)
        session.commit()
        session.refresh(counter)
    return counter


def allocate_ticket_id(session: Session, now: datetime | None = None) -> str:
    """Bump the counter inside the caller's transaction and return the new ID.

    Raises AllocationConflict when the row changed since it was read. A
    missing row is inserted; a concurrent insert surfaces as IntegrityError on
    flush, which callers treat the same way.
    """
    now = now or datetime.now(timezone.utc)
    year = now.year

    counter = load_counter(session)
    if counter is None:
        session.add(TicketCounter(name=TICKET_COUNTER, count=1, period=year, updated_at=now))
        session.flush()
        return format_ticket_id(year, 1)

    seen_count, seen_period = counter.count, counter.period
    current = seen_count if seen_period == year else 0
    next_count = current + 1

    result = session.connection().execute(
        update(TicketCounter)
        .where(TicketCounter.name == TICKET_COUNTER)
        .where(TicketCounter.count == seen_count)
        .where(TicketCounter.period == seen_period)
        .values(count=next_count, period=year, updated_at=now)
    )
    if result.rowcount != 1:
        raise AllocationConflict(f"counter moved from {seen_count} while allocating")

    return format_ticket_id(year, next_count)
