import time
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, select

from support_portal.core.config import settings
from support_portal.core.errors import (
    AllocationConflict,
    HistoryWriteConflict,
    TicketNotFound,
    TicketSubmissionError,
    TicketValidationError,
)
from support_portal.core.logging import log_error, log_info, log_warning
from support_portal.metrics.prometheus import (
    ticket_allocation_conflicts_total,
    ticket_transaction_latency_seconds,
    tickets_created_total,
)
from support_portal.models.ticket import EMAIL_PENDING, STATUSES, Ticket
from support_portal.services.allocator import allocate_ticket_id

REQUIRED_FIELDS = ("company_name", "contact_person", "email", "country", "subject")

TICKET_FIELDS = (
    "company_name",
    "contact_person",
    "email",
    "phone_number",
    "country",
    "product_model",
    "equipment_serial_no",
    "order_invoice_no",
    "issue_type",
    "subject",
    "description",
    "priority",
    "attachments",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def validate_ticket_fields(data: dict[str, Any]) -> None:
    missing = [f for f in REQUIRED_FIELDS if not str(data.get(f) or "").strip()]
    if missing:
        raise TicketValidationError(missing)
    if "@" not in data["email"]:
        raise TicketValidationError(["email"])


def create_ticket(
    session: Session,
    data: dict[str, Any],
    regional_manager: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Ticket:
    """Allocate a ticket ID and persist the ticket in one transaction.

    Conflicts on the counter (or a racing insert of the counter row) roll the
    whole transaction back and start over, up to ``ticket_tx_max_attempts``.
    """
    validate_ticket_fields(data)
    fields = {k: data[k] for k in TICKET_FIELDS if data.get(k) is not None}
    fields.setdefault("attachments", [])

    max_attempts = settings.ticket_tx_max_attempts
    start = time.perf_counter()

    for attempt in range(1, max_attempts + 1):
        created = now or _now()
        try:
            ticket_id = allocate_ticket_id(session, now=created)
            ticket = Ticket(
                ticket_id=ticket_id,
                **fields,
                status="New",
                regional_manager=regional_manager,
                email_status=EMAIL_PENDING,
                email_history=[],
                created_at=created,
                updated_at=created,
            )
            session.add(ticket)
            session.commit()
        except (AllocationConflict, IntegrityError, OperationalError) as e:
            session.rollback()
            ticket_allocation_conflicts_total.inc()
            log_warning("ticket transaction conflict, retrying", attempt=attempt, error=type(e).__name__)
            continue
        except SQLAlchemyError as e:
            session.rollback()
            log_error("ticket transaction failed", error=str(e))
            raise TicketSubmissionError("ticket submission failed") from e

        session.refresh(ticket)
        ticket_transaction_latency_seconds.observe(time.perf_counter() - start)
        tickets_created_total.labels(priority=ticket.priority).inc()
        log_info("ticket created", ticket_id=ticket.ticket_id, attempt=attempt, country=ticket.country)
        return ticket

    log_error("ticket transaction retries exhausted", attempts=max_attempts)
    raise TicketSubmissionError(f"ticket submission failed after {max_attempts} attempts")


def get_ticket(session: Session, ticket_id: str) -> Ticket:
    ticket = session.exec(
        select(Ticket).where(Ticket.ticket_id == ticket_id).execution_options(populate_existing=True)
    ).first()
    if not ticket:
        raise TicketNotFound(ticket_id)
    return ticket


def list_tickets(
    session: Session,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    country: Optional[str] = None,
    limit: int = 50,
) -> list[Ticket]:
    q = select(Ticket).order_by(Ticket.created_at.desc())
    if status:
        q = q.where(Ticket.status == status)
    if priority:
        q = q.where(Ticket.priority == priority)
    if country:
        q = q.where(Ticket.country == country)
    return list(session.exec(q.limit(limit)).all())


def conditional_write(session: Session, ticket_id: str, expected_version: int, **values) -> bool:
    """UPDATE the ticket only if nobody else wrote it since ``expected_version``."""
    result = session.connection().execute(
        update(Ticket)
        .where(Ticket.ticket_id == ticket_id)
        .where(Ticket.version == expected_version)
        .values(version=expected_version + 1, **values)
    )
    return result.rowcount == 1


def update_ticket_status(session: Session, ticket_id: str, status: str) -> Ticket:
    if status not in STATUSES:
        raise ValueError(f"unsupported status: {status}")

    for _ in range(settings.history_write_max_attempts):
        ticket = get_ticket(session, ticket_id)
        if conditional_write(session, ticket_id, ticket.version, status=status, updated_at=_now()):
            session.commit()
            log_info("ticket status updated", ticket_id=ticket_id, status=status)
            return get_ticket(session, ticket_id)
        session.rollback()

    raise HistoryWriteConflict(f"could not update status of {ticket_id}")


def append_email_history(
    session: Session,
    ticket_id: str,
    entry: dict[str, Any],
    email_status: str,
    last_email_sent: Optional[datetime] = None,
) -> Ticket:
    """Append one history entry with an optimistic read-modify-write.

    A concurrent writer bumps ``version`` and makes our UPDATE match nothing;
    we re-read the history and try again rather than overwrite their entry.
    """
    for attempt in range(1, settings.history_write_max_attempts + 1):
        ticket = get_ticket(session, ticket_id)
        history = list(ticket.email_history or [])
        history.append(entry)

        values: dict[str, Any] = {
            "email_history": history,
            "email_status": email_status,
            "updated_at": _now(),
        }
        if last_email_sent is not None:
            values["last_email_sent"] = last_email_sent

        if conditional_write(session, ticket_id, ticket.version, **values):
            session.commit()
            return get_ticket(session, ticket_id)

        session.rollback()
        log_warning("email history write lost a race, retrying", ticket_id=ticket_id, attempt=attempt)

    raise HistoryWriteConflict(f"could not append email history to {ticket_id}")
