import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from support_portal.core.config import settings
from support_portal.core.logging import log_error, log_info
from support_portal.models.notification import (
    NOTIFICATION_STATUSES,
    PENDING,
    SENT_VIA_EMAIL,
    PendingNotification,
)
from support_portal.models.ticket import Ticket


def _now() -> datetime:
    return datetime.now(timezone.utc)


def record_pending(
    session: Session,
    ticket: Ticket,
    email_type: str,
    error_code: Optional[str],
    error: Optional[str],
) -> Optional[PendingNotification]:
    """Remember a notification whose first send failed so an admin can push it again.

    Best effort: the ticket is already saved and this must not turn the
    submission into an error.
    """
    notification = PendingNotification(
        ticket_id=ticket.ticket_id,
        email=ticket.email,
        email_type=email_type,
        status=PENDING,
        attempts=1,
        max_attempts=settings.max_email_attempts,
        error_code=error_code,
        last_error=error,
    )
    try:
        session.add(notification)
        session.commit()
        session.refresh(notification)
    except SQLAlchemyError as e:
        session.rollback()
        log_error("could not queue pending notification", ticket_id=ticket.ticket_id, error=str(e))
        return None

    log_info("notification queued for manual processing", ticket_id=ticket.ticket_id, notification_id=notification.id)
    return notification


def list_pending(session: Session, status: Optional[str] = PENDING, limit: int = 100) -> list[PendingNotification]:
    q = select(PendingNotification).order_by(PendingNotification.created_at.desc())
    if status:
        q = q.where(PendingNotification.status == status)
    return list(session.exec(q.limit(limit)).all())


def get_pending(session: Session, notification_id: uuid.UUID) -> Optional[PendingNotification]:
    return session.exec(
        select(PendingNotification)
        .where(PendingNotification.id == notification_id)
        .execution_options(populate_existing=True)
    ).first()


def update_pending_status(session: Session, notification_id: uuid.UUID, status: str) -> Optional[PendingNotification]:
    if status not in NOTIFICATION_STATUSES:
        raise ValueError(f"unsupported notification status: {status}")
    notification = get_pending(session, notification_id)
    if not notification:
        return None
    notification.status = status
    notification.updated_at = _now()
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification


def mark_pending_sent(session: Session, ticket_id: str) -> int:
    rows = session.exec(
        select(PendingNotification)
        .where(PendingNotification.ticket_id == ticket_id)
        .where(PendingNotification.status == PENDING)
    ).all()
    now = _now()
    for n in rows:
        n.status = SENT_VIA_EMAIL
        n.updated_at = now
        session.add(n)
    if rows:
        session.commit()
    return len(rows)
