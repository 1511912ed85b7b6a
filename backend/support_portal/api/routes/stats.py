from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from support_portal.api.serializers import ticket_to_dict
from support_portal.db.session import get_session
from support_portal.models.notification import PENDING, PendingNotification
from support_portal.models.ticket import HIGH_PRIORITIES, OPEN_STATUSES, Ticket

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
def stats(session: Session = Depends(get_session)):
    tickets = session.exec(select(Ticket)).all()

    by_status: dict[str, int] = {}
    by_priority: dict[str, int] = {}
    by_country: dict[str, int] = {}
    by_email_status: dict[str, int] = {}

    for t in tickets:
        by_status[t.status] = by_status.get(t.status, 0) + 1
        by_priority[t.priority] = by_priority.get(t.priority, 0) + 1
        by_country[t.country] = by_country.get(t.country, 0) + 1
        by_email_status[t.email_status] = by_email_status.get(t.email_status, 0) + 1

    pending = session.exec(select(PendingNotification).where(PendingNotification.status == PENDING)).all()

    # last 10 tickets
    latest = session.exec(select(Ticket).order_by(Ticket.created_at.desc()).limit(10)).all()

    return {
        "totals": {
            "tickets": len(tickets),
            "open": sum(1 for t in tickets if t.status in OPEN_STATUSES),
            "high_priority": sum(1 for t in tickets if t.priority in HIGH_PRIORITIES),
            "pending_notifications": len(pending),
        },
        "by_status": by_status,
        "by_priority": by_priority,
        "by_country": by_country,
        "by_email_status": by_email_status,
        "latest_tickets": [ticket_to_dict(t) for t in latest],
    }
