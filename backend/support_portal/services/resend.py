import threading
import zlib
from typing import Any, Optional

from sqlmodel import Session

from support_portal.core.config import settings
from support_portal.core.errors import ResendCeilingExceeded, TicketNotFound
from support_portal.core.logging import log_info, log_warning
from support_portal.metrics.prometheus import resend_rejected_total
from support_portal.models.notification import FAILED, PENDING
from support_portal.models.ticket import Ticket
from support_portal.services.dispatcher import DispatchResult, dispatch
from support_portal.services.email_transport import EmailTransport
from support_portal.services.pending import get_pending, list_pending, mark_pending_sent
from support_portal.services.routing import CUSTOMER_CONFIRMATION, RoutingSettingsProvider, resolve_recipients
from support_portal.services.tickets import get_ticket

# striped so memory stays bounded; a ticket always maps to the same stripe
_RESEND_LOCK_STRIPES = 64
_resend_locks = [threading.Lock() for _ in range(_RESEND_LOCK_STRIPES)]


def _ticket_lock(ticket_id: str) -> threading.Lock:
    return _resend_locks[zlib.crc32(ticket_id.encode("utf-8")) % _RESEND_LOCK_STRIPES]


def attempts_used(ticket: Ticket) -> int:
    return len(ticket.email_history or [])


def can_resend(ticket: Ticket) -> bool:
    return attempts_used(ticket) < settings.max_email_attempts


def get_status(session: Session, ticket_id: str) -> dict[str, Any]:
    ticket = get_ticket(session, ticket_id)
    return {
        "ticketId": ticket.ticket_id,
        "emailStatus": ticket.email_status or "unknown",
        "lastEmailSent": ticket.last_email_sent,
        "history": list(ticket.email_history or []),
        "canResend": can_resend(ticket),
    }


def resend(
    session: Session,
    ticket_id: str,
    transport: EmailTransport,
    provider: RoutingSettingsProvider,
    override_recipient: Optional[str] = None,
    email_type: str = CUSTOMER_CONFIRMATION,
) -> DispatchResult:
    """Re-route and send one stored ticket's notification, capped by ``max_email_attempts``.

    Every call that gets past the ceiling check appends exactly one history
    entry, whether the send works or not. A ticket with no history yet gets
    an ``initial`` entry.
    """
    lock = _ticket_lock(ticket_id)
    with lock:
        ticket = get_ticket(session, ticket_id)
        used = attempts_used(ticket)
        if used >= settings.max_email_attempts:
            resend_rejected_total.inc()
            log_warning("resend refused, attempt ceiling reached", ticket_id=ticket_id, attempts=used)
            raise ResendCeilingExceeded(ticket_id, used, settings.max_email_attempts)

        recipients = resolve_recipients(
            session,
            provider,
            submitter_email=ticket.email,
            country=ticket.country,
            email_type=email_type,
            override_recipient=override_recipient,
        )
        result = dispatch(session, ticket, recipients, transport, email_type=email_type, resend=used > 0)

    if result.success:
        mark_pending_sent(session, ticket_id)
    return result


def resend_pending(
    session: Session,
    transport: EmailTransport,
    provider: RoutingSettingsProvider,
    limit: int = 100,
) -> dict[str, int]:
    """Push every pending notification once more. Admin-triggered only."""
    summary = {"processed": 0, "sent": 0, "failed": 0, "still_pending": 0}

    for n in list_pending(session, status=PENDING, limit=limit):
        summary["processed"] += 1
        notification_id = n.id
        ticket_id = n.ticket_id
        email_type = n.email_type

        error_code = None
        error = None
        sent = False
        exhausted = False
        try:
            result = resend(session, ticket_id, transport, provider, email_type=email_type)
            sent = result.success
            error_code, error = result.code, result.error
        except ResendCeilingExceeded as e:
            exhausted = True
            error_code, error = e.code, str(e)
        except TicketNotFound as e:
            exhausted = True
            error = str(e)

        n = get_pending(session, notification_id)
        if n is None:
            continue
        if sent:
            summary["sent"] += 1
            continue

        n.attempts += 1
        n.error_code = error_code
        n.last_error = error
        if exhausted or n.attempts >= n.max_attempts:
            n.status = FAILED
            summary["failed"] += 1
        else:
            summary["still_pending"] += 1
        session.add(n)
        session.commit()

    log_info("pending notifications processed", **summary)
    return summary
