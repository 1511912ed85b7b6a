"""Single dispatch attempt: render, send, record.

The ticket is already committed when we get here. Whatever the transport
does, the outcome is appended to the ticket's email history and the ticket
itself is left in place. There is no retry in this module; resends are an
explicit caller action (see ``services.resend``).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger
from sqlmodel import Session

from support_portal.core.config import settings
from support_portal.core.errors import UNKNOWN_ERROR, VALIDATION_ERROR, EmailTransportError, HistoryWriteConflict
from support_portal.core.logging import log_error, log_info, log_warning
from support_portal.metrics.prometheus import notifications_total
from support_portal.models.ticket import EMAIL_FAILED, EMAIL_SENT, Ticket
from support_portal.services.email_transport import EmailMessage, EmailTransport
from support_portal.services.routing import CUSTOMER_CONFIRMATION, Recipients, is_email
from support_portal.services.templates import build_ticket_email_html, plain_text_for, subject_for
from support_portal.services.tickets import append_email_history

ENTRY_INITIAL = "initial"
ENTRY_RESEND = "resend"
ENTRY_RESEND_FAILED = "resend_failed"

DISPATCH_REQUIRED_FIELDS = ("ticket_id", "email", "company_name", "contact_person", "subject")


@dataclass
class DispatchResult:
    success: bool
    ticket_id: str
    email_type: str
    recipients: list[str] = field(default_factory=list)
    message_id: Optional[str] = None
    code: Optional[str] = None
    error: Optional[str] = None
    entry_type: str = ENTRY_INITIAL

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "ticketId": self.ticket_id,
                "messageId": self.message_id,
                "recipients": self.recipients,
                "emailType": self.email_type,
            }
        return {
            "success": False,
            "ticketId": self.ticket_id,
            "error": self.error,
            "code": self.code,
            "recipients": self.recipients,
            "emailType": self.email_type,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


def missing_dispatch_fields(ticket: Ticket) -> list[str]:
    return [f for f in DISPATCH_REQUIRED_FIELDS if not str(getattr(ticket, f, "") or "").strip()]


def build_message(ticket: Ticket, recipients: Recipients, email_type: str) -> EmailMessage:
    reply_to = recipients.regional_manager if is_email(recipients.regional_manager) else settings.email_reply_to
    return EmailMessage(
        to=recipients.to,
        cc=list(recipients.cc),
        subject=subject_for(ticket, email_type),
        html=build_ticket_email_html(ticket, recipients.regional_manager),
        text=plain_text_for(ticket),
        reply_to=reply_to,
    )


def send_ticket_email(
    ticket: Ticket,
    recipients: Recipients,
    transport: EmailTransport,
    email_type: str = CUSTOMER_CONFIRMATION,
    resend: bool = False,
) -> DispatchResult:
    """Validate, render and hand the message to the transport. Nothing is persisted."""
    result = DispatchResult(
        success=False,
        ticket_id=ticket.ticket_id,
        email_type=email_type,
        recipients=recipients.all,
        entry_type=ENTRY_RESEND_FAILED if resend else ENTRY_INITIAL,
    )

    missing = missing_dispatch_fields(ticket)
    if missing or not is_email(recipients.to):
        result.code = VALIDATION_ERROR
        result.error = f"Missing required fields: {', '.join(missing or ['recipient'])}"
        return result

    try:
        message_id = transport.send(build_message(ticket, recipients, email_type))
    except EmailTransportError as e:
        result.code = e.code
        result.error = str(e)
        log_warning("email dispatch failed", ticket_id=ticket.ticket_id, code=e.code, error=str(e))
        return result
    except Exception as e:
        logger.exception(f"unexpected email transport failure ticket_id={ticket.ticket_id}")
        result.code = UNKNOWN_ERROR
        result.error = str(e) or type(e).__name__
        return result

    result.success = True
    result.message_id = message_id
    result.entry_type = ENTRY_RESEND if resend else ENTRY_INITIAL
    return result


def history_entry(result: DispatchResult, at: datetime) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "timestamp": at.isoformat().replace("+00:00", "Z"),
        "success": result.success,
        "recipients": result.recipients,
        "type": result.entry_type,
        "emailType": result.email_type,
    }
    if result.success:
        entry["messageId"] = result.message_id
    else:
        entry["error"] = result.error
        entry["code"] = result.code
    return entry


def dispatch(
    session: Session,
    ticket: Ticket,
    recipients: Recipients,
    transport: EmailTransport,
    email_type: str = CUSTOMER_CONFIRMATION,
    resend: bool = False,
) -> DispatchResult:
    result = send_ticket_email(ticket, recipients, transport, email_type=email_type, resend=resend)

    now = _now()
    try:
        append_email_history(
            session,
            ticket.ticket_id,
            history_entry(result, now),
            email_status=EMAIL_SENT if result.success else EMAIL_FAILED,
            last_email_sent=now if result.success else None,
        )
    except HistoryWriteConflict as e:
        # the email outcome stands; only the audit entry is missing
        log_error("email history not recorded", ticket_id=ticket.ticket_id, error=str(e))

    outcome = "sent" if result.success else (result.code or UNKNOWN_ERROR).lower()
    notifications_total.labels(email_type=email_type, entry_type=result.entry_type, outcome=outcome).inc()
    log_info(
        "email dispatch recorded",
        ticket_id=ticket.ticket_id,
        email_type=email_type,
        entry_type=result.entry_type,
        success=result.success,
    )
    return result
