from dataclasses import dataclass
from typing import Any, Optional

from sqlmodel import Session

from support_portal.core.errors import user_message
from support_portal.models.notification import PendingNotification
from support_portal.models.ticket import Ticket
from support_portal.services.dispatcher import DispatchResult, dispatch
from support_portal.services.email_transport import EmailTransport
from support_portal.services.pending import record_pending
from support_portal.services.routing import (
    CUSTOMER_CONFIRMATION,
    RoutingSettingsProvider,
    load_routing_settings,
    resolve_regional_manager,
    resolve_recipients,
)
from support_portal.services.tickets import create_ticket, get_ticket, validate_ticket_fields


@dataclass
class Submission:
    ticket: Ticket
    result: DispatchResult
    pending: Optional[PendingNotification] = None

    @property
    def email_warning(self) -> Optional[str]:
        if self.result.success:
            return None
        return user_message(self.result.code)


def submit_ticket(
    session: Session,
    data: dict[str, Any],
    transport: EmailTransport,
    provider: RoutingSettingsProvider,
    email_type: str = CUSTOMER_CONFIRMATION,
) -> Submission:
    """Persist a ticket, then send its confirmation email.

    Only the persistence step can fail the submission. A failed send is
    recorded on the ticket and queued as a pending notification.
    """
    validate_ticket_fields(data)
    routing = load_routing_settings(provider)
    regional_manager = resolve_regional_manager(session, data["country"], routing)
    ticket = create_ticket(session, data, regional_manager=regional_manager)

    recipients = resolve_recipients(
        session,
        provider,
        submitter_email=ticket.email,
        country=ticket.country,
        email_type=email_type,
    )
    result = dispatch(session, ticket, recipients, transport, email_type=email_type)

    pending = None
    if not result.success:
        pending = record_pending(session, ticket, email_type, result.code, result.error)

    return Submission(ticket=get_ticket(session, ticket.ticket_id), result=result, pending=pending)
