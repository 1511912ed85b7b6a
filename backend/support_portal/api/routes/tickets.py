from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from support_portal.api.deps import get_email_transport, get_settings_provider, require_admin_key
from support_portal.api.serializers import ticket_to_dict
from support_portal.core.errors import (
    HistoryWriteConflict,
    TicketNotFound,
    TicketSubmissionError,
    TicketValidationError,
)
from support_portal.db.session import get_session
from support_portal.services.email_transport import EmailTransport
from support_portal.services.routing import RoutingSettingsProvider
from support_portal.services.submission import submit_ticket
from support_portal.services.tickets import get_ticket, list_tickets, update_ticket_status

router = APIRouter(prefix="/tickets", tags=["tickets"])

Priority = Literal["Low", "Normal", "Medium", "High", "Critical", "Urgent (equipment stopped)"]
Status = Literal["New", "Open", "Resolved", "Closed"]


class TicketCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    company_name: str
    contact_person: str
    email: str
    phone_number: Optional[str] = None
    country: str
    product_model: Optional[str] = None
    equipment_serial_no: Optional[str] = None
    order_invoice_no: Optional[str] = None
    issue_type: Optional[str] = None
    subject: str
    description: str = ""
    priority: Priority = "Normal"
    attachments: list[str] = []

    @field_validator("email")
    @classmethod
    def _looks_like_email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError("invalid email address")
        return v


class StatusUpdate(BaseModel):
    status: Status


@router.post("", status_code=201)
def create(
    body: TicketCreate,
    session: Session = Depends(get_session),
    transport: EmailTransport = Depends(get_email_transport),
    provider: RoutingSettingsProvider = Depends(get_settings_provider),
):
    try:
        submission = submit_ticket(session, body.model_dump(), transport, provider)
    except TicketValidationError as e:
        raise HTTPException(status_code=422, detail={"error": str(e), "missing": e.missing})
    except TicketSubmissionError:
        raise HTTPException(status_code=503, detail="Failed to submit ticket. Please try again.")

    ticket = submission.ticket
    return {
        "ticketId": ticket.ticket_id,
        "emailStatus": ticket.email_status,
        "emailWarning": submission.email_warning,
        "notification": submission.result.to_dict(),
        "pendingNotificationId": str(submission.pending.id) if submission.pending else None,
    }


@router.get("")
def list_(
    session: Session = Depends(get_session),
    status: Optional[str] = Query(default=None),
    priority: Optional[str] = Query(default=None),
    country: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
):
    tickets = list_tickets(session, status=status, priority=priority, country=country, limit=limit)
    return {"tickets": [ticket_to_dict(t) for t in tickets]}


@router.get("/{ticket_id}")
def get(ticket_id: str, session: Session = Depends(get_session)):
    try:
        ticket = get_ticket(session, ticket_id)
    except TicketNotFound:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket_to_dict(ticket)


@router.patch("/{ticket_id}/status", dependencies=[Depends(require_admin_key)])
def set_status(ticket_id: str, body: StatusUpdate, session: Session = Depends(get_session)):
    try:
        ticket = update_ticket_status(session, ticket_id, body.status)
    except TicketNotFound:
        raise HTTPException(status_code=404, detail="Ticket not found")
    except HistoryWriteConflict:
        raise HTTPException(status_code=409, detail="Ticket was modified concurrently. Please retry.")
    return ticket_to_dict(ticket)
