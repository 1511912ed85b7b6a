import uuid
from typing import Literal, Optional

from celery import Celery
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from support_portal.api.deps import get_email_transport, get_settings_provider, require_admin_key
from support_portal.api.serializers import iso_ts, notification_to_dict
from support_portal.core.config import settings
from support_portal.core.errors import (
    CONFIG_ERROR,
    NETWORK_ERROR,
    RATE_LIMIT_ERROR,
    VALIDATION_ERROR,
    ResendCeilingExceeded,
    TicketNotFound,
)
from support_portal.db.session import get_session
from support_portal.models.ticket import Ticket
from support_portal.services.dispatcher import DispatchResult, send_ticket_email
from support_portal.services.email_transport import EmailTransport
from support_portal.services.pending import list_pending, update_pending_status
from support_portal.services.resend import get_status, resend
from support_portal.services.routing import (
    CUSTOMER_CONFIRMATION,
    RoutingSettingsProvider,
    resolve_recipients,
)
from support_portal.services.tickets import get_ticket

router = APIRouter(prefix="/notifications", tags=["notifications"])

celery_app = Celery(
    "support_portal_api",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

EmailType = Literal["customer_confirmation", "admin_notification", "regional_notification"]

STATUS_BY_CODE = {
    VALIDATION_ERROR: 400,
    RATE_LIMIT_ERROR: 429,
    NETWORK_ERROR: 502,
    CONFIG_ERROR: 500,
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendRequest(_CamelModel):
    ticket_id: str
    email: Optional[str] = None
    company_name: Optional[str] = None
    contact_person: Optional[str] = None
    phone_number: Optional[str] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    country: Optional[str] = None
    priority: Optional[str] = None
    equipment_type: Optional[str] = None
    equipment_serial_no: Optional[str] = None
    order_invoice_no: Optional[str] = None
    issue_type: Optional[str] = None
    attachments: list[str] = []
    email_type: EmailType = CUSTOMER_CONFIRMATION


class ResendRequest(_CamelModel):
    ticket_id: str
    override_recipient: Optional[str] = None
    email_type: EmailType = CUSTOMER_CONFIRMATION


class PendingStatusUpdate(BaseModel):
    status: Literal["pending", "sent_via_email", "processed", "failed"]


def _result_response(result: DispatchResult) -> JSONResponse:
    if result.success:
        return JSONResponse(status_code=200, content=result.to_dict())
    return JSONResponse(status_code=STATUS_BY_CODE.get(result.code, 500), content=result.to_dict())


def _adhoc_ticket(body: SendRequest) -> Ticket:
    # not added to the session; used for sends that have no stored ticket (e.g. test emails)
    return Ticket(
        ticket_id=body.ticket_id,
        company_name=body.company_name or "",
        contact_person=body.contact_person or "",
        email=body.email or "",
        phone_number=body.phone_number,
        country=body.country or "",
        product_model=body.equipment_type,
        equipment_serial_no=body.equipment_serial_no,
        order_invoice_no=body.order_invoice_no,
        issue_type=body.issue_type,
        subject=body.subject or "",
        description=body.description or "",
        priority=body.priority or "Normal",
        attachments=list(body.attachments),
    )


@router.post("/send")
def send(
    body: SendRequest,
    session: Session = Depends(get_session),
    transport: EmailTransport = Depends(get_email_transport),
    provider: RoutingSettingsProvider = Depends(get_settings_provider),
):
    try:
        ticket = get_ticket(session, body.ticket_id)
    except TicketNotFound:
        ticket = None

    if ticket is None:
        adhoc = _adhoc_ticket(body)
        recipients = resolve_recipients(
            session,
            provider,
            submitter_email=adhoc.email,
            country=adhoc.country,
            email_type=body.email_type,
        )
        return _result_response(send_ticket_email(adhoc, recipients, transport, email_type=body.email_type))

    # stored tickets always go through the locked, capped path
    override = body.email if body.email and body.email.lower() != ticket.email.lower() else None
    return _resend_response(session, transport, provider, ticket.ticket_id, override, body.email_type)


def _resend_response(
    session: Session,
    transport: EmailTransport,
    provider: RoutingSettingsProvider,
    ticket_id: str,
    override_recipient: Optional[str],
    email_type: str,
) -> JSONResponse:
    try:
        result = resend(
            session,
            ticket_id,
            transport,
            provider,
            override_recipient=override_recipient,
            email_type=email_type,
        )
    except TicketNotFound:
        raise HTTPException(status_code=404, detail="Ticket not found")
    except ResendCeilingExceeded as e:
        return JSONResponse(
            status_code=409,
            content={
                "success": False,
                "ticketId": ticket_id,
                "error": str(e),
                "code": e.code,
                "canResend": False,
            },
        )
    return _result_response(result)


@router.get("/status")
def email_status(ticket_id: str = Query(alias="ticketId"), session: Session = Depends(get_session)):
    try:
        out = get_status(session, ticket_id)
    except TicketNotFound:
        raise HTTPException(status_code=404, detail="Ticket not found")
    out["lastEmailSent"] = iso_ts(out["lastEmailSent"])
    return out


@router.post("/resend")
def resend_email(
    body: ResendRequest,
    session: Session = Depends(get_session),
    transport: EmailTransport = Depends(get_email_transport),
    provider: RoutingSettingsProvider = Depends(get_settings_provider),
):
    return _resend_response(session, transport, provider, body.ticket_id, body.override_recipient, body.email_type)


@router.get("/diagnostics")
def diagnostics(transport: EmailTransport = Depends(get_email_transport)):
    return transport.check_credentials()


@router.get("/pending")
def pending(
    session: Session = Depends(get_session),
    status: Optional[str] = Query(default="pending"),
    limit: int = Query(default=100, ge=1, le=500),
):
    rows = list_pending(session, status=status or None, limit=limit)
    return {"pending": [notification_to_dict(n) for n in rows], "count": len(rows)}


@router.patch("/pending/{notification_id}", dependencies=[Depends(require_admin_key)])
def set_pending_status(notification_id: uuid.UUID, body: PendingStatusUpdate, session: Session = Depends(get_session)):
    n = update_pending_status(session, notification_id, body.status)
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification_to_dict(n)


@router.post("/pending/resend", status_code=202, dependencies=[Depends(require_admin_key)])
def resend_pending_notifications():
    res = celery_app.send_task("resend_pending_notifications")
    return {"queued": True, "task_id": res.id}
