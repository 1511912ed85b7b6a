from datetime import datetime, timezone
from typing import Any, Optional

from support_portal.models.notification import PendingNotification
from support_portal.models.ticket import Ticket


def iso_ts(dt: Optional[datetime]) -> Optional[str]:
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def ticket_to_dict(t: Ticket) -> dict[str, Any]:
    return {
        "ticketId": t.ticket_id,
        "companyName": t.company_name,
        "contactPerson": t.contact_person,
        "email": t.email,
        "phoneNumber": t.phone_number,
        "country": t.country,
        "productModel": t.product_model,
        "equipmentSerialNo": t.equipment_serial_no,
        "orderInvoiceNo": t.order_invoice_no,
        "issueType": t.issue_type,
        "subject": t.subject,
        "description": t.description,
        "priority": t.priority,
        "status": t.status,
        "attachments": list(t.attachments or []),
        "regionalManager": t.regional_manager,
        "emailStatus": t.email_status,
        "emailHistory": list(t.email_history or []),
        "lastEmailSent": iso_ts(t.last_email_sent),
        "createdAt": iso_ts(t.created_at),
        "updatedAt": iso_ts(t.updated_at),
    }


def notification_to_dict(n: PendingNotification) -> dict[str, Any]:
    return {
        "id": str(n.id),
        "ticketId": n.ticket_id,
        "email": n.email,
        "emailType": n.email_type,
        "status": n.status,
        "attempts": n.attempts,
        "maxAttempts": n.max_attempts,
        "errorCode": n.error_code,
        "lastError": n.last_error,
        "createdAt": iso_ts(n.created_at),
        "updatedAt": iso_ts(n.updated_at),
    }
