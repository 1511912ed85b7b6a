from html import escape
from typing import Optional

from support_portal.core.config import settings
from support_portal.models.ticket import Ticket
from support_portal.services.routing import ADMIN_NOTIFICATION, REGIONAL_NOTIFICATION

PRIORITY_COLORS = {
    "Critical": "#dc2626",
    "Urgent (equipment stopped)": "#dc2626",
    "High": "#ea580c",
    "Medium": "#ca8a04",
    "Normal": "#2563eb",
    "Low": "#16a34a",
}
DEFAULT_PRIORITY_COLOR = "#6b7280"

CELL = "padding: 8px; border-bottom: 1px solid #e5e7eb;"


def subject_for(ticket: Ticket, email_type: str) -> str:
    if email_type == ADMIN_NOTIFICATION:
        return f"[NEW TICKET] {ticket.subject}"
    if email_type == REGIONAL_NOTIFICATION:
        return f"[REGIONAL] New Ticket {ticket.subject}"
    return f"Support Ticket {ticket.ticket_id} - {ticket.subject}"


def plain_text_for(ticket: Ticket) -> str:
    return f"Ticket {ticket.ticket_id} - {ticket.subject} from {ticket.company_name}."


def _row(label: str, value: Optional[str]) -> str:
    return (
        f'<tr><td style="{CELL}"><strong>{escape(label)}:</strong></td>'
        f'<td style="{CELL}">{escape(value or "N/A")}</td></tr>'
    )


def priority_badge(priority: str) -> str:
    color = PRIORITY_COLORS.get(priority, DEFAULT_PRIORITY_COLOR)
    return (
        f'<span style="background-color: {color}; color: #ffffff; padding: 4px 10px; '
        f'border-radius: 12px; font-weight: bold;">{escape(priority)}</span>'
    )


def build_ticket_email_html(ticket: Ticket, regional_manager: Optional[str] = None) -> str:
    """Render the notification body. The same body goes to every message type."""
    regional_manager = regional_manager or ticket.regional_manager
    title = f"New Support Ticket - {ticket.ticket_id}"

    h: list[str] = []
    h.append("<!DOCTYPE html>")
    h.append('<html><head><meta charset="utf-8">')
    h.append(f"<title>{escape(title)}</title></head>")
    h.append('<body style="font-family: sans-serif; max-width: 640px; margin: 0 auto;">')
    h.append(f'<h2 style="color: #2563eb;">Ticket {escape(ticket.ticket_id)}</h2>')
    h.append(f"<p><strong>Priority:</strong> {priority_badge(ticket.priority)}</p>")

    h.append('<table style="width: 100%; border-collapse: collapse;">')
    h.append(_row("Ticket ID", ticket.ticket_id))
    h.append(_row("Company", ticket.company_name))
    h.append(_row("Contact", ticket.contact_person))
    h.append(_row("Email", ticket.email))
    if ticket.phone_number:
        h.append(_row("Phone", ticket.phone_number))
    h.append(_row("Country", ticket.country))
    h.append(_row("Regional Manager", regional_manager))
    h.append(_row("Issue Type", ticket.issue_type))
    h.append("</table>")

    h.append('<hr style="border: none; border-top: 1px solid #e5e7eb; margin: 24px 0;" />')

    h.append("<h3>Issue Details</h3>")
    h.append(f"<p><strong>Subject:</strong> {escape(ticket.subject)}</p>")
    h.append(
        '<div style="background-color: #f9fafb; padding: 15px; border-left: 4px solid #2563eb; '
        'white-space: pre-wrap;">'
        f"{escape(ticket.description or '')}</div>"
    )

    if ticket.product_model:
        h.append("<h3>Equipment Details</h3>")
        h.append('<table style="width: 100%; border-collapse: collapse;">')
        h.append(_row("Product Model", ticket.product_model))
        h.append(_row("Serial Number", ticket.equipment_serial_no))
        h.append(_row("Order / Invoice No", ticket.order_invoice_no))
        h.append("</table>")

    attachments = ticket.attachments or []
    if attachments:
        h.append("<h3>Attachments</h3>")
        h.append("<ul>")
        for i, url in enumerate(attachments, start=1):
            h.append(f'<li><a href="{escape(url, quote=True)}">File {i}</a></li>')
        h.append("</ul>")

    dashboard_url = f"{settings.app_base_url.rstrip('/')}/k-admin"
    h.append(
        f'<p><a href="{escape(dashboard_url, quote=True)}" style="background-color: #2563eb; '
        'color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; '
        'display: inline-block; margin-top: 20px;">View in Dashboard</a></p>'
    )
    h.append(
        '<p style="color: #6b7280; font-size: 13px;">For urgent matters, please contact your '
        "regional manager or call our support line.</p>"
    )
    h.append("</body></html>")

    return "\n".join(h) + "\n"
