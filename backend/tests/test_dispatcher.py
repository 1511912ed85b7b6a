from sqlmodel import Session

from support_portal.core.errors import TransportNetworkError, TransportRateLimit
from support_portal.models.ticket import Ticket
from support_portal.services import tickets
from support_portal.services.dispatcher import dispatch, send_ticket_email
from support_portal.services.routing import ADMIN_NOTIFICATION, Recipients
from support_portal.services.templates import build_ticket_email_html
from support_portal.services.tickets import append_email_history, create_ticket, get_ticket


def _recipients(to="a@b.com"):
    return Recipients(to=to, cc=["m@x.com"], regional_manager="m@x.com")


def test_successful_dispatch_records_history(session, transport, ticket_data):
    ticket = create_ticket(session, ticket_data(), regional_manager="m@x.com")

    result = dispatch(session, ticket, _recipients(), transport)

    assert result.success
    assert result.message_id == "<msg-1@test>"
    assert len(transport.sent) == 1
    msg = transport.sent[0]
    assert msg.to == "a@b.com"
    assert msg.cc == ["m@x.com"]
    assert msg.reply_to == "m@x.com"
    assert msg.subject == f"Support Ticket {ticket.ticket_id} - Oven broken"

    stored = get_ticket(session, ticket.ticket_id)
    assert stored.email_status == "sent"
    assert stored.last_email_sent is not None
    assert len(stored.email_history) == 1
    entry = stored.email_history[0]
    assert entry["success"] is True
    assert entry["type"] == "initial"
    assert entry["messageId"] == "<msg-1@test>"
    assert entry["recipients"] == ["a@b.com", "m@x.com"]
    assert entry["timestamp"].endswith("Z")


def test_rate_limit_keeps_ticket_and_marks_failed(session, transport, ticket_data):
    ticket = create_ticket(session, ticket_data())
    transport.fail_with = TransportRateLimit("Brevo API error (429): slow down", status_code=429)

    result = dispatch(session, ticket, _recipients(), transport)

    assert not result.success
    assert result.code == "RATE_LIMIT_ERROR"
    stored = get_ticket(session, ticket.ticket_id)
    assert stored.email_status == "failed"
    assert stored.last_email_sent is None
    assert stored.email_history[0]["code"] == "RATE_LIMIT_ERROR"
    assert stored.email_history[0]["success"] is False


def test_missing_fields_fail_without_calling_transport(session, transport):
    ticket = Ticket(ticket_id="TKT-2026-0009", company_name="Acme", contact_person="", email="a@b.com",
                    country="Turkey", subject="x")

    result = send_ticket_email(ticket, _recipients(), transport)

    assert result.code == "VALIDATION_ERROR"
    assert "contact_person" in result.error
    assert transport.sent == []


def test_invalid_recipient_is_validation_error(session, transport, ticket_data):
    ticket = create_ticket(session, ticket_data())

    result = send_ticket_email(ticket, _recipients(to="not-an-address"), transport)

    assert result.code == "VALIDATION_ERROR"
    assert transport.sent == []


def test_unexpected_transport_exception_is_unknown_error(session, transport, ticket_data):
    ticket = create_ticket(session, ticket_data())
    transport.fail_with = RuntimeError("boom")

    result = dispatch(session, ticket, _recipients(), transport)

    assert result.code == "UNKNOWN_ERROR"
    assert get_ticket(session, ticket.ticket_id).email_status == "failed"


def test_admin_notification_subject(session, transport, ticket_data):
    ticket = create_ticket(session, ticket_data())
    send_ticket_email(ticket, _recipients(to="fwd@x.com"), transport, email_type=ADMIN_NOTIFICATION)
    assert transport.sent[0].subject == "[NEW TICKET] Oven broken"


def test_result_dict_uses_camel_case(session, transport, ticket_data):
    ticket = create_ticket(session, ticket_data())
    transport.fail_with = TransportNetworkError("timeout")

    out = send_ticket_email(ticket, _recipients(), transport).to_dict()

    assert out == {
        "success": False,
        "ticketId": ticket.ticket_id,
        "error": "timeout",
        "code": "NETWORK_ERROR",
        "recipients": ["a@b.com", "m@x.com"],
        "emailType": "customer_confirmation",
    }


def test_html_escapes_user_content(session, ticket_data):
    ticket = create_ticket(
        session,
        ticket_data(
            company_name="<script>alert(1)</script>",
            description="a & b",
            attachments=["https://files.example.com/1.png", "https://files.example.com/2.png"],
        ),
    )

    html = build_ticket_email_html(ticket, "m@x.com")

    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "a &amp; b" in html
    assert ticket.ticket_id in html
    assert "m@x.com" in html
    assert "Combi Oven X10" in html
    assert "File 1" in html and "File 2" in html
    assert "/k-admin" in html
    assert "#dc2626" in html


def test_history_append_survives_a_concurrent_writer(engine, session, transport, ticket_data, monkeypatch):
    ticket = create_ticket(session, ticket_data())
    original = tickets.conditional_write
    raced = {"done": False}

    def racing_write(s, ticket_id, expected_version, **values):
        if not raced["done"]:
            raced["done"] = True
            with Session(engine) as other:
                append_email_history(other, ticket_id, {"type": "resend", "success": True}, email_status="sent")
        return original(s, ticket_id, expected_version, **values)

    monkeypatch.setattr(tickets, "conditional_write", racing_write)

    dispatch(session, ticket, _recipients(), transport)

    history = get_ticket(session, ticket.ticket_id).email_history
    assert [e["type"] for e in history] == ["resend", "initial"]
