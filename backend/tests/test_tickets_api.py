from datetime import datetime, timezone

from sqlmodel import select

import support_portal.api.routes.tickets as tickets_routes
from support_portal.core.errors import HistoryWriteConflict, TransportRateLimit
from support_portal.models.country_manager import CountryManager
from support_portal.models.notification import PendingNotification

YEAR = datetime.now(timezone.utc).year
ADMIN = {"X-Admin-Key": "dev-admin-key"}


def _payload(**overrides):
    body = {
        "companyName": "Acme",
        "contactPerson": "Jane Doe",
        "email": "a@b.com",
        "phoneNumber": "+90 555 000 0000",
        "country": "Turkey",
        "productModel": "Combi Oven X10",
        "equipmentSerialNo": "SN-1",
        "orderInvoiceNo": "INV-1",
        "issueType": "Technical issue",
        "subject": "Oven broken",
        "description": "Stops heating after ten minutes.",
        "priority": "Critical",
        "attachments": [],
    }
    body.update(overrides)
    return body


def test_submit_ticket_end_to_end(client, session, transport):
    session.add(CountryManager(country="Turkey", manager_email="m@x.com"))
    session.commit()

    r = client.post("/tickets", json=_payload())
    assert r.status_code == 201
    data = r.json()
    assert data["ticketId"] == f"TKT-{YEAR}-0001"
    assert data["emailStatus"] == "sent"
    assert data["emailWarning"] is None
    assert data["pendingNotificationId"] is None
    assert data["notification"]["success"] is True

    assert len(transport.sent) == 1
    msg = transport.sent[0]
    assert msg.to == "a@b.com"
    assert msg.cc.count("m@x.com") == 1

    t = client.get(f"/tickets/{data['ticketId']}").json()
    assert t["regionalManager"] == "m@x.com"
    assert t["status"] == "New"
    assert t["emailStatus"] == "sent"
    assert len(t["emailHistory"]) == 1
    assert t["createdAt"].endswith("Z")


def test_sequential_submissions_get_sequential_ids(client):
    ids = [client.post("/tickets", json=_payload(subject=f"s{i}")).json()["ticketId"] for i in range(1, 4)]
    assert ids == [f"TKT-{YEAR}-0001", f"TKT-{YEAR}-0002", f"TKT-{YEAR}-0003"]


def test_email_failure_still_saves_ticket(client, session, transport):
    transport.fail_with = TransportRateLimit("Brevo API error (429): too many requests", status_code=429)

    r = client.post("/tickets", json=_payload())

    assert r.status_code == 201
    data = r.json()
    assert data["emailStatus"] == "failed"
    assert data["notification"]["code"] == "RATE_LIMIT_ERROR"
    assert "busy" in data["emailWarning"]
    assert data["pendingNotificationId"]

    t = client.get(f"/tickets/{data['ticketId']}").json()
    assert t["emailStatus"] == "failed"
    assert t["emailHistory"][0]["code"] == "RATE_LIMIT_ERROR"

    pending = session.exec(select(PendingNotification)).all()
    assert len(pending) == 1
    assert pending[0].ticket_id == data["ticketId"]
    assert pending[0].error_code == "RATE_LIMIT_ERROR"
    assert pending[0].attempts == 1


def test_missing_required_field_is_rejected(client, transport):
    r = client.post("/tickets", json=_payload(subject="   "))
    assert r.status_code == 422
    assert r.json()["detail"]["missing"] == ["subject"]
    assert transport.sent == []


def test_invalid_email_is_rejected(client):
    r = client.post("/tickets", json=_payload(email="nope"))
    assert r.status_code == 422


def test_unknown_priority_is_rejected(client):
    r = client.post("/tickets", json=_payload(priority="Whenever"))
    assert r.status_code == 422


def test_get_unknown_ticket_is_404(client):
    assert client.get("/tickets/TKT-1999-0001").status_code == 404


def test_list_tickets_with_filters(client):
    client.post("/tickets", json=_payload(country="Turkey", priority="Low"))
    client.post("/tickets", json=_payload(country="Germany", priority="High"))

    all_ = client.get("/tickets").json()["tickets"]
    assert len(all_) == 2

    german = client.get("/tickets", params={"country": "Germany"}).json()["tickets"]
    assert [t["priority"] for t in german] == ["High"]


def test_status_update_requires_admin_key(client):
    ticket_id = client.post("/tickets", json=_payload()).json()["ticketId"]

    r = client.patch(f"/tickets/{ticket_id}/status", json={"status": "Resolved"})
    assert r.status_code == 401

    r = client.patch(f"/tickets/{ticket_id}/status", json={"status": "Resolved"}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["status"] == "Resolved"


def test_status_update_on_missing_ticket_is_404(client):
    r = client.patch("/tickets/TKT-1999-0001/status", json={"status": "Open"}, headers=ADMIN)
    assert r.status_code == 404


def test_stats_counts_tickets_and_pending(client, transport):
    client.post("/tickets", json=_payload(priority="Critical"))
    transport.fail_with = TransportRateLimit("busy", status_code=429)
    client.post("/tickets", json=_payload(priority="Low", country="Germany"))

    data = client.get("/stats").json()

    assert data["totals"]["tickets"] == 2
    assert data["totals"]["open"] == 2
    assert data["totals"]["high_priority"] == 1
    assert data["totals"]["pending_notifications"] == 1
    assert data["by_email_status"] == {"sent": 1, "failed": 1}
    assert data["by_country"] == {"Turkey": 1, "Germany": 1}
    assert len(data["latest_tickets"]) == 2


def test_status_update_conflict_is_409(client, monkeypatch):
    ticket_id = client.post("/tickets", json=_payload()).json()["ticketId"]

    def always_conflict(session, ticket_id, status):
        raise HistoryWriteConflict(f"could not update status of {ticket_id}")

    monkeypatch.setattr(tickets_routes, "update_ticket_status", always_conflict)

    r = client.patch(f"/tickets/{ticket_id}/status", json={"status": "Open"}, headers=ADMIN)
    assert r.status_code == 409
