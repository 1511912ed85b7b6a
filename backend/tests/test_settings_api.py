ADMIN = {"X-Admin-Key": "dev-admin-key"}

SETTINGS = {
    "managerEmail": "mgr@x.com",
    "forwardingEmail": "fwd@x.com",
    "countries": [
        {"code": "TR", "name": "Turkey", "email": "tr@x.com", "regionalManager": "tr.boss@x.com", "enabled": True},
    ],
}


def test_email_settings_roundtrip(client):
    assert client.get("/settings/email").json()["countries"] == []

    r = client.put("/settings/email", json=SETTINGS, headers=ADMIN)
    assert r.status_code == 200

    data = client.get("/settings/email").json()
    assert data["managerEmail"] == "mgr@x.com"
    assert data["countries"][0]["regionalManager"] == "tr.boss@x.com"


def test_email_settings_require_admin(client):
    assert client.put("/settings/email", json=SETTINGS).status_code == 401


def test_email_settings_reject_bad_address(client):
    r = client.put("/settings/email", json={**SETTINGS, "managerEmail": "nope"}, headers=ADMIN)
    assert r.status_code == 422


def test_settings_change_applies_to_next_ticket(client, transport):
    client.put("/settings/email", json=SETTINGS, headers=ADMIN)

    r = client.post(
        "/tickets",
        json={
            "companyName": "Acme",
            "contactPerson": "Jane",
            "email": "a@b.com",
            "country": "Turkey",
            "subject": "Broken",
        },
    )

    assert r.status_code == 201
    assert transport.sent[0].cc == ["tr.boss@x.com", "mgr@x.com", "fwd@x.com", "tr@x.com"]


def test_country_manager_crud(client):
    r = client.put("/settings/country-managers/Turkey", json={"managerEmail": "m@x.com"}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["managerEmail"] == "m@x.com"

    client.put("/settings/country-managers/Turkey", json={"managerEmail": "m2@x.com"}, headers=ADMIN)
    managers = client.get("/settings/country-managers").json()["managers"]
    assert [(m["country"], m["managerEmail"]) for m in managers] == [("Turkey", "m2@x.com")]

    assert client.delete("/settings/country-managers/Turkey", headers=ADMIN).json() == {
        "deleted": True,
        "country": "Turkey",
    }
    assert client.delete("/settings/country-managers/Turkey", headers=ADMIN).status_code == 404


def test_country_manager_requires_admin(client):
    r = client.put("/settings/country-managers/Turkey", json={"managerEmail": "m@x.com"})
    assert r.status_code == 401
