import argparse
import json
import os
import urllib.parse
import urllib.request

COUNTRY_MANAGERS = [
    {"country": "Turkey", "manager_email": "turkey.manager@example.com"},
    {"country": "United States", "manager_email": "usa.manager@example.com"},
    {"country": "Germany", "manager_email": "germany.manager@example.com"},
    {"country": "United Kingdom", "manager_email": "uk.manager@example.com"},
]

EMAIL_SETTINGS = {
    "managerEmail": "manager@example.com",
    "forwardingEmail": "support@example.com",
    "countries": [
        {"code": "TR", "name": "Turkey", "email": "support.tr@example.com", "regionalManager": "regional.tr@example.com", "enabled": True},
        {"code": "UK", "name": "United Kingdom", "email": "support.uk@example.com", "regionalManager": "regional.uk@example.com", "enabled": True},
        {"code": "DE", "name": "Germany", "email": "support.de@example.com", "regionalManager": "regional.de@example.com", "enabled": True},
    ],
}


def put_json(url: str, payload: dict, admin_key: str):
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        headers={
            "Content-Type": "application/json",
            "X-Admin-Key": admin_key,
        },
        method="PUT",
    )
    with urllib.request.urlopen(req, timeout=10) as resp:
        body = resp.read().decode("utf-8")
        return resp.status, body


def main():
    p = argparse.ArgumentParser(description="Seed routing settings and country managers")
    p.add_argument("--base-url", default=os.getenv("PORTAL_BASE_URL", "http://localhost:8000"))
    p.add_argument("--admin-key", default=os.getenv("PORTAL_ADMIN_KEY", "dev-admin-key"))
    args = p.parse_args()

    status, body = put_json(f"{args.base_url}/settings/email", EMAIL_SETTINGS, args.admin_key)
    print("settings/email", status)

    for m in COUNTRY_MANAGERS:
        country = urllib.parse.quote(m["country"])
        status, body = put_json(
            f"{args.base_url}/settings/country-managers/{country}",
            {"managerEmail": m["manager_email"]},
            args.admin_key,
        )
        print(m["country"], status, body)


if __name__ == "__main__":
    main()
