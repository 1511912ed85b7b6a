import argparse
import json
import os
import random
import urllib.request
from concurrent.futures import ThreadPoolExecutor

COUNTRIES = ["Turkey", "Germany", "United Kingdom", "United States", "France", "Other"]
PRIORITIES = ["Low", "Normal", "Medium", "High", "Critical", "Urgent (equipment stopped)"]


def post_json(url: str, payload: dict):
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(req, timeout=30) as resp:
        body = resp.read().decode("utf-8")
        return resp.status, body


def sample_ticket(i: int, email: str) -> dict:
    return {
        "companyName": f"Acme {i}",
        "contactPerson": "Jane Doe",
        "email": email,
        "country": random.choice(COUNTRIES),
        "productModel": "Combi Oven X10",
        "equipmentSerialNo": f"SN-{1000 + i}",
        "orderInvoiceNo": f"INV-{2000 + i}",
        "issueType": "Technical issue",
        "subject": f"Oven not heating ({i})",
        "description": "The oven stops heating after ten minutes.",
        "priority": random.choice(PRIORITIES),
    }


def main():
    p = argparse.ArgumentParser(description="Submit sample tickets, optionally in parallel")
    p.add_argument("--base-url", default=os.getenv("PORTAL_BASE_URL", "http://localhost:8000"))
    p.add_argument("--email", default="customer@example.com")
    p.add_argument("--count", type=int, default=1)
    p.add_argument("--parallel", type=int, default=1)
    args = p.parse_args()

    def submit(i: int):
        return post_json(f"{args.base_url}/tickets", sample_ticket(i, args.email))

    with ThreadPoolExecutor(max_workers=max(1, args.parallel)) as pool:
        results = list(pool.map(submit, range(1, args.count + 1)))

    ids = []
    for status, body in results:
        data = json.loads(body)
        ids.append(data.get("ticketId"))
        print(status, data.get("ticketId"), data.get("emailStatus"), data.get("emailWarning") or "")

    unique = {i for i in ids if i}
    print(f"submitted={len(results)} unique_ids={len(unique)}")


if __name__ == "__main__":
    main()
