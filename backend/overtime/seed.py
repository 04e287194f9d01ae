"""Seed script for development data.

Run with:  python -m overtime.seed

The employee directory is an in-memory stub, so seed again after every API restart.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime, timedelta

import httpx

BASE_URL = "http://localhost:8000"

ADMIN_EMAIL = "ada.admin@example.com"
SUPERVISOR_EMAIL = "sam.supervisor@example.com"
PLANT_MANAGER_EMAIL = "pia.plant@example.com"

ADMIN_HEADERS = {
    "Content-Type": "application/json",
    "X-User-Email": ADMIN_EMAIL,
    "X-Roles": "admin",
}
SUPERVISOR_HEADERS = {
    "Content-Type": "application/json",
    "X-User-Email": SUPERVISOR_EMAIL,
    "X-Roles": "production-manager",
}
PLANT_MANAGER_HEADERS = {
    "Content-Type": "application/json",
    "X-User-Email": PLANT_MANAGER_EMAIL,
    "X-Roles": "plant-manager",
}

EMPLOYEES = [
    {
        "identifier": "1001",
        "first_name": "Sam",
        "last_name": "Supervisor",
        "email": SUPERVISOR_EMAIL,
        "manager": None,
    },
    {
        "identifier": "1002",
        "first_name": "Pia",
        "last_name": "Plant",
        "email": PLANT_MANAGER_EMAIL,
        "manager": None,
    },
    {
        "identifier": "2001",
        "first_name": "Eve",
        "last_name": "Employee",
        "email": "eve.employee@example.com",
        "manager": "Sam Supervisor",
    },
    {
        "identifier": "2002",
        "first_name": "Olaf",
        "last_name": "Other",
        "email": "olaf.other@example.com",
        "manager": "Sam Supervisor",
    },
    {
        "identifier": "2003",
        "first_name": "Nina",
        "last_name": "Nomail",
        "email": None,
        "manager": "Sam Supervisor",
    },
]

# (key, value)
CONFIG = [
    ("supervisor_hours_per_employee", 8),
]


def _employee_headers(email: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "X-User-Email": email, "X-Roles": ""}


async def _safe_post(
    client: httpx.AsyncClient, url: str, json: dict | None, label: str, headers: dict[str, str]
) -> dict | None:
    """POST with 409-conflict tolerance for idempotency."""
    resp = await client.post(url, json=json, headers=headers)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} (already exists)")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def _safe_put(client: httpx.AsyncClient, url: str, json: dict, label: str) -> dict | None:
    """PUT (upsert), naturally idempotent."""
    resp = await client.put(url, json=json, headers=ADMIN_HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_employees(client: httpx.AsyncClient) -> None:
    """Seed the employee directory via PUT (upsert)."""
    print("\n--- Seeding employees ---")
    for emp in EMPLOYEES:
        identifier = emp["identifier"]
        body = {k: v for k, v in emp.items() if k != "identifier"}
        await _safe_put(
            client,
            f"{BASE_URL}/employees/{identifier}",
            body,
            f"Employee {emp['first_name']} {emp['last_name']} ({identifier})",
        )


async def seed_config(client: httpx.AsyncClient) -> None:
    """Seed configuration values; existing keys are updated in place."""
    print("\n--- Seeding config ---")
    for key, value in CONFIG:
        resp = await client.get(f"{BASE_URL}/config/{key}", headers=ADMIN_HEADERS)
        if resp.status_code == 200:
            await _safe_put(client, f"{BASE_URL}/config/{key}", {"value": value}, f"Config {key}={value} (updated)")
            continue
        await _safe_post(
            client, f"{BASE_URL}/config", {"key": key, "value": value}, f"Config {key}={value}", ADMIN_HEADERS
        )


async def _has_requests(client: httpx.AsyncClient, path: str, headers: dict[str, str]) -> bool:
    resp = await client.get(f"{BASE_URL}/{path}", headers=headers)
    return resp.status_code == 200 and resp.json().get("total", 0) > 0


async def seed_orders(client: httpx.AsyncClient) -> None:
    """Seed overtime orders filed by the supervisor."""
    print("\n--- Seeding orders ---")
    if await _has_requests(client, "orders", SUPERVISOR_HEADERS):
        print("  [SKIP] orders already present")
        return

    now = datetime.now(UTC).replace(minute=0, second=0, microsecond=0)

    # Order 1: Eve, 4h exchanged for a day off a week later, approved on creation
    start = now + timedelta(days=1)
    await _safe_post(
        client,
        f"{BASE_URL}/orders?employee_identifier=2001",
        {
            "hours": 4,
            "reason": "Line changeover",
            "payment": False,
            "scheduled_day_off": (start + timedelta(days=7)).date().isoformat(),
            "work_start_time": start.isoformat(),
            "work_end_time": (start + timedelta(hours=4)).isoformat(),
        },
        "Order: Eve 4h for a day off (APPROVED)",
        SUPERVISOR_HEADERS,
    )

    # Order 2: Olaf, 6h paid out, waits for the plant manager, who approves it
    start = now + timedelta(days=2)
    await _safe_post(
        client,
        f"{BASE_URL}/orders?employee_identifier=2002",
        {
            "hours": 6,
            "reason": "Stocktaking",
            "payment": True,
            "work_start_time": start.isoformat(),
            "work_end_time": (start + timedelta(hours=6)).isoformat(),
        },
        "Order: Olaf 6h paid (PENDING-PLANT-MANAGER)",
        SUPERVISOR_HEADERS,
    )
    resp = await client.get(f"{BASE_URL}/orders?status=pending-plant-manager", headers=PLANT_MANAGER_HEADERS)
    if resp.status_code == 200:
        for item in resp.json().get("items", []):
            await _safe_post(
                client,
                f"{BASE_URL}/orders/{item['id']}/approve",
                None,
                f"Approved order {item['internal_id']}",
                PLANT_MANAGER_HEADERS,
            )


async def seed_submissions(client: httpx.AsyncClient) -> None:
    """Seed employee submissions, one of them approved by the supervisor."""
    print("\n--- Seeding submissions ---")
    if await _has_requests(client, "submissions", SUPERVISOR_HEADERS):
        print("  [SKIP] submissions already present")
        return

    today = datetime.now(UTC).date()
    eve = _employee_headers("eve.employee@example.com")
    olaf = _employee_headers("olaf.other@example.com")

    # Submission 1: Eve, 3h two days ago, then APPROVE it
    result = await _safe_post(
        client,
        f"{BASE_URL}/submissions",
        {
            "supervisor": SUPERVISOR_EMAIL,
            "date": (today - timedelta(days=2)).isoformat(),
            "hours": 3,
            "reason": "Late delivery unloading",
        },
        "Submission: Eve 3h overtime",
        eve,
    )
    if result:
        resp = await client.get(f"{BASE_URL}/submissions?status=pending", headers=SUPERVISOR_HEADERS)
        for item in resp.json().get("items", []) if resp.status_code == 200 else []:
            await _safe_post(
                client,
                f"{BASE_URL}/submissions/{item['id']}/approve",
                None,
                f"Approved submission {item['internal_id']}",
                SUPERVISOR_HEADERS,
            )

    # Submission 2: Olaf, 2h yesterday, stays PENDING
    await _safe_post(
        client,
        f"{BASE_URL}/submissions",
        {
            "supervisor": SUPERVISOR_EMAIL,
            "date": (today - timedelta(days=1)).isoformat(),
            "hours": 2,
            "reason": "Machine breakdown",
        },
        "Submission: Olaf 2h overtime (PENDING)",
        olaf,
    )


async def main() -> None:
    print("=" * 60)
    print("  Overtime Approvals: Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            print("Make sure the API is running (uvicorn overtime.main:app)")
            sys.exit(1)

        await seed_employees(client)
        await seed_config(client)
        await seed_orders(client)
        await seed_submissions(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
