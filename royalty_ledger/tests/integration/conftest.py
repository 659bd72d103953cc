"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
    TestingConfig points at in-memory SQLite unless TEST_DATABASE_URL is set,
    so the same suite also runs against PostgreSQL.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.
  - ADMIN_EMAILS in TestingConfig is "ops@royalty.test"; register_admin()
    creates that user.

Helper functions (not fixtures), imported by the test modules with
`from conftest import ...` (pytest puts this directory on sys.path):
  - register(client, ...)          → dict with user + tokens
  - register_admin(client)         → dict with user + tokens (admin by email)
  - auth_headers(token)            → {"Authorization": "Bearer <token>"}
  - make_work(client, token, ...)  → work dict
  - make_agreement(client, creator, licensee) → agreement id
  - make_receipt(client, token, agreement_id, ...) → HTTP response
  - mark_paid(client, token, instruction_id, ...)   → HTTP response
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from royalty_ledger.app import create_app
from royalty_ledger.app.extensions import db as _db

ADMIN_EMAIL = "ops@royalty.test"

# Child tables first.
_DELETE_ORDER = (
    "events",
    "payout_instructions",
    "receipts",
    "agreements",
    "license_requests",
    "works",
    "refresh_tokens",
    "users",
)


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            for table in _DELETE_ORDER:
                conn.execute(text(f"DELETE FROM {table}"))
            conn.commit()


@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    username: str = "alice",
    email: str | None = None,
    password: str = "Password1",
    role: str = "creator",
) -> dict:
    """
    Registers a new user and returns the full response data dict.
    Returns: {"user": {...}, "access_token": "...", "refresh_token": "..."}
    """
    if email is None:
        email = f"{username}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": email, "password": password, "role": role},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def register_admin(client, username: str = "ops") -> dict:
    return register(client, username, email=ADMIN_EMAIL)


def login(client, username: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_work(
    client,
    token: str,
    title: str = "Night Drive",
    country: str = "JP",
    registrant: str = "CRG",
    serial: str | None = None,
) -> dict:
    icc = {"country": country, "registrant": registrant}
    if serial is not None:
        icc["serial"] = serial
    resp = client.post(
        "/api/v1/works",
        json={"title": title, "icc": icc},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_work failed: {resp.get_json()}"
    return resp.get_json()["data"]


def request_license(client, token: str, work_id: int, **overrides):
    payload = {
        "workId": work_id,
        "usage": "Background music for a web series",
        "territory": "JP",
        "durationDays": 90,
    }
    payload.update(overrides)
    return client.post(
        "/api/v1/licenses/requests",
        json=payload,
        headers=auth_headers(token),
    )


def make_agreement(client, creator: dict, licensee: dict) -> int:
    """Work by `creator`, request by `licensee`, approved by `creator`."""
    work = make_work(client, creator["access_token"])
    resp = request_license(client, licensee["access_token"], work["id"])
    assert resp.status_code == 201, f"request_license failed: {resp.get_json()}"
    request_id = resp.get_json()["data"]["id"]

    resp = client.post(
        f"/api/v1/licenses/requests/{request_id}/approve",
        headers=auth_headers(creator["access_token"]),
    )
    assert resp.status_code == 200, f"approve failed: {resp.get_json()}"
    return resp.get_json()["data"]["agreementId"]


def make_receipt(
    client,
    token: str,
    agreement_id: int,
    gross_amount: str = "1200.00",
    **extra,
):
    payload = {"agreementId": agreement_id, "grossAmount": gross_amount}
    payload.update(extra)
    return client.post(
        "/api/v1/receipts",
        json=payload,
        headers=auth_headers(token),
    )


def mark_paid(client, token: str, instruction_id: int, **extra):
    payload = {"instructionId": instruction_id}
    payload.update(extra)
    return client.post(
        "/api/v1/payouts/mark-paid",
        json=payload,
        headers=auth_headers(token),
    )


def instructions_by_role(receipt: dict) -> dict:
    return {pi["partyRole"]: pi for pi in receipt["payoutInstructions"]}
