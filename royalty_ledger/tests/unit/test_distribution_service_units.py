"""
Unit tests for distribution_service branches that need a controlled session:
lookup failures, the status guard, and a lost conditional claim.

Sessions are MagicMocks; receipts and agreements are SimpleNamespaces.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from royalty_ledger.app.errors import AppError, ErrorCode, WarningCode
from royalty_ledger.app.models.receipt import ReceiptStatus
from royalty_ledger.app.services import distribution_service

SETTINGS = {
    "DEFAULT_SPLIT": {"creator": "0.70", "platform": "0.30"},
    "PLATFORM_USER_ID": None,
    "DROP_ZERO_PAYOUTS": True,
}


def _receipt(**overrides):
    values = dict(
        id=5,
        agreement_id=3,
        agreement=SimpleNamespace(creator_id=1, licensee_id=2),
        gross_amount=Decimal("1200.00"),
        currency="JPY",
        status=ReceiptStatus.PENDING,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


# ── resolve_split ──────────────────────────────────────────────────────────

def test_resolve_split_falls_back_to_default():
    assert distribution_service.resolve_split(None, SETTINGS) == {
        "creator": "0.70",
        "platform": "0.30",
    }
    assert distribution_service.resolve_split({}, SETTINGS) == SETTINGS["DEFAULT_SPLIT"]


def test_resolve_split_orders_roles_creator_first():
    result = distribution_service.resolve_split(
        {"platform": Decimal("0.1"), "licensee": Decimal("0.2"), "creator": Decimal("0.7")},
        SETTINGS,
    )
    assert list(result) == ["creator", "licensee", "platform"]


def test_resolve_split_rejects_unknown_role():
    with pytest.raises(AppError) as exc_info:
        distribution_service.resolve_split({"creator": 1, "label": 0}, SETTINGS)

    assert exc_info.value.code == ErrorCode.INVALID_SPLIT
    assert exc_info.value.field == "split"


# ── plan_allocations ───────────────────────────────────────────────────────

def test_plan_allocations_default_split():
    allocations, warnings = distribution_service.plan_allocations(_receipt(), None, SETTINGS)

    assert [(a.role, a.amount_minor) for a in allocations] == [
        ("creator", 84000),
        ("platform", 36000),
    ]
    assert warnings == []


def test_plan_allocations_drops_zero_and_warns():
    receipt = _receipt(gross_amount=Decimal("0.01"))

    allocations, warnings = distribution_service.plan_allocations(
        receipt, {"creator": "0.5", "licensee": "0.5"}, SETTINGS,
    )

    assert [(a.role, a.amount_minor) for a in allocations] == [("creator", 1)]
    assert [w["code"] for w in warnings] == [WarningCode.ZERO_ALLOCATION_DROPPED]


def test_plan_allocations_keeps_zero_when_configured():
    settings = {**SETTINGS, "DROP_ZERO_PAYOUTS": False}
    receipt = _receipt(gross_amount=Decimal("0.01"))

    allocations, warnings = distribution_service.plan_allocations(
        receipt, {"creator": "0.5", "licensee": "0.5"}, settings,
    )

    assert [a.amount_minor for a in allocations] == [1, 0]
    assert warnings == []


def test_resolve_party_users_uses_platform_setting():
    agreement = SimpleNamespace(creator_id=1, licensee_id=2)
    assert distribution_service.resolve_party_users(agreement, {"PLATFORM_USER_ID": 9}) == {
        "creator": 1,
        "licensee": 2,
        "platform": 9,
    }


# ── distribute_receipt ─────────────────────────────────────────────────────

def test_distribute_missing_receipt_raises_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        distribution_service.distribute_receipt(404, None, session, SETTINGS)

    assert exc_info.value.code == ErrorCode.RECEIPT_NOT_FOUND
    assert exc_info.value.http_status == 404


@pytest.mark.parametrize("status", [ReceiptStatus.DISTRIBUTED, ReceiptStatus.PAID])
def test_distribute_non_pending_receipt_raises_conflict(status):
    session = MagicMock()
    session.get.return_value = _receipt(status=status)

    with pytest.raises(AppError) as exc_info:
        distribution_service.distribute_receipt(5, None, session, SETTINGS)

    assert exc_info.value.code == ErrorCode.RECEIPT_ALREADY_DISTRIBUTED
    assert exc_info.value.http_status == 409
    session.execute.assert_not_called()


def test_distribute_lost_claim_raises_conflict_without_inserts():
    session = MagicMock()
    session.get.return_value = _receipt()
    session.execute.return_value = MagicMock(rowcount=0)

    with pytest.raises(AppError) as exc_info:
        distribution_service.distribute_receipt(5, None, session, SETTINGS)

    assert exc_info.value.code == ErrorCode.RECEIPT_ALREADY_DISTRIBUTED
    session.add_all.assert_not_called()
    session.flush.assert_not_called()


def test_distribute_invalid_split_fails_before_claim():
    session = MagicMock()
    session.get.return_value = _receipt()

    with pytest.raises(AppError) as exc_info:
        distribution_service.distribute_receipt(5, {"licensee": "1"}, session, SETTINGS)

    assert exc_info.value.code == ErrorCode.UNKNOWN_PRIMARY_PARTY
    session.execute.assert_not_called()
