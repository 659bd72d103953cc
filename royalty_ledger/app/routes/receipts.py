"""
routes/receipts.py — Receipt route handlers.

Special: record and distribute return (Receipt, warnings[]). Warnings such
as PLATFORM_PARTY_UNASSIGNED ride in the envelope; the status is unchanged.

Endpoints (url_prefix=/api/v1/receipts):
  POST   /receipts                     → 201  record (and distribute) a receipt
  GET    /receipts/:id                 → 200  receipt + payout instructions
  POST   /receipts/:id/distribute      → 200  distribute a pending receipt
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from royalty_ledger.app.extensions import db
from royalty_ledger.app.middleware.auth_middleware import current_admin_policy, require_auth
from royalty_ledger.app.models.payout_instruction import PayoutInstruction
from royalty_ledger.app.models.receipt import Receipt
from royalty_ledger.app.schemas.receipt_schema import CreateReceiptSchema, DistributeSchema
from royalty_ledger.app.services import receipt_service

receipts_bp = Blueprint("receipts", __name__)


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_instruction(pi: PayoutInstruction) -> dict:
    return {
        "id": pi.id,
        "receiptId": pi.receipt_id,
        "partyRole": pi.party_role.value,
        "partyUserId": pi.party_user_id,
        "currency": pi.currency,
        "amountCents": pi.amount_cents,
        "status": pi.status.value,
        "roundingAdjustment": pi.rounding_adjustment,
        "roundingCents": pi.rounding_cents,
        "createdAt": _isoformat(pi.created_at),
        "paidAt": _isoformat(pi.paid_at),
        "txnRef": pi.txn_ref,
    }


def _serialize_receipt(r: Receipt) -> dict:
    return {
        "id": r.id,
        "agreementId": r.agreement_id,
        "status": r.status.value,
        "grossAmount": r.gross_amount,  # Decimal → string via DecimalJSONProvider
        "currency": r.currency,
        "memo": r.memo,
        "createdAt": _isoformat(r.created_at),
        "distributedAt": _isoformat(r.distributed_at),
        "payoutInstructions": [serialize_instruction(pi) for pi in r.payout_instructions],
    }


@receipts_bp.route("", methods=["POST"])
@require_auth
def create_receipt():
    """
    POST /receipts — Record a receipt against an agreement.

    Distributed in the same transaction unless the body has distribute=false.
    """
    data = CreateReceiptSchema().load(request.get_json(force=True) or {})
    receipt, warnings = receipt_service.record_receipt(
        actor_id=g.user_id,
        data=data,
        session=db.session,
        settings=current_app.config,
        policy=current_admin_policy(),
    )
    db.session.commit()
    return jsonify({"data": _serialize_receipt(receipt), "warnings": warnings}), 201


@receipts_bp.route("/<int:receipt_id>", methods=["GET"])
@require_auth
def get_receipt(receipt_id: int):
    receipt = receipt_service.get_receipt(
        receipt_id=receipt_id,
        actor_id=g.user_id,
        session=db.session,
        policy=current_admin_policy(),
    )
    return jsonify({"data": _serialize_receipt(receipt), "warnings": []}), 200


@receipts_bp.route("/<int:receipt_id>/distribute", methods=["POST"])
@require_auth
def distribute_receipt(receipt_id: int):
    """
    POST /receipts/:id/distribute — Split a pending receipt into payouts.

    A second call on the same receipt is 409 RECEIPT_ALREADY_DISTRIBUTED.
    """
    data = DistributeSchema().load(request.get_json(silent=True) or {})
    receipt, warnings = receipt_service.distribute_existing(
        receipt_id=receipt_id,
        actor_id=g.user_id,
        split=data.get("split"),
        session=db.session,
        settings=current_app.config,
        policy=current_admin_policy(),
    )
    db.session.commit()
    return jsonify({"data": _serialize_receipt(receipt), "warnings": warnings}), 200
