"""
routes/payouts.py — Payout instruction route handlers.

Endpoints:
  POST   /api/v1/payouts/mark-paid                → 200  mark one instruction paid
  GET    /api/v1/payouts                          → 200  caller's instructions + totals
  GET    /api/v1/admin/payouts                    → 200  admin list for a period
  GET    /api/v1/admin/payouts/export.csv         → 200  text/csv attachment

Admin endpoints take ?month=YYYY-MM or ?from=YYYY-MM-DD&to=YYYY-MM-DD.
"""

from __future__ import annotations

import csv
import io

from flask import Blueprint, Response, g, jsonify, request

from royalty_ledger.app.extensions import db
from royalty_ledger.app.middleware.auth_middleware import (
    current_admin_policy,
    require_admin,
    require_auth,
)
from royalty_ledger.app.routes.receipts import serialize_instruction
from royalty_ledger.app.schemas.receipt_schema import MarkPaidSchema, PeriodQuerySchema
from royalty_ledger.app.services import payout_service
from royalty_ledger.app.services.money import format_minor_units

payouts_bp = Blueprint("payouts", __name__)
admin_payouts_bp = Blueprint("admin_payouts", __name__)


def _load_period() -> payout_service.Period:
    query = PeriodQuerySchema().load(request.args)
    return payout_service.resolve_period(
        month=query["month"],
        date_from=query["date_from"],
        date_to=query["date_to"],
    )


@payouts_bp.route("/mark-paid", methods=["POST"])
@require_auth
def mark_paid():
    """
    POST /payouts/mark-paid — Admins or the receiving party only.

    Marking an already-paid instruction succeeds with the original paidAt
    and an ALREADY_PAID warning.
    """
    data = MarkPaidSchema().load(request.get_json(force=True) or {})
    result = payout_service.mark_paid(
        instruction_id=data["instruction_id"],
        actor_id=g.user_id,
        data=data,
        session=db.session,
        policy=current_admin_policy(),
    )
    db.session.commit()
    instruction = result.instruction
    return jsonify({
        "data": {
            "ok": True,
            "instructionId": instruction.id,
            "status": instruction.status.value,
            "paidAt": instruction.paid_at.isoformat() if instruction.paid_at else None,
            "txnRef": instruction.txn_ref,
        },
        "warnings": result.warnings,
    }), 200


@payouts_bp.route("", methods=["GET"])
@require_auth
def list_my_payouts():
    instructions, totals = payout_service.list_my_payouts(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": {
            "payouts": [serialize_instruction(pi) for pi in instructions],
            "totals": [
                {
                    "currency": currency,
                    "amountCents": amount,
                    "formatted": format_minor_units(amount, currency),
                }
                for currency, amount in totals.items()
            ],
        },
        "warnings": [],
    }), 200


@admin_payouts_bp.route("/payouts", methods=["GET"])
@require_admin
def list_payouts():
    period = _load_period()
    instructions = payout_service.list_payouts(period, session=db.session)
    return jsonify({
        "data": [serialize_instruction(pi) for pi in instructions],
        "warnings": [],
    }), 200


@admin_payouts_bp.route("/payouts/export.csv", methods=["GET"])
@require_admin
def export_payouts():
    """GET /admin/payouts/export.csv — One row per instruction, oldest first."""
    period = _load_period()
    rows = payout_service.export_rows(period, session=db.session)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=payout_service.EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)

    return Response(
        buffer.getvalue(),
        mimetype="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="payouts-{period.label}.csv"',
        },
    )
