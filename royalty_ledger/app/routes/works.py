"""
routes/works.py — Work and license route handlers.

Endpoints (url_prefix=/api/v1):
  POST   /works                              → 201  register a work
  GET    /works/:id                          → 200
  POST   /licenses/requests                  → 201  request a license
  POST   /licenses/requests/:id/approve      → 200  {agreementId, status}
  POST   /licenses/requests/:id/reject       → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from royalty_ledger.app.extensions import db
from royalty_ledger.app.middleware.auth_middleware import require_auth
from royalty_ledger.app.models.license_request import LicenseRequest
from royalty_ledger.app.models.work import Work
from royalty_ledger.app.schemas.work_schema import CreateWorkSchema, LicenseRequestSchema
from royalty_ledger.app.services import license_service, work_service

works_bp = Blueprint("works", __name__)


def _serialize_work(work: Work) -> dict:
    return {
        "id": work.id,
        "ownerId": work.owner_id,
        "title": work.title,
        "description": work.description,
        "iccCode": work.icc_code,
        "createdAt": work.created_at.isoformat() if work.created_at else None,
    }


def _serialize_license_request(lr: LicenseRequest) -> dict:
    return {
        "id": lr.id,
        "workId": lr.work_id,
        "requesterId": lr.requester_id,
        "usage": lr.usage,
        "territory": lr.territory,
        "durationDays": lr.duration_days,
        "feeAmount": lr.fee_amount,  # Decimal → string via DecimalJSONProvider
        "status": lr.status.value,
        "createdAt": lr.created_at.isoformat() if lr.created_at else None,
    }


@works_bp.route("/works", methods=["POST"])
@require_auth
def create_work():
    data = CreateWorkSchema().load(request.get_json(force=True) or {})
    work = work_service.register_work(
        owner_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_work(work), "warnings": []}), 201


@works_bp.route("/works/<int:work_id>", methods=["GET"])
@require_auth
def get_work(work_id: int):
    work = work_service.get_work(work_id, session=db.session)
    return jsonify({"data": _serialize_work(work), "warnings": []}), 200


@works_bp.route("/licenses/requests", methods=["POST"])
@require_auth
def request_license():
    data = LicenseRequestSchema().load(request.get_json(force=True) or {})
    license_request = license_service.request_license(
        requester_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_license_request(license_request), "warnings": []}), 201


@works_bp.route("/licenses/requests/<int:request_id>/approve", methods=["POST"])
@require_auth
def approve_license(request_id: int):
    """Only the work owner may approve. Creates a signed agreement."""
    agreement = license_service.approve_license(
        request_id=request_id,
        actor_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"agreementId": agreement.id, "status": "approved"},
        "warnings": [],
    }), 200


@works_bp.route("/licenses/requests/<int:request_id>/reject", methods=["POST"])
@require_auth
def reject_license(request_id: int):
    license_request = license_service.reject_license(
        request_id=request_id,
        actor_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_license_request(license_request), "warnings": []}), 200
