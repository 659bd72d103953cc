"""
services/license_service.py — License requests and agreements.

  request_license  → LicenseRequest (pending)
  approve_license  → pending → approved, creates a signed Agreement
  reject_license   → pending → rejected

Only the owner of the work may approve or reject. The status change is a
conditional UPDATE ... WHERE status='pending', so a request is processed
at most once even when two approvals race.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from royalty_ledger.app.errors import AppError, ErrorCode
from royalty_ledger.app.models.agreement import Agreement, AgreementStatus
from royalty_ledger.app.models.license_request import LicenseRequest, LicenseRequestStatus
from royalty_ledger.app.services import event_service
from royalty_ledger.app.services.work_service import get_work


def _get_request_or_404(request_id: int, session: Session) -> LicenseRequest:
    license_request = session.get(LicenseRequest, request_id)
    if license_request is None:
        raise AppError(
            ErrorCode.LICENSE_REQUEST_NOT_FOUND,
            f"License request {request_id} not found.",
            404,
        )
    return license_request


def _require_work_owner(license_request: LicenseRequest, actor_id: int) -> None:
    if license_request.work.owner_id != actor_id:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Only the owner of the work can process its license requests.",
            403,
        )


def _already_processed(license_request: LicenseRequest) -> AppError:
    status = license_request.status
    status_value = status.value if isinstance(status, LicenseRequestStatus) else status
    return AppError(
        ErrorCode.LICENSE_ALREADY_PROCESSED,
        f"License request {license_request.id} is already '{status_value}'.",
        409,
    )


def _transition(
        license_request: LicenseRequest,
        new_status: LicenseRequestStatus,
        session: Session,
) -> None:
    """Moves a pending request to new_status, or raises 409."""
    if license_request.status != LicenseRequestStatus.PENDING:
        raise _already_processed(license_request)

    result = session.execute(
        update(LicenseRequest)
        .where(
            LicenseRequest.id == license_request.id,
            LicenseRequest.status == LicenseRequestStatus.PENDING,
        )
        .values(status=new_status, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    session.refresh(license_request)
    if result.rowcount == 0:
        raise _already_processed(license_request)


def request_license(requester_id: int, data: dict, session: Session) -> LicenseRequest:
    """
    Files a license request for a work.

    data keys: work_id, usage, territory, duration_days, fee_amount (optional).

    Raises:
      AppError(WORK_NOT_FOUND, 404)
      AppError(SELF_LICENSE, 422) — the owner cannot license their own work
    """
    work = get_work(data["work_id"], session)
    if work.owner_id == requester_id:
        raise AppError(
            ErrorCode.SELF_LICENSE,
            "You cannot request a license for your own work.",
            422,
            field="work_id",
        )

    license_request = LicenseRequest(
        work_id=work.id,
        requester_id=requester_id,
        usage=data["usage"],
        territory=data["territory"],
        duration_days=data["duration_days"],
        fee_amount=data.get("fee_amount"),
        status=LicenseRequestStatus.PENDING,
    )
    session.add(license_request)
    session.flush()

    event_service.log_event(
        session,
        "license.request",
        user_id=requester_id,
        license_request_id=license_request.id,
        work_id=work.id,
    )

    return license_request


def approve_license(request_id: int, actor_id: int, session: Session) -> Agreement:
    """
    Approves a pending request and creates the signed Agreement.

    Raises:
      AppError(LICENSE_REQUEST_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(LICENSE_ALREADY_PROCESSED, 409)
    """
    license_request = _get_request_or_404(request_id, session)
    _require_work_owner(license_request, actor_id)
    _transition(license_request, LicenseRequestStatus.APPROVED, session)

    fee = license_request.fee_amount
    agreement = Agreement(
        work_id=license_request.work_id,
        license_request_id=license_request.id,
        creator_id=license_request.work.owner_id,
        licensee_id=license_request.requester_id,
        terms={
            "usage": license_request.usage,
            "territory": license_request.territory,
            "durationDays": license_request.duration_days,
            "feeAmount": str(fee) if fee is not None else None,
        },
        status=AgreementStatus.SIGNED,
        signed_at=datetime.now(timezone.utc),
    )
    session.add(agreement)
    session.flush()

    event_service.log_event(
        session,
        "license.approve",
        user_id=actor_id,
        license_request_id=license_request.id,
        agreement_id=agreement.id,
    )

    return agreement


def reject_license(request_id: int, actor_id: int, session: Session) -> LicenseRequest:
    """Same guards as approve_license(); no agreement is created."""
    license_request = _get_request_or_404(request_id, session)
    _require_work_owner(license_request, actor_id)
    _transition(license_request, LicenseRequestStatus.REJECTED, session)

    event_service.log_event(
        session,
        "license.reject",
        user_id=actor_id,
        license_request_id=license_request.id,
    )

    return license_request
