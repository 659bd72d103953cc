"""
services/receipt_service.py — Receipt registration and access.

record_receipt() inserts a pending receipt against an agreement and, unless
the caller passes distribute=False, distributes it in the same transaction.
The split is checked before the receipt row is written so a bad split never
leaves a stray pending receipt behind.

Access rules:
  - register / distribute: the agreement's creator or an admin
  - read:                  the creator, the licensee or an admin
"""

from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy.orm import Session

from royalty_ledger.app.errors import AppError, ErrorCode
from royalty_ledger.app.models.agreement import Agreement
from royalty_ledger.app.models.receipt import Receipt, ReceiptStatus
from royalty_ledger.app.models.user import User
from royalty_ledger.app.services import distribution_service, event_service


def _get_agreement_or_404(agreement_id: int, session: Session) -> Agreement:
    agreement = session.get(Agreement, agreement_id)
    if agreement is None:
        raise AppError(
            ErrorCode.AGREEMENT_NOT_FOUND,
            f"Agreement {agreement_id} not found.",
            404,
            field="agreement_id",
        )
    return agreement


def _get_receipt_or_404(receipt_id: int, session: Session) -> Receipt:
    receipt = session.get(Receipt, receipt_id)
    if receipt is None:
        raise AppError(
            ErrorCode.RECEIPT_NOT_FOUND,
            f"Receipt {receipt_id} not found.",
            404,
        )
    return receipt


def _is_admin(actor_id: int, session: Session, policy) -> bool:
    return policy.is_admin(session.get(User, actor_id))


def _require_manager(agreement: Agreement, actor_id: int, session: Session, policy) -> None:
    if agreement.creator_id == actor_id or _is_admin(actor_id, session, policy):
        return
    raise AppError(
        ErrorCode.FORBIDDEN,
        "Only the agreement's creator or an administrator can manage its receipts.",
        403,
    )


def record_receipt(
        actor_id: int,
        data: dict,
        session: Session,
        settings: Mapping,
        policy,
) -> tuple[Receipt, list[dict]]:
    """
    Registers a receipt and (by default) distributes it.

    data keys: agreement_id, gross_amount (Decimal), currency (optional),
    split (optional role → fraction), memo (optional), distribute (bool).

    Returns (receipt, warnings).

    Raises:
      AppError(AGREEMENT_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(INVALID_SPLIT / NO_PARTIES / UNKNOWN_PRIMARY_PARTY, 422)
    """
    agreement = _get_agreement_or_404(data["agreement_id"], session)
    _require_manager(agreement, actor_id, session, policy)

    receipt = Receipt(
        agreement_id=agreement.id,
        gross_amount=data["gross_amount"],
        currency=(data.get("currency") or settings["DEFAULT_CURRENCY"]).upper(),
        memo=data.get("memo"),
        status=ReceiptStatus.PENDING,
    )

    split = data.get("split")
    # Fail before the INSERT if the split cannot be applied.
    distribution_service.plan_allocations(receipt, split, settings)

    session.add(receipt)
    session.flush()

    event_service.log_event(
        session,
        "receipt.create",
        user_id=actor_id,
        receipt_id=receipt.id,
        agreement_id=agreement.id,
        gross_amount=str(receipt.gross_amount),
        currency=receipt.currency,
    )

    if not data.get("distribute", True):
        return receipt, []

    return distribution_service.distribute_receipt(
        receipt.id,
        split,
        session,
        settings,
        actor_id=actor_id,
    )


def distribute_existing(
        receipt_id: int,
        actor_id: int,
        split: Mapping[str, object] | None,
        session: Session,
        settings: Mapping,
        policy,
) -> tuple[Receipt, list[dict]]:
    """Distributes a receipt recorded earlier with distribute=False."""
    receipt = _get_receipt_or_404(receipt_id, session)
    _require_manager(receipt.agreement, actor_id, session, policy)
    return distribution_service.distribute_receipt(
        receipt_id,
        split,
        session,
        settings,
        actor_id=actor_id,
    )


def get_receipt(receipt_id: int, actor_id: int, session: Session, policy) -> Receipt:
    """
    Raises:
      AppError(RECEIPT_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — caller is not a party to the agreement
    """
    receipt = _get_receipt_or_404(receipt_id, session)
    agreement = receipt.agreement
    if actor_id in (agreement.creator_id, agreement.licensee_id):
        return receipt
    if _is_admin(actor_id, session, policy):
        return receipt
    raise AppError(
        ErrorCode.FORBIDDEN,
        "You are not a party to this receipt's agreement.",
        403,
    )
