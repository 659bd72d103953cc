"""
services/distribution_service.py — Turns one receipt into payout instructions.

Flow for distribute_receipt():
  1. Load the receipt and its agreement.
  2. Resolve the split (request split or DEFAULT_SPLIT) and map every role
     to a party user. Run the splitter. Nothing has been written yet.
  3. Claim the receipt with a conditional UPDATE ... WHERE status='pending'.
     Zero rows means another call got there first → 409.
  4. Insert one PayoutInstruction per allocation and flush.

The route commits once. Any exception before the commit rolls back the
claim and the instructions together, so a receipt is never `distributed`
without its instructions and instructions never exist for a receipt that
is still `pending`.

Layer rules:
  - No Flask imports. Settings arrive as a plain mapping (app.config).
  - flush() only, never commit().
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from royalty_ledger.app.errors import AppError, ErrorCode, WarningCode
from royalty_ledger.app.models.agreement import Agreement
from royalty_ledger.app.models.payout_instruction import (
    PartyRole,
    PayoutInstruction,
    PayoutStatus,
)
from royalty_ledger.app.models.receipt import Receipt, ReceiptStatus
from royalty_ledger.app.services import event_service, payout_splitter
from royalty_ledger.app.services.money import to_minor_units

logger = logging.getLogger(__name__)

# The creator always absorbs the rounding remainder.
PRIMARY_ROLE = PartyRole.CREATOR.value

_KNOWN_ROLES = frozenset(role.value for role in PartyRole)


def _already_distributed(receipt_id: int, status) -> AppError:
    status_value = status.value if isinstance(status, ReceiptStatus) else status
    return AppError(
        ErrorCode.RECEIPT_ALREADY_DISTRIBUTED,
        f"Receipt {receipt_id} is '{status_value}' and cannot be distributed again.",
        409,
    )


def resolve_split(split: Mapping[str, object] | None, settings: Mapping) -> dict[str, object]:
    """
    Returns the role → share mapping to use, in a stable role order.

    An omitted or empty split falls back to settings["DEFAULT_SPLIT"].

    Raises AppError(INVALID_SPLIT, 422) for a role that is not a party role.
    """
    source = split if split else settings["DEFAULT_SPLIT"]

    unknown = sorted(set(source) - _KNOWN_ROLES)
    if unknown:
        raise AppError(
            ErrorCode.INVALID_SPLIT,
            f"Unknown split role(s): {', '.join(unknown)}.",
            422,
            field="split",
        )

    # Enum order, so the primary is always evaluated first.
    return {
        role.value: source[role.value]
        for role in PartyRole
        if role.value in source
    }


def resolve_party_users(agreement: Agreement, settings: Mapping) -> dict[str, int | None]:
    """Maps each party role to the user that receives its share."""
    return {
        PartyRole.CREATOR.value: agreement.creator_id,
        PartyRole.LICENSEE.value: agreement.licensee_id,
        PartyRole.PLATFORM.value: settings.get("PLATFORM_USER_ID"),
    }


def plan_allocations(
        receipt: Receipt,
        split: Mapping[str, object] | None,
        settings: Mapping,
) -> tuple[list[payout_splitter.Allocation], list[dict]]:
    """
    Runs the splitter for a receipt without touching the database.

    Returns (allocations, warnings). Used by record_receipt() to reject a
    bad split before the receipt row is inserted.
    """
    shares = resolve_split(split, settings)
    gross_minor = to_minor_units(receipt.gross_amount)
    allocations = payout_splitter.split(gross_minor, shares, PRIMARY_ROLE)

    warnings: list[dict] = []
    if settings.get("DROP_ZERO_PAYOUTS", True):
        kept = payout_splitter.drop_zero_allocations(allocations)
        dropped = [a.role for a in allocations if a not in kept]
        if dropped:
            warnings.append({
                "code": WarningCode.ZERO_ALLOCATION_DROPPED,
                "message": (
                    f"No payout instruction was created for {', '.join(dropped)}: "
                    f"the allocated amount rounds to zero."
                ),
            })
        allocations = kept

    return allocations, warnings


def distribute_receipt(
        receipt_id: int,
        split: Mapping[str, object] | None,
        session: Session,
        settings: Mapping,
        actor_id: int | None = None,
) -> tuple[Receipt, list[dict]]:
    """
    Distributes a pending receipt into payout instructions.

    Args:
        receipt_id: Receipt to distribute.
        split:      Optional role → fraction mapping. None uses DEFAULT_SPLIT.
        settings:   Mapping with DEFAULT_SPLIT, PLATFORM_USER_ID, DROP_ZERO_PAYOUTS.
        actor_id:   Recorded on the audit event.

    Returns:
        (receipt, warnings) — receipt is `distributed` with its instructions loaded.

    Raises:
      AppError(RECEIPT_NOT_FOUND, 404)
      AppError(RECEIPT_ALREADY_DISTRIBUTED, 409) — not pending, or lost the claim
      AppError(INVALID_SPLIT / NO_PARTIES / UNKNOWN_PRIMARY_PARTY, 422)
      AppError(INVALID_AMOUNT, 422)
    """
    receipt = session.get(Receipt, receipt_id)
    if receipt is None:
        raise AppError(
            ErrorCode.RECEIPT_NOT_FOUND,
            f"Receipt {receipt_id} not found.",
            404,
        )

    if receipt.status != ReceiptStatus.PENDING:
        raise _already_distributed(receipt_id, receipt.status)

    allocations, warnings = plan_allocations(receipt, split, settings)
    party_users = resolve_party_users(receipt.agreement, settings)

    if any(
            a.role == PartyRole.PLATFORM.value and party_users[a.role] is None
            for a in allocations
    ):
        warnings.append({
            "code": WarningCode.PLATFORM_PARTY_UNASSIGNED,
            "message": (
                "PLATFORM_USER_ID is not configured; the platform share was "
                "recorded without a party user."
            ),
        })

    # Conditional claim: only one caller can move this row out of pending.
    distributed_at = datetime.now(timezone.utc)
    result = session.execute(
        update(Receipt)
        .where(
            Receipt.id == receipt_id,
            Receipt.status == ReceiptStatus.PENDING,
        )
        .values(status=ReceiptStatus.DISTRIBUTED, distributed_at=distributed_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("Receipt %s was claimed by a concurrent distribution", receipt_id)
        raise _already_distributed(receipt_id, ReceiptStatus.DISTRIBUTED)

    instructions = [
        PayoutInstruction(
            receipt=receipt,
            agreement_id=receipt.agreement_id,
            party_role=PartyRole(allocation.role),
            party_user_id=party_users[allocation.role],
            currency=receipt.currency,
            amount_cents=allocation.amount_minor,
            status=PayoutStatus.PENDING,
            rounding_adjustment=allocation.is_rounding_recipient,
            rounding_cents=allocation.rounding_minor,
        )
        for allocation in allocations
    ]
    session.add_all(instructions)
    session.flush()
    session.refresh(receipt)

    event_service.log_event(
        session,
        "receipt.distribute",
        user_id=actor_id,
        receipt_id=receipt_id,
        instruction_ids=[i.id for i in instructions],
        amount_cents=[i.amount_cents for i in instructions],
    )

    logger.info(
        "Distributed receipt %s: %s %s into %d instruction(s)",
        receipt_id,
        receipt.gross_amount,
        receipt.currency,
        len(instructions),
    )

    return receipt, warnings
