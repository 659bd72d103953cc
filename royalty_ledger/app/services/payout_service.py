"""
services/payout_service.py — Payout instruction lifecycle and reporting.

mark_paid() state machine:

  pending | scheduled | processing ──► paid      (conditional UPDATE)
  paid ──► paid                                   (idempotent, paid_at kept)
  distributed | failed ──► 409 PAYOUT_NOT_PAYABLE

The transition is a single UPDATE ... WHERE status IN (mutable). When it
matches no row the instruction is re-read: a concurrent call that already
paid it yields the idempotent result, anything else is 409
PAYOUT_STATUS_CHANGED. Two concurrent calls can therefore never both
record a payment.

Reads (list_payouts, export_rows) are bounded by a Period: a UTC half-open
[start, end) datetime range built from a month or an inclusive date pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from royalty_ledger.app.errors import AppError, ErrorCode, WarningCode
from royalty_ledger.app.models.payout_instruction import (
    MUTABLE_PAYOUT_STATUSES,
    PayoutInstruction,
    PayoutStatus,
)
from royalty_ledger.app.models.receipt import Receipt, ReceiptStatus
from royalty_ledger.app.models.user import User
from royalty_ledger.app.services import event_service

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "receipt_id",
    "party_user_id",
    "currency",
    "amount_cents",
    "status",
    "created_at",
    "paid_at",
)


@dataclass(frozen=True)
class MarkPaidResult:
    instruction: PayoutInstruction
    transitioned: bool
    warnings: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime
    label: str


# ── Periods ────────────────────────────────────────────────────────────────

def _invalid_period(message: str, field_name: str = "month") -> AppError:
    return AppError(ErrorCode.INVALID_PERIOD, message, 400, field=field_name)


def _midnight_utc(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def resolve_period(
        month: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
) -> Period:
    """
    Builds a Period from either `month` ("YYYY-MM") or an inclusive
    `date_from`/`date_to` pair. Exactly one form must be given.

    Raises AppError(INVALID_PERIOD, 400).
    """
    has_range = date_from is not None or date_to is not None

    if month and has_range:
        raise _invalid_period("Use either 'month' or 'from'/'to', not both.")

    if month:
        try:
            year_text, month_text = month.split("-")
            start_day = date(int(year_text), int(month_text), 1)
        except ValueError:
            raise _invalid_period(f"Month {month!r} must be in YYYY-MM format.")
        if start_day.month == 12:
            end_day = date(start_day.year + 1, 1, 1)
        else:
            end_day = date(start_day.year, start_day.month + 1, 1)
        return Period(_midnight_utc(start_day), _midnight_utc(end_day), month)

    if date_from is None or date_to is None:
        raise _invalid_period(
            "Provide 'month' (YYYY-MM) or both 'from' and 'to' dates.",
            "from" if date_from is None else "to",
        )
    if date_to < date_from:
        raise _invalid_period("'to' must not be earlier than 'from'.", "to")

    return Period(
        _midnight_utc(date_from),
        _midnight_utc(date_to + timedelta(days=1)),
        f"{date_from.isoformat()}_{date_to.isoformat()}",
    )


# ── Mark paid ──────────────────────────────────────────────────────────────

def _get_instruction_or_404(instruction_id: int, session: Session) -> PayoutInstruction:
    instruction = session.get(PayoutInstruction, instruction_id)
    if instruction is None:
        raise AppError(
            ErrorCode.PAYOUT_NOT_FOUND,
            f"Payout instruction {instruction_id} not found.",
            404,
        )
    return instruction


def _require_payer(instruction: PayoutInstruction, actor_id: int, session: Session, policy) -> None:
    if instruction.party_user_id is not None and instruction.party_user_id == actor_id:
        return
    if policy.is_admin(session.get(User, actor_id)):
        return
    raise AppError(
        ErrorCode.FORBIDDEN,
        "Only an administrator or the receiving party can mark this payout as paid.",
        403,
    )


def _already_paid(
        instruction: PayoutInstruction,
        txn_ref: str | None,
        actor_id: int,
        session: Session,
) -> MarkPaidResult:
    # txn_ref is the only field that may still change once paid.
    if txn_ref and txn_ref != instruction.txn_ref:
        previous = instruction.txn_ref
        instruction.txn_ref = txn_ref
        session.flush()
        event_service.log_event(
            session,
            "payout.txn_ref",
            user_id=actor_id,
            instruction_id=instruction.id,
            previous_txn_ref=previous,
            txn_ref=txn_ref,
        )
    return MarkPaidResult(
        instruction=instruction,
        transitioned=False,
        warnings=[{
            "code": WarningCode.ALREADY_PAID,
            "message": (
                f"Payout instruction {instruction.id} was already paid at "
                f"{instruction.paid_at.isoformat() if instruction.paid_at else 'an unknown time'}."
            ),
        }],
    )


def _advance_receipt(receipt_id: int, session: Session) -> bool:
    """Moves a receipt distributed → paid once none of its instructions is unpaid."""
    unpaid = session.execute(
        select(func.count(PayoutInstruction.id)).where(
            PayoutInstruction.receipt_id == receipt_id,
            PayoutInstruction.status != PayoutStatus.PAID,
        )
    ).scalar_one()
    if unpaid:
        return False

    result = session.execute(
        update(Receipt)
        .where(Receipt.id == receipt_id, Receipt.status == ReceiptStatus.DISTRIBUTED)
        .values(status=ReceiptStatus.PAID)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def mark_paid(
        instruction_id: int,
        actor_id: int,
        data: dict,
        session: Session,
        policy,
) -> MarkPaidResult:
    """
    Marks one payout instruction as paid.

    data keys (all optional): paid_at (aware datetime), txn_ref (str).

    Raises:
      AppError(PAYOUT_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(PAYOUT_NOT_PAYABLE, 409)    — distributed/failed instruction
      AppError(PAYOUT_STATUS_CHANGED, 409) — lost a race to a non-paid status
    """
    instruction = _get_instruction_or_404(instruction_id, session)
    _require_payer(instruction, actor_id, session, policy)

    txn_ref = data.get("txn_ref")

    if instruction.status == PayoutStatus.PAID:
        return _already_paid(instruction, txn_ref, actor_id, session)

    if instruction.status not in MUTABLE_PAYOUT_STATUSES:
        raise AppError(
            ErrorCode.PAYOUT_NOT_PAYABLE,
            f"Payout instruction {instruction_id} is '{instruction.status.value}' "
            f"and cannot be marked as paid.",
            409,
        )

    values = {
        "status": PayoutStatus.PAID,
        "paid_at": data.get("paid_at") or datetime.now(timezone.utc),
    }
    if txn_ref:
        values["txn_ref"] = txn_ref

    result = session.execute(
        update(PayoutInstruction)
        .where(
            PayoutInstruction.id == instruction_id,
            PayoutInstruction.status.in_(MUTABLE_PAYOUT_STATUSES),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    session.refresh(instruction)

    if result.rowcount == 0:
        if instruction.status == PayoutStatus.PAID:
            logger.warning(
                "Payout instruction %s was paid by a concurrent request",
                instruction_id,
            )
            return _already_paid(instruction, txn_ref, actor_id, session)
        logger.warning(
            "Payout instruction %s changed to %s during mark-paid",
            instruction_id,
            instruction.status,
        )
        raise AppError(
            ErrorCode.PAYOUT_STATUS_CHANGED,
            f"Payout instruction {instruction_id} changed status to "
            f"'{instruction.status.value}' while being marked as paid. Refresh and retry.",
            409,
        )

    receipt_paid = _advance_receipt(instruction.receipt_id, session)

    event_service.log_event(
        session,
        "payout.mark_paid",
        user_id=actor_id,
        instruction_id=instruction_id,
        receipt_id=instruction.receipt_id,
        txn_ref=instruction.txn_ref,
    )

    logger.info(
        "Payout instruction %s marked paid (%s %s)%s",
        instruction_id,
        instruction.amount_cents,
        instruction.currency,
        "; receipt fully paid" if receipt_paid else "",
    )

    return MarkPaidResult(instruction=instruction, transitioned=True)


# ── Reads ──────────────────────────────────────────────────────────────────

def list_my_payouts(
        user_id: int,
        session: Session,
) -> tuple[list[PayoutInstruction], dict[str, int]]:
    """
    Returns the caller's instructions, newest first, and the total in minor
    units per currency.
    """
    stmt = (
        select(PayoutInstruction)
        .where(PayoutInstruction.party_user_id == user_id)
        .order_by(PayoutInstruction.created_at.desc(), PayoutInstruction.id.desc())
    )
    instructions = list(session.execute(stmt).scalars().all())

    totals: dict[str, int] = {}
    for instruction in instructions:
        totals[instruction.currency] = totals.get(instruction.currency, 0) + instruction.amount_cents

    return instructions, dict(sorted(totals.items()))


def list_payouts(period: Period, session: Session) -> list[PayoutInstruction]:
    """All instructions created inside the period, oldest first."""
    stmt = (
        select(PayoutInstruction)
        .where(
            PayoutInstruction.created_at >= period.start,
            PayoutInstruction.created_at < period.end,
        )
        .order_by(PayoutInstruction.created_at.asc(), PayoutInstruction.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def _isoformat(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


def export_rows(period: Period, session: Session) -> list[dict[str, object]]:
    """
    Flat rows for the CSV export, keyed by EXPORT_COLUMNS.

    A NULL party_user_id or paid_at is exported as an empty string.
    """
    return [
        {
            "receipt_id": instruction.receipt_id,
            "party_user_id": "" if instruction.party_user_id is None else instruction.party_user_id,
            "currency": instruction.currency,
            "amount_cents": instruction.amount_cents,
            "status": instruction.status.value,
            "created_at": _isoformat(instruction.created_at),
            "paid_at": _isoformat(instruction.paid_at),
        }
        for instruction in list_payouts(period, session)
    ]
