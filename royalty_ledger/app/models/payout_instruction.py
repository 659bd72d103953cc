"""
models/payout_instruction.py — PayoutInstruction table definition.

One party's share of a distributed receipt, in integer minor units.

Key design points:
  - `amount_cents` is a BigInteger; never Float or Numeric.
  - For a fixed receipt_id, sum(amount_cents) == round(gross_amount * 100).
    distribution_service.py is the enforcement point; the splitter
    guarantees it by construction.
  - UNIQUE(receipt_id, party_role): one instruction per party per receipt.
  - Status only moves forward from the mutable set to `paid`. Once paid,
    only `txn_ref` may still change.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from royalty_ledger.app.extensions import db
from royalty_ledger.app.models.types import string_enum


class PayoutStatus(str, enum.Enum):
    PENDING     = "pending"
    SCHEDULED   = "scheduled"
    PROCESSING  = "processing"
    DISTRIBUTED = "distributed"
    PAID        = "paid"
    FAILED      = "failed"


# Statuses from which "mark as paid" may transition.
MUTABLE_PAYOUT_STATUSES: tuple[PayoutStatus, ...] = (
    PayoutStatus.PENDING,
    PayoutStatus.SCHEDULED,
    PayoutStatus.PROCESSING,
)


class PartyRole(str, enum.Enum):
    CREATOR  = "creator"
    LICENSEE = "licensee"
    PLATFORM = "platform"


class PayoutInstruction(db.Model):
    __tablename__ = "payout_instructions"

    __table_args__ = (
        UniqueConstraint("receipt_id", "party_role", name="uq_payout_instructions_receipt_role"),
        CheckConstraint("amount_cents >= 0", name="ck_payout_instructions_amount_nonnegative"),
        CheckConstraint("rounding_cents >= 0", name="ck_payout_instructions_rounding_nonnegative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE: instructions are owned by their receipt.
    receipt_id: Mapped[int] = mapped_column(
        ForeignKey("receipts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    agreement_id: Mapped[int] = mapped_column(
        ForeignKey("agreements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    party_role: Mapped[PartyRole] = mapped_column(
        string_enum(PartyRole, "party_role_enum"),
        nullable=False,
    )

    # NULL only for a platform share with no PLATFORM_USER_ID configured.
    party_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # Inherited from the receipt.
    currency: Mapped[str] = mapped_column(String(8), nullable=False)

    # BIGINT: NUMERIC(14,2) gross amounts exceed INTEGER once in cents.
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[PayoutStatus] = mapped_column(
        string_enum(PayoutStatus, "payout_status_enum"),
        nullable=False,
        default=PayoutStatus.PENDING,
        server_default=PayoutStatus.PENDING.value,
    )

    # True when this instruction absorbed the rounding remainder.
    rounding_adjustment: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    rounding_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # External payment reference (bank transfer id, etc.).
    txn_ref: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────

    receipt: Mapped["Receipt"] = relationship(  # noqa: F821
        "Receipt",
        back_populates="payout_instructions",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<PayoutInstruction id={self.id} "
            f"receipt_id={self.receipt_id} "
            f"role={self.party_role} "
            f"amount_cents={self.amount_cents} "
            f"status={self.status}>"
        )
