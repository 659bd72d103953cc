"""
models/receipt.py — Receipt table definition.

A recorded gross payment tied to one agreement, pending distribution.

Key design points:
  - `gross_amount` uses Numeric(14, 2) in major units — never Float.
  - `currency` is written once at creation; no service updates it.
  - Status moves pending → distributed (together with its payout
    instructions, in one transaction) → paid. It never reverts.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from royalty_ledger.app.extensions import db
from royalty_ledger.app.models.types import string_enum


class ReceiptStatus(str, enum.Enum):
    PENDING     = "pending"
    SCHEDULED   = "scheduled"
    PROCESSING  = "processing"
    DISTRIBUTED = "distributed"
    PAID        = "paid"
    FAILED      = "failed"


class Receipt(db.Model):
    __tablename__ = "receipts"

    __table_args__ = (
        CheckConstraint("gross_amount > 0", name="ck_receipts_gross_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    agreement_id: Mapped[int] = mapped_column(
        ForeignKey("agreements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    gross_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
    )

    # ISO 4217, upper-case.
    currency: Mapped[str] = mapped_column(String(8), nullable=False)

    status: Mapped[ReceiptStatus] = mapped_column(
        string_enum(ReceiptStatus, "receipt_status_enum"),
        nullable=False,
        default=ReceiptStatus.PENDING,
        server_default=ReceiptStatus.PENDING.value,
        index=True,
    )

    memo: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    distributed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    agreement: Mapped["Agreement"] = relationship(  # noqa: F821
        "Agreement",
        back_populates="receipts",
    )

    payout_instructions: Mapped[list["PayoutInstruction"]] = relationship(  # noqa: F821
        "PayoutInstruction",
        back_populates="receipt",
        order_by="PayoutInstruction.id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Receipt id={self.id} "
            f"agreement_id={self.agreement_id} "
            f"gross_amount={self.gross_amount} {self.currency} "
            f"status={self.status}>"
        )
