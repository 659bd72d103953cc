"""
models/license_request.py — LicenseRequest table definition.

A licensee's request to use a work. Approval creates an Agreement;
the status moves pending → approved | rejected exactly once.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from royalty_ledger.app.extensions import db
from royalty_ledger.app.models.types import string_enum


class LicenseRequestStatus(str, enum.Enum):
    PENDING  = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LicenseRequest(db.Model):
    __tablename__ = "license_requests"

    __table_args__ = (
        CheckConstraint(
            "duration_days BETWEEN 1 AND 365",
            name="ck_license_requests_duration",
        ),
        CheckConstraint(
            "fee_amount IS NULL OR fee_amount > 0",
            name="ck_license_requests_fee_positive",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    work_id: Mapped[int] = mapped_column(
        ForeignKey("works.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    requester_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    usage: Mapped[str] = mapped_column(String(200), nullable=False)

    # ISO 3166-1 alpha-2
    territory: Mapped[str] = mapped_column(String(2), nullable=False)

    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)

    # Proposed fee in major units; informational, receipts carry the real money.
    fee_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2),
        nullable=True,
    )

    status: Mapped[LicenseRequestStatus] = mapped_column(
        string_enum(LicenseRequestStatus, "license_request_status_enum"),
        nullable=False,
        default=LicenseRequestStatus.PENDING,
        server_default=LicenseRequestStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    work: Mapped["Work"] = relationship(  # noqa: F821
        "Work",
        back_populates="license_requests",
    )

    requester: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[requester_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<LicenseRequest id={self.id} "
            f"work_id={self.work_id} "
            f"status={self.status}>"
        )
