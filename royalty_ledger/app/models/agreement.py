"""
models/agreement.py — Agreement table definition.

A signed license between a work's creator and a licensee. Receipts are
recorded against agreements; the two parties are the creator and licensee
roles of every split.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from royalty_ledger.app.extensions import db
from royalty_ledger.app.models.types import string_enum


class AgreementStatus(str, enum.Enum):
    DRAFT     = "draft"
    SIGNED    = "signed"
    FINALIZED = "finalized"


class Agreement(db.Model):
    __tablename__ = "agreements"

    __table_args__ = (
        CheckConstraint(
            "creator_id <> licensee_id",
            name="ck_agreements_distinct_parties",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    work_id: Mapped[int] = mapped_column(
        ForeignKey("works.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # One agreement per approved request.
    license_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("license_requests.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )

    creator_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    licensee_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Snapshot of the request terms at approval time.
    terms: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[AgreementStatus] = mapped_column(
        string_enum(AgreementStatus, "agreement_status_enum"),
        nullable=False,
        default=AgreementStatus.DRAFT,
        server_default=AgreementStatus.DRAFT.value,
    )

    signed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    work: Mapped["Work"] = relationship("Work")  # noqa: F821

    receipts: Mapped[list["Receipt"]] = relationship(  # noqa: F821
        "Receipt",
        back_populates="agreement",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Agreement id={self.id} "
            f"creator_id={self.creator_id} "
            f"licensee_id={self.licensee_id}>"
        )
