"""
models/work.py — Work table definition.

A registered creative work, identified by its ICC code
(COUNTRY-REGISTRANT-SERIAL, e.g. "JP-CRG-000123").
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from royalty_ledger.app.extensions import db


class Work(db.Model):
    __tablename__ = "works"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(title)) > 1",
            name="ck_works_title_length",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE RESTRICT: cannot delete a user who owns registered works.
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(120), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    icc_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    owner: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="works",
    )

    license_requests: Mapped[list["LicenseRequest"]] = relationship(  # noqa: F821
        "LicenseRequest",
        back_populates="work",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Work id={self.id} icc_code={self.icc_code!r}>"
