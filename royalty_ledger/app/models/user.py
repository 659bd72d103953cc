"""
models/user.py — User table definition.

No business logic. No imports from services or routes.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from royalty_ledger.app.extensions import db
from royalty_ledger.app.models.types import string_enum


class UserRole(str, enum.Enum):
    CREATOR  = "creator"
    LICENSEE = "licensee"
    ADMIN    = "admin"


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        # Also enforced by the marshmallow schema.
        CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_users_username_nonempty",
        ),
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Admin rights also come from the ADMIN_EMAILS allowlist (AdminPolicy).
    role: Mapped[UserRole] = mapped_column(
        string_enum(UserRole, "user_role_enum"),
        nullable=False,
        default=UserRole.CREATOR,
        server_default=UserRole.CREATOR.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(  # noqa: F821
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    works: Mapped[list["Work"]] = relationship(  # noqa: F821
        "Work",
        back_populates="owner",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} username={self.username!r} role={self.role}>"
