"""
models/event.py — Append-only audit event table.

Rows are inserted by event_service.log_event() and never updated.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from royalty_ledger.app.extensions import db


class Event(db.Model):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(primary_key=True)

    # NULL for system-initiated events.
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # e.g. "receipt.distribute", "payout.mark_paid"
    kind: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Event id={self.id} kind={self.kind!r} user_id={self.user_id}>"
