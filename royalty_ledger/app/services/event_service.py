"""
services/event_service.py — Append-only audit events and the notification feed.

Kinds in use:
  work.register, license.request, license.approve, license.reject,
  receipt.create, receipt.distribute, payout.mark_paid, payout.txn_ref

Events are written in the same transaction as the change they describe,
so a rolled-back change leaves no event behind.

The notification feed is the caller's own events, newest first, each with
a readable message built from its kind and meta.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from royalty_ledger.app.models.event import Event

NOTIFICATION_LIMIT = 20


class _MetaWithDefault(dict):
    def __missing__(self, key: str) -> str:
        return "?"


_MESSAGES = {
    "work.register":      "Work {icc_code} registered",
    "license.request":    "License requested for work {work_id}",
    "license.approve":    "License request {license_request_id} approved as agreement {agreement_id}",
    "license.reject":     "License request {license_request_id} rejected",
    "receipt.create":     "Receipt {receipt_id} recorded: {gross_amount} {currency}",
    "receipt.distribute": "Receipt {receipt_id} distributed into payouts",
    "payout.mark_paid":   "Payout {instruction_id} marked paid",
    "payout.txn_ref":     "Payout {instruction_id} reference changed to {txn_ref}",
}


def log_event(
        session: Session,
        kind: str,
        user_id: int | None = None,
        **meta,
) -> Event:
    """Adds an Event row and flushes. Meta values must be JSON-serialisable."""
    event = Event(
        user_id=user_id,
        kind=kind,
        meta=meta or None,
    )
    session.add(event)
    session.flush()
    return event


def describe_event(event: Event) -> str:
    """
    Message for one event.

    Unknown kinds fall back to the kind in title case:
    "notifications.test" → "Notifications Test". A placeholder missing from
    meta renders as "?".
    """
    template = _MESSAGES.get(event.kind)
    if template is None:
        return event.kind.replace(".", " ").replace("_", " ").title()
    return template.format_map(_MetaWithDefault(event.meta or {}))


def list_events(user_id: int, session: Session, limit: int = NOTIFICATION_LIMIT) -> list[Event]:
    """The user's most recent events, newest first."""
    stmt = (
        select(Event)
        .where(Event.user_id == user_id)
        .order_by(Event.created_at.desc(), Event.id.desc())
        .limit(limit)
    )
    return list(session.execute(stmt).scalars().all())
