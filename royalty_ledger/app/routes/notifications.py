"""
routes/notifications.py — Notification feed.

Endpoints (url_prefix=/api/v1/notifications):
  GET    /notifications   → 200  caller's 20 newest events

There is no read tracking: unreadCount is the number of items returned.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from royalty_ledger.app.extensions import db
from royalty_ledger.app.middleware.auth_middleware import require_auth
from royalty_ledger.app.models.event import Event
from royalty_ledger.app.services import event_service

notifications_bp = Blueprint("notifications", __name__)


def _serialize_event(event: Event) -> dict:
    return {
        "id": event.id,
        "kind": event.kind,
        "message": event_service.describe_event(event),
        "meta": event.meta,
        "createdAt": event.created_at.isoformat() if event.created_at else None,
    }


@notifications_bp.route("", methods=["GET"])
@require_auth
def list_notifications():
    events = event_service.list_events(user_id=g.user_id, session=db.session)
    items = [_serialize_event(e) for e in events]
    return jsonify({
        "data": {"items": items, "unreadCount": len(items)},
        "warnings": [],
    }), 200
