"""
middleware/auth_middleware.py — JWT authentication decorator.

@require_auth:
  1. Reads "Authorization: Bearer <token>"
  2. Verifies the HS256 signature and expiry
  3. Sets flask.g.user_id (int) for the rest of the request

Authentication (401) happens here. Authorization (403: ownership, admin
rights) happens in the services, which receive user_id as a plain int and
the AdminPolicy as an explicit argument.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, bad signature or bad payload
  TOKEN_EXPIRED  (401) — exp claim is in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from royalty_ledger.app.errors import AppError, ErrorCode
from royalty_ledger.app.extensions import db
from royalty_ledger.app.middleware.admin_policy import AdminPolicy
from royalty_ledger.app.services.auth_service import require_admin_user


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Usage:
        @receipts_bp.route("/<int:receipt_id>")
        @require_auth
        def get_receipt(receipt_id):
            user_id = g.user_id  # always an int when this runs
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def current_admin_policy() -> AdminPolicy:
    """The AdminPolicy built by create_app() for this application."""
    return current_app.extensions["admin_policy"]


def _authenticate_request() -> None:
    """
    Performs the JWT checks and sets flask.g.user_id.

    Separated from the decorator so tests can call it inside a
    test_request_context without wrapping a view.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    try:
        payload = jwt.decode(
            parts[1],
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /auth/refresh to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        # bad signature, malformed token, invalid claims
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token does not carry a valid user ID.",
            401,
        )

    g.user_id = user_id


def require_admin(f: Callable) -> Callable:
    """
    @require_auth plus an AdminPolicy check (403 FORBIDDEN).

    The check itself lives in auth_service.require_admin_user so the
    same rule applies wherever a service authorises an admin action.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        require_admin_user(g.user_id, db.session, current_admin_policy())
        return f(*args, **kwargs)

    return decorated
