"""
routes/auth.py — Authentication route handlers.

Token keys stay snake_case (access_token, refresh_token) on these endpoints;
the royalty endpoints use camelCase.

Self-registration accepts role "creator" (default) or "licensee". Admin
rights come from the role column or the ADMIN_EMAILS allowlist.

AppError propagates to the global error handler in app/__init__.py.

Endpoints (url_prefix=/api/v1/auth):
  POST   /auth/register  → 201
  POST   /auth/login     → 200
  POST   /auth/refresh   → 200
  POST   /auth/logout    → 200
  GET    /auth/me        → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from royalty_ledger.app.extensions import db
from royalty_ledger.app.middleware.auth_middleware import current_admin_policy, require_auth
from royalty_ledger.app.schemas.auth_schema import LoginSchema, RefreshTokenSchema, RegisterSchema
from royalty_ledger.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; return tokens. (No auth required.)"""
    data = RegisterSchema().load(request.get_json(force=True) or {})
    result = auth_service.register_user(
        username=data["username"],
        email=data["email"],
        password=data["password"],
        session=db.session,
        role=data["role"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return tokens. (No auth required.)"""
    data = LoginSchema().load(request.get_json(force=True) or {})
    result = auth_service.login_user(
        username=data["username"],
        password=data["password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Exchange refresh token for new access token."""
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    result = auth_service.refresh_access_token(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """POST /auth/logout — Revoke refresh token. (Auth required.)"""
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    auth_service.logout_user(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"message": "Logged out successfully."}, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Profile of the caller, including role and is_admin."""
    result = auth_service.get_current_user(
        user_id=g.user_id,
        session=db.session,
        policy=current_admin_policy(),
    )
    return jsonify({"data": result, "warnings": []}), 200
