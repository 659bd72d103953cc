"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - User registration and credential validation
  - JWT access token creation (HS256)
  - Refresh token lifecycle (creation, validation, revocation)
  - Password hashing (bcrypt) and verification

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes
  - current_app.config is read ONLY for the JWT secret, TTLs and bcrypt cost.

Token design:
  - Access token: JWT, HS256, sub = user_id (str)
  - Refresh token: random hex string, stored as a SHA-256 hash. Revoked on logout.
  - The raw refresh token is returned to the client once and never stored.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from royalty_ledger.app.errors import AppError, ErrorCode
from royalty_ledger.app.models.refresh_token import RefreshToken
from royalty_ledger.app.models.user import User, UserRole


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token string. Used for refresh token storage."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they are stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _create_access_token(user_id: int) -> str:
    """
    Creates a signed JWT access token.
    Payload: sub (user_id as str), iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    expiry = now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expiry,
        # Unique per token even when issued in the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _create_refresh_token(user_id: int, session: Session) -> str:
    """
    Creates a refresh token, stores its SHA-256 hash and returns the raw
    value to be sent to the client once.
    """
    raw_token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + current_app.config["JWT_REFRESH_TOKEN_EXPIRES"]

    session.add(RefreshToken(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=expires_at,
    ))
    # flush so the row exists before we return; commit is the route's job
    session.flush()

    return raw_token


def _build_token_pair(user_id: int, session: Session) -> dict:
    return {
        "access_token": _create_access_token(user_id),
        "refresh_token": _create_refresh_token(user_id, session),
    }


def _build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. No business logic."""
    role = user.role.value if isinstance(user.role, UserRole) else user.role
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": role,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        username: str,
        email: str,
        password: str,
        session: Session,
        role: UserRole = UserRole.CREATOR,
) -> dict:
    """
    Creates a new user account and issues an access + refresh token pair.

    Self-registration is limited to creator and licensee roles; admins
    come from the role column set out-of-band or the ADMIN_EMAILS allowlist.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)    — email already registered
      AppError(DUPLICATE_USERNAME, 409) — username already taken

    Returns: {"user": {...}, "access_token": "...", "refresh_token": "..."}
    """
    existing_email = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if existing_email is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    existing_username = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()
    if existing_username is not None:
        raise AppError(
            ErrorCode.DUPLICATE_USERNAME,
            f"The username '{username}' is already taken.",
            409,
            field="username",
        )

    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    password_hash = bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")

    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        role=role,
    )
    session.add(user)
    session.flush()  # populate user.id before creating refresh token
    session.refresh(user)

    tokens = _build_token_pair(user.id, session)

    return {
        "user": _build_user_dict(user),
        **tokens,
    }


def login_user(
        username: str,
        password: str,
        session: Session,
) -> dict:
    """
    Validates credentials and issues a new access + refresh token pair.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — username not found or password wrong.
      The same error is used for both to avoid username enumeration.
    """
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
            401,
        )

    tokens = _build_token_pair(user.id, session)

    return {
        "user": _build_user_dict(user),
        **tokens,
    }


def refresh_access_token(
        raw_refresh_token: str,
        session: Session,
) -> dict:
    """
    Validates a refresh token and issues a new access token.
    The refresh token is not rotated on use.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401) — not found, revoked, or expired.
    """
    record = session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _hash_token(raw_refresh_token))
    ).scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if record is None or record.revoked or _as_utc(record.expires_at) <= now:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid, expired, or has been revoked.",
            401,
        )

    return {
        "access_token": _create_access_token(record.user_id),
    }


def logout_user(
        raw_refresh_token: str,
        session: Session,
) -> None:
    """
    Revokes a refresh token.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401) — token not found or already revoked.
    """
    record = session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _hash_token(raw_refresh_token))
    ).scalar_one_or_none()

    if record is None or record.revoked:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid or has already been revoked.",
            401,
        )

    record.revoked = True
    session.flush()


def get_user_or_404(user_id: int, session: Session) -> User:
    """
    Returns the User behind an authenticated request.

    Raises:
      AppError(USER_NOT_FOUND, 404) — user deleted after the token was issued.
    """
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return user


def get_current_user(user_id: int, session: Session, policy=None) -> dict:
    """
    Returns the profile of the currently authenticated user.

    With an AdminPolicy the profile also carries is_admin, so clients can
    show admin screens to allowlisted users whose role is not admin.
    """
    user = get_user_or_404(user_id, session)
    profile = _build_user_dict(user)
    if policy is not None:
        profile["is_admin"] = policy.is_admin(user)
    return profile


def require_admin_user(user_id: int, session: Session, policy) -> User:
    """
    Returns the caller if the AdminPolicy grants them admin rights.

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — authenticated but not an administrator.
    """
    user = get_user_or_404(user_id, session)
    if not policy.is_admin(user):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Administrator access is required.",
            403,
        )
    return user
