"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats, regex patterns.
  - services/auth_service.py: DUPLICATE_EMAIL / DUPLICATE_USERNAME checks
    (cross-entity: require a DB lookup — not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, post_load, validate, validates

from royalty_ledger.app.models.user import UserRole

# Roles a user may pick at sign-up. Admins are never self-registered.
SELF_SERVICE_ROLES = (UserRole.CREATOR.value, UserRole.LICENSEE.value)


class RegisterSchema(Schema):
    """
    POST /auth/register

    Field rules:
      username : 3–50 chars, alphanumeric + underscore only
      email    : valid email format
      password : min 8 chars, at least one letter and one digit
      role     : 'creator' (default) or 'licensee'
    """

    # VARCHAR(50) NOT NULL UNIQUE, alphanumeric + underscore, 3–50 chars.
    username = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=3,
                max=50,
                error="Username must be between 3 and 50 characters.",
            ),
            validate.Regexp(
                r"^[a-zA-Z0-9_]+$",
                error="Username may only contain letters, numbers, and underscores.",
            ),
        ],
    )

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    # Checked in @validates below to produce a clear message per missing rule.
    password = fields.Str(required=True, load_only=True)

    role = fields.Str(
        load_default=UserRole.CREATOR.value,
        validate=validate.OneOf(
            SELF_SERVICE_ROLES,
            error="role must be 'creator' or 'licensee'.",
        ),
    )

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")

    @post_load
    def to_role_enum(self, data: dict, **kwargs) -> dict:
        data["role"] = UserRole(data["role"])
        return data


class LoginSchema(Schema):
    """
    POST /auth/login

    Accepts username (not email) + password. Credential correctness
    is checked in auth_service.py (INVALID_CREDENTIALS, 401).
    """

    username = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """POST /auth/refresh and POST /auth/logout"""

    refresh_token = fields.Str(required=True)
