"""
schemas/work_schema.py — Marshmallow schemas for works and license requests.

Field names on the wire are camelCase (workId, durationDays, feeAmount);
loaded dicts use snake_case keys for the services.

Validation responsibility:
  - This file: field types, lengths, ICC part formats, positive fee.
  - services/work_service.py:    DUPLICATE_ICC_CODE (409)
  - services/license_service.py: WORK_NOT_FOUND (404), SELF_LICENSE (422)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, post_load, validate

from royalty_ledger.app.errors import ErrorCode


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("Must not be empty or whitespace only.")


def _validate_fee(value: Decimal) -> None:
    if value <= Decimal("0"):
        raise ValidationError("Fee must be greater than zero.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


class IccSchema(Schema):
    """ICC code parts. serial is generated by the service when omitted."""

    country = fields.Str(
        required=True,
        validate=validate.Regexp(r"^[A-Za-z]{2}$", error=ErrorCode.INVALID_ICC_CODE),
    )
    registrant = fields.Str(
        required=True,
        validate=validate.Regexp(r"^[A-Za-z0-9]{3,5}$", error=ErrorCode.INVALID_ICC_CODE),
    )
    serial = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Regexp(r"^\d{6}$", error=ErrorCode.INVALID_ICC_CODE),
    )

    @post_load
    def upper_case(self, data: dict, **kwargs) -> dict:
        data["country"] = data["country"].upper()
        data["registrant"] = data["registrant"].upper()
        return data


class CreateWorkSchema(Schema):
    """POST /works"""

    title = fields.Str(
        required=True,
        validate=[
            validate.Length(min=2, max=120),
            _validate_non_empty_after_trim,
        ],
    )
    description = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=2000),
    )
    icc = fields.Nested(IccSchema, required=True)


class LicenseRequestSchema(Schema):
    """POST /licenses/requests"""

    work_id = fields.Int(
        required=True,
        strict=True,
        data_key="workId",
        validate=validate.Range(min=1, error="workId must be a positive integer."),
    )
    usage = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=200), _validate_non_empty_after_trim],
    )
    # ISO 3166-1 alpha-2, stored upper-case.
    territory = fields.Str(
        required=True,
        validate=validate.Regexp(
            r"^[A-Za-z]{2}$",
            error="territory must be a 2-letter country code.",
        ),
    )
    duration_days = fields.Int(
        required=True,
        strict=True,
        data_key="durationDays",
        validate=validate.Range(min=1, max=365, error="durationDays must be between 1 and 365."),
    )
    fee_amount = fields.Decimal(
        load_default=None,
        allow_none=True,
        data_key="feeAmount",
        validate=_validate_fee,
    )

    @post_load
    def upper_case_territory(self, data: dict, **kwargs) -> dict:
        data["territory"] = data["territory"].upper()
        return data
