"""
schemas/receipt_schema.py — Marshmallow schemas for receipts and payouts.

Boundary field names are camelCase (agreementId, grossAmount, instructionId,
paidAt, txnRef); loaded dicts use snake_case keys for the services.

Validation responsibility:
  - This file: types, precision of grossAmount, currency format, the range
    of each split share, aware timestamps, period query formats.
  - services/payout_splitter.py: NO_PARTIES / UNKNOWN_PRIMARY_PARTY (422)
  - services/payout_service.py:  INVALID_PERIOD for month + from/to mixes

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from datetime import timezone
from decimal import Decimal

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    post_load,
    validate,
    validates_schema,
)

from royalty_ledger.app.errors import ErrorCode


def _validate_monetary_amount(value: Decimal) -> None:
    """
    Strictly positive, at most 2 decimal places.

    More than 2 decimal places is rejected with INVALID_AMOUNT_PRECISION,
    never rounded. Matches the NUMERIC(14, 2) column.
    """
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _share_field() -> fields.Decimal:
    return fields.Decimal(
        load_default=None,
        allow_none=True,
        validate=validate.Range(min=0, max=1, error=ErrorCode.INVALID_SPLIT),
    )


class SplitSchema(Schema):
    """
    Role → fraction in [0, 1]. Omitted roles get no instruction.

    The creator is the rounding recipient, so a supplied split must give
    the creator a share greater than zero.
    """

    creator = _share_field()
    licensee = _share_field()
    platform = _share_field()

    @validates_schema
    def validate_creator_share(self, data: dict, **kwargs) -> None:
        creator = data.get("creator")
        if creator is None or creator <= 0:
            raise ValidationError(ErrorCode.INVALID_SPLIT, "creator")

    @post_load
    def drop_unset_roles(self, data: dict, **kwargs) -> dict:
        return {role: share for role, share in data.items() if share is not None}


class CreateReceiptSchema(Schema):
    """POST /receipts"""

    agreement_id = fields.Int(
        required=True,
        strict=True,
        data_key="agreementId",
        validate=validate.Range(min=1, error="agreementId must be a positive integer."),
    )
    gross_amount = fields.Decimal(
        required=True,
        data_key="grossAmount",
        validate=_validate_monetary_amount,
    )
    # ISO 4217. Defaults to DEFAULT_CURRENCY in the service when omitted.
    currency = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Regexp(r"^[A-Za-z]{3}$", error=ErrorCode.INVALID_CURRENCY),
    )
    split = fields.Nested(SplitSchema, load_default=None, allow_none=True)
    memo = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=200),
    )
    distribute = fields.Bool(load_default=True)

    @post_load
    def upper_case_currency(self, data: dict, **kwargs) -> dict:
        if data.get("currency"):
            data["currency"] = data["currency"].upper()
        return data


class DistributeSchema(Schema):
    """POST /receipts/:id/distribute"""

    split = fields.Nested(SplitSchema, load_default=None, allow_none=True)


class MarkPaidSchema(Schema):
    """POST /payouts/mark-paid"""

    instruction_id = fields.Int(
        required=True,
        strict=True,
        data_key="instructionId",
        validate=validate.Range(min=1, error="instructionId must be a positive integer."),
    )
    # Naive timestamps are read as UTC.
    paid_at = fields.AwareDateTime(
        load_default=None,
        allow_none=True,
        data_key="paidAt",
        default_timezone=timezone.utc,
    )
    txn_ref = fields.Str(
        load_default=None,
        allow_none=True,
        data_key="txnRef",
        validate=validate.Length(min=1, max=120),
    )


class PeriodQuerySchema(Schema):
    """Query string for the admin payout list and export: month or from/to."""

    class Meta:
        unknown = EXCLUDE

    month = fields.Str(
        load_default=None,
        validate=validate.Regexp(r"^\d{4}-(0[1-9]|1[0-2])$", error=ErrorCode.INVALID_PERIOD),
    )
    date_from = fields.Date(load_default=None, data_key="from")
    date_to = fields.Date(load_default=None, data_key="to")
