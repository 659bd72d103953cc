"""
errors.py — AppError base class and error code registry.

Every error returned by the Royalty Ledger API uses a code defined here.
Services raise AppError; the global handler in app/__init__.py renders it.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose and may be improved at any time.
  - 401 (unauthenticated) and 403 (unauthorized) are never conflated.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_CURRENCY           = "INVALID_CURRENCY"
    INVALID_ICC_CODE           = "INVALID_ICC_CODE"
    INVALID_PERIOD             = "INVALID_PERIOD"

    # ── Split configuration (400 from schemas, 422 from the splitter) ──────
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    INVALID_SPLIT              = "INVALID_SPLIT"
    NO_PARTIES                 = "NO_PARTIES"
    UNKNOWN_PRIMARY_PARTY      = "UNKNOWN_PRIMARY_PARTY"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL             = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME          = "DUPLICATE_USERNAME"
    DUPLICATE_ICC_CODE          = "DUPLICATE_ICC_CODE"
    LICENSE_ALREADY_PROCESSED   = "LICENSE_ALREADY_PROCESSED"
    RECEIPT_ALREADY_DISTRIBUTED = "RECEIPT_ALREADY_DISTRIBUTED"
    PAYOUT_NOT_PAYABLE          = "PAYOUT_NOT_PAYABLE"
    PAYOUT_STATUS_CHANGED       = "PAYOUT_STATUS_CHANGED"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    WORK_NOT_FOUND             = "WORK_NOT_FOUND"
    LICENSE_REQUEST_NOT_FOUND  = "LICENSE_REQUEST_NOT_FOUND"
    AGREEMENT_NOT_FOUND        = "AGREEMENT_NOT_FOUND"
    RECEIPT_NOT_FOUND          = "RECEIPT_NOT_FOUND"
    PAYOUT_NOT_FOUND           = "PAYOUT_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    SELF_LICENSE               = "SELF_LICENSE"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings ride alongside a 2xx response in the `warnings` array.
# They do not block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Mark-paid on an instruction that was already paid. Original paid_at kept.
    ALREADY_PAID = "ALREADY_PAID"

    # Allocations of 0 minor units were computed but not persisted.
    ZERO_ALLOCATION_DROPPED = "ZERO_ALLOCATION_DROPPED"

    # The platform share has no user account to pay out to.
    PLATFORM_PARTY_UNASSIGNED = "PLATFORM_PARTY_UNASSIGNED"
