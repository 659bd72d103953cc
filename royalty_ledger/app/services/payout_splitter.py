"""
services/payout_splitter.py — Proportional payout split with exact remainder.

split() turns a gross amount in minor units and a role → fraction mapping
into integer allocations that sum exactly to the gross amount:

  1. Roles with a share <= 0 are dropped.
  2. Each remaining role gets floor(gross * share) minor units.
  3. remainder = gross - sum(floors) is added entirely to the primary
     party, which is flagged as the rounding recipient.

Guarantees:
  - every amount is a non-negative int
  - sum(amounts) == gross_minor exactly
  - at most one allocation has is_rounding_recipient=True
  - caller role order is preserved; identical input gives identical output

Shares that sum to more than 1 are scaled down by their total before
flooring so the remainder can never be negative. Shares that sum to less
than 1 are used as given; the unallocated part lands on the primary party.

Zero-amount allocations are kept. drop_zero_allocations() is the explicit
post-filter for callers that do not persist them.

No Flask imports, no session. Pure functions only.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from fractions import Fraction

from royalty_ledger.app.errors import AppError, ErrorCode
from royalty_ledger.app.services.money import floor_units, parse_share


@dataclass(frozen=True)
class Allocation:
    role: str
    amount_minor: int
    is_rounding_recipient: bool = False
    rounding_minor: int = 0


def _validate_gross(gross_minor: object) -> int:
    if isinstance(gross_minor, bool) or not isinstance(gross_minor, int):
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            f"Gross amount must be an integer number of minor units, got {gross_minor!r}.",
            422,
        )
    if gross_minor < 0:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            f"Gross amount must not be negative, got {gross_minor}.",
            422,
        )
    return gross_minor


def positive_shares(shares: Mapping[str, object]) -> dict[str, Fraction]:
    """
    Parses every share and keeps the roles with a fraction > 0, in order.

    Raises AppError(INVALID_SPLIT, 422) if any share is not a finite number.
    """
    result: dict[str, Fraction] = {}
    for role, raw_share in shares.items():
        if raw_share is None:
            continue
        share = parse_share(raw_share)
        if share > 0:
            result[role] = share
    return result


def validate_shares(shares: Mapping[str, object], primary: str) -> dict[str, Fraction]:
    """
    Checks a split configuration without computing amounts.

    Raises:
      AppError(INVALID_SPLIT, 422)          — a share is not a finite number
      AppError(NO_PARTIES, 422)             — no role has a share > 0
      AppError(UNKNOWN_PRIMARY_PARTY, 422)  — primary has no share > 0
    """
    weights = positive_shares(shares)
    if not weights:
        raise AppError(
            ErrorCode.NO_PARTIES,
            "Split configuration has no party with a share greater than zero.",
            422,
            field="split",
        )
    if primary not in weights:
        raise AppError(
            ErrorCode.UNKNOWN_PRIMARY_PARTY,
            f"Primary party {primary!r} has no share greater than zero.",
            422,
            field="split",
        )
    return weights


def split(
        gross_minor: int,
        shares: Mapping[str, object],
        primary: str,
) -> list[Allocation]:
    """
    Splits gross_minor among the roles in `shares`.

    Args:
        gross_minor: Non-negative integer amount in minor units.
        shares:      Ordered mapping role → fraction (int, Decimal, Fraction,
                     numeric str or float).
        primary:     Role that absorbs the rounding remainder.

    Returns:
        One Allocation per role with a share > 0, in caller order.

    Raises:
        AppError(INVALID_AMOUNT, 422) plus the validate_shares() errors.
    """
    gross = _validate_gross(gross_minor)
    weights = validate_shares(shares, primary)

    total = sum(weights.values(), Fraction(0))
    scale = total if total > 1 else Fraction(1)

    floors = {
        role: floor_units(gross * share / scale)
        for role, share in weights.items()
    }
    remainder = gross - sum(floors.values())

    allocations: list[Allocation] = []
    for role, amount in floors.items():
        if role == primary and remainder > 0:
            allocations.append(Allocation(
                role=role,
                amount_minor=amount + remainder,
                is_rounding_recipient=True,
                rounding_minor=remainder,
            ))
        else:
            allocations.append(Allocation(role=role, amount_minor=amount))

    # Must always hold; a failure here is a programming error.
    allocated = sum(a.amount_minor for a in allocations)
    if allocated != gross:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Split produced {allocated} minor units for a gross of {gross}.",
            500,
        )

    return allocations


def drop_zero_allocations(allocations: list[Allocation]) -> list[Allocation]:
    """Post-filter: removes allocations of 0 minor units. Order is kept."""
    return [a for a in allocations if a.amount_minor > 0]
