"""
models/types.py — Column type helpers shared by the model modules.

Enums are stored as constrained VARCHARs (native_enum=False) so the same
metadata runs on PostgreSQL in production and SQLite in the test suite.
"""

from __future__ import annotations

import enum

from sqlalchemy import Enum


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'pending'), not names ('PENDING')."""
    return [member.value for member in enum_cls]


def string_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Portable enum column type with a CHECK constraint named `name`."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
        values_callable=enum_values,
        validate_strings=True,
    )
