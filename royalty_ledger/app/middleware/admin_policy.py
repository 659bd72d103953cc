"""
middleware/admin_policy.py — Explicit administrator resolution.

An AdminPolicy is built once from configuration in the app factory and
handed to every service that authorises admin-only actions. Nothing here
reads the environment or keeps module-level state.

A user is an administrator when either:
  - their role column is 'admin', or
  - their email is on the ADMIN_EMAILS allowlist (case-insensitive).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from royalty_ledger.app.models.user import UserRole


def parse_admin_emails(raw: str | None) -> frozenset[str]:
    """Splits a comma-separated allowlist into normalised addresses."""
    if not raw:
        return frozenset()
    return frozenset(
        value.strip().lower()
        for value in raw.split(",")
        if value.strip()
    )


@dataclass(frozen=True)
class AdminPolicy:
    admin_emails: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_config(cls, config: Mapping) -> AdminPolicy:
        return cls(admin_emails=parse_admin_emails(config.get("ADMIN_EMAILS")))

    def is_admin(self, user) -> bool:
        if user is None:
            return False
        if getattr(user, "role", None) == UserRole.ADMIN:
            return True
        email = getattr(user, "email", None)
        return bool(email) and email.lower() in self.admin_emails
