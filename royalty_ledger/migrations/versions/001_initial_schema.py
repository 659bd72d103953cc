"""Initial schema — all tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  A schema change gets a NEW migration file.

Enums are VARCHAR(20) columns with CHECK constraints (native_enum=False),
matching models/types.string_enum(), so no CREATE TYPE is needed.

Creation order (FK dependencies):
  users → refresh_tokens, works → license_requests → agreements
        → receipts → payout_instructions, events

ON DELETE policies:
  refresh_tokens.user_id          → CASCADE   (token owned by user)
  payout_instructions.receipt_id  → CASCADE   (instructions owned by receipt)
  events.user_id                  → SET NULL  (audit rows outlive users)
  everything else                 → RESTRICT
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None

_STATUSES = ("pending", "scheduled", "processing", "distributed", "paid", "failed")


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=True, length=20)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "role",
            _enum("user_role_enum", "creator", "licensee", "admin"),
            nullable=False,
            server_default="creator",
        ),
        _created_at(),
        sa.CheckConstraint("LENGTH(TRIM(username)) > 0", name="ck_users_username_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(255), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    op.create_table(
        "works",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "owner_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icc_code", sa.String(20), nullable=False, unique=True),
        _created_at(),
        sa.CheckConstraint("LENGTH(TRIM(title)) > 1", name="ck_works_title_length"),
    )
    op.create_index("ix_works_owner_id", "works", ["owner_id"])

    op.create_table(
        "license_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "work_id",
            sa.Integer(),
            sa.ForeignKey("works.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "requester_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("usage", sa.String(200), nullable=False),
        sa.Column("territory", sa.String(2), nullable=False),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.Column("fee_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column(
            "status",
            _enum("license_request_status_enum", "pending", "approved", "rejected"),
            nullable=False,
            server_default="pending",
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("duration_days BETWEEN 1 AND 365", name="ck_license_requests_duration"),
        sa.CheckConstraint(
            "fee_amount IS NULL OR fee_amount > 0",
            name="ck_license_requests_fee_positive",
        ),
    )
    op.create_index("ix_license_requests_work_id", "license_requests", ["work_id"])
    op.create_index("ix_license_requests_requester_id", "license_requests", ["requester_id"])

    op.create_table(
        "agreements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "work_id",
            sa.Integer(),
            sa.ForeignKey("works.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "license_request_id",
            sa.Integer(),
            sa.ForeignKey("license_requests.id", ondelete="RESTRICT"),
            nullable=True,
            unique=True,
        ),
        sa.Column(
            "creator_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "licensee_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("terms", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            _enum("agreement_status_enum", "draft", "signed", "finalized"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("creator_id <> licensee_id", name="ck_agreements_distinct_parties"),
    )
    op.create_index("ix_agreements_work_id", "agreements", ["work_id"])
    op.create_index("ix_agreements_creator_id", "agreements", ["creator_id"])
    op.create_index("ix_agreements_licensee_id", "agreements", ["licensee_id"])

    op.create_table(
        "receipts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "agreement_id",
            sa.Integer(),
            sa.ForeignKey("agreements.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("gross_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column(
            "status",
            _enum("receipt_status_enum", *_STATUSES),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("memo", sa.String(200), nullable=True),
        _created_at(),
        sa.Column("distributed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("gross_amount > 0", name="ck_receipts_gross_positive"),
    )
    op.create_index("ix_receipts_agreement_id", "receipts", ["agreement_id"])
    op.create_index("ix_receipts_status", "receipts", ["status"])

    op.create_table(
        "payout_instructions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "receipt_id",
            sa.Integer(),
            sa.ForeignKey("receipts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "agreement_id",
            sa.Integer(),
            sa.ForeignKey("agreements.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "party_role",
            _enum("party_role_enum", "creator", "licensee", "platform"),
            nullable=False,
        ),
        sa.Column(
            "party_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column(
            "status",
            _enum("payout_status_enum", *_STATUSES),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("rounding_adjustment", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rounding_cents", sa.BigInteger(), nullable=False, server_default="0"),
        _created_at(),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("txn_ref", sa.String(120), nullable=True),
        sa.UniqueConstraint("receipt_id", "party_role", name="uq_payout_instructions_receipt_role"),
        sa.CheckConstraint("amount_cents >= 0", name="ck_payout_instructions_amount_nonnegative"),
        sa.CheckConstraint("rounding_cents >= 0", name="ck_payout_instructions_rounding_nonnegative"),
    )
    op.create_index("ix_payout_instructions_receipt_id", "payout_instructions", ["receipt_id"])
    op.create_index("ix_payout_instructions_agreement_id", "payout_instructions", ["agreement_id"])
    op.create_index("ix_payout_instructions_party_user_id", "payout_instructions", ["party_user_id"])
    op.create_index("ix_payout_instructions_created_at", "payout_instructions", ["created_at"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_events_user_id", "events", ["user_id"])
    op.create_index("ix_events_kind", "events", ["kind"])


def downgrade() -> None:
    """Drops everything in reverse FK order."""
    op.drop_table("events")
    op.drop_table("payout_instructions")
    op.drop_table("receipts")
    op.drop_table("agreements")
    op.drop_table("license_requests")
    op.drop_table("works")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
