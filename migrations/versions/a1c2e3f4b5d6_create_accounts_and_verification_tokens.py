"""create_accounts_and_verification_tokens

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-19 12:00:00.000000

Accounts plus the verification token store:
- lower(accounts.email) is unique (backstop for concurrent verifications)
- verification_tokens.kind tags standing tokens, pending pointers and payloads
- (kind, token) is unique; one pending pointer per identifier; expires is
  indexed for the sweep
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "a1c2e3f4b5d6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=21), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_accounts_email", "accounts", ["email"])
    op.create_index(
        "uq_accounts_email_lower", "accounts", [sa.text("lower(email)")], unique=True
    )

    op.create_table(
        "verification_tokens",
        sa.Column("id", sa.String(length=21), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("token", sa.String(length=255), nullable=False),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("kind", "token", name="uq_verification_tokens_kind_token"),
    )
    op.create_index("ix_verification_tokens_kind", "verification_tokens", ["kind"])
    op.create_index("ix_verification_tokens_identifier", "verification_tokens", ["identifier"])
    op.create_index("ix_verification_tokens_token", "verification_tokens", ["token"])
    op.create_index("ix_verification_tokens_expires", "verification_tokens", ["expires"])
    op.create_index(
        "uq_verification_tokens_pending_identifier",
        "verification_tokens",
        ["identifier"],
        unique=True,
        postgresql_where=sa.text("kind = 'pending_registration'"),
        sqlite_where=sa.text("kind = 'pending_registration'"),
    )


def downgrade() -> None:
    op.drop_index("uq_verification_tokens_pending_identifier", table_name="verification_tokens")
    op.drop_index("ix_verification_tokens_expires", table_name="verification_tokens")
    op.drop_index("ix_verification_tokens_token", table_name="verification_tokens")
    op.drop_index("ix_verification_tokens_identifier", table_name="verification_tokens")
    op.drop_index("ix_verification_tokens_kind", table_name="verification_tokens")
    op.drop_table("verification_tokens")
    op.drop_index("uq_accounts_email_lower", table_name="accounts")
    op.drop_index("ix_accounts_email", table_name="accounts")
    op.drop_table("accounts")
