"""Add e-mailed two-factor challenge columns to users

Revision ID: 0002_two_factor
Revises: 0001_initial
Create Date: 2026-02-06
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_two_factor"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "users",
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
    )
    # Opaque challenge id handed to the client after the password check
    op.add_column("users", sa.Column("two_factor_token", sa.String(64), nullable=True))
    # Argon2 hash of the six-digit code – the code itself is never stored
    op.add_column("users", sa.Column("two_factor_code_hash", sa.String(255), nullable=True))
    op.add_column("users", sa.Column("two_factor_expires_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column(
        "users",
        sa.Column("two_factor_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )

    op.create_index("ix_users_two_factor_token", "users", ["two_factor_token"])


def downgrade() -> None:
    op.drop_index("ix_users_two_factor_token", table_name="users")
    op.drop_column("users", "two_factor_attempts")
    op.drop_column("users", "two_factor_expires_at")
    op.drop_column("users", "two_factor_code_hash")
    op.drop_column("users", "two_factor_token")
    op.drop_column("users", "two_factor_enabled")
