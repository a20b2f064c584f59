"""Create authenticators table for WebAuthn passkeys

Revision ID: 0003_authenticators
Revises: 0002_two_factor
Create Date: 2026-02-06
"""

from alembic import op
import sqlalchemy as sa

revision = "0003_authenticators"
down_revision = "0002_two_factor"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # -- authenticators -------------------------------------------------
    op.create_table(
        "authenticators",
        # base64url credential id as reported by the browser
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        # base64( COSE public key )
        sa.Column("public_key", sa.Text(), nullable=False),
        sa.Column("counter", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("device_type", sa.String(32), nullable=False),
        sa.Column("backed_up", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("transports", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_index("ix_authenticators_user_id", "authenticators", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_authenticators_user_id", table_name="authenticators")
    op.drop_table("authenticators")
