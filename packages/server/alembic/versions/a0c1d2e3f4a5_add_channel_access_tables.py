"""add_channel_access_tables

Add the channel access store:
- channel_allow_from: Approved sender identifiers per channel
- channel_pairing_requests: Pending pairing codes for unknown DM senders

Revision ID: a0c1d2e3f4a5
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a0c1d2e3f4a5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── channel_allow_from ────────────────────────────────────────────────
    op.create_table(
        "channel_allow_from",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("channel", sa.String(32), nullable=False),
        sa.Column("identifier", sa.String(128), nullable=False),
        sa.Column("label", sa.String(256), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("channel", "identifier", name="uq_channel_allow_from"),
    )
    op.create_index(
        "ix_channel_allow_from_channel", "channel_allow_from", ["channel"]
    )

    # ── channel_pairing_requests ──────────────────────────────────────────
    op.create_table(
        "channel_pairing_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("channel", sa.String(32), nullable=False),
        sa.Column("sender_id", sa.String(128), nullable=False),
        sa.Column("sender_name", sa.String(256), nullable=True),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("last_seen_at", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("channel", "sender_id", name="uq_channel_pairing_sender"),
        sa.UniqueConstraint("channel", "code", name="uq_channel_pairing_code"),
    )


def downgrade() -> None:
    op.drop_table("channel_pairing_requests")
    op.drop_index("ix_channel_allow_from_channel", table_name="channel_allow_from")
    op.drop_table("channel_allow_from")
