"""initial direct message schema

Revision ID: 3c1f9a6e2b7d
Revises:
Create Date: 2026-10-18 09:12:44.503318

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1f9a6e2b7d"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, threads, messages, reactions and read markers."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("public_key_jwk", sa.Text(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "dm_thread",
        sa.Column("thread_id", sa.String(length=129), nullable=False),
        sa.Column("a_id", sa.String(length=64), nullable=False),
        sa.Column("b_id", sa.String(length=64), nullable=False),
        sa.Column("last_seq", sa.BigInteger(), nullable=False),
        sa.Column("last_created_at", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["a_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["b_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("thread_id"),
    )
    op.create_index("ix_dm_thread_a_id", "dm_thread", ["a_id"])
    op.create_index("ix_dm_thread_b_id", "dm_thread", ["b_id"])

    op.create_table(
        "dm_message",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("thread_id", sa.String(length=129), nullable=False),
        sa.Column("sender_id", sa.String(length=64), nullable=False),
        sa.Column("body_kind", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("cipher_text", sa.Text(), nullable=True),
        sa.Column("iv", sa.String(length=64), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("reply_to_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("seq", sa.BigInteger(), nullable=False),
        sa.Column("edited_at", sa.BigInteger(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "body_kind IN ('plaintext', 'encrypted')",
            name="ck_dm_message_body_kind",
        ),
        sa.ForeignKeyConstraint(["thread_id"], ["dm_thread.thread_id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("thread_id", "seq", name="uq_dm_message_thread_seq"),
    )
    op.create_index("ix_dm_message_thread_created", "dm_message", ["thread_id", "created_at"])

    op.create_table(
        "dm_reaction",
        sa.Column("message_id", sa.String(length=64), nullable=False),
        sa.Column("emoji", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["message_id"], ["dm_message.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("message_id", "emoji", "user_id"),
    )
    op.create_index("ix_dm_reaction_message_id", "dm_reaction", ["message_id"])

    op.create_table(
        "dm_read_marker",
        sa.Column("thread_id", sa.String(length=129), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("last_read_at", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["thread_id"], ["dm_thread.thread_id"]),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("thread_id", "user_id"),
    )


def downgrade() -> None:
    """Drop the direct message schema."""
    op.drop_table("dm_read_marker")
    op.drop_index("ix_dm_reaction_message_id", table_name="dm_reaction")
    op.drop_table("dm_reaction")
    op.drop_index("ix_dm_message_thread_created", table_name="dm_message")
    op.drop_table("dm_message")
    op.drop_index("ix_dm_thread_b_id", table_name="dm_thread")
    op.drop_index("ix_dm_thread_a_id", table_name="dm_thread")
    op.drop_table("dm_thread")
    op.drop_table("user_account")
