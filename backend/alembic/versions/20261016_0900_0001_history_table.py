"""history table for generation jobs

Revision ID: 0001
Revises: None
Create Date: 2026-10-16 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("timestamp", sa.BigInteger, nullable=False, comment="creation time, epoch ms"),
        sa.Column("kind", sa.String(10), nullable=False, server_default="image", comment="image | video"),
        sa.Column("status", sa.String(20), nullable=False, server_default="processing"),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("params", sa.JSON, nullable=False),
        sa.Column("source_image_url", sa.String(2048), nullable=True),
        sa.Column("constructed_prompt", sa.Text, nullable=True),
        sa.Column("generated_urls", sa.JSON, nullable=False),
        sa.Column("remote_url", sa.String(2048), nullable=True),
        sa.Column("seed", sa.Integer, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_history_username_timestamp", "history", ["username", "timestamp"])
    op.create_index("ix_history_username_kind_timestamp", "history", ["username", "kind", "timestamp"])
    op.create_index("ix_history_status_timestamp", "history", ["status", "timestamp"])


def downgrade() -> None:
    op.drop_index("ix_history_status_timestamp", table_name="history")
    op.drop_index("ix_history_username_kind_timestamp", table_name="history")
    op.drop_index("ix_history_username_timestamp", table_name="history")
    op.drop_table("history")
