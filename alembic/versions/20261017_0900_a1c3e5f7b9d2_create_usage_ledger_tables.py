"""Create usage ledger tables

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy import inspect

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists("usage_logs"):
        op.create_table(
            "usage_logs",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(64), nullable=False),
            sa.Column("provider", sa.String(32), nullable=False),
            sa.Column("model", sa.String(128), nullable=False),
            sa.Column("cached_input_tokens", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("input_tokens", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column(
                "reasoning_output_tokens", sa.Integer(), nullable=False, server_default=sa.text("0")
            ),
            sa.Column("output_tokens", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("cost_usd", sa.Numeric(10, 6), nullable=False, server_default=sa.text("0")),
            sa.Column(
                "timestamp",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
        )
        op.create_index("idx_usage_logs_user_timestamp", "usage_logs", ["user_id", "timestamp"])

    if not table_exists("user_limits"):
        op.create_table(
            "user_limits",
            sa.Column("user_id", sa.String(64), primary_key=True),
            sa.Column(
                "monthly_limit_usd", sa.Numeric(10, 2), nullable=False, server_default=sa.text("8.0")
            ),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
        )

    if not table_exists("rate_limit_log"):
        op.create_table(
            "rate_limit_log",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("user_id", sa.String(64), nullable=False),
            sa.Column(
                "request_timestamp",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            ),
        )
        # 限流只查最近一分钟，按 (user_id, request_timestamp) 建索引
        op.create_index(
            "idx_rate_limit_log_user_timestamp",
            "rate_limit_log",
            ["user_id", "request_timestamp"],
        )


def downgrade() -> None:
    if table_exists("rate_limit_log"):
        op.drop_index("idx_rate_limit_log_user_timestamp", table_name="rate_limit_log")
        op.drop_table("rate_limit_log")

    if table_exists("user_limits"):
        op.drop_table("user_limits")

    if table_exists("usage_logs"):
        op.drop_index("idx_usage_logs_user_timestamp", table_name="usage_logs")
        op.drop_table("usage_logs")
