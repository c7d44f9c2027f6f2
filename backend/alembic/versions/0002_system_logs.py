"""system_logs: dashboard audit trail

Revision ID: 0002_system_logs
Revises: 0001_initial_schema
Create Date: 2026-10-20 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_system_logs"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "system_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("level", sa.String(20), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("restaurant_id", sa.String(36), nullable=True),
        sa.Column("user_agent", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_system_logs_restaurant_id", "system_logs", ["restaurant_id"])
    op.create_index("idx_system_logs_created", "system_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_system_logs_created", table_name="system_logs")
    op.drop_index("ix_system_logs_restaurant_id", table_name="system_logs")
    op.drop_table("system_logs")
