"""Initial schema with jobs table

Revision ID: 001
Revises: 
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("queue", sa.String(255), nullable=False),
        sa.Column("payload", sa.LargeBinary, nullable=False),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        # unix timestamps
        sa.Column("reserved_at", sa.Integer, nullable=True),
        sa.Column("available_at", sa.Integer, nullable=False),
        sa.Column("created_at", sa.Integer, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_jobs_queue", "jobs", ["queue"])

    # Index for queue polling
    op.create_index(
        "ix_jobs_queue_poll",
        "jobs",
        ["queue", "reserved_at", "available_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_jobs_queue_poll", table_name="jobs")
    op.drop_index("ix_jobs_queue", table_name="jobs")
    op.drop_table("jobs")
