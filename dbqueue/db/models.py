"""
SQLAlchemy database models.
Defines the jobs table backing the queue.
"""

from sqlalchemy import Index, Integer, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from dbqueue.constants import JOBS_TABLE_NAME


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class JobRecord(Base):
    """
    One row per enqueued unit of work.

    A row is available when reserved_at is NULL and available_at has passed.
    A non-NULL reserved_at means some worker claimed the row at that time;
    once it is older than the expiry window the row is claimable again.

    All timestamps are integer unix seconds.
    """

    __tablename__ = JOBS_TABLE_NAME

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    queue: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Opaque to the queue
    payload: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    # Incremented on every claim, preserved across releases
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    reserved_at: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    available_at: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    created_at: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __table_args__ = (
        # Index for efficient queue polling
        Index("ix_jobs_queue_poll", "queue", "reserved_at", "available_at"),
    )

    def __repr__(self) -> str:
        return (
            f"JobRecord(id={self.id}, queue={self.queue}, "
            f"attempts={self.attempts}, reserved_at={self.reserved_at})"
        )
