"""
Job record repository for database operations.
Implements the row level data access the queue engine is built on.
"""

import logging
from collections.abc import Sequence

from sqlalchemy import Select, and_, delete, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dbqueue.db.models import JobRecord

logger = logging.getLogger(__name__)


class JobRecordRepository:
    """
    Repository for job record database operations.

    Statements run on the session they are given; the caller owns the
    transaction. Row locking goes through a single primitive,
    _lock_and_read, so the queue engine stays portable across backends.
    """

    def __init__(self, session: AsyncSession, skip_locked: bool = False):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
            skip_locked: Let lock_next_claimable skip rows other
                transactions hold instead of waiting for them.
        """
        self._session = session
        self._skip_locked = skip_locked

    async def _lock_and_read(self, stmt: Select, skip_locked: bool = False) -> JobRecord | None:
        """
        Read at most one row and hold an exclusive lock on it until commit.

        Emits SELECT ... FOR UPDATE where the backend supports it. SQLite
        drops the clause; its connections already hold the write lock from
        BEGIN IMMEDIATE.

        Args:
            stmt: Select returning JobRecord rows.
            skip_locked: Pass over rows other transactions hold instead of
                waiting for them.
        """
        stmt = stmt.limit(1).with_for_update(skip_locked=skip_locked)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert(
        self,
        queue: str,
        payload: bytes,
        available_at: int,
        created_at: int,
        attempts: int = 0,
    ) -> int:
        """
        Insert one available row.

        Returns:
            The generated job id.
        """
        record = JobRecord(
            queue=queue,
            payload=payload,
            attempts=attempts,
            reserved_at=None,
            available_at=available_at,
            created_at=created_at,
        )
        self._session.add(record)
        await self._session.flush()
        return record.id

    async def insert_many(
        self,
        queue: str,
        payloads: Sequence[bytes],
        available_at: int,
        created_at: int,
    ) -> int:
        """
        Insert many available rows with a single executemany INSERT.

        Returns:
            Number of rows inserted.
        """
        if not payloads:
            return 0

        records = [
            {
                "queue": queue,
                "payload": payload,
                "attempts": 0,
                "reserved_at": None,
                "available_at": available_at,
                "created_at": created_at,
            }
            for payload in payloads
        ]
        await self._session.execute(insert(JobRecord), records)

        logger.debug(
            f"Inserted {len(records)} rows",
            extra={"queue": queue, "job_count": len(records)}
        )
        return len(records)

    async def lock_next_claimable(
        self,
        queue: str,
        now: int,
        expiry_seconds: int,
    ) -> JobRecord | None:
        """
        Lock the next row a worker may claim.

        A row is claimable when it is unreserved and due, or when its
        reservation is older than the expiry window. Fresh jobs come before
        retried ones; ids break ties.

        Args:
            queue: The queue name.
            now: Current unix time.
            expiry_seconds: Visibility timeout.

        Returns:
            The locked row or None.
        """
        stmt = (
            select(JobRecord)
            .where(
                JobRecord.queue == queue,
                or_(
                    and_(
                        JobRecord.reserved_at.is_(None),
                        JobRecord.available_at <= now,
                    ),
                    JobRecord.reserved_at <= now - expiry_seconds,
                ),
            )
            .order_by(JobRecord.attempts.asc(), JobRecord.id.asc())
        )
        return await self._lock_and_read(stmt, skip_locked=self._skip_locked)

    async def lock_by_id(self, queue: str, job_id: int) -> JobRecord | None:
        """
        Lock a row by id within the given queue.

        Always waits for the lock, even with skip_locked set: a row held by
        a reclaiming poller must be seen once that poller commits, not
        mistaken for a deleted one.
        """
        stmt = select(JobRecord).where(
            JobRecord.id == job_id,
            JobRecord.queue == queue,
        )
        return await self._lock_and_read(stmt)

    async def mark_reserved(self, record: JobRecord, now: int) -> JobRecord:
        """
        Claim a locked row: bump attempts and stamp reserved_at.

        The flush writes both columns back by primary key inside the
        caller's transaction, while the lock is still held.
        """
        record.attempts = record.attempts + 1
        record.reserved_at = now
        await self._session.flush()
        return record

    async def requeue(
        self,
        queue: str,
        job_id: int,
        attempts: int,
        reserved_at: int | None,
        available_at: int,
    ) -> bool:
        """
        Put a reserved row back into the available state.

        Only matches while the row still carries the reservation described
        by (attempts, reserved_at).

        Returns:
            True if a row was updated, False otherwise.
        """
        stmt = (
            update(JobRecord)
            .where(
                JobRecord.id == job_id,
                JobRecord.queue == queue,
                JobRecord.attempts == attempts,
                JobRecord.reserved_at.is_not(None),
            )
            .values(reserved_at=None, available_at=available_at)
            .execution_options(synchronize_session=False)
        )
        if reserved_at is not None:
            stmt = stmt.where(JobRecord.reserved_at == reserved_at)

        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete(self, job_id: int) -> bool:
        """Delete a row by id. Returns True if a row was removed."""
        result = await self._session.execute(
            delete(JobRecord)
            .where(JobRecord.id == job_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def get(self, job_id: int) -> JobRecord | None:
        """Get a row by id without locking it."""
        result = await self._session.execute(
            select(JobRecord).where(JobRecord.id == job_id)
        )
        return result.scalar_one_or_none()

    async def count(self, queue: str) -> int:
        """Count rows in a queue, reserved ones included."""
        stmt = select(func.count()).select_from(JobRecord).where(JobRecord.queue == queue)
        result = await self._session.execute(stmt)
        return result.scalar() or 0
