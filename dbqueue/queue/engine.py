"""
Database queue engine.

Producers push payloads, consumers pop the next claimable row and get a
JobHandle back. Every operation runs in its own transaction; mutual
exclusion between workers comes entirely from the database row lock taken
by pop and delete_reserved.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any, NoReturn, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dbqueue.clock import Clock, SystemClock
from dbqueue.config import Settings, get_settings
from dbqueue.constants import (
    DEFAULT_EXPIRY_SECONDS,
    DEFAULT_QUEUE_NAME,
    SPAN_BULK,
    SPAN_DELETE,
    SPAN_POP,
    SPAN_PUSH,
    SPAN_RELEASE,
)
from dbqueue.db.connection import get_session_factory
from dbqueue.db.repository import JobRecordRepository
from dbqueue.exceptions import LostReservationError
from dbqueue.observability.metrics import MetricsCollector, get_metrics
from dbqueue.observability.tracing import get_tracer
from dbqueue.queue.job import JobHandle
from dbqueue.types.job import encode_payload

logger = logging.getLogger(__name__)

Delay = int | float | timedelta | datetime


class ReservedJob(Protocol):
    """What release() needs to know about a reservation."""

    id: int
    attempts: int
    reserved_at: int | None


class DatabaseQueue:
    """
    Polling job queue backed by the jobs table.

    A row is claimable when it is unreserved and due, or when its
    reservation is older than expiry_seconds. The second case recovers jobs
    whose worker died; it also means a worker that outlives the window can
    have its job handed to someone else, so delivery is at-least-once.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_queue: str = DEFAULT_QUEUE_NAME,
        expiry_seconds: int = DEFAULT_EXPIRY_SECONDS,
        clock: Clock | None = None,
        skip_locked: bool = False,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the queue.

        Args:
            session_factory: Factory for the sessions each operation runs on.
            default_queue: Queue used when an operation gets no queue name.
            expiry_seconds: Visibility timeout for reservations.
            clock: Time source. Defaults to the wall clock.
            skip_locked: Skip rows locked by other pollers instead of waiting.
            metrics: Metrics collector. Defaults to the global one.
        """
        self._session_factory = session_factory
        self._default_queue = default_queue
        self._expiry_seconds = expiry_seconds
        self._clock = clock or SystemClock()
        self._skip_locked = skip_locked
        self._metrics = metrics or get_metrics()

    @property
    def default_queue(self) -> str:
        return self._default_queue

    @property
    def expiry_seconds(self) -> int:
        return self._expiry_seconds

    def get_queue(self, queue: str | None) -> str:
        """Get the queue or return the default."""
        return queue or self._default_queue

    def get_available_at(self, delay: Delay, now: int | None = None) -> int:
        """
        Resolve a delay into an "available at" unix timestamp.

        Args:
            delay: Seconds or a timedelta from now, or an absolute datetime.
                Naive datetimes are taken as UTC. Negative delays count as 0.
            now: Reference time for relative delays. Defaults to the clock.
        """
        if isinstance(delay, datetime):
            if delay.tzinfo is None:
                delay = delay.replace(tzinfo=timezone.utc)
            return int(delay.timestamp())

        if isinstance(delay, timedelta):
            delay = delay.total_seconds()

        if now is None:
            now = self._clock.now()
        return now + max(0, int(delay))

    def _repository(self, session: AsyncSession) -> JobRecordRepository:
        return JobRecordRepository(session, skip_locked=self._skip_locked)

    async def size(self, queue: str | None = None) -> int:
        """
        Get the number of rows in the queue, reserved ones included.

        A point-in-time figure for monitoring only.
        """
        queue = self.get_queue(queue)

        async with self._session_factory() as session:
            depth = await self._repository(session).count(queue)

        self._metrics.update_queue_depth(queue, depth)
        return depth

    async def push(self, payload: bytes, queue: str | None = None) -> int:
        """
        Push a raw payload onto the queue.

        Returns:
            The new job id.
        """
        return await self._push_to_database(0, queue, payload)

    async def push_job(
        self,
        job_type: str,
        data: dict[str, Any] | None = None,
        queue: str | None = None,
    ) -> int:
        """Encode a job description and push it onto the queue."""
        return await self.push(encode_payload(job_type, data), queue)

    async def later(self, delay: Delay, payload: bytes, queue: str | None = None) -> int:
        """
        Push a raw payload that becomes available after a delay.

        Returns:
            The new job id.
        """
        return await self._push_to_database(delay, queue, payload)

    async def bulk(self, payloads: Iterable[bytes], queue: str | None = None) -> int:
        """
        Push many payloads in one INSERT.

        All rows share one available_at; concurrent pollers see either all
        of them or none.

        Returns:
            Number of jobs pushed.
        """
        queue = self.get_queue(queue)
        records = [_as_bytes(payload) for payload in payloads]
        if not records:
            return 0

        now = self._clock.now()

        with get_tracer().start_as_current_span(SPAN_BULK) as span:
            span.set_attribute("queue", queue)
            span.set_attribute("job_count", len(records))

            async with self._session_factory() as session, session.begin():
                count = await self._repository(session).insert_many(
                    queue,
                    records,
                    available_at=now,
                    created_at=now,
                )

        self._metrics.record_pushed(queue, count)
        logger.info(
            f"Pushed {count} jobs",
            extra={"queue": queue, "job_count": count}
        )
        return count

    async def _push_to_database(self, delay: Delay, queue: str | None, payload: bytes) -> int:
        queue = self.get_queue(queue)
        now = self._clock.now()
        available_at = self.get_available_at(delay, now)

        with get_tracer().start_as_current_span(SPAN_PUSH) as span:
            span.set_attribute("queue", queue)

            async with self._session_factory() as session, session.begin():
                job_id = await self._repository(session).insert(
                    queue,
                    _as_bytes(payload),
                    available_at=available_at,
                    created_at=now,
                )

            span.set_attribute("job_id", job_id)

        self._metrics.record_pushed(queue)
        logger.info(
            "Pushed job",
            extra={"queue": queue, "job_id": job_id, "available_at": available_at}
        )
        return job_id

    async def pop(self, queue: str | None = None) -> JobHandle | None:
        """
        Claim the next job on the queue.

        Locks the first claimable row ordered by (attempts, id), bumps its
        attempts and stamps reserved_at, all in one transaction. A second
        poller reaching the same row waits on the lock and, once it gets
        it, no longer sees the row as claimable.

        Returns:
            A handle on the reserved job, or None if nothing is claimable.
        """
        queue = self.get_queue(queue)

        with get_tracer().start_as_current_span(SPAN_POP) as span:
            span.set_attribute("queue", queue)

            async with self._session_factory() as session, session.begin():
                repo = self._repository(session)
                now = self._clock.now()

                record = await repo.lock_next_claimable(queue, now, self._expiry_seconds)
                if record is None:
                    logger.debug("No claimable job", extra={"queue": queue})
                    return None

                reclaimed = record.reserved_at is not None
                record = await repo.mark_reserved(record, now)
                job = JobHandle.from_record(self, record)

            span.set_attribute("job_id", job.id)
            span.set_attribute("attempts", job.attempts)

        self._metrics.record_reserved(queue, reclaimed=reclaimed)

        if reclaimed:
            logger.info(
                "Reclaimed expired reservation",
                extra={"queue": queue, "job_id": job.id, "attempts": job.attempts}
            )
        else:
            logger.debug(
                "Reserved job",
                extra={"queue": queue, "job_id": job.id, "attempts": job.attempts}
            )

        return job

    async def release(self, queue: str | None, job: ReservedJob, delay: Delay = 0) -> int:
        """
        Put a reserved job back onto the queue.

        The row keeps its id and the attempts carried by the handle, and
        becomes available again after the delay.

        Returns:
            The job id.

        Raises:
            LostReservationError: If the row no longer carries the handle's
                reservation.
        """
        queue = self.get_queue(queue)
        available_at = self.get_available_at(delay)

        with get_tracer().start_as_current_span(SPAN_RELEASE) as span:
            span.set_attribute("queue", queue)
            span.set_attribute("job_id", job.id)

            async with self._session_factory() as session, session.begin():
                released = await self._repository(session).requeue(
                    queue,
                    job.id,
                    attempts=job.attempts,
                    reserved_at=job.reserved_at,
                    available_at=available_at,
                )

        if not released:
            self._reservation_lost(queue, job.id)

        self._metrics.record_released(queue)
        logger.info(
            "Released job",
            extra={
                "queue": queue,
                "job_id": job.id,
                "attempts": job.attempts,
                "available_at": available_at,
            }
        )
        return job.id

    async def delete_reserved(
        self,
        queue: str | None,
        job_id: int,
        reserved_at: int | None = None,
        attempts: int | None = None,
    ) -> None:
        """
        Delete a reserved job from the queue.

        Locks the row first. A row that is already gone is a no-op, so
        deleting twice is safe. When a reservation token is given, a row
        that has since been released or reclaimed is left alone.

        Args:
            queue: The queue name.
            job_id: The job id.
            reserved_at: reserved_at captured when the job was popped.
            attempts: attempts captured when the job was popped.

        Raises:
            LostReservationError: If the token no longer matches the row.
        """
        queue = self.get_queue(queue)
        stale = False

        with get_tracer().start_as_current_span(SPAN_DELETE) as span:
            span.set_attribute("queue", queue)
            span.set_attribute("job_id", job_id)

            async with self._session_factory() as session, session.begin():
                repo = self._repository(session)

                record = await repo.lock_by_id(queue, job_id)
                if record is None:
                    logger.debug(
                        "Job already deleted",
                        extra={"queue": queue, "job_id": job_id}
                    )
                    return

                if reserved_at is not None or attempts is not None:
                    stale = (
                        record.reserved_at is None
                        or (reserved_at is not None and record.reserved_at != reserved_at)
                        or (attempts is not None and record.attempts != attempts)
                    )

                if not stale:
                    await repo.delete(job_id)

        if stale:
            self._reservation_lost(queue, job_id)

        self._metrics.record_deleted(queue)
        logger.debug("Deleted job", extra={"queue": queue, "job_id": job_id})

    def _reservation_lost(self, queue: str, job_id: int) -> NoReturn:
        self._metrics.record_reservation_lost(queue)
        logger.warning(
            "Reservation lost",
            extra={"queue": queue, "job_id": job_id}
        )
        raise LostReservationError(queue, job_id)


def _as_bytes(payload: bytes | str) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def create_queue(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Clock | None = None,
) -> DatabaseQueue:
    """
    Build a queue from settings.

    Args:
        settings: Settings to read the queue options from.
        session_factory: Session factory. Defaults to the one set up by
            init_db().
        clock: Optional time source.

    Returns:
        DatabaseQueue: The configured queue.
    """
    settings = settings or get_settings()
    if session_factory is None:
        session_factory = get_session_factory()

    return DatabaseQueue(
        session_factory,
        default_queue=settings.queue_default_name,
        expiry_seconds=settings.queue_expiry_seconds,
        clock=clock,
        skip_locked=settings.queue_skip_locked,
    )
