"""
Handle on a reserved job.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from dbqueue.db.models import JobRecord
from dbqueue.types.job import JobPayload, decode_payload

if TYPE_CHECKING:
    from dbqueue.queue.engine import DatabaseQueue


@dataclass(frozen=True)
class JobHandle:
    """
    Snapshot of a job row taken when pop reserved it.

    The handle never re-reads the row. reserved_at and attempts together
    identify this reservation; release() and delete() send them along so
    the queue can tell when another worker has since reclaimed the job.
    """

    id: int
    queue: str
    payload: bytes
    attempts: int
    reserved_at: int
    available_at: int
    created_at: int
    engine: "DatabaseQueue" = field(repr=False, compare=False)

    @classmethod
    def from_record(cls, engine: "DatabaseQueue", record: JobRecord) -> "JobHandle":
        """Create a handle from a freshly reserved row."""
        return cls(
            id=record.id,
            queue=record.queue,
            payload=record.payload,
            attempts=record.attempts,
            reserved_at=record.reserved_at,
            available_at=record.available_at,
            created_at=record.created_at,
            engine=engine,
        )

    @property
    def raw_body(self) -> str:
        """The payload as text."""
        return self.payload.decode("utf-8", errors="replace")

    def decode(self) -> JobPayload:
        """Decode a payload written with encode_payload."""
        return decode_payload(self.payload)

    def is_last_attempt(self, max_attempts: int) -> bool:
        """Check if this reservation used up the allowed attempts."""
        return self.attempts >= max_attempts

    async def release(self, delay: int | float | timedelta | datetime = 0) -> int:
        """Put the job back onto its queue after a delay."""
        return await self.engine.release(self.queue, self, delay)

    async def delete(self) -> None:
        """Remove the job from its queue."""
        await self.engine.delete_reserved(
            self.queue,
            self.id,
            reserved_at=self.reserved_at,
            attempts=self.attempts,
        )
