"""Queue level exceptions."""

__all__ = [
    "QueueError",
    "LostReservationError",
    "PayloadDecodeError",
    "DatabaseNotInitializedError",
]


class QueueError(Exception):
    """Base class for queue specific errors."""


class LostReservationError(QueueError):
    """
    Raised when a caller acts on a reservation it no longer holds.

    This happens when the visibility timeout let another worker reclaim the
    row, or when the row was already released. The work in hand is stale and
    should be discarded rather than retried.
    """

    def __init__(self, queue: str, job_id: int):
        self.queue = queue
        self.job_id = job_id
        super().__init__(f"Reservation lost for job {job_id} on queue {queue!r}")


class PayloadDecodeError(QueueError):
    """Raised when payload bytes cannot be decoded."""


class DatabaseNotInitializedError(QueueError, RuntimeError):
    """Raised when a session is requested before init_db()."""
