"""
Database-backed Job Queue

A polling job queue on top of a relational table. Provides at-least-once
delivery with delayed execution, a reservation visibility timeout and
attempt counting, using only row locks and timestamp comparisons.
"""

__version__ = "1.0.0"

from dbqueue.exceptions import LostReservationError, QueueError  # noqa: E402
from dbqueue.queue import DatabaseQueue, JobHandle, create_queue  # noqa: E402

__all__ = [
    "DatabaseQueue",
    "JobHandle",
    "create_queue",
    "QueueError",
    "LostReservationError",
]
