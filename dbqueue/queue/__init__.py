"""
Queue module.
Contains the queue engine and the handle it hands to consumers.
"""

from dbqueue.queue.engine import DatabaseQueue, create_queue
from dbqueue.queue.job import JobHandle

__all__ = [
    "DatabaseQueue",
    "JobHandle",
    "create_queue",
]
