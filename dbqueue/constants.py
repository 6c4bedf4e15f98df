"""
Application constants.
Centralized location for all constant values used across the application.
"""

# Default values
DEFAULT_QUEUE_NAME = "default"
DEFAULT_EXPIRY_SECONDS = 60
JOBS_TABLE_NAME = "jobs"

# Metrics names
METRIC_QUEUE_DEPTH = "dbqueue_queue_depth"
METRIC_JOBS_PUSHED = "dbqueue_jobs_pushed_total"
METRIC_JOBS_RESERVED = "dbqueue_jobs_reserved_total"
METRIC_RESERVATIONS_RECLAIMED = "dbqueue_reservations_reclaimed_total"
METRIC_JOBS_RELEASED = "dbqueue_jobs_released_total"
METRIC_JOBS_DELETED = "dbqueue_jobs_deleted_total"
METRIC_RESERVATIONS_LOST = "dbqueue_reservations_lost_total"

# Trace span names
SPAN_PUSH = "queue.push"
SPAN_BULK = "queue.bulk"
SPAN_POP = "queue.pop"
SPAN_RELEASE = "queue.release"
SPAN_DELETE = "queue.delete_reserved"

# Driver loggers kept at WARNING once logging is set up
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg")
