"""
Database module.
Contains database connection, models, and repository implementations.
"""

from dbqueue.db.connection import (
    build_engine,
    close_db,
    create_schema,
    create_session_factory,
    get_engine,
    get_session_factory,
    init_db,
)
from dbqueue.db.models import Base, JobRecord
from dbqueue.db.repository import JobRecordRepository

__all__ = [
    "build_engine",
    "create_schema",
    "create_session_factory",
    "get_session_factory",
    "get_engine",
    "init_db",
    "close_db",
    "JobRecord",
    "JobRecordRepository",
    "Base",
]
