"""
Unit tests for settings and the queue factory.
"""

import pytest

from dbqueue.clock import SystemClock
from dbqueue.config import Settings, get_settings
from dbqueue.db.connection import (
    close_db,
    create_schema,
    get_engine,
    get_session_factory,
    init_db,
)
from dbqueue.exceptions import DatabaseNotInitializedError
from dbqueue.queue import create_queue


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        """Test the queue defaults."""
        for name in ("QUEUE_DEFAULT_NAME", "QUEUE_EXPIRY_SECONDS", "QUEUE_SKIP_LOCKED"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.queue_default_name == "default"
        assert settings.queue_expiry_seconds == 60
        assert settings.queue_skip_locked is False

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("QUEUE_DEFAULT_NAME", "emails")
        monkeypatch.setenv("QUEUE_EXPIRY_SECONDS", "90")

        settings = Settings(_env_file=None)

        assert settings.queue_default_name == "emails"
        assert settings.queue_expiry_seconds == 90


class TestCreateQueue:
    """Tests for create_queue."""

    def test_from_settings(self, session_factory):
        """Test that the factory threads the settings through."""
        settings = Settings(
            _env_file=None,
            queue_default_name="reports",
            queue_expiry_seconds=15,
        )

        queue = create_queue(settings, session_factory=session_factory)

        assert queue.default_queue == "reports"
        assert queue.expiry_seconds == 15
        assert queue.get_queue(None) == "reports"
        assert queue.get_queue("emails") == "emails"

    def test_requires_initialized_database(self):
        """Test that a missing session factory is reported."""
        with pytest.raises(DatabaseNotInitializedError):
            get_session_factory()

        with pytest.raises(DatabaseNotInitializedError):
            create_queue(Settings(_env_file=None))


class TestSystemClock:
    """Tests for SystemClock."""

    def test_now_is_int(self):
        """Test that the wall clock reports whole seconds."""
        now = SystemClock().now()

        assert isinstance(now, int)
        assert now > 1_600_000_000


class TestInitDb:
    """Tests for the global engine and session factory."""

    async def test_init_db_and_default_queue(self, monkeypatch: pytest.MonkeyPatch, database_url: str):
        """Test building a queue from the environment after init_db()."""
        monkeypatch.setenv("DATABASE_URL", database_url)
        monkeypatch.setenv("QUEUE_DEFAULT_NAME", "from-env")
        get_settings.cache_clear()

        await init_db()
        try:
            await create_schema(get_engine())
            queue = create_queue()

            await queue.push(b"job")

            assert queue.default_queue == "from-env"
            assert await queue.size("from-env") >= 1
        finally:
            await close_db()
            get_settings.cache_clear()

        with pytest.raises(DatabaseNotInitializedError):
            get_session_factory()
