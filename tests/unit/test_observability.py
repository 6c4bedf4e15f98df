"""
Unit tests for logging, tracing and metrics setup.
"""

import io
import json
import logging
from collections.abc import Generator
from types import SimpleNamespace

import pytest

from dbqueue.config import Settings
from dbqueue.observability.logging import (
    bind_context,
    clear_context,
    job_context,
    setup_logging,
)
from dbqueue.observability.metrics import get_metrics, setup_metrics
from dbqueue.observability.tracing import get_tracer, instrument_sqlalchemy


@pytest.fixture
def restore_root_logger() -> Generator[None]:
    """Put the root logger back the way pytest left it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    clear_context()


class TestLogging:
    """Tests for setup_logging."""

    def test_json_output(self, restore_root_logger, capsys: pytest.CaptureFixture[str]):
        """Test that stdlib records come out as JSON with their extras."""
        setup_logging(Settings(_env_file=None, log_format="json", log_level="INFO"))
        bind_context(worker_id="worker-1")

        logging.getLogger("dbqueue.test").info("Pushed job", extra={"job_id": 7})

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Pushed job"
        assert record["job_id"] == 7
        assert record["worker_id"] == "worker-1"
        assert record["level"] == "info"

    def test_level_filters(self, restore_root_logger, capsys: pytest.CaptureFixture[str]):
        """Test that records below the configured level are dropped."""
        setup_logging(Settings(_env_file=None, log_format="console", log_level="WARNING"))

        logging.getLogger("dbqueue.test").info("quiet")

        assert "quiet" not in capsys.readouterr().out

    def test_service_name_on_custom_stream(self, restore_root_logger):
        """Test that records carry the service name and go to the given stream."""
        stream = io.StringIO()
        setup_logging(
            Settings(_env_file=None, log_format="json", otel_service_name="billing-worker"),
            stream=stream,
        )

        logging.getLogger("dbqueue.test").warning("Reservation lost")

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["service"] == "billing-worker"
        assert record["event"] == "Reservation lost"

    def test_job_context_is_scoped(self, restore_root_logger):
        """Test that job fields are bound inside the block only."""
        stream = io.StringIO()
        setup_logging(Settings(_env_file=None, log_format="json"), stream=stream)
        log = logging.getLogger("dbqueue.test")
        job = SimpleNamespace(id=3, queue="emails", attempts=2)

        with job_context(job):
            log.info("Handling job")
        log.info("Idle")

        inside, outside = [json.loads(line) for line in stream.getvalue().strip().splitlines()[-2:]]
        assert inside["job_id"] == 3
        assert inside["queue"] == "emails"
        assert inside["attempts"] == 2
        assert "job_id" not in outside


class TestTracing:
    """Tests for tracing helpers."""

    def test_spans_without_provider(self):
        """Test that spans work before setup_tracing() is called."""
        with get_tracer().start_as_current_span("queue.pop") as span:
            span.set_attribute("queue", "default")

    def test_instrument_sqlalchemy(self, async_engine):
        """Test instrumenting the async engine."""
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

        instrument_sqlalchemy(async_engine)
        SQLAlchemyInstrumentor().uninstrument()


class TestMetricsSetup:
    """Tests for the global metrics collector."""

    def test_singleton(self):
        """Test that the global collector is created once."""
        assert get_metrics() is setup_metrics()

    def test_exposition(self, metrics):
        """Test the Prometheus text output."""
        metrics.record_pushed("default", 2)

        body = metrics.get_metrics().decode()

        assert 'dbqueue_jobs_pushed_total{queue="default"} 2.0' in body
        assert metrics.get_content_type().startswith("text/plain")
