"""
Unit tests for logging, metrics and error translation.
"""

import json
import logging

import pytest
from prometheus_client import CollectorRegistry

from bip.api.errors import error_response
from bip.config import Settings
from bip.constants import JobStatus
from bip.errors import (
    DuplicateResultError,
    InvalidNameError,
    InvalidStateError,
    InvalidTransitionError,
    JobAlreadyExistsError,
    JobError,
    JobNotFoundError,
    StorageError,
)
from bip.observability.logging import bind_context, get_logger, setup_logging
from bip.observability.metrics import MetricsCollector
from bip.observability.tracing import get_tracer, setup_tracing


class TestLogging:
    """Tests for the structured logging setup."""

    @pytest.fixture
    def json_logging(
        self,
        test_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ):
        """JSON log settings; each test installs the handler once stderr is captured."""
        settings = test_settings.model_copy(update={"log_format": "json"})
        monkeypatch.setattr("bip.observability.logging.get_settings", lambda: settings)

    def _records(self, captured: str) -> list[dict]:
        return [json.loads(line) for line in captured.splitlines() if line.strip()]

    def test_stdlib_extra_is_rendered(self, json_logging, capsys: pytest.CaptureFixture):
        setup_logging()

        logging.getLogger("bip.tests").info("Job added", extra={"job_id": "a"})

        captured = capsys.readouterr()
        assert captured.out == ""
        record = self._records(captured.err)[-1]
        assert record["event"] == "Job added"
        assert record["job_id"] == "a"
        assert record["level"] == "info"

    def test_bound_context(self, json_logging, capsys: pytest.CaptureFixture):
        setup_logging()
        bind_context(method="PUT", path="/v1/jobs")

        get_logger("bip.tests").warning("Claim rejected", job_id="b")

        record = self._records(capsys.readouterr().err)[-1]
        assert record["method"] == "PUT"
        assert record["path"] == "/v1/jobs"
        assert record["job_id"] == "b"


class TestTracing:
    """Tests for the tracing setup."""

    def test_setup_without_exporter(
        self,
        test_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr("bip.observability.tracing.get_settings", lambda: test_settings)

        tracer = setup_tracing()

        assert get_tracer() is tracer
        with tracer.start_as_current_span("claim_next") as span:
            span.set_attribute("job_id", "a")


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    @pytest.fixture
    def collector(self) -> MetricsCollector:
        return MetricsCollector(registry=CollectorRegistry())

    def test_job_counters(self, collector: MetricsCollector):
        collector.record_job_created()
        collector.record_job_created()
        collector.record_job_claimed()
        collector.record_transition("terminating")
        collector.record_result_added()
        collector.record_storage_error("create_job")

        output = collector.get_metrics().decode()

        assert "bip_jobs_created_total 2.0" in output
        assert "bip_jobs_claimed_total 1.0" in output
        assert 'bip_job_transitions_total{status="terminating"} 1.0' in output
        assert "bip_results_added_total 1.0" in output
        assert 'bip_storage_errors_total{operation="create_job"} 1.0' in output

    def test_update_job_counts(self, collector: MetricsCollector):
        collector.update_job_counts({"ready": 3, "processing": 0})

        output = collector.get_metrics().decode()

        assert 'bip_jobs{status="ready"} 3.0' in output
        assert 'bip_jobs{status="processing"} 0.0' in output

    def test_api_request(self, collector: MetricsCollector):
        collector.record_api_request("PUT", "/v1/jobs", 204, 0.002)

        samples = collector._registry

        assert (
            samples.get_sample_value(
                "bip_api_requests_total",
                {"method": "PUT", "endpoint": "/v1/jobs", "status": "204"},
            )
            == 1.0
        )
        assert (
            samples.get_sample_value(
                "bip_api_request_latency_seconds_count",
                {"method": "PUT", "endpoint": "/v1/jobs"},
            )
            == 1.0
        )
        assert collector.get_content_type().startswith("text/plain")


class TestErrorResponse:
    """Tests for the error -> HTTP status mapping."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (JobNotFoundError("a"), (404, "not_found")),
            (JobAlreadyExistsError("a"), (409, "already_exists")),
            (
                InvalidTransitionError(
                    "a",
                    expected=JobStatus.READY,
                    actual=JobStatus.PROCESSING,
                    target=JobStatus.PROCESSING,
                ),
                (409, "invalid_transition"),
            ),
            (DuplicateResultError("a", "r1"), (409, "duplicate_result")),
            (
                InvalidStateError(
                    "a", required=JobStatus.TERMINATING, actual=JobStatus.READY
                ),
                (403, "invalid_state"),
            ),
            (InvalidNameError("../a"), (400, "invalid_name")),
            (StorageError("disk full"), (500, "storage_error")),
        ],
    )
    def test_mapping(self, error: JobError, expected: tuple[int, str]):
        assert error_response(error) == expected

    def test_subclass_uses_parent_mapping(self):
        class ReadOnlyStorageError(StorageError):
            pass

        assert error_response(ReadOnlyStorageError("read-only")) == (500, "storage_error")

    def test_unmapped_error(self):
        assert error_response(JobError("unexpected")) == (500, "internal_error")

    def test_messages(self):
        error = InvalidTransitionError(
            "a",
            expected=JobStatus.TERMINATING,
            actual=JobStatus.READY,
            target=JobStatus.TERMINATED,
        )

        assert str(error) == (
            "Job 'a' should be in state 'terminating' to move to 'terminated'. "
            "Currently in state 'ready'"
        )
        assert str(JobNotFoundError("a")) == "Job 'a' not found"
