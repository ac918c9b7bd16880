"""
Unit tests for the job record state machine.
"""

import threading
from pathlib import Path

import pytest

from bip.constants import JobStatus
from bip.errors import (
    DuplicateResultError,
    InvalidNameError,
    InvalidStateError,
    InvalidTransitionError,
    StorageError,
)
from bip.store.job import JobRecord
from bip.store.layout import JobLayout


class TestJobRecord:
    """Tests for JobRecord."""

    @pytest.fixture
    def lock(self) -> threading.RLock:
        return threading.RLock()

    @pytest.fixture
    def layout(self, tmp_path: Path) -> JobLayout:
        return JobLayout(tmp_path, "job-1", fsync=False)

    @pytest.fixture
    def job(self, layout: JobLayout, lock: threading.RLock, sample_data: bytes) -> JobRecord:
        return JobRecord.create(layout, sample_data, lock)

    @pytest.fixture
    def terminating_job(self, job: JobRecord) -> JobRecord:
        job.claim()
        job.begin_finish()
        return job

    def test_create(self, job: JobRecord, layout: JobLayout, sample_data: bytes):
        """A new job is READY, holds its data and has no results."""
        assert job.id == "job-1"
        assert job.status == JobStatus.READY
        assert job.data() == sample_data
        assert job.results == []
        assert layout.read_status() == JobStatus.READY

    def test_create_failure_exposes_nothing(
        self,
        layout: JobLayout,
        lock: threading.RLock,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """If the data write fails, the job directory is removed."""

        def fail_write(self, data):
            raise StorageError("disk full")

        monkeypatch.setattr(JobLayout, "write_data", fail_write)

        with pytest.raises(StorageError):
            JobRecord.create(layout, b"payload", lock)

        assert not layout.exists()

    def test_claim(self, job: JobRecord, layout: JobLayout):
        job.claim()

        assert job.status == JobStatus.PROCESSING
        assert layout.read_status() == JobStatus.PROCESSING

    def test_claim_twice_fails(self, job: JobRecord):
        job.claim()

        with pytest.raises(InvalidTransitionError) as exc_info:
            job.claim()

        assert exc_info.value.expected == JobStatus.READY
        assert exc_info.value.actual == JobStatus.PROCESSING
        assert exc_info.value.target == JobStatus.PROCESSING

    def test_full_lifecycle(self, job: JobRecord, layout: JobLayout):
        job.claim()
        job.begin_finish()
        job.finalize()

        assert job.status == JobStatus.TERMINATED
        assert layout.read_status() == JobStatus.TERMINATED

    def test_finalize_before_begin_finish_fails(self, job: JobRecord):
        job.claim()

        with pytest.raises(InvalidTransitionError):
            job.finalize()

        assert job.status == JobStatus.PROCESSING

    def test_begin_finish_from_ready_fails(self, job: JobRecord):
        with pytest.raises(InvalidTransitionError):
            job.begin_finish()

        assert job.status == JobStatus.READY

    def test_no_transition_after_terminated(self, terminating_job: JobRecord):
        terminating_job.finalize()

        for step in (
            terminating_job.claim,
            terminating_job.begin_finish,
            terminating_job.finalize,
        ):
            with pytest.raises(InvalidTransitionError):
                step()

    @pytest.mark.parametrize("target", [JobStatus.READY, JobStatus.CREATING])
    def test_transition_to_initial_states_fails(self, job: JobRecord, target: JobStatus):
        with pytest.raises(InvalidTransitionError):
            job.transition(target)

        assert job.status == JobStatus.READY

    def test_transition_dispatch(self, job: JobRecord):
        job.transition(JobStatus.PROCESSING)
        job.transition(JobStatus.TERMINATING)
        job.transition(JobStatus.TERMINATED)

        assert job.status == JobStatus.TERMINATED

    def test_failed_status_write_keeps_status(
        self,
        job: JobRecord,
        monkeypatch: pytest.MonkeyPatch,
    ):
        def fail_write(self, status):
            raise StorageError("disk full")

        monkeypatch.setattr(JobLayout, "write_status", fail_write)

        with pytest.raises(StorageError):
            job.claim()

        assert job.status == JobStatus.READY

    def test_add_result(self, terminating_job: JobRecord):
        terminating_job.add_result("r1", b"out")

        assert terminating_job.results == ["r1"]
        assert terminating_job.result("r1") == b"out"

    def test_add_duplicate_result(self, terminating_job: JobRecord):
        terminating_job.add_result("r1", b"out")

        with pytest.raises(DuplicateResultError) as exc_info:
            terminating_job.add_result("r1", b"other")

        assert exc_info.value.name == "r1"
        assert terminating_job.result("r1") == b"out"

    def test_add_result_outside_terminating(self, job: JobRecord):
        """Results are only accepted while TERMINATING."""
        with pytest.raises(InvalidStateError):
            job.add_result("r1", b"out")

        job.claim()
        with pytest.raises(InvalidStateError) as exc_info:
            job.add_result("r1", b"out")
        assert exc_info.value.required == JobStatus.TERMINATING
        assert exc_info.value.actual == JobStatus.PROCESSING

        job.begin_finish()
        job.finalize()
        with pytest.raises(InvalidStateError):
            job.add_result("r1", b"out")

        assert job.results == []

    def test_add_result_invalid_name(self, terminating_job: JobRecord):
        with pytest.raises(InvalidNameError):
            terminating_job.add_result("../escape", b"out")

    def test_failed_result_write_keeps_result_set(
        self,
        terminating_job: JobRecord,
        monkeypatch: pytest.MonkeyPatch,
    ):
        def fail_write(self, name, payload):
            raise StorageError("disk full")

        monkeypatch.setattr(JobLayout, "write_result", fail_write)

        with pytest.raises(StorageError):
            terminating_job.add_result("r1", b"out")

        assert terminating_job.results == []
        assert terminating_job.result("r1") is None

    def test_missing_result(self, terminating_job: JobRecord):
        assert terminating_job.result("nope") is None

    def test_unreadable_result(self, terminating_job: JobRecord, layout: JobLayout):
        """A known result whose file vanished is a storage error, not 'not found'."""
        terminating_job.add_result("r1", b"out")
        layout.result_path("r1").unlink()

        with pytest.raises(StorageError):
            terminating_job.result("r1")


class TestJobResume:
    """Tests for rebuilding a job from storage."""

    @pytest.fixture
    def lock(self) -> threading.RLock:
        return threading.RLock()

    @pytest.fixture
    def layout(self, tmp_path: Path) -> JobLayout:
        return JobLayout(tmp_path, "job-1", fsync=False)

    def _stored_job(self, layout: JobLayout, status: JobStatus) -> None:
        layout.create_dirs()
        layout.write_status(status)
        layout.write_data(b"payload")

    @pytest.mark.parametrize("status", [JobStatus.READY, JobStatus.TERMINATED])
    def test_resume_keeps_settled_status(
        self,
        layout: JobLayout,
        lock: threading.RLock,
        status: JobStatus,
    ):
        self._stored_job(layout, status)

        job = JobRecord.resume(layout, lock)

        assert job is not None
        assert job.status == status
        assert job.data() == b"payload"

    @pytest.mark.parametrize("status", [JobStatus.PROCESSING, JobStatus.TERMINATING])
    def test_resume_requeues_in_flight(
        self,
        layout: JobLayout,
        lock: threading.RLock,
        status: JobStatus,
    ):
        self._stored_job(layout, status)

        job = JobRecord.resume(layout, lock)

        assert job.status == JobStatus.READY
        assert layout.read_status() == JobStatus.READY

    @pytest.mark.parametrize("status", [JobStatus.PROCESSING, JobStatus.TERMINATING])
    def test_resume_preserves_in_flight(
        self,
        layout: JobLayout,
        lock: threading.RLock,
        status: JobStatus,
    ):
        self._stored_job(layout, status)

        job = JobRecord.resume(layout, lock, requeue_in_flight=False)

        assert job.status == status
        assert layout.read_status() == status

    def test_resume_restores_results(self, layout: JobLayout, lock: threading.RLock):
        self._stored_job(layout, JobStatus.TERMINATED)
        layout.write_result("r2", b"2")
        layout.write_result("r1", b"1")

        job = JobRecord.resume(layout, lock)

        assert job.results == ["r1", "r2"]
        assert job.result("r2") == b"2"

    def test_resume_discards_interrupted_creation(
        self,
        layout: JobLayout,
        lock: threading.RLock,
    ):
        self._stored_job(layout, JobStatus.CREATING)

        assert JobRecord.resume(layout, lock) is None
        assert not layout.exists()

    def test_resume_discards_missing_data(self, layout: JobLayout, lock: threading.RLock):
        layout.create_dirs()
        layout.write_status(JobStatus.CREATING)

        assert JobRecord.resume(layout, lock) is None
        assert not layout.exists()

    def test_resume_removes_temporary_files(
        self,
        layout: JobLayout,
        lock: threading.RLock,
    ):
        self._stored_job(layout, JobStatus.TERMINATED)
        (layout.results_path / ".r1.dead.tmp").write_bytes(b"partial")

        job = JobRecord.resume(layout, lock)

        assert job.results == []
        assert list(layout.results_path.iterdir()) == []
