"""
Job record: one unit of work and its lifecycle state machine.
"""

import logging
import threading
from datetime import datetime

from bip.constants import IN_FLIGHT_STATUSES, JobStatus
from bip.errors import (
    DuplicateResultError,
    InvalidStateError,
    InvalidTransitionError,
    StorageError,
)
from bip.store.layout import JobLayout, validate_name

logger = logging.getLogger(__name__)

# Target status -> status a job must be in to reach it
_PREDECESSORS: dict[JobStatus, JobStatus] = {
    JobStatus.READY: JobStatus.CREATING,
    JobStatus.PROCESSING: JobStatus.READY,
    JobStatus.TERMINATING: JobStatus.PROCESSING,
    JobStatus.TERMINATED: JobStatus.TERMINATING,
}


class JobRecord:
    """
    A job stored under the registry root.

    Status only moves forward, one step at a time:
    READY -> PROCESSING -> TERMINATING -> TERMINATED.
    Every transition durably writes the new status marker before the
    in-memory status changes, so storage never reflects a status the
    caller was not told about. Results are append-only and may only be
    added while the job is TERMINATING.

    Records are built by the Registry, which shares its lock with them.
    """

    def __init__(
        self,
        layout: JobLayout,
        status: JobStatus,
        results: set[str],
        created_at: datetime,
        lock: threading.RLock,
    ):
        self._layout = layout
        self._status = status
        self._results = results
        self._created_at = created_at
        self._lock = lock

    @classmethod
    def create(
        cls,
        layout: JobLayout,
        data: bytes,
        lock: threading.RLock,
    ) -> "JobRecord":
        """
        Durably create a new job.

        Writes the CREATING marker, the data blob, then the READY marker.
        A job is only returned once all writes succeeded; on failure the
        partial directory is removed and nothing is exposed.

        Args:
            layout: Layout of the (not yet existing) job directory.
            data: The job payload.
            lock: The owning registry's lock.

        Returns:
            The new record, in READY status.

        Raises:
            StorageError: If any durable write fails.
        """
        try:
            layout.create_dirs()
            layout.write_status(JobStatus.CREATING)
            layout.write_data(data)
            layout.write_status(JobStatus.READY)
            created_at = layout.created_at()
        except StorageError:
            layout.discard()
            raise
        return cls(layout, JobStatus.READY, set(), created_at, lock)

    @classmethod
    def resume(
        cls,
        layout: JobLayout,
        lock: threading.RLock,
        requeue_in_flight: bool = True,
    ) -> "JobRecord | None":
        """
        Rebuild a job from durable storage after a restart.

        A job still marked CREATING (or missing its status or data) was
        never acknowledged: it is discarded and None is returned. With
        requeue_in_flight, a PROCESSING or TERMINATING job is re-offered
        as READY; TERMINATED jobs always stay TERMINATED.

        Args:
            layout: Layout of an existing job directory.
            lock: The owning registry's lock.
            requeue_in_flight: Whether in-flight jobs go back to READY.

        Returns:
            The resumed record, or None if the job was incomplete.

        Raises:
            StorageError: If the stored state cannot be read or rewritten.
        """
        if not layout.is_complete():
            logger.warning(
                "Discarding incomplete job",
                extra={"job_id": layout.job_id, "reason": "missing artifacts"},
            )
            layout.discard()
            return None

        status = layout.read_status()
        if status == JobStatus.CREATING:
            logger.warning(
                "Discarding incomplete job",
                extra={"job_id": layout.job_id, "reason": "creation interrupted"},
            )
            layout.discard()
            return None

        removed = layout.cleanup_tmp()
        if removed:
            logger.info(
                f"Removed {removed} temporary files",
                extra={"job_id": layout.job_id},
            )

        if requeue_in_flight and status in IN_FLIGHT_STATUSES:
            layout.write_status(JobStatus.READY)
            logger.info(
                "Requeued in-flight job",
                extra={"job_id": layout.job_id, "previous_status": str(status)},
            )
            status = JobStatus.READY

        results = set(layout.list_results())
        return cls(layout, status, results, layout.created_at(), lock)

    @property
    def id(self) -> str:
        return self._layout.job_id

    @property
    def status(self) -> JobStatus:
        return self._status

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def results(self) -> list[str]:
        """Names of the stored results, sorted."""
        with self._lock:
            return sorted(self._results)

    def has_result(self, name: str) -> bool:
        with self._lock:
            return name in self._results

    def data(self) -> bytes:
        """
        Read the job payload.

        Raises:
            StorageError: On I/O failure.
        """
        return self._layout.read_data()

    def result(self, name: str) -> bytes | None:
        """
        Read a result blob.

        Args:
            name: The result name.

        Returns:
            The payload, or None if no result has that name.

        Raises:
            StorageError: If the result exists but cannot be read.
        """
        if not self.has_result(name):
            return None
        return self._layout.read_result(name)

    def claim(self) -> None:
        """READY -> PROCESSING."""
        self._advance(JobStatus.PROCESSING)

    def begin_finish(self) -> None:
        """PROCESSING -> TERMINATING."""
        self._advance(JobStatus.TERMINATING)

    def finalize(self) -> None:
        """TERMINATING -> TERMINATED."""
        self._advance(JobStatus.TERMINATED)

    def transition(self, target: JobStatus) -> None:
        """
        Move the job to the requested status.

        Only the next status in the lifecycle is reachable. READY and
        CREATING are never valid targets for a caller.

        Raises:
            InvalidTransitionError: If the job is not in the predecessor status.
            StorageError: If the new marker cannot be written.
        """
        if target in (JobStatus.CREATING, JobStatus.READY):
            raise InvalidTransitionError(
                self.id,
                expected=_PREDECESSORS.get(target, JobStatus.CREATING),
                actual=self._status,
                target=target,
            )
        self._advance(target)

    def add_result(self, name: str, payload: bytes) -> None:
        """
        Store a named result.

        Args:
            name: The result name, unique within the job.
            payload: The result content.

        Raises:
            InvalidNameError: If the name is not a valid storage key.
            InvalidStateError: If the job is not TERMINATING.
            DuplicateResultError: If the name is already used.
            StorageError: If the write fails; the result set is unchanged.
        """
        validate_name(name)
        with self._lock:
            if self._status != JobStatus.TERMINATING:
                raise InvalidStateError(
                    self.id, required=JobStatus.TERMINATING, actual=self._status
                )
            if name in self._results:
                raise DuplicateResultError(self.id, name)
            self._layout.write_result(name, payload)
            self._results.add(name)

    def _advance(self, target: JobStatus) -> None:
        expected = _PREDECESSORS[target]
        with self._lock:
            if self._status != expected:
                raise InvalidTransitionError(
                    self.id, expected=expected, actual=self._status, target=target
                )
            self._layout.write_status(target)
            self._status = target

    def __repr__(self) -> str:
        return f"JobRecord({self.id}[{self._status}])"
