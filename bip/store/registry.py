"""
Job registry.
Implements the collection, recovery and claim operations of the job queue.
"""

import logging
import threading
from pathlib import Path

from bip.constants import JobStatus
from bip.errors import (
    InvalidNameError,
    JobAlreadyExistsError,
    JobNotFoundError,
    StorageError,
)
from bip.store.job import JobRecord
from bip.store.layout import JobLayout, validate_name

logger = logging.getLogger(__name__)


class Registry:
    """
    Durable, queryable collection of every job known to the service.

    Implements:
    - Job creation with id uniqueness
    - Recovery of all jobs from the root directory at start-up
    - Claim of the oldest READY job (creation order)
    - Registry-mediated transitions and result writes

    One re-entrant lock guards the mapping and every record's mutable state.
    Jobs are kept in creation order, which is also the claim order.
    """

    def __init__(
        self,
        root: Path,
        fsync: bool = True,
    ):
        """
        Initialize an empty registry over a root directory.

        Use Registry.recover to load the jobs already stored under root.

        Args:
            root: The durable root directory.
            fsync: Whether writes are fsynced before being acknowledged.
        """
        self.root = Path(root)
        self._fsync = fsync
        self._lock = threading.RLock()
        self._jobs: dict[str, JobRecord] = {}

    @classmethod
    def recover(
        cls,
        root: Path,
        fsync: bool = True,
        requeue_in_flight: bool = True,
    ) -> "Registry":
        """
        Build a registry from the jobs stored under root.

        Creates root if missing. Each job directory is resumed; incomplete
        jobs are discarded. Jobs are ordered by creation time, ties broken
        by id.

        Creation time is the data file mtime, so the restored order is only
        as fine as the filesystem timestamps: on filesystems with one or two
        second resolution, jobs created within the same tick come back in id
        order.

        Args:
            root: The durable root directory.
            fsync: Whether writes are fsynced before being acknowledged.
            requeue_in_flight: Whether in-flight jobs go back to READY.

        Returns:
            The populated registry.

        Raises:
            StorageError: If root or a job cannot be read.
        """
        registry = cls(root, fsync=fsync)
        root = registry.root

        try:
            root.mkdir(parents=True, exist_ok=True)
            entries = sorted(entry.name for entry in root.iterdir() if entry.is_dir())
        except OSError as exc:
            raise StorageError(f"Unable to scan root '{root}': {exc}") from exc

        records = []
        for name in entries:
            try:
                validate_name(name)
            except InvalidNameError:
                logger.warning(
                    "Skipping unexpected directory",
                    extra={"path": str(root / name)},
                )
                continue
            record = JobRecord.resume(
                registry._layout(name),
                registry._lock,
                requeue_in_flight=requeue_in_flight,
            )
            if record is not None:
                records.append(record)

        records.sort(key=lambda record: (record.created_at, record.id))
        registry._jobs = {record.id: record for record in records}

        logger.info(
            f"Recovered {len(records)} jobs",
            extra={"root": str(root), "job_count": len(records)},
        )
        return registry

    def create_job(self, job_id: str, data: bytes) -> JobRecord:
        """
        Create a new job.

        Args:
            job_id: Caller-chosen unique identifier.
            data: The job payload.

        Returns:
            The new job, in READY status.

        Raises:
            InvalidNameError: If the id is not a valid storage key.
            JobAlreadyExistsError: If the id is already used.
            StorageError: If the job could not be durably written.
        """
        validate_name(job_id)
        with self._lock:
            if job_id in self._jobs:
                raise JobAlreadyExistsError(job_id)

            layout = self._layout(job_id)
            if layout.exists():
                # Unregistered directory: leftover of a creation that never completed
                logger.warning(
                    "Removing leftover job directory",
                    extra={"job_id": job_id},
                )
                layout.discard()

            record = JobRecord.create(layout, data, self._lock)
            self._jobs[job_id] = record

        logger.info(
            "Created new job",
            extra={"job_id": job_id, "size": len(data)},
        )
        return record

    def find_job(self, job_id: str) -> JobRecord | None:
        """
        Get a job by id.

        Returns:
            The JobRecord or None if not found.
        """
        with self._lock:
            return self._jobs.get(job_id)

    def get_job(self, job_id: str) -> JobRecord:
        """
        Get a job by id.

        Raises:
            JobNotFoundError: If no job has that id.
        """
        record = self.find_job(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    def list_jobs(self) -> list[str]:
        """List job ids in creation order."""
        with self._lock:
            return list(self._jobs)

    def list_records(self) -> list[JobRecord]:
        """List jobs in creation order."""
        with self._lock:
            return list(self._jobs.values())

    def claim_next(self) -> JobRecord | None:
        """
        Claim the oldest READY job.

        This is the critical path for job distribution: the scan and the
        transition happen under the registry lock, so a job is handed to
        exactly one caller.

        Returns:
            The claimed job, now PROCESSING, or None if no job is READY.

        Raises:
            StorageError: If the new status cannot be written; the job stays READY.
        """
        with self._lock:
            for record in self._jobs.values():
                if record.status == JobStatus.READY:
                    record.claim()
                    logger.info("Claimed job", extra={"job_id": record.id})
                    return record
        return None

    def transition(self, job_id: str, target: JobStatus) -> JobRecord:
        """
        Move a job to the next status.

        Raises:
            JobNotFoundError: If no job has that id.
            InvalidTransitionError: If target is not the next status.
            StorageError: If the new status cannot be written.
        """
        with self._lock:
            record = self.get_job(job_id)
            record.transition(target)

        logger.info(
            "Job status updated",
            extra={"job_id": job_id, "status": str(target)},
        )
        return record

    def add_result(self, job_id: str, name: str, payload: bytes) -> JobRecord:
        """
        Store a named result for a TERMINATING job.

        Raises:
            JobNotFoundError: If no job has that id.
            InvalidNameError: If the name is not a valid storage key.
            InvalidStateError: If the job is not TERMINATING.
            DuplicateResultError: If the name is already used.
            StorageError: If the result cannot be written.
        """
        with self._lock:
            record = self.get_job(job_id)
            record.add_result(name, payload)

        logger.info(
            "Result added",
            extra={"job_id": job_id, "result": name, "size": len(payload)},
        )
        return record

    def get_job_stats(self) -> dict[str, int]:
        """
        Get job statistics by status.

        Returns:
            Dictionary of status -> count, every caller-visible status included.
        """
        stats = {
            status.value: 0 for status in JobStatus if status != JobStatus.CREATING
        }
        with self._lock:
            for record in self._jobs.values():
                stats[record.status.value] += 1
        return stats

    def _layout(self, job_id: str) -> JobLayout:
        return JobLayout(self.root, job_id, fsync=self._fsync)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs
