"""
Durable storage layout for a single job.

Each job owns one directory under the registry root holding three artifacts:
a one-byte status marker, the immutable data blob, and a directory of named
result blobs. Every file is written atomically (temporary sibling, flush,
fsync, os.replace) so a crash never leaves a partial artifact behind.
"""

import contextlib
import logging
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

from bip.constants import (
    DATA_FILE,
    MAX_NAME_LENGTH,
    NAME_PATTERN,
    RESULTS_DIR,
    STATUS_FILE,
    TMP_PREFIX,
    TMP_SUFFIX,
    JobStatus,
)
from bip.errors import InvalidNameError, StorageError

logger = logging.getLogger(__name__)


def validate_name(name: str) -> str:
    """
    Check that a job id or result name is usable as a file name.

    Args:
        name: The candidate name.

    Returns:
        The name, unchanged.

    Raises:
        InvalidNameError: If the name is empty, too long or has unsafe characters.
    """
    if len(name) > MAX_NAME_LENGTH or NAME_PATTERN.fullmatch(name) is None:
        raise InvalidNameError(name)
    return name


def _is_tmp(name: str) -> bool:
    return name.startswith(TMP_PREFIX) and name.endswith(TMP_SUFFIX)


class JobLayout:
    """
    Paths and atomic file operations for one job directory.

    All I/O failures surface as StorageError with the OSError chained.
    """

    def __init__(self, root: Path, job_id: str, fsync: bool = True):
        """
        Initialize the layout.

        Args:
            root: The registry root directory.
            job_id: The job identifier (already validated).
            fsync: Whether writes are fsynced before being acknowledged.
        """
        self.job_id = job_id
        self.path = Path(root) / job_id
        self._fsync = fsync

    @property
    def status_path(self) -> Path:
        return self.path / STATUS_FILE

    @property
    def data_path(self) -> Path:
        return self.path / DATA_FILE

    @property
    def results_path(self) -> Path:
        return self.path / RESULTS_DIR

    def result_path(self, name: str) -> Path:
        return self.results_path / name

    def exists(self) -> bool:
        """Check whether the job directory exists."""
        return self.path.is_dir()

    def is_complete(self) -> bool:
        """Check that the status and data artifacts are both present."""
        return self.status_path.is_file() and self.data_path.is_file()

    def create_dirs(self) -> None:
        """Create the job directory and its results directory."""
        try:
            self.path.mkdir(parents=True)
            self.results_path.mkdir()
            self._sync_dir(self.path.parent)
        except OSError as exc:
            raise StorageError(
                f"Unable to create directory for job '{self.job_id}': {exc}"
            ) from exc

    def write_status(self, status: JobStatus) -> None:
        """Durably write the status marker."""
        self._atomic_write(self.status_path, bytes([status.marker]))

    def read_status(self) -> JobStatus:
        """Read and decode the status marker."""
        content = self._read(self.status_path)
        if len(content) != 1:
            raise StorageError(
                f"Corrupt status marker for job '{self.job_id}': {content!r}"
            )
        try:
            return JobStatus.from_marker(content[0])
        except ValueError as exc:
            raise StorageError(
                f"Corrupt status marker for job '{self.job_id}': {exc}"
            ) from exc

    def write_data(self, data: bytes) -> None:
        self._atomic_write(self.data_path, data)

    def read_data(self) -> bytes:
        return self._read(self.data_path)

    def write_result(self, name: str, payload: bytes) -> None:
        self._atomic_write(self.result_path(name), payload)

    def read_result(self, name: str) -> bytes:
        return self._read(self.result_path(name))

    def list_results(self) -> list[str]:
        """List the persisted result names, skipping temporary files."""
        try:
            return sorted(
                entry.name
                for entry in self.results_path.iterdir()
                if entry.is_file() and not _is_tmp(entry.name)
            )
        except OSError as exc:
            raise StorageError(
                f"Unable to list results of job '{self.job_id}': {exc}"
            ) from exc

    def created_at(self) -> datetime:
        """
        Creation time of the job.

        The data artifact is written once at creation and never modified,
        so its modification time is the creation time.
        """
        try:
            mtime_ns = self.data_path.stat().st_mtime_ns
        except OSError as exc:
            raise StorageError(
                f"Unable to stat data of job '{self.job_id}': {exc}"
            ) from exc
        return datetime.fromtimestamp(mtime_ns / 1_000_000_000, tz=timezone.utc)

    def cleanup_tmp(self) -> int:
        """
        Remove temporary files left by interrupted writes.

        Returns:
            Number of files removed.
        """
        removed = 0
        for directory in (self.path, self.results_path):
            if not directory.is_dir():
                continue
            for entry in directory.iterdir():
                if entry.is_file() and _is_tmp(entry.name):
                    try:
                        entry.unlink()
                    except OSError as exc:
                        raise StorageError(
                            f"Unable to remove temporary file '{entry}': {exc}"
                        ) from exc
                    removed += 1
        return removed

    def discard(self) -> None:
        """Remove the whole job directory, logging when that fails."""
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning(
                "Unable to remove job directory",
                extra={"job_id": self.job_id, "path": str(self.path), "error": str(exc)},
            )

    def _read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Unable to read '{path}': {exc}") from exc

    def _atomic_write(self, path: Path, content: bytes) -> None:
        tmp_path = path.with_name(
            f"{TMP_PREFIX}{path.name}.{uuid.uuid4().hex}{TMP_SUFFIX}"
        )
        try:
            with open(tmp_path, "wb") as fh:
                fh.write(content)
                fh.flush()
                if self._fsync:
                    os.fsync(fh.fileno())
            os.replace(tmp_path, path)
            self._sync_dir(path.parent)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Unable to write '{path}': {exc}") from exc

    def _sync_dir(self, directory: Path) -> None:
        # Directory fsync makes the rename itself durable; POSIX only
        if not self._fsync or os.name != "posix":
            return
        fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
