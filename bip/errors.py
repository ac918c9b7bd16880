"""
Job queue error taxonomy.

Every failure the core reports derives from JobError. Client errors
(not found, already exists, invalid transition/state, duplicate result,
invalid name) are recoverable by the caller; StorageError signals an
underlying I/O failure and is an operational problem.
"""

from bip.constants import JobStatus


class JobError(Exception):
    """Base class for job queue errors."""


class JobNotFoundError(JobError):
    """No job is registered under the given id."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job '{job_id}' not found")


class JobAlreadyExistsError(JobError):
    """A job with the given id already exists."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job '{job_id}' already exists")


class InvalidTransitionError(JobError):
    """A status transition was attempted from the wrong status."""

    def __init__(
        self,
        job_id: str,
        expected: JobStatus,
        actual: JobStatus,
        target: JobStatus,
    ):
        self.job_id = job_id
        self.expected = expected
        self.actual = actual
        self.target = target
        super().__init__(
            f"Job '{job_id}' should be in state '{expected}' to move to "
            f"'{target}'. Currently in state '{actual}'"
        )


class InvalidStateError(JobError):
    """An operation is only valid while the job is in a specific status."""

    def __init__(self, job_id: str, required: JobStatus, actual: JobStatus):
        self.job_id = job_id
        self.required = required
        self.actual = actual
        super().__init__(
            f"Job '{job_id}' should be in state '{required}'. "
            f"Currently in state '{actual}'"
        )


class DuplicateResultError(JobError):
    """A result name was reused."""

    def __init__(self, job_id: str, name: str):
        self.job_id = job_id
        self.name = name
        super().__init__(f"Result '{name}' already exists for job '{job_id}'")


class InvalidNameError(JobError, ValueError):
    """A job id or result name cannot be used as a storage key."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Invalid name: {name!r}")


class StorageError(JobError):
    """Durable storage I/O failed."""
