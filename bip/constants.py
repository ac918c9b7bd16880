"""
Application constants.
Centralized location for all constant values used across the application.
"""

import re
from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions (strictly forward, one step at a time):
    - CREATING -> READY (creation finished, never observed by callers)
    - READY -> PROCESSING (claimed by a consumer)
    - PROCESSING -> TERMINATING (consumer starts reporting results)
    - TERMINATING -> TERMINATED (consumer commits)
    """

    CREATING = "creating"
    READY = "ready"
    PROCESSING = "processing"
    TERMINATING = "terminating"
    TERMINATED = "terminated"

    @property
    def marker(self) -> int:
        """One-byte durable marker for this status."""
        return STATUS_MARKERS[self]

    # Lifecycle order, not alphabetical
    def __lt__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.marker < other.marker

    def __le__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.marker <= other.marker

    def __gt__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.marker > other.marker

    def __ge__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.marker >= other.marker

    @classmethod
    def from_marker(cls, marker: int) -> "JobStatus":
        """Decode a durable marker. Raises ValueError on unknown values."""
        for status, value in STATUS_MARKERS.items():
            if value == marker:
                return status
        raise ValueError(f"Unknown status marker: {marker}")


# Durable markers, also the total order of the lifecycle
STATUS_MARKERS: dict[JobStatus, int] = {
    JobStatus.CREATING: 0,
    JobStatus.READY: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.TERMINATING: 3,
    JobStatus.TERMINATED: 4,
}

# Statuses a resumed job re-offers as READY when requeueing in-flight work
IN_FLIGHT_STATUSES = frozenset({JobStatus.PROCESSING, JobStatus.TERMINATING})

# Durable layout
STATUS_FILE = "status"
DATA_FILE = "data"
RESULTS_DIR = "results"
TMP_PREFIX = "."
TMP_SUFFIX = ".tmp"

# Job ids and result names end up as file names
NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
MAX_NAME_LENGTH = 255

# Default values
DEFAULT_DATA_ROOT = "./bip_data"
DEFAULT_API_PORT = 6798

# API constants
API_V1_PREFIX = "/v1"
OCTET_STREAM = "application/octet-stream"

# Metrics names
METRIC_JOBS_BY_STATUS = "bip_jobs"
METRIC_JOBS_CREATED = "bip_jobs_created_total"
METRIC_JOBS_CLAIMED = "bip_jobs_claimed_total"
METRIC_TRANSITIONS = "bip_job_transitions_total"
METRIC_RESULTS_ADDED = "bip_results_added_total"
METRIC_STORAGE_ERRORS = "bip_storage_errors_total"
METRIC_API_REQUESTS = "bip_api_requests_total"
METRIC_API_LATENCY = "bip_api_request_latency_seconds"

# Trace span names
SPAN_CREATE_JOB = "create_job"
SPAN_CLAIM_NEXT = "claim_next"
SPAN_TRANSITION = "transition_job"
SPAN_ADD_RESULT = "add_result"
SPAN_RECOVER = "recover_registry"
