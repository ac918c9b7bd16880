"""
Type definitions for the job queue API.
"""

from bip.types.api import (
    ErrorResponse,
    HealthResponse,
    JobResponse,
    JobStatsResponse,
    JobStatusResponse,
    JobSummary,
)

__all__ = [
    "JobSummary",
    "JobResponse",
    "JobStatusResponse",
    "JobStatsResponse",
    "HealthResponse",
    "ErrorResponse",
]
