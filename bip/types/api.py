"""
API request and response type definitions.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from bip.constants import JobStatus


class JobSummary(BaseModel):
    """Job entry in a listing."""

    id: str
    status: JobStatus
    url: str = Field(..., description="Location of the job details")


class JobResponse(BaseModel):
    """Full job details response."""

    id: str
    status: JobStatus
    created_at: datetime
    data: str = Field(..., description="Location of the job payload")
    results: dict[str, str] = Field(
        default_factory=dict, description="Result name -> location of the result"
    )


class JobStatusResponse(BaseModel):
    """Current status of a job."""

    id: str
    status: JobStatus


class JobStatsResponse(BaseModel):
    """Number of jobs per status."""

    stats: dict[str, int]
    total: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    storage: str
    jobs: int
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
