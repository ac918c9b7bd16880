"""
Job management routes.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool

from bip.api.dependencies import RegistryDep
from bip.constants import (
    API_V1_PREFIX,
    OCTET_STREAM,
    SPAN_ADD_RESULT,
    SPAN_CLAIM_NEXT,
    SPAN_CREATE_JOB,
    SPAN_TRANSITION,
    JobStatus,
)
from bip.observability.metrics import get_metrics
from bip.observability.tracing import get_tracer
from bip.store import JobRecord
from bip.types.api import (
    ErrorResponse,
    JobResponse,
    JobStatsResponse,
    JobStatusResponse,
    JobSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])

_ERRORS = {
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def _job_url(request: Request, job_id: str) -> str:
    return str(request.url_for("get_job", job_id=job_id))


def _result_urls(request: Request, job: JobRecord) -> dict[str, str]:
    return {
        name: str(request.url_for("get_result", job_id=job.id, name=name))
        for name in job.results
    }


def _job_to_response(request: Request, job: JobRecord) -> JobResponse:
    """Convert a JobRecord to a JobResponse."""
    return JobResponse(
        id=job.id,
        status=job.status,
        created_at=job.created_at,
        data=str(request.url_for("get_data", job_id=job.id)),
        results=_result_urls(request, job),
    )


@router.get(
    "",
    response_model=list[JobSummary],
    summary="List jobs",
    description="List every job in creation order.",
)
async def list_jobs(request: Request, registry: RegistryDep) -> list[JobSummary]:
    return [
        JobSummary(id=job.id, status=job.status, url=_job_url(request, job.id))
        for job in registry.list_records()
    ]


@router.put(
    "",
    response_model=JobResponse,
    summary="Claim the next ready job",
    description="Move the oldest ready job to 'processing' and return it. "
    "Responds 204 when no job is ready.",
    responses={
        status.HTTP_204_NO_CONTENT: {"description": "No job is ready"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def claim_next(request: Request, registry: RegistryDep):
    """
    Claim the next job.

    Returns:
        JobResponse for the claimed job, or an empty 204 response.
    """
    with get_tracer().start_as_current_span(SPAN_CLAIM_NEXT) as span:
        job = await run_in_threadpool(registry.claim_next)
        if job is None:
            span.set_attribute("claimed", False)
            return Response(status_code=status.HTTP_204_NO_CONTENT)
        span.set_attribute("claimed", True)
        span.set_attribute("job_id", job.id)

    get_metrics().record_job_claimed()
    logger.info("Job is processing", extra={"job_id": job.id})
    return _job_to_response(request, job)


@router.get(
    "/stats/summary",
    response_model=JobStatsResponse,
    summary="Get job statistics",
    description="Count jobs per status.",
)
async def get_job_stats(registry: RegistryDep) -> JobStatsResponse:
    stats = registry.get_job_stats()
    return JobStatsResponse(stats=stats, total=sum(stats.values()))


@router.post(
    "/{job_id}",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a job",
    description="Create a job under a caller-chosen id. The request body is the job data.",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def create_job(
    job_id: str,
    request: Request,
    response: Response,
    registry: RegistryDep,
) -> JobResponse:
    """
    Create a new job.

    Args:
        job_id: The job identifier.
        request: The request, whose raw body is the job data.
        response: The outgoing response, to set the Location header.
        registry: The job registry.

    Returns:
        JobResponse for the new job, in 'ready' status.

    Raises:
        HTTPException: If the body is empty.
    """
    data = await request.body()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing data",
        )

    with get_tracer().start_as_current_span(SPAN_CREATE_JOB) as span:
        span.set_attribute("job_id", job_id)
        span.set_attribute("size", len(data))
        job = await run_in_threadpool(registry.create_job, job_id, data)

    get_metrics().record_job_created()
    response.headers["Location"] = _job_url(request, job.id)
    logger.info("Job added", extra={"job_id": job.id})
    return _job_to_response(request, job)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job details",
    responses=_ERRORS,
)
async def get_job(job_id: str, request: Request, registry: RegistryDep) -> JobResponse:
    return _job_to_response(request, registry.get_job(job_id))


@router.get(
    "/{job_id}/data",
    summary="Get job data",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {"content": {OCTET_STREAM: {}}},
        **_ERRORS,
    },
)
async def get_data(job_id: str, registry: RegistryDep) -> Response:
    job = registry.get_job(job_id)
    data = await run_in_threadpool(job.data)
    return Response(content=data, media_type=OCTET_STREAM)


@router.get(
    "/{job_id}/status",
    response_model=JobStatusResponse,
    summary="Get job status",
    responses=_ERRORS,
)
async def get_status(job_id: str, registry: RegistryDep) -> JobStatusResponse:
    job = registry.get_job(job_id)
    return JobStatusResponse(id=job.id, status=job.status)


@router.put(
    "/{job_id}/status",
    response_model=JobStatusResponse,
    summary="Update job status",
    description="Move the job to the status named in the request body: "
    "'processing', 'terminating' or 'terminated'.",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        **_ERRORS,
    },
)
async def update_status(
    job_id: str,
    request: Request,
    registry: RegistryDep,
) -> JobStatusResponse:
    """
    Transition a job.

    Raises:
        HTTPException: If the body does not name a known status.
    """
    raw = (await request.body()).decode("utf-8", errors="replace").strip()
    try:
        target = JobStatus(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Non-viable status: {raw!r}",
        ) from None

    with get_tracer().start_as_current_span(SPAN_TRANSITION) as span:
        span.set_attribute("job_id", job_id)
        span.set_attribute("status", target.value)
        job = await run_in_threadpool(registry.transition, job_id, target)

    get_metrics().record_transition(target.value)
    logger.info(
        "Job status set",
        extra={"job_id": job_id, "status": target.value},
    )
    return JobStatusResponse(id=job.id, status=job.status)


@router.get(
    "/{job_id}/results",
    response_model=dict[str, str],
    summary="List job results",
    description="Map each result name to its location.",
    responses=_ERRORS,
)
async def list_results(
    job_id: str,
    request: Request,
    registry: RegistryDep,
) -> dict[str, str]:
    return _result_urls(request, registry.get_job(job_id))


@router.get(
    "/{job_id}/results/{name}",
    summary="Get a job result",
    response_class=Response,
    responses={
        status.HTTP_200_OK: {"content": {OCTET_STREAM: {}}},
        **_ERRORS,
    },
)
async def get_result(job_id: str, name: str, registry: RegistryDep) -> Response:
    """
    Get a result blob.

    Raises:
        HTTPException: If the job has no result with that name.
    """
    job = registry.get_job(job_id)
    content = await run_in_threadpool(job.result, name)
    if content is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Result '{name}' not found",
        )
    return Response(content=content, media_type=OCTET_STREAM)


@router.put(
    "/{job_id}/results/{name}",
    status_code=status.HTTP_201_CREATED,
    summary="Store a job result",
    description="Store the request body as a named result. "
    "Only allowed while the job is 'terminating'.",
    response_class=Response,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        **_ERRORS,
    },
)
async def put_result(
    job_id: str,
    name: str,
    request: Request,
    registry: RegistryDep,
) -> Response:
    payload = await request.body()

    with get_tracer().start_as_current_span(SPAN_ADD_RESULT) as span:
        span.set_attribute("job_id", job_id)
        span.set_attribute("result", name)
        await run_in_threadpool(registry.add_result, job_id, name, payload)

    get_metrics().record_result_added()
    return Response(
        status_code=status.HTTP_201_CREATED,
        headers={
            "Location": str(request.url_for("get_result", job_id=job_id, name=name))
        },
    )
