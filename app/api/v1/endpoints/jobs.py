"""Job endpoints for providers."""

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUid, JobServiceDep
from app.schemas.jobs import JobListResponse, JobSortField, JobStatus, SortOrder

router = APIRouter()


@router.get(
    "/jobs",
    response_model=JobListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Jobs"],
    summary="List own jobs",
)
async def list_my_jobs(
    uid: CurrentUid,
    job_service: JobServiceDep,
    status_filter: JobStatus | None = Query(None, alias="status", description="Filter by status"),
    search: str | None = Query(None, max_length=200, description="Search title, description or city"),
    sort_by: JobSortField = Query(JobSortField.DATE, description="Sort key"),
    order: SortOrder = Query(SortOrder.DESC, description="Sort direction"),
) -> JobListResponse:
    """
    List the jobs assigned to the signed-in provider.

    ``total`` and ``stats`` always cover all of the provider's jobs, whatever
    the filters are.
    """
    return await job_service.list_provider_jobs(
        uid,
        status=status_filter,
        search=search,
        sort_by=sort_by,
        order=order,
    )
