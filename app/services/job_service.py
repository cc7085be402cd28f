"""Job listing logic for provider dashboards."""

from collections.abc import Callable, Iterable
from typing import Any

from app.repositories.job_repository import JobRepository
from app.schemas.jobs import Job, JobListResponse, JobSortField, JobStats, JobStatus, SortOrder

_SORT_KEYS: dict[JobSortField, Callable[[Job], Any]] = {
    JobSortField.DATE: lambda job: job.created_at,
    JobSortField.PRICE: lambda job: job.price,
    JobSortField.STATUS: lambda job: job.status.value,
    JobSortField.DURATION: lambda job: job.duration_in_min,
}


def _matches_search(job: Job, needle: str) -> bool:
    return (
        needle in job.title.lower()
        or needle in job.description.lower()
        or needle in job.location.city.lower()
    )


def filter_and_sort_jobs(
    jobs: Iterable[Job],
    status: JobStatus | None = None,
    search: str | None = None,
    sort_by: JobSortField = JobSortField.DATE,
    order: SortOrder = SortOrder.DESC,
) -> list[Job]:
    """
    Filter jobs by status and search text, then sort them.

    Args:
        jobs: Jobs to filter
        status: Only keep jobs in this status; None keeps all
        search: Case-insensitive text matched against title, description and city
        sort_by: Sort key
        order: Sort direction

    Returns:
        New list; the input is not modified
    """
    result = list(jobs)

    if status is not None:
        result = [job for job in result if job.status == status]

    needle = (search or "").strip().lower()
    if needle:
        result = [job for job in result if _matches_search(job, needle)]

    result.sort(key=_SORT_KEYS[sort_by], reverse=order == SortOrder.DESC)
    return result


def compute_job_stats(jobs: Iterable[Job]) -> JobStats:
    """Count jobs per status and sum earnings of completed ones."""
    stats = JobStats()
    for job in jobs:
        stats.total += 1
        if job.status == JobStatus.SCHEDULED:
            stats.scheduled += 1
        elif job.status == JobStatus.IN_PROGRESS:
            stats.in_progress += 1
        elif job.status == JobStatus.COMPLETED:
            stats.completed += 1
            stats.total_earnings += job.price
    return stats


class JobService:
    """Service for provider job listings."""

    def __init__(self, repository: JobRepository):
        self.repository = repository

    async def list_provider_jobs(
        self,
        provider_uid: str,
        status: JobStatus | None = None,
        search: str | None = None,
        sort_by: JobSortField = JobSortField.DATE,
        order: SortOrder = SortOrder.DESC,
    ) -> JobListResponse:
        """List a provider's jobs; stats always cover the unfiltered list."""
        jobs = await self.repository.list_by_provider(provider_uid)
        filtered = filter_and_sort_jobs(jobs, status=status, search=search, sort_by=sort_by, order=order)
        return JobListResponse(jobs=filtered, total=len(jobs), stats=compute_job_stats(jobs))
