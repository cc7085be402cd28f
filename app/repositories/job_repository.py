"""Firestore access for job documents."""

from typing import Protocol

import structlog
from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from app.schemas.jobs import Job

logger = structlog.get_logger(__name__)

JOBS_COLLECTION = "jobs"


class JobRepository(Protocol):
    async def list_by_provider(self, provider_id: str) -> list[Job]:  # pragma: no cover - Protocol
        ...


class FirestoreJobRepository:
    """``jobs`` collection in Firestore."""

    def __init__(self, client: AsyncClient) -> None:
        self._col = client.collection(JOBS_COLLECTION)

    async def list_by_provider(self, provider_id: str) -> list[Job]:
        query = self._col.where(filter=FieldFilter("providerId", "==", provider_id))
        jobs: list[Job] = []
        async for snapshot in query.stream():
            data = {"jobId": snapshot.id, **(snapshot.to_dict() or {})}
            try:
                jobs.append(Job.model_validate(data))
            except ValidationError as e:
                # One malformed document must not hide the rest of the list
                logger.warning("job_document_invalid", job_id=snapshot.id, error=str(e))
        return jobs
