"""Job schemas for request/response validation."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from app.schemas.profiles import DocumentModel


class ContextType(str, Enum):
    """What a job was created from."""

    ORDER = "order"
    SERVICE = "service"


class PricingType(str, Enum):
    """How a job is priced."""

    PER_HOUR = "perHour"
    PER_PIECE = "perPiece"
    FIXED = "fixed"


class JobStatus(str, Enum):
    """Job status enumeration."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobSortField(str, Enum):
    """Sort keys for job listings."""

    DATE = "date"
    PRICE = "price"
    STATUS = "status"
    DURATION = "duration"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class JobLocation(DocumentModel):
    street_and_number: str = ""
    zip: str = ""
    city: str = ""


class Evidence(DocumentModel):
    """Proof of work attached to a job."""

    photos: list[str] | None = None
    notes: str | None = None
    files: list[str] | None = None
    signature_url: str | None = None


class ScheduledWindow(DocumentModel):
    start: datetime
    end: datetime | None = None


class Job(DocumentModel):
    """Job document as stored in the ``jobs`` collection."""

    job_id: str
    context_type: ContextType
    context_id: str
    customer_id: str
    provider_id: str
    title: str
    description: str = ""
    price: float = Field(0.0, ge=0)
    pricing_type: PricingType = PricingType.FIXED
    location: JobLocation = Field(default_factory=JobLocation)
    duration_in_min: int = Field(0, ge=0)
    created_at: datetime
    status: JobStatus = JobStatus.SCHEDULED
    scheduled: ScheduledWindow | None = None
    evidence: Evidence | None = None

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat offset-less timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class JobStats(BaseModel):
    """Summary counts over a provider's jobs."""

    total: int = 0
    scheduled: int = 0
    in_progress: int = 0
    completed: int = 0
    total_earnings: float = 0.0


class JobListResponse(BaseModel):
    """Filtered job list with stats over all jobs."""

    jobs: list[Job]
    total: int
    stats: JobStats
