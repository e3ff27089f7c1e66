import math
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional
from enum import StrEnum


class JobState(StrEnum):
    """Queue-side job states as reported by GET /api/jobs/:id."""
    waiting = "waiting"
    active = "active"
    delayed = "delayed"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_inflight(self) -> bool:
        return self in INFLIGHT_STATES


INFLIGHT_STATES = frozenset({JobState.waiting, JobState.active, JobState.delayed})
TERMINAL_STATES = frozenset({JobState.completed, JobState.failed})


class UiStatus(StrEnum):
    """Presentation status derived from the job state."""
    idle = "idle"
    scraping = "scraping"
    running = "running"
    completed = "completed"
    failed = "failed"


class JobSnapshot(BaseModel):
    """One observation of a backend job. Read-only for the client.

    The queue may report progress outside 0..100 for exotic job types;
    values are clamped instead of rejecting the whole snapshot.
    """
    model_config = ConfigDict(extra="ignore")

    jobId: Optional[str] = None
    status: JobState
    progress: Optional[int] = None
    message: Optional[str] = None
    failedReason: Optional[str] = None
    itemCount: Optional[int] = Field(None, ge=0)
    data: Any = None
    result: Any = None
    createdAt: Optional[str] = None
    processedAt: Optional[str] = None
    finishedAt: Optional[str] = None

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, value: Any) -> Optional[int]:
        # Queue libraries report progress as float, numeric string or an
        # arbitrary object; only `status` may reject a snapshot
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number):
            return None
        return max(0, min(100, int(number)))

    def is_terminal(self) -> bool:
        return self.status.is_terminal


class ReconcileStatus(BaseModel):
    """Reactive status object rendered by views.

    Frozen so that each update produces a new value and equality can be used
    to detect unchanged snapshots.
    """
    model_config = ConfigDict(frozen=True)

    identifier: Optional[str] = None
    ui_status: UiStatus = UiStatus.idle
    progress: int = Field(0, ge=0, le=100)
    found_count: int = Field(0, ge=0)
    saved_count: int = Field(0, ge=0)
    message: str = ""

    @property
    def is_active(self) -> bool:
        return self.ui_status in (UiStatus.scraping, UiStatus.running)


# REST payloads of the job-dispatching endpoints

class ScrapeRequest(BaseModel):
    location: str = Field(..., min_length=1)
    radius: Optional[float] = Field(None, gt=0)
    business_type: Optional[str] = None
    max_results: Optional[int] = Field(None, gt=0)


class ScrapeResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jobId: str
    status: str
    message: str = ""
    found: Optional[int] = None
    saved: Optional[int] = None


class BatchEnrichmentRequest(BaseModel):
    count: int = Field(10, ge=1)


class BatchEnrichmentResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    queued: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)


class EnrichmentResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    abstract: Optional[bool] = None
    hunter: Optional[bool] = None
    errors: Optional[List[str]] = None
    contactsFound: Optional[int] = None
