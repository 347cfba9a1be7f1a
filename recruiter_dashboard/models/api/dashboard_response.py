"""
Dashboard API response models.
Used by routes for output formatting.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from recruiter_dashboard.models.domain.applicant_domain import Applicant
from recruiter_dashboard.models.domain.list_domain import JobList


class SnapshotResponse(BaseModel):
    """Current dashboard view."""

    state: str = Field(..., description="Refresh state: idle, loading, ready or error")
    applicants: list[Applicant] = Field(default_factory=list)
    lists: list[JobList] = Field(default_factory=list)
    refreshed_at: datetime | None = Field(None, description="When the snapshot was built")
    last_error: str | None = Field(None, description="Last refresh error, if any")


class TargetOutcomeResponse(BaseModel):
    list_id: str | None = None
    applicant_ids: list[str] = Field(default_factory=list)
    success: bool
    error: str | None = None
    action_id: str | None = None
    status: str | None = None


class BulkActionResponse(BaseModel):
    """Aggregate result of a bulk action."""

    action: str
    attempted: int = Field(..., description="Mutation groups attempted")
    succeeded: int = Field(..., description="Mutation groups that succeeded")
    failed: int = Field(..., description="Mutation groups that failed")
    outcomes: list[TargetOutcomeResponse] = Field(default_factory=list)
    rejected_ids: list[str] = Field(default_factory=list, description="Malformed IDs not sent")
    excluded_ids: list[str] = Field(
        default_factory=list, description="Applicants in no list for a list-scoped action"
    )
    local_only: bool = False
    refreshed: bool = False
    refresh_error: str | None = None
    queued: int = Field(default=0, description="Messages added to the local queue")


class CreateListResponse(BaseModel):
    list_id: str | None = None
    name: str
    applicant_ids: list[str]
    invalid_entries: list[str] = Field(default_factory=list)
    refreshed: bool = False


class RenameListResponse(BaseModel):
    list_id: str
    name: str
    refreshed: bool
