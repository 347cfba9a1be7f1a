from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from recruiter_dashboard.models.domain.applicant_domain import Applicant
from recruiter_dashboard.models.domain.list_domain import JobList


class RefreshState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class Snapshot(BaseModel):
    """Consistent, filtered view of applicants and lists published to consumers."""

    model_config = ConfigDict(frozen=True)

    applicants: list[Applicant] = Field(default_factory=list)
    lists: list[JobList] = Field(default_factory=list)
    user_id: str | None = None
    refreshed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def find_applicant(self, applicant_id: str) -> Applicant | None:
        return next((a for a in self.applicants if a.id == applicant_id), None)

    def find_list(self, list_id: str) -> JobList | None:
        return next((job_list for job_list in self.lists if job_list.id == list_id), None)
