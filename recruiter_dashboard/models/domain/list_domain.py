"""
Job list domain models.

A list's member_ids are the authoritative membership data; the matched
applicants and counts on JobList are derived during reconciliation.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from recruiter_dashboard.utils.ids import normalize_id


class ListStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"

    @classmethod
    def parse(cls, value: Any) -> "ListStatus":
        """Lenient parse: missing status means active, case is ignored."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.ACTIVE
        return cls(str(value).strip().upper())


class RawJobList(BaseModel):
    """Recruiter list as returned by the backend."""

    model_config = ConfigDict(extra="allow")

    id: int | str
    list_name: str = ""
    list_description: str | None = None
    applicants: list[int | str] = Field(default_factory=list)
    status: ListStatus = ListStatus.ACTIVE
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> ListStatus:
        return ListStatus.parse(value)

    @field_validator("applicants", mode="before")
    @classmethod
    def _empty_applicants(cls, value: Any) -> Any:
        return value or []


class JobList(BaseModel):
    """Recruiter list with membership derived from the current applicant set."""

    id: str
    name: str
    description: str | None = None
    status: ListStatus = ListStatus.ACTIVE
    member_ids: list[str] = Field(default_factory=list)
    applicant_ids: list[str] = Field(default_factory=list)
    derived_candidate_count: int = 0
    derived_completed_count: int = 0
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _canonical_id(cls, value: Any) -> str:
        return normalize_id(value)


class ListRemovalResult(BaseModel):
    """Outcome of a best-effort list delete/archive call."""

    success: bool
    message: str
    deleted: bool = False
    archived: bool = False
    backend_limitation: bool = False
