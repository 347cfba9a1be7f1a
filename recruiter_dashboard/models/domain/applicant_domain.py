"""
Applicant domain models.

The backend tracks a nine-state conversation status per applicant; the
dashboard only distinguishes active from disabled. The mapping between the
two is explicit and total (see to_ui_status).
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.utils.ids import normalize_id

logger = get_logger(__name__)


class ConversationStatus(str, Enum):
    """Backend conversation status of an applicant."""

    NOT_INITIATED = "NOT_INITIATED"
    INITIATED = "INITIATED"
    DETAILS_IN_PROGRESS = "DETAILS_IN_PROGRESS"
    DETAILS_COMPLETED = "DETAILS_COMPLETED"
    MANDATE_MATCHING = "MANDATE_MATCHING"
    SHORTLISTED = "SHORTLISTED"
    NO_MATCHES = "NO_MATCHES"
    PLACED = "PLACED"
    RETIRED = "RETIRED"

    @classmethod
    def parse(cls, value: Any) -> "ConversationStatus":
        """Parse a raw backend value; unknown or missing values become NOT_INITIATED."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.NOT_INITIATED
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            logger.warning("Unknown conversation status", status=str(value))
            return cls.NOT_INITIATED


class ApplicantStatus(str, Enum):
    """Simplified status shown on the dashboard."""

    ACTIVE = "active"
    DISABLED = "disabled"

    def toggled(self) -> "ApplicantStatus":
        return ApplicantStatus.DISABLED if self is ApplicantStatus.ACTIVE else ApplicantStatus.ACTIVE


_UI_STATUS: dict[ConversationStatus, ApplicantStatus] = {
    ConversationStatus.NOT_INITIATED: ApplicantStatus.DISABLED,
    ConversationStatus.INITIATED: ApplicantStatus.ACTIVE,
    ConversationStatus.DETAILS_IN_PROGRESS: ApplicantStatus.DISABLED,
    ConversationStatus.DETAILS_COMPLETED: ApplicantStatus.ACTIVE,
    ConversationStatus.MANDATE_MATCHING: ApplicantStatus.ACTIVE,
    ConversationStatus.SHORTLISTED: ApplicantStatus.DISABLED,
    ConversationStatus.NO_MATCHES: ApplicantStatus.DISABLED,
    ConversationStatus.PLACED: ApplicantStatus.DISABLED,
    ConversationStatus.RETIRED: ApplicantStatus.DISABLED,
}

COMPLETED_CONVERSATION_STATUSES = frozenset(
    {ConversationStatus.DETAILS_COMPLETED, ConversationStatus.MANDATE_MATCHING}
)


def to_ui_status(status: ConversationStatus) -> ApplicantStatus:
    """Map a backend conversation status to the dashboard status."""
    return _UI_STATUS[status]


def is_completed_conversation(status: ConversationStatus) -> bool:
    return status in COMPLETED_CONVERSATION_STATUSES


class ApplicantDetails(BaseModel):
    """Profile details collected during the conversation."""

    model_config = ConfigDict(extra="allow")

    age: int | None = None
    gender: str | None = None
    education_qualification: str | None = None
    home_location: str | None = None
    is_currently_employed: bool | None = None
    experience: float | None = None
    industry: str | None = None
    work_location: str | None = None
    last_drawn_salary: float | None = None
    willing_to_relocate: bool | None = None
    expected_salary: float | None = None


class RawApplicant(BaseModel):
    """Applicant record as returned by the backend."""

    model_config = ConfigDict(extra="allow")

    applicant_id: int | str
    name: str | None = None
    phone: str | None = None
    status: ConversationStatus = ConversationStatus.NOT_INITIATED
    details: ApplicantDetails = Field(default_factory=ApplicantDetails)
    response: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _fallback_to_row_id(cls, data: Any) -> Any:
        # Older payloads only carry "id" (the phone-derived identifier)
        if isinstance(data, dict) and data.get("applicant_id") is None and "id" in data:
            data = {**data, "applicant_id": data["id"]}
        return data

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> ConversationStatus:
        return ConversationStatus.parse(value)

    @field_validator("details", mode="before")
    @classmethod
    def _empty_details(cls, value: Any) -> Any:
        return value or {}

    @field_validator("tags", mode="before")
    @classmethod
    def _empty_tags(cls, value: Any) -> Any:
        return value or []


class Applicant(BaseModel):
    """Applicant as presented to the dashboard, cross-linked with its lists."""

    id: str
    name: str
    phone: str
    status: ApplicantStatus
    conversation_status: ConversationStatus
    has_completed_conversation: bool = False
    location: str | None = None
    experience: float | None = None
    last_message: str = ""
    tags: list[str] = Field(default_factory=list)
    list_membership: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_raw(cls, raw: RawApplicant) -> "Applicant":
        applicant_id = normalize_id(raw.applicant_id)
        details = raw.details
        return cls(
            id=applicant_id,
            name=raw.name or _display_name(details),
            phone=raw.phone or applicant_id,
            status=to_ui_status(raw.status),
            conversation_status=raw.status,
            has_completed_conversation=is_completed_conversation(raw.status),
            location=details.home_location,
            experience=details.experience,
            last_message=raw.response or "",
            tags=list(raw.tags),
            created_at=raw.created_at,
            updated_at=raw.updated_at,
        )

    def template_fields(self) -> dict[str, str]:
        """Fields available to message template placeholders."""
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "location": self.location or "",
        }


def _display_name(details: ApplicantDetails) -> str:
    gender = details.gender or "Unknown"
    age = details.age if details.age is not None else "Unknown"
    return f"{gender} - {age} years"


class UserContext(BaseModel):
    """Identity of the recruiter on whose behalf backend calls are made."""

    user_id: str
    access_token: str | None = None
    token_expires_at: datetime | None = None

    def needs_token_refresh(self, buffer_seconds: int, now: datetime | None = None) -> bool:
        """True when the token expires within buffer_seconds."""
        if not self.access_token or self.token_expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at <= now + timedelta(seconds=buffer_seconds)
