"""
Message queue API request models.
"""

from pydantic import BaseModel, Field

from recruiter_dashboard.models.domain.queue_domain import MessageAction


class BulkSendRequest(BaseModel):
    """Queue one message per candidate."""

    candidate_ids: list[str | int] = Field(..., min_length=1, description="Applicant IDs")
    action: MessageAction = Field(default=MessageAction.NUDGE, description="Message template")


class CancelByListRequest(BaseModel):
    list_id: str = Field(..., min_length=1, description="List whose members' messages are cancelled")
