"""
Message queue API response models.
"""

from pydantic import BaseModel, Field

from recruiter_dashboard.models.domain.queue_domain import QueueTask


class BulkSendResponse(BaseModel):
    queued: int
    tasks: list[QueueTask] = Field(default_factory=list)


class CancelByListResponse(BaseModel):
    list_id: str
    cancelled: int


class QueueStatusResponse(BaseModel):
    pending: int
    processed: int
    failed: int
    job: dict = Field(default_factory=dict, description="Processor status and last run metrics")
    health: dict = Field(default_factory=dict)
