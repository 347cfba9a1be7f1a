"""
Message queue domain models.

A QueueTask moves from pending to exactly one terminal status (processed
or failed) and is never touched again once terminal.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from recruiter_dashboard.utils.ids import normalize_id


class QueueTaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({QueueTaskStatus.PROCESSED, QueueTaskStatus.FAILED})


class MessageAction(str, Enum):
    """Outbound message actions a recruiter can queue."""

    NUDGE = "nudge"
    INTRO = "intro"


class QueueTask(BaseModel):
    queue_id: str = Field(default_factory=lambda: str(uuid4()))
    candidate_id: str
    # Plain string: a task may reference a template that no longer exists
    action: str
    status: QueueTaskStatus = QueueTaskStatus.PENDING
    added_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    processed_at: datetime | None = None
    failure_reason: str | None = None

    @field_validator("candidate_id", mode="before")
    @classmethod
    def _canonical_candidate(cls, value: Any) -> str:
        return normalize_id(value)

    @field_validator("action", mode="before")
    @classmethod
    def _action_value(cls, value: Any) -> str:
        return value.value if isinstance(value, MessageAction) else str(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def mark_processed(self, now: datetime) -> None:
        if self.is_terminal:
            raise ValueError(f"Queue task {self.queue_id} is already {self.status.value}")
        self.status = QueueTaskStatus.PROCESSED
        self.processed_at = now

    def mark_failed(self, reason: str) -> None:
        if self.is_terminal:
            raise ValueError(f"Queue task {self.queue_id} is already {self.status.value}")
        self.status = QueueTaskStatus.FAILED
        self.failure_reason = reason


class QueueDocument(BaseModel):
    """Everything the queue persists, read and written as one unit."""

    tasks: list[QueueTask] = Field(default_factory=list)
    templates: dict[str, str] = Field(default_factory=dict)

    def pending(self) -> list[QueueTask]:
        return [task for task in self.tasks if task.status is QueueTaskStatus.PENDING]
