"""
Dashboard API request models.
Used by routes for input validation.
"""

from pydantic import BaseModel, Field

from recruiter_dashboard.services.bulk_action_service import BulkAction, TargetEntity


class BulkActionRequest(BaseModel):
    """Request for applying one action to a selection."""

    action: BulkAction = Field(..., description="Action to apply")
    selected_ids: list[str | int] = Field(..., min_length=1, description="Applicant or list IDs")
    list_id: str | None = Field(
        default=None, description="Target list; omitted means all lists for remove_from_list"
    )
    confirmed: bool = Field(default=False, description="Required for delete and remove_from_list")
    entity: TargetEntity = Field(
        default=TargetEntity.APPLICANT, description="What selected_ids refer to (delete only)"
    )


class CreateListRequest(BaseModel):
    """Request for creating a list from phone numbers."""

    name: str = Field(..., min_length=1, max_length=200, description="List name")
    phone_numbers: str | list[str] = Field(
        ..., description="Comma separated phone numbers, or a list of them"
    )
    description: str | None = Field(default=None, max_length=1000, description="List description")


class RenameListRequest(BaseModel):
    """Request for renaming a list."""

    name: str = Field(..., min_length=1, max_length=200, description="New list name")
    description: str | None = Field(default=None, max_length=1000, description="New description")
