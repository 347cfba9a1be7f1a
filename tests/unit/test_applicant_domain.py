from datetime import UTC, datetime, timedelta

import pytest

from recruiter_dashboard.models.domain.applicant_domain import (
    Applicant,
    ApplicantStatus,
    ConversationStatus,
    RawApplicant,
    UserContext,
    is_completed_conversation,
    to_ui_status,
)
from recruiter_dashboard.models.domain.list_domain import ListStatus, RawJobList
from recruiter_dashboard.models.domain.queue_domain import MessageAction, QueueTask, QueueTaskStatus

ACTIVE_STATUSES = {
    ConversationStatus.INITIATED,
    ConversationStatus.DETAILS_COMPLETED,
    ConversationStatus.MANDATE_MATCHING,
}


@pytest.mark.parametrize("status", list(ConversationStatus))
def test_ui_status_mapping_is_total(status):
    expected = ApplicantStatus.ACTIVE if status in ACTIVE_STATUSES else ApplicantStatus.DISABLED
    assert to_ui_status(status) is expected


def test_completed_conversation_statuses():
    assert is_completed_conversation(ConversationStatus.DETAILS_COMPLETED)
    assert is_completed_conversation(ConversationStatus.MANDATE_MATCHING)
    assert not is_completed_conversation(ConversationStatus.INITIATED)
    assert not is_completed_conversation(ConversationStatus.PLACED)


def test_unknown_conversation_status_defaults_to_not_initiated():
    raw = RawApplicant.model_validate({"applicant_id": 1, "status": "SOMETHING_NEW"})
    assert raw.status is ConversationStatus.NOT_INITIATED

    raw = RawApplicant.model_validate({"applicant_id": 1, "status": "details_completed"})
    assert raw.status is ConversationStatus.DETAILS_COMPLETED


def test_raw_applicant_falls_back_to_row_id():
    raw = RawApplicant.model_validate({"id": 919876543210, "name": "Asha"})
    assert raw.applicant_id == 919876543210


def test_applicant_from_raw_builds_display_fields():
    raw = RawApplicant.model_validate(
        {
            "applicant_id": 919876543210,
            "status": "DETAILS_COMPLETED",
            "details": {"gender": "Female", "age": 27, "home_location": "Pune", "experience": 3},
            "response": "Interested",
            "tags": None,
        }
    )

    applicant = Applicant.from_raw(raw)

    assert applicant.id == "919876543210"
    assert applicant.name == "Female - 27 years"
    assert applicant.phone == "919876543210"
    assert applicant.status is ApplicantStatus.ACTIVE
    assert applicant.has_completed_conversation is True
    assert applicant.location == "Pune"
    assert applicant.last_message == "Interested"
    assert applicant.tags == []
    assert applicant.template_fields()["location"] == "Pune"


def test_applicant_status_toggle():
    assert ApplicantStatus.ACTIVE.toggled() is ApplicantStatus.DISABLED
    assert ApplicantStatus.DISABLED.toggled() is ApplicantStatus.ACTIVE


def test_user_context_token_refresh_window():
    now = datetime(2025, 1, 1, tzinfo=UTC)
    expiring = UserContext(
        user_id="u", access_token="t", token_expires_at=now + timedelta(seconds=120)
    )
    fresh = UserContext(user_id="u", access_token="t", token_expires_at=now + timedelta(hours=1))

    assert expiring.needs_token_refresh(300, now=now) is True
    assert fresh.needs_token_refresh(300, now=now) is False
    assert UserContext(user_id="u").needs_token_refresh(300, now=now) is False


def test_list_status_parse_is_lenient():
    assert RawJobList.model_validate({"id": 1, "status": None}).status is ListStatus.ACTIVE
    assert RawJobList.model_validate({"id": 1, "status": "archived"}).status is ListStatus.ARCHIVED


def test_queue_task_terminal_transitions():
    task = QueueTask(candidate_id=42, action=MessageAction.NUDGE)
    assert task.candidate_id == "42"
    assert task.action == "nudge"
    assert task.status is QueueTaskStatus.PENDING

    task.mark_processed(datetime.now(UTC))
    assert task.is_terminal
    assert task.processed_at is not None

    with pytest.raises(ValueError):
        task.mark_failed("too late")
    assert task.status is QueueTaskStatus.PROCESSED
