"""
Route tests for the dashboard, queue and health endpoints.
The app runs its real lifespan against in-memory collaborators.
"""

import pytest
from fastapi.testclient import TestClient

from recruiter_dashboard.main import create_app
from recruiter_dashboard.models.domain.applicant_domain import RawApplicant
from recruiter_dashboard.models.domain.list_domain import RawJobList
from recruiter_dashboard.services.recruiter_api_client import RecruiterApiError

HEADERS = {"X-User-ID": "user-123"}
ID_1 = "919800000001"
ID_2 = "919800000002"
ID_3 = "919800000003"


@pytest.fixture
def seeded_api(recruiter_api):
    recruiter_api.applicants = [
        RawApplicant.model_validate({"applicant_id": ID_1, "name": "Asha", "status": "INITIATED"}),
        RawApplicant.model_validate({"applicant_id": ID_2, "name": "Ravi", "status": "PLACED"}),
        RawApplicant.model_validate({"applicant_id": ID_3, "name": "Meera"}),
    ]
    recruiter_api.lists = [
        RawJobList.model_validate({"id": "A", "list_name": "Drivers", "applicants": [ID_1, ID_2]}),
        RawJobList.model_validate({"id": "B", "list_name": "Cooks", "applicants": [ID_3]}),
    ]
    return recruiter_api


@pytest.fixture
def client(dashboard_services, seeded_api):
    app = create_app(services=dashboard_services, start_scheduler=False, debug_routes=True)
    with TestClient(app) as test_client:
        # Wait out the lifespan's initial refresh so counts below are deterministic
        test_client.post("/dashboard/refresh", headers=HEADERS)
        seeded_api.calls.clear()
        yield test_client


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_reports_storage_and_snapshot(client, fake_kv):
    response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["storage"]["ok"] is True
    assert data["checks"]["snapshot"]["state"] == "ready"

    fake_kv.fail_reads = True
    data = client.get("/readyz").json()
    assert data["overall_ok"] is False
    assert data["checks"]["storage"]["ok"] is False


def test_snapshot_after_refresh(client):
    response = client.get("/dashboard/snapshot")

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "ready"
    assert [a["id"] for a in data["applicants"]] == [ID_1, ID_2, ID_3]
    assert data["applicants"][0]["list_membership"] == ["A"]
    assert data["lists"][0]["derived_candidate_count"] == 2
    assert data["applicants"][1]["status"] == "disabled"


def test_refresh_failure_returns_retry_hint(client, seeded_api):
    seeded_api.error = RecruiterApiError("backend down", status_code=503)

    response = client.post("/dashboard/refresh", headers=HEADERS)

    assert response.status_code == 502
    body = response.json()
    assert body["retry"] is True
    assert body["last_error"] == "backend down"

    # Previous snapshot still served
    snapshot = client.get("/dashboard/snapshot").json()
    assert snapshot["state"] == "error"
    assert len(snapshot["applicants"]) == 3


def test_bulk_disable_across_lists(client, seeded_api):
    response = client.post(
        "/dashboard/actions",
        json={"action": "disable", "selected_ids": [ID_1, ID_2, ID_3]},
        headers=HEADERS,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["attempted"] == 2
    assert data["succeeded"] == 2
    assert [call[1:3] for call in seeded_api.calls] == [("A", [ID_1, ID_2]), ("B", [ID_3])]


def test_destructive_action_without_confirmation_conflicts(client, seeded_api):
    response = client.post(
        "/dashboard/actions",
        json={"action": "delete", "selected_ids": [ID_1]},
        headers=HEADERS,
    )

    assert response.status_code == 409
    assert seeded_api.calls == []


def test_tag_without_list_is_bad_request(client):
    response = client.post(
        "/dashboard/actions", json={"action": "tag", "selected_ids": [ID_1]}, headers=HEADERS
    )

    assert response.status_code == 400


def test_confirmed_delete_hides_applicant(client):
    response = client.post(
        "/dashboard/actions",
        json={"action": "delete", "selected_ids": [ID_1], "confirmed": True},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["local_only"] is True

    client.post("/dashboard/refresh", headers=HEADERS)
    ids = [a["id"] for a in client.get("/dashboard/snapshot").json()["applicants"]]
    assert ID_1 not in ids


def test_bulk_actions_feature_flag(client, monkeypatch):
    monkeypatch.setattr("recruiter_dashboard.routes.dependencies.settings.ENABLE_BULK_ACTIONS", False)

    response = client.post(
        "/dashboard/actions", json={"action": "disable", "selected_ids": [ID_1]}, headers=HEADERS
    )

    assert response.status_code == 503


def test_create_list_from_phone_numbers(client, seeded_api):
    response = client.post(
        "/dashboard/lists",
        json={"name": "Warehouse", "phone_numbers": "9876543210, 12"},
        headers=HEADERS,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["applicant_ids"] == ["919876543210"]
    assert data["invalid_entries"] == ["12"]
    assert seeded_api.calls[0][0] == "create"


def test_rename_list(client, seeded_api):
    response = client.put("/dashboard/lists/A", json={"name": "Night drivers"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["refreshed"] is True
    assert seeded_api.calls == [("update", "A", {"list_name": "Night drivers"})]


def test_queue_bulk_send_cancel_and_status(client):
    response = client.post("/queue/bulk-send", json={"candidate_ids": [ID_1, ID_2, "919800000050"]})
    assert response.status_code == 202
    assert response.json()["queued"] == 3

    response = client.post("/queue/cancel-by-list", json={"list_id": "A"})
    assert response.status_code == 200
    assert response.json()["cancelled"] == 2

    status = client.get("/queue/status").json()
    assert status["pending"] == 1
    assert status["processed"] == 0
    assert status["job"]["job_name"] == "message_queue"


def test_queue_storage_failure_is_503(client, fake_kv):
    fake_kv.fail_writes = True

    response = client.post("/queue/bulk-send", json={"candidate_ids": [ID_1]})

    assert response.status_code == 503


def test_debug_state(client):
    response = client.get("/debug/state")

    assert response.status_code == 200
    data = response.json()
    assert data["orchestrator"]["applicants_count"] == 3
    assert data["soft_deletes"]["deleted_applicants_count"] == 0


def test_debug_routes_hidden_by_default(dashboard_services):
    app = create_app(services=dashboard_services, start_scheduler=False, debug_routes=False)
    with TestClient(app) as test_client:
        assert test_client.get("/debug/state").status_code == 404


def test_services_closed_on_shutdown(dashboard_services, fake_kv, recruiter_api):
    app = create_app(services=dashboard_services, start_scheduler=False)
    with TestClient(app):
        pass

    assert fake_kv.closed is True
    assert recruiter_api.closed is True
