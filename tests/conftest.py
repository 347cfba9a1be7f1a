import asyncio

import pytest

from recruiter_dashboard.config import Settings
from recruiter_dashboard.jobs.message_queue_job import MessageQueueJob
from recruiter_dashboard.models.domain.applicant_domain import UserContext
from recruiter_dashboard.models.domain.list_domain import ListRemovalResult, RawJobList
from recruiter_dashboard.services.bulk_action_service import BulkActionCoordinator
from recruiter_dashboard.services.container import build_services
from recruiter_dashboard.services.data_refresh_service import DataRefreshOrchestrator
from recruiter_dashboard.services.queue_store import QueueStore
from recruiter_dashboard.services.recruiter_api_client import RecruiterApiError
from recruiter_dashboard.services.soft_delete_store import SoftDeleteStore
from recruiter_dashboard.services.storage.kv_store import StorageError

NUDGE_TEMPLATE = "Hi {name}, following up!"


def _raw_list(list_id, applicants, name: str | None = None, status: str | None = "ACTIVE"):
    return RawJobList.model_validate(
        {
            "id": list_id,
            "list_name": name or f"List {list_id}",
            "applicants": applicants,
            "status": status,
        }
    )


class FakeKeyValueStore:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.set_calls = 0
        self.fail_reads = False
        self.fail_writes = False
        self.closed = False

    async def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageError("read failed", operation="get")
        return self.store.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError("write failed", operation="set")
        self.set_calls += 1
        self.store[key] = value

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def ping(self) -> bool:
        return not self.fail_reads

    async def close(self) -> None:
        self.closed = True


class FakeDataProvider:
    def __init__(self, applicants=None, lists=None):
        self.applicants = list(applicants or [])
        self.lists = list(lists or [])
        self.error: Exception | None = None
        self.fetch_calls = 0
        # When set, fetches wait on it (used to hold a refresh in flight)
        self.gate: asyncio.Event | None = None

    async def fetch_applicants(self, user_context):
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.applicants)

    async def fetch_lists(self, status, user_context):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.lists)


class FakeListMutator:
    def __init__(self):
        self.calls: list[tuple] = []
        self.failing_lists: set[str] = set()
        self.removal_result = ListRemovalResult(
            success=True, message="List archived successfully", archived=True
        )
        self.created_list = _raw_list("new-list", [])

    def _check(self, list_id):
        if list_id in self.failing_lists:
            raise RecruiterApiError(f"backend rejected {list_id}", status_code=500)

    async def add_members(self, list_id, applicant_ids, user_context=None):
        self.calls.append(("add", list_id, list(applicant_ids)))
        self._check(list_id)
        return {"status": "OK"}

    async def remove_members(self, list_id, applicant_ids, user_context=None):
        self.calls.append(("remove", list_id, list(applicant_ids)))
        self._check(list_id)
        return {"status": "OK"}

    async def send_action(self, list_id, applicant_ids, action, user_context=None):
        self.calls.append(("send", list_id, list(applicant_ids), action))
        self._check(list_id)
        return f"action-{list_id}"

    async def update_status(self, list_id, applicant_ids, status, user_context=None):
        self.calls.append(("status", list_id, list(applicant_ids), status))
        self._check(list_id)
        return {"status": "OK"}

    async def create_list(self, name, description, initial_applicant_ids, user_context=None):
        self.calls.append(("create", name, description, list(initial_applicant_ids)))
        return self.created_list

    async def update_list(self, list_id, patch, user_context=None):
        self.calls.append(("update", list_id, dict(patch)))
        self._check(list_id)
        return {"status": "OK"}

    async def archive_or_delete_list(self, list_id, user_context=None):
        self.calls.append(("archive", list_id))
        self._check(list_id)
        return self.removal_result


class FakeRecruiterApi(FakeDataProvider, FakeListMutator):
    """Both collaborator contracts in one object, like RecruiterApiClient."""

    def __init__(self, applicants=None, lists=None):
        FakeDataProvider.__init__(self, applicants, lists)
        FakeListMutator.__init__(self)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeDirectory:
    """ApplicantDirectory backed by plain dicts."""

    def __init__(self, applicants=None, lists=None, ready: bool = True):
        self.applicants = dict(applicants or {})
        self.lists = dict(lists or {})
        self.ready = ready

    def is_ready(self) -> bool:
        return self.ready

    async def lookup_applicant(self, applicant_id):
        return self.applicants.get(applicant_id)

    async def lookup_list(self, list_id):
        return self.lists.get(list_id)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="test",
        RECRUITER_API_BASE_URL="http://backend.test/api",
        DEFAULT_USER_ID="user-123",
        API_RETRY_ATTEMPTS=3,
        API_RETRY_DELAY_MS=0,
        STORAGE_BACKEND="file",
        DATA_DIR=str(tmp_path),
        QUEUE_PROCESSOR_ENABLED=False,
    )


@pytest.fixture
def user_context():
    return UserContext(user_id="user-123")


@pytest.fixture
def fake_kv():
    return FakeKeyValueStore()


@pytest.fixture
def soft_delete_store(fake_kv):
    return SoftDeleteStore(fake_kv, key_prefix="test")


@pytest.fixture
def queue_store(fake_kv):
    return QueueStore(fake_kv, key_prefix="test", default_templates={"nudge": NUDGE_TEMPLATE})


@pytest.fixture
def provider():
    return FakeDataProvider()


@pytest.fixture
def mutator():
    return FakeListMutator()


@pytest.fixture
def orchestrator(provider, soft_delete_store):
    return DataRefreshOrchestrator(provider, soft_delete_store)


@pytest.fixture
def queue_job(queue_store, orchestrator):
    return MessageQueueJob(queue_store, orchestrator, interval_seconds=15)


@pytest.fixture
def coordinator(mutator, orchestrator, soft_delete_store, queue_job):
    return BulkActionCoordinator(
        mutator, orchestrator, soft_delete_store, queue_job, default_user_id="user-123"
    )


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def directory_job(queue_store, directory):
    """Queue job resolving applicants from a plain FakeDirectory."""
    return MessageQueueJob(queue_store, directory, interval_seconds=15)


@pytest.fixture
def recruiter_api():
    return FakeRecruiterApi()


@pytest.fixture
def dashboard_services(test_settings, fake_kv, recruiter_api):
    return build_services(test_settings, kv_store=fake_kv, api_client=recruiter_api)
