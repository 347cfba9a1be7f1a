"""
Service wiring.

Builds the dashboard components from Settings. The web app and the worker
both call build_services() so they share one persistence layout.
"""

from dataclasses import dataclass

from recruiter_dashboard.config import Settings, settings
from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.jobs.message_queue_job import MessageQueueJob, MessageSender
from recruiter_dashboard.models.domain.applicant_domain import UserContext
from recruiter_dashboard.services.bulk_action_service import BulkActionCoordinator
from recruiter_dashboard.services.data_refresh_service import DataRefreshOrchestrator
from recruiter_dashboard.services.queue_store import QueueStore
from recruiter_dashboard.services.recruiter_api_client import RecruiterApiClient
from recruiter_dashboard.services.soft_delete_store import SoftDeleteStore
from recruiter_dashboard.services.storage.kv_store import KeyValueStore, build_kv_store

logger = get_logger(__name__)


@dataclass(slots=True)
class DashboardServices:
    config: Settings
    kv_store: KeyValueStore
    api_client: RecruiterApiClient
    soft_delete_store: SoftDeleteStore
    queue_store: QueueStore
    orchestrator: DataRefreshOrchestrator
    queue_job: MessageQueueJob
    coordinator: BulkActionCoordinator

    def default_user_context(self) -> UserContext:
        return UserContext(user_id=self.config.DEFAULT_USER_ID)

    async def close(self) -> None:
        errors = []
        for name, resource in (("api_client", self.api_client), ("kv_store", self.kv_store)):
            try:
                await resource.close()
            except Exception as e:
                logger.error(f"Error closing {name}", error=str(e))
                errors.append(f"{name}: {e}")

        if errors:
            logger.warning("Some services had shutdown errors", errors=errors)


def build_services(
    config: Settings | None = None,
    kv_store: KeyValueStore | None = None,
    api_client: RecruiterApiClient | None = None,
    sender: MessageSender | None = None,
) -> DashboardServices:
    """Wire every component; explicit arguments replace the configured defaults."""
    config = config or settings
    kv_store = kv_store or build_kv_store(config)
    api_client = api_client or RecruiterApiClient(config)

    soft_delete_store = SoftDeleteStore(kv_store, key_prefix=config.STORAGE_KEY_PREFIX)
    queue_store = QueueStore(
        kv_store,
        key_prefix=config.STORAGE_KEY_PREFIX,
        default_templates=config.MESSAGE_TEMPLATES,
    )
    orchestrator = DataRefreshOrchestrator(api_client, soft_delete_store)
    queue_job = MessageQueueJob(
        queue_store,
        orchestrator,
        sender=sender,
        interval_seconds=config.queue_interval_seconds(),
    )
    coordinator = BulkActionCoordinator(
        api_client,
        orchestrator,
        soft_delete_store,
        queue_job,
        default_user_id=config.DEFAULT_USER_ID,
    )

    logger.info(
        "Dashboard services built",
        storage_backend=config.STORAGE_BACKEND,
        api_base_url=config.api_base_url(),
    )
    return DashboardServices(
        config=config,
        kv_store=kv_store,
        api_client=api_client,
        soft_delete_store=soft_delete_store,
        queue_store=queue_store,
        orchestrator=orchestrator,
        queue_job=queue_job,
        coordinator=coordinator,
    )
