"""
Persistence for the outbound message queue.

The whole queue (tasks and message templates) is stored as one JSON
document under one key and always read and written in full, so a batch
either lands completely or not at all.
"""

from pydantic import ValidationError

from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.models.domain.queue_domain import QueueDocument
from recruiter_dashboard.services.storage.kv_store import KeyValueStore, StorageError

logger = get_logger(__name__)


class QueueStore:
    def __init__(
        self,
        kv_store: KeyValueStore,
        key_prefix: str = "recruiter_dashboard",
        default_templates: dict[str, str] | None = None,
    ):
        self.kv_store = kv_store
        self.key = f"{key_prefix}:message_queue"
        self.default_templates = dict(default_templates or {})

    async def load(self) -> QueueDocument:
        """
        Read the full queue document.

        Raises:
            StorageError: If the backend fails or the stored document is corrupt
        """
        raw = await self.kv_store.get(self.key)
        if not raw:
            return QueueDocument(templates=dict(self.default_templates))

        try:
            document = QueueDocument.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Stored message queue is corrupt", key=self.key, error=str(e))
            raise StorageError(f"Corrupt message queue document: {e}", operation="load") from e

        if not document.templates and self.default_templates:
            document.templates = dict(self.default_templates)
        return document

    async def save(self, document: QueueDocument) -> None:
        await self.kv_store.set(self.key, document.model_dump_json())
