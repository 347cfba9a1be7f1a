"""
Soft-delete store.

The recruiter backend has no delete endpoint for applicants and often
ignores list deletes, so "deleting" something means tombstoning its ID
locally. Tombstones are persisted so a filtered entity stays hidden after
a refresh or a process restart even though the backend still reports it.

Usage:
    store = SoftDeleteStore(kv_store)
    await store.add_deleted(EntityNamespace.APPLICANT, "919876543210")
    visible = await store.filter(EntityNamespace.APPLICANT, applicants)
"""

import asyncio
import json
from collections.abc import Sequence
from enum import Enum
from typing import Protocol, TypeVar

from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.services.storage.kv_store import KeyValueStore, StorageError
from recruiter_dashboard.utils.ids import normalize_id

logger = get_logger(__name__)


class EntityNamespace(str, Enum):
    APPLICANT = "applicant"
    LIST = "list"


class HasId(Protocol):
    id: str


EntityT = TypeVar("EntityT", bound=HasId)


class SoftDeleteStore:
    """Persistent, additive-only sets of tombstoned IDs, one per namespace."""

    def __init__(self, kv_store: KeyValueStore, key_prefix: str = "recruiter_dashboard"):
        self.kv_store = kv_store
        self.key_prefix = key_prefix
        # Serializes read-modify-write cycles on the ID sets
        self._write_lock = asyncio.Lock()

    def _key(self, namespace: EntityNamespace) -> str:
        return f"{self.key_prefix}:deleted:{EntityNamespace(namespace).value}"

    async def _load(self, namespace: EntityNamespace) -> list[str]:
        raw = await self.kv_store.get(self._key(namespace))
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except ValueError as e:
            raise StorageError(
                f"Corrupt soft-delete set for {namespace.value}: {e}", operation="load"
            ) from e
        if not isinstance(ids, list):
            raise StorageError(f"Corrupt soft-delete set for {namespace.value}", operation="load")
        return [str(item) for item in ids]

    async def _save(self, namespace: EntityNamespace, ids: list[str]) -> None:
        await self.kv_store.set(self._key(namespace), json.dumps(ids))

    async def add_deleted(self, namespace: EntityNamespace, entity_id: object) -> bool:
        """
        Tombstone an ID.

        Returns:
            bool: False when the ID was already tombstoned
        """
        canonical = normalize_id(entity_id)
        async with self._write_lock:
            ids = await self._load(namespace)
            if canonical in ids:
                return False

            ids.append(canonical)
            await self._save(namespace, ids)
        logger.info("Entity soft-deleted", namespace=namespace.value, entity_id=canonical)
        return True

    async def add_many(self, namespace: EntityNamespace, entity_ids: Sequence[object]) -> int:
        """Tombstone several IDs with a single write. Returns how many were new."""
        canonical_ids = [normalize_id(entity_id) for entity_id in entity_ids]
        async with self._write_lock:
            ids = await self._load(namespace)
            known = set(ids)
            added = 0
            for canonical in canonical_ids:
                if canonical not in known:
                    known.add(canonical)
                    ids.append(canonical)
                    added += 1
            if added:
                await self._save(namespace, ids)

        if added:
            logger.info("Entities soft-deleted", namespace=namespace.value, count=added)
        return added

    async def is_deleted(self, namespace: EntityNamespace, entity_id: object) -> bool:
        try:
            canonical = normalize_id(entity_id)
        except ValueError:
            return False
        return canonical in await self._load(namespace)

    async def deleted_ids(self, namespace: EntityNamespace) -> set[str]:
        return set(await self._load(namespace))

    async def filter(self, namespace: EntityNamespace, entities: Sequence[EntityT]) -> list[EntityT]:
        """Return entities whose ID is not tombstoned, preserving order."""
        deleted = await self.deleted_ids(namespace)
        if not deleted:
            return list(entities)
        return [entity for entity in entities if entity.id not in deleted]

    async def clear(self, namespace: EntityNamespace) -> None:
        async with self._write_lock:
            await self.kv_store.delete(self._key(namespace))
        logger.info("Soft-delete set cleared", namespace=namespace.value)

    async def clear_all(self) -> None:
        for namespace in EntityNamespace:
            await self.clear(namespace)

    async def remove_deleted(self, namespace: EntityNamespace, entity_id: object) -> bool:
        """Debug/test reset only; normal flows never restore a tombstoned ID."""
        canonical = normalize_id(entity_id)
        async with self._write_lock:
            ids = await self._load(namespace)
            if canonical not in ids:
                return False
            ids.remove(canonical)
            await self._save(namespace, ids)
        logger.warning("Soft-delete reverted", namespace=namespace.value, entity_id=canonical)
        return True

    async def summary(self) -> dict:
        applicants = await self._load(EntityNamespace.APPLICANT)
        lists = await self._load(EntityNamespace.LIST)
        return {
            "deleted_applicants": applicants,
            "deleted_lists": lists,
            "deleted_applicants_count": len(applicants),
            "deleted_lists_count": len(lists),
        }
