from types import SimpleNamespace

import pytest

from recruiter_dashboard.services.soft_delete_store import EntityNamespace, SoftDeleteStore
from recruiter_dashboard.services.storage.kv_store import JsonFileStore, StorageError


def _entities(*ids):
    return [SimpleNamespace(id=str(entity_id)) for entity_id in ids]


@pytest.mark.asyncio
async def test_filter_excludes_tombstoned_ids(soft_delete_store):
    await soft_delete_store.add_deleted(EntityNamespace.APPLICANT, 919876543210)

    visible = await soft_delete_store.filter(
        EntityNamespace.APPLICANT, _entities("919876543210", "42")
    )

    assert [e.id for e in visible] == ["42"]
    assert await soft_delete_store.is_deleted(EntityNamespace.APPLICANT, "919876543210")


@pytest.mark.asyncio
async def test_filter_is_idempotent(soft_delete_store):
    await soft_delete_store.add_many(EntityNamespace.LIST, ["a", "c"])
    entities = _entities("a", "b", "c", "d")

    once = await soft_delete_store.filter(EntityNamespace.LIST, entities)
    twice = await soft_delete_store.filter(EntityNamespace.LIST, once)

    assert twice == once
    assert [e.id for e in once] == ["b", "d"]


@pytest.mark.asyncio
async def test_namespaces_are_independent(soft_delete_store):
    await soft_delete_store.add_deleted(EntityNamespace.APPLICANT, "7")

    assert await soft_delete_store.is_deleted(EntityNamespace.APPLICANT, "7")
    assert not await soft_delete_store.is_deleted(EntityNamespace.LIST, "7")


@pytest.mark.asyncio
async def test_add_deleted_is_additive(soft_delete_store):
    assert await soft_delete_store.add_deleted(EntityNamespace.APPLICANT, "1") is True
    assert await soft_delete_store.add_deleted(EntityNamespace.APPLICANT, 1) is False
    assert await soft_delete_store.add_many(EntityNamespace.APPLICANT, ["1", "2", 2]) == 1

    assert await soft_delete_store.deleted_ids(EntityNamespace.APPLICANT) == {"1", "2"}


@pytest.mark.asyncio
async def test_remove_clear_and_summary(soft_delete_store):
    await soft_delete_store.add_many(EntityNamespace.APPLICANT, ["1", "2"])
    await soft_delete_store.add_deleted(EntityNamespace.LIST, "L1")

    assert await soft_delete_store.remove_deleted(EntityNamespace.APPLICANT, "1") is True
    assert await soft_delete_store.remove_deleted(EntityNamespace.APPLICANT, "1") is False

    summary = await soft_delete_store.summary()
    assert summary["deleted_applicants"] == ["2"]
    assert summary["deleted_lists_count"] == 1

    await soft_delete_store.clear_all()
    summary = await soft_delete_store.summary()
    assert summary["deleted_applicants_count"] == 0
    assert summary["deleted_lists_count"] == 0


@pytest.mark.asyncio
async def test_tombstones_survive_a_new_process(tmp_path):
    path = tmp_path / "state.json"
    store = SoftDeleteStore(JsonFileStore(path), key_prefix="test")
    await store.add_deleted(EntityNamespace.LIST, "L9")

    reopened = SoftDeleteStore(JsonFileStore(path), key_prefix="test")
    visible = await reopened.filter(EntityNamespace.LIST, _entities("L9", "L10"))

    assert [e.id for e in visible] == ["L10"]


@pytest.mark.asyncio
async def test_corrupt_set_raises_storage_error(fake_kv, soft_delete_store):
    fake_kv.store["test:deleted:applicant"] = "{not json"

    with pytest.raises(StorageError):
        await soft_delete_store.deleted_ids(EntityNamespace.APPLICANT)
