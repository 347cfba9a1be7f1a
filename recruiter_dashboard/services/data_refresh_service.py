"""
Data refresh orchestration.

Owns the current Snapshot: fetches applicants and lists, reconciles them,
drops soft-deleted entities and publishes the result. A failed refresh
keeps the last good snapshot visible.
"""

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime

from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.models.domain.applicant_domain import Applicant, UserContext
from recruiter_dashboard.models.domain.list_domain import JobList, ListStatus, RawJobList
from recruiter_dashboard.models.domain.snapshot_domain import RefreshState, Snapshot
from recruiter_dashboard.services.reconciler import EntityReconciler
from recruiter_dashboard.services.recruiter_api_client import DataProvider
from recruiter_dashboard.services.soft_delete_store import EntityNamespace, SoftDeleteStore
from recruiter_dashboard.utils.ids import normalize_id

logger = get_logger(__name__)


class RefreshError(Exception):
    """Raised to the caller of refresh() after the error state is recorded."""

    def __init__(self, message: str, operation: str = "refresh", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class DataRefreshOrchestrator:
    """
    Single owner of the dashboard snapshot.

    Concurrent refresh() calls for the same user share one in-flight task
    instead of issuing duplicate backend requests. Calls for different users
    fetch separately; the snapshot is whichever refresh completed last.
    """

    def __init__(
        self,
        provider: DataProvider,
        soft_delete_store: SoftDeleteStore,
        reconciler: EntityReconciler | None = None,
    ):
        self.provider = provider
        self.soft_delete_store = soft_delete_store
        self.reconciler = reconciler or EntityReconciler()
        self.state = RefreshState.IDLE
        self.last_error: str | None = None
        self._snapshot: Snapshot | None = None
        self._in_flight: dict[str | None, asyncio.Task] = {}

    async def refresh(self, user_context: UserContext) -> Snapshot:
        """
        Fetch, reconcile and filter; publish the result as the current snapshot.

        Raises:
            RefreshError: If the provider or the soft-delete store fails
        """
        user_id = user_context.user_id
        task = self._in_flight.get(user_id)
        if task is not None and not task.done():
            logger.debug("Refresh already in flight, joining it", user_id=user_id)
            return await asyncio.shield(task)

        task = asyncio.ensure_future(self._run_refresh(user_context))
        self._in_flight[user_id] = task
        task.add_done_callback(lambda done: self._forget_in_flight(user_id, done))
        return await asyncio.shield(task)

    def _forget_in_flight(self, user_id: str | None, task: asyncio.Task) -> None:
        if self._in_flight.get(user_id) is task:
            del self._in_flight[user_id]

    async def _run_refresh(self, user_context: UserContext) -> Snapshot:
        self.state = RefreshState.LOADING
        try:
            raw_applicants, raw_lists = await asyncio.gather(
                self.provider.fetch_applicants(user_context),
                self.provider.fetch_lists(ListStatus.ACTIVE, user_context),
            )
            active_lists = [job_list for job_list in raw_lists if _is_active(job_list)]
            snapshot = await self._build_snapshot(raw_applicants, active_lists, user_context.user_id)
        except Exception as e:
            self.state = RefreshState.ERROR
            self.last_error = str(e) or type(e).__name__
            logger.error(
                "Dashboard refresh failed",
                user_id=user_context.user_id,
                error=self.last_error,
                error_type=type(e).__name__,
                kept_previous_snapshot=self._snapshot is not None,
            )
            raise RefreshError(self.last_error) from e

        self._snapshot = snapshot
        self.state = RefreshState.READY
        self.last_error = None
        logger.info(
            "Dashboard refreshed",
            user_id=user_context.user_id,
            applicants=len(snapshot.applicants),
            lists=len(snapshot.lists),
        )
        return snapshot

    async def _build_snapshot(self, applicants, lists, user_id: str | None) -> Snapshot:
        linked_applicants, linked_lists = self.reconciler.reconcile(applicants, lists)
        visible_applicants = await self.soft_delete_store.filter(
            EntityNamespace.APPLICANT, linked_applicants
        )
        visible_lists = await self.soft_delete_store.filter(EntityNamespace.LIST, linked_lists)
        # Second pass so memberships and counts only reference visible entities
        visible_applicants, visible_lists = self.reconciler.reconcile(
            visible_applicants, visible_lists
        )
        return Snapshot(
            applicants=visible_applicants,
            lists=visible_lists,
            user_id=user_id,
            refreshed_at=datetime.now(UTC),
        )

    def get_snapshot(self) -> Snapshot | None:
        return self._snapshot

    async def apply_local_update(
        self,
        applicants: Sequence[Applicant] | None = None,
        lists: Sequence[JobList] | None = None,
    ) -> Snapshot | None:
        """
        Replace the snapshot with an optimistic local view.

        Reconciliation and the soft-delete filter run again, so memberships
        and counts stay consistent with the edited collections. Without a
        loaded snapshot there is nothing to update; the next refresh applies
        any new tombstones.
        """
        current = self._snapshot
        if current is None:
            logger.debug("No snapshot loaded, skipping local update")
            return None

        snapshot = await self._build_snapshot(
            current.applicants if applicants is None else applicants,
            current.lists if lists is None else lists,
            current.user_id,
        )
        self._snapshot = snapshot
        return snapshot

    def get_debug_state(self) -> dict:
        snapshot = self._snapshot
        return {
            "state": self.state.value,
            "last_error": self.last_error,
            "refresh_in_flight": any(not task.done() for task in self._in_flight.values()),
            "refreshed_at": snapshot.refreshed_at.isoformat() if snapshot else None,
            "user_id": snapshot.user_id if snapshot else None,
            "applicants_count": len(snapshot.applicants) if snapshot else 0,
            "lists_count": len(snapshot.lists) if snapshot else 0,
        }

    # ApplicantDirectory, consumed by the message queue job

    def is_ready(self) -> bool:
        return self._snapshot is not None

    async def lookup_applicant(self, applicant_id: str) -> Applicant | None:
        if self._snapshot is None:
            return None
        return self._snapshot.find_applicant(normalize_id(applicant_id))

    async def lookup_list(self, list_id: str) -> JobList | None:
        if self._snapshot is None:
            return None
        return self._snapshot.find_list(normalize_id(list_id))


def _is_active(job_list: RawJobList | JobList) -> bool:
    # ListStatus.parse already maps a missing status to ACTIVE
    return job_list.status is ListStatus.ACTIVE
