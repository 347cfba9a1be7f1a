"""
Bulk action coordination.

Applies one recruiter action to a selection of applicants (or lists).
Backend action endpoints are list-scoped, so applicant selections are
grouped by current list membership and one mutation is issued per
(list, action) group. Group failures are reported, never raised.

Deletes are local: the backend has no applicant delete and list deletes
are best effort, so both end in a tombstone in the SoftDeleteStore.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from recruiter_dashboard.config import settings
from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.jobs.message_queue_job import MessageQueueJob
from recruiter_dashboard.models.domain.applicant_domain import ApplicantStatus, UserContext
from recruiter_dashboard.models.domain.list_domain import ListRemovalResult
from recruiter_dashboard.models.domain.queue_domain import MessageAction
from recruiter_dashboard.models.domain.snapshot_domain import Snapshot
from recruiter_dashboard.services.data_refresh_service import DataRefreshOrchestrator, RefreshError
from recruiter_dashboard.services.recruiter_api_client import ListMutator, RecruiterApiError
from recruiter_dashboard.services.soft_delete_store import EntityNamespace, SoftDeleteStore
from recruiter_dashboard.services.storage.kv_store import StorageError
from recruiter_dashboard.utils.ids import normalize_id, parse_phone_numbers, to_backend_id

logger = get_logger(__name__)


class BulkAction(str, Enum):
    TOGGLE_STATUS = "toggle_status"
    NUDGE = "nudge"
    TAG = "tag"
    REMOVE_FROM_LIST = "remove_from_list"
    DISABLE = "disable"
    DELETE = "delete"


DESTRUCTIVE_ACTIONS = frozenset({BulkAction.DELETE, BulkAction.REMOVE_FROM_LIST})


class TargetEntity(str, Enum):
    APPLICANT = "applicant"
    LIST = "list"


class BulkActionError(Exception):
    """Base exception for bulk actions refused before any mutation."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = False):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ConfirmationRequiredError(BulkActionError):
    """Destructive action requested without the caller's confirmation flag."""


class MissingListContextError(BulkActionError):
    """List-scoped action requested without a list."""


@dataclass(slots=True)
class BulkActionContext:
    # None means "all lists" for REMOVE_FROM_LIST
    list_id: str | None = None
    confirmed: bool = False
    entity: TargetEntity = TargetEntity.APPLICANT
    user_context: UserContext | None = None


@dataclass(slots=True)
class TargetOutcome:
    """Outcome of one (list, action) mutation group."""

    list_id: str | None
    applicant_ids: list[str]
    success: bool
    error: str | None = None
    action_id: str | None = None
    status: str | None = None


@dataclass(slots=True)
class BulkActionResult:
    action: BulkAction
    outcomes: list[TargetOutcome] = field(default_factory=list)
    rejected_ids: list[str] = field(default_factory=list)
    excluded_ids: list[str] = field(default_factory=list)
    local_only: bool = False
    refreshed: bool = False
    refresh_error: str | None = None
    queued: int = 0

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [
                {
                    "list_id": outcome.list_id,
                    "applicant_ids": outcome.applicant_ids,
                    "success": outcome.success,
                    "error": outcome.error,
                    "action_id": outcome.action_id,
                    "status": outcome.status,
                }
                for outcome in self.outcomes
            ],
            "rejected_ids": self.rejected_ids,
            "excluded_ids": self.excluded_ids,
            "local_only": self.local_only,
            "refreshed": self.refreshed,
            "refresh_error": self.refresh_error,
            "queued": self.queued,
        }


@dataclass(slots=True)
class ListCreationResult:
    list_id: str | None
    name: str
    applicant_ids: list[str]
    invalid_entries: list[str]
    refreshed: bool = False


class BulkActionCoordinator:
    """Dispatches bulk actions to the list mutator, soft-delete store and queue."""

    def __init__(
        self,
        mutator: ListMutator,
        orchestrator: DataRefreshOrchestrator,
        soft_delete_store: SoftDeleteStore,
        queue_job: MessageQueueJob,
        default_user_id: str | None = None,
    ):
        self.mutator = mutator
        self.orchestrator = orchestrator
        self.soft_delete_store = soft_delete_store
        self.queue_job = queue_job
        self.default_user_id = default_user_id or settings.DEFAULT_USER_ID
        self._handlers = {
            BulkAction.TOGGLE_STATUS: self._toggle_status,
            BulkAction.NUDGE: self._nudge,
            BulkAction.TAG: self._tag,
            BulkAction.REMOVE_FROM_LIST: self._remove_from_list,
            BulkAction.DISABLE: self._disable,
            BulkAction.DELETE: self._delete,
        }
        missing = set(BulkAction) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for bulk actions: {sorted(a.value for a in missing)}")

    def _user_context(self, context: BulkActionContext) -> UserContext:
        return context.user_context or UserContext(user_id=self.default_user_id)

    async def apply(
        self,
        action: BulkAction,
        selected_ids: Sequence[object],
        context: BulkActionContext | None = None,
    ) -> BulkActionResult:
        """
        Apply an action to the selected IDs.

        Raises:
            ConfirmationRequiredError: If a destructive action is not confirmed
            MissingListContextError: If TAG has no target list
            BulkActionError: If nothing is selected
        """
        action = BulkAction(action)
        context = context or BulkActionContext()

        if action in DESTRUCTIVE_ACTIONS and not context.confirmed:
            raise ConfirmationRequiredError(
                f"Action '{action.value}' requires confirmation", operation=action.value
            )
        if not selected_ids:
            raise BulkActionError("No items selected", operation=action.value)

        result = BulkActionResult(action=action)
        user_context = self._user_context(context)

        logger.info(
            "Applying bulk action",
            action=action.value,
            selected=len(selected_ids),
            list_id=context.list_id,
            user_id=user_context.user_id,
        )

        backend_mutated = await self._handlers[action](
            selected_ids, context, user_context, result
        )

        if backend_mutated:
            await self._refresh_after_mutation(user_context, result)

        log = logger.warning if result.failed else logger.info
        log(
            "Bulk action finished",
            action=action.value,
            attempted=result.attempted,
            succeeded=result.succeeded,
            failed=result.failed,
            rejected=len(result.rejected_ids),
            local_only=result.local_only,
        )
        return result

    # ------------------------------------------------------------------
    # Selection helpers
    # ------------------------------------------------------------------

    def _valid_applicant_ids(
        self, selected_ids: Sequence[object], result: BulkActionResult
    ) -> list[str]:
        valid: list[str] = []
        for value in selected_ids:
            backend_id = to_backend_id(value)
            if backend_id is None:
                result.rejected_ids.append(str(value))
                continue
            # Same form the snapshot and the tombstones use, country code included
            canonical = normalize_id(backend_id)
            if canonical not in valid:
                valid.append(canonical)

        if result.rejected_ids:
            logger.warning(
                "Malformed applicant ids excluded from bulk action",
                action=result.action.value,
                rejected=result.rejected_ids,
            )
        return valid

    async def _current_snapshot(self, user_context: UserContext) -> Snapshot:
        snapshot = self.orchestrator.get_snapshot()
        if snapshot is None:
            snapshot = await self.orchestrator.refresh(user_context)
        return snapshot

    async def _group_by_list(
        self,
        applicant_ids: list[str],
        context: BulkActionContext,
        user_context: UserContext,
        result: BulkActionResult,
    ) -> dict[str, list[str]]:
        """Group applicants by the lists they belong to, in selection order."""
        if context.list_id is not None:
            return {normalize_id(context.list_id): list(applicant_ids)}

        snapshot = await self._current_snapshot(user_context)
        groups: dict[str, list[str]] = {}
        for applicant_id in applicant_ids:
            applicant = snapshot.find_applicant(applicant_id)
            if applicant is None or not applicant.list_membership:
                result.excluded_ids.append(applicant_id)
                continue
            for list_id in applicant.list_membership:
                groups.setdefault(list_id, []).append(applicant_id)

        if result.excluded_ids:
            logger.info(
                "Applicants in no list skipped for list-scoped action",
                action=result.action.value,
                excluded=result.excluded_ids,
            )
        return groups

    async def _run_group(
        self,
        result: BulkActionResult,
        list_id: str,
        applicant_ids: list[str],
        call,
        status: str | None = None,
    ) -> TargetOutcome:
        """Await one group mutation and record its outcome."""
        try:
            response = await call
        except Exception as e:
            if not isinstance(e, RecruiterApiError):
                logger.error(
                    "Unexpected error in bulk action group",
                    action=result.action.value,
                    list_id=list_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            outcome = TargetOutcome(
                list_id=list_id,
                applicant_ids=applicant_ids,
                success=False,
                error=str(e) or type(e).__name__,
                status=status,
            )
        else:
            outcome = TargetOutcome(
                list_id=list_id,
                applicant_ids=applicant_ids,
                success=True,
                action_id=response if isinstance(response, str) else None,
                status=status,
            )
        result.outcomes.append(outcome)
        return outcome

    async def _refresh_after_mutation(
        self, user_context: UserContext, result: BulkActionResult
    ) -> None:
        try:
            await self.orchestrator.refresh(user_context)
            result.refreshed = True
        except RefreshError as e:
            result.refresh_error = str(e)
            logger.warning("Refresh after bulk action failed", action=result.action.value, error=str(e))

    # ------------------------------------------------------------------
    # Handlers: each returns True when at least one backend mutation succeeded
    # ------------------------------------------------------------------

    async def _disable(self, selected_ids, context, user_context, result) -> bool:
        applicant_ids = self._valid_applicant_ids(selected_ids, result)
        groups = await self._group_by_list(applicant_ids, context, user_context, result)
        for list_id, members in groups.items():
            await self._run_group(
                result,
                list_id,
                members,
                self.mutator.update_status(list_id, members, ApplicantStatus.DISABLED, user_context),
                status=ApplicantStatus.DISABLED.value,
            )
        return result.succeeded > 0

    async def _toggle_status(self, selected_ids, context, user_context, result) -> bool:
        applicant_ids = self._valid_applicant_ids(selected_ids, result)
        groups = await self._group_by_list(applicant_ids, context, user_context, result)
        snapshot = await self._current_snapshot(user_context)

        status_groups: dict[tuple[str, ApplicantStatus], list[str]] = {}
        for list_id, members in groups.items():
            for applicant_id in members:
                applicant = snapshot.find_applicant(applicant_id)
                current = applicant.status if applicant else ApplicantStatus.DISABLED
                status_groups.setdefault((list_id, current.toggled()), []).append(applicant_id)

        for (list_id, target), members in status_groups.items():
            await self._run_group(
                result,
                list_id,
                members,
                self.mutator.update_status(list_id, members, target, user_context),
                status=target.value,
            )
        return result.succeeded > 0

    async def _nudge(self, selected_ids, context, user_context, result) -> bool:
        applicant_ids = self._valid_applicant_ids(selected_ids, result)
        groups = await self._group_by_list(applicant_ids, context, user_context, result)

        to_queue: list[str] = []
        for list_id, members in groups.items():
            outcome = await self._run_group(
                result,
                list_id,
                members,
                self.mutator.send_action(list_id, members, MessageAction.NUDGE, user_context),
            )
            if outcome.success:
                to_queue.extend(m for m in members if m not in to_queue)

        if to_queue:
            try:
                tasks = await self.queue_job.enqueue(to_queue, MessageAction.NUDGE)
                result.queued = len(tasks)
            except StorageError as e:
                logger.error("Failed to queue nudge messages", error=str(e), count=len(to_queue))
        return result.succeeded > 0

    async def _tag(self, selected_ids, context, user_context, result) -> bool:
        if context.list_id is None:
            raise MissingListContextError("Tagging requires a target list", operation="tag")

        list_id = normalize_id(context.list_id)
        applicant_ids = self._valid_applicant_ids(selected_ids, result)
        if applicant_ids:
            await self._run_group(
                result,
                list_id,
                applicant_ids,
                self.mutator.add_members(list_id, applicant_ids, user_context),
            )
        return result.succeeded > 0

    async def _remove_from_list(self, selected_ids, context, user_context, result) -> bool:
        applicant_ids = self._valid_applicant_ids(selected_ids, result)

        if context.list_id is None:
            # Remove from all lists: optimistic local update only
            await self._remove_from_all_lists_locally(applicant_ids, user_context, result)
            return False

        list_id = normalize_id(context.list_id)
        if applicant_ids:
            await self._run_group(
                result,
                list_id,
                applicant_ids,
                self.mutator.remove_members(list_id, applicant_ids, user_context),
            )
        return result.succeeded > 0

    async def _remove_from_all_lists_locally(self, applicant_ids, user_context, result) -> None:
        snapshot = await self._current_snapshot(user_context)
        removed = set(applicant_ids)
        lists = [
            job_list.model_copy(
                update={"member_ids": [m for m in job_list.member_ids if m not in removed]}
            )
            for job_list in snapshot.lists
        ]
        await self.orchestrator.apply_local_update(lists=lists)
        result.local_only = True
        result.outcomes.append(TargetOutcome(list_id=None, applicant_ids=applicant_ids, success=True))

    async def _delete(self, selected_ids, context, user_context, result) -> bool:
        if TargetEntity(context.entity) is TargetEntity.LIST:
            return await self._delete_lists(selected_ids, user_context, result)

        applicant_ids = self._valid_applicant_ids(selected_ids, result)
        if applicant_ids:
            await self.soft_delete_store.add_many(EntityNamespace.APPLICANT, applicant_ids)
            await self.orchestrator.apply_local_update()
            result.outcomes.append(TargetOutcome(list_id=None, applicant_ids=applicant_ids, success=True))
        result.local_only = True
        return False

    async def _delete_lists(self, selected_ids, user_context, result) -> bool:
        list_ids: list[str] = []
        for value in selected_ids:
            try:
                canonical = normalize_id(value)
            except ValueError:
                result.rejected_ids.append(str(value))
                continue
            if canonical not in list_ids:
                list_ids.append(canonical)

        backend_changed = False
        for list_id in list_ids:
            try:
                removal = await self.mutator.archive_or_delete_list(list_id, user_context)
            except Exception as e:
                removal = ListRemovalResult(success=False, message=str(e) or type(e).__name__)

            backend_changed = backend_changed or removal.deleted or removal.archived
            # Tombstoned regardless of the backend outcome
            result.outcomes.append(
                TargetOutcome(
                    list_id=list_id,
                    applicant_ids=[],
                    success=True,
                    error=None if (removal.deleted or removal.archived) else removal.message,
                )
            )

        if list_ids:
            await self.soft_delete_store.add_many(EntityNamespace.LIST, list_ids)
            await self.orchestrator.apply_local_update()
        result.local_only = not backend_changed
        return backend_changed

    # ------------------------------------------------------------------
    # List management
    # ------------------------------------------------------------------

    async def create_list_from_phone_numbers(
        self,
        name: str,
        phone_numbers: str | Sequence[str],
        description: str | None = None,
        user_context: UserContext | None = None,
    ) -> ListCreationResult:
        """
        Create a list whose members are given as recruiter-entered phone numbers.

        Raises:
            BulkActionError: If the name is blank or no phone number is valid
            RecruiterApiError: If the backend rejects the list
        """
        name = (name or "").strip()
        if not name:
            raise BulkActionError("List name is required", operation="create_list")

        applicant_ids, invalid_entries = parse_phone_numbers(phone_numbers)
        if not applicant_ids:
            raise BulkActionError("No valid phone numbers provided", operation="create_list")

        if invalid_entries:
            logger.warning("Ignoring invalid phone numbers", count=len(invalid_entries))

        user_context = user_context or UserContext(user_id=self.default_user_id)
        created = await self.mutator.create_list(
            name, description or "", applicant_ids, user_context
        )
        logger.info("List created", name=name, members=len(applicant_ids))

        result = ListCreationResult(
            list_id=normalize_id(created.id) if created else None,
            name=name,
            applicant_ids=[str(applicant_id) for applicant_id in applicant_ids],
            invalid_entries=invalid_entries,
        )
        try:
            await self.orchestrator.refresh(user_context)
            result.refreshed = True
        except RefreshError as e:
            logger.warning("Refresh after list creation failed", error=str(e))
        return result

    async def rename_list(
        self,
        list_id: str,
        name: str,
        description: str | None = None,
        user_context: UserContext | None = None,
    ) -> bool:
        """Rename a list. Returns True when the snapshot was refreshed afterwards."""
        name = (name or "").strip()
        if not name:
            raise BulkActionError("List name is required", operation="rename_list")

        patch = {"list_name": name}
        if description is not None:
            patch["list_description"] = description

        user_context = user_context or UserContext(user_id=self.default_user_id)
        await self.mutator.update_list(normalize_id(list_id), patch, user_context)
        logger.info("List renamed", list_id=list_id, name=name)

        try:
            await self.orchestrator.refresh(user_context)
            return True
        except RefreshError as e:
            logger.warning("Refresh after list rename failed", error=str(e))
            return False
