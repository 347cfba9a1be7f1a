"""
Message Queue Job for outbound recruiter messages.
Runs on a fixed timer, delivers pending queue tasks and records each
task's terminal status.

Task lifecycle: pending -> processed | failed. A task whose applicant or
template cannot be resolved fails locally; it never aborts the batch.
A delivery error leaves the task pending so the next tick retries it.
"""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from recruiter_dashboard.infrastructure.observability.logging import get_logger, log_queue_cycle
from recruiter_dashboard.models.domain.applicant_domain import Applicant
from recruiter_dashboard.models.domain.list_domain import JobList
from recruiter_dashboard.models.domain.queue_domain import (
    MessageAction,
    QueueDocument,
    QueueTask,
    QueueTaskStatus,
)
from recruiter_dashboard.services.queue_store import QueueStore
from recruiter_dashboard.utils.ids import normalize_id, normalize_ids

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 15.0
SCHEDULER_ERROR_BACKOFF_SECONDS = 60

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class MessageQueueJobError(Exception):
    """Custom exception for message queue job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class ApplicantDirectory(Protocol):
    """Read access to the current applicant/list view."""

    def is_ready(self) -> bool: ...

    async def lookup_applicant(self, applicant_id: str) -> Applicant | None: ...

    async def lookup_list(self, list_id: str) -> JobList | None: ...


MessageSender = Callable[[Applicant, QueueTask, str], Awaitable[None]]


async def log_message_sender(applicant: Applicant, task: QueueTask, message: str) -> None:
    """Default sender: records the outbound message in the log."""
    logger.info(
        "Outbound message sent",
        queue_id=task.queue_id,
        applicant_id=applicant.id,
        phone=applicant.phone,
        action=task.action,
        message=message,
    )


def render_template(template: str, fields: dict[str, str]) -> str:
    """Replace every {field} placeholder; unknown placeholders are left as written."""
    return _PLACEHOLDER.sub(lambda m: fields.get(m.group(1), m.group(0)), template)


class QueueRunMetrics:
    """Metrics tracking for one message queue batch."""

    def __init__(self):
        self.reset()

    def reset(self, pending: int = 0):
        """Reset all metrics for new batch."""
        self.start_time = datetime.now(UTC)
        self.pending = pending
        self.processed = 0
        self.failed = 0
        self.deferred = 0
        self.total_duration_seconds = 0
        self.errors: list[dict] = []

    def record_success(self, task: QueueTask):
        self.processed += 1
        logger.debug("Queue task processed", queue_id=task.queue_id, action=task.action)

    def record_failure(self, task: QueueTask, reason: str):
        self.failed += 1
        self.errors.append({"queue_id": task.queue_id, "error": reason, "terminal": True})
        logger.warning(
            "Queue task failed",
            queue_id=task.queue_id,
            candidate_id=task.candidate_id,
            action=task.action,
            reason=reason,
        )

    def record_deferred(self, task: QueueTask, error: str):
        self.deferred += 1
        self.errors.append({"queue_id": task.queue_id, "error": error, "terminal": False})
        logger.warning(
            "Queue task delivery failed, will retry",
            queue_id=task.queue_id,
            candidate_id=task.candidate_id,
            error=error,
        )

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": "message_queue",
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 3),
            "pending": self.pending,
            "processed": self.processed,
            "failed": self.failed,
            "deferred": self.deferred,
            "errors_count": len(self.errors),
        }


class MessageQueueJob:
    """
    Background processor for the outbound message queue.

    tick() is safe to call from a timer: at most one batch runs at a time,
    an empty queue costs one read and no write, and no exception escapes.
    """

    def __init__(
        self,
        queue_store: QueueStore,
        directory: ApplicantDirectory,
        sender: MessageSender | None = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise MessageQueueJobError(
                f"Queue interval must be positive, got {interval_seconds}",
                operation="init",
                recoverable=False,
            )
        self.queue_store = queue_store
        self.directory = directory
        self.sender = sender or log_message_sender
        self.interval_seconds = interval_seconds
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_error: str | None = None
        self.job_metrics = QueueRunMetrics()
        # Guards every read-modify-write of the queue document
        self._lock = asyncio.Lock()

    async def tick(self) -> dict:
        """
        Run a single iteration of the queue processor.

        Returns:
            Dict: Batch metrics, or {"skipped": True, "reason": ...}
        """
        if self.is_running or self._lock.locked():
            logger.warning("Message queue busy, skipping this tick")
            return {"skipped": True, "reason": "already_running"}

        self.is_running = True
        try:
            async with self._lock:
                return await self._process_pending()
        except Exception as e:
            # Storage or lookup failure: nothing was written, next tick re-reads
            self.last_error = str(e)
            logger.error("Message queue tick failed", error=str(e), error_type=type(e).__name__)
            return {"skipped": False, "error": str(e), "error_type": type(e).__name__}
        finally:
            self.is_running = False

    async def _process_pending(self) -> dict:
        document = await self.queue_store.load()
        pending = document.pending()

        if not pending:
            return {"skipped": True, "reason": "no_pending"}

        if not self.directory.is_ready():
            logger.info("Applicant data not loaded yet, deferring queue batch", pending=len(pending))
            return {"skipped": True, "reason": "directory_not_ready", "pending": len(pending)}

        self.job_metrics.reset(pending=len(pending))
        started = time.time()

        for task in pending:
            await self._process_task(task, document)

        await self.queue_store.save(document)

        self.job_metrics.finalize()
        self.last_run_time = datetime.now(UTC)
        self.last_error = None

        metrics = self.job_metrics.to_dict()
        log_queue_cycle(
            pending=metrics["pending"],
            processed=metrics["processed"],
            failed=metrics["failed"],
            deferred=metrics["deferred"],
            duration_ms=round((time.time() - started) * 1000, 2),
        )
        return metrics

    async def _process_task(self, task: QueueTask, document: QueueDocument) -> None:
        applicant = await self.directory.lookup_applicant(task.candidate_id)
        template = document.templates.get(task.action)

        if applicant is None or template is None:
            if applicant is None:
                reason = f"Applicant {task.candidate_id} not found"
            else:
                reason = f"No template for action '{task.action}'"
            task.mark_failed(reason)
            self.job_metrics.record_failure(task, reason)
            return

        message = render_template(template, applicant.template_fields())
        try:
            await self.sender(applicant, task, message)
        except Exception as e:
            self.job_metrics.record_deferred(task, f"{type(e).__name__}: {e}")
            return

        task.mark_processed(datetime.now(UTC))
        self.job_metrics.record_success(task)

    async def enqueue(
        self, candidate_ids: Iterable[object], action: MessageAction | str
    ) -> list[QueueTask]:
        """
        Add one pending task per candidate.

        Raises:
            StorageError: If the queue cannot be persisted
        """
        ids = normalize_ids(candidate_ids)
        if not ids:
            return []

        tasks = [QueueTask(candidate_id=candidate_id, action=action) for candidate_id in ids]
        async with self._lock:
            document = await self.queue_store.load()
            document.tasks.extend(tasks)
            await self.queue_store.save(document)

        logger.info("Messages queued", count=len(tasks), action=tasks[0].action)
        return tasks

    async def cancel_pending_by_list(self, list_id: object) -> int:
        """
        Remove pending tasks for every member of a list.

        Processed and failed tasks are left untouched.

        Returns:
            int: Number of cancelled tasks
        """
        canonical = normalize_id(list_id)
        job_list = await self.directory.lookup_list(canonical)
        if job_list is None or not job_list.member_ids:
            logger.info("No candidates in list, nothing to cancel", list_id=canonical)
            return 0

        cancelled = await self.cancel_pending_for_candidates(job_list.member_ids)
        logger.info("Pending messages cancelled", list_id=canonical, cancelled=cancelled)
        return cancelled

    async def cancel_pending_for_candidates(self, candidate_ids: Iterable[object]) -> int:
        targets = set(normalize_ids(candidate_ids))
        if not targets:
            return 0

        async with self._lock:
            document = await self.queue_store.load()
            kept = [
                task
                for task in document.tasks
                if not (task.status is QueueTaskStatus.PENDING and task.candidate_id in targets)
            ]
            cancelled = len(document.tasks) - len(kept)
            if cancelled:
                document.tasks = kept
                await self.queue_store.save(document)
        return cancelled

    async def list_tasks(self, status: QueueTaskStatus | None = None) -> list[QueueTask]:
        document = await self.queue_store.load()
        if status is None:
            return document.tasks
        return [task for task in document.tasks if task.status is status]

    def get_job_status(self) -> dict:
        return {
            "job_name": "message_queue",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_error": self.last_error,
            "interval_seconds": self.interval_seconds,
            "last_run_metrics": self.job_metrics.to_dict() if self.last_run_time else None,
        }

    def health_check(self) -> dict:
        """Healthy unless the last batch is older than twice the interval and work errored since."""
        now = datetime.now(UTC)
        overdue_threshold = timedelta(seconds=self.interval_seconds * 2)
        is_overdue = (
            self.last_run_time is not None
            and self.last_error is not None
            and (now - self.last_run_time) > overdue_threshold
        )

        health_status = {
            "healthy": not is_overdue,
            "service": "message_queue_job",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_error": self.last_error,
            "is_overdue": is_overdue,
        }
        if is_overdue:
            health_status["warning"] = (
                f"No successful batch for {(now - self.last_run_time).total_seconds():.0f} seconds"
            )
        return health_status


async def start_message_queue_scheduler(job: MessageQueueJob) -> None:
    """
    Run job.tick() every job.interval_seconds until cancelled.

    The busy guard inside tick() keeps a slow batch from overlapping the next one.
    """
    logger.info("Starting message queue scheduler", interval_seconds=job.interval_seconds)

    while True:
        try:
            await job.tick()
            await asyncio.sleep(job.interval_seconds)
        except asyncio.CancelledError:
            logger.info("Message queue scheduler stopped")
            raise
        except Exception as e:
            logger.error(
                "Error in message queue scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(SCHEDULER_ERROR_BACKOFF_SECONDS)
