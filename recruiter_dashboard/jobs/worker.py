"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and delegates to the appropriate scheduler.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from recruiter_dashboard.config import settings
from recruiter_dashboard.infrastructure.observability.logging import get_logger, setup_logging
from recruiter_dashboard.jobs.message_queue_job import start_message_queue_scheduler
from recruiter_dashboard.services.container import DashboardServices, build_services
from recruiter_dashboard.services.data_refresh_service import RefreshError

logger = get_logger(__name__)


async def _load_directory(services: DashboardServices) -> None:
    """Best-effort initial snapshot; the queue job defers batches until one exists."""
    try:
        await services.orchestrator.refresh(services.default_user_context())
    except RefreshError as e:
        logger.warning("Initial refresh failed, queue batches deferred", error=str(e))


async def start_message_queue_worker() -> None:
    """Run the message queue scheduler until cancelled."""
    services = build_services(settings)
    try:
        await _load_directory(services)
        await start_message_queue_scheduler(services.queue_job)
    finally:
        await services.close()


async def run_message_queue_once() -> None:
    """Process the pending queue a single time and exit."""
    services = build_services(settings)
    try:
        await _load_directory(services)
        result = await services.queue_job.tick()
        logger.info("Message queue run completed", result=result)
    finally:
        await services.close()


JobCoroutine = Callable[[], Awaitable[None]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "message_queue": start_message_queue_worker,
    "message_queue_once": run_message_queue_once,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "message_queue").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await JOB_REGISTRY[name]()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
