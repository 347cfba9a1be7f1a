"""
FastAPI application: dashboard routes plus the message queue scheduler,
which runs inside the app lifespan when QUEUE_PROCESSOR_ENABLED is set.
"""

import asyncio
import contextlib
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from recruiter_dashboard.config import settings
from recruiter_dashboard.infrastructure.observability.logging import (
    get_logger,
    log_request,
    setup_logging,
)
from recruiter_dashboard.jobs.message_queue_job import start_message_queue_scheduler
from recruiter_dashboard.routes import dashboard, debug, health, queue
from recruiter_dashboard.services.container import DashboardServices, build_services
from recruiter_dashboard.services.data_refresh_service import RefreshError

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


async def _initial_refresh(services: DashboardServices) -> None:
    try:
        await services.orchestrator.refresh(services.default_user_context())
    except RefreshError as e:
        logger.warning("Initial dashboard refresh failed", error=str(e))


def create_app(
    services: DashboardServices | None = None,
    start_scheduler: bool | None = None,
    debug_routes: bool | None = None,
) -> FastAPI:
    """Build the app; explicit services replace the configured ones (tests)."""
    run_scheduler = settings.QUEUE_PROCESSOR_ENABLED if start_scheduler is None else start_scheduler
    include_debug = settings.debug if debug_routes is None else debug_routes

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown with proper resource management."""
        logger.info("Application starting", environment=settings.environment, debug=settings.debug)

        app.state.services = services or build_services(settings)
        background_tasks: list[asyncio.Task] = [
            asyncio.create_task(_initial_refresh(app.state.services))
        ]
        if run_scheduler:
            background_tasks.append(
                asyncio.create_task(start_message_queue_scheduler(app.state.services.queue_job))
            )
        logger.info("All services initialized successfully", scheduler=run_scheduler)

        yield

        logger.info("Application shutting down")
        for task in background_tasks:
            task.cancel()
        for task in background_tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await app.state.services.close()
        logger.info("All services closed successfully")

    app = FastAPI(
        title="Recruiter Dashboard",
        description="Applicant/list reconciliation, bulk actions and outbound message queue",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(dashboard.router)
    app.include_router(queue.router)
    if include_debug:
        app.include_router(debug.router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        structlog.contextvars.clear_contextvars()
        user_id = request.headers.get("x-user-id")
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)

        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(process_time, 2),
            user_id=user_id,
        )
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
