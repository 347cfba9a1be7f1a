"""Debug-only introspection endpoints. Mounted when settings.debug is on."""

from fastapi import APIRouter, Depends

from recruiter_dashboard.routes.dependencies import get_services
from recruiter_dashboard.services.container import DashboardServices

router = APIRouter(prefix="/debug", tags=["debug"])


@router.get("/state")
async def debug_state(services: DashboardServices = Depends(get_services)):
    """Orchestrator state, tombstones and queue processor status."""
    return {
        "orchestrator": services.orchestrator.get_debug_state(),
        "soft_deletes": await services.soft_delete_store.summary(),
        "message_queue": services.queue_job.get_job_status(),
    }
