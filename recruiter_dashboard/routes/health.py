"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from recruiter_dashboard.config import settings
from recruiter_dashboard.routes.dependencies import get_services
from recruiter_dashboard.services.container import DashboardServices

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "recruiter-dashboard"}


@router.get("/readyz")
async def readyz(services: DashboardServices = Depends(get_services)):
    """
    Readiness check: persistence backend, snapshot state and queue processor.
    """
    checks = {}
    overall_ok = True

    # 1) Storage backend ping
    t0 = time.time()
    try:
        storage_ok = await services.kv_store.ping()
        checks["storage"] = {
            "ok": bool(storage_ok),
            "backend": settings.STORAGE_BACKEND,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and bool(storage_ok)
    except Exception as e:
        checks["storage"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 2) Snapshot state, informational: a failed refresh keeps serving the last snapshot
    debug_state = services.orchestrator.get_debug_state()
    checks["snapshot"] = {
        "ok": services.orchestrator.is_ready(),
        "state": debug_state["state"],
        "last_error": debug_state["last_error"],
    }

    # 3) Queue processor
    queue_health = services.queue_job.health_check()
    checks["message_queue"] = {
        "ok": queue_health["healthy"],
        "enabled": settings.QUEUE_PROCESSOR_ENABLED,
        "last_run_time": queue_health["last_run_time"],
        "last_error": queue_health["last_error"],
    }
    overall_ok = overall_ok and queue_health["healthy"]

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
