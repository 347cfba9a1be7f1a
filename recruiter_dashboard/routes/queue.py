"""
Message queue routes: bulk send, cancel by list, status.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.models.api.queue_request import BulkSendRequest, CancelByListRequest
from recruiter_dashboard.models.api.queue_response import (
    BulkSendResponse,
    CancelByListResponse,
    QueueStatusResponse,
)
from recruiter_dashboard.models.domain.queue_domain import QueueTaskStatus
from recruiter_dashboard.routes.dependencies import get_services, require_bulk_actions
from recruiter_dashboard.services.container import DashboardServices
from recruiter_dashboard.services.storage.kv_store import StorageError

logger = get_logger(__name__)

router = APIRouter(prefix="/queue", tags=["queue"])


def _storage_unavailable(operation: str, e: StorageError) -> HTTPException:
    logger.error("Message queue storage failure", operation=operation, error=str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Message queue storage unavailable"
    )


@router.post(
    "/bulk-send",
    response_model=BulkSendResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_bulk_actions)],
)
async def bulk_send(request: BulkSendRequest, services: DashboardServices = Depends(get_services)):
    """Queue one message per candidate; delivery happens on the next processor tick."""
    try:
        tasks = await services.queue_job.enqueue(request.candidate_ids, request.action)
    except StorageError as e:
        raise _storage_unavailable("bulk_send", e) from e

    if not tasks:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid candidate ids")
    return BulkSendResponse(queued=len(tasks), tasks=tasks)


@router.post("/cancel-by-list", response_model=CancelByListResponse)
async def cancel_by_list(
    request: CancelByListRequest, services: DashboardServices = Depends(get_services)
):
    """Remove pending messages for every member of a list."""
    try:
        cancelled = await services.queue_job.cancel_pending_by_list(request.list_id)
    except StorageError as e:
        raise _storage_unavailable("cancel_by_list", e) from e
    return CancelByListResponse(list_id=request.list_id, cancelled=cancelled)


@router.get("/status", response_model=QueueStatusResponse)
async def queue_status(services: DashboardServices = Depends(get_services)):
    job = services.queue_job
    try:
        tasks = await job.list_tasks()
    except StorageError as e:
        raise _storage_unavailable("status", e) from e

    counts = {task_status: 0 for task_status in QueueTaskStatus}
    for task in tasks:
        counts[task.status] += 1

    return QueueStatusResponse(
        pending=counts[QueueTaskStatus.PENDING],
        processed=counts[QueueTaskStatus.PROCESSED],
        failed=counts[QueueTaskStatus.FAILED],
        job=job.get_job_status(),
        health=job.health_check(),
    )
