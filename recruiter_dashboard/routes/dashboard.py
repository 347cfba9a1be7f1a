"""
Dashboard API Routes
HTTP endpoints for the applicant/list snapshot, refresh, bulk actions and
list management.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.models.api.dashboard_request import (
    BulkActionRequest,
    CreateListRequest,
    RenameListRequest,
)
from recruiter_dashboard.models.api.dashboard_response import (
    BulkActionResponse,
    CreateListResponse,
    RenameListResponse,
    SnapshotResponse,
)
from recruiter_dashboard.models.domain.applicant_domain import UserContext
from recruiter_dashboard.routes.dependencies import (
    get_services,
    require_bulk_actions,
    user_context_dependency,
)
from recruiter_dashboard.services.bulk_action_service import (
    BulkActionContext,
    BulkActionError,
    ConfirmationRequiredError,
)
from recruiter_dashboard.services.container import DashboardServices
from recruiter_dashboard.services.data_refresh_service import RefreshError
from recruiter_dashboard.services.recruiter_api_client import RecruiterApiError
from recruiter_dashboard.services.storage.kv_store import StorageError

logger = get_logger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _snapshot_response(services: DashboardServices) -> SnapshotResponse:
    orchestrator = services.orchestrator
    snapshot = orchestrator.get_snapshot()
    return SnapshotResponse(
        state=orchestrator.state.value,
        applicants=snapshot.applicants if snapshot else [],
        lists=snapshot.lists if snapshot else [],
        refreshed_at=snapshot.refreshed_at if snapshot else None,
        last_error=orchestrator.last_error,
    )


def _bulk_error_to_http(e: BulkActionError) -> HTTPException:
    if isinstance(e, ConfirmationRequiredError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/snapshot", response_model=SnapshotResponse)
async def get_snapshot(services: DashboardServices = Depends(get_services)):
    """Last published snapshot; empty until the first successful refresh."""
    return _snapshot_response(services)


@router.post("/refresh", response_model=SnapshotResponse)
async def refresh_dashboard(
    services: DashboardServices = Depends(get_services),
    user_context: UserContext = Depends(user_context_dependency),
):
    try:
        await services.orchestrator.refresh(user_context)
    except RefreshError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "detail": "Failed to refresh dashboard data",
                "retry": True,
                "last_error": str(e),
            },
        )
    return _snapshot_response(services)


@router.post(
    "/actions",
    response_model=BulkActionResponse,
    dependencies=[Depends(require_bulk_actions)],
)
async def apply_bulk_action(
    request: BulkActionRequest,
    services: DashboardServices = Depends(get_services),
    user_context: UserContext = Depends(user_context_dependency),
):
    """Apply one action to the selected applicants or lists."""
    context = BulkActionContext(
        list_id=request.list_id,
        confirmed=request.confirmed,
        entity=request.entity,
        user_context=user_context,
    )
    try:
        result = await services.coordinator.apply(request.action, request.selected_ids, context)
    except BulkActionError as e:
        raise _bulk_error_to_http(e) from e
    except RefreshError as e:
        # Only reachable when grouping needs a snapshot and none could be loaded
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    except StorageError as e:
        logger.error("Bulk action storage failure", action=request.action.value, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Local storage unavailable"
        ) from e

    return BulkActionResponse(**result.to_dict())


@router.post(
    "/lists",
    response_model=CreateListResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_bulk_actions)],
)
async def create_list(
    request: CreateListRequest,
    services: DashboardServices = Depends(get_services),
    user_context: UserContext = Depends(user_context_dependency),
):
    """Create a list from recruiter-entered phone numbers."""
    try:
        result = await services.coordinator.create_list_from_phone_numbers(
            request.name, request.phone_numbers, request.description, user_context
        )
    except BulkActionError as e:
        raise _bulk_error_to_http(e) from e
    except RecruiterApiError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return CreateListResponse(
        list_id=result.list_id,
        name=result.name,
        applicant_ids=result.applicant_ids,
        invalid_entries=result.invalid_entries,
        refreshed=result.refreshed,
    )


@router.put("/lists/{list_id}", response_model=RenameListResponse)
async def rename_list(
    list_id: str,
    request: RenameListRequest,
    services: DashboardServices = Depends(get_services),
    user_context: UserContext = Depends(user_context_dependency),
):
    try:
        refreshed = await services.coordinator.rename_list(
            list_id, request.name, request.description, user_context
        )
    except BulkActionError as e:
        raise _bulk_error_to_http(e) from e
    except RecruiterApiError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return RenameListResponse(list_id=list_id, name=request.name.strip(), refreshed=refreshed)
