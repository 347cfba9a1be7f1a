"""
dependencies.py
---------------
Purpose:
    Request-scoped dependencies shared by the dashboard routes.

Notes:
    - The caller is identified by the X-User-ID header; a bearer token, when
      present, is passed through to the recruiter backend unchanged.
    - Services are built once in the app lifespan and read from app.state.
"""

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from recruiter_dashboard.config import settings
from recruiter_dashboard.models.domain.applicant_domain import UserContext
from recruiter_dashboard.services.container import DashboardServices

_security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> DashboardServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Services not initialized"
        )
    return services


def user_context_dependency(
    x_user_id: str | None = Header(default=None),
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> UserContext:
    user_id = (x_user_id or settings.DEFAULT_USER_ID).strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")
    return UserContext(
        user_id=user_id,
        access_token=credentials.credentials if credentials else None,
    )


def require_bulk_actions() -> None:
    if not settings.ENABLE_BULK_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Bulk actions are disabled"
        )
