"""
Recruiter backend API client.
Implements the DataProvider (fetch applicants/lists) and ListMutator
(membership, status, send, list CRUD) contracts over httpx.

Applicant IDs crossing this boundary are numeric, phone-number derived
values; malformed IDs are dropped before a request is built.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol
from uuid import uuid4

import httpx
from pydantic import ValidationError

from recruiter_dashboard.config import Settings, settings
from recruiter_dashboard.infrastructure.observability.logging import get_logger
from recruiter_dashboard.models.domain.applicant_domain import (
    ApplicantStatus,
    RawApplicant,
    UserContext,
)
from recruiter_dashboard.models.domain.list_domain import (
    ListRemovalResult,
    ListStatus,
    RawJobList,
)
from recruiter_dashboard.models.domain.queue_domain import MessageAction
from recruiter_dashboard.utils.ids import to_backend_ids

logger = get_logger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
EMPTY_RESULT_MARKERS = ("no lists found", "no applicants found")

TokenRefresher = Callable[[UserContext], Awaitable[UserContext]]


class RecruiterApiError(Exception):
    """Raised when a recruiter backend call fails after retries."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        operation: str | None = None,
        detail: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation
        self.detail = detail
        self.recoverable = recoverable


class DataProvider(Protocol):
    async def fetch_applicants(self, user_context: UserContext) -> list[RawApplicant]: ...

    async def fetch_lists(self, status: ListStatus, user_context: UserContext) -> list[RawJobList]: ...


class ListMutator(Protocol):
    async def add_members(
        self, list_id: str, applicant_ids: Sequence[object], user_context: UserContext | None = None
    ) -> dict: ...

    async def remove_members(
        self, list_id: str, applicant_ids: Sequence[object], user_context: UserContext | None = None
    ) -> dict: ...

    async def send_action(
        self,
        list_id: str,
        applicant_ids: Sequence[object],
        action: MessageAction,
        user_context: UserContext | None = None,
    ) -> str | None: ...

    async def update_status(
        self,
        list_id: str,
        applicant_ids: Sequence[object],
        status: ApplicantStatus,
        user_context: UserContext | None = None,
    ) -> dict: ...

    async def create_list(
        self,
        name: str,
        description: str,
        initial_applicant_ids: Sequence[object],
        user_context: UserContext | None = None,
    ) -> RawJobList | None: ...

    async def update_list(
        self, list_id: str, patch: dict[str, Any], user_context: UserContext | None = None
    ) -> dict: ...

    async def archive_or_delete_list(
        self, list_id: str, user_context: UserContext | None = None
    ) -> ListRemovalResult: ...


def extract_data(payload: Any) -> list:
    """Accept {"data": [...]}, {"data": {...}} or a bare list; anything else is empty."""
    if isinstance(payload, dict) and payload.get("data") is not None:
        data = payload["data"]
        return data if isinstance(data, list) else [data]
    if isinstance(payload, list):
        return payload
    return []


class RecruiterApiClient:
    """
    Async client for the recruiter REST API.

    Retries transport errors and 429/5xx responses with exponential backoff.
    A 404 reporting "no lists/applicants found" is an empty result, not an error.
    """

    def __init__(
        self,
        config: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        token_refresher: TokenRefresher | None = None,
    ):
        self.config = config or settings
        self.base_url = self.config.api_base_url()
        retry_config = self.config.get_retry_config()
        self.max_attempts = retry_config["attempts"]
        self.retry_delay = retry_config["delay_seconds"]
        self.token_refresher = token_refresher
        self._client = self._create_client(transport)

    def _create_client(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.config.request_timeout_seconds())
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    def default_context(self) -> UserContext:
        return UserContext(user_id=self.config.DEFAULT_USER_ID)

    async def _resolve_context(self, user_context: UserContext | None) -> UserContext:
        context = user_context or self.default_context()
        if self.token_refresher and context.needs_token_refresh(
            self.config.TOKEN_REFRESH_BUFFER_SECONDS
        ):
            logger.info("Refreshing access token before request", user_id=context.user_id)
            context = await self.token_refresher(context)
        return context

    def _headers(self, context: UserContext) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-User-ID": context.user_id,
        }
        if context.access_token:
            headers["Authorization"] = f"Bearer {context.access_token}"
        return headers

    @staticmethod
    def _envelope(request: dict) -> dict:
        """Wrap a request body the way the backend expects."""
        return {"request": request, "mid": str(uuid4()), "ts": int(time.time() * 1000)}

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < self.max_attempts:
                    backoff = self.retry_delay * (2 ** (attempt - 1))
                    logger.debug(
                        "Recruiter API retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= self.max_attempts:
                    raise RecruiterApiError(
                        f"Network error calling recruiter API: {e}", operation=f"{method} {url}"
                    ) from e
                backoff = self.retry_delay * (2 ** (attempt - 1))
                logger.debug(
                    "Recruiter API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Recruiter API retry loop exhausted")

    async def _call(
        self,
        method: str,
        path: str,
        operation: str,
        user_context: UserContext | None = None,
        body: dict | None = None,
        params: dict | None = None,
        empty_on_not_found: bool = False,
    ) -> Any:
        context = await self._resolve_context(user_context)
        response = await self._request_with_retry(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(context),
            json=self._envelope(body) if body is not None else None,
            params=params,
        )
        return self._handle_api_response(response, operation, empty_on_not_found)

    def _handle_api_response(
        self, response: httpx.Response, operation: str, empty_on_not_found: bool = False
    ) -> Any:
        """
        Handle and validate a recruiter API response.

        Raises:
            RecruiterApiError: If the response is an error or not JSON
        """
        logger.debug(
            f"Recruiter API {operation} response",
            status_code=response.status_code,
            response_size=len(response.content),
        )

        try:
            data = response.json() if response.content else {}
        except ValueError:
            logger.error(
                f"Recruiter API {operation} returned non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise RecruiterApiError(
                f"Recruiter API error (HTTP {response.status_code}): unexpected response format",
                status_code=response.status_code,
                operation=operation,
                detail=response.text[:200],
            ) from None

        if response.is_success:
            return data

        detail = data.get("detail") if isinstance(data, dict) else None
        detail_text = str(detail) if detail is not None else ""

        if (
            empty_on_not_found
            and response.status_code == 404
            and any(marker in detail_text.lower() for marker in EMPTY_RESULT_MARKERS)
        ):
            logger.info(f"Recruiter API {operation} found nothing", detail=detail_text)
            return {"data": []}

        logger.error(
            f"Recruiter API {operation} failed",
            status_code=response.status_code,
            detail=detail_text,
        )
        raise RecruiterApiError(
            detail_text or f"HTTP error! status: {response.status_code}",
            status_code=response.status_code,
            operation=operation,
            detail=detail_text or None,
            recoverable=response.status_code in RETRY_STATUS_CODES,
        )

    def _backend_ids(self, applicant_ids: Sequence[object], operation: str) -> list[int]:
        backend_ids, rejected = to_backend_ids(applicant_ids, self.config.DEFAULT_COUNTRY_CODE)
        if rejected:
            logger.warning("Dropping malformed applicant ids", operation=operation, rejected=rejected)
        return backend_ids

    # ------------------------------------------------------------------
    # DataProvider
    # ------------------------------------------------------------------

    async def fetch_applicants(self, user_context: UserContext | None = None) -> list[RawApplicant]:
        payload = await self._call(
            "GET", "/applicants", "fetch_applicants", user_context, empty_on_not_found=True
        )
        return _parse_records(extract_data(payload), RawApplicant, "applicant")

    async def fetch_lists(
        self, status: ListStatus = ListStatus.ACTIVE, user_context: UserContext | None = None
    ) -> list[RawJobList]:
        payload = await self._call(
            "GET",
            "/recruiter-lists",
            "fetch_lists",
            user_context,
            params={"status": ListStatus(status).value},
            empty_on_not_found=True,
        )
        return _parse_records(extract_data(payload), RawJobList, "list")

    # ------------------------------------------------------------------
    # ListMutator
    # ------------------------------------------------------------------

    async def _list_action(
        self,
        list_id: str,
        verb: str,
        applicant_ids: Sequence[object],
        user_context: UserContext | None,
        extra: dict | None = None,
    ) -> dict:
        backend_ids = self._backend_ids(applicant_ids, verb)
        if not backend_ids:
            return {"status": "NO_CHANGE", "applicants": []}

        body = {"applicants": backend_ids, **(extra or {})}
        payload = await self._call(
            "POST", f"/list-actions/{list_id}/{verb}", f"list_{verb}", user_context, body=body
        )
        return payload if isinstance(payload, dict) else {"data": payload}

    async def add_members(
        self, list_id: str, applicant_ids: Sequence[object], user_context: UserContext | None = None
    ) -> dict:
        return await self._list_action(list_id, "add", applicant_ids, user_context)

    async def remove_members(
        self, list_id: str, applicant_ids: Sequence[object], user_context: UserContext | None = None
    ) -> dict:
        return await self._list_action(list_id, "remove", applicant_ids, user_context)

    async def update_status(
        self,
        list_id: str,
        applicant_ids: Sequence[object],
        status: ApplicantStatus,
        user_context: UserContext | None = None,
    ) -> dict:
        verb = "disable" if ApplicantStatus(status) is ApplicantStatus.DISABLED else "enable"
        return await self._list_action(list_id, verb, applicant_ids, user_context)

    async def send_action(
        self,
        list_id: str,
        applicant_ids: Sequence[object],
        action: MessageAction,
        user_context: UserContext | None = None,
        template_message: str | None = None,
    ) -> str | None:
        """
        Trigger an outbound message action for list members.

        Returns:
            The backend action id, usable with cancel_action
        """
        action = MessageAction(action)
        if action is MessageAction.NUDGE:
            payload = await self._list_action(list_id, "nudge", applicant_ids, user_context)
        else:
            extra = (
                {"additional_config": {"template_message": template_message}}
                if template_message
                else None
            )
            payload = await self._list_action(list_id, "send", applicant_ids, user_context, extra)

        records = extract_data(payload) or [payload]
        action_id = next(
            (r.get("action_id") for r in records if isinstance(r, dict) and r.get("action_id")),
            None,
        )
        return str(action_id) if action_id is not None else None

    async def cancel_action(
        self, list_id: str, action_id: str, user_context: UserContext | None = None
    ) -> dict:
        payload = await self._call(
            "GET", f"/list-actions/{list_id}/{action_id}/cancel", "cancel_action", user_context
        )
        return payload if isinstance(payload, dict) else {"data": payload}

    async def create_list(
        self,
        name: str,
        description: str,
        initial_applicant_ids: Sequence[object] = (),
        user_context: UserContext | None = None,
    ) -> RawJobList | None:
        body = {
            "list_name": name,
            "list_description": description,
            "applicants": self._backend_ids(initial_applicant_ids, "create_list"),
        }
        payload = await self._call(
            "POST", "/recruiter-lists/", "create_list", user_context, body=body
        )
        created = _parse_records(extract_data(payload) or [payload], RawJobList, "list")
        return created[0] if created else None

    async def update_list(
        self, list_id: str, patch: dict[str, Any], user_context: UserContext | None = None
    ) -> dict:
        allowed = {k: v for k, v in patch.items() if k in {"list_name", "list_description", "status"}}
        if isinstance(allowed.get("status"), ListStatus):
            allowed["status"] = allowed["status"].value
        payload = await self._call(
            "PUT", f"/recruiter-lists/{list_id}", "update_list", user_context, body=allowed
        )
        return payload if isinstance(payload, dict) else {"data": payload}

    async def archive_or_delete_list(
        self, list_id: str, user_context: UserContext | None = None
    ) -> ListRemovalResult:
        """
        Best-effort removal: DELETE, then archive, then report the backend limitation.

        The limitation outcome is a success; callers fall back to a local soft delete.
        """
        try:
            await self._call("DELETE", f"/recruiter-lists/{list_id}", "delete_list", user_context)
            logger.info("List deleted", list_id=list_id)
            return ListRemovalResult(success=True, message="List deleted successfully", deleted=True)
        except RecruiterApiError as delete_error:
            logger.info("List deletion failed, trying archive", list_id=list_id, error=str(delete_error))

        try:
            await self.update_list(list_id, {"status": ListStatus.ARCHIVED}, user_context)
            logger.info("List archived", list_id=list_id)
            return ListRemovalResult(success=True, message="List archived successfully", archived=True)
        except RecruiterApiError as archive_error:
            logger.info(
                "Backend supports neither list deletion nor archiving",
                list_id=list_id,
                error=str(archive_error),
            )

        return ListRemovalResult(
            success=True,
            message="List deletion is not supported by the backend. The list remains active.",
            backend_limitation=True,
        )

    async def health_check(self) -> dict:
        t0 = time.time()
        try:
            response = await self._client.get(f"{self.base_url}/health")
            return {
                "ok": response.is_success,
                "status_code": response.status_code,
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
        except httpx.RequestError as e:
            return {"ok": False, "error": f"{type(e).__name__}: {e}"}


def _parse_records(records: list, model, kind: str) -> list:
    parsed = []
    for record in records:
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {kind} record", error=str(e)[:200])
    return parsed
