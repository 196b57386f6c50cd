"""HTTP client for the test session API."""

from typing import Any
from uuid import UUID

import httpx

from examprep.core.logging import get_logger
from examprep.schemas.configuration import SessionConfiguration

logger = get_logger(__name__)


class ApiError(Exception):
    """Error envelope returned by the API."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(f"{status_code} {error_code}: {message}")
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details
        self.request_id = request_id


class TestSessionClient:
    """Async wrapper around the test session and question attempt endpoints.

    Pass ``transport`` (e.g. ``httpx.ASGITransport``) to talk to an in-process
    app.
    """

    __test__ = False

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        api_prefix: str = "/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + api_prefix,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TestSessionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, url, **kwargs)
        if response.is_error:
            raise self._to_api_error(response)
        return response.json()

    @staticmethod
    def _to_api_error(response: httpx.Response) -> ApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        error = ApiError(
            status_code=response.status_code,
            error_code=body.get("error_code", "HTTP_ERROR"),
            message=body.get("message", response.reason_phrase),
            details=body.get("details"),
            request_id=body.get("request_id") or response.headers.get("X-Request-ID"),
        )
        logger.info(
            "api_error",
            extra={
                "status_code": error.status_code,
                "error_code": error.error_code,
                "request_id": error.request_id,
            },
        )
        return error

    # Configuration and composition

    async def get_test_configuration(self, exam_id: UUID | str) -> dict[str, Any]:
        return await self._request("GET", f"/exams/{exam_id}/test-configuration")

    async def create_session(
        self, exam_id: UUID | str, configuration: SessionConfiguration
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/test-sessions",
            json={"exam_id": str(exam_id), "configuration": configuration.model_dump(mode="json")},
        )

    async def list_sessions(self, **params: Any) -> dict[str, Any]:
        params = {k: str(v) for k, v in params.items() if v is not None}
        return await self._request("GET", "/test-sessions", params=params)

    async def get_session(self, session_id: UUID | str) -> dict[str, Any]:
        return await self._request("GET", f"/test-sessions/{session_id}")

    # Lifecycle

    async def start_session(self, session_id: UUID | str) -> dict[str, Any]:
        return await self._request("POST", f"/test-sessions/{session_id}/start")

    async def pause_session(self, session_id: UUID | str) -> dict[str, Any]:
        return await self._request("POST", f"/test-sessions/{session_id}/pause")

    async def resume_session(self, session_id: UUID | str) -> dict[str, Any]:
        return await self._request("POST", f"/test-sessions/{session_id}/resume")

    async def complete_session(self, session_id: UUID | str) -> dict[str, Any]:
        return await self._request("POST", f"/test-sessions/{session_id}/complete")

    # Responses

    async def save_response(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = {k: str(v) if isinstance(v, UUID) else v for k, v in payload.items()}
        return await self._request("POST", "/question-attempts", json=body)

    async def get_slot_response(
        self, session_id: UUID | str, question_id: UUID | str
    ) -> dict[str, Any] | None:
        return await self._request(
            "GET", f"/test-sessions/{session_id}/questions/{question_id}/response"
        )
