"""REST client for the credit, access and conversation endpoints."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from recruit_chat.api.v1.schemas.access import AccessCheckResponse, UnlockResponse
from recruit_chat.api.v1.schemas.conversation import ConversationResponse
from recruit_chat.api.v1.schemas.credits import BalanceResponse
from recruit_chat.api.v1.schemas.message import MessagePage
from recruit_chat.application.exceptions import (
    AccessDeniedError,
    AppError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    NotFoundError,
    TransportError,
    UnlockInconsistentError,
    ValidationError,
)
from recruit_chat.application.ports.auth import TokenProvider

logger = logging.getLogger(__name__)

_STATUS_ERRORS: dict[int, type[AppError]] = {
    401: AuthenticationError,
    402: InsufficientBalanceError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}

_CODE_ERRORS: dict[str, type[AppError]] = {
    UnlockInconsistentError.code: UnlockInconsistentError,
    AccessDeniedError.code: AccessDeniedError,
    InsufficientBalanceError.code: InsufficientBalanceError,
}


class HttpChatApi:
    """``ChatApi`` over httpx. The bearer token is read fresh for every call."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> HttpChatApi:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_balance(self) -> BalanceResponse:
        data = await self._request("GET", "/api/v1/credits/balance")
        return BalanceResponse.model_validate(data)

    async def check_access(self, target_id: int) -> AccessCheckResponse:
        data = await self._request("GET", f"/api/v1/chat/access-check/{target_id}")
        return AccessCheckResponse.model_validate(data)

    async def unlock(self, target_id: int) -> UnlockResponse:
        data = await self._request("POST", "/api/v1/credits/unlock", json={"target_id": target_id})
        return UnlockResponse.model_validate(data)

    async def create_or_get_conversation(self, counterpart_id: int) -> ConversationResponse:
        data = await self._request(
            "POST", "/api/v1/chat/conversations", json={"counterpart_id": counterpart_id},
        )
        return ConversationResponse.model_validate(data)

    async def list_conversations(self, *, page: int = 1, limit: int = 20) -> list[ConversationResponse]:
        data = await self._request(
            "GET", "/api/v1/chat/conversations", params={"page": page, "limit": limit},
        )
        return [ConversationResponse.model_validate(item) for item in data]

    async def list_messages(
        self, conversation_id: UUID, *, page: int = 1, limit: int = 50,
    ) -> MessagePage:
        data = await self._request(
            "GET",
            f"/api/v1/chat/conversations/{conversation_id}/messages",
            params={"page": page, "limit": limit},
        )
        return MessagePage.model_validate(data)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {"Authorization": f"Bearer {self._token_provider()}"}
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_from(response)
        return response.json()


def _error_from(response: httpx.Response) -> AppError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    detail = body.get("detail")
    if not isinstance(detail, str):
        detail = f"Request failed ({response.status_code})"
    code = body.get("code")

    logger.debug("%s %s -> %d %s", response.request.method, response.request.url, response.status_code, code)
    error_cls = _CODE_ERRORS.get(code) or _STATUS_ERRORS.get(response.status_code)
    if error_cls is not None:
        return error_cls(detail)
    if response.status_code >= 500:
        return TransportError(detail)
    return AppError(detail)
