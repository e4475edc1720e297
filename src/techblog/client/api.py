"""HTTP wrapper around the TechBlog REST API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from techblog.schemas.common import MessageResponse
from techblog.schemas.post import (
    LikeResponse,
    PostCreate,
    PostDetailResponse,
    PostListQuery,
    PostListResponse,
    PostMutationResponse,
    PostUpdate,
)

from .config import ClientSettings
from .errors import TransportError, error_for_status

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400


class BlogApi:
    """Thin async client for the post endpoints.

    Every request carries the timeout from `ClientSettings`; the bearer
    token, when set, is sent on every call.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=httpx.Timeout(self.settings.timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_data: Any | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json_data,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"Request failed: {exc}") from exc

        if response.status_code >= HTTP_BAD_REQUEST:
            try:
                detail = response.json().get("detail", response.reason_phrase)
            except ValueError:
                detail = response.reason_phrase
            logger.debug("%s %s -> %s %s", method, path, response.status_code, detail)
            raise error_for_status(response.status_code, str(detail))
        return response.json()

    async def get_posts(self, query: PostListQuery) -> PostListResponse:
        payload = await self._request("GET", "/posts/", params=query.to_query_params())
        return PostListResponse.model_validate(payload)

    async def get_post(self, post_id: int) -> PostDetailResponse:
        payload = await self._request("GET", f"/posts/{post_id}")
        return PostDetailResponse.model_validate(payload)

    async def create_post(self, data: PostCreate) -> PostMutationResponse:
        payload = await self._request(
            "POST", "/posts/", json_data=data.model_dump(by_alias=True, exclude_none=True)
        )
        return PostMutationResponse.model_validate(payload)

    async def update_post(self, post_id: int, data: PostUpdate) -> PostMutationResponse:
        payload = await self._request(
            "PUT",
            f"/posts/{post_id}",
            json_data=data.model_dump(by_alias=True, exclude_unset=True),
        )
        return PostMutationResponse.model_validate(payload)

    async def delete_post(self, post_id: int) -> MessageResponse:
        payload = await self._request("DELETE", f"/posts/{post_id}")
        return MessageResponse.model_validate(payload)

    async def like_post(self, post_id: int) -> LikeResponse:
        payload = await self._request("POST", f"/posts/{post_id}/like")
        return LikeResponse.model_validate(payload)
