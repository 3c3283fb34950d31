"""HTTP transport for the Vlibe Storage API.

Every API call goes through :meth:`Transport.request`, which injects the app
credentials and normalizes the reply into an :class:`ApiResponse` envelope.
Unsuccessful envelopes are returned, not raised; only network failures and
unreadable bodies raise :class:`TransportError`.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from .errors import TransportError
from .models import ApiResponse

logger = logging.getLogger(__name__)


class Transport:
    """Authenticated httpx wrapper bound to one API origin."""

    def __init__(
        self,
        base_url: str,
        app_id: str,
        app_secret: str,
        *,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.removesuffix("/")
        self._app_id = app_id
        self._app_secret = app_secret
        self._auth_token: str | None = None
        self._http = httpx.AsyncClient(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def auth_token(self) -> str | None:
        return self._auth_token

    def set_auth_token(self, token: str) -> None:
        self._auth_token = token

    def clear_auth_token(self) -> None:
        self._auth_token = None

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http.aclose()

    def _headers(self, overrides: Mapping[str, str] | None) -> dict[str, str]:
        headers = {
            "X-App-Id": self._app_id,
            "X-App-Secret": self._app_secret,
            **(overrides or {}),
        }
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
        files: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        """
        Send a request to ``<base_url>/api<path>``.

        Raises:
            TransportError: If the request fails or the body cannot be parsed
        """
        url = f"{self._base_url}/api{path}"
        logger.debug("Storage API request", extra={"method": method, "path": path})

        try:
            response = await self._http.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=self._headers(headers),
            )
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

        return self._parse(response)

    @staticmethod
    def _parse(response: httpx.Response) -> ApiResponse:
        try:
            body = response.json()
        except ValueError as e:
            if response.is_success:
                raise TransportError(
                    f"Invalid response body: HTTP {response.status_code}"
                ) from e
            body = None

        error = body.get("error") if isinstance(body, dict) else None

        # Trust the server's own error text even on non-2xx codes
        if not response.is_success and not error:
            return ApiResponse(
                success=False,
                error=f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        if not isinstance(body, dict):
            raise TransportError("Invalid response body: expected a JSON object")

        try:
            return ApiResponse.model_validate(body)
        except ValidationError as e:
            raise TransportError(f"Invalid response envelope: {e}") from e

    async def put_binary(
        self,
        url: str,
        content: bytes | AsyncIterable[bytes],
        *,
        headers: Mapping[str, str],
    ) -> httpx.Response:
        """
        PUT raw bytes to an absolute third-party URL.

        App credentials and the bearer token are never sent here.

        Raises:
            TransportError: If the request fails
        """
        try:
            return await self._http.put(url, content=content, headers=dict(headers))
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e
