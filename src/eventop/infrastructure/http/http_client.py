from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Type
from types import TracebackType

import httpx

AccessTokenProvider = Callable[[], Awaitable[Optional[str]]]


class AsyncHttpClient:
    """Thin asynchronous HTTP client wrapper around httpx.AsyncClient.

    - Normalizes base URLs and paths.
    - Applies a default timeout and default headers.
    - Adds ``Authorization: Bearer`` when an access token provider yields a token.
    - Raises for non-successful responses.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        headers: Optional[Dict[str, str]] = None,
        access_token_provider: Optional[AccessTokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token_provider = access_token_provider
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json", **(headers or {})},
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path:
            return self._base_url
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _auth_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = dict(headers or {})
        if self._access_token_provider is not None:
            token = await self._access_token_provider()
            if token:
                merged["Authorization"] = f"Bearer {token}"
        return merged

    async def get(
        self,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        resp = await self._client.get(
            self._url(path), headers=await self._auth_headers(headers), **kwargs
        )
        resp.raise_for_status()
        return resp

    async def post(
        self,
        path: str,
        *,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        resp = await self._client.post(
            self._url(path),
            json=json,
            headers=await self._auth_headers(headers),
            **kwargs,
        )
        resp.raise_for_status()
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
