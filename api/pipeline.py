"""
Request Pipeline

Single call path from bindings → remote DPDA API.

BOUNDARY ENFORCEMENT:
=====================
- Every request carries the session header (request decorator)
- Every failure is logged with method, path and status (response interceptor)
- Errors are re-raised unchanged: the pipeline is purely observational

WHAT THIS PIPELINE MUST NOT DO:
===============================
- Retry
- Cache
- Rate-limit
- Translate or wrap exceptions
"""

from __future__ import annotations
from typing import Any, Mapping, Optional
import logging

import httpx

from session import IdentityProvider

from .config import ClientConfig, SESSION_HEADER


logger = logging.getLogger(__name__)


class RequestPipeline:
    """
    httpx.AsyncClient with session-header injection and failure logging.

    GUARANTEES:
    ===========
    1. An explicitly supplied session header is never overwritten
    2. Non-2xx responses raise httpx.HTTPStatusError
    3. The exception the caller sees is the one the transport raised
    """

    def __init__(
        self,
        identity: IdentityProvider,
        base_url: str,
        timeout_seconds: float = 30.0,
        session_header: str = SESSION_HEADER,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._identity = identity
        self._session_header = session_header
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json"},
            event_hooks={"request": [self._attach_session]},
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        identity: IdentityProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> RequestPipeline:
        return cls(
            identity=identity,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
            session_header=config.session_header,
            transport=transport,
        )

    @property
    def identity(self) -> IdentityProvider:
        return self._identity

    async def _attach_session(self, request: httpx.Request) -> None:
        if self._session_header not in request.headers:
            request.headers[self._session_header] = self._identity.get_or_create()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "API Error: %s %s -> %s %s",
                method, path, e.response.status_code, e.response.text,
            )
            raise
        except httpx.HTTPError as e:
            logger.error("API Error: %s %s -> %s: %s", method, path, type(e).__name__, e)
            raise
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
