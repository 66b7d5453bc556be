"""HTTP transport used by ``{webrequest;...}`` instructions."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import aiohttp

from .errors import ExternalRequestFailed

logger = logging.getLogger("ccbot.web")

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


@dataclass(frozen=True)
class HttpResponse:
    status: int
    reason: str
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpTransport(Protocol):
    async def fetch(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Optional[Any],
    ) -> HttpResponse:
        ...


class AiohttpTransport:
    """Performs one request per call; an existing session may be shared."""

    def __init__(self, *, timeout: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        self.timeout = timeout
        self._session = session

    async def fetch(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Optional[Any],
    ) -> HttpResponse:
        try:
            if self._session is not None:
                return await self._request(self._session, url, method, headers, body)
            async with aiohttp.ClientSession() as session:
                return await self._request(session, url, method, headers, body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Web request %s %s failed: %s", method, url, exc)
            raise ExternalRequestFailed(url, None, str(exc) or type(exc).__name__) from exc

    async def _request(
        self,
        session: aiohttp.ClientSession,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Optional[Any],
    ) -> HttpResponse:
        data = json.dumps(body) if body is not None else None
        async with session.request(
            method,
            url,
            headers=dict(headers),
            data=data,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as resp:
            text = await resp.text()
            logger.debug("Web request %s %s -> %s", method, url, resp.status)
            return HttpResponse(status=resp.status, reason=resp.reason or "", text=text)


__all__ = ["AiohttpTransport", "DEFAULT_HEADERS", "HttpResponse", "HttpTransport"]
