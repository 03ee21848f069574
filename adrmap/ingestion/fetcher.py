"""Asynchronous HTTP fetcher for the map's data assets."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

# Timeouts (connect, read) in seconds
TIMEOUT = httpx.Timeout(15.0, read=120.0)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


class HttpFetcher:
    """``fetch(url) -> bytes`` over a shared :class:`httpx.AsyncClient`.

    Relative URLs resolve against *base_url*. Non-2xx responses raise
    :class:`httpx.HTTPStatusError`.
    """

    def __init__(
        self,
        base_url: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=TIMEOUT,
            follow_redirects=True,
            transport=transport,
        )

    async def fetch(self, url: str) -> bytes:
        logger.info("Fetching %s", url)
        resp = await self._client.get(url)
        resp.raise_for_status()
        return resp.content

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpFetcher:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
