# site_mapper/crawler/fetcher.py
"""
Fetcher module: the HTTP collaborator of the crawler and of the alternate-link
validation. GET never raises on a non-2xx status; network failures do raise
and are handled by the caller.
"""
from __future__ import annotations

import asyncio

from aiohttp import ClientError, ClientSession, ClientTimeout, TCPConnector

from site_mapper.config import HttpClientConfig
from site_mapper.crawler.models import FetchResponse
from site_mapper.logger import logger


def open_session(settings: HttpClientConfig) -> ClientSession:
    """Create a session honouring the timeout, connect timeout, TLS and header settings."""
    return ClientSession(
        timeout=ClientTimeout(total=settings.timeout, connect=settings.connect_timeout),
        connector=TCPConnector(ssl=None if settings.verify else False),
        headers=dict(settings.headers),
        raise_for_status=False,
    )


class Fetcher:
    """Thin wrapper around a :class:`ClientSession`."""

    def __init__(self, session: ClientSession) -> None:
        self.session = session

    async def fetch(self, url: str) -> FetchResponse:
        """GET *url*; status, headers and the decoded body are returned whatever the status."""
        async with self.session.get(url) as resp:
            body = await resp.text(errors="replace")
            return FetchResponse(url=url, status=resp.status, headers=resp.headers, body=body)

    async def probe(self, url: str) -> bool:
        """Lightweight existence check: HEAD answered with 2xx or 3xx."""
        try:
            async with self.session.head(url, allow_redirects=False) as resp:
                return 200 <= resp.status < 400
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.debug("Probe failed for %s: %s", url, exc)
            return False
