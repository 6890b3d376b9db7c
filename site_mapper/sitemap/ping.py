"""site_mapper.sitemap.ping: notify search engines that a sitemap changed."""

from __future__ import annotations

import asyncio
from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import quote_plus

import aiohttp

from site_mapper.config import SitemapConfig
from site_mapper.crawler.fetcher import open_session
from site_mapper.logger import logger

__all__ = ["ping_url", "ping_search_engines"]


def ping_url(endpoint: str, sitemap_url: str) -> str:
    return f"{endpoint}{quote_plus(sitemap_url)}"


async def _ping_one(session: aiohttp.ClientSession, name: str, url: str) -> Tuple[str, bool]:
    try:
        async with session.get(url) as response:
            ok = 200 <= response.status < 300
            if ok:
                logger.info("Sitemap submitted to %s", name)
            else:
                logger.warning("Ping to %s returned HTTP %d", name, response.status)
            return name, ok
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.warning("Ping to %s failed: %s", name, exc)
        return name, False


async def ping_search_engines(
    config: SitemapConfig,
    sitemap_url: str,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    targets: Optional[Mapping[str, str]] = None,
) -> Dict[str, bool]:
    """GET every ping endpoint with *sitemap_url*; returns success per target, never raises.

    Nothing is sent unless ``ping`` is enabled in the configuration.
    """
    if not config.ping:
        logger.debug("Ping disabled, skipping")
        return {}
    targets = config.ping_targets if targets is None else targets
    if not targets:
        return {}

    async def _run(s: aiohttp.ClientSession) -> Dict[str, bool]:
        results = await asyncio.gather(
            *(_ping_one(s, name, ping_url(endpoint, sitemap_url)) for name, endpoint in targets.items())
        )
        return dict(results)

    if session is not None:
        return await _run(session)
    async with open_session(config.http.validate_links) as own:
        return await _run(own)
