"""site_mapper.sitemap.alternates: ``xhtml:link`` hreflang alternates."""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from site_mapper.config import SitemapConfig
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.logger import logger

__all__ = ["registered_domain", "alternate_href", "probe_all", "AlternateLinks"]


def registered_domain(host: str) -> str:
    """``www.example.com`` gives ``example.com`` (last two labels)."""
    return ".".join(host.split(".")[-2:])


def alternate_href(current_url: str, lang: str, alt_base: str, mode: str, languages: Iterable[str]) -> str:
    """Address of *current_url* in language *lang*."""
    parts = urlsplit(current_url)
    path = parts.path

    if mode == "path":
        segments = path.strip("/").split("/")
        if segments and segments[0] in set(languages):
            segments = segments[1:]
        return alt_base.rstrip("/") + "/" + "/".join(segments)
    if mode == "subdomain":
        domain = registered_domain(parts.hostname or "")
        return f"{parts.scheme or 'https'}://{lang}.{domain}{path}"
    if mode == "query":
        return f"{alt_base.rstrip('/')}{path}?lang={lang}"
    return current_url


async def probe_all(urls: Iterable[str], fetcher: Fetcher, concurrency: int = 10) -> Dict[str, bool]:
    """Probe every distinct URL, at most *concurrency* at a time; result keyed by URL."""
    semaphore = asyncio.Semaphore(concurrency)
    unique = list(dict.fromkeys(urls))

    async def _probe(url: str) -> Tuple[str, bool]:
        async with semaphore:
            return url, await fetcher.probe(url)

    results = await asyncio.gather(*(_probe(url) for url in unique))
    reachable = dict(results)
    broken = sum(1 for ok in reachable.values() if not ok)
    if broken:
        logger.info("Alternate validation: %d of %d URLs unreachable", broken, len(reachable))
    return reachable


class AlternateLinks:
    """Builds the hreflang alternates of each URL according to ``lang_mode``."""

    def __init__(self, config: SitemapConfig) -> None:
        self.config = config

    @property
    def enabled(self) -> bool:
        return bool(self.config.alternates) and self.config.include.languages

    def candidates(self, url: str) -> List[Tuple[str, str]]:
        languages = list(self.config.alternates)
        return [
            (lang, alternate_href(url, lang, base, self.config.lang_mode, languages))
            for lang, base in self.config.alternates.items()
        ]

    def links_for(self, url: str, reachable: Optional[Mapping[str, bool]] = None) -> List[Tuple[str, str]]:
        """``(hreflang, href)`` pairs; with *reachable* given only confirmed hrefs are kept.

        The x-default alternate is appended unconditionally when configured.
        """
        links = [
            (lang, href)
            for lang, href in self.candidates(url)
            if reachable is None or reachable.get(href, False)
        ]
        if self.config.xdefault:
            links.append(("x-default", self.config.xdefault))
        return links

    async def validate(self, urls: Iterable[str], fetcher: Fetcher) -> Dict[str, bool]:
        hrefs = [href for url in urls for _, href in self.candidates(url)]
        return await probe_all(hrefs, fetcher, self.config.alternate_concurrency)
