from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Set, Tuple, TypeVar

from aiohttp import ClientSession

from site_mapper.config import SitemapConfig
from site_mapper.crawler.extractor import extract_resources
from site_mapper.crawler.fetcher import Fetcher, open_session
from site_mapper.crawler.models import (
    CONNECTION_FAILED,
    NOINDEX_HEADER,
    NOINDEX_META,
    SOFT_404,
    CrawlResult,
    ErrorRecord,
    ErrorStatus,
    FetchResponse,
    ImageAsset,
    PageEntry,
    VideoAsset,
)
from site_mapper.logger import LOGGER_NAME
from site_mapper.parser.html_parser import ParsedDocument, parse_html
from site_mapper.rules import ExclusionMatcher, whitelisted
from site_mapper.utils import clean_url, is_asset_url, normalize_url, remove_duplicates, same_host

__all__ = ("AsyncCrawler", "CrawlState")

AssetT = TypeVar("AssetT", ImageAsset, VideoAsset)


class CrawlState:
    """
    Single owner of everything a crawl accumulates: visited set, link graph,
    page entries, errors and exclusion records.
    None of the methods await, so workers sharing one event loop cannot interleave inside them.
    """

    def __init__(self, config: SitemapConfig) -> None:
        self.config = config
        self.visited: Set[str] = set()
        self.link_graph: Dict[str, int] = {}
        self.entries: List[PageEntry] = []
        self.errors: List[ErrorRecord] = []
        self.exclusions = ExclusionMatcher(config)
        self.max_depth_reached = 0

    def claim(self, url: str, depth: int, max_depth: int) -> bool:
        """Mark *url* visited if it may be crawled at *depth*; False means skip it."""
        if url in self.visited or depth > max_depth:
            return False
        if self.reject_if_excluded(url):
            return False
        self.visited.add(url)
        self.max_depth_reached = max(self.max_depth_reached, depth)
        return True

    def reject_if_excluded(self, url: str) -> bool:
        if not self.exclusions.is_excluded(url):
            return False
        self.visited.add(url)
        return True

    def count_link(self, url: str) -> None:
        self.link_graph[url] = self.link_graph.get(url, 0) + 1

    def add_entry(self, entry: PageEntry) -> None:
        self.entries.append(entry)

    def log_error(self, url: str, status: ErrorStatus) -> None:
        """Keep the first ``max_errors`` records; later ones are dropped."""
        if len(self.errors) < self.config.max_errors:
            self.errors.append(ErrorRecord(url=url, status=status))

    def result(self) -> CrawlResult:
        return CrawlResult(
            entries=list(self.entries),
            link_graph=dict(self.link_graph),
            errors=list(self.errors),
            exclusions=list(self.exclusions.records),
            visited=set(self.visited),
            max_depth_reached=self.max_depth_reached,
        )


@dataclass(frozen=True, slots=True)
class _RunOptions:
    max_depth: int
    validate: bool
    audit_indexability: bool


class AsyncCrawler:
    """Crawl a site from a seed URL, depth- or breadth-first, with a pool of async workers."""

    def __init__(self, config: SitemapConfig, fetcher: Optional[Fetcher] = None) -> None:
        self.config = config
        self.fetcher = fetcher
        self.session: Optional[ClientSession] = None
        self.state = CrawlState(config)
        self.logger = logging.getLogger(LOGGER_NAME)
        self.base_url = clean_url(config.site_url, config.normalize)
        self._soft_404_body = re.compile(config.soft_404.body_pattern, re.IGNORECASE)

    async def __aenter__(self) -> AsyncCrawler:
        if self.fetcher is None:
            self.session = open_session(self.config.http.validate_links)
            self.fetcher = Fetcher(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    @property
    def max_depth_reached(self) -> int:
        return self.state.max_depth_reached

    async def crawl(
        self,
        url: Optional[str] = None,
        depth: int = 0,
        max_depth: Optional[int] = None,
        validate: Optional[bool] = None,
        audit_indexability: Optional[bool] = None,
    ) -> CrawlResult:
        """Crawl from *url* (default: ``base_url``) and return the accumulated result.

        Arguments left as ``None`` fall back to ``max_depth``, ``validate_links``
        and ``indexability_audit`` from the configuration. State is kept on the
        instance, so a second call continues the same run.
        """
        if self.fetcher is None:
            raise RuntimeError("Fetcher not initialized, use 'async with AsyncCrawler(...)'")
        run = _RunOptions(
            max_depth=self.config.max_depth if max_depth is None else max_depth,
            validate=self.config.validate_links if validate is None else validate,
            audit_indexability=(
                self.config.indexability_audit if audit_indexability is None else audit_indexability
            ),
        )
        seed = normalize_url(url or self.config.site_url, self.base_url, self.config.normalize)
        if seed is None:
            raise ValueError(f"Cannot crawl non-HTTP URL: {url}")

        self.logger.info("Crawl started: %s (max depth %d)", seed, run.max_depth)
        start = time.monotonic()

        queue: asyncio.Queue[Tuple[str, int]] = (
            asyncio.LifoQueue() if self.config.traversal == "depth_first" else asyncio.Queue()
        )
        queue.put_nowait((seed, depth))
        workers = [
            asyncio.create_task(self._worker(queue, run)) for _ in range(self.config.concurrency)
        ]
        await queue.join()
        for w in workers:
            w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        result = self.state.result()
        self.logger.info(
            "Crawl finished: %d pages, %d excluded URLs, %d errors, max depth %d (%.2f s)",
            len(result.entries),
            len(result.excluded_urls),
            len(result.errors),
            result.max_depth_reached,
            time.monotonic() - start,
        )
        return result

    async def _worker(self, queue: asyncio.Queue[Tuple[str, int]], run: _RunOptions) -> None:
        while True:
            url, depth = await queue.get()
            try:
                children = await self._visit(url, depth, run)
                # a LIFO queue pops the last push first: reverse to keep document order
                if self.config.traversal == "depth_first":
                    children = children[::-1]
                for child in children:
                    queue.put_nowait((child, depth + 1))
            finally:
                queue.task_done()

    async def _visit(self, url: str, depth: int, run: _RunOptions) -> List[str]:
        """Fetch one page, record it, and return the links worth following."""
        if not self.state.claim(url, depth, run.max_depth):
            return []
        assert self.fetcher is not None
        try:
            response = await self.fetcher.fetch(url)

            if run.validate and response.status >= 400:
                self._reject(url, response.status)
                return []

            document = parse_html(response.body, url)

            if run.validate and self._is_soft_404(response.body, document.title):
                self._reject(url, SOFT_404)
                return []

            if run.audit_indexability:
                reason = self._noindex_reason(response, document)
                if reason is not None:
                    self._reject(url, reason)
                    return []

            resources = extract_resources(document, self.config)
            entry = PageEntry(
                url=url,
                depth=depth,
                images=tuple(self.filter_assets(resources.images, url, "image")),
                videos=tuple(self.filter_assets(resources.videos, url, "video")),
            )
            children = self._follow(resources.links, url, depth, run)
        except Exception as exc:
            self.logger.warning("Failed %s: %s", url, str(exc) or type(exc).__name__)
            if run.validate:
                self.state.log_error(url, CONNECTION_FAILED)
            return []

        self.state.add_entry(entry)
        return children

    def _follow(self, links: Sequence[str], page_url: str, depth: int, run: _RunOptions) -> List[str]:
        children: List[str] = []
        for href in links:
            link = normalize_url(href, page_url, self.config.normalize)
            if link is None:
                continue
            self.state.count_link(link)
            if self.state.reject_if_excluded(link):
                continue
            if not same_host(link, self.base_url) or is_asset_url(link):
                continue
            if depth + 1 <= run.max_depth:
                children.append(link)
        return children

    def filter_assets(self, assets: Sequence[AssetT], page_url: str, kind: str) -> List[AssetT]:
        """Resolve asset sources and drop excluded, non-whitelisted and duplicate ones."""
        whitelist = self.config.video_whitelist if kind == "video" else self.config.image_whitelist
        kept: List[AssetT] = []
        for asset in assets:
            src = normalize_url(asset.src, page_url, self.config.normalize)
            if src is None:
                continue
            if self.state.exclusions.is_excluded_asset(src):
                continue
            if whitelist and not whitelisted(src, whitelist):
                continue
            kept.append(replace(asset, src=src))
        return remove_duplicates(kept, key=lambda a: a.src)

    def _is_soft_404(self, body: str, title: str) -> bool:
        if not self._soft_404_body.search(body):
            return False
        title = title.lower()
        return any(keyword.lower() in title for keyword in self.config.soft_404.title_keywords)

    @staticmethod
    def _noindex_reason(response: FetchResponse, document: ParsedDocument) -> Optional[str]:
        if "noindex" in response.header("X-Robots-Tag").lower():
            return NOINDEX_HEADER
        if "noindex" in document.robots_meta.lower():
            return NOINDEX_META
        return None

    def _reject(self, url: str, status: ErrorStatus) -> None:
        self.logger.info("Dropped %s (%s)", url, status)
        self.state.log_error(url, status)
