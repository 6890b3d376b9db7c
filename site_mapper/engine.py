# File: site_mapper/engine.py
"""site_mapper.engine: orchestration of crawl, sitemap writing, state and ping."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from site_mapper.aggregator import CrawlReport, aggregate_results
from site_mapper.config import SitemapConfig
from site_mapper.crawler.crawler import AsyncCrawler
from site_mapper.crawler.fetcher import Fetcher
from site_mapper.crawler.models import CrawlResult
from site_mapper.logger import logger
from site_mapper.sitemap.lastmod import DataSource, LastmodResolver, SqliteDataSource
from site_mapper.sitemap.ping import ping_search_engines
from site_mapper.sitemap.writer import SitemapWriter, WriteMode, WriteResult, entry_point_name
from site_mapper.state import CRAWL_RESULT_KEY, JsonRunStateStore, RunStateStore

__all__ = ["Engine", "GenerateOutcome"]


@dataclass(slots=True)
class GenerateOutcome:
    """What a ``generate`` or ``finalize`` run produced."""

    result: CrawlResult
    written: Optional[WriteResult] = None
    errors_file: Optional[Path] = None
    sitemap_url: Optional[str] = None
    pinged: Dict[str, bool] = field(default_factory=dict)

    def report(self) -> CrawlReport:
        return aggregate_results(self.result, sitemap=self.sitemap_url)


class Engine:
    """Facade for the CLI and tests: crawl, write sitemaps, keep state, ping."""

    def __init__(
        self,
        config: SitemapConfig,
        *,
        data_source: Optional[DataSource] = None,
        callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
        state: Optional[RunStateStore] = None,
        fetcher: Optional[Fetcher] = None,
    ) -> None:
        self.config = config
        if data_source is None and config.database is not None:
            data_source = SqliteDataSource(config.database)
        self.lastmod = LastmodResolver(config, data_source=data_source, callbacks=callbacks)
        self.state = state or JsonRunStateStore(config.state_file)
        self.fetcher = fetcher

    def writer(self) -> SitemapWriter:
        return SitemapWriter(self.config, lastmod=self.lastmod, fetcher=self.fetcher)

    async def crawl(
        self,
        *,
        max_depth: Optional[int] = None,
        validate: Optional[bool] = None,
        audit_indexability: Optional[bool] = None,
    ) -> CrawlResult:
        async with AsyncCrawler(self.config, fetcher=self.fetcher) as crawler:
            return await crawler.crawl(
                max_depth=max_depth, validate=validate, audit_indexability=audit_indexability
            )

    async def generate(
        self,
        output_dir: Union[str, Path],
        *,
        max_depth: Optional[int] = None,
        mode: WriteMode = None,
        validate: Optional[bool] = None,
        audit_indexability: Optional[bool] = None,
        ping: bool = True,
        fresh: bool = False,
        keep_state: bool = False,
    ) -> GenerateOutcome:
        """Crawl the site and write the sitemap files into *output_dir*.

        With *keep_state* the crawl result is stored for a later :meth:`finalize`
        and nothing is written yet. *fresh* drops any previously stored result first.
        """
        if fresh:
            self.state.forget(CRAWL_RESULT_KEY)
            logger.info("Stored crawl state cleared, running a fresh crawl")

        result = await self.crawl(
            max_depth=max_depth, validate=validate, audit_indexability=audit_indexability
        )
        logger.info(
            "Excluded URLs: %d, broken links: %d", len(result.excluded_urls), result.broken_links
        )

        if keep_state:
            self.state.put(CRAWL_RESULT_KEY, result.to_dict())
            logger.info("Crawl result stored in %s, run finalize to write the sitemap", self.config.state_file)
            return GenerateOutcome(result=result)

        return await self._write(result, output_dir, mode=mode, ping=ping)

    async def finalize(
        self,
        output_dir: Union[str, Path],
        *,
        mode: WriteMode = None,
        ping: bool = True,
    ) -> GenerateOutcome:
        """Write sitemaps from the stored crawl result, then forget it."""
        stored = self.state.get(CRAWL_RESULT_KEY)
        if not stored:
            raise LookupError("No stored crawl result to finalize; run generate --keep-state first")
        outcome = await self._write(CrawlResult.from_dict(stored), output_dir, mode=mode, ping=ping)
        self.state.forget(CRAWL_RESULT_KEY)
        return outcome

    async def ping_only(
        self,
        output_dir: Union[str, Path],
        sitemap: Optional[str] = None,
        *,
        mode: WriteMode = None,
    ) -> Dict[str, bool]:
        """Ping search engines for an already written sitemap file."""
        path = Path(output_dir) / (sitemap or entry_point_name(self.config, mode))
        if not path.is_file():
            raise FileNotFoundError(f"Sitemap file not found: {path}")
        return await ping_search_engines(self.config, self.writer().public_url(path))

    async def _write(
        self,
        result: CrawlResult,
        output_dir: Union[str, Path],
        *,
        mode: WriteMode,
        ping: bool,
    ) -> GenerateOutcome:
        writer = self.writer()
        written = await writer.write(
            result.entries, output_dir, link_graph=result.link_graph, mode=mode
        )
        errors_file = writer.write_errors(result.errors, output_dir)
        if errors_file is not None:
            logger.info("Error report written to %s", errors_file)

        outcome = GenerateOutcome(
            result=result,
            written=written,
            errors_file=errors_file,
            sitemap_url=writer.public_url(written.entry_point),
        )
        if ping:
            outcome.pinged = await ping_search_engines(self.config, outcome.sitemap_url)
        return outcome
