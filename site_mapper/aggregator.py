# File: site_mapper/aggregator.py
"""site_mapper.aggregator: run report built from a crawl result."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

from site_mapper.crawler.models import CrawlResult


class PageInfo(TypedDict, total=False):
    """One crawled page."""

    url: str
    depth: int
    inlinks: int
    images: int
    videos: int


class ErrorInfo(TypedDict, total=False):
    url: str
    status: str
    time: str


class ExclusionInfo(TypedDict, total=False):
    url: str
    rule: str


class RunStats(TypedDict, total=False):
    pages: int
    images: int
    videos: int
    errors: int
    excluded: int
    visited: int
    max_depth_reached: int
    errors_by_status: Dict[str, int]


@dataclass(slots=True)
class CrawlReport:
    """Summary of a run, serialisable to JSON and rendered to HTML."""

    pages: List[PageInfo] = field(default_factory=list)
    errors: List[ErrorInfo] = field(default_factory=list)
    excluded: List[ExclusionInfo] = field(default_factory=list)
    link_graph: Dict[str, int] = field(default_factory=dict)
    stats: RunStats = field(default_factory=dict)  # type: ignore[assignment]
    sitemap: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.as_dict(), ensure_ascii=False, indent=2 if pretty else None)

    def summary(self) -> str:
        """One-line summary for the terminal."""
        return (
            f"{self.stats.get('pages', 0)} pages, "
            f"{self.stats.get('excluded', 0)} excluded URLs, "
            f"{self.stats.get('errors', 0)} broken links, "
            f"max depth {self.stats.get('max_depth_reached', 0)}"
        )


def _aggregate_pages(result: CrawlResult) -> List[PageInfo]:
    return [
        {
            "url": entry.url,
            "depth": entry.depth,
            "inlinks": result.link_graph.get(entry.url, 0),
            "images": len(entry.images),
            "videos": len(entry.videos),
        }
        for entry in result.entries
    ]


def _aggregate_errors(result: CrawlResult) -> List[ErrorInfo]:
    return [{"url": err.url, "status": str(err.status), "time": err.time} for err in result.errors]


def _aggregate_exclusions(result: CrawlResult) -> List[ExclusionInfo]:
    seen: Dict[str, ExclusionInfo] = {}
    for record in result.exclusions:
        seen.setdefault(record.url, {"url": record.url, "rule": record.rule})
    return list(seen.values())


def aggregate_results(result: CrawlResult, sitemap: Optional[str] = None) -> CrawlReport:
    """Collect every part of the report into a :class:`CrawlReport`."""
    report = CrawlReport(sitemap=sitemap)
    report.pages = _aggregate_pages(result)
    report.errors = _aggregate_errors(result)
    report.excluded = _aggregate_exclusions(result)
    # most linked first
    report.link_graph = dict(sorted(result.link_graph.items(), key=lambda kv: (-kv[1], kv[0])))
    report.stats = {
        "pages": len(result.entries),
        "images": sum(len(e.images) for e in result.entries),
        "videos": sum(len(e.videos) for e in result.entries),
        "errors": result.broken_links,
        "excluded": len(report.excluded),
        "visited": len(result.visited),
        "max_depth_reached": result.max_depth_reached,
        "errors_by_status": dict(Counter(str(err.status) for err in result.errors)),
    }
    return report
