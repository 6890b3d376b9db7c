# site_mapper/crawler/models.py
"""
Data models produced by the SiteMapper crawler and consumed by the sitemap writer.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

ErrorStatus = Union[int, str]

SOFT_404 = "soft-404"
NOINDEX_HEADER = "noindex-header"
NOINDEX_META = "noindex-meta"
CONNECTION_FAILED = "connection-failed"


def now_iso() -> str:
    """Current UTC time in W3C datetime format, the format used in every XML file."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass(frozen=True, slots=True)
class ImageAsset:
    src: str
    title: str
    caption: str


@dataclass(frozen=True, slots=True)
class VideoAsset:
    src: str
    title: str
    description: str
    duration: Optional[int] = None
    published: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PageEntry:
    """One crawled page that made it into the sitemap, with its assets."""

    url: str
    depth: int
    images: Tuple[ImageAsset, ...] = ()
    videos: Tuple[VideoAsset, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PageEntry:
        return cls(
            url=data["url"],
            depth=int(data.get("depth", 0)),
            images=tuple(ImageAsset(**img) for img in data.get("images", ())),
            videos=tuple(VideoAsset(**vid) for vid in data.get("videos", ())),
        )


@dataclass(frozen=True, slots=True)
class ExclusionRecord:
    url: str
    rule: str


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    url: str
    status: ErrorStatus
    time: str = field(default_factory=now_iso)


@dataclass(slots=True)
class FetchResponse:
    """What the HTTP collaborator hands back; non-2xx statuses are not errors here."""

    url: str
    status: int
    headers: Mapping[str, str]
    body: str

    def header(self, name: str) -> str:
        """All values of header *name* (case-insensitive), comma-joined."""
        wanted = name.lower()
        return ", ".join(v for k, v in self.headers.items() if k.lower() == wanted)


@dataclass(slots=True)
class CrawlResult:
    """Everything one crawl run accumulated."""

    entries: List[PageEntry] = field(default_factory=list)
    link_graph: Dict[str, int] = field(default_factory=dict)
    errors: List[ErrorRecord] = field(default_factory=list)
    exclusions: List[ExclusionRecord] = field(default_factory=list)
    visited: Set[str] = field(default_factory=set)
    max_depth_reached: int = 0

    @property
    def excluded_urls(self) -> List[str]:
        return list(dict.fromkeys(record.url for record in self.exclusions))

    @property
    def broken_links(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form, used by the run-state store."""
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "link_graph": dict(self.link_graph),
            "errors": [asdict(err) for err in self.errors],
            "max_depth_reached": self.max_depth_reached,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CrawlResult:
        return cls(
            entries=[PageEntry.from_dict(e) for e in data.get("entries", ())],
            link_graph={k: int(v) for k, v in data.get("link_graph", {}).items()},
            errors=[ErrorRecord(**err) for err in data.get("errors", ())],
            max_depth_reached=int(data.get("max_depth_reached", 0)),
        )
