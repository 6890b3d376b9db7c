"""site_mapper.sitemap.writer: serialisation of crawl results to sitemap XML.

Output files, all in the output directory:

* ``sitemap-N.xml`` - one ``urlset`` per chunk of ``max_urls_per_sitemap`` entries;
* ``sitemap-index.xml`` - ``sitemapindex`` over the shards (``use_index`` or several shards);
* ``sitemap.xml`` - the single shard renamed when no index is needed;
* ``sitemap-errors.xml`` - crawl errors, only when there are any.

A shard larger than ``max_file_size`` after writing is fatal: :class:`SitemapSizeError`.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Literal, Mapping, Optional, Sequence, Union

from lxml import etree

from site_mapper.config import SitemapConfig
from site_mapper.crawler.fetcher import Fetcher, open_session
from site_mapper.crawler.models import ErrorRecord, PageEntry
from site_mapper.logger import logger
from site_mapper.rules import ExclusionMatcher, resolve_include_rule, resolve_seo_rule
from site_mapper.sitemap.alternates import AlternateLinks
from site_mapper.sitemap.lastmod import LastmodResolver, to_w3c
from site_mapper.sitemap.priority import days_since, resolve_priority

__all__ = [
    "SITEMAP_NS",
    "IMAGE_NS",
    "VIDEO_NS",
    "XHTML_NS",
    "SitemapError",
    "SitemapSizeError",
    "SitemapLimitError",
    "WriteResult",
    "SitemapWriter",
    "entry_point_name",
]

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
IMAGE_NS = "http://www.google.com/schemas/sitemap-image/1.1"
VIDEO_NS = "http://www.google.com/schemas/sitemap-video/1.1"
XHTML_NS = "http://www.w3.org/1999/xhtml"

SINGLE_NAME = "sitemap.xml"
INDEX_NAME = "sitemap-index.xml"
ERRORS_NAME = "sitemap-errors.xml"

WriteMode = Optional[Literal["split", "single"]]


class SitemapError(RuntimeError):
    """The sitemap cannot be written within the configured limits."""


class SitemapSizeError(SitemapError):
    pass


class SitemapLimitError(SitemapError):
    pass


@dataclass(slots=True)
class WriteResult:
    shards: List[Path] = field(default_factory=list)
    index: Optional[Path] = None
    urls_written: int = 0
    skipped: int = 0

    @property
    def entry_point(self) -> Path:
        """File to submit to search engines: the index if any, else the single sitemap."""
        return self.index if self.index is not None else self.shards[0]


def entry_point_name(config: SitemapConfig, mode: WriteMode = None) -> str:
    """Expected entry-point file name when the shard count is not known (ping-only runs)."""
    if mode == "single":
        return SINGLE_NAME
    if mode == "split" or config.use_index:
        return INDEX_NAME
    return SINGLE_NAME


def _chunks(entries: Sequence[PageEntry], size: int) -> Iterator[Sequence[PageEntry]]:
    for start in range(0, len(entries), size):
        yield entries[start:start + size]


def _q(ns: str, tag: str) -> str:
    return f"{{{ns}}}{tag}"


def _sub(parent: etree._Element, ns: str, tag: str, text: Optional[str] = None) -> etree._Element:
    element = etree.SubElement(parent, _q(ns, tag))
    if text is not None:
        element.text = text
    return element


def _format_priority(priority: float) -> str:
    return f"{priority:.1f}" if round(priority, 1) == priority else f"{priority:.2f}"


def _write_tree(root: etree._Element, path: Path) -> None:
    etree.ElementTree(root).write(str(path), xml_declaration=True, encoding="UTF-8", pretty_print=True)


class SitemapWriter:
    """Turns page entries into sitemap shards, an optional index and the error report."""

    def __init__(
        self,
        config: SitemapConfig,
        *,
        lastmod: Optional[LastmodResolver] = None,
        fetcher: Optional[Fetcher] = None,
    ) -> None:
        self.config = config
        self.lastmod = lastmod or LastmodResolver(config)
        self.alternates = AlternateLinks(config)
        self.exclusions = ExclusionMatcher(config)
        self._fetcher = fetcher

    # ------------------------------------------------------------------ #
    # public API                                                         #
    # ------------------------------------------------------------------ #

    async def write(
        self,
        entries: Sequence[PageEntry],
        output_dir: Union[str, Path],
        *,
        link_graph: Optional[Mapping[str, int]] = None,
        mode: WriteMode = None,
    ) -> WriteResult:
        """Write the shards (and index) for *entries*.

        ``mode="split"`` always writes the index, ``mode="single"`` writes one
        ``sitemap.xml`` and refuses more entries than one shard may hold.
        """
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        max_urls = self.config.max_urls_per_sitemap
        link_graph = link_graph or {}
        result = WriteResult()

        if mode == "single" and len(entries) > max_urls:
            raise SitemapLimitError(
                f"{len(entries)} URLs do not fit a single sitemap (limit {max_urls})"
            )

        reachable = await self._validate_alternates(entries)
        chunks = list(_chunks(entries, max_urls)) or [[]]
        stamps: List[str] = []

        for number, chunk in enumerate(chunks, start=1):
            name = SINGLE_NAME if mode == "single" else f"sitemap-{number}.xml"
            path = out / name
            urlset, written = await self.build_urlset(chunk, link_graph, reachable)
            _write_tree(urlset, path)
            self._check_size(path)
            result.shards.append(path)
            result.urls_written += written
            result.skipped += len(chunk) - written
            stamps.append(self.lastmod.now())
            logger.debug("Wrote %s (%d URLs)", path, written)

        if mode != "single":
            if mode == "split" or self.config.use_index or len(result.shards) > 1:
                index_path = out / INDEX_NAME
                _write_tree(self.build_index(result.shards, stamps), index_path)
                result.index = index_path
            else:
                single = out / SINGLE_NAME
                os.replace(result.shards[0], single)
                result.shards[0] = single

        logger.info(
            "Sitemap written: %d URLs in %d file(s)%s",
            result.urls_written,
            len(result.shards),
            " + index" if result.index else "",
        )
        return result

    def write_errors(self, errors: Sequence[ErrorRecord], output_dir: Union[str, Path]) -> Optional[Path]:
        """Write at most ``max_errors`` records to ``sitemap-errors.xml``; nothing for no errors."""
        errors = list(errors)[: self.config.max_errors]
        if not errors:
            return None
        root = etree.Element("errors")
        for err in errors:
            node = etree.SubElement(root, "error")
            etree.SubElement(node, "loc").text = err.url
            etree.SubElement(node, "status").text = str(err.status)
            etree.SubElement(node, "checked_at").text = err.time
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        path = out / ERRORS_NAME
        _write_tree(root, path)
        return path

    def public_url(self, path: Union[str, Path]) -> str:
        return f"{self.config.site_url}/{Path(path).name}"

    def sitemap_url(self, mode: WriteMode = None) -> str:
        """Public URL of the entry-point file, as submitted to search engines."""
        return self.public_url(entry_point_name(self.config, mode))

    # ------------------------------------------------------------------ #
    # XML builders                                                       #
    # ------------------------------------------------------------------ #

    def _namespaces(self) -> Dict[Optional[str], str]:
        include = self.config.include
        nsmap: Dict[Optional[str], str] = {None: SITEMAP_NS}
        if include.images or any(rule.images for rule in include.rules.values()):
            nsmap["image"] = IMAGE_NS
        if include.videos or any(rule.videos for rule in include.rules.values()):
            nsmap["video"] = VIDEO_NS
        if self.alternates.enabled:
            nsmap["xhtml"] = XHTML_NS
        return nsmap

    async def build_urlset(
        self,
        entries: Sequence[PageEntry],
        link_graph: Mapping[str, int],
        reachable: Optional[Mapping[str, bool]] = None,
    ) -> tuple[etree._Element, int]:
        """``urlset`` element for *entries* and the number of URLs it holds."""
        root = etree.Element(_q(SITEMAP_NS, "urlset"), nsmap=self._namespaces())
        written = 0
        for entry in entries:
            if self.exclusions.is_excluded(entry.url):
                continue
            await self._add_url(root, entry, link_graph, reachable)
            written += 1
        return root, written

    def build_index(self, shards: Sequence[Path], stamps: Sequence[str]) -> etree._Element:
        root = etree.Element(_q(SITEMAP_NS, "sitemapindex"), nsmap={None: SITEMAP_NS})
        for shard, stamp in zip(shards, stamps):
            node = _sub(root, SITEMAP_NS, "sitemap")
            _sub(node, SITEMAP_NS, "loc", self.public_url(shard))
            _sub(node, SITEMAP_NS, "lastmod", stamp)
        return root

    async def _add_url(
        self,
        root: etree._Element,
        entry: PageEntry,
        link_graph: Mapping[str, int],
        reachable: Optional[Mapping[str, bool]],
    ) -> None:
        rule = resolve_seo_rule(entry.url, self.config)
        lastmod = await self.lastmod.resolve(rule.lastmod, entry)
        priority = resolve_priority(
            rule.priority,
            rule.priority_boost,
            depth=entry.depth,
            link_count=link_graph.get(entry.url, 1),
            freshness_days=days_since(lastmod, self.lastmod.current_time()),
            scoring=self.config.priority_scoring,
            defaults=self.config.defaults,
        )

        node = _sub(root, SITEMAP_NS, "url")
        _sub(node, SITEMAP_NS, "loc", entry.url)
        _sub(node, SITEMAP_NS, "lastmod", lastmod)
        _sub(node, SITEMAP_NS, "changefreq", rule.changefreq)
        _sub(node, SITEMAP_NS, "priority", _format_priority(priority))

        if self.alternates.enabled:
            for hreflang, href in self.alternates.links_for(entry.url, reachable):
                link = _sub(node, XHTML_NS, "link")
                link.set("rel", "alternate")
                link.set("hreflang", hreflang)
                link.set("href", href)

        include = resolve_include_rule(entry.url, self.config)
        if include.images:
            for img in entry.images:
                if self.exclusions.is_excluded(img.src):
                    continue
                image = _sub(node, IMAGE_NS, "image")
                _sub(image, IMAGE_NS, "loc", img.src)
                _sub(image, IMAGE_NS, "title", img.title)
                _sub(image, IMAGE_NS, "caption", img.caption)
        if include.videos:
            for vid in entry.videos:
                if self.exclusions.is_excluded(vid.src):
                    continue
                video = _sub(node, VIDEO_NS, "video")
                _sub(video, VIDEO_NS, "thumbnail_loc", vid.src)
                _sub(video, VIDEO_NS, "title", vid.title)
                _sub(video, VIDEO_NS, "description", vid.description)
                _sub(video, VIDEO_NS, "content_loc", vid.src)
                if vid.duration:
                    _sub(video, VIDEO_NS, "duration", str(int(vid.duration)))
                published = self._publication_date(vid.published)
                if published:
                    _sub(video, VIDEO_NS, "publication_date", published)

    # ------------------------------------------------------------------ #
    # helpers                                                            #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _publication_date(value: Optional[str]) -> Optional[str]:
        try:
            return to_w3c(value)
        except ValueError:
            logger.debug("Ignoring unparsable video publication date %r", value)
            return None

    def _check_size(self, path: Path) -> None:
        size = path.stat().st_size
        if size > self.config.max_file_size:
            raise SitemapSizeError(
                f"Sitemap {path.name} is {size} bytes, over the {self.config.max_file_size} byte limit"
            )

    async def _validate_alternates(self, entries: Sequence[PageEntry]) -> Optional[Dict[str, bool]]:
        if not (self.alternates.enabled and self.config.validate_alternates):
            return None
        urls = [entry.url for entry in entries]
        if self._fetcher is not None:
            return await self.alternates.validate(urls, self._fetcher)
        async with open_session(self.config.http.validate_alternates) as session:
            return await self.alternates.validate(urls, Fetcher(session))
