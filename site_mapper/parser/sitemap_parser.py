# File: site_mapper/parser/sitemap_parser.py
"""site_mapper.parser.sitemap_parser: reading sitemap and sitemap index XML back."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from lxml import etree

XmlSource = Union[str, bytes]


@dataclass(slots=True)
class SitemapUrl:
    """One ``<url>`` element of a urlset."""

    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None
    images: List[str] = field(default_factory=list)
    videos: List[str] = field(default_factory=list)
    alternates: List[Tuple[str, str]] = field(default_factory=list)


def _root(xml_content: XmlSource) -> etree._Element:
    data = xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    parser = etree.XMLParser(ns_clean=True, recover=True)
    return etree.fromstring(data, parser=parser)


def _text(node: etree._Element, path: str) -> Optional[str]:
    found = node.find(path)
    if found is None or found.text is None:
        return None
    return found.text.strip()


def parse_sitemap(xml_content: XmlSource) -> List[str]:
    """Return the page URLs (``<url><loc>``) of a urlset.

    Example:
    ```python
    from site_mapper.parser.sitemap_parser import parse_sitemap

    with open('sitemap.xml', encoding='utf-8') as f:
        urls = parse_sitemap(f.read())
    ```
    """
    root = _root(xml_content)
    return [loc.text.strip() for loc in root.findall("{*}url/{*}loc") if loc.text]


def parse_sitemap_index(xml_content: XmlSource) -> List[str]:
    """Return the shard URLs (``<sitemap><loc>``) of a sitemap index."""
    root = _root(xml_content)
    return [loc.text.strip() for loc in root.findall("{*}sitemap/{*}loc") if loc.text]


def parse_urlset(xml_content: XmlSource) -> List[SitemapUrl]:
    """Full parse of a urlset, including image, video and hreflang children."""
    urls: List[SitemapUrl] = []
    for node in _root(xml_content).findall("{*}url"):
        loc = _text(node, "{*}loc")
        if not loc:
            continue
        priority = _text(node, "{*}priority")
        urls.append(
            SitemapUrl(
                loc=loc,
                lastmod=_text(node, "{*}lastmod"),
                changefreq=_text(node, "{*}changefreq"),
                priority=float(priority) if priority else None,
                images=[t for t in (_text(img, "{*}loc") for img in node.findall("{*}image")) if t],
                videos=[
                    t for t in (_text(vid, "{*}content_loc") for vid in node.findall("{*}video")) if t
                ],
                alternates=[
                    (link.get("hreflang", ""), link.get("href", ""))
                    for link in node.findall("{*}link")
                ],
            )
        )
    return urls


def read_sitemap_file(path: Union[str, Path]) -> List[str]:
    """Page URLs of a sitemap file; an index is followed into the shards next to it."""
    path = Path(path)
    data = path.read_bytes()
    if _root(data).tag.endswith("sitemapindex"):
        urls: List[str] = []
        for shard_url in parse_sitemap_index(data):
            urls.extend(parse_sitemap((path.parent / shard_url.rsplit("/", 1)[-1]).read_bytes()))
        return urls
    return parse_sitemap(data)
