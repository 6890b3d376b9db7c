"""
Resource extraction for SiteMapper: links, images and videos of one parsed page.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin

from bs4.element import Tag

from site_mapper.config import SitemapConfig
from site_mapper.crawler.models import ImageAsset, VideoAsset
from site_mapper.parser.html_parser import ParsedDocument
from site_mapper.utils import remove_duplicates

_IMAGE_HREF = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)$", re.IGNORECASE)


@dataclass(slots=True)
class Resources:
    links: List[str] = field(default_factory=list)
    images: List[ImageAsset] = field(default_factory=list)
    videos: List[VideoAsset] = field(default_factory=list)


def _attr(tag: Tag, name: str) -> Optional[str]:
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _first_srcset_candidate(srcset: str) -> Optional[str]:
    """``"a.webp 1x, b.webp 2x"`` gives ``"a.webp"``."""
    first = srcset.split(",", 1)[0].strip()
    return first.split()[0] if first else None


def _duration(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return int(seconds) if math.isfinite(seconds) else None


def extract_links(document: ParsedDocument) -> List[str]:
    """Raw ``href`` values of every anchor, in document order."""
    return document.attr_values("a[href]", "href")


def extract_images(document: ParsedDocument, config: SitemapConfig) -> List[ImageAsset]:
    defaults = config.image_defaults
    images: List[ImageAsset] = []

    def add(src: Optional[str], tag: Tag) -> None:
        if not src:
            return
        images.append(
            ImageAsset(
                src=src,
                title=_attr(tag, "title") or defaults.title,
                caption=_attr(tag, "alt") or defaults.description,
            )
        )

    for tag in document.soup.select("img"):
        add(_attr(tag, "src"), tag)
    for tag in document.soup.select("picture source"):
        srcset = _attr(tag, "srcset")
        add(_first_srcset_candidate(srcset) if srcset else None, tag)
    for tag in document.soup.select("a[href]"):
        href = _attr(tag, "href")
        if href and _IMAGE_HREF.search(href):
            add(href, tag)

    return remove_duplicates(images, key=lambda img: urljoin(document.url, img.src))


def extract_videos(document: ParsedDocument, config: SitemapConfig) -> List[VideoAsset]:
    defaults = config.video_defaults
    videos: List[VideoAsset] = []

    def add(tag: Tag, *, embedded: bool = False) -> None:
        src = _attr(tag, "src")
        if not src:
            return
        videos.append(
            VideoAsset(
                src=src,
                title=_attr(tag, "title") or defaults.title,
                description=_attr(tag, "aria-label") or defaults.description,
                duration=None if embedded else _duration(_attr(tag, "duration")),
                published=None if embedded else _attr(tag, "data-published"),
            )
        )

    for tag in document.soup.select("video"):
        add(tag)
    for tag in document.soup.select("video source"):
        add(tag)
    # embedded players (YouTube, Vimeo, ...)
    for tag in document.soup.select("iframe"):
        add(tag, embedded=True)

    return remove_duplicates(videos, key=lambda vid: urljoin(document.url, vid.src))


def extract_resources(document: ParsedDocument, config: SitemapConfig) -> Resources:
    return Resources(
        links=extract_links(document),
        images=extract_images(document, config),
        videos=extract_videos(document, config),
    )
