# === FILE: site_mapper/parser/html_parser.py ===
"""HTML parsing helpers for SiteMapper.

The crawler needs very little from a page: the ``<title>`` and the robots meta
directive for the soft-404 and noindex checks, and a soup to run the resource
extractor against. :func:`parse_html` parses the body once and exposes exactly
that through :class:`ParsedDocument`; the soft-404 body pattern runs on the raw
markup, not on a text field.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from bs4 import BeautifulSoup

__all__: Sequence[str] = ("ParsedDocument", "parse_html")


@dataclass(slots=True)
class ParsedDocument:
    """Parsed page plus the few signals the crawler inspects."""

    url: str
    soup: BeautifulSoup
    title: str
    robots_meta: str

    def attr_values(self, selector: str, attribute: str) -> list[str]:
        """Values of *attribute* on all elements matching the CSS *selector*."""
        values: list[str] = []
        for tag in self.soup.select(selector):
            value = tag.get(attribute)
            if isinstance(value, str) and value.strip():
                values.append(value.strip())
        return values


def parse_html(body: str, url: str = "") -> ParsedDocument:
    """Parse *body* (markup fetched from *url*) with BeautifulSoup."""
    soup = BeautifulSoup(body, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    robots_tag = soup.find("meta", attrs={"name": lambda v: v and v.lower() == "robots"})
    robots_meta = ""
    if robots_tag is not None:
        content = robots_tag.get("content")
        robots_meta = content if isinstance(content, str) else ""

    return ParsedDocument(url=url, soup=soup, title=title, robots_meta=robots_meta)
