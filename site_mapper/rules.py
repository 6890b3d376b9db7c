# File: site_mapper/rules.py
"""site_mapper.rules: pattern matching for exclusion, whitelist, include and SEO rules.

A pattern's kind is read from its shape:

* ``#...#``  regular expression (the text between the markers), searched in the subject;
* ``*.ext``  file extension of the subject;
* anything else is a literal, found with ``startswith``/``in``.

An invalid regular expression never raises, it simply matches nothing.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Set

from site_mapper.config import LastmodSetting, SitemapConfig
from site_mapper.crawler.models import ExclusionRecord
from site_mapper.logger import logger
from site_mapper.utils import file_extension, url_path

__all__ = [
    "PatternKind",
    "pattern_kind",
    "matches",
    "whitelisted",
    "ExclusionMatcher",
    "SeoRule",
    "IncludeFlags",
    "resolve_seo_rule",
    "resolve_include_rule",
]

PROTOCOL_FILTER = re.compile(r"^(tel:|mailto:|javascript:)", re.IGNORECASE)


class PatternKind(enum.Enum):
    REGEX = "regex"
    EXTENSION = "extension"
    LITERAL = "string"


def pattern_kind(pattern: str) -> PatternKind:
    if len(pattern) >= 2 and pattern.startswith("#") and pattern.endswith("#"):
        return PatternKind.REGEX
    if pattern.startswith("*."):
        return PatternKind.EXTENSION
    return PatternKind.LITERAL


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> Optional[re.Pattern[str]]:
    try:
        return re.compile(pattern[1:-1])
    except re.error as exc:
        logger.debug("Ignoring invalid pattern %s: %s", pattern, exc)
        return None


def matches(subject: str, pattern: str, *, prefix_only: bool = False) -> bool:
    """Check *subject* (a path or URL) against one pattern.

    ``prefix_only`` limits literal patterns to a prefix match, which is how
    layered SEO and include rules address path trees.
    """
    if not pattern:
        return False
    kind = pattern_kind(pattern)
    if kind is PatternKind.REGEX:
        compiled = _compile(pattern)
        return compiled is not None and compiled.search(subject) is not None
    if kind is PatternKind.EXTENSION:
        return file_extension(subject) == pattern[2:].lower()
    if prefix_only:
        return subject.startswith(pattern)
    return subject.startswith(pattern) or pattern in subject


def whitelisted(url: str, rules: Iterable[str]) -> bool:
    """Whitelist check: regex against the path, extension glob, literal against the full URL."""
    path = url_path(url)
    for rule in rules:
        subject = url if pattern_kind(rule) is PatternKind.LITERAL else path
        if matches(subject, rule):
            return True
    return False


class ExclusionMatcher:
    """Applies ``exclude_urls`` / ``exclude_assets`` and keeps one record per rejected URL."""

    def __init__(self, config: SitemapConfig) -> None:
        self.config = config
        self.records: List[ExclusionRecord] = []
        self._recorded: Set[str] = set()

    def match(self, url: str) -> Optional[str]:
        """Return a label of the first rule excluding *url*, or ``None``."""
        if PROTOCOL_FILTER.match(url):
            return "protocol filter (tel/mailto/javascript)"
        path = url_path(url)
        for pattern in self.config.exclude_urls:
            if matches(path, pattern):
                return f"{pattern_kind(pattern).value} {pattern}"
        return None

    def match_asset(self, url: str) -> Optional[str]:
        for pattern in self.config.exclude_assets:
            if matches(url, pattern):
                return f"asset {pattern_kind(pattern).value} {pattern}"
        return None

    def is_excluded(self, url: str) -> bool:
        return self._check(url, self.match(url))

    def is_excluded_asset(self, url: str) -> bool:
        return self._check(url, self.match(url) or self.match_asset(url))

    def _check(self, url: str, rule: Optional[str]) -> bool:
        if rule is None:
            return False
        if url not in self._recorded:
            self._recorded.add(url)
            self.records.append(ExclusionRecord(url=url, rule=rule))
            logger.debug("Excluded: %s (matched %s)", url, rule)
        return True


@dataclass(frozen=True, slots=True)
class SeoRule:
    """SEO settings resolved for one URL; ``priority=None`` means auto-score."""

    changefreq: str
    priority: Optional[float]
    priority_boost: float
    lastmod: LastmodSetting


@dataclass(frozen=True, slots=True)
class IncludeFlags:
    images: bool
    videos: bool


def resolve_seo_rule(url: str, config: SitemapConfig) -> SeoRule:
    """Layer the global defaults and every matching rule, in config order, field by field."""
    path = url_path(url)
    fields = {
        "changefreq": config.defaults.changefreq,
        "priority": None,
        "priority_boost": 0.0,
        "lastmod": config.defaults.lastmod,
    }
    for pattern, rule in config.rules.items():
        if not matches(path, pattern, prefix_only=True):
            continue
        for name in rule.model_fields_set:
            value = getattr(rule, name)
            # an explicit null priority switches back to auto-scoring
            if value is None and name != "priority":
                continue
            fields[name] = value
    return SeoRule(**fields)


def resolve_include_rule(url: str, config: SitemapConfig) -> IncludeFlags:
    path = url_path(url)
    flags = {"images": config.include.images, "videos": config.include.videos}
    for pattern, rule in config.include.rules.items():
        if not matches(path, pattern, prefix_only=True):
            continue
        for name in rule.model_fields_set:
            value = getattr(rule, name)
            if value is not None:
                flags[name] = value
    return IncludeFlags(**flags)
