# File: site_mapper/utils.py
"""site_mapper.utils: URL canonicalisation and small URL/collection helpers.

Every URL the crawler touches goes through :func:`normalize_url` (raw href
resolved against the page it was found on) or :func:`clean_url` (already
absolute URL). Both are pure functions of their input and the
:class:`~site_mapper.config.NormalizeConfig`, which is what makes the
visited-set de-duplication work.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Callable, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar
from urllib.parse import urlsplit

from site_mapper.config import NormalizeConfig
from site_mapper.logger import logger

__all__: Sequence[str] = (
    "ASSET_EXTENSIONS",
    "IMAGE_EXTENSIONS",
    "normalize_url",
    "clean_url",
    "same_host",
    "url_path",
    "file_extension",
    "is_asset_url",
    "extract_slug",
    "remove_duplicates",
)

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg"})
ASSET_EXTENSIONS = IMAGE_EXTENSIONS | {"mp4", "webm", "avi", "mov"}

_SKIPPED_SCHEMES = re.compile(r"^(tel:|mailto:|javascript:)", re.IGNORECASE)
_ANY_SCHEME = re.compile(r"^[a-z][a-z0-9+.\-]*:", re.IGNORECASE)
_HTTP_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_DUPLICATE_SLASHES = re.compile(r"(?<!:)//+")

T = TypeVar("T")


def _split_host_port(netloc: str) -> Tuple[str, str]:
    """Split ``host[:port]`` (userinfo already removed); the port keeps its colon."""
    if netloc.startswith("["):
        end = netloc.find("]") + 1
        return netloc[:end], netloc[end:]
    host, sep, port = netloc.partition(":")
    return host, f"{sep}{port}" if port else ""


def _origin(url: str) -> Tuple[str, str]:
    parts = urlsplit(url)
    netloc = parts.netloc.rpartition("@")[2]
    return parts.scheme or "http", netloc


def clean_url(url: str, options: NormalizeConfig) -> str:
    """Bring an absolute URL to its canonical spelling.

    Collapses duplicate slashes (``scheme://`` is left alone), applies the
    lower-casing, https, www and trailing-slash options and always renders the
    bare root as ``scheme://host[:port]/``.
    """
    url = _DUPLICATE_SLASHES.sub("/", url)
    parts = urlsplit(url)

    scheme = (parts.scheme or "http").lower()
    host, port = _split_host_port(parts.netloc.rpartition("@")[2])
    path = parts.path
    query = f"?{parts.query}" if parts.query and not options.strip_queries else ""
    fragment = f"#{parts.fragment}" if parts.fragment and not options.strip_anchors else ""

    if options.canonicalize:
        host = host.lower()
        path = path.lower()
        query = query.lower()

    if options.enforce_https:
        scheme = "https"

    if options.enforce_www is True and not host.startswith("www."):
        host = f"www.{host}"
    elif options.enforce_www is False and host.startswith("www."):
        host = host[4:]

    if path in ("", "/"):
        path = "/"
    elif options.force_trailing_slash:
        if not path.endswith("/"):
            path += "/"
    elif options.strip_trailing_slash:
        path = path.rstrip("/") or "/"

    return f"{scheme}://{host}{port}{path}{query}{fragment}"


def normalize_url(raw: Optional[str], base: str, options: NormalizeConfig) -> Optional[str]:
    """Resolve *raw* (an href, src, ...) found on *base* to its canonical URL.

    Returns ``None`` for values that cannot be fetched over HTTP: empty values,
    ``tel:``/``mailto:``/``javascript:`` links and any other explicit scheme.
    Relative values are resolved against the scheme, host and port of *base*.
    """
    if not raw:
        return None
    link = raw.strip()
    if not link or _SKIPPED_SCHEMES.match(link):
        return None

    if options.strip_anchors:
        link = link.split("#", 1)[0]
    if options.strip_queries:
        link = link.split("?", 1)[0]

    if not link:
        # a bare "#section" or "?page=2" points back at the page itself
        return clean_url(base, options)

    if _HTTP_SCHEME.match(link):
        return clean_url(link, options)

    scheme, netloc = _origin(base)
    if link.startswith("//"):
        return clean_url(f"{scheme}:{link}", options)

    if _ANY_SCHEME.match(link):
        logger.debug("Skipping non-HTTP URL: %s", raw)
        return None

    return clean_url(f"{scheme}://{netloc}/{link.lstrip('/')}", options)


def same_host(url: str, base_url: str) -> bool:
    """True when both URLs name exactly the same host (no subdomain wildcard)."""
    return urlsplit(url).hostname == urlsplit(base_url).hostname


def url_path(url: str) -> str:
    return urlsplit(url).path


def file_extension(url: str) -> str:
    """Lower-cased extension of the last path segment, without the dot."""
    return PurePosixPath(url_path(url)).suffix.lstrip(".").lower()


def is_asset_url(url: str) -> bool:
    """Image or video file, judged by extension only."""
    return file_extension(url) in ASSET_EXTENSIONS


def extract_slug(url: str) -> Optional[str]:
    """Last path segment, or ``None`` for the homepage."""
    path = url_path(url).strip("/")
    if not path:
        return None
    return path.split("/")[-1]


def remove_duplicates(items: Iterable[T], key: Optional[Callable[[T], Hashable]] = None) -> List[T]:
    """Drop duplicates keeping the first occurrence and the original order."""
    seen: set = set()
    unique: List[T] = []
    for item in items:
        marker = key(item) if key else item
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(item)
    return unique
