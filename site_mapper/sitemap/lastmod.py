"""site_mapper.sitemap.lastmod: resolution of ``<lastmod>`` values.

Four strategies, picked per URL by the SEO rules:

* :class:`Now` - the current time;
* :class:`FileMtime` - modification time of the file serving the URL under ``public_dir``;
* :class:`DbLookup` - ``SELECT column FROM table WHERE lookup = <slug>`` through a :class:`DataSource`;
* :class:`External` - a resolver registered by name by the caller.

Whatever goes wrong, the resolver answers with the current time.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Protocol, Union

import aiosqlite

from site_mapper.config import CallbackLastmod, DbLastmod, LastmodSetting, SitemapConfig
from site_mapper.crawler.models import PageEntry
from site_mapper.logger import logger
from site_mapper.utils import extract_slug, url_path

__all__ = [
    "Now",
    "FileMtime",
    "DbLookup",
    "External",
    "LastmodStrategy",
    "as_strategy",
    "to_w3c",
    "DataSource",
    "SqliteDataSource",
    "LastmodResolver",
]


@dataclass(frozen=True, slots=True)
class Now:
    pass


@dataclass(frozen=True, slots=True)
class FileMtime:
    pass


@dataclass(frozen=True, slots=True)
class DbLookup:
    table: str
    lookup: str = "slug"
    column: str = "updated_at"


@dataclass(frozen=True, slots=True)
class External:
    name: str


LastmodStrategy = Union[Now, FileMtime, DbLookup, External]


def as_strategy(setting: Union[LastmodSetting, LastmodStrategy]) -> LastmodStrategy:
    """Translate the configuration spelling into a strategy object."""
    if isinstance(setting, (Now, FileMtime, DbLookup, External)):
        return setting
    if setting == "file":
        return FileMtime()
    if isinstance(setting, DbLastmod):
        return DbLookup(table=setting.table, lookup=setting.lookup, column=setting.column)
    if isinstance(setting, CallbackLastmod):
        return External(name=setting.callback)
    return Now()


def to_w3c(value: Any) -> Optional[str]:
    """Render a datetime, date, ISO string or epoch number as a W3C datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        moment = datetime.fromisoformat(value.strip())
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.replace(microsecond=0).isoformat()


class DataSource(Protocol):
    """Point lookup used by the ``db`` strategy."""

    async def fetch_value(self, table: str, column: str, lookup: str, key: str) -> Any: ...


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SqliteDataSource:
    """:class:`DataSource` reading a SQLite database with aiosqlite."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    async def fetch_value(self, table: str, column: str, lookup: str, key: str) -> Any:
        query = (
            f"SELECT {_quote_identifier(column)} FROM {_quote_identifier(table)} "
            f"WHERE {_quote_identifier(lookup)} = ? LIMIT 1"
        )
        async with aiosqlite.connect(self.path) as conn:
            async with conn.execute(query, (key,)) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else None


def _wants_entry(callback: Callable[..., Any]) -> bool:
    """True when *callback* takes a second positional argument (the entry)."""
    try:
        params = inspect.signature(callback).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = 0
    for param in params:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return True
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= 2


class LastmodResolver:
    """Resolve the last modification time of crawled pages."""

    def __init__(
        self,
        config: SitemapConfig,
        *,
        data_source: Optional[DataSource] = None,
        callbacks: Optional[Mapping[str, Callable[..., Any]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.data_source = data_source
        self.callbacks = dict(callbacks or {})
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def current_time(self) -> datetime:
        return self._clock()

    def now(self) -> str:
        return to_w3c(self.current_time()) or ""

    async def resolve(self, strategy: Union[LastmodSetting, LastmodStrategy], entry: PageEntry) -> str:
        """W3C datetime for *entry*; never raises."""
        try:
            resolved = await self._resolve(as_strategy(strategy), entry)
        except Exception as exc:
            logger.warning("Lastmod resolution failed for %s: %s", entry.url, exc)
            resolved = None
        return resolved or self.now()

    async def _resolve(self, strategy: LastmodStrategy, entry: PageEntry) -> Optional[str]:
        if isinstance(strategy, FileMtime):
            return self._file_mtime(entry.url)
        if isinstance(strategy, DbLookup):
            return await self._db_lookup(strategy, entry.url)
        if isinstance(strategy, External):
            return await self._external(strategy, entry)
        return None

    def _file_mtime(self, url: str) -> Optional[str]:
        root = self.config.public_dir.resolve()
        candidate = (root / url_path(url).lstrip("/")).resolve()
        if not candidate.is_relative_to(root) or not candidate.is_file():
            return None
        return to_w3c(datetime.fromtimestamp(candidate.stat().st_mtime, tz=timezone.utc))

    async def _db_lookup(self, strategy: DbLookup, url: str) -> Optional[str]:
        slug = extract_slug(url)
        if slug is None:
            return None
        if self.data_source is None:
            logger.warning("No data source configured for db lastmod of %s", url)
            return None
        value = await self.data_source.fetch_value(strategy.table, strategy.column, strategy.lookup, slug)
        return to_w3c(value)

    async def _external(self, strategy: External, entry: PageEntry) -> Optional[str]:
        callback = self.callbacks.get(strategy.name)
        if not callable(callback):
            logger.warning("Invalid lastmod callback %r for %s", strategy.name, entry.url)
            return None
        result = callback(entry.url, entry) if _wants_entry(callback) else callback(entry.url)
        if inspect.isawaitable(result):
            result = await result
        return to_w3c(result)
