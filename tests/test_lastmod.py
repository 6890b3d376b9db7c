# File: tests/test_lastmod.py
import os
from datetime import date, datetime, timezone

import aiosqlite
import pytest
import pytest_asyncio

from site_mapper.config import CallbackLastmod, DbLastmod
from site_mapper.crawler.models import PageEntry
from site_mapper.sitemap.lastmod import (
    DbLookup,
    External,
    FileMtime,
    LastmodResolver,
    Now,
    SqliteDataSource,
    as_strategy,
    to_w3c,
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
FIXED_W3C = "2024-06-01T12:00:00+00:00"


def entry(path: str) -> PageEntry:
    return PageEntry(url=f"https://example.com{path}", depth=1)


def resolver(config, **kwargs) -> LastmodResolver:
    return LastmodResolver(config, clock=lambda: FIXED_NOW, **kwargs)


@pytest_asyncio.fixture
async def posts_db(tmp_path):
    path = tmp_path / "site.sqlite"
    async with aiosqlite.connect(path) as conn:
        await conn.execute("CREATE TABLE posts (slug TEXT, updated_at TEXT)")
        await conn.execute(
            "INSERT INTO posts VALUES (?, ?)", ("hello-world", "2023-01-02 03:04:05")
        )
        await conn.commit()
    return path


def test_as_strategy():
    assert as_strategy("now") == Now()
    assert as_strategy("file") == FileMtime()
    assert as_strategy(DbLastmod(strategy="db", table="posts")) == DbLookup("posts", "slug", "updated_at")
    assert as_strategy(CallbackLastmod(strategy="callback", callback="cms")) == External("cms")
    assert as_strategy(External("x")) == External("x")


@pytest.mark.parametrize(
    "value,expected",
    [
        (datetime(2024, 1, 2, 3, 4, 5, 999), "2024-01-02T03:04:05+00:00"),
        (date(2024, 1, 2), "2024-01-02T00:00:00+00:00"),
        (0, "1970-01-01T00:00:00+00:00"),
        ("2024-01-02T03:04:05+02:00", "2024-01-02T03:04:05+02:00"),
        ("2024-01-02", "2024-01-02T00:00:00+00:00"),
        (None, None),
        ("", None),
    ],
)
def test_to_w3c(value, expected):
    assert to_w3c(value) == expected


@pytest.mark.asyncio()
async def test_now_strategy(basic_config):
    assert await resolver(basic_config).resolve("now", entry("/a")) == FIXED_W3C


@pytest.mark.asyncio()
async def test_file_strategy(make_config, tmp_path):
    public = tmp_path / "public"
    (public / "docs").mkdir(parents=True)
    page = public / "docs" / "guide.html"
    page.write_text("<html></html>")
    os.utime(page, (1_700_000_000, 1_700_000_000))
    config = make_config(public_dir=public)

    value = await resolver(config).resolve("file", entry("/docs/guide.html"))
    assert value == "2023-11-14T22:13:20+00:00"


@pytest.mark.asyncio()
async def test_file_strategy_missing_or_outside(make_config, tmp_path):
    public = tmp_path / "public"
    public.mkdir()
    (tmp_path / "secret.txt").write_text("x")
    config = make_config(public_dir=public)
    res = resolver(config)

    assert await res.resolve("file", entry("/nothing-here")) == FIXED_W3C
    assert await res.resolve(FileMtime(), entry("/../secret.txt")) == FIXED_W3C


@pytest.mark.asyncio()
async def test_db_strategy(basic_config, posts_db):
    res = resolver(basic_config, data_source=SqliteDataSource(posts_db))
    strategy = DbLookup(table="posts")

    assert await res.resolve(strategy, entry("/blog/hello-world")) == "2023-01-02T03:04:05+00:00"
    assert await res.resolve(strategy, entry("/blog/unknown")) == FIXED_W3C
    assert await res.resolve(strategy, PageEntry(url="https://example.com/", depth=0)) == FIXED_W3C


@pytest.mark.asyncio()
async def test_db_strategy_failures_fall_back(basic_config, posts_db):
    broken = resolver(basic_config, data_source=SqliteDataSource(posts_db))
    assert await broken.resolve(DbLookup(table="no_such_table"), entry("/x/hello-world")) == FIXED_W3C

    no_source = resolver(basic_config)
    assert await no_source.resolve(DbLookup(table="posts"), entry("/x/hello-world")) == FIXED_W3C


@pytest.mark.asyncio()
async def test_callback_strategy(basic_config):
    seen = []

    def by_url(url):
        seen.append(url)
        return datetime(2022, 5, 5, tzinfo=timezone.utc)

    def with_entry(url, page):
        return f"2021-01-0{page.depth}T00:00:00+00:00"

    async def coro(url):
        return 1_600_000_000

    res = resolver(basic_config, callbacks={"url": by_url, "entry": with_entry, "async": coro})

    assert await res.resolve(External("url"), entry("/a")) == "2022-05-05T00:00:00+00:00"
    assert seen == ["https://example.com/a"]
    assert await res.resolve(External("entry"), entry("/b")) == "2021-01-01T00:00:00+00:00"
    assert await res.resolve(External("async"), entry("/c")) == "2020-09-13T12:26:40+00:00"


@pytest.mark.asyncio()
async def test_callback_failures_fall_back(basic_config):
    def boom(url):
        raise RuntimeError("cms down")

    res = resolver(basic_config, callbacks={"boom": boom, "none": lambda url: None})
    assert await res.resolve(External("boom"), entry("/a")) == FIXED_W3C
    assert await res.resolve(External("none"), entry("/a")) == FIXED_W3C
    assert await res.resolve(External("missing"), entry("/a")) == FIXED_W3C
