# File: tests/test_engine.py
from __future__ import annotations

import pytest
from aiohttp import web

from conftest import StubFetcher, serve_app
from site_mapper.engine import Engine
from site_mapper.parser.sitemap_parser import read_sitemap_file
from site_mapper.sitemap.ping import ping_search_engines, ping_url
from site_mapper.sitemap.writer import SitemapLimitError
from site_mapper.state import CRAWL_RESULT_KEY, JsonRunStateStore

SITE = {
    "https://example.com/": '<a href="/about">About</a><a href="/admin">Admin</a><a href="/gone">Gone</a>',
    "https://example.com/about": '<img src="/team.png" alt="Team">',
    "https://example.com/gone": (500, ""),
}


def make_engine(config, tmp_path) -> tuple[Engine, StubFetcher]:
    fetcher = StubFetcher(SITE)
    store = JsonRunStateStore(tmp_path / "state.json")
    return Engine(config, fetcher=fetcher, state=store), fetcher


@pytest.mark.asyncio()
async def test_generate_writes_sitemap_and_errors(make_config, tmp_path):
    config = make_config(exclude_urls=["/admin"], validate_links=True, use_index=False)
    engine, _ = make_engine(config, tmp_path)
    out = tmp_path / "public"

    outcome = await engine.generate(out)

    assert outcome.written is not None
    assert outcome.written.entry_point == out / "sitemap.xml"
    assert read_sitemap_file(out / "sitemap.xml") == ["https://example.com/", "https://example.com/about"]
    assert outcome.errors_file == out / "sitemap-errors.xml"
    assert outcome.sitemap_url == "https://example.com/sitemap.xml"
    assert outcome.pinged == {}

    report = outcome.report()
    assert report.stats["pages"] == 2
    assert report.stats["excluded"] == 1
    assert report.stats["errors"] == 1
    assert report.sitemap == "https://example.com/sitemap.xml"


@pytest.mark.asyncio()
async def test_keep_state_then_finalize(make_config, tmp_path):
    config = make_config(use_index=True)
    engine, fetcher = make_engine(config, tmp_path)
    out = tmp_path / "public"

    outcome = await engine.generate(out, keep_state=True)
    assert outcome.written is None
    assert not out.exists()
    assert engine.state.get(CRAWL_RESULT_KEY) is not None

    fetched = list(fetcher.fetched)
    final = await engine.finalize(out)
    assert fetcher.fetched == fetched
    assert final.written.index == out / "sitemap-index.xml"
    assert "https://example.com/about" in read_sitemap_file(final.written.index)
    assert engine.state.get(CRAWL_RESULT_KEY) is None

    with pytest.raises(LookupError):
        await engine.finalize(out)


@pytest.mark.asyncio()
async def test_fresh_discards_stored_state(make_config, tmp_path):
    engine, _ = make_engine(make_config(), tmp_path)
    engine.state.put(CRAWL_RESULT_KEY, {"entries": []})
    await engine.generate(tmp_path / "out", fresh=True, keep_state=False)
    assert engine.state.get(CRAWL_RESULT_KEY) is None


@pytest.mark.asyncio()
async def test_single_mode_limit_propagates(make_config, tmp_path):
    engine, _ = make_engine(make_config(max_urls_per_sitemap=1), tmp_path)
    with pytest.raises(SitemapLimitError):
        await engine.generate(tmp_path / "out", mode="single")


@pytest.mark.asyncio()
async def test_ping_only_requires_existing_file(make_config, tmp_path):
    engine, _ = make_engine(make_config(ping=True), tmp_path)
    with pytest.raises(FileNotFoundError):
        await engine.ping_only(tmp_path, "sitemap.xml")


@pytest.mark.asyncio()
async def test_db_data_source_from_config(make_config, tmp_path):
    config = make_config(database=tmp_path / "site.sqlite")
    engine, _ = make_engine(config, tmp_path)
    assert engine.lastmod.data_source is not None


def test_ping_url_quotes_sitemap():
    assert (
        ping_url("https://www.google.com/ping?sitemap=", "https://example.com/sitemap.xml")
        == "https://www.google.com/ping?sitemap=https%3A%2F%2Fexample.com%2Fsitemap.xml"
    )


@pytest.mark.asyncio()
async def test_ping_search_engines(make_config, unused_tcp_port: int):
    received = []
    app = web.Application()

    async def ok(request):
        received.append(request.query["sitemap"])
        return web.Response(text="ok")

    async def fail(_):
        return web.Response(status=503)

    app.router.add_get("/ping", ok)
    app.router.add_get("/down", fail)

    async for base in serve_app(app, unused_tcp_port):
        config = make_config(
            ping=True,
            ping_targets={"Local": f"{base}/ping?sitemap=", "Broken": f"{base}/down?sitemap="},
        )
        results = await ping_search_engines(config, "https://example.com/sitemap-index.xml")

    assert results == {"Local": True, "Broken": False}
    assert received == ["https://example.com/sitemap-index.xml"]


@pytest.mark.asyncio()
async def test_ping_disabled_sends_nothing(make_config):
    config = make_config(ping=False, ping_targets={"Nowhere": "http://127.0.0.1:9/?s="})
    assert await ping_search_engines(config, "https://example.com/sitemap.xml") == {}


@pytest.mark.asyncio()
async def test_ping_unreachable_target_is_logged_not_raised(make_config, unused_tcp_port: int):
    config = make_config(ping=True, ping_targets={"Nowhere": f"http://127.0.0.1:{unused_tcp_port}/?s="})
    assert await ping_search_engines(config, "https://example.com/sitemap.xml") == {"Nowhere": False}
