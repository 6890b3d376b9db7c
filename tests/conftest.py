# File: tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any, Dict, List, Optional, Union

import pytest
from aiohttp import web

from site_mapper.config import SitemapConfig
from site_mapper.crawler.models import FetchResponse


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


Page = Union[str, tuple]


class StubFetcher:
    """In-memory stand-in for :class:`site_mapper.crawler.fetcher.Fetcher`.

    *pages* maps a URL to its HTML body, or to ``(status, body)`` /
    ``(status, body, headers)``. Unknown URLs answer 404; URLs listed in
    *failing* raise ``ConnectionError``.
    """

    def __init__(
        self,
        pages: Mapping[str, Page],
        *,
        failing: tuple[str, ...] = (),
        reachable: Optional[Mapping[str, bool]] = None,
    ) -> None:
        self.pages = dict(pages)
        self.failing = set(failing)
        self.reachable = dict(reachable or {})
        self.fetched: List[str] = []
        self.probed: List[str] = []

    async def fetch(self, url: str) -> FetchResponse:
        self.fetched.append(url)
        if url in self.failing:
            raise ConnectionError(f"cannot reach {url}")
        page = self.pages.get(url)
        if page is None:
            return FetchResponse(url=url, status=404, headers={}, body="")
        if isinstance(page, str):
            return FetchResponse(url=url, status=200, headers={}, body=page)
        status, body, *rest = page
        headers: Dict[str, str] = rest[0] if rest else {}
        return FetchResponse(url=url, status=status, headers=headers, body=body)

    async def probe(self, url: str) -> bool:
        self.probed.append(url)
        return self.reachable.get(url, False)


@pytest.fixture()
def make_config() -> Callable[..., SitemapConfig]:
    """Factory for a SitemapConfig on example.com; keyword arguments override fields."""

    def _make(**overrides: Any) -> SitemapConfig:
        data: Dict[str, Any] = {"base_url": "https://example.com", "ping": False}
        data.update(overrides)
        return SitemapConfig(**data)

    return _make


@pytest.fixture()
def basic_config(make_config) -> SitemapConfig:
    return make_config()


@pytest.fixture()
def local_config() -> Callable[..., SitemapConfig]:
    """Factory for configs pointing at a local plain-HTTP test server."""

    def _make(base_url: str, **overrides: Any) -> SitemapConfig:
        data: Dict[str, Any] = {
            "base_url": base_url,
            "normalize": {"enforce_https": False},
            "http": {"validate_links": {"timeout": 5, "connect_timeout": 2}},
        }
        data.update(overrides)
        return SitemapConfig(**data)

    return _make


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


def html_handler(body: str, status: int = 200, headers: Optional[Dict[str, str]] = None):
    async def _handler(_):
        return web.Response(text=body, status=status, headers=headers, content_type="text/html")

    return _handler
