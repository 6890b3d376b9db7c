# File: tests/test_rules.py
import pytest

from site_mapper.config import DbLastmod
from site_mapper.rules import (
    ExclusionMatcher,
    PatternKind,
    matches,
    pattern_kind,
    resolve_include_rule,
    resolve_seo_rule,
    whitelisted,
)


@pytest.mark.parametrize(
    "pattern,kind",
    [("#^/blog#", PatternKind.REGEX), ("*.pdf", PatternKind.EXTENSION), ("/admin", PatternKind.LITERAL), ("#", PatternKind.LITERAL)],
)
def test_pattern_kind(pattern, kind):
    assert pattern_kind(pattern) is kind


@pytest.mark.parametrize(
    "subject,pattern,expected",
    [
        ("/admin/users", "/admin", True),
        ("/en/admin", "/admin", True),
        ("/about", "/admin", False),
        ("/docs/file.PDF", "*.pdf", True),
        ("/docs/file.pdf.html", "*.pdf", False),
        ("/list?page=2", r"#\?page=\d+#", True),
        ("/blog/post", "#^/blog/#", True),
        ("/x/blog/post", "#^/blog/#", False),
        ("/anything", "#[unclosed#", False),
        ("/anything", "", False),
    ],
)
def test_matches(subject, pattern, expected):
    assert matches(subject, pattern) is expected


def test_prefix_only_literal():
    assert matches("/blog/post", "/blog", prefix_only=True)
    assert not matches("/en/blog/post", "/blog", prefix_only=True)


def test_whitelist_subjects():
    url = "https://cdn.example.com/img/a.png"
    assert whitelisted(url, ["https://cdn.example.com"])
    assert whitelisted(url, ["#^/img/#"])
    assert whitelisted(url, ["*.png"])
    assert not whitelisted(url, ["https://other.com", "*.jpg"])


def test_exclusion_records(make_config):
    config = make_config(exclude_urls=["/admin", "*.pdf"], exclude_assets=[r"#\.zip$#"])
    matcher = ExclusionMatcher(config)

    assert matcher.is_excluded("https://example.com/admin/panel")
    assert matcher.is_excluded("https://example.com/files/report.pdf")
    assert not matcher.is_excluded("https://example.com/about")
    assert matcher.is_excluded("mailto:info@example.com")
    assert matcher.is_excluded_asset("https://example.com/pack.zip")
    assert not matcher.is_excluded("https://example.com/pack.zip")

    urls = [r.url for r in matcher.records]
    assert urls == [
        "https://example.com/admin/panel",
        "https://example.com/files/report.pdf",
        "mailto:info@example.com",
        "https://example.com/pack.zip",
    ]
    assert matcher.records[0].rule == "string /admin"


def test_repeated_exclusion_recorded_once(make_config):
    matcher = ExclusionMatcher(make_config(exclude_urls=["/admin"]))
    for _ in range(3):
        assert matcher.is_excluded("https://example.com/admin")
    assert matcher.is_excluded_asset("https://example.com/admin")
    assert [r.url for r in matcher.records] == ["https://example.com/admin"]


def test_seo_rule_defaults(make_config):
    rule = resolve_seo_rule("https://example.com/about", make_config())
    assert rule.changefreq == "weekly"
    assert rule.priority is None
    assert rule.priority_boost == 0.0
    assert rule.lastmod == "now"


def test_seo_rules_layer_field_by_field(make_config):
    config = make_config(
        rules={
            "/blog": {"changefreq": "daily", "priority": 0.7, "lastmod": "file"},
            "#^/blog/news#": {"priority_boost": 0.2},
            "/blog/news/archive": {"priority": None},
        }
    )
    news = resolve_seo_rule("https://example.com/blog/news/today", config)
    assert news.changefreq == "daily"
    assert news.priority == 0.7
    assert news.priority_boost == 0.2
    assert news.lastmod == "file"

    archive = resolve_seo_rule("https://example.com/blog/news/archive/2020", config)
    assert archive.priority is None
    assert archive.changefreq == "daily"


def test_seo_rule_db_lastmod(make_config):
    config = make_config(rules={"/products": {"lastmod": {"strategy": "db", "table": "products"}}})
    rule = resolve_seo_rule("https://example.com/products/widget", config)
    assert isinstance(rule.lastmod, DbLastmod)
    assert rule.lastmod.column == "updated_at"


def test_include_rules(make_config):
    config = make_config(
        include={"images": True, "videos": False, "rules": {"/media": {"videos": True}, "/text": {"images": False}}}
    )
    assert resolve_include_rule("https://example.com/", config).images
    assert not resolve_include_rule("https://example.com/", config).videos
    assert resolve_include_rule("https://example.com/media/x", config).videos
    assert not resolve_include_rule("https://example.com/text/y", config).images
