# File: tests/test_utils.py
import pytest

from site_mapper.config import NormalizeConfig
from site_mapper.utils import (
    clean_url,
    extract_slug,
    file_extension,
    is_asset_url,
    normalize_url,
    remove_duplicates,
    same_host,
)

DEFAULTS = NormalizeConfig()
BASE = "https://example.com/blog/post"


def test_normalization_scenario():
    assert normalize_url("HTTP://Example.com//Foo/?x=1#y", BASE, DEFAULTS) == "https://example.com/foo"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("/about", "https://example.com/about"),
        ("contact/", "https://example.com/contact"),
        ("//example.com/a", "https://example.com/a"),
        ("https://example.com/", "https://example.com/"),
        ("https://Example.com", "https://example.com/"),
        ("#top", "https://example.com/blog/post"),
        ("/a//b///c", "https://example.com/a/b/c"),
        ("  /padded  ", "https://example.com/padded"),
    ],
)
def test_normalize_resolves_against_base(raw, expected):
    assert normalize_url(raw, BASE, DEFAULTS) == expected


@pytest.mark.parametrize(
    "raw",
    ["", None, "   ", "mailto:a@example.com", "tel:+123", "javascript:void(0)", "ftp://example.com/x", "data:image/png;base64,AA"],
)
def test_normalize_rejects_non_http(raw):
    assert normalize_url(raw, BASE, DEFAULTS) is None


@pytest.mark.parametrize(
    "raw",
    [
        "HTTP://Example.com//Foo/?x=1#y",
        "/Some/Path/",
        "https://www.example.com/x/",
        "//cdn.example.com/img.PNG",
    ],
)
def test_normalize_is_idempotent(raw):
    once = normalize_url(raw, BASE, DEFAULTS)
    assert once is not None
    assert normalize_url(once, BASE, DEFAULTS) == once


def test_keep_queries_and_anchors():
    opts = NormalizeConfig(strip_queries=False, strip_anchors=False)
    assert normalize_url("/Search?Q=A#Res", BASE, opts) == "https://example.com/search?q=a#Res"


def test_no_canonicalize_keeps_case():
    opts = NormalizeConfig(canonicalize=False)
    assert normalize_url("/About/Us", BASE, opts) == "https://example.com/About/Us"


def test_enforce_www():
    add = NormalizeConfig(enforce_www=True)
    strip = NormalizeConfig(enforce_www=False)
    assert clean_url("https://example.com/a", add) == "https://www.example.com/a"
    assert clean_url("https://www.example.com/a", add) == "https://www.example.com/a"
    assert clean_url("https://www.example.com/a", strip) == "https://example.com/a"


def test_trailing_slash_options():
    force = NormalizeConfig(force_trailing_slash=True)
    keep = NormalizeConfig(strip_trailing_slash=False)
    assert clean_url("https://example.com/a", force) == "https://example.com/a/"
    assert clean_url("https://example.com/a/", keep) == "https://example.com/a/"
    assert clean_url("https://example.com/a/", DEFAULTS) == "https://example.com/a"


def test_https_not_enforced_keeps_port():
    opts = NormalizeConfig(enforce_https=False)
    assert normalize_url("/x", "http://localhost:8080/", opts) == "http://localhost:8080/x"


def test_same_host():
    assert same_host("https://example.com/a", "https://example.com/")
    assert not same_host("https://blog.example.com/a", "https://example.com/")
    assert not same_host("https://other.org/", "https://example.com/")


def test_extension_helpers():
    assert file_extension("https://example.com/img/Photo.JPG") == "jpg"
    assert file_extension("https://example.com/about") == ""
    assert is_asset_url("https://example.com/clip.mp4")
    assert not is_asset_url("https://example.com/page.html")


def test_extract_slug():
    assert extract_slug("https://example.com/blog/my-post") == "my-post"
    assert extract_slug("https://example.com/") is None


def test_remove_duplicates_keeps_first():
    assert remove_duplicates([3, 1, 3, 2, 1]) == [3, 1, 2]
    assert remove_duplicates(["a", "A", "b"], key=str.lower) == ["a", "b"]
