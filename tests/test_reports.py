# File: tests/test_reports.py
import json

from site_mapper.aggregator import aggregate_results
from site_mapper.crawler.models import CrawlResult, ErrorRecord, ExclusionRecord, ImageAsset, PageEntry
from site_mapper.report import render_html, render_json


def sample_result() -> CrawlResult:
    return CrawlResult(
        entries=[
            PageEntry(url="https://example.com/", depth=0),
            PageEntry(
                url="https://example.com/about",
                depth=1,
                images=(ImageAsset(src="https://example.com/a.png", title="A", caption="a"),),
            ),
        ],
        link_graph={"https://example.com/": 1, "https://example.com/about": 4},
        errors=[
            ErrorRecord(url="https://example.com/x", status=500, time="t1"),
            ErrorRecord(url="https://example.com/y", status="soft-404", time="t2"),
            ErrorRecord(url="https://example.com/z", status=500, time="t3"),
        ],
        exclusions=[
            ExclusionRecord(url="https://example.com/admin", rule="string /admin"),
            ExclusionRecord(url="https://example.com/admin", rule="string /admin"),
        ],
        visited={"https://example.com/", "https://example.com/about", "https://example.com/admin"},
        max_depth_reached=1,
    )


def test_aggregate_results():
    report = aggregate_results(sample_result(), sitemap="https://example.com/sitemap.xml")

    assert report.pages[1] == {
        "url": "https://example.com/about",
        "depth": 1,
        "inlinks": 4,
        "images": 1,
        "videos": 0,
    }
    assert report.excluded == [{"url": "https://example.com/admin", "rule": "string /admin"}]
    assert list(report.link_graph) == ["https://example.com/about", "https://example.com/"]
    assert report.stats["errors_by_status"] == {"500": 2, "soft-404": 1}
    assert report.stats["visited"] == 3
    assert report.summary() == "2 pages, 1 excluded URLs, 3 broken links, max depth 1"


def test_render_json(tmp_path):
    report = aggregate_results(sample_result())
    path = render_json(report, tmp_path / "reports" / "run.json")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["stats"]["pages"] == 2
    assert data["errors"][1]["status"] == "soft-404"


def test_render_html_packaged_template(tmp_path):
    report = aggregate_results(sample_result(), sitemap="https://example.com/sitemap.xml")
    path = render_html(report, None, tmp_path / "run.html")
    html = path.read_text(encoding="utf-8")
    assert "https://example.com/about" in html
    assert "soft-404" in html
    assert "Max depth reached: 1" in html


def test_render_html_custom_template(tmp_path):
    (tmp_path / "tpl").mkdir()
    (tmp_path / "tpl" / "report.html.j2").write_text("<p>{{ stats.pages }} {{ sitemap }}</p>", encoding="utf-8")
    report = aggregate_results(sample_result(), sitemap="<x>")
    path = render_html(report, tmp_path / "tpl", tmp_path / "out.html")
    assert path.read_text(encoding="utf-8") == "<p>2 &lt;x&gt;</p>"
