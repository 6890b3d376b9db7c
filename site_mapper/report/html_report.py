"""site_mapper.report.html_report: HTML run report rendered with Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import Environment, FileSystemLoader, PackageLoader, select_autoescape

from site_mapper.aggregator import CrawlReport

TEMPLATE_NAME = "report.html.j2"


def render_html(
    report: CrawlReport,
    template_dir: Optional[Union[Path, str]],
    output_path: Union[Path, str],
) -> Path:
    """Render the report template and save it at *output_path*.

    Args:
        report: CrawlReport of the run.
        template_dir: directory holding ``report.html.j2``; ``None`` uses the packaged template.
        output_path: path of the resulting HTML file.

    Returns:
        Path of the saved HTML file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    loader = (
        FileSystemLoader(str(template_dir))
        if template_dir is not None
        else PackageLoader("site_mapper", "templates")
    )
    env = Environment(loader=loader, autoescape=select_autoescape(["html", "xml", "j2"]))
    template = env.get_template(TEMPLATE_NAME)

    context: dict[str, Any] = {
        "pages": report.pages,
        "errors": report.errors,
        "excluded": report.excluded,
        "link_graph": report.link_graph,
        "stats": report.stats,
        "sitemap": report.sitemap,
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
