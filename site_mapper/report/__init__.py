"""site_mapper.report: JSON and HTML run reports used by the CLI and tests."""

from site_mapper.report.html_report import render_html
from site_mapper.report.json_report import render_json

__all__ = ["render_json", "render_html"]
