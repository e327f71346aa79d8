"""HTML rendering of a merged change report."""

from typing import Any, Dict, List, Tuple

from jinja2 import BaseLoader, Environment

from ..diff.change_set import ChangeRecord, MergedReport
from ..schema import FLAG_LEGEND

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Pharma Diff Report - {{ generated_on }}</title>
<style>
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Helvetica, Arial, sans-serif; margin: 2em; color: #24292e; }
h1 { border-bottom: 2px solid #e1e4e8; padding-bottom: .3em; }
h2 { margin-top: 2em; color: #0366d6; }
table { border-collapse: collapse; width: 100%; margin: .5em 0 1.5em; font-size: 0.92em; }
th, td { border: 1px solid #d1d5da; padding: 6px 10px; text-align: left; vertical-align: top; }
th { background: #f6f8fa; font-weight: 600; }
.old { color: #b31d28; text-decoration: line-through; }
.new { color: #22863a; font-weight: 500; }
.gtin { font-family: monospace; white-space: nowrap; }
.summary-table td:last-child { text-align: right; font-weight: 600; }
.toc { background: #f6f8fa; padding: 1em 1.5em; border-radius: 6px; margin-bottom: 2em; }
.toc a { text-decoration: none; color: #0366d6; }
</style>
</head>
<body>
<h1>Pharma Diff Report - {{ generated_on }}</h1>

<div class="toc"><strong>Contents</strong>
<ul>
<li><a href="#summary">Summary</a></li>
{% for flag, category, changes in sections %}
<li><a href="#flag-{{ flag }}">{{ flag }} {{ category }}</a></li>
{% endfor %}
</ul></div>

<h2 id="summary">Summary</h2>
<table class="summary-table">
<tr><th>Flag</th><th>Category</th><th>Source</th><th>Count</th></tr>
{% for flag, category, source, count in summary %}
<tr><td>{{ flag }}</td><td>{{ category }}</td><td>{{ source }}</td><td>{{ count }}</td></tr>
{% endfor %}
</table>

{% for flag, category, changes in sections %}
<h2 id="flag-{{ flag }}">{{ flag }} {{ category }} ({{ changes | length }})</h2>
<table>
<tr><th>GTIN</th><th>Name</th><th>Field</th><th>Old</th><th>New</th><th>Source</th></tr>
{% for change in changes %}
<tr><td class="gtin">{{ change.identifier }}</td><td>{{ change.name }}</td><td>{{ change.field or "" }}</td><td class="old">{{ change.old_value | format_value }}</td><td class="new">{{ change.new_value | format_value }}</td><td>{{ change.sources | join(", ") }}</td></tr>
{% endfor %}
</table>
{% endfor %}
</body>
</html>
"""


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.2f}"
    if isinstance(value, dict):
        return " / ".join(f"{key}: {format_value(item)}" for key, item in value.items() if item is not None)
    return str(value)


_environment = Environment(loader=BaseLoader(), autoescape=True, trim_blocks=True, lstrip_blocks=True)
_environment.filters["format_value"] = format_value
_template = _environment.from_string(HTML_TEMPLATE)


def _changes_by_flag(report: MergedReport) -> Dict[int, List[ChangeRecord]]:
    grouped: Dict[int, List[ChangeRecord]] = {}
    for change in report.all_changes():
        grouped.setdefault(int(change.flag), []).append(change)
    return dict(sorted(grouped.items()))


def _summary_rows(report: MergedReport) -> List[Tuple[int, str, str, int]]:
    counts: Dict[Tuple[int, str], int] = {}
    for change in report.all_changes():
        key = (int(change.flag), ", ".join(change.sources))
        counts[key] = counts.get(key, 0) + 1
    return [
        (flag, report.flag_legend.get(flag, FLAG_LEGEND.get(flag, "")), source, count)
        for (flag, source), count in sorted(counts.items())
    ]


def render_html(report: MergedReport) -> str:
    """
    Render a styled page with a table of contents, a summary table and one
    section per flag. All report values are autoescaped by the template.
    """
    sections = [
        (flag, report.flag_legend.get(flag, ""), changes)
        for flag, changes in _changes_by_flag(report).items()
    ]
    return _template.render(
        generated_on=report.metadata.get("generated_on", "unknown"),
        sections=sections,
        summary=_summary_rows(report),
    )
