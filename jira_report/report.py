"""Report assembly and console rendering over normalized issues."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .fields import clean_field_names
from .models import MISSING_VALUE, Issue

DEFAULT_OUTPUT_FIELDS: Tuple[str, ...] = (
    "key",
    "issuetype",
    "status",
    "assignee",
    "created",
    "updated",
    "summary",
)
DEFAULT_COUNT_FIELDS: Tuple[str, ...] = ("status", "issuetype", "assignee")
DEFAULT_REPORT_TITLE = "Jira JQL Report"
UNKNOWN_GROUP = "Unknown"

WIDE_FIELDS = {"summary": 52}
DEFAULT_COLUMN_WIDTH = 20


@dataclass(frozen=True)
class CountRow:
    name: str
    count: int


@dataclass(frozen=True)
class CountTable:
    title: str
    field_name: str
    rows: List[CountRow]


@dataclass(frozen=True)
class JqlReport:
    title: str
    jql: str
    generated_at: datetime
    issues: List[Issue]
    count_tables: List[CountTable] = field(default_factory=list)
    config_name: Optional[str] = None


def resolve_output_fields(configured: Optional[Sequence[str]]) -> List[str]:
    return clean_field_names(configured) or list(DEFAULT_OUTPUT_FIELDS)


def resolve_count_fields(configured: Optional[Sequence[str]]) -> List[str]:
    return clean_field_names(configured) or list(DEFAULT_COUNT_FIELDS)


def requested_fields(output_fields: Sequence[str], count_fields: Sequence[str]) -> List[str]:
    return clean_field_names([*output_fields, *count_fields])


def build_field_header(field_name: str) -> str:
    words = (field_name or "").strip().replace("_", " ").split()
    if not words:
        return "Field"
    return " ".join(w[0].upper() + w[1:] for w in words)


def count_by(issues: Sequence[Issue], field_name: str) -> List[CountRow]:
    """
    Group issues by the values of one field.

    Array-valued fields count an issue once under each of its items. Group
    names are compared case-insensitively; the first spelling seen is kept.
    """
    names: Dict[str, str] = {}
    counts: Dict[str, int] = {}
    for issue in issues:
        for value in issue.get_field_values(field_name):
            value = value.strip() if value else ""
            if not value or value == MISSING_VALUE:
                value = UNKNOWN_GROUP
            folded = value.casefold()
            names.setdefault(folded, value)
            counts[folded] = counts.get(folded, 0) + 1

    rows = [CountRow(names[k], c) for k, c in counts.items()]
    rows.sort(key=lambda r: (-r.count, r.name.casefold()))
    return rows


def build_report(
    title: Optional[str],
    jql: str,
    issues: Sequence[Issue],
    count_fields: Sequence[str],
    *,
    config_name: Optional[str] = None,
    now: Callable[[], datetime] = datetime.now,
) -> JqlReport:
    tables = [
        CountTable(f"By {build_field_header(f)}", f, count_by(issues, f)) for f in count_fields
    ]
    return JqlReport(
        title=(title or "").strip() or DEFAULT_REPORT_TITLE,
        jql=jql.strip(),
        generated_at=now(),
        issues=list(issues),
        count_tables=tables,
        config_name=(config_name or "").strip() or None,
    )


def render_report(console: Console, report: JqlReport, output_fields: Sequence[str]) -> None:
    console.rule(f"[bold]{escape(report.title)}")
    if report.config_name:
        console.print(f"[cyan]Config:[/cyan] {escape(report.config_name)}")
    console.print(f"[cyan]JQL:[/cyan] {escape(report.jql)}")
    console.print(f"[cyan]Generated:[/cyan] {report.generated_at:%Y-%m-%d %H:%M:%S}")
    console.print(f"[cyan]Issues:[/cyan] {len(report.issues)}")

    table = Table(box=box.SIMPLE_HEAVY, show_lines=False)
    for f in output_fields:
        width = WIDE_FIELDS.get(f.casefold(), DEFAULT_COLUMN_WIDTH)
        table.add_column(escape(build_field_header(f)), max_width=width, overflow="ellipsis")
    for issue in report.issues:
        table.add_row(*(escape(issue.get_field_value(f)) for f in output_fields))
    console.print(table)

    for ct in report.count_tables:
        counts = Table(title=escape(ct.title), box=box.SIMPLE)
        counts.add_column(escape(build_field_header(ct.field_name)))
        counts.add_column("Count", justify="right")
        for row in ct.rows:
            counts.add_row(escape(row.name), str(row.count))
        console.print(counts)
