"""
Terminal report of a refresh result (rich tables).

Assignments are grouped by display course (catalog key if matched,
extracted code otherwise); each course keeps one colour for the whole
report, taken from the context's colour map.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from studyfeed.context import RefreshContext
from studyfeed.model import Assignment, ClassOccurrence, RefreshResult


DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MAX_TITLE = 48


def _short(text: str, limit: int = MAX_TITLE) -> str:
    text = (text or "").strip()
    if len(text) > limit:
        return text[: limit - 1].rstrip() + "…"
    return text


def group_by_course(assignments: List[Assignment]) -> Dict[str, List[Assignment]]:
    groups: Dict[str, List[Assignment]] = defaultdict(list)
    for a in assignments:
        groups[a.display_course].append(a)
    return dict(sorted(groups.items()))


def assignments_table(assignments: List[Assignment], ctx: RefreshContext) -> Table:
    table = Table(title="Upcoming assignments", box=box.SIMPLE)
    table.add_column("Course")
    table.add_column("Due", justify="right")
    table.add_column("Title")
    table.add_column("Catalog")

    for course, items in group_by_course(assignments).items():
        color = ctx.colors.color_for(course)
        for a in sorted(items, key=lambda x: x.due):
            catalog = a.matched_course_name or ""
            table.add_row(
                f"[bold {color}]{escape(course)}[/]",
                a.due.strftime("%a %d %b %H:%M"),
                escape(_short(a.title)),
                f"[dim]{escape(_short(catalog, 32))}[/]" if catalog else "",
            )
    return table


def classes_table(occurrences: List[ClassOccurrence], ctx: RefreshContext) -> Table:
    table = Table(title="Weekly classes", box=box.SIMPLE)
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Course")
    table.add_column("Title")
    table.add_column("Location")

    for c in sorted(occurrences, key=lambda x: (x.day_of_week, x.start_time, x.course_code)):
        color = ctx.colors.color_for(c.course_code)
        table.add_row(
            DAY_NAMES[c.day_of_week % 7],
            f"{c.start.strftime('%H:%M')}-{c.end.strftime('%H:%M')}",
            f"[bold {color}]{escape(c.course_code)}[/]",
            escape(_short(c.title)),
            escape(c.location or ""),
        )
    return table


def render_report(
    result: RefreshResult,
    ctx: Optional[RefreshContext] = None,
    console: Optional[Console] = None,
) -> None:
    ctx = ctx or RefreshContext()
    console = console or Console()

    if result.assignments:
        console.print(assignments_table(result.assignments, ctx))
    else:
        console.print("No upcoming assignments.")

    if result.occurrences:
        console.print(classes_table(result.occurrences, ctx))
    else:
        console.print("No upcoming classes.")

    console.print(f"Weekly class hours: [bold]{result.weekly_class_hours:.1f}[/]")

    if result.skipped_blocks:
        console.print(f"[yellow]Skipped {result.skipped_blocks} unreadable calendar event(s).[/]")

    for f in result.failures:
        console.print(f"[red]Failed ({f.stage}):[/] {escape(f.url)} - {escape(f.message)}")
