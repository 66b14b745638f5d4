"""
Per-refresh working state.

Everything one pipeline run needs beyond its inputs lives here: the
reference "now", the configuration, the course catalog and the course
colour assignments. A new context is created for each refresh; nothing is
kept at module level, so concurrent refreshes never share state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Sequence

from studyfeed.config import PipelineConfig
from studyfeed.model import Assignment, CourseCatalogEntry
from studyfeed.matcher import CatalogIndex, build_catalog_index


COURSE_PALETTE: Sequence[str] = (
    "cyan",
    "magenta",
    "green",
    "yellow",
    "blue",
    "red",
    "bright_cyan",
    "bright_magenta",
    "bright_green",
    "bright_yellow",
)


class CourseColors:
    """
    Stable colour per course within one context, assigned in first-seen order.
    Wraps around the palette when there are more courses than colours.
    """

    def __init__(self, palette: Sequence[str] = COURSE_PALETTE) -> None:
        self._palette = tuple(palette)
        self._assigned: Dict[str, str] = {}

    def color_for(self, course: str) -> str:
        color = self._assigned.get(course)
        if color is None:
            color = self._palette[len(self._assigned) % len(self._palette)]
            self._assigned[course] = color
        return color


@dataclass
class RefreshContext:
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    config: PipelineConfig = field(default_factory=PipelineConfig)
    catalog: List[CourseCatalogEntry] = field(default_factory=list)
    colors: CourseColors = field(default_factory=CourseColors)

    def __post_init__(self) -> None:
        if self.now.tzinfo is None:
            self.now = self.now.replace(tzinfo=self.config.default_tz)

    def catalog_index(self, assignments: Iterable[Assignment] = ()) -> CatalogIndex:
        """
        Lookup index for the catalog. It depends on the assignment codes
        (cross-listing display preference), so build it after aggregation.
        """
        return build_catalog_index(self.catalog, assignments)
