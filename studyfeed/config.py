"""
Pipeline configuration.

All knobs live in one dataclass so a refresh can be run with explicit
settings (CLI flags, tests) instead of module-level constants.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from pathlib import Path


def default_data_dir() -> Path:
    """
    Return the directory that holds feeds.json, bindings and snapshots.

    Using a function instead of a constant makes testing easier,
    because tests can pass their own path.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data"


@dataclass
class PipelineConfig:
    fetch_timeout: float = 30.0
    horizon_months: int = 6
    max_workers: int = 4
    default_tz: tzinfo = field(default=timezone.utc)
    description_limit: int = 500
    current_semester_only: bool = False


def current_semester_start(now: datetime) -> date:
    """
    First day of the academic term containing `now`.

    Fall: September - December
    Winter: January - April
    Summer: May - August
    """
    if 9 <= now.month <= 12:
        return date(now.year, 9, 1)
    if 1 <= now.month <= 4:
        return date(now.year, 1, 1)
    return date(now.year, 5, 1)
