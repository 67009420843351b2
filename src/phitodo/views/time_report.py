# src/phitodo/views/time_report.py

"""
Time-tracking projection built from normalized Toggl entries.

Entries never become tasks; this is the only consumer of TIME_ENTRIES items.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from ..sync.external import ExternalItem, TimeEntryPayload
from ..tasks.task_models import ExternalSource

NO_PROJECT = "No Project"


def format_hours(seconds: int) -> str:
    """2.5h"""
    return f"{seconds / 3600.0:.1f}h"


def format_duration(seconds: int) -> str:
    """HH:MM:SS"""
    seconds = max(0, int(seconds))
    return f"{seconds // 3600:02d}:{(seconds % 3600) // 60:02d}:{seconds % 60:02d}"


def format_duration_short(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, minutes = seconds // 3600, (seconds % 3600) // 60
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def _payload(item: ExternalItem) -> TimeEntryPayload:
    assert isinstance(item.payload, TimeEntryPayload)
    return item.payload


@dataclass(slots=True)
class TimeReport:
    entries: list[ExternalItem] = field(default_factory=list)

    @property
    def total_seconds(self) -> int:
        return sum(_payload(e).duration_seconds for e in self.entries)

    def duration_for_date(self, day: date) -> int:
        return sum(_payload(e).duration_seconds for e in self.entries if _payload(e).day == day)

    def daily_totals(self, *, today: date, days: int) -> list[tuple[date, int]]:
        """Oldest first, one row per day including empty ones."""
        out: list[tuple[date, int]] = []
        for i in range(days - 1, -1, -1):
            d = today - timedelta(days=i)
            out.append((d, self.duration_for_date(d)))
        return out

    def duration_by_project(self) -> list[tuple[str, int]]:
        """Longest first."""
        totals: dict[str, int] = defaultdict(int)
        for e in self.entries:
            totals[_payload(e).project_name or NO_PROJECT] += _payload(e).duration_seconds
        return sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))

    def entries_by_date(self) -> list[tuple[date, list[ExternalItem]]]:
        """Most recent day first; entries without a parseable start are left out."""
        groups: dict[date, list[ExternalItem]] = defaultdict(list)
        for e in self.entries:
            day = _payload(e).day
            if day is not None:
                groups[day].append(e)
        return sorted(groups.items(), key=lambda kv: kv[0], reverse=True)


def build_time_report(
    items: Iterable[ExternalItem],
    *,
    hidden_projects: Iterable[str] = (),
) -> TimeReport:
    hidden = {p.strip().lower() for p in hidden_projects if p.strip()}
    kept = [
        i
        for i in items
        if i.source == ExternalSource.TOGGL_ENTRY
        and (_payload(i).project_name or NO_PROJECT).lower() not in hidden
    ]
    return TimeReport(entries=kept)
