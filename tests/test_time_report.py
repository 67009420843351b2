# tests/test_time_report.py

from __future__ import annotations

from datetime import date, datetime, timezone

from phitodo.sync.normalizer import normalize_time_entries
from phitodo.views.time_report import (
    build_time_report,
    format_duration,
    format_duration_short,
    format_hours,
)

from .fakes import time_entry

NOW = datetime(2026, 10, 18, 18, 0, tzinfo=timezone.utc)
TODAY = date(2026, 10, 18)


def _report(hidden: tuple[str, ...] = ()):
    items = normalize_time_entries(
        [
            time_entry(1, start="2026-10-18T09:00:00Z", duration=3600, project_name="Client A"),
            time_entry(2, start="2026-10-18T13:00:00Z", duration=1800, project_name="Client B"),
            time_entry(3, start="2026-10-16T10:00:00Z", duration=7200, project_name="Client A"),
            time_entry(4, start="2026-10-17T10:00:00Z", duration=900),
            time_entry(5, start="2026-10-17T12:00:00Z", duration=600, project_name="Personal"),
        ],
        now=NOW,
    )
    return build_time_report(items, hidden_projects=hidden)


def test_formatters() -> None:
    assert format_hours(9000) == "2.5h"
    assert format_duration(3725) == "01:02:05"
    assert format_duration(-5) == "00:00:00"
    assert format_duration_short(3725) == "1h 2m"
    assert format_duration_short(300) == "5m"


def test_totals_per_day_and_overall() -> None:
    report = _report()
    assert report.total_seconds == 3600 + 1800 + 7200 + 900 + 600
    assert report.duration_for_date(TODAY) == 5400

    daily = report.daily_totals(today=TODAY, days=4)
    assert daily == [
        (date(2026, 10, 15), 0),
        (date(2026, 10, 16), 7200),
        (date(2026, 10, 17), 1500),
        (date(2026, 10, 18), 5400),
    ]


def test_duration_by_project_descending_with_fallback() -> None:
    assert _report().duration_by_project() == [
        ("Client A", 10800),
        ("Client B", 1800),
        ("No Project", 900),
        ("Personal", 600),
    ]


def test_hidden_projects_are_excluded_case_insensitively() -> None:
    report = _report(hidden=("personal", "NO PROJECT"))
    names = [name for name, _ in report.duration_by_project()]
    assert names == ["Client A", "Client B"]


def test_entries_grouped_by_day_most_recent_first() -> None:
    groups = _report().entries_by_date()
    assert [d for d, _ in groups] == [date(2026, 10, 18), date(2026, 10, 17), date(2026, 10, 16)]
    assert [e.stable_key for e in groups[0][1]] == ["1", "2"]
