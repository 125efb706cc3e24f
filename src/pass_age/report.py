"""Ordering, filtering and rendering of password ages."""

from datetime import timedelta
from pathlib import PurePosixPath
from typing import Iterable, Optional

from .age import AgeRecord
from .config import RunConfiguration, SortBy, StateFilter

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY
MONTH = 30 * DAY
YEAR = 365 * DAY


def _period(seconds: int) -> str:
    if seconds <= 10:
        return "now"
    if seconds <= 45:
        return f"{seconds} seconds"
    if seconds <= 90:
        return "a minute"
    if seconds <= 45 * MINUTE:
        return f"{max(seconds // MINUTE, 2)} minutes"
    if seconds <= 90 * MINUTE:
        return "an hour"
    if seconds <= 22 * HOUR:
        return f"{max(seconds // HOUR, 2)} hours"
    if seconds <= 36 * HOUR:
        return "a day"
    if seconds <= 6 * DAY + 12 * HOUR:
        return f"{max(seconds // DAY, 2)} days"
    if seconds <= 10 * DAY + 12 * HOUR:
        return "a week"
    if seconds <= 29 * DAY:
        return f"{max(seconds // WEEK, 2)} weeks"
    if seconds <= 45 * DAY:
        return "a month"
    if seconds <= 345 * DAY:
        return f"{max(seconds // MONTH, 2)} months"
    if seconds <= 547 * DAY:
        return "a year"
    return f"{max(seconds // YEAR, 2)} years"


def humanize_elapsed(elapsed: timedelta) -> str:
    """
    Roughly describe how long ago something happened, e.g. "3 months ago".

    Only the magnitude is used, so a future-dated change reads the same
    as one equally far in the past.
    """
    seconds = abs(int(elapsed.total_seconds()))
    period = _period(seconds)
    if period == "now":
        return period
    return f"{period} ago"


def _name_key(record: AgeRecord) -> tuple[str, ...]:
    return PurePosixPath(record.path).parts


def sort_records(records: Iterable[AgeRecord], sort_by: SortBy) -> list[AgeRecord]:
    """Sort by pass-name, or by age with the most recently changed first."""
    if sort_by is SortBy.LAST_MODIFIED:
        return sorted(records, key=lambda record: record.elapsed)
    return sorted(records, key=_name_key)


def filter_records(
    records: Iterable[AgeRecord],
    since: Optional[timedelta],
    state_filter: StateFilter,
) -> list[AgeRecord]:
    """
    Keep the passwords unmodified for longer than `since`, or the ones
    modified within it. Without both a duration and a filter nothing is
    dropped.
    """
    records = list(records)
    if since is None or state_filter is StateFilter.NONE:
        return records

    if state_filter is StateFilter.UNMODIFIED:
        return [r for r in records if r.elapsed > since]
    return [r for r in records if r.elapsed < since]


def render_record(record: AgeRecord, state_filter: StateFilter = StateFilter.NONE) -> Optional[str]:
    """One output line for a record, or None when the filter hides it."""
    age = humanize_elapsed(record.elapsed)

    if record.has_history:
        if state_filter is not StateFilter.UNMODIFIED:
            return f"{record.path} last modified {age}"
    elif state_filter is not StateFilter.MODIFIED:
        return f"{record.path} hasn't been modified, since it was added to the store, {age}"
    return None


def render_records(records: Iterable[AgeRecord], state_filter: StateFilter) -> list[str]:
    lines = (render_record(record, state_filter) for record in records)
    return [line for line in lines if line is not None]


def build_report(records: Iterable[AgeRecord], config: RunConfiguration) -> list[str]:
    """Sort, reverse, filter and render, in that order."""
    ordered = sort_records(records, config.sort_by)
    if config.reverse:
        ordered.reverse()
    kept = filter_records(ordered, config.since, config.state_filter)
    return render_records(kept, config.state_filter)
