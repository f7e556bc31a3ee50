from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta

from gitaura.api.schemas.contributions import ContributionDay


def _counts_by_date(days: Iterable[ContributionDay]) -> dict[date, int]:
    counts: dict[date, int] = {}
    for day in days:
        counts[day.date] = day.contribution_count
    return counts


def calculate_streak(days: Iterable[ContributionDay], today: date | None = None) -> int:
    """Count consecutive active days ending today or yesterday.

    A quiet ``today`` does not break the streak since the day is not over
    yet; the first quiet day before it does. Input order does not matter.
    """
    counts = _counts_by_date(days)
    if not counts:
        return 0

    today = today or datetime.now(UTC).date()
    streak = 0
    offset = 0
    while True:
        count = counts.get(today - timedelta(days=offset), 0)
        if count > 0:
            streak += 1
        elif offset > 0:
            break
        offset += 1
    return streak


def calculate_longest_streak(days: Iterable[ContributionDay]) -> int:
    """Longest run of consecutive active calendar days in the series."""
    active = sorted(d for d, count in _counts_by_date(days).items() if count > 0)
    longest = 0
    run = 0
    previous: date | None = None
    for current in active:
        if previous is not None and current - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = current
    return longest


def last_contribution_date(days: Iterable[ContributionDay]) -> date | None:
    active = [d for d, count in _counts_by_date(days).items() if count > 0]
    return max(active) if active else None
