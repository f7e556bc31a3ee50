import random
from datetime import date, timedelta

from gitaura.api.schemas.contributions import ContributionDay
from gitaura.services.streak_service import (
    calculate_longest_streak,
    calculate_streak,
    last_contribution_date,
)

TODAY = date(2024, 3, 10)


def days_ending_today(counts: list[int]) -> list[ContributionDay]:
    """Days ending at TODAY; the last count is today's."""
    start = TODAY - timedelta(days=len(counts) - 1)
    return [
        ContributionDay(date=start + timedelta(days=i), contribution_count=count)
        for i, count in enumerate(counts)
    ]


class TestCurrentStreak:
    """Tests for the current streak walk-back."""

    def test_consecutive_days_through_today(self) -> None:
        assert calculate_streak(days_ending_today([1, 1, 1]), TODAY) == 3

    def test_input_order_does_not_matter(self) -> None:
        days = days_ending_today([0, 2, 1, 4])
        shuffled = days[:]
        random.Random(7).shuffle(shuffled)
        assert calculate_streak(shuffled, TODAY) == 3
        assert calculate_streak(list(reversed(days)), TODAY) == 3

    def test_quiet_today_keeps_streak(self) -> None:
        assert calculate_streak(days_ending_today([1, 1, 1, 0]), TODAY) == 3

    def test_quiet_today_and_yesterday_breaks_streak(self) -> None:
        assert calculate_streak(days_ending_today([1, 1, 0, 0]), TODAY) == 0

    def test_gap_ends_streak(self) -> None:
        assert calculate_streak(days_ending_today([1, 1, 0, 1, 1, 1]), TODAY) == 3

    def test_missing_dates_count_as_quiet(self) -> None:
        days = [
            ContributionDay(date=TODAY, contribution_count=1),
            ContributionDay(date=TODAY - timedelta(days=2), contribution_count=1),
        ]
        assert calculate_streak(days, TODAY) == 1

    def test_empty_series(self) -> None:
        assert calculate_streak([], TODAY) == 0

    def test_all_zero_series(self) -> None:
        assert calculate_streak(days_ending_today([0] * 10), TODAY) == 0


class TestLongestStreak:
    """Tests for the longest run in a series."""

    def test_longest_run(self) -> None:
        days = days_ending_today([1, 1, 0, 1, 1, 1, 1, 0, 1])
        assert calculate_longest_streak(days) == 4

    def test_empty(self) -> None:
        assert calculate_longest_streak([]) == 0

    def test_last_contribution_date(self) -> None:
        assert last_contribution_date(days_ending_today([1, 2, 0])) == TODAY - timedelta(days=1)
        assert last_contribution_date(days_ending_today([0, 0])) is None
