import unittest
from datetime import date, timedelta
from decimal import Decimal

from budget_backend.occurrences import (
    MAX_CALENDAR_STEPS,
    add_months,
    count_occurrences,
    iter_occurrences,
)
from budget_backend.transactions import Period, StandaloneTransaction, TemplateTransaction


def make_template(anchor: date | None, period: str, recurring: bool = True) -> TemplateTransaction:
    return TemplateTransaction(
        id="t1",
        amount=Decimal("10"),
        type="expense",
        date=anchor,
        period=period,
        recurring=recurring,
    )


class OccurrenceCountTests(unittest.TestCase):
    def test_daily_counts_inclusive_window(self) -> None:
        template = make_template(date(2025, 1, 1), Period.DAILY)

        count = count_occurrences(template, date(2025, 1, 1), date(2025, 1, 10))

        self.assertEqual(count, 10)

    def test_daily_series_over_decades_is_constant_time(self) -> None:
        template = make_template(date(1990, 1, 1), Period.DAILY)

        count = count_occurrences(template, date(1990, 1, 1), date(2089, 12, 31))

        self.assertEqual(count, (date(2089, 12, 31) - date(1990, 1, 1)).days + 1)

    def test_weekly_aligns_to_anchor_phase(self) -> None:
        template = make_template(date(2024, 1, 3), Period.WEEKLY)

        count = count_occurrences(template, date(2024, 1, 4), date(2024, 1, 31))

        # 10th, 17th, 24th, 31st
        self.assertEqual(count, 4)

    def test_weekly_window_between_occurrences_is_zero(self) -> None:
        template = make_template(date(2024, 1, 3), Period.WEEKLY)

        count = count_occurrences(template, date(2024, 1, 4), date(2024, 1, 9))

        self.assertEqual(count, 0)

    def test_monthly_counts_within_window(self) -> None:
        template = make_template(date(2024, 1, 15), Period.MONTHLY)

        count = count_occurrences(template, date(2024, 3, 1), date(2024, 6, 30))

        self.assertEqual(count, 4)

    def test_monthly_fast_forward_includes_boundary_occurrence(self) -> None:
        template = make_template(date(2000, 1, 31), Period.MONTHLY)

        count = count_occurrences(template, date(2024, 2, 29), date(2024, 2, 29))

        self.assertEqual(count, 1)

    def test_monthly_series_across_decades(self) -> None:
        template = make_template(date(1950, 6, 10), Period.MONTHLY)

        count = count_occurrences(template, date(2040, 1, 1), date(2040, 12, 31))

        self.assertEqual(count, 12)

    def test_yearly_scenario_counts_two_occurrences(self) -> None:
        template = make_template(date(2024, 1, 15), Period.YEARLY)

        count = count_occurrences(template, date(2025, 6, 1), date(2027, 6, 1))

        self.assertEqual(count, 2)

    def test_yearly_leap_day_clamps_each_year(self) -> None:
        template = make_template(date(2024, 2, 29), Period.YEARLY)

        dates = list(iter_occurrences(template, date(2024, 1, 1), date(2028, 12, 31)))

        self.assertEqual(
            dates,
            [
                date(2024, 2, 29),
                date(2025, 2, 28),
                date(2026, 2, 28),
                date(2027, 2, 28),
                date(2028, 2, 29),
            ],
        )

    def test_window_before_anchor_is_zero(self) -> None:
        for period in (Period.DAILY, Period.WEEKLY, Period.MONTHLY, Period.YEARLY):
            template = make_template(date(2025, 5, 1), period)
            with self.subTest(period=period):
                self.assertEqual(
                    count_occurrences(template, date(2025, 1, 1), date(2025, 4, 30)), 0
                )

    def test_reversed_window_is_zero(self) -> None:
        template = make_template(date(2025, 1, 1), Period.DAILY)

        self.assertEqual(count_occurrences(template, date(2025, 2, 1), date(2025, 1, 1)), 0)

    def test_missing_anchor_is_zero(self) -> None:
        template = make_template(None, Period.MONTHLY)

        self.assertEqual(count_occurrences(template, date(2025, 1, 1), date(2025, 12, 31)), 0)

    def test_unsupported_period_is_zero(self) -> None:
        template = make_template(date(2025, 1, 1), "quarterly")

        self.assertEqual(count_occurrences(template, date(2025, 1, 1), date(2025, 12, 31)), 0)

    def test_non_recurring_counts_own_date_only(self) -> None:
        template = make_template(date(2025, 3, 5), Period.ONE_TIME, recurring=False)

        self.assertEqual(count_occurrences(template, date(2025, 3, 1), date(2025, 3, 31)), 1)
        self.assertEqual(count_occurrences(template, date(2025, 4, 1), date(2025, 4, 30)), 0)

    def test_standalone_counts_own_date_only(self) -> None:
        txn = StandaloneTransaction(
            id="s1",
            amount=Decimal("5"),
            type="income",
            date=date(2025, 3, 5),
            recurring=True,
            period=Period.MONTHLY,
        )

        self.assertEqual(count_occurrences(txn, date(2025, 1, 1), date(2025, 12, 31)), 1)

    def test_calendar_stepping_is_capped(self) -> None:
        template = make_template(date(1900, 1, 1), Period.MONTHLY)

        count = count_occurrences(template, date(1900, 1, 1), date(2200, 1, 1))

        self.assertEqual(count, MAX_CALENDAR_STEPS)

    def test_counts_are_monotonic_as_window_grows(self) -> None:
        start = date(2024, 1, 1)
        for period in (Period.DAILY, Period.WEEKLY, Period.MONTHLY, Period.YEARLY):
            template = make_template(date(2023, 8, 31), period)
            previous = 0
            for days in range(0, 800, 13):
                end = start + timedelta(days=days)
                current = count_occurrences(template, start, end)
                with self.subTest(period=period, end=end):
                    self.assertGreaterEqual(current, previous)
                previous = current

    def test_count_matches_iterated_dates(self) -> None:
        start, end = date(2024, 2, 10), date(2026, 7, 3)
        for period in (Period.DAILY, Period.WEEKLY, Period.MONTHLY, Period.YEARLY):
            template = make_template(date(2022, 5, 31), period)
            with self.subTest(period=period):
                self.assertEqual(
                    count_occurrences(template, start, end),
                    len(list(iter_occurrences(template, start, end))),
                )


class AddMonthsTests(unittest.TestCase):
    def test_anchor_on_31st_lands_on_last_day_each_step(self) -> None:
        anchor = date(2025, 1, 31)

        steps = [add_months(anchor, offset) for offset in range(0, 5)]

        self.assertEqual(
            steps,
            [
                date(2025, 1, 31),
                date(2025, 2, 28),
                date(2025, 3, 31),
                date(2025, 4, 30),
                date(2025, 5, 31),
            ],
        )

    def test_monthly_series_recovers_after_short_month(self) -> None:
        template = make_template(date(2024, 1, 31), Period.MONTHLY)

        dates = list(iter_occurrences(template, date(2024, 2, 1), date(2024, 4, 30)))

        self.assertEqual(dates, [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)])

    def test_negative_offsets_cross_year_boundary(self) -> None:
        self.assertEqual(add_months(date(2025, 2, 15), -3), date(2024, 11, 15))


if __name__ == "__main__":
    unittest.main()
