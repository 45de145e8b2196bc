from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date, timedelta
from typing import Iterator

from budget_backend.transactions import Period, StandaloneTransaction, TemplateTransaction, Transaction

logger = logging.getLogger(__name__)

DAILY_DAYS = 1
WEEKLY_DAYS = 7
MAX_CALENDAR_STEPS = 1200

LINEAR_PERIOD_DAYS = {
    Period.DAILY: DAILY_DAYS,
    Period.WEEKLY: WEEKLY_DAYS,
}
CALENDAR_PERIOD_MONTHS = {
    Period.MONTHLY: 1,
    Period.YEARLY: 12,
}


def count_occurrences(txn: Transaction, window_start: date, window_end: date) -> int:
    anchor = txn.date
    if anchor is None or window_start > window_end:
        return 0
    if not _is_recurring(txn):
        return 1 if window_start <= anchor <= window_end else 0
    if anchor > window_end:
        return 0

    effective_start = max(anchor, window_start)
    if txn.period in LINEAR_PERIOD_DAYS:
        interval = LINEAR_PERIOD_DAYS[txn.period]
        first_date = _first_occurrence_on_or_after(anchor, effective_start, interval)
        if first_date > window_end:
            return 0
        return (window_end - first_date).days // interval + 1

    month_increment = CALENDAR_PERIOD_MONTHS.get(txn.period)
    if month_increment is None:
        logger.debug("Transaction %s has an unsupported period %r", txn.id, txn.period)
        return 0
    return sum(
        1
        for _ in _iter_calendar_occurrences(
            anchor, month_increment, effective_start, window_end
        )
    )


def iter_occurrences(txn: Transaction, window_start: date, window_end: date) -> Iterator[date]:
    anchor = txn.date
    if anchor is None or window_start > window_end:
        return
    if not _is_recurring(txn):
        if window_start <= anchor <= window_end:
            yield anchor
        return
    if anchor > window_end:
        return

    effective_start = max(anchor, window_start)
    if txn.period in LINEAR_PERIOD_DAYS:
        interval = LINEAR_PERIOD_DAYS[txn.period]
        current_date = _first_occurrence_on_or_after(anchor, effective_start, interval)
        while current_date <= window_end:
            yield current_date
            current_date += timedelta(days=interval)
        return

    month_increment = CALENDAR_PERIOD_MONTHS.get(txn.period)
    if month_increment is None:
        return
    yield from _iter_calendar_occurrences(anchor, month_increment, effective_start, window_end)


def add_months(anchor: date, months: int) -> date:
    total_month = anchor.month - 1 + months
    year = anchor.year + total_month // 12
    month = total_month % 12 + 1
    last_day = monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


def _is_recurring(txn: Transaction) -> bool:
    if isinstance(txn, TemplateTransaction):
        return txn.is_recurring
    if isinstance(txn, StandaloneTransaction):
        return False
    raise TypeError(f"Unsupported transaction variant: {type(txn).__name__}")


def _first_occurrence_on_or_after(anchor: date, minimum_date: date, interval_days: int) -> date:
    if anchor >= minimum_date:
        return anchor
    days_between = (minimum_date - anchor).days
    intervals = (days_between + interval_days - 1) // interval_days
    return anchor + timedelta(days=interval_days * intervals)


def _iter_calendar_occurrences(
    anchor: date, month_increment: int, minimum_date: date, window_end: date
) -> Iterator[date]:
    months_between = (minimum_date.year - anchor.year) * 12 + (minimum_date.month - anchor.month)
    # Whole periods already behind the window, less one to absorb day clamping.
    skipped = max(months_between // month_increment - 1, 0)
    month_offset = skipped * month_increment

    for _ in range(MAX_CALENDAR_STEPS):
        current_date = add_months(anchor, month_offset)
        if current_date > window_end:
            return
        if current_date >= minimum_date:
            yield current_date
        month_offset += month_increment
    logger.warning(
        "Stopped stepping series anchored %s after %d periods", anchor, MAX_CALENDAR_STEPS
    )
