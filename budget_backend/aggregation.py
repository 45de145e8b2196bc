from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, NoReturn, Sequence

from budget_backend.currency_conversion import CurrencyRateTable, convert_amount
from budget_backend.occurrences import add_months, count_occurrences
from budget_backend.transactions import (
    StandaloneTransaction,
    TemplateTransaction,
    Transaction,
    TransactionType,
    resolve_currency,
    signed_amount,
)

ZERO = Decimal("0")
TRAILING_MONTHS = 6
MONTHLY_PROJECTION_MAX_YEARS = 3


@dataclass(frozen=True)
class AggregationWindow:
    start: date
    end: date

    def contains(self, value: date | None) -> bool:
        return value is not None and self.start <= value <= self.end


@dataclass(frozen=True)
class ProjectedVolume:
    income: Decimal
    expense: Decimal
    window_start: date
    window_end: date


@dataclass(frozen=True)
class CashFlowEntry:
    month: int
    year: int
    income: Decimal
    expense: Decimal


@dataclass(frozen=True)
class ProjectionPoint:
    period: str
    start: date
    end: date
    income: Decimal
    expense: Decimal
    balance: Decimal


@dataclass(frozen=True)
class AnalyticsSnapshot:
    transactions: Sequence[Transaction]
    rate_table: CurrencyRateTable
    display_currency: str
    now: date
    horizon_years: int = 1


@dataclass(frozen=True)
class BudgetAnalytics:
    display_currency: str
    as_of: date
    horizon_years: int
    realized_balance: Decimal
    projected: ProjectedVolume
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    cash_flow: list[CashFlowEntry] = field(default_factory=list)
    projection: list[ProjectionPoint] = field(default_factory=list)


def realized_balance(
    transactions: Iterable[Transaction] | None,
    rate_table: CurrencyRateTable,
    display_currency: str,
    now: date | datetime,
) -> Decimal:
    today = as_date(now)
    total = ZERO
    for txn in transactions or ():
        if isinstance(txn, TemplateTransaction):
            continue
        if isinstance(txn, StandaloneTransaction):
            if txn.date is not None and txn.date <= today:
                total += _to_display(signed_amount(txn), txn, rate_table, display_currency)
            continue
        _unsupported(txn)
    return total


def projected_volume(
    transactions: Iterable[Transaction] | None,
    rate_table: CurrencyRateTable,
    display_currency: str,
    now: date | datetime,
    horizon_years: int,
) -> ProjectedVolume:
    today = as_date(now)
    window = AggregationWindow(today, add_months(today, max(horizon_years, 0) * 12))
    income, expense = _window_totals(transactions, rate_table, display_currency, window)
    return ProjectedVolume(
        income=income,
        expense=expense,
        window_start=window.start,
        window_end=window.end,
    )


def category_totals(
    transactions: Iterable[Transaction] | None,
    rate_table: CurrencyRateTable,
    display_currency: str,
) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for txn in transactions or ():
        if isinstance(txn, TemplateTransaction):
            continue
        if not isinstance(txn, StandaloneTransaction):
            _unsupported(txn)
        if txn.type != TransactionType.EXPENSE:
            continue
        converted = _to_display(abs(txn.amount), txn, rate_table, display_currency)
        totals[txn.category] = totals.get(txn.category, ZERO) + converted
    return totals


def trailing_cash_flow(
    transactions: Iterable[Transaction] | None,
    rate_table: CurrencyRateTable,
    display_currency: str,
    now: date | datetime,
    months: int = TRAILING_MONTHS,
) -> list[CashFlowEntry]:
    today = as_date(now)
    # Templates still count through the end of each month.
    items = [txn for txn in transactions or () if not _is_scheduled(txn, today)]
    current_month = today.replace(day=1)
    entries: list[CashFlowEntry] = []
    for offset in range(months - 1, -1, -1):
        start = add_months(current_month, -offset)
        window = AggregationWindow(start, month_end(start))
        income, expense = _window_totals(items, rate_table, display_currency, window)
        entries.append(
            CashFlowEntry(month=start.month, year=start.year, income=income, expense=expense)
        )
    return entries


def projection_series(
    transactions: Iterable[Transaction] | None,
    rate_table: CurrencyRateTable,
    display_currency: str,
    now: date | datetime,
    horizon_years: int,
    starting_balance: Decimal | None = None,
) -> list[ProjectionPoint]:
    items = list(transactions or ())
    today = as_date(now)
    if horizon_years <= 0:
        return []
    if horizon_years <= MONTHLY_PROJECTION_MAX_YEARS:
        step_months, periods = 1, horizon_years * 12
    else:
        step_months, periods = 12, horizon_years

    balance = starting_balance
    if balance is None:
        balance = realized_balance(items, rate_table, display_currency, today)
    # Standalone records up to today are already part of the opening balance.
    pending = [txn for txn in items if not _is_realized(txn, today)]

    points: list[ProjectionPoint] = []
    for index in range(periods):
        # Each boundary is measured from today so clamped days do not accumulate.
        if index == 0:
            start = today
        else:
            start = add_months(today, index * step_months) + timedelta(days=1)
        window = AggregationWindow(start, add_months(today, (index + 1) * step_months))
        income, expense = _window_totals(pending, rate_table, display_currency, window)
        balance = balance + income - expense
        points.append(
            ProjectionPoint(
                period=_period_label(window.end, step_months),
                start=window.start,
                end=window.end,
                income=income,
                expense=expense,
                balance=balance,
            )
        )
    return points


def amounts_by_currency(
    transactions: Iterable[Transaction] | None,
    txn_type: str,
    display_currency: str,
) -> dict[str, Decimal]:
    normalized_type = TransactionType.validate(txn_type)
    result: dict[str, Decimal] = {}
    for txn in transactions or ():
        if isinstance(txn, TemplateTransaction):
            continue
        if not isinstance(txn, StandaloneTransaction):
            _unsupported(txn)
        if txn.type != normalized_type:
            continue
        currency = resolve_currency(txn, display_currency)
        result[currency] = result.get(currency, ZERO) + abs(txn.amount)
    return result


def analyze(snapshot: AnalyticsSnapshot) -> BudgetAnalytics:
    items = list(snapshot.transactions or ())
    today = as_date(snapshot.now)
    args = (items, snapshot.rate_table, snapshot.display_currency)
    balance = realized_balance(*args, today)
    return BudgetAnalytics(
        display_currency=snapshot.display_currency,
        as_of=today,
        horizon_years=snapshot.horizon_years,
        realized_balance=balance,
        projected=projected_volume(*args, today, snapshot.horizon_years),
        category_totals=category_totals(*args),
        cash_flow=trailing_cash_flow(*args, today),
        projection=projection_series(
            *args, today, snapshot.horizon_years, starting_balance=balance
        ),
    )


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def month_end(value: date) -> date:
    return add_months(value.replace(day=1), 1) - timedelta(days=1)


def _window_totals(
    transactions: Iterable[Transaction] | None,
    rate_table: CurrencyRateTable,
    display_currency: str,
    window: AggregationWindow,
) -> tuple[Decimal, Decimal]:
    income = ZERO
    expense = ZERO
    for txn in transactions or ():
        if isinstance(txn, TemplateTransaction):
            occurrences = count_occurrences(txn, window.start, window.end)
        elif isinstance(txn, StandaloneTransaction):
            occurrences = 1 if window.contains(txn.date) else 0
        else:
            _unsupported(txn)
        if occurrences == 0:
            continue
        amount = _to_display(abs(txn.amount), txn, rate_table, display_currency) * occurrences
        if txn.type == TransactionType.INCOME:
            income += amount
        else:
            expense += amount
    return income, expense


def _is_realized(txn: Transaction, today: date) -> bool:
    return isinstance(txn, StandaloneTransaction) and txn.date is not None and txn.date <= today


def _is_scheduled(txn: Transaction, today: date) -> bool:
    return isinstance(txn, StandaloneTransaction) and txn.date is not None and txn.date > today


def _to_display(
    amount: Decimal,
    txn: Transaction,
    rate_table: CurrencyRateTable,
    display_currency: str,
) -> Decimal:
    source = resolve_currency(txn, display_currency)
    return convert_amount(amount, source, display_currency, rate_table)


def _period_label(end: date, step_months: int) -> str:
    if step_months == 12:
        return f"{end.year}"
    return f"{end.year}-{end.month:02d}"


def _unsupported(txn: object) -> NoReturn:
    raise TypeError(f"Unsupported transaction variant: {type(txn).__name__}")
