from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_FLOOR, Decimal
from typing import Iterable

from budget_backend.aggregation import as_date, realized_balance
from budget_backend.currency_conversion import CurrencyRateTable, convert_amount
from budget_backend.transactions import (
    Period,
    StandaloneTransaction,
    TemplateTransaction,
    Transaction,
    TransactionType,
    resolve_currency,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = 12

REPORT_HORIZONS_MONTHS = {
    "three_months": 3,
    "one_year": 12,
    "three_years": 36,
}


@dataclass(frozen=True)
class FinancialReport:
    current_balance: Decimal
    recurring_income: Decimal
    recurring_expenses: Decimal
    monthly_net: Decimal
    monthly_burn: Decimal
    avg_interest_rate: Decimal
    runway_months: int | None
    projections: dict[str, Decimal]


def build_financial_report(
    transactions: Iterable[Transaction] | None,
    rate_table: CurrencyRateTable,
    display_currency: str,
    now: date | datetime,
) -> FinancialReport:
    items = list(transactions or ())
    current_balance = realized_balance(items, rate_table, display_currency, as_date(now))

    recurring_income = ZERO
    recurring_expenses = ZERO
    weighted_rate_sum = ZERO
    income_with_interest = ZERO
    for txn in items:
        converted = convert_amount(
            abs(txn.amount), resolve_currency(txn, display_currency), display_currency, rate_table
        )
        if isinstance(txn, TemplateTransaction):
            monthly = monthly_equivalent(converted, txn.period) if txn.is_recurring else ZERO
            if txn.type == TransactionType.INCOME:
                recurring_income += monthly
            else:
                recurring_expenses += monthly
        elif not isinstance(txn, StandaloneTransaction):
            raise TypeError(f"Unsupported transaction variant: {type(txn).__name__}")

        if txn.type == TransactionType.INCOME and txn.interest_rate:
            income_with_interest += converted
            weighted_rate_sum += converted * txn.interest_rate

    avg_interest_rate = ZERO
    if income_with_interest > ZERO:
        avg_interest_rate = weighted_rate_sum / income_with_interest

    monthly_net = recurring_income - recurring_expenses
    return FinancialReport(
        current_balance=current_balance,
        recurring_income=recurring_income,
        recurring_expenses=recurring_expenses,
        monthly_net=monthly_net,
        monthly_burn=recurring_expenses,
        avg_interest_rate=avg_interest_rate,
        runway_months=runway(current_balance, recurring_expenses),
        projections={
            label: future_balance(current_balance, monthly_net, months, avg_interest_rate)
            for label, months in REPORT_HORIZONS_MONTHS.items()
        },
    )


def monthly_equivalent(amount: Decimal, period: str) -> Decimal:
    if period == Period.DAILY:
        return amount * 30
    if period == Period.WEEKLY:
        return amount * 4
    if period == Period.MONTHLY:
        return amount
    if period == Period.YEARLY:
        return amount / MONTHS_PER_YEAR
    return ZERO


def future_value(present: Decimal, rate: Decimal, periods: int) -> Decimal:
    return present * (1 + rate) ** periods


def future_balance(
    current_balance: Decimal,
    monthly_net: Decimal,
    months: int,
    annual_interest_rate: Decimal = ZERO,
) -> Decimal:
    """Balance after ``months`` of ``monthly_net`` contributions.

    ``annual_interest_rate`` is a percentage compounded monthly on both the
    starting balance and every contribution.
    """
    monthly_rate = annual_interest_rate / HUNDRED / MONTHS_PER_YEAR
    if monthly_rate == ZERO:
        return current_balance + monthly_net * months
    compound_factor = (1 + monthly_rate) ** months
    contributions = monthly_net * ((compound_factor - 1) / monthly_rate)
    return future_value(current_balance, monthly_rate, months) + contributions


def runway(current_balance: Decimal, monthly_burn: Decimal) -> int | None:
    if monthly_burn == ZERO:
        return None
    months = (current_balance / monthly_burn).to_integral_value(rounding=ROUND_FLOOR)
    return int(months)
