import unittest
from datetime import date
from decimal import Decimal

from budget_backend.currency_conversion import CurrencyRateTable
from budget_backend.financial_report import build_financial_report, future_balance, runway
from budget_backend.transactions import Period, StandaloneTransaction, TemplateTransaction

TABLE = CurrencyRateTable(base_currency="USD", rates={"EUR": Decimal("2")})
NOW = date(2025, 6, 1)


class FinancialReportTests(unittest.TestCase):
    def test_normalizes_recurring_templates_to_monthly_amounts(self) -> None:
        transactions = [
            StandaloneTransaction(
                id="cash", amount=Decimal("1200"), type="income", date=date(2025, 1, 1)
            ),
            TemplateTransaction(
                id="salary",
                amount=Decimal("1000"),
                type="income",
                date=date(2025, 1, 1),
                period=Period.MONTHLY,
            ),
            TemplateTransaction(
                id="bonus",
                amount=Decimal("1200"),
                type="income",
                date=date(2025, 1, 1),
                period=Period.YEARLY,
            ),
            TemplateTransaction(
                id="coffee",
                amount=Decimal("-5"),
                type="expense",
                date=date(2025, 1, 1),
                period=Period.DAILY,
            ),
            TemplateTransaction(
                id="club",
                amount=Decimal("50"),
                type="expense",
                date=date(2025, 1, 1),
                period=Period.WEEKLY,
                currency="EUR",
            ),
        ]

        report = build_financial_report(transactions, TABLE, "USD", NOW)

        self.assertEqual(report.current_balance, Decimal("1200"))
        self.assertEqual(report.recurring_income, Decimal("1100"))
        self.assertEqual(report.recurring_expenses, Decimal("550"))
        self.assertEqual(report.monthly_net, Decimal("550"))
        self.assertEqual(report.monthly_burn, Decimal("550"))
        self.assertEqual(report.runway_months, 2)
        self.assertEqual(report.projections["three_months"], Decimal("2850"))
        self.assertEqual(report.projections["one_year"], Decimal("7800"))
        self.assertEqual(report.projections["three_years"], Decimal("21000"))

    def test_weighted_interest_rate(self) -> None:
        transactions = [
            StandaloneTransaction(
                id="a",
                amount=Decimal("100"),
                type="income",
                date=date(2025, 1, 1),
                interest_rate=Decimal("2"),
            ),
            StandaloneTransaction(
                id="b",
                amount=Decimal("300"),
                type="income",
                date=date(2025, 1, 1),
                interest_rate=Decimal("6"),
            ),
        ]

        report = build_financial_report(transactions, TABLE, "USD", NOW)

        self.assertEqual(report.avg_interest_rate, Decimal("5"))
        self.assertIsNone(report.runway_months)

    def test_empty_input_is_zeroed(self) -> None:
        report = build_financial_report([], TABLE, "USD", NOW)

        self.assertEqual(report.current_balance, Decimal("0"))
        self.assertEqual(report.monthly_net, Decimal("0"))
        self.assertIsNone(report.runway_months)
        self.assertEqual(set(report.projections.values()), {Decimal("0")})


class FutureBalanceTests(unittest.TestCase):
    def test_without_interest_is_linear(self) -> None:
        self.assertEqual(
            future_balance(Decimal("100"), Decimal("10"), 12), Decimal("220")
        )

    def test_compounds_monthly(self) -> None:
        result = future_balance(Decimal("1000"), Decimal("0"), 12, Decimal("12"))

        self.assertAlmostEqual(result, Decimal("1126.825030131969720661201"), places=8)

    def test_runway_floors_whole_months(self) -> None:
        self.assertEqual(runway(Decimal("1000"), Decimal("300")), 3)
        self.assertIsNone(runway(Decimal("1000"), Decimal("0")))


if __name__ == "__main__":
    unittest.main()
