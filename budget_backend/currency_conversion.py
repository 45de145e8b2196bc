from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Mapping

logger = logging.getLogger(__name__)

ONE = Decimal("1")
ZERO = Decimal("0")

# Units of USD per one unit of each currency.
DEFAULT_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("1.087"),
    "GBP": Decimal("1.266"),
    "JPY": Decimal("0.00678"),
    "CAD": Decimal("0.746"),
    "AUD": Decimal("0.658"),
    "NZD": Decimal("0.610"),
    "CHF": Decimal("1.136"),
    "SEK": Decimal("0.0957"),
    "HUF": Decimal("0.00303"),
}


class UnknownCurrencyError(ValueError):
    """Raised by strict rate tables for a currency without a rate."""


def _clean_code(value: str) -> str:
    return (value or "").strip().upper()


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


@dataclass(frozen=True)
class CurrencyRateTable:
    """Immutable snapshot of conversion rates routed through one base currency.

    ``rates`` maps a currency code to the number of base units one unit of
    that currency is worth. The base currency always has rate 1. Unknown
    codes fall back to rate 1 unless ``strict`` is set.
    """

    base_currency: str = "USD"
    rates: Mapping[str, Decimal] = field(default_factory=dict)
    strict: bool = False

    def __post_init__(self) -> None:
        base = _clean_code(self.base_currency)
        rates = {_clean_code(code): rate for code, rate in dict(self.rates or {}).items()}
        rates[base] = ONE
        object.__setattr__(self, "base_currency", base)
        object.__setattr__(self, "rates", MappingProxyType(rates))

    @classmethod
    def from_mapping(
        cls,
        base_currency: str,
        rates: Mapping[str, Any],
        strict: bool = False,
    ) -> "CurrencyRateTable":
        parsed: dict[str, Decimal] = {}
        for code, value in rates.items():
            try:
                rate = value if isinstance(value, Decimal) else Decimal(str(value))
            except (InvalidOperation, ValueError):
                logger.warning("Ignoring unparseable rate %r for %s", value, code)
                continue
            if not rate.is_finite() or rate <= ZERO:
                logger.warning("Ignoring non-positive rate %s for %s", rate, code)
                continue
            parsed[code] = rate
        return cls(base_currency=base_currency, rates=parsed, strict=strict)

    def get_rate(self, currency: str) -> Decimal:
        normalized = _clean_code(currency)
        if normalized == self.base_currency:
            return ONE
        try:
            return self.rates[normalized]
        except KeyError as exc:
            if self.strict:
                raise UnknownCurrencyError(f"Unsupported currency: {normalized}") from exc
            logger.debug("No rate for %s, treating it as %s", normalized, self.base_currency)
            return ONE

    def has_rate(self, currency: str) -> bool:
        return _clean_code(currency) in self.rates


DEFAULT_RATE_TABLE = CurrencyRateTable(base_currency="USD", rates=DEFAULT_RATES)


def convert_amount(
    amount: Decimal | int | float | str,
    source_currency: str,
    target_currency: str,
    rate_table: CurrencyRateTable | None = None,
) -> Decimal:
    """Convert a monetary amount for display through the table's base currency."""
    coerced_amount = _coerce_amount(amount)
    normalized_source = _clean_code(source_currency)
    normalized_target = _clean_code(target_currency)

    if normalized_source == normalized_target:
        return coerced_amount
    if coerced_amount == ZERO:
        return ZERO

    table = rate_table or DEFAULT_RATE_TABLE
    if normalized_source == table.base_currency:
        amount_in_base = coerced_amount
    else:
        amount_in_base = coerced_amount * table.get_rate(normalized_source)

    if normalized_target == table.base_currency:
        return amount_in_base
    return amount_in_base / table.get_rate(normalized_target)


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized
