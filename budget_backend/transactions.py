from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Union

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DEFAULT_CATEGORY = "other"


class TransactionType:
    INCOME = "income"
    EXPENSE = "expense"
    values = {INCOME, EXPENSE}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in cls.values:
            raise ValueError("Invalid transaction type.")
        return normalized


class Period:
    ONE_TIME = "oneTime"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    values = {ONE_TIME, DAILY, WEEKLY, MONTHLY, YEARLY}

    @classmethod
    def normalize(cls, value: str | None) -> str:
        if not value:
            return cls.ONE_TIME
        compact = "".join(ch for ch in value.strip().lower() if ch.isalnum())
        for candidate in cls.values:
            if candidate.lower() == compact:
                return candidate
        raise ValueError(f"Unsupported period: {value}")


@dataclass(frozen=True)
class StandaloneTransaction:
    id: str
    amount: Decimal
    type: str
    date: date | None
    category: str = DEFAULT_CATEGORY
    currency: str | None = None
    recurring: bool = False
    period: str = Period.ONE_TIME
    interest_rate: Decimal | None = None

    @property
    def kind(self) -> str:
        return "standalone"


@dataclass(frozen=True)
class TemplateTransaction:
    id: str
    amount: Decimal
    type: str
    date: date | None
    category: str = DEFAULT_CATEGORY
    currency: str | None = None
    recurring: bool = True
    period: str = Period.MONTHLY
    interest_rate: Decimal | None = None

    @property
    def kind(self) -> str:
        return "template"

    @property
    def is_recurring(self) -> bool:
        return self.recurring and self.period != Period.ONE_TIME


Transaction = Union[StandaloneTransaction, TemplateTransaction]


def signed_amount(txn: Transaction) -> Decimal:
    magnitude = abs(txn.amount)
    if txn.type == TransactionType.EXPENSE:
        return -magnitude
    return magnitude


def resolve_currency(txn: Transaction, default_currency: str) -> str:
    if txn.currency and txn.currency.strip():
        return txn.currency.strip().upper()
    return default_currency


def parse_transaction_record(
    record: Mapping[str, Any], default_currency: str | None = None
) -> Transaction:
    """Build a typed transaction from a serialized record.

    Records are the loosely-typed mappings kept by the record store. The legacy
    ``kind == "master"`` tag is accepted as a template. Bad dates and amounts
    degrade to ``None`` and zero instead of raising; a bad ``type`` or
    ``period`` still raises ``ValueError`` because the record cannot be
    classified at all.
    """
    record_id = str(record.get("id", ""))
    txn_type = TransactionType.validate(str(record.get("type", "")))
    period = Period.normalize(record.get("period"))
    recurring = bool(record.get("recurring", period != Period.ONE_TIME))
    kind = str(record.get("kind") or "standalone").strip().lower()

    currency = record.get("currency")
    if not currency or not str(currency).strip():
        currency = default_currency
    category = str(record.get("category") or "").strip() or DEFAULT_CATEGORY
    interest_rate = record.get("interest_rate", record.get("interestRate"))

    fields = dict(
        id=record_id,
        amount=_parse_amount(record.get("amount"), record_id),
        type=txn_type,
        date=parse_date(record.get("date")),
        category=category,
        currency=str(currency).strip().upper() if currency else None,
        recurring=recurring,
        period=period,
        interest_rate=(
            _parse_amount(interest_rate, record_id) if interest_rate not in (None, "") else None
        ),
    )
    if fields["date"] is None:
        logger.debug("Transaction %s has an unparseable date %r", record_id, record.get("date"))

    if kind in {"template", "master"}:
        return TemplateTransaction(**fields)
    if kind == "standalone":
        return StandaloneTransaction(**fields)
    raise ValueError(f"Unsupported transaction kind: {kind}")


def parse_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for candidate in (text[:10], text):
        try:
            return datetime.strptime(candidate, "%Y-%m-%d").date()
        except ValueError:
            continue
    return None


def _parse_amount(value: Any, record_id: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        parsed = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        logger.warning("Transaction %s has an unparseable amount %r", record_id, value)
        return ZERO
    if not parsed.is_finite():
        logger.warning("Transaction %s has a non-finite amount %r", record_id, value)
        return ZERO
    return parsed
