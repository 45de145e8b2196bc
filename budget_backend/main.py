import logging
import os
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from budget_backend.aggregation import AnalyticsSnapshot, amounts_by_currency, analyze
from budget_backend.currency_conversion import (
    DEFAULT_RATES,
    CurrencyRateTable,
    convert_amount,
    normalize_currency,
)
from budget_backend.financial_report import build_financial_report
from budget_backend.store import (
    RecordNotFound,
    delete_record,
    get_record,
    init_store,
    list_records,
    load_rates,
    put_record,
    save_rates,
)
from budget_backend.transactions import (
    Period,
    Transaction,
    TransactionType,
    parse_transaction_record,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI()

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

database_url = os.getenv("DATABASE_URL", "sqlite:///./budget.db")
engine_options: dict[str, Any] = {}
if database_url.startswith("sqlite"):
    engine_options["connect_args"] = {"check_same_thread": False}
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        engine_options["poolclass"] = StaticPool

engine = create_engine(database_url, **engine_options)


def get_currency_setting(name: str, default: str) -> str:
    raw = os.getenv(name, default)
    try:
        return normalize_currency(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def get_flag_setting(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


SYSTEM_DEFAULT_CURRENCY = get_currency_setting("DEFAULT_CURRENCY", "USD")
BASE_CURRENCY = get_currency_setting("BASE_CURRENCY", "USD")
STRICT_CURRENCY_RATES = get_flag_setting("STRICT_CURRENCY_RATES")


@app.on_event("startup")
def init_db() -> None:
    init_store(engine)


class TransactionPayload(BaseModel):
    amount: Decimal
    type: str
    category: str | None = None
    currency: str | None = None
    date: date
    recurring: bool = False
    period: str = Period.ONE_TIME
    kind: str = "standalone"
    interest_rate: Decimal | None = None

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> "TransactionPayload":
        payload.type = TransactionType.validate(payload.type)
        payload.period = Period.normalize(payload.period)
        payload.kind = payload.kind.strip().lower()
        if payload.kind not in {"standalone", "template"}:
            raise ValueError("Kind must be 'standalone' or 'template'.")
        if payload.kind == "template" and payload.period == Period.ONE_TIME:
            raise ValueError("Templates require a recurring period.")
        payload.currency = normalize_currency(payload.currency) if payload.currency else None
        payload.category = payload.category.strip() if payload.category else None
        return payload


class TransactionResponse(BaseModel):
    id: str
    record: dict[str, Any]


class RatesPayload(BaseModel):
    rates: dict[str, Decimal]


class RatesResponse(BaseModel):
    base_currency: str
    strict: bool
    rates: dict[str, Decimal]


class ConvertPayload(BaseModel):
    amount: Decimal
    source_currency: str
    target_currency: str


class ConvertResponse(BaseModel):
    amount: Decimal
    source_currency: str
    target_currency: str
    converted_amount: Decimal
    base_currency: str


class ProjectedVolumeResponse(BaseModel):
    income: Decimal
    expense: Decimal
    window_start: date
    window_end: date


class CashFlowEntryResponse(BaseModel):
    month: int
    year: int
    income: Decimal
    expense: Decimal


class ProjectionPointResponse(BaseModel):
    period: str
    start: date
    end: date
    income: Decimal
    expense: Decimal
    balance: Decimal


class AnalyticsResponse(BaseModel):
    display_currency: str
    as_of: date
    horizon_years: int
    realized_balance: Decimal
    projected: ProjectedVolumeResponse
    category_totals: dict[str, Decimal]
    cash_flow: list[CashFlowEntryResponse]
    projection: list[ProjectionPointResponse]


class FinancialReportResponse(BaseModel):
    display_currency: str
    current_balance: Decimal
    recurring_income: Decimal
    recurring_expenses: Decimal
    monthly_net: Decimal
    monthly_burn: Decimal
    avg_interest_rate: Decimal
    runway_months: int | None = None
    projections: dict[str, Decimal]


class CurrencyBreakdownResponse(BaseModel):
    type: str
    amounts: dict[str, Decimal]


def resolve_display_currency(value: str | None) -> str:
    if not value:
        return SYSTEM_DEFAULT_CURRENCY
    try:
        return normalize_currency(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def build_rate_table() -> CurrencyRateTable:
    rates: dict[str, Any] = dict(DEFAULT_RATES) if BASE_CURRENCY == "USD" else {}
    rates.update(load_rates(engine))
    return CurrencyRateTable.from_mapping(BASE_CURRENCY, rates, strict=STRICT_CURRENCY_RATES)


def load_transactions(display_currency: str) -> list[Transaction]:
    parsed: list[Transaction] = []
    for record in list_records(engine):
        try:
            parsed.append(parse_transaction_record(record, display_currency))
        except ValueError as exc:
            logger.warning("Skipping transaction record %s: %s", record.get("id"), exc)
    return parsed


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/transactions", response_model=list[TransactionResponse])
def list_transactions() -> list[TransactionResponse]:
    return [
        TransactionResponse(id=str(record.get("id")), record=record)
        for record in list_records(engine)
    ]


@app.put("/transactions/{transaction_id}", response_model=TransactionResponse)
def upsert_transaction(transaction_id: str, payload: TransactionPayload) -> TransactionResponse:
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    record = payload.model_dump(mode="json", exclude_none=True)
    if payload.kind == "template":
        record["recurring"] = True
    stored = put_record(engine, transaction_id, record)
    return TransactionResponse(id=transaction_id, record=stored)


@app.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str) -> TransactionResponse:
    try:
        record = get_record(engine, transaction_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Transaction not found.") from exc
    return TransactionResponse(id=transaction_id, record=record)


@app.delete("/transactions/{transaction_id}")
def remove_transaction(transaction_id: str) -> dict:
    try:
        delete_record(engine, transaction_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Transaction not found.") from exc
    return {"status": "deleted"}


@app.get("/currency/rates", response_model=RatesResponse)
def get_rates() -> RatesResponse:
    table = build_rate_table()
    return RatesResponse(
        base_currency=table.base_currency,
        strict=table.strict,
        rates=dict(table.rates),
    )


@app.put("/currency/rates", response_model=RatesResponse)
def update_rates(payload: RatesPayload) -> RatesResponse:
    rates: dict[str, Decimal] = {}
    for code, rate in payload.rates.items():
        try:
            normalized = normalize_currency(code)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if rate <= 0:
            raise HTTPException(status_code=400, detail="Rates must be greater than zero.")
        rates[normalized] = rate
    save_rates(engine, rates)
    return get_rates()


@app.post("/currency/convert", response_model=ConvertResponse)
def convert_currency(payload: ConvertPayload) -> ConvertResponse:
    try:
        source = normalize_currency(payload.source_currency)
        target = normalize_currency(payload.target_currency)
        table = build_rate_table()
        converted = convert_amount(payload.amount, source, target, table)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ConvertResponse(
        amount=payload.amount,
        source_currency=source,
        target_currency=target,
        converted_amount=converted,
        base_currency=table.base_currency,
    )


@app.get("/analytics", response_model=AnalyticsResponse)
def budget_analytics(
    as_of: date | None = Query(None),
    horizon_years: int = Query(1, ge=0, le=100),
    display_currency: str | None = Query(None),
) -> AnalyticsResponse:
    currency = resolve_display_currency(display_currency)
    snapshot = AnalyticsSnapshot(
        transactions=load_transactions(currency),
        rate_table=build_rate_table(),
        display_currency=currency,
        now=as_of or date.today(),
        horizon_years=horizon_years,
    )
    try:
        result = analyze(snapshot)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return AnalyticsResponse(
        display_currency=result.display_currency,
        as_of=result.as_of,
        horizon_years=result.horizon_years,
        realized_balance=result.realized_balance,
        projected=ProjectedVolumeResponse(
            income=result.projected.income,
            expense=result.projected.expense,
            window_start=result.projected.window_start,
            window_end=result.projected.window_end,
        ),
        category_totals=result.category_totals,
        cash_flow=[
            CashFlowEntryResponse(
                month=entry.month,
                year=entry.year,
                income=entry.income,
                expense=entry.expense,
            )
            for entry in result.cash_flow
        ],
        projection=[
            ProjectionPointResponse(
                period=point.period,
                start=point.start,
                end=point.end,
                income=point.income,
                expense=point.expense,
                balance=point.balance,
            )
            for point in result.projection
        ],
    )


@app.get("/analytics/report", response_model=FinancialReportResponse)
def financial_report(
    as_of: date | None = Query(None),
    display_currency: str | None = Query(None),
) -> FinancialReportResponse:
    currency = resolve_display_currency(display_currency)
    try:
        report = build_financial_report(
            load_transactions(currency),
            build_rate_table(),
            currency,
            as_of or date.today(),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return FinancialReportResponse(
        display_currency=currency,
        current_balance=report.current_balance,
        recurring_income=report.recurring_income,
        recurring_expenses=report.recurring_expenses,
        monthly_net=report.monthly_net,
        monthly_burn=report.monthly_burn,
        avg_interest_rate=report.avg_interest_rate,
        runway_months=report.runway_months,
        projections=report.projections,
    )


@app.get("/analytics/currency-breakdown", response_model=CurrencyBreakdownResponse)
def currency_breakdown(
    txn_type: str = Query("expense", alias="type"),
    display_currency: str | None = Query(None),
) -> CurrencyBreakdownResponse:
    currency = resolve_display_currency(display_currency)
    try:
        normalized_type = TransactionType.validate(txn_type)
        amounts = amounts_by_currency(load_transactions(currency), normalized_type, currency)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CurrencyBreakdownResponse(type=normalized_type, amounts=amounts)
