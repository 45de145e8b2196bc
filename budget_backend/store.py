from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

transaction_records = Table(
    "transaction_records",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("payload", Text, nullable=False),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)

currency_rates = Table(
    "currency_rates",
    metadata,
    Column("code", String(3), primary_key=True),
    Column("rate", Numeric(20, 10), nullable=False),
)


class RecordNotFound(LookupError):
    """Raised when a transaction record id is not in the store."""


def init_store(engine: Engine) -> None:
    metadata.create_all(engine)


def put_record(engine: Engine, record_id: str, record: Mapping[str, Any]) -> dict[str, Any]:
    stored = dict(record)
    stored["id"] = record_id
    payload = json.dumps(stored, default=str, sort_keys=True)
    with engine.begin() as conn:
        exists = conn.execute(
            select(transaction_records.c.id).where(transaction_records.c.id == record_id)
        ).first()
        if exists:
            conn.execute(
                update(transaction_records)
                .where(transaction_records.c.id == record_id)
                .values(payload=payload, updated_at=func.now())
            )
        else:
            conn.execute(insert(transaction_records).values(id=record_id, payload=payload))
    return stored


def get_record(engine: Engine, record_id: str) -> dict[str, Any]:
    with engine.begin() as conn:
        row = conn.execute(
            select(transaction_records.c.payload).where(transaction_records.c.id == record_id)
        ).first()
    if not row:
        raise RecordNotFound(record_id)
    return json.loads(row[0])


def list_records(engine: Engine) -> list[dict[str, Any]]:
    with engine.begin() as conn:
        rows = conn.execute(
            select(transaction_records.c.payload).order_by(transaction_records.c.id)
        ).all()
    return [json.loads(row[0]) for row in rows]


def delete_record(engine: Engine, record_id: str) -> None:
    with engine.begin() as conn:
        result = conn.execute(
            delete(transaction_records).where(transaction_records.c.id == record_id)
        )
    if result.rowcount == 0:
        raise RecordNotFound(record_id)


def clear_records(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(delete(transaction_records))


def load_rates(engine: Engine) -> dict[str, Decimal]:
    with engine.begin() as conn:
        rows = conn.execute(select(currency_rates.c.code, currency_rates.c.rate)).mappings().all()
    return {
        row["code"]: row["rate"] if isinstance(row["rate"], Decimal) else Decimal(str(row["rate"]))
        for row in rows
    }


def save_rates(engine: Engine, rates: Mapping[str, Decimal]) -> None:
    with engine.begin() as conn:
        conn.execute(delete(currency_rates))
        if rates:
            conn.execute(
                insert(currency_rates),
                [{"code": code, "rate": rate} for code, rate in rates.items()],
            )
