from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import time
from typing import Callable, Sequence

from sqlalchemy import text
from sqlalchemy.orm import Session

from db.quoting import quote_ident

from .trigger import NEEDS_BACKFILL_COLUMN

logger = logging.getLogger(__name__)


def _batch_size() -> int:
    return int(os.getenv("PGROLL_BACKFILL_BATCH_SIZE", "1000"))


def _batch_delay_s() -> float:
    return float(os.getenv("PGROLL_BACKFILL_DELAY_S", "0"))


def add_needs_backfill_column_sql(schema: str, table: str, column: str = NEEDS_BACKFILL_COLUMN) -> str:
    return (
        f"ALTER TABLE {quote_ident(schema)}.{quote_ident(table)} "
        f"ADD COLUMN IF NOT EXISTS {quote_ident(column)} boolean DEFAULT true"
    )


def drop_needs_backfill_column_sql(schema: str, table: str, column: str = NEEDS_BACKFILL_COLUMN) -> str:
    return (
        f"ALTER TABLE {quote_ident(schema)}.{quote_ident(table)} "
        f"DROP COLUMN IF EXISTS {quote_ident(column)}"
    )


def build_batch_sql(
    schema: str,
    table: str,
    primary_key: Sequence[str],
    *,
    first_batch: bool,
    column: str = NEEDS_BACKFILL_COLUMN,
) -> str:
    """Touch the next batch of flagged rows so their sync triggers fire.

    Rows are walked in primary-key order starting after ``:pk_<n>`` (keyset
    pagination), which keeps the sweep finite even when no trigger clears the
    flag.
    """
    if not primary_key:
        raise ValueError(f"table {schema}.{table} has no primary key")
    target = f"{quote_ident(schema)}.{quote_ident(table)}"
    flag = quote_ident(column)
    keys = ", ".join(quote_ident(col) for col in primary_key)
    where = flag
    if not first_batch:
        params = ", ".join(f":pk_{i}" for i in range(len(primary_key)))
        where += f" AND ({keys}) > ({params})"
    joins = " AND ".join(f"t.{quote_ident(col)} = batch.{quote_ident(col)}" for col in primary_key)
    returning = ", ".join(f"t.{quote_ident(col)}" for col in primary_key)
    return (
        f"WITH batch AS (SELECT {keys} FROM {target} WHERE {where} "
        f"ORDER BY {keys} LIMIT :batch_size FOR NO KEY UPDATE), "
        f"updated AS (UPDATE {target} AS t SET {flag} = true FROM batch WHERE {joins} "
        f"RETURNING {returning}) "
        f"SELECT {keys} FROM updated ORDER BY {keys}"
    )


@dataclass(frozen=True)
class BackfillResult:
    rows: int
    batches: int


class Backfill:
    """Sweeps rows still flagged as needing backfill, one committed batch at a time.

    Safe to run next to live traffic and to re-run: a row already handled by a
    trigger has its flag cleared and is not selected again.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        batch_size: int | None = None,
        batch_delay_s: float | None = None,
        on_batch: Callable[[int], None] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.batch_size = batch_size if batch_size is not None else _batch_size()
        self.batch_delay_s = batch_delay_s if batch_delay_s is not None else _batch_delay_s()
        self.on_batch = on_batch
        if self.batch_size <= 0:
            raise ValueError("batch size must be > 0")

    def run(self, schema: str, table: str, primary_key: Sequence[str]) -> BackfillResult:
        total = 0
        batches = 0
        last_key: tuple | None = None
        while True:
            stmt = text(build_batch_sql(schema, table, primary_key, first_batch=last_key is None))
            params: dict[str, object] = {"batch_size": self.batch_size}
            if last_key is not None:
                params.update({f"pk_{i}": value for i, value in enumerate(last_key)})
            with self.session_factory() as session:
                rows = session.execute(stmt, params).all()
                session.commit()
            if not rows:
                break
            batches += 1
            total += len(rows)
            last_key = tuple(rows[-1])
            if self.on_batch is not None:
                self.on_batch(total)
            logger.debug("backfilled %s rows of %s.%s", total, schema, table)
            if len(rows) < self.batch_size:
                break
            if self.batch_delay_s > 0:
                time.sleep(self.batch_delay_s)
        logger.info("backfill of %s.%s done: %s rows in %s batches", schema, table, total, batches)
        return BackfillResult(rows=total, batches=batches)
