#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
import logging

from backfill.backfill import Backfill
from db.session import SessionLocal


def main() -> None:
    parser = ArgumentParser(description="Backfill rows still flagged as needing backfill")
    parser.add_argument("--schema", default="public")
    parser.add_argument("--table", required=True)
    parser.add_argument("--pk", action="append", required=True, help="Primary key column (repeatable)")
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--delay", type=float, default=None, help="Seconds to wait between batches")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    backfill = Backfill(
        SessionLocal,
        batch_size=args.batch_size,
        batch_delay_s=args.delay,
        on_batch=lambda total: print(f"[backfill] rows={total}"),
    )
    result = backfill.run(args.schema, args.table, args.pk)
    print(f"[backfill] done table={args.schema}.{args.table} rows={result.rows} batches={result.batches}")


if __name__ == "__main__":
    main()
