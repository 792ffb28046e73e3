#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
import sys

from db.session import SessionLocal
from ledger.invariants import check_history
from ledger.store import SqlLedger


def main() -> None:
    parser = ArgumentParser(description="Verify that every schema history is a single linear chain")
    parser.add_argument("--schema", action="append", help="Schema to check (repeatable, default: all)")
    args = parser.parse_args()

    session = SessionLocal()
    failed = False
    try:
        ledger = SqlLedger(session)
        for schema in args.schema or ledger.schemas():
            problems = check_history(ledger.records(schema))
            if problems:
                failed = True
                for problem in problems:
                    print(f"[check] schema={schema} problem={problem}")
            else:
                print(f"[check] schema={schema} ok")
    finally:
        session.close()
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
