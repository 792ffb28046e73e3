#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
import logging

from db.session import SessionLocal
from state.state import State


def main() -> None:
    parser = ArgumentParser(description="Create or upgrade the state schema")
    parser.add_argument("--version", default=None, help="Tool version to record (default: PGROLL_VERSION)")
    parser.add_argument("--no-capture", action="store_true", help="Do not install DDL capture event triggers")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    session = SessionLocal()
    try:
        state = State(session)
        state.init(version=args.version, capture=False if args.no_capture else None)
        session.commit()
        for marker in state.versions():
            print(f"[state] schema={state.schema} version={marker.version} initialized_at={marker.initialized_at.isoformat()}")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
