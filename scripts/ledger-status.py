#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser

from db.session import SessionLocal
from state.state import State


def main() -> None:
    parser = ArgumentParser(description="Show the migration history of a schema")
    parser.add_argument("--schema", default="public")
    parser.add_argument("--limit", type=int, default=20)
    args = parser.parse_args()

    session = SessionLocal()
    try:
        state = State(session)
        if not state.is_initialized():
            print(f"[status] state schema {state.schema} is not initialized")
            return
        history = state.history(args.schema)
        for record in history[-args.limit:]:
            status = "done" if record.done else "active"
            print(
                f"[migration] name={record.name} type={record.migration_type} status={status} "
                f"version_schema={record.version_schema} parent={record.parent}"
            )
        active = state.active_migration(args.schema)
        print(f"[status] schema={args.schema} migrations={len(history)} active={active.name if active else None}")
        print(f"[status] latest_version={state.latest_version(args.schema)}")
        print(f"[status] previous_version={state.previous_version(args.schema)}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
