from __future__ import annotations

from collections import Counter
from typing import Iterable

from .errors import (
    ACTIVE_MIGRATION,
    DANGLING_PARENT,
    DUPLICATE_NAME,
    DUPLICATE_ROOT,
    INVALID_TYPE,
    NON_LINEAR_HISTORY,
    IntegrityError,
)
from .record import MIGRATION_TYPES, MigrationRecord


def violation_for(existing: Iterable[MigrationRecord], record: MigrationRecord) -> IntegrityError | None:
    """Return the invariant ``record`` would break if added to ``existing``."""
    same_schema = [r for r in existing if r.schema == record.schema]

    def _error(code: str) -> IntegrityError:
        return IntegrityError(code, record.schema, record.name)

    # same order in which Postgres reports the ledger constraints
    if record.migration_type not in MIGRATION_TYPES:
        return _error(INVALID_TYPE)
    if any(r.name == record.name for r in same_schema):
        return _error(DUPLICATE_NAME)
    if not record.done and any(not r.done for r in same_schema):
        return _error(ACTIVE_MIGRATION)
    if record.parent is None:
        if any(r.parent is None for r in same_schema):
            return _error(DUPLICATE_ROOT)
    else:
        if not any(r.name == record.parent for r in same_schema):
            return _error(DANGLING_PARENT)
        if any(r.parent == record.parent for r in same_schema):
            return _error(NON_LINEAR_HISTORY)
    return None


def check_history(records: Iterable[MigrationRecord]) -> list[str]:
    """Validate the history of a single schema; returns human-readable problems."""
    records = list(records)
    if not records:
        return []
    problems: list[str] = []
    by_name = {r.name: r for r in records}

    roots = [r.name for r in records if r.parent is None]
    if len(roots) != 1:
        problems.append(f"expected exactly one root, found {len(roots)}: {sorted(roots)}")

    children = Counter(r.parent for r in records if r.parent is not None)
    for parent, count in sorted(children.items()):
        if count > 1:
            problems.append(f"migration {parent} has {count} children")

    for r in records:
        if r.parent is not None and r.parent not in by_name:
            problems.append(f"migration {r.name} references missing parent {r.parent}")

    active = sorted(r.name for r in records if not r.done)
    if len(active) > 1:
        problems.append(f"more than one active migration: {active}")

    if not problems:
        tips = [r for r in records if r.name not in children]
        reached = 0
        current: MigrationRecord | None = tips[0] if len(tips) == 1 else None
        while current is not None and reached <= len(records):
            reached += 1
            current = by_name.get(current.parent) if current.parent else None
        if len(tips) != 1 or reached != len(records):
            problems.append("history is not a single chain from root to tip")
    return problems
