from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from .errors import DANGLING_PARENT, AlreadyDone, IntegrityError, NotFound
from .invariants import violation_for
from .record import MigrationRecord, find_tip, walk_parents


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryLedger:
    """Ledger kept in process memory with the same invariants as the state schema.

    Used for dry runs and tests where no database is available.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], MigrationRecord] = {}

    def _schema_records(self, schema: str) -> dict[str, MigrationRecord]:
        return {name: r for (s, name), r in self._records.items() if s == schema}

    def insert(self, record: MigrationRecord) -> MigrationRecord:
        error = violation_for(self._records.values(), record)
        if error is not None:
            raise error
        now = _utcnow()
        stored = replace(
            record,
            created_at=record.created_at or now,
            updated_at=record.updated_at or record.created_at or now,
        )
        self._records[(record.schema, record.name)] = stored
        return replace(stored)

    def get(self, schema: str, name: str) -> MigrationRecord:
        record = self._records.get((schema, name))
        if record is None:
            raise NotFound(schema, name)
        return replace(record)

    def mark_done(self, schema: str, name: str, resulting_schema: dict[str, Any]) -> MigrationRecord:
        record = self._records.get((schema, name))
        if record is None:
            raise NotFound(schema, name)
        if record.done:
            raise AlreadyDone(schema, name)
        record.done = True
        record.resulting_schema = dict(resulting_schema)
        record.updated_at = _utcnow()
        return replace(record)

    def delete(self, schema: str, name: str) -> None:
        if (schema, name) not in self._records:
            raise NotFound(schema, name)
        if any(r.parent == name for r in self._schema_records(schema).values()):
            raise IntegrityError(DANGLING_PARENT, schema, name)
        del self._records[(schema, name)]

    def is_active(self, schema: str) -> bool:
        return self.active(schema) is not None

    def active(self, schema: str) -> MigrationRecord | None:
        for record in self._schema_records(schema).values():
            if not record.done:
                return replace(record)
        return None

    def latest(self, schema: str) -> MigrationRecord | None:
        tip = find_tip(self._schema_records(schema))
        return replace(tip) if tip else None

    def previous(self, schema: str) -> MigrationRecord | None:
        latest = self.latest(schema)
        if latest is None or latest.parent is None:
            return None
        return self.get(schema, latest.parent)

    def history(self, schema: str) -> list[MigrationRecord]:
        records = self._schema_records(schema)
        tip = find_tip(records)
        chain = list(walk_parents(records, tip.name if tip else None))
        return [replace(r) for r in reversed(chain)]

    def records(self, schema: str) -> list[MigrationRecord]:
        return [replace(r) for r in self._schema_records(schema).values()]

    def schemas(self) -> list[str]:
        return sorted({schema for schema, _ in self._records})

    def latest_non_inferred(self, schema: str) -> MigrationRecord | None:
        candidates = [
            r for r in self._schema_records(schema).values() if r.migration_type != "inferred"
        ]
        if not candidates:
            return None
        return replace(max(candidates, key=lambda r: r.created_at))

    def delete_inferred_duplicates(self, schema: str, created_at: datetime, statement: str) -> int:
        doomed = [
            key
            for key, r in self._records.items()
            if r.schema == schema
            and r.migration_type == "inferred"
            and r.created_at == created_at
            and r.statement == statement
        ]
        for key in doomed:
            del self._records[key]
        return len(doomed)

    def version_labels(self, schema: str) -> set[str]:
        return {r.version_schema for r in self._schema_records(schema).values()}
