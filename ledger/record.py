from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Mapping


MIGRATION_TYPES = ("pgroll", "inferred", "baseline")


@dataclass
class MigrationRecord:
    schema: str
    name: str
    migration: dict[str, Any] = field(default_factory=dict)
    parent: str | None = None
    done: bool = False
    resulting_schema: dict[str, Any] = field(default_factory=dict)
    migration_type: str = "pgroll"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def version_schema(self) -> str:
        """Label of the physical version schema backing this step.

        Falls back to the step name when the payload does not declare one.
        """
        label = self.migration.get("version_schema")
        return self.name if label is None else str(label)

    @property
    def statement(self) -> str | None:
        """Raw SQL of an inferred step, if any."""
        operations = self.migration.get("operations") or []
        if not operations:
            return None
        sql = operations[0].get("sql") if isinstance(operations[0], dict) else None
        if not isinstance(sql, dict):
            return None
        return sql.get("up")


def walk_parents(records: Mapping[str, MigrationRecord], tip: str | None) -> Iterator[MigrationRecord]:
    """Yield records from ``tip`` back to the root, following ``parent`` links."""
    seen: set[str] = set()
    current = tip
    while current is not None and current not in seen:
        record = records.get(current)
        if record is None:
            return
        seen.add(current)
        yield record
        current = record.parent


def find_tip(records: Mapping[str, MigrationRecord]) -> MigrationRecord | None:
    parents = {r.parent for r in records.values() if r.parent is not None}
    tips = [r for r in records.values() if r.name not in parents]
    if not tips:
        return None
    return max(tips, key=lambda r: (r.created_at is not None, r.created_at or datetime.min, r.name))
