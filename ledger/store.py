from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any, Protocol

from sqlalchemy import delete, desc, exc as sa_exc, select
from sqlalchemy.orm import Session, aliased

from db.models import Migration

from .errors import AlreadyDone, NotFound, translate_integrity_error
from .record import MigrationRecord, walk_parents

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    def insert(self, record: MigrationRecord) -> MigrationRecord: ...

    def get(self, schema: str, name: str) -> MigrationRecord: ...

    def mark_done(self, schema: str, name: str, resulting_schema: dict[str, Any]) -> MigrationRecord: ...

    def delete(self, schema: str, name: str) -> None: ...

    def is_active(self, schema: str) -> bool: ...

    def active(self, schema: str) -> MigrationRecord | None: ...

    def latest(self, schema: str) -> MigrationRecord | None: ...

    def previous(self, schema: str) -> MigrationRecord | None: ...

    def history(self, schema: str) -> list[MigrationRecord]: ...

    def records(self, schema: str) -> list[MigrationRecord]: ...

    def schemas(self) -> list[str]: ...

    def latest_non_inferred(self, schema: str) -> MigrationRecord | None: ...

    def delete_inferred_duplicates(self, schema: str, created_at: datetime, statement: str) -> int: ...

    def version_labels(self, schema: str) -> set[str]: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_record(row: Migration) -> MigrationRecord:
    return MigrationRecord(
        schema=row.schema_name,
        name=row.name,
        migration=dict(row.migration or {}),
        parent=row.parent,
        done=row.done,
        resulting_schema=dict(row.resulting_schema or {}),
        migration_type=row.migration_type,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlLedger:
    """Ledger stored in the ``migrations`` table of the state schema.

    The caller owns the transaction. Invariant violations abort it: the
    driver error is re-raised as :class:`ledger.errors.IntegrityError` and the
    session must be rolled back before reuse.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _flush(self, schema: str, name: str) -> None:
        try:
            self.session.flush()
        except sa_exc.IntegrityError as exc:
            error = translate_integrity_error(exc, schema, name)
            logger.warning("ledger write rejected: %s", error)
            raise error from exc

    def _row(self, schema: str, name: str) -> Migration | None:
        return self.session.get(Migration, (schema, name))

    def insert(self, record: MigrationRecord) -> MigrationRecord:
        now = _utcnow()
        row = Migration(
            schema_name=record.schema,
            name=record.name,
            migration=record.migration,
            parent=record.parent,
            done=record.done,
            resulting_schema=record.resulting_schema,
            migration_type=record.migration_type,
            created_at=record.created_at or now,
            updated_at=record.updated_at or record.created_at or now,
        )
        self.session.add(row)
        self._flush(record.schema, record.name)
        logger.debug("recorded %s migration %s/%s", record.migration_type, record.schema, record.name)
        return _to_record(row)

    def get(self, schema: str, name: str) -> MigrationRecord:
        row = self._row(schema, name)
        if row is None:
            raise NotFound(schema, name)
        return _to_record(row)

    def mark_done(self, schema: str, name: str, resulting_schema: dict[str, Any]) -> MigrationRecord:
        row = self._row(schema, name)
        if row is None:
            raise NotFound(schema, name)
        if row.done:
            raise AlreadyDone(schema, name)
        row.done = True
        row.resulting_schema = resulting_schema
        row.updated_at = _utcnow()
        self._flush(schema, name)
        return _to_record(row)

    def delete(self, schema: str, name: str) -> None:
        row = self._row(schema, name)
        if row is None:
            raise NotFound(schema, name)
        self.session.delete(row)
        self._flush(schema, name)

    def is_active(self, schema: str) -> bool:
        return self.active(schema) is not None

    def active(self, schema: str) -> MigrationRecord | None:
        row = self.session.execute(
            select(Migration).where(Migration.schema_name == schema, Migration.done.is_(False))
        ).scalar_one_or_none()
        return _to_record(row) if row else None

    def latest(self, schema: str) -> MigrationRecord | None:
        child = aliased(Migration)
        has_child = (
            select(child.name)
            .where(child.schema_name == Migration.schema_name, child.parent == Migration.name)
            .exists()
        )
        row = (
            self.session.execute(
                select(Migration)
                .where(Migration.schema_name == schema, ~has_child)
                .order_by(desc(Migration.created_at))
                .limit(1)
            )
            .scalars()
            .first()
        )
        return _to_record(row) if row else None

    def previous(self, schema: str) -> MigrationRecord | None:
        latest = self.latest(schema)
        if latest is None or latest.parent is None:
            return None
        return self.get(schema, latest.parent)

    def records(self, schema: str) -> list[MigrationRecord]:
        rows = (
            self.session.execute(
                select(Migration)
                .where(Migration.schema_name == schema)
                .order_by(Migration.created_at, Migration.name)
            )
            .scalars()
            .all()
        )
        return [_to_record(row) for row in rows]

    def history(self, schema: str) -> list[MigrationRecord]:
        latest = self.latest(schema)
        if latest is None:
            return []
        by_name = {r.name: r for r in self.records(schema)}
        return list(reversed(list(walk_parents(by_name, latest.name))))

    def schemas(self) -> list[str]:
        return list(
            self.session.execute(
                select(Migration.schema_name).distinct().order_by(Migration.schema_name)
            ).scalars()
        )

    def latest_non_inferred(self, schema: str) -> MigrationRecord | None:
        row = (
            self.session.execute(
                select(Migration)
                .where(Migration.schema_name == schema, Migration.migration_type != "inferred")
                .order_by(desc(Migration.created_at))
                .limit(1)
            )
            .scalars()
            .first()
        )
        return _to_record(row) if row else None

    def delete_inferred_duplicates(self, schema: str, created_at: datetime, statement: str) -> int:
        result = self.session.execute(
            delete(Migration)
            .where(
                Migration.schema_name == schema,
                Migration.created_at == created_at,
                Migration.migration_type == "inferred",
                Migration.migration[("operations", "0", "sql", "up")].astext == statement,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def version_labels(self, schema: str) -> set[str]:
        return {r.version_schema for r in self.records(schema)}
