from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session

from capture.suppress import suppress_inference
from db.config import capture_ddl, state_schema, tool_version
from db.models import ToolVersion
from ledger.errors import AlreadyDone
from ledger.payload import MigrationPayload
from ledger.record import MigrationRecord
from ledger.store import SqlLedger
from snapshot.reader import DatabaseSchemaReader, SchemaReader
from versions.resolver import VersionResolver, namespace_probe

from .sql import drop_statements, init_statements

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class State:
    """Entry point for the tool's own bookkeeping in the state schema.

    The caller owns the session and its transaction; nothing here commits.
    """

    def __init__(self, session: Session, reader: SchemaReader | None = None) -> None:
        self.session = session
        self.schema = state_schema()
        self.ledger = SqlLedger(session)
        self.reader = reader or DatabaseSchemaReader(session, self.schema)
        self.resolver = VersionResolver(self.ledger, namespace_probe(session))

    def init(self, version: str | None = None, capture: bool | None = None) -> None:
        version = version or tool_version()
        capture = capture_ddl() if capture is None else capture
        connection = self.session.connection()
        with suppress_inference(self.session):
            for statement in init_statements(self.schema, capture_ddl=capture):
                connection.exec_driver_sql(statement)
        self.session.execute(
            pg_insert(ToolVersion).values(version=version).on_conflict_do_nothing()
        )
        logger.info("state schema %s initialized (version=%s, capture=%s)", self.schema, version, capture)

    def uninstall(self) -> None:
        connection = self.session.connection()
        for statement in drop_statements(self.schema):
            connection.exec_driver_sql(statement)
        logger.info("state schema %s dropped", self.schema)

    def is_initialized(self) -> bool:
        stmt = text(
            "select exists (select 1 from information_schema.tables "
            "where table_schema = :schema and table_name = 'migrations')"
        )
        return bool(self.session.execute(stmt, {"schema": self.schema}).scalar_one())

    def versions(self) -> list[ToolVersion]:
        return list(
            self.session.execute(select(ToolVersion).order_by(ToolVersion.initialized_at)).scalars()
        )

    def start(self, schema: str, name: str, payload: MigrationPayload) -> MigrationRecord:
        """Record a tool-driven step as in flight; fails if another one is."""
        latest = self.ledger.latest(schema)
        now = _utcnow()
        record = MigrationRecord(
            schema=schema,
            name=name,
            migration=payload.to_ledger(),
            parent=latest.name if latest else None,
            done=False,
            migration_type="pgroll",
            created_at=now,
            updated_at=now,
        )
        stored = self.ledger.insert(record)
        logger.info("started migration %s/%s", schema, name)
        return stored

    def complete(self, schema: str, name: str) -> MigrationRecord:
        snapshot = self.reader.read_schema(schema)
        stored = self.ledger.mark_done(schema, name, snapshot)
        logger.info("completed migration %s/%s", schema, name)
        return stored

    def rollback(self, schema: str, name: str) -> None:
        record = self.ledger.get(schema, name)
        if record.done:
            raise AlreadyDone(schema, name)
        self.ledger.delete(schema, name)
        logger.info("rolled back migration %s/%s", schema, name)

    def create_baseline(self, schema: str, name: str) -> MigrationRecord:
        latest = self.ledger.latest(schema)
        now = _utcnow()
        record = MigrationRecord(
            schema=schema,
            name=name,
            migration={"operations": []},
            parent=latest.name if latest else None,
            done=True,
            resulting_schema=self.reader.read_schema(schema),
            migration_type="baseline",
            created_at=now,
            updated_at=now,
        )
        stored = self.ledger.insert(record)
        logger.info("baseline %s/%s recorded", schema, name)
        return stored

    def active_migration(self, schema: str) -> MigrationRecord | None:
        return self.ledger.active(schema)

    def history(self, schema: str) -> list[MigrationRecord]:
        return self.ledger.history(schema)

    def latest_version(self, schema: str) -> str | None:
        return self.resolver.latest_version(schema)

    def previous_version(self, schema: str) -> str | None:
        return self.resolver.previous_version(schema)

    def read_schema(self, schema: str) -> dict[str, Any]:
        return self.reader.read_schema(schema)
