from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Callable, Protocol
from uuid import uuid4

from ledger.errors import AmbiguousSchema
from ledger.payload import inferred_payload
from ledger.record import MigrationRecord
from ledger.store import Ledger
from snapshot.reader import SchemaReader

from .policy import DdlEvent, schema_for_event

logger = logging.getLogger(__name__)

INITIAL_PREFIX = "00000_initial"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _random_label() -> str:
    return "sql_" + uuid4().hex[:8]


def _stamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%d%H%M%S%f")


class DdlHook(Protocol):
    def on_ddl_event(self, event: DdlEvent) -> MigrationRecord | None: ...


class InferredMigrationRecorder:
    """Folds schema changes made outside the tool into the ledger as inferred steps.

    Returns the recorded step, or None when the event is deliberately ignored.
    Ledger integrity errors propagate so the enclosing DDL transaction aborts.
    """

    def __init__(
        self,
        ledger: Ledger,
        reader: SchemaReader,
        *,
        suppressed: Callable[[], bool] = lambda: False,
        clock: Callable[[], datetime] = _utcnow,
        label_factory: Callable[[], str] = _random_label,
    ) -> None:
        self.ledger = ledger
        self.reader = reader
        self._suppressed = suppressed
        self._clock = clock
        self._label_factory = label_factory

    def on_ddl_event(self, event: DdlEvent) -> MigrationRecord | None:
        if self._suppressed():
            logger.debug("inference suppressed for %s", event.tag)
            return None

        try:
            schema = schema_for_event(event)
        except AmbiguousSchema as exc:
            logger.debug("ignoring %s: %s", event.tag, exc)
            return None
        if schema is None:
            return None

        if self.ledger.is_active(schema):
            logger.debug("migration in progress for %s, not inferring %s", schema, event.tag)
            return None

        # statements of one batch share a timestamp; keep only the last one
        self.ledger.delete_inferred_duplicates(schema, event.timestamp, event.statement)

        latest = self.ledger.latest(schema)
        record = MigrationRecord(
            schema=schema,
            name=self._next_name(schema),
            migration=inferred_payload(event.statement, self._fresh_label(schema)),
            parent=latest.name if latest else None,
            done=True,
            resulting_schema=self.reader.read_schema(schema),
            migration_type="inferred",
            created_at=event.timestamp,
            updated_at=event.timestamp,
        )
        stored = self.ledger.insert(record)
        logger.info("inferred migration %s/%s from %s", schema, stored.name, event.tag)
        return stored

    def _next_name(self, schema: str) -> str:
        stamp = _stamp(self._clock())
        base = self.ledger.latest_non_inferred(schema)
        if base is None:
            return f"{INITIAL_PREFIX}_{stamp}"
        return f"{base.name}_{stamp}"

    def _fresh_label(self, schema: str) -> str:
        taken = self.ledger.version_labels(schema)
        label = self._label_factory()
        while label in taken:
            label = self._label_factory()
        return label
