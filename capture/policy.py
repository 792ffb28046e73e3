"""Decides which logical schema a captured DDL statement belongs to."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ledger.errors import AmbiguousSchema


DDL_COMMAND_END = "ddl_command_end"
SQL_DROP = "sql_drop"


@dataclass(frozen=True)
class DdlObject:
    object_type: str
    schema_name: str | None
    object_identity: str


@dataclass(frozen=True)
class DdlEvent:
    """A completed schema-altering statement and the objects it touched.

    ``timestamp`` is the statement timestamp shared by every statement of a
    batch sent in one round trip.
    """

    event: str
    tag: str
    statement: str
    timestamp: datetime
    objects: tuple[DdlObject, ...] = field(default_factory=tuple)


def _first_schema(objects: tuple[DdlObject, ...]) -> str | None:
    for obj in objects:
        if obj.schema_name is not None:
            return obj.schema_name
    return None


def schema_for_event(event: DdlEvent) -> str | None:
    """Return the schema affected by ``event``, or None when it cannot be told.

    Raises AmbiguousSchema when a ``ddl_command_end`` batch touches several
    schemas.
    """
    if event.event == SQL_DROP:
        if event.tag == "DROP SCHEMA":
            for obj in event.objects:
                if obj.object_type == "schema":
                    return obj.object_identity
            return None
        # recorded on ddl_command_end instead
        if event.tag == "ALTER TABLE":
            return None
        return _first_schema(event.objects)

    if event.event == DDL_COMMAND_END:
        schemas = sorted({obj.schema_name for obj in event.objects if obj.schema_name is not None})
        if len(schemas) > 1:
            raise AmbiguousSchema(tuple(schemas))
        if event.tag == "CREATE SCHEMA":
            return event.objects[0].object_identity if event.objects else None
        return schemas[0] if schemas else None

    return None
