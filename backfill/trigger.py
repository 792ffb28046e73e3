from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy import text
from sqlalchemy.orm import Session

from capture.suppress import suppress_inference
from db.quoting import quote_ident, quote_literal

logger = logging.getLogger(__name__)

NEEDS_BACKFILL_COLUMN = "_pgroll_needs_backfill"


class GenerationError(Exception):
    pass


class TriggerDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Column:
    name: str
    type: str


@dataclass(frozen=True)
class TriggerConfig:
    """Everything needed to generate one sync trigger.

    ``columns`` maps the logical column name, as seen by expressions in
    ``sql``, to the physical column backing it. ``latest_schema`` is the full
    name of the newest version schema, compared against ``search_path``.
    """

    name: str
    table_name: str
    direction: TriggerDirection = TriggerDirection.UP
    columns: Mapping[str, Column] = field(default_factory=dict)
    schema_name: str = "public"
    physical_column: str = ""
    needs_backfill_column: str = NEEDS_BACKFILL_COLUMN
    latest_schema: str = ""
    sql: Sequence[str] = ()

    def fires_for(self, search_path: str) -> bool:
        """Whether a write made under ``search_path`` is projected by this trigger."""
        if self.direction == TriggerDirection.UP:
            return search_path != self.latest_schema
        return search_path == self.latest_schema


def _validate(config: TriggerConfig) -> None:
    if not config.name:
        raise GenerationError("trigger name is required")
    if not config.table_name:
        raise GenerationError(f"trigger {config.name}: table name is required")
    if not isinstance(config.direction, TriggerDirection):
        raise GenerationError(f"trigger {config.name}: unknown direction {config.direction!r}")
    if not config.physical_column:
        raise GenerationError(f"trigger {config.name}: physical column is required")
    if not config.latest_schema:
        raise GenerationError(f"trigger {config.name}: latest schema is required")
    if not config.needs_backfill_column:
        raise GenerationError(f"trigger {config.name}: needs-backfill column is required")
    if not config.sql or any(not fragment.strip() for fragment in config.sql):
        raise GenerationError(f"trigger {config.name}: at least one non-empty expression is required")


def build_function(config: TriggerConfig) -> str:
    _validate(config)
    table = f"{quote_ident(config.schema_name)}.{quote_ident(config.table_name)}"
    target = f"NEW.{quote_ident(config.physical_column)}"
    operator = "!=" if config.direction == TriggerDirection.UP else "="

    lines = [
        f"CREATE OR REPLACE FUNCTION {quote_ident(config.name)}()",
        "    RETURNS TRIGGER",
        "    LANGUAGE PLPGSQL",
        "    AS $$",
        "    DECLARE",
    ]
    for logical, column in sorted(config.columns.items()):
        physical = quote_ident(column.name)
        lines.append(
            f"      {quote_ident(logical)} {table}.{physical}%TYPE := NEW.{physical};"
        )
    lines += [
        "      latest_schema text;",
        "      search_path text;",
        "    BEGIN",
        "      SELECT current_setting",
        "        INTO search_path",
        "        FROM current_setting('search_path');",
        "",
        f"      IF search_path {operator} {quote_literal(config.latest_schema)} THEN",
    ]
    for fragment in config.sql:
        lines.append(f"        {target} = {fragment};")
    lines += [
        f"        NEW.{quote_ident(config.needs_backfill_column)} = false;",
        "      END IF;",
        "",
        "      RETURN NEW;",
        "    END; $$",
    ]
    return "\n".join(lines) + "\n"


def build_trigger(config: TriggerConfig) -> str:
    if not config.name:
        raise GenerationError("trigger name is required")
    if not config.table_name:
        raise GenerationError(f"trigger {config.name}: table name is required")
    name = quote_ident(config.name)
    return (
        f"CREATE OR REPLACE TRIGGER {name}\n"
        "    BEFORE UPDATE OR INSERT\n"
        f"    ON {quote_ident(config.table_name)}\n"
        "    FOR EACH ROW\n"
        f"    EXECUTE PROCEDURE {name}();\n"
    )


def install_trigger(session: Session, config: TriggerConfig) -> None:
    """Create the function and its trigger in the caller's transaction.

    Both are created in ``config.schema_name``: ``search_path`` is pinned to it
    while the statements run and put back afterwards.
    """
    function_sql = build_function(config)
    trigger_sql = build_trigger(config)
    previous = session.execute(text("select current_setting('search_path')")).scalar_one()
    set_path = text("select set_config('search_path', :path, true)")
    session.execute(set_path, {"path": quote_ident(config.schema_name)})
    connection = session.connection()
    with suppress_inference(session):
        connection.exec_driver_sql(function_sql)
        connection.exec_driver_sql(trigger_sql)
    session.execute(set_path, {"path": previous})
    logger.info("installed %s trigger %s on %s", config.direction.value, config.name, config.table_name)


Step = Callable[[Mapping[str, Any], Mapping[str, Any]], Any]


def project_row(
    config: TriggerConfig,
    row: Mapping[str, Any],
    search_path: str,
    steps: Sequence[Step],
) -> dict[str, Any]:
    """Apply the trigger's semantics to ``row`` without a database.

    ``row`` is keyed by physical column. Each step receives the logical
    bindings captured before any assignment and the row as assigned so far,
    mirroring ``NEW`` inside the generated function.
    """
    if not steps:
        raise GenerationError(f"trigger {config.name}: at least one step is required")
    new = dict(row)
    if not config.fires_for(search_path):
        return new
    bindings = {logical: row.get(column.name) for logical, column in config.columns.items()}
    for step in steps:
        new[config.physical_column] = step(bindings, new)
    new[config.needs_backfill_column] = False
    return new
