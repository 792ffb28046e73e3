"""Installs DDL capture inside Postgres as a pair of event triggers.

The function applies the same policy as ``capture.policy`` and
``capture.recorder``, but runs in the transaction of the statement that fired
it, so out-of-band changes from any client end up in the ledger.
"""

from __future__ import annotations

from db.quoting import quote_ident, quote_literal

from .suppress import SUPPRESS_SETTING


DDL_TRIGGER = "pg_roll_handle_ddl"
DROP_TRIGGER = "pg_roll_handle_drop"


def render_capture_function(state_schema: str) -> str:
    s = quote_ident(state_schema)
    setting = quote_literal(SUPPRESS_SETTING)
    search_path = f"{s}, pg_catalog, pg_temp"
    return f"""
CREATE OR REPLACE FUNCTION {s}.raw_migration ()
    RETURNS event_trigger
    LANGUAGE plpgsql
    SECURITY DEFINER
    SET search_path = {search_path}
    AS $$
DECLARE
    schemaname text;
    migration_id text;
    base_name text;
    stamp text;
BEGIN
    IF (pg_catalog.current_setting({setting}, TRUE) = 'TRUE') THEN
        RETURN;
    END IF;

    IF tg_event = 'sql_drop' AND tg_tag = 'DROP SCHEMA' THEN
        SELECT object_identity INTO schemaname
        FROM pg_catalog.pg_event_trigger_dropped_objects ()
        WHERE object_type = 'schema'
        LIMIT 1;
    ELSIF tg_event = 'sql_drop' AND tg_tag != 'ALTER TABLE' THEN
        SELECT schema_name INTO schemaname
        FROM pg_catalog.pg_event_trigger_dropped_objects ()
        WHERE schema_name IS NOT NULL
        LIMIT 1;
    ELSIF tg_event = 'ddl_command_end' THEN
        IF (
            SELECT pg_catalog.count(DISTINCT schema_name)
            FROM pg_catalog.pg_event_trigger_ddl_commands ()
            WHERE schema_name IS NOT NULL) > 1 THEN
            RETURN;
        END IF;
        IF tg_tag = 'CREATE SCHEMA' THEN
            SELECT object_identity INTO schemaname
            FROM pg_catalog.pg_event_trigger_ddl_commands ()
            LIMIT 1;
        ELSE
            SELECT schema_name INTO schemaname
            FROM pg_catalog.pg_event_trigger_ddl_commands ()
            WHERE schema_name IS NOT NULL
            LIMIT 1;
        END IF;
    END IF;

    IF schemaname IS NULL THEN
        RETURN;
    END IF;

    IF {s}.is_active_migration_period (schemaname) THEN
        RETURN;
    END IF;

    DELETE FROM {s}.migrations
    WHERE schema = schemaname
        AND created_at = pg_catalog.statement_timestamp()
        AND migration_type = 'inferred'
        AND migration -> 'operations' -> 0 -> 'sql' ->> 'up' = pg_catalog.current_query();

    SELECT name INTO base_name
    FROM {s}.migrations
    WHERE schema = schemaname
        AND migration_type != 'inferred'
    ORDER BY created_at DESC
    LIMIT 1;

    stamp := pg_catalog.to_char(pg_catalog.clock_timestamp(), 'YYYYMMDDHH24MISSUS');
    IF base_name IS NULL THEN
        migration_id := pg_catalog.format('00000_initial_%s', stamp);
    ELSE
        migration_id := pg_catalog.format('%s_%s', base_name, stamp);
    END IF;

    INSERT INTO {s}.migrations (schema, name, migration, resulting_schema, done, parent, migration_type, created_at, updated_at)
    VALUES (
        schemaname,
        migration_id,
        pg_catalog.jsonb_build_object(
            'version_schema', 'sql_' || pg_catalog.substring(pg_catalog.md5(pg_catalog.random()::text), 1, 8),
            'operations', pg_catalog.jsonb_build_array(
                pg_catalog.jsonb_build_object('sql', pg_catalog.jsonb_build_object('up', pg_catalog.current_query())))),
        {s}.read_schema (schemaname),
        TRUE,
        {s}.latest_migration (schemaname),
        'inferred',
        pg_catalog.statement_timestamp(),
        pg_catalog.statement_timestamp());
END;
$$;
"""


def render_capture_sql(state_schema: str) -> list[str]:
    s = quote_ident(state_schema)
    return [
        render_capture_function(state_schema),
        f"DROP EVENT TRIGGER IF EXISTS {DDL_TRIGGER}",
        f"CREATE EVENT TRIGGER {DDL_TRIGGER} ON ddl_command_end EXECUTE FUNCTION {s}.raw_migration ()",
        f"DROP EVENT TRIGGER IF EXISTS {DROP_TRIGGER}",
        f"CREATE EVENT TRIGGER {DROP_TRIGGER} ON sql_drop EXECUTE FUNCTION {s}.raw_migration ()",
    ]


def render_drop_capture_sql() -> list[str]:
    return [
        f"DROP EVENT TRIGGER IF EXISTS {DDL_TRIGGER}",
        f"DROP EVENT TRIGGER IF EXISTS {DROP_TRIGGER}",
    ]
