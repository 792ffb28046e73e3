from __future__ import annotations

from capture.event_trigger import render_capture_sql, render_drop_capture_sql
from db.quoting import quote_ident
from snapshot.reader import render_read_schema_sql


def _ledger_sql(s: str) -> list[str]:
    return [
        f"CREATE SCHEMA IF NOT EXISTS {s}",
        f"""
CREATE TABLE IF NOT EXISTS {s}.migrations (
    schema name NOT NULL,
    name text NOT NULL,
    migration jsonb NOT NULL,
    created_at timestamptz NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at timestamptz NOT NULL DEFAULT CURRENT_TIMESTAMP,
    parent text,
    done boolean NOT NULL DEFAULT FALSE,
    resulting_schema jsonb NOT NULL DEFAULT '{{}}'::jsonb,
    migration_type varchar(32) DEFAULT 'pgroll'
        CONSTRAINT migration_type_check CHECK (migration_type IN ('pgroll', 'inferred', 'baseline')),
    PRIMARY KEY (schema, name),
    CONSTRAINT migrations_parent_fkey FOREIGN KEY (schema, parent) REFERENCES {s}.migrations (schema, name)
)""",
        # one in-flight migration per schema
        f"CREATE UNIQUE INDEX IF NOT EXISTS only_one_active ON {s}.migrations (schema) WHERE done = FALSE",
        # one root per schema
        f"CREATE UNIQUE INDEX IF NOT EXISTS only_first_migration_without_parent ON {s}.migrations (schema) WHERE parent IS NULL",
        # no two steps share a parent
        f"CREATE UNIQUE INDEX IF NOT EXISTS history_is_linear ON {s}.migrations (schema, parent)",
        f"""
CREATE TABLE IF NOT EXISTS {s}.pgroll_version (
    version text NOT NULL,
    initialized_at timestamptz NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (version)
)""",
    ]


def _helper_sql(s: str) -> list[str]:
    return [
        f"""
CREATE OR REPLACE FUNCTION {s}.is_active_migration_period (schemaname name)
    RETURNS boolean
    LANGUAGE sql
    STABLE
    AS $$
    SELECT EXISTS (
        SELECT 1 FROM {s}.migrations
        WHERE schema = schemaname AND done = FALSE)
$$""",
        f"""
CREATE OR REPLACE FUNCTION {s}.latest_migration (schemaname name)
    RETURNS text
    LANGUAGE sql
    STABLE
    SECURITY DEFINER
    SET search_path = {s}, pg_catalog, pg_temp
    AS $$
    SELECT p.name
    FROM {s}.migrations p
    WHERE p.schema = schemaname
        AND NOT EXISTS (
            SELECT 1 FROM {s}.migrations c
            WHERE c.schema = schemaname AND c.parent = p.name)
    ORDER BY p.created_at DESC
    LIMIT 1
$$""",
        f"""
CREATE OR REPLACE FUNCTION {s}.previous_migration (schemaname name)
    RETURNS text
    LANGUAGE sql
    STABLE
    AS $$
    SELECT parent
    FROM {s}.migrations
    WHERE schema = schemaname
        AND name = {s}.latest_migration (schemaname)
$$""",
        f"""
CREATE OR REPLACE FUNCTION {s}.find_version_schema (p_schema_name name, p_depth integer DEFAULT 0)
    RETURNS text
    LANGUAGE sql
    STABLE
    AS $$
    WITH RECURSIVE ancestors AS (
        SELECT name, COALESCE(migration ->> 'version_schema', name) AS version_schema,
            schema, parent, 0 AS depth
        FROM {s}.migrations
        WHERE schema = p_schema_name
            AND name = {s}.latest_migration (p_schema_name)
        UNION ALL
        SELECT m.name, COALESCE(m.migration ->> 'version_schema', m.name),
            m.schema, m.parent, a.depth + 1
        FROM {s}.migrations m
        JOIN ancestors a ON m.name = a.parent AND m.schema = a.schema
    )
    SELECT a.version_schema
    FROM ancestors a
    WHERE EXISTS (
        SELECT 1 FROM information_schema.schemata sc
        WHERE sc.schema_name = p_schema_name || '_' || a.version_schema)
    ORDER BY a.depth ASC
    OFFSET p_depth
    LIMIT 1
$$""",
        f"""
CREATE OR REPLACE FUNCTION {s}.latest_version (schemaname name)
    RETURNS text
    LANGUAGE sql
    STABLE
    AS $$
    SELECT {s}.find_version_schema (schemaname, 0)
$$""",
        f"""
CREATE OR REPLACE FUNCTION {s}.previous_version (schemaname name)
    RETURNS text
    LANGUAGE sql
    STABLE
    AS $$
    SELECT {s}.find_version_schema (schemaname, 1)
$$""",
    ]


def init_statements(state_schema: str, capture_ddl: bool = True) -> list[str]:
    """Statements creating or upgrading the state schema, in execution order."""
    s = quote_ident(state_schema)
    statements = _ledger_sql(s) + _helper_sql(s) + [render_read_schema_sql(state_schema)]
    if capture_ddl:
        statements += render_capture_sql(state_schema)
    else:
        statements += render_drop_capture_sql()
    return [stmt.strip() for stmt in statements]


HELPER_FUNCTIONS = (
    "raw_migration ()",
    "read_schema (text)",
    "previous_version (name)",
    "latest_version (name)",
    "find_version_schema (name, integer)",
    "previous_migration (name)",
    "latest_migration (name)",
    "is_active_migration_period (name)",
)


def drop_object_statements(state_schema: str) -> list[str]:
    """Drop what ``init_statements`` created but keep the schema itself."""
    s = quote_ident(state_schema)
    return (
        render_drop_capture_sql()
        + [f"DROP FUNCTION IF EXISTS {s}.{signature}" for signature in HELPER_FUNCTIONS]
        + [f"DROP TABLE IF EXISTS {s}.migrations", f"DROP TABLE IF EXISTS {s}.pgroll_version"]
    )


def drop_statements(state_schema: str) -> list[str]:
    return render_drop_capture_sql() + [f"DROP SCHEMA IF EXISTS {quote_ident(state_schema)} CASCADE"]
