"""create state schema

Revision ID: 3a7e1c9b5d20
Revises: 
Create Date: 2026-10-18 09:00:00

Purpose:
- create the migration ledger and the tool version marker table
- install helper functions (latest/previous migration, version schema lookup, read_schema)
- install the event triggers that record out-of-band DDL as inferred migrations

Operational notes:
- event triggers need superuser; set PGROLL_CAPTURE_DDL=false on managed databases
  where that is not available
- the state schema name comes from PGROLL_STATE_SCHEMA (default: pgroll)
"""

from alembic import op

from capture.suppress import suppress_inference
from db.config import capture_ddl, state_schema, tool_version
from db.quoting import quote_ident, quote_literal
from state.sql import drop_object_statements, init_statements

revision = "3a7e1c9b5d20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    with suppress_inference(bind):
        for statement in init_statements(state_schema(), capture_ddl=capture_ddl()):
            bind.exec_driver_sql(statement)
    bind.exec_driver_sql(
        f"INSERT INTO {quote_ident(state_schema())}.pgroll_version (version) "
        f"VALUES ({quote_literal(tool_version())}) ON CONFLICT DO NOTHING"
    )


def downgrade() -> None:
    bind = op.get_bind()
    # alembic keeps its version table in the same schema
    for statement in drop_object_statements(state_schema()):
        bind.exec_driver_sql(statement)
