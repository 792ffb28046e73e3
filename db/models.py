from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKeyConstraint,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func, text

from .base import Base
from .config import state_schema


STATE_SCHEMA = state_schema()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Migration(Base):
    __tablename__ = "migrations"

    schema_name: Mapped[str] = mapped_column("schema", Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, primary_key=True)
    migration: Mapped[dict] = mapped_column(JSONB)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.current_timestamp()
    )
    parent: Mapped[str | None] = mapped_column(Text, nullable=True)
    done: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    resulting_schema: Mapped[dict] = mapped_column(
        JSONB, default=dict, server_default=text("'{}'::jsonb")
    )
    migration_type: Mapped[str] = mapped_column(
        String(32), default="pgroll", server_default=text("'pgroll'")
    )

    __table_args__ = (
        ForeignKeyConstraint(
            ["schema", "parent"],
            [f"{STATE_SCHEMA}.migrations.schema", f"{STATE_SCHEMA}.migrations.name"],
            name="migrations_parent_fkey",
        ),
        CheckConstraint(
            "migration_type in ('pgroll', 'inferred', 'baseline')",
            name="migration_type_check",
        ),
        Index(
            "only_one_active",
            "schema",
            unique=True,
            postgresql_where=text("done = false"),
        ),
        Index(
            "only_first_migration_without_parent",
            "schema",
            unique=True,
            postgresql_where=text("parent is null"),
        ),
        Index("history_is_linear", "schema", "parent", unique=True),
        {"schema": STATE_SCHEMA},
    )


class ToolVersion(Base):
    __tablename__ = "pgroll_version"

    version: Mapped[str] = mapped_column(Text, primary_key=True)
    initialized_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.current_timestamp()
    )

    __table_args__ = ({"schema": STATE_SCHEMA},)
