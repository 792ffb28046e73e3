from .backfill import (
    Backfill,
    BackfillResult,
    add_needs_backfill_column_sql,
    build_batch_sql,
    drop_needs_backfill_column_sql,
)
from .trigger import (
    NEEDS_BACKFILL_COLUMN,
    Column,
    GenerationError,
    TriggerConfig,
    TriggerDirection,
    build_function,
    build_trigger,
    install_trigger,
    project_row,
)

__all__ = [
    "Backfill",
    "BackfillResult",
    "add_needs_backfill_column_sql",
    "build_batch_sql",
    "drop_needs_backfill_column_sql",
    "NEEDS_BACKFILL_COLUMN",
    "Column",
    "GenerationError",
    "TriggerConfig",
    "TriggerDirection",
    "build_function",
    "build_trigger",
    "install_trigger",
    "project_row",
]
