from .event_trigger import render_capture_sql, render_drop_capture_sql
from .policy import DDL_COMMAND_END, SQL_DROP, DdlEvent, DdlObject, schema_for_event
from .recorder import DdlHook, InferredMigrationRecorder
from .suppress import SUPPRESS_SETTING, inference_suppressed, suppress_inference

__all__ = [
    "render_capture_sql",
    "render_drop_capture_sql",
    "DDL_COMMAND_END",
    "SQL_DROP",
    "DdlEvent",
    "DdlObject",
    "schema_for_event",
    "DdlHook",
    "InferredMigrationRecorder",
    "SUPPRESS_SETTING",
    "inference_suppressed",
    "suppress_inference",
]
