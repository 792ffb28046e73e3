from .reader import DatabaseSchemaReader, SchemaReader, render_read_schema_sql

__all__ = ["DatabaseSchemaReader", "SchemaReader", "render_read_schema_sql"]
