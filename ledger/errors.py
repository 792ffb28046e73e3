from __future__ import annotations

from dataclasses import dataclass


class LedgerError(Exception):
    pass


ACTIVE_MIGRATION = "active_migration"
DUPLICATE_ROOT = "duplicate_root"
NON_LINEAR_HISTORY = "non_linear_history"
DANGLING_PARENT = "dangling_parent"
DUPLICATE_NAME = "duplicate_name"
INVALID_TYPE = "invalid_type"
UNKNOWN = "unknown"

# Constraint and index names as created by the state schema.
CONSTRAINT_CODES = {
    "only_one_active": ACTIVE_MIGRATION,
    "only_first_migration_without_parent": DUPLICATE_ROOT,
    "history_is_linear": NON_LINEAR_HISTORY,
    "migrations_parent_fkey": DANGLING_PARENT,
    "migrations_pkey": DUPLICATE_NAME,
    "migration_type_check": INVALID_TYPE,
}


def _describe(code: str, schema: str, name: str | None) -> str:
    if code == ACTIVE_MIGRATION:
        return f'a migration is already in progress for schema "{schema}"'
    if code == DUPLICATE_ROOT:
        return f'schema "{schema}" already has an initial migration'
    if code == NON_LINEAR_HISTORY:
        return f'migration "{name}" would fork the history of schema "{schema}"'
    if code == DANGLING_PARENT:
        return f'parent of migration "{name}" does not exist in schema "{schema}"'
    if code == DUPLICATE_NAME:
        return f'migration "{name}" already exists in schema "{schema}"'
    if code == INVALID_TYPE:
        return f'migration "{name}" has an invalid migration type'
    return f'migration "{name}" violates a ledger constraint for schema "{schema}"'


@dataclass(eq=False)
class IntegrityError(LedgerError):
    code: str
    schema: str
    name: str | None = None
    detail: str | None = None

    @property
    def message(self) -> str:
        return _describe(self.code, self.schema, self.name)

    def __str__(self) -> str:
        if self.detail and self.code == UNKNOWN:
            return f"{self.message}: {self.detail}"
        return self.message


@dataclass(eq=False)
class NotFound(LedgerError):
    schema: str
    name: str | None = None

    def __str__(self) -> str:
        if self.name is None:
            return f'no migrations found for schema "{self.schema}"'
        return f'migration "{self.name}" not found in schema "{self.schema}"'


@dataclass(eq=False)
class AlreadyDone(LedgerError):
    schema: str
    name: str

    def __str__(self) -> str:
        return f'migration "{self.name}" in schema "{self.schema}" is already done'


@dataclass(eq=False)
class AmbiguousSchema(LedgerError):
    schemas: tuple[str, ...]

    def __str__(self) -> str:
        return f"statement touches more than one schema: {', '.join(self.schemas)}"


def translate_integrity_error(exc: Exception, schema: str, name: str | None = None) -> IntegrityError:
    """Map a driver integrity violation onto the ledger invariant it broke."""
    orig = getattr(exc, "orig", exc)
    diag = getattr(orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    code = CONSTRAINT_CODES.get(constraint or "", UNKNOWN)
    return IntegrityError(code, schema, name, detail=str(orig).strip())
