from .errors import AlreadyDone, AmbiguousSchema, IntegrityError, LedgerError, NotFound
from .memory import InMemoryLedger
from .payload import MigrationPayload, inferred_payload, load_payload
from .record import MIGRATION_TYPES, MigrationRecord
from .store import Ledger, SqlLedger

__all__ = [
    "AlreadyDone",
    "AmbiguousSchema",
    "IntegrityError",
    "LedgerError",
    "NotFound",
    "InMemoryLedger",
    "MigrationPayload",
    "inferred_payload",
    "load_payload",
    "MIGRATION_TYPES",
    "MigrationRecord",
    "Ledger",
    "SqlLedger",
]
