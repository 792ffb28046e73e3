from __future__ import annotations

from typing import Callable, Iterable

from sqlalchemy import text
from sqlalchemy.orm import Session

from ledger.record import MigrationRecord
from ledger.store import Ledger


def version_schema_name(schema: str, label: str) -> str:
    return f"{schema}_{label}"


def resolve_version(
    chain: Iterable[MigrationRecord],
    schema: str,
    depth: int,
    namespace_exists: Callable[[str], bool],
) -> str | None:
    """Pick the version-schema label ``depth`` steps back from the tip.

    ``chain`` runs from the tip towards the root. Labels whose physical
    namespace is gone are skipped, so ``depth`` counts present namespaces only.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    present: list[str] = []
    for record in chain:
        label = record.version_schema
        if namespace_exists(version_schema_name(schema, label)):
            present.append(label)
            if len(present) > depth:
                return present[depth]
    return None


def namespace_probe(session: Session) -> Callable[[str], bool]:
    stmt = text(
        "select exists (select 1 from information_schema.schemata where schema_name = :name)"
    )

    def _exists(name: str) -> bool:
        return bool(session.execute(stmt, {"name": name}).scalar_one())

    return _exists


class VersionResolver:
    def __init__(self, ledger: Ledger, namespace_exists: Callable[[str], bool]) -> None:
        self.ledger = ledger
        self.namespace_exists = namespace_exists

    def resolve(self, schema: str, depth: int = 0) -> str | None:
        chain = reversed(self.ledger.history(schema))
        return resolve_version(chain, schema, depth, self.namespace_exists)

    def latest_version(self, schema: str) -> str | None:
        return self.resolve(schema, 0)

    def previous_version(self, schema: str) -> str | None:
        return self.resolve(schema, 1)
