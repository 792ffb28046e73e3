from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from ledger.memory import InMemoryLedger
from ledger.record import MigrationRecord
from versions.resolver import VersionResolver, resolve_version, version_schema_name


T0 = datetime(2026, 1, 1, tzinfo=UTC)


def _ledger(*steps):
    ledger = InMemoryLedger()
    parent = None
    for offset, (name, label, kind) in enumerate(steps):
        migration = {"operations": []}
        if label is not None:
            migration["version_schema"] = label
        ledger.insert(
            MigrationRecord(
                schema="public",
                name=name,
                migration=migration,
                parent=parent,
                done=True,
                migration_type=kind,
                created_at=T0 + timedelta(seconds=offset),
            )
        )
        parent = name
    return ledger


def _resolver(ledger, namespaces):
    return VersionResolver(ledger, lambda name: name in namespaces)


def test_version_schema_name():
    assert version_schema_name("public", "01_create") == "public_01_create"


def test_latest_and_previous_present_versions():
    ledger = _ledger(("01_create", None, "pgroll"), ("02_add", None, "pgroll"))
    resolver = _resolver(ledger, {"public_01_create", "public_02_add"})
    assert resolver.latest_version("public") == "02_add"
    assert resolver.previous_version("public") == "01_create"
    assert resolver.resolve("public", 2) is None


def test_inferred_steps_without_namespace_are_skipped():
    ledger = _ledger(
        ("01_create", None, "pgroll"),
        ("02_add", None, "pgroll"),
        ("02_add_20260101000000000000", "sql_1a2b3c4d", "inferred"),
    )
    resolver = _resolver(ledger, {"public_01_create", "public_02_add"})
    assert ledger.latest("public").name == "02_add_20260101000000000000"
    assert resolver.latest_version("public") == "02_add"
    assert resolver.previous_version("public") == "01_create"


def test_custom_version_schema_label():
    ledger = _ledger(("01_create", None, "pgroll"), ("02_rename", "shared", "pgroll"))
    resolver = _resolver(ledger, {"public_01_create", "public_shared"})
    assert resolver.latest_version("public") == "shared"


def test_dropped_old_versions_do_not_count():
    ledger = _ledger(("01", None, "baseline"), ("02", None, "pgroll"), ("03", None, "pgroll"))
    resolver = _resolver(ledger, {"public_03"})
    assert resolver.latest_version("public") == "03"
    assert resolver.previous_version("public") is None


def test_empty_history():
    resolver = _resolver(InMemoryLedger(), {"public_01"})
    assert resolver.latest_version("public") is None


def test_negative_depth_is_rejected():
    with pytest.raises(ValueError):
        resolve_version([], "public", -1, lambda name: True)
