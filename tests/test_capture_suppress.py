from __future__ import annotations

import pytest
from sqlalchemy import exc as sa_exc

from capture.suppress import SUPPRESS_SETTING, inference_suppressed, suppress_inference
from ledger.errors import ACTIVE_MIGRATION, IntegrityError, NotFound
from ledger.memory import InMemoryLedger
from ledger.record import MigrationRecord


class _Result:
    def __init__(self, value):
        self._value = value

    def scalar(self):
        return self._value


class _FakeBind:
    """Keeps transaction-local settings in a dict."""

    def __init__(self):
        self.settings: dict[str, str] = {}
        self.writes: list[str] = []

    def execute(self, stmt, params):
        if "set_config" in str(stmt):
            self.settings[params["name"]] = params["value"]
            self.writes.append(params["value"])
            return _Result(params["value"])
        return _Result(self.settings.get(params["name"]))


def test_flag_is_set_inside_the_block_only():
    bind = _FakeBind()
    with suppress_inference(bind):
        assert inference_suppressed(bind)
    assert not inference_suppressed(bind)
    assert bind.writes == ["TRUE", ""]


def test_ledger_errors_pass_through_unchanged():
    bind = _FakeBind()
    ledger = InMemoryLedger()
    with pytest.raises(NotFound):
        with suppress_inference(bind):
            ledger.get("public", "missing")
    assert bind.settings[SUPPRESS_SETTING] == ""


def test_active_migration_error_keeps_its_message():
    bind = _FakeBind()
    ledger = InMemoryLedger()
    ledger.insert(MigrationRecord(schema="public", name="01", done=False))
    with pytest.raises(IntegrityError) as excinfo:
        with suppress_inference(bind):
            ledger.insert(MigrationRecord(schema="public", name="02", parent="01", done=False))
    assert excinfo.value.code == ACTIVE_MIGRATION
    assert str(excinfo.value) == 'a migration is already in progress for schema "public"'


def test_failed_statement_leaves_reset_to_rollback():
    bind = _FakeBind()
    driver_error = sa_exc.IntegrityError("insert", {}, Exception("duplicate key"))
    with pytest.raises(IntegrityError):
        with suppress_inference(bind):
            raise IntegrityError(ACTIVE_MIGRATION, "public", "02") from driver_error
    assert bind.writes == ["TRUE"]
