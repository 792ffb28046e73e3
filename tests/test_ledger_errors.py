from __future__ import annotations

from types import SimpleNamespace

import pytest

from ledger.errors import (
    ACTIVE_MIGRATION,
    DANGLING_PARENT,
    DUPLICATE_ROOT,
    NON_LINEAR_HISTORY,
    UNKNOWN,
    AlreadyDone,
    AmbiguousSchema,
    NotFound,
    translate_integrity_error,
)


class _DriverError(Exception):
    def __init__(self, constraint):
        super().__init__(f'duplicate key value violates unique constraint "{constraint}"')
        self.diag = SimpleNamespace(constraint_name=constraint)


def _wrapped(constraint):
    return SimpleNamespace(orig=_DriverError(constraint))


@pytest.mark.parametrize(
    "constraint, code",
    [
        ("only_one_active", ACTIVE_MIGRATION),
        ("only_first_migration_without_parent", DUPLICATE_ROOT),
        ("history_is_linear", NON_LINEAR_HISTORY),
        ("migrations_parent_fkey", DANGLING_PARENT),
        ("something_else", UNKNOWN),
    ],
)
def test_constraint_names_map_to_codes(constraint, code):
    error = translate_integrity_error(_wrapped(constraint), "public", "02_add_column")
    assert error.code == code
    assert error.schema == "public"


def test_active_migration_message_is_specific():
    error = translate_integrity_error(_wrapped("only_one_active"), "public", "02_add_column")
    assert str(error) == 'a migration is already in progress for schema "public"'


def test_unknown_constraint_keeps_driver_detail():
    error = translate_integrity_error(_wrapped("something_else"), "public", "x")
    assert "something_else" in str(error)


def test_exception_without_diag():
    error = translate_integrity_error(RuntimeError("boom"), "public")
    assert error.code == UNKNOWN


def test_messages():
    assert str(NotFound("public", "x")) == 'migration "x" not found in schema "public"'
    assert str(AlreadyDone("public", "x")) == 'migration "x" in schema "public" is already done'
    assert "a, b" in str(AmbiguousSchema(("a", "b")))
