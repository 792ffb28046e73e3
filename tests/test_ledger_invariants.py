from __future__ import annotations

from ledger.invariants import check_history
from ledger.record import MigrationRecord, walk_parents


def _r(name, parent=None, done=True):
    return MigrationRecord(schema="public", name=name, parent=parent, done=done)


def test_linear_history_has_no_problems():
    records = [_r("a"), _r("b", "a"), _r("c", "b", done=False)]
    assert check_history(records) == []
    assert check_history([]) == []


def test_two_roots():
    problems = check_history([_r("a"), _r("b")])
    assert any("exactly one root" in p for p in problems)


def test_fork():
    problems = check_history([_r("a"), _r("b", "a"), _r("c", "a")])
    assert problems == ["migration a has 2 children"]


def test_missing_parent():
    problems = check_history([_r("a"), _r("b", "gone")])
    assert "migration b references missing parent gone" in problems


def test_two_active():
    problems = check_history([_r("a", done=False), _r("b", "a", done=False)])
    assert problems == ["more than one active migration: ['a', 'b']"]


def test_detached_cycle_is_not_a_chain():
    records = [_r("a"), _r("b", "a"), _r("c", "d"), _r("d", "c")]
    assert check_history(records) == ["history is not a single chain from root to tip"]


def test_walk_parents_stops_on_cycle():
    records = {"c": _r("c", "d"), "d": _r("d", "c")}
    assert [r.name for r in walk_parents(records, "c")] == ["c", "d"]
