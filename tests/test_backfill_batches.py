from __future__ import annotations

from contextlib import contextmanager

import pytest

from backfill.backfill import Backfill, add_needs_backfill_column_sql, build_batch_sql


def test_first_batch_sql():
    sql = build_batch_sql("public", "reviews", ["id"], first_batch=True)
    assert sql == (
        'WITH batch AS (SELECT "id" FROM "public"."reviews" WHERE "_pgroll_needs_backfill" '
        'ORDER BY "id" LIMIT :batch_size FOR NO KEY UPDATE), '
        'updated AS (UPDATE "public"."reviews" AS t SET "_pgroll_needs_backfill" = true '
        'FROM batch WHERE t."id" = batch."id" RETURNING t."id") '
        'SELECT "id" FROM updated ORDER BY "id"'
    )


def test_next_batch_uses_keyset_on_composite_key():
    sql = build_batch_sql("public", "reviews", ["tenant", "id"], first_batch=False)
    assert '("tenant", "id") > (:pk_0, :pk_1)' in sql
    assert 't."tenant" = batch."tenant" AND t."id" = batch."id"' in sql


def test_table_without_primary_key_is_rejected():
    with pytest.raises(ValueError):
        build_batch_sql("public", "reviews", [], first_batch=True)


def test_needs_backfill_column_sql():
    assert add_needs_backfill_column_sql("public", "reviews") == (
        'ALTER TABLE "public"."reviews" ADD COLUMN IF NOT EXISTS "_pgroll_needs_backfill" boolean DEFAULT true'
    )


class _Result:
    def __init__(self, rows):
        self._rows = rows

    def all(self):
        return self._rows


class _FakeSession:
    def __init__(self, pages, calls):
        self._pages = pages
        self._calls = calls

    def execute(self, stmt, params):
        self._calls.append(dict(params))
        return _Result(self._pages.pop(0) if self._pages else [])

    def commit(self):
        pass


def test_run_walks_batches_until_short_page():
    pages = [[(1,), (2,)], [(3,), (4,)], [(5,)]]
    calls: list[dict] = []

    @contextmanager
    def factory():
        yield _FakeSession(pages, calls)

    progress: list[int] = []
    result = Backfill(factory, batch_size=2, batch_delay_s=0, on_batch=progress.append).run(
        "public", "reviews", ["id"]
    )
    assert result.rows == 5
    assert result.batches == 3
    assert progress == [2, 4, 5]
    assert calls[0] == {"batch_size": 2}
    assert calls[1] == {"batch_size": 2, "pk_0": 2}
    assert calls[2] == {"batch_size": 2, "pk_0": 4}


def test_run_with_nothing_to_do():
    calls: list[dict] = []

    @contextmanager
    def factory():
        yield _FakeSession([], calls)

    result = Backfill(factory, batch_size=10, batch_delay_s=0).run("public", "reviews", ["id"])
    assert result.rows == 0
    assert result.batches == 0
    assert len(calls) == 1


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        Backfill(lambda: None, batch_size=0)
