from __future__ import annotations

import pytest

from backfill.trigger import (
    NEEDS_BACKFILL_COLUMN,
    Column,
    GenerationError,
    TriggerConfig,
    TriggerDirection,
    build_function,
    build_trigger,
    install_trigger,
)


REVIEW_COLUMNS = {
    "id": Column(name="id", type="int"),
    "username": Column(name="username", type="text"),
    "product": Column(name="product", type="text"),
    "review": Column(name="review", type="text"),
}

DECLARE_BLOCK = """    DECLARE
      "id" "public"."reviews"."id"%TYPE := NEW."id";
      "product" "public"."reviews"."product"%TYPE := NEW."product";
      "review" "public"."reviews"."review"%TYPE := NEW."review";
      "username" "public"."reviews"."username"%TYPE := NEW."username";
      latest_schema text;
      search_path text;
"""


def _config(**overrides) -> TriggerConfig:
    values = dict(
        name="triggerName",
        direction=TriggerDirection.UP,
        columns=REVIEW_COLUMNS,
        schema_name="public",
        latest_schema="public_01_migration_name",
        table_name="reviews",
        physical_column="_pgroll_new_review",
        needs_backfill_column=NEEDS_BACKFILL_COLUMN,
        sql=["product || 'is good'"],
    )
    values.update(overrides)
    return TriggerConfig(**values)


def test_simple_up_trigger():
    expected = (
        """CREATE OR REPLACE FUNCTION "triggerName"()
    RETURNS TRIGGER
    LANGUAGE PLPGSQL
    AS $$
"""
        + DECLARE_BLOCK
        + """    BEGIN
      SELECT current_setting
        INTO search_path
        FROM current_setting('search_path');

      IF search_path != 'public_01_migration_name' THEN
        NEW."_pgroll_new_review" = product || 'is good';
        NEW."_pgroll_needs_backfill" = false;
      END IF;

      RETURN NEW;
    END; $$
"""
    )
    assert build_function(_config()) == expected


def test_multiple_expressions_apply_in_order():
    config = _config(
        sql=[
            "product || 'is good'",
            "CASE WHEN NEW.\"_pgroll_new_review\" = 'bad' THEN 'bad review' ELSE 'good review' END",
        ]
    )
    sql = build_function(config)
    first = "        NEW.\"_pgroll_new_review\" = product || 'is good';\n"
    second = (
        "        NEW.\"_pgroll_new_review\" = CASE WHEN NEW.\"_pgroll_new_review\" = 'bad' "
        "THEN 'bad review' ELSE 'good review' END;\n"
    )
    assert first + second + '        NEW."_pgroll_needs_backfill" = false;\n' in sql


def test_simple_down_trigger():
    config = _config(
        direction=TriggerDirection.DOWN,
        physical_column="review",
        sql=['NEW."_pgroll_new_review"'],
    )
    expected = (
        """CREATE OR REPLACE FUNCTION "triggerName"()
    RETURNS TRIGGER
    LANGUAGE PLPGSQL
    AS $$
"""
        + DECLARE_BLOCK
        + """    BEGIN
      SELECT current_setting
        INTO search_path
        FROM current_setting('search_path');

      IF search_path = 'public_01_migration_name' THEN
        NEW."review" = NEW."_pgroll_new_review";
        NEW."_pgroll_needs_backfill" = false;
      END IF;

      RETURN NEW;
    END; $$
"""
    )
    assert build_function(config) == expected


def test_down_trigger_with_aliased_column():
    columns = dict(REVIEW_COLUMNS)
    columns["rating"] = Column(name="_pgroll_new_rating", type="integer")
    config = _config(
        direction=TriggerDirection.DOWN,
        columns=columns,
        physical_column="rating",
        sql=["CAST(rating as text)"],
    )
    sql = build_function(config)
    assert (
        '      "product" "public"."reviews"."product"%TYPE := NEW."product";\n'
        '      "rating" "public"."reviews"."_pgroll_new_rating"%TYPE := NEW."_pgroll_new_rating";\n'
        '      "review" "public"."reviews"."review"%TYPE := NEW."review";\n'
    ) in sql
    assert '        NEW."rating" = CAST(rating as text);\n' in sql


def test_build_trigger():
    expected = """CREATE OR REPLACE TRIGGER "triggerName"
    BEFORE UPDATE OR INSERT
    ON "reviews"
    FOR EACH ROW
    EXECUTE PROCEDURE "triggerName"();
"""
    assert build_trigger(TriggerConfig(name="triggerName", table_name="reviews")) == expected


def test_identifiers_and_latest_schema_are_quoted():
    config = _config(name='odd"name', latest_schema="it's")
    sql = build_function(config)
    assert sql.startswith('CREATE OR REPLACE FUNCTION "odd""name"()')
    assert "IF search_path != 'it''s' THEN" in sql


@pytest.mark.parametrize(
    "overrides",
    [
        {"sql": []},
        {"sql": ["  "]},
        {"name": ""},
        {"table_name": ""},
        {"physical_column": ""},
        {"latest_schema": ""},
        {"direction": "sideways"},
    ],
)
def test_inconsistent_config_is_rejected(overrides):
    with pytest.raises(GenerationError):
        build_function(_config(**overrides))


class _Result:
    def __init__(self, value):
        self._value = value

    def scalar_one(self):
        return self._value


class _RecordingSession:
    def __init__(self):
        self.search_path = '"$user", public'
        self.log: list[tuple[str, str]] = []

    def execute(self, stmt, params=None):
        sql = str(stmt)
        if "set_config('search_path'" in sql:
            self.search_path = params["path"]
        elif "current_setting('search_path')" in sql:
            return _Result(self.search_path)
        return _Result(None)

    def connection(self):
        return self

    def exec_driver_sql(self, sql):
        self.log.append((self.search_path, sql.splitlines()[0]))


def test_install_creates_objects_in_the_table_schema():
    session = _RecordingSession()
    install_trigger(session, _config(schema_name="app"))
    assert session.log == [
        ('"app"', 'CREATE OR REPLACE FUNCTION "triggerName"()'),
        ('"app"', 'CREATE OR REPLACE TRIGGER "triggerName"'),
    ]
    assert session.search_path == '"$user", public'
