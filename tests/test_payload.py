from __future__ import annotations

import json
from pathlib import Path

import pytest

from ledger.payload import MigrationPayload, PayloadError, inferred_payload, load_payload


def test_yaml_migration_file(tmp_path: Path):
    path = tmp_path / "02_rename_review.yaml"
    path.write_text(
        """
version_schema: reviews_v2
operations:
  - rename_column:
      table: reviews
      from: review
      to: opinion
"""
    )
    payload = load_payload(path)
    assert payload.name == "02_rename_review"
    assert payload.to_ledger() == {
        "version_schema": "reviews_v2",
        "operations": [{"rename_column": {"table": "reviews", "from": "review", "to": "opinion"}}],
    }


def test_json_migration_file_without_version_schema(tmp_path: Path):
    path = tmp_path / "01_create.json"
    path.write_text(json.dumps({"name": "01_create_users", "operations": [{"sql": {"up": "select 1"}}]}))
    payload = load_payload(path)
    assert payload.name == "01_create_users"
    assert "version_schema" not in payload.to_ledger()


def test_operation_must_have_single_kind(tmp_path: Path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"operations": [{"sql": {}, "drop_table": {}}]}))
    with pytest.raises(PayloadError):
        load_payload(path)


def test_unsupported_format(tmp_path: Path):
    path = tmp_path / "m.toml"
    path.write_text("")
    with pytest.raises(PayloadError):
        load_payload(path)


def test_blank_version_schema_is_rejected():
    with pytest.raises(ValueError):
        MigrationPayload(version_schema="  ")


def test_inferred_payload_shape():
    assert inferred_payload("drop table t", "sql_0123abcd") == {
        "version_schema": "sql_0123abcd",
        "operations": [{"sql": {"up": "drop table t"}}],
    }
