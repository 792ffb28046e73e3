from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class PayloadError(Exception):
    pass


class MigrationPayload(BaseModel):
    name: Optional[str] = None
    version_schema: Optional[str] = None
    operations: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_operations(self) -> "MigrationPayload":
        for index, operation in enumerate(self.operations):
            if len(operation) != 1:
                raise ValueError(f"operations[{index}] must have exactly one operation kind")
        if self.version_schema is not None and not self.version_schema.strip():
            raise ValueError("version_schema must not be blank")
        return self

    def to_ledger(self) -> dict[str, Any]:
        """Payload as stored in the ``migration`` column."""
        return self.model_dump(exclude={"name"}, exclude_none=True)


def inferred_payload(statement: str, version_schema: str) -> dict[str, Any]:
    return {
        "version_schema": version_schema,
        "operations": [{"sql": {"up": statement}}],
    }


def _load_data(path: Path) -> Dict[str, Any]:
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(path.read_text())
    if path.suffix.lower() == ".json":
        return json.loads(path.read_text())
    raise PayloadError(f"Unsupported migration format: {path.suffix}")


def load_payload(path: Path) -> MigrationPayload:
    data = _load_data(path)
    if not isinstance(data, dict):
        raise PayloadError(f"Migration file must contain an object: {path}")
    data.setdefault("name", path.stem)
    try:
        return MigrationPayload.model_validate(data)
    except ValidationError as exc:
        raise PayloadError(f"Invalid migration file {path}: {exc}") from exc
