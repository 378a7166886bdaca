from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

SCHEMA_VERSION = "1.0.0"
DEFAULT_SCHEMA_DIR = Path(__file__).resolve().parents[1] / "schemas" / SCHEMA_VERSION


@lru_cache(maxsize=None)
def _load_schema(schema_path: Path) -> dict[str, Any]:
    return json.loads(schema_path.read_text(encoding="utf-8"))


class SchemaValidator:
    def __init__(self, schema_dir: Path | None = None) -> None:
        self.schema_dir = schema_dir or DEFAULT_SCHEMA_DIR

    def validate(self, payload: dict[str, Any], schema_name: str) -> list[str]:
        schema = _load_schema(self.schema_dir / schema_name)
        validator = Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
        return [f"{'/'.join(map(str, err.path))}: {err.message}" for err in errors]
