"""Config schema validation helpers."""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional, Tuple

import jsonschema

DEFAULT_SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "duplicates-schema.json")


def validate_config_schema(config_data: Dict[str, Any], schema_path: Optional[str] = None) -> Tuple[bool, Optional[str]]:
    if schema_path is None:
        schema_path = DEFAULT_SCHEMA_PATH

    if not os.path.exists(schema_path):
        return True, None

    with open(schema_path, "r", encoding="utf-8") as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=config_data, schema=schema)
        return True, None
    except jsonschema.ValidationError as exc:
        return False, exc.message
