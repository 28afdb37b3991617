"""Config I/O utilities."""

from __future__ import annotations

import json
import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import pydantic
import yaml

from ..exceptions import ConfigurationError, ValidationError
from .models import DuplicatesIndexSettings, validate_settings
from .schema import validate_config_schema

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DUPLICATES_INDEX_CONFIG"


def get_config_path() -> Optional[str]:
    raw = os.environ.get(CONFIG_ENV_VAR, "").strip()
    return raw or None


def _parse_config_file(path: Path, raw: str) -> Any:
    if path.suffix.lower() == ".json":
        return json.loads(raw)
    return yaml.safe_load(raw)


def load_config_data(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Read the raw configuration mapping.

    Without an explicit path the ``DUPLICATES_INDEX_CONFIG`` environment
    variable is consulted; with neither, an empty mapping (all defaults) is
    returned.
    """
    if config_path is None:
        config_path = get_config_path()
    if config_path is None:
        return {}

    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError("Config file not found", file_path=str(path))
    try:
        data = _parse_config_file(path, path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Config file could not be parsed: {exc}", file_path=str(path)) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Config root must be a mapping", file_path=str(path))
    return data


def settings_from_dict(config_data: Dict[str, Any]) -> DuplicatesIndexSettings:
    ok, error = validate_config_schema(config_data)
    if not ok:
        raise ValidationError(f"Config schema validation failed: {error}")
    try:
        return validate_settings(config_data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field_name = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(f"Invalid duplicates index config: {exc}", field_name=field_name) from exc


def load_settings(config_path: Optional[str] = None) -> DuplicatesIndexSettings:
    data = load_config_data(config_path)
    settings = settings_from_dict(data)
    logger.debug(
        "Loaded duplicates index config: %d field set(s), enabled=%s",
        len(settings.duplicate_check_fields),
        settings.enabled,
    )
    return settings


def save_settings(settings: DuplicatesIndexSettings, config_path: str) -> None:
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump(mode="json", exclude_none=True)
    data["duplicate_check_fields"] = [
        {
            name: opts.model_dump(exclude_defaults=True)
            for name, opts in field_set.fields.items()
        }
        for field_set in settings.duplicate_check_fields
    ]
    if path.suffix.lower() == ".json":
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
