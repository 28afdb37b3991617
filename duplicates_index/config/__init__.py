"""Duplicates index configuration package."""

from .io import get_config_path, load_config_data, load_settings, save_settings, settings_from_dict
from .models import DuplicateCheckFieldSet, DuplicatesIndexSettings, FieldOptions
from .schema import validate_config_schema

__all__ = [
    "DuplicateCheckFieldSet",
    "DuplicatesIndexSettings",
    "FieldOptions",
    "get_config_path",
    "load_config_data",
    "load_settings",
    "save_settings",
    "settings_from_dict",
    "validate_config_schema",
]
