"""Pydantic models for the duplicate check configuration."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _BaseConfigModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class FieldOptions(BaseModel):
    """Per-field options of a duplicate check field set."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    similarity: Optional[str] = Field(default=None, alias="similarityAlgorithm")
    similarity_threshold: Optional[float] = Field(default=None, alias="similarityThreshold")
    soundex: bool = Field(default=False, alias="useInSoundex")
    metaphone: bool = Field(default=False, alias="useInMetaphone")

    @field_validator("similarity")
    @classmethod
    def _blank_similarity_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def uses_algorithm(self, algorithm: str) -> bool:
        return bool(getattr(self, algorithm, False))


class DuplicateCheckFieldSet(BaseModel):
    """An ordered group of fields that are checked together."""

    model_config = ConfigDict(frozen=True)

    fields: Dict[str, FieldOptions]

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_mapping(cls, data: Any) -> Any:
        # ``{"lastname": {...}, "zip": {}}`` is the on-disk form
        if isinstance(data, dict) and "fields" not in data:
            return {"fields": {name: (opts or {}) for name, opts in data.items()}}
        return data

    @field_validator("fields")
    @classmethod
    def _check_field_names(cls, value: Dict[str, FieldOptions]) -> Dict[str, FieldOptions]:
        if not value:
            raise ValueError("a duplicate check field set needs at least one field")
        for name in value:
            if not str(name).strip():
                raise ValueError("field names must not be blank")
        return value

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self.fields.keys())


class DuplicatesIndexSettings(_BaseConfigModel):
    enabled: bool = False
    analyze_false_positives: bool = False
    database_path: str = "data/duplicates_index.sqlite"
    lock_path: Optional[str] = None
    page_size: int = Field(default=200, gt=0)
    cluster_size: int = Field(default=2, ge=2)
    strict_rebuild: bool = True
    duplicate_check_fields: List[DuplicateCheckFieldSet] = Field(default_factory=list)
    data_transformers: Dict[str, str] = Field(default_factory=dict)
    plugin_paths: List[str] = Field(default_factory=list)

    @field_validator("duplicate_check_fields")
    @classmethod
    def _unique_field_sets(cls, value: List[DuplicateCheckFieldSet]) -> List[DuplicateCheckFieldSet]:
        seen: set[tuple[str, ...]] = set()
        for field_set in value:
            if field_set.field_names in seen:
                raise ValueError(f"field combination configured twice: {','.join(field_set.field_names)}")
            seen.add(field_set.field_names)
        return value


def validate_settings(payload: Dict[str, Any]) -> DuplicatesIndexSettings:
    return cast(DuplicatesIndexSettings, DuplicatesIndexSettings.model_validate(payload or {}))
