"""Record relevance and duplicate-row extraction."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..exceptions import ConfigurationError
from ..plugins.base import DataTransformer
from ..plugins.registry import PluginRegistry
from .field_combination import FieldCombination, FieldCombinationConfig

RelevancePredicate = Callable[[Any], bool]

_MISSING = object()


def record_value(record: Any, field: str, default: Any = _MISSING) -> Any:
    """Read ``field`` from a mapping or attribute-style record."""
    if isinstance(record, Mapping):
        return record.get(field, None if default is _MISSING else default)
    value = getattr(record, field, default)
    if value is _MISSING:
        raise ConfigurationError(
            f"Record {type(record).__name__} has no field '{field}'",
            "UNKNOWN_FIELD",
            details={"field": field},
        )
    return value


def record_id(record: Any) -> int:
    return int(record_value(record, "id"))


def is_relevant(record: Any) -> bool:
    """Only published and active records take part in the index."""
    return bool(record_value(record, "published", False)) and bool(record_value(record, "active", False))


@dataclass(frozen=True)
class Row:
    """Normalized values of one record for one field combination."""

    combination: FieldCombination
    values: Mapping[str, str]

    @property
    def valid(self) -> bool:
        return all(str(value).strip() for value in self.values.values())

    def serialize(self) -> str:
        ordered = {field: self.values[field] for field in self.combination}
        return json.dumps(ordered, ensure_ascii=False, separators=(",", ":"))

    @property
    def data_hash(self) -> str:
        return hashlib.md5(self.serialize().encode("utf-8")).hexdigest()


class RowExtractor:
    """Builds one Row per configured field combination.

    Transformers are resolved once here, so an unknown transformer name is a
    startup failure rather than a per-record one.
    """

    def __init__(
        self,
        config: FieldCombinationConfig,
        registry: PluginRegistry,
        data_transformers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config = config
        transformer_names = dict(data_transformers or {})
        self._transformers: Dict[str, DataTransformer] = {}
        for combination in config.combinations:
            for field in combination:
                if field not in self._transformers:
                    self._transformers[field] = registry.transformer(transformer_names.get(field))

    def transform(self, field: str, raw_value: Any) -> str:
        return self._transformers[field].transform(raw_value)

    def extract_rows(self, record: Any) -> List[Row]:
        rows: List[Row] = []
        for combination in self.config.combinations:
            values = {field: self.transform(field, record_value(record, field)) for field in combination}
            rows.append(Row(combination=combination, values=values))
        return rows

    def extract_valid_rows(self, record: Any) -> List[Row]:
        return [row for row in self.extract_rows(record) if row.valid]
