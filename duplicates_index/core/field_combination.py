"""Field combination identity and the per-engine config lookup."""

from __future__ import annotations

import json
import zlib
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Tuple

from ..config.models import DuplicateCheckFieldSet, FieldOptions


@dataclass(frozen=True, order=True)
class FieldCombination:
    """Ordered set of field names that are checked together.

    Stored as a JSON array so separator characters inside field names can
    never make two combinations collide. ``str()`` gives the human-readable
    ``"lastname,zip"`` form used in logs and review views.
    """

    fields: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError("a field combination needs at least one field")
        if len(set(self.fields)) != len(self.fields):
            raise ValueError(f"duplicate field in combination: {self.fields!r}")

    @classmethod
    def of(cls, *fields: str) -> "FieldCombination":
        return cls(tuple(fields))

    @classmethod
    def from_storage(cls, raw: str) -> "FieldCombination":
        return cls(tuple(json.loads(raw)))

    def to_storage(self) -> str:
        return json.dumps(list(self.fields), ensure_ascii=False, separators=(",", ":"))

    @property
    def storage_hash(self) -> int:
        return zlib.crc32(self.to_storage().encode("utf-8"))

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __str__(self) -> str:
        return ",".join(self.fields)


class FieldCombinationConfig:
    """Immutable lookup from a field combination to its field options.

    Built once per engine; safe to share between worker threads.
    """

    def __init__(self, field_sets: Iterable[DuplicateCheckFieldSet]) -> None:
        ordered: Dict[FieldCombination, Mapping[str, FieldOptions]] = {}
        for field_set in field_sets:
            combination = FieldCombination(field_set.field_names)
            ordered[combination] = MappingProxyType(dict(field_set.fields))
        self._by_combination: Mapping[FieldCombination, Mapping[str, FieldOptions]] = MappingProxyType(ordered)

    @property
    def combinations(self) -> Tuple[FieldCombination, ...]:
        return tuple(self._by_combination.keys())

    def options_for(self, combination: FieldCombination) -> Mapping[str, FieldOptions]:
        """Field options of ``combination``; empty when it is no longer configured."""
        return self._by_combination.get(combination, MappingProxyType({}))

    def items(self):
        return self._by_combination.items()

    def __contains__(self, combination: object) -> bool:
        return combination in self._by_combination

    def __len__(self) -> int:
        return len(self._by_combination)
