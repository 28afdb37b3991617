"""
Duplicates index - core package.

Field-combination identity, the combination enumerator, phonetic keys,
record extraction and the transactional index updater.
"""

from .combinations import combinations
from .field_combination import FieldCombination, FieldCombinationConfig

__all__ = [
    "combinations",
    "FieldCombination",
    "FieldCombinationConfig",
]
