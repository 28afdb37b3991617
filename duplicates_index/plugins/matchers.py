"""Built-in similarity matchers.

Each matcher compares two already-normalized values. Threshold semantics
depend on the matcher and are documented on the class; ``None`` selects the
matcher's default.
"""

from __future__ import annotations

from typing import Callable, Optional

from fuzzywuzzy import fuzz

from ..core.phonetic import encode


class _RatioMatcher:
    """Similar when a fuzzywuzzy score (0-100) reaches the threshold."""

    default_threshold: float = 90.0
    scorer: Callable[[str, str], int] = staticmethod(fuzz.ratio)

    def is_similar(self, value_a: str, value_b: str, threshold: Optional[float] = None) -> bool:
        if not value_a or not value_b:
            return False
        limit = self.default_threshold if threshold is None else float(threshold)
        return self.scorer(value_a, value_b) >= limit


class SimilarTextMatcher(_RatioMatcher):
    """Plain edit-based ratio (``fuzz.ratio``)."""


class TokenSortMatcher(_RatioMatcher):
    """Word order insensitive ratio (``fuzz.token_sort_ratio``)."""

    scorer = staticmethod(fuzz.token_sort_ratio)


class PartialMatcher(_RatioMatcher):
    """Best substring ratio (``fuzz.partial_ratio``)."""

    scorer = staticmethod(fuzz.partial_ratio)


class _PhoneticMatcher:
    algorithm = ""

    def is_similar(self, value_a: str, value_b: str, threshold: Optional[float] = None) -> bool:
        code_a = encode(self.algorithm, value_a)
        return bool(code_a) and code_a == encode(self.algorithm, value_b)


class SoundexMatcher(_PhoneticMatcher):
    """Equal soundex codes; threshold is ignored."""

    algorithm = "soundex"


class MetaphoneMatcher(_PhoneticMatcher):
    """Equal metaphone codes; threshold is ignored."""

    algorithm = "metaphone"


class ExactMatcher:
    def is_similar(self, value_a: str, value_b: str, threshold: Optional[float] = None) -> bool:
        return bool(value_a) and value_a == value_b


class BirthDateMatcher:
    """Dates typed slightly wrong.

    Similar when equal, when day and month are swapped, or when at most
    ``threshold`` (default 1) digits differ between two ``YYYY-MM-DD`` values.
    """

    default_threshold = 1

    def is_similar(self, value_a: str, value_b: str, threshold: Optional[float] = None) -> bool:
        if not value_a or not value_b:
            return False
        if value_a == value_b:
            return True
        parts_a = value_a.split("-")
        parts_b = value_b.split("-")
        if len(parts_a) != 3 or len(parts_b) != 3:
            return False
        if parts_a[0] == parts_b[0] and parts_a[1] == parts_b[2] and parts_a[2] == parts_b[1]:
            return True
        if len(value_a) != len(value_b):
            return False
        limit = self.default_threshold if threshold is None else int(threshold)
        differing = sum(1 for a, b in zip(value_a, value_b) if a != b)
        return differing <= limit


BUILTIN_MATCHERS = {
    "similar_text": SimilarTextMatcher,
    "token_sort": TokenSortMatcher,
    "partial": PartialMatcher,
    "soundex": SoundexMatcher,
    "metaphone": MetaphoneMatcher,
    "exact": ExactMatcher,
    "birth_date": BirthDateMatcher,
}
