"""Capability interfaces for name-resolved plugins."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class DataTransformer(Protocol):
    """Normalizes a raw record value before it is indexed."""

    def transform(self, value: Any) -> str:
        ...


@runtime_checkable
class SimilarityMatcher(Protocol):
    """Decides whether two normalized values are similar enough."""

    def is_similar(self, value_a: str, value_b: str, threshold: Optional[float] = None) -> bool:
        ...


TransformerFactory = Callable[[], DataTransformer]
MatcherFactory = Callable[[], SimilarityMatcher]
