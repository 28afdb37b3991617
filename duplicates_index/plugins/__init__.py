"""Plugin registry helpers."""

from .base import DataTransformer, SimilarityMatcher
from .registry import (
    PluginRegistry,
    create_builtin_registry,
    get_plugin_registry,
)

__all__ = [
    "DataTransformer",
    "SimilarityMatcher",
    "PluginRegistry",
    "create_builtin_registry",
    "get_plugin_registry",
]
