"""Name-based registry for similarity matchers and data transformers."""

from __future__ import annotations

import importlib.util
import logging
import os
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import ConfigurationError
from .base import DataTransformer, MatcherFactory, SimilarityMatcher, TransformerFactory
from .matchers import BUILTIN_MATCHERS
from .transformers import BUILTIN_TRANSFORMERS, DEFAULT_TRANSFORMER

PLUGIN_PATHS_ENV_VAR = "DUPLICATES_INDEX_PLUGIN_PATHS"

logger = logging.getLogger(__name__)


@dataclass
class PluginRegistry:
    matcher_factories: Dict[str, MatcherFactory] = field(default_factory=dict)
    transformer_factories: Dict[str, TransformerFactory] = field(default_factory=dict)
    _matchers: Dict[str, SimilarityMatcher] = field(default_factory=dict, repr=False)
    _transformers: Dict[str, DataTransformer] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def register_matcher(self, name: str, factory: MatcherFactory) -> None:
        with self._lock:
            self.matcher_factories[str(name)] = factory
            self._matchers.pop(str(name), None)

    def register_transformer(self, name: str, factory: TransformerFactory) -> None:
        with self._lock:
            self.transformer_factories[str(name)] = factory
            self._transformers.pop(str(name), None)

    def has_matcher(self, name: str) -> bool:
        return name in self.matcher_factories

    def has_transformer(self, name: str) -> bool:
        return name in self.transformer_factories

    def matcher(self, name: str) -> SimilarityMatcher:
        """Memoized matcher instance for ``name``."""
        with self._lock:
            instance = self._matchers.get(name)
            if instance is None:
                factory = self.matcher_factories.get(name)
                if factory is None:
                    raise ConfigurationError(
                        f"Unknown similarity matcher: {name}",
                        "UNKNOWN_MATCHER",
                        details={"name": name, "available": sorted(self.matcher_factories)},
                    )
                instance = factory()
                if not isinstance(instance, SimilarityMatcher):
                    raise ConfigurationError(f"Matcher {name} does not implement is_similar()", "UNKNOWN_MATCHER")
                self._matchers[name] = instance
            return instance

    def transformer(self, name: Optional[str] = None) -> DataTransformer:
        """Memoized transformer instance for ``name`` (default: ``standard``)."""
        name = name or DEFAULT_TRANSFORMER
        with self._lock:
            instance = self._transformers.get(name)
            if instance is None:
                factory = self.transformer_factories.get(name)
                if factory is None:
                    raise ConfigurationError(
                        f"Unknown data transformer: {name}",
                        "UNKNOWN_TRANSFORMER",
                        details={"name": name, "available": sorted(self.transformer_factories)},
                    )
                instance = factory()
                if not isinstance(instance, DataTransformer):
                    raise ConfigurationError(f"Transformer {name} does not implement transform()", "UNKNOWN_TRANSFORMER")
                self._transformers[name] = instance
            return instance


def create_builtin_registry() -> PluginRegistry:
    registry = PluginRegistry()
    for name, factory in BUILTIN_MATCHERS.items():
        registry.register_matcher(name, factory)
    for name, factory in BUILTIN_TRANSFORMERS.items():
        registry.register_transformer(name, factory)
    return registry


_REGISTRY_CACHE: Optional[PluginRegistry] = None
_REGISTRY_PATHS: Optional[tuple[str, ...]] = None
_REGISTRY_LOCK = threading.Lock()


def _iter_plugin_paths(paths: Optional[Iterable[str]]) -> List[Path]:
    env_paths = os.environ.get(PLUGIN_PATHS_ENV_VAR, "").strip()
    if env_paths:
        return [Path(part.strip()) for part in env_paths.split(";") if part.strip()]
    return [Path(str(entry)) for entry in (paths or []) if entry]


def _load_module_from_path(path: Path) -> Optional[Any]:
    if not path.is_file():
        return None
    if path.name.startswith("_") or path.suffix.lower() != ".py":
        return None
    module_name = f"duplicates_index_plugin_{path.stem}_{abs(hash(str(path)))}"
    try:
        spec = importlib.util.spec_from_file_location(module_name, str(path))
        if spec is None or spec.loader is None:
            return None
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module
    except Exception as exc:
        sys.modules.pop(module_name, None)
        logger.warning("Plugin load failed for %s: %s", path, exc)
        return None


def get_plugin_registry(paths: Optional[Iterable[str]] = None, *, force_reload: bool = False) -> PluginRegistry:
    """Registry with the built-ins plus every plugin module found in ``paths``.

    Each ``*.py`` file may define ``register(registry)``. The result is cached
    per resolved path set.
    """
    plugin_paths = _iter_plugin_paths(paths)
    normalized = tuple(str(path.resolve()) for path in plugin_paths)

    global _REGISTRY_CACHE, _REGISTRY_PATHS
    with _REGISTRY_LOCK:
        if not force_reload and _REGISTRY_CACHE is not None and _REGISTRY_PATHS == normalized:
            return _REGISTRY_CACHE

        registry = create_builtin_registry()
        for root in plugin_paths:
            if not root.is_dir():
                logger.warning("Plugin path is not a directory: %s", root)
                continue
            for plugin_path in sorted(root.glob("*.py")):
                module = _load_module_from_path(plugin_path)
                if module is None:
                    continue
                register = getattr(module, "register", None)
                if callable(register):
                    try:
                        register(registry)
                    except Exception as exc:
                        logger.warning("Plugin register failed for %s: %s", plugin_path, exc)

        _REGISTRY_CACHE = registry
        _REGISTRY_PATHS = normalized
        return registry
