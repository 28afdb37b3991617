"""
Duplicates Index - customer duplicate detection engine.

Keeps a fingerprint index of normalized customer fields, finds exact and
phonetic near-duplicates, and persists them as reviewable clusters.
"""

from .app.duplicates_service import DuplicatesIndexService, RebuildReport
from .config import DuplicatesIndexSettings, load_settings
from .exceptions import (
    BaseError,
    ConfigurationError,
    IndexLockedError,
    IndexRebuildError,
    RecordNotFoundError,
    ResolutionError,
    TransientStorageError,
)
from .logging_config import setup_logging

__version__ = "1.0.0"

__all__ = [
    "DuplicatesIndexService",
    "RebuildReport",
    "DuplicatesIndexSettings",
    "load_settings",
    "BaseError",
    "ConfigurationError",
    "IndexLockedError",
    "IndexRebuildError",
    "RecordNotFoundError",
    "ResolutionError",
    "TransientStorageError",
    "setup_logging",
]
