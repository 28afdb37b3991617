"""SQLite persistence for the duplicates index."""

from .store import (
    BucketRow,
    ClusterRecord,
    DuplicatesStore,
    FalsePositiveRecord,
    FingerprintRecord,
    MEMORY_DATABASE,
)

__all__ = [
    "BucketRow",
    "ClusterRecord",
    "DuplicatesStore",
    "FalsePositiveRecord",
    "FingerprintRecord",
    "MEMORY_DATABASE",
]
