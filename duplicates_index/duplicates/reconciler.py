"""Reconcile detected candidates with the persisted potential duplicates."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Sequence, Set

from ..core.field_combination import FieldCombination
from ..database.store import DuplicatesStore

logger = logging.getLogger(__name__)


def canonical_key(member_ids: Iterable[int]) -> str:
    """Stable cluster identity: ids sorted numerically, comma joined."""
    return ",".join(str(member_id) for member_id in sorted(int(m) for m in member_ids))


@dataclass(frozen=True)
class ReconcileReport:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    purged: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.unchanged

    def to_dict(self) -> Dict[str, int]:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "purged": self.purged,
        }


def merge_candidates(
    *results: Mapping[FieldCombination, Iterable[Sequence[int]]],
) -> Dict[str, Set[FieldCombination]]:
    """Fold detector outputs into ``canonical key -> field combinations``."""
    merged: Dict[str, Set[FieldCombination]] = defaultdict(set)
    for result in results:
        for combination, clusters in result.items():
            for member_ids in clusters:
                merged[canonical_key(member_ids)].add(combination)
    return dict(merged)


class ClusterReconciler:
    """Persists candidates keyed by member set.

    Existing clusters keep their id, ``declined`` flag and ``created_at``.
    Clusters not produced by this run are deleted. The whole run is one
    transaction, and the set of touched ids is built in-process so concurrent
    index updates cannot widen the purge.
    """

    def __init__(self, store: DuplicatesStore) -> None:
        self.store = store

    def reconcile(self, *results: Mapping[FieldCombination, Iterable[Sequence[int]]]) -> ReconcileReport:
        candidates = merge_candidates(*results)
        inserted = updated = unchanged = 0
        touched: Set[int] = set()

        with self.store.transaction():
            for key in sorted(candidates, key=_key_order):
                combos = candidates[key]
                existing = self.store.cluster_by_key(key)
                if existing is None:
                    member_ids = [int(part) for part in key.split(",")]
                    touched.add(self.store.insert_cluster(key, member_ids, combos))
                    inserted += 1
                    continue
                touched.add(existing.id)
                if set(existing.field_combinations) != combos:
                    self.store.update_cluster_combinations(existing.id, combos)
                    updated += 1
                else:
                    unchanged += 1

            stale = [cluster_id for cluster_id in self.store.cluster_ids() if cluster_id not in touched]
            purged = self.store.delete_clusters(stale)

        report = ReconcileReport(inserted=inserted, updated=updated, unchanged=unchanged, purged=purged)
        logger.info(
            "Reconciled %d cluster(s): %d new, %d updated, %d unchanged, %d purged",
            report.total,
            inserted,
            updated,
            unchanged,
            purged,
        )
        return report


def _key_order(key: str):
    return [int(part) for part in key.split(",")]
