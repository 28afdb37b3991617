"""Exact duplicate detection over shared fingerprints."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from ..app.progress import ProgressSink, as_progress_sink
from ..core.combinations import combinations
from ..core.field_combination import FieldCombination
from ..database.store import DuplicatesStore

logger = logging.getLogger(__name__)

CandidateClusters = Dict[FieldCombination, List[Tuple[int, ...]]]


class ExactMatchDetector:
    """Every fingerprint with several members yields clusters of those members.

    Example:
        >>> detector = ExactMatchDetector(store)
        >>> detector.detect()
        {FieldCombination(fields=('lastname', 'zip')): [(1, 2), (1, 3), (2, 3)]}
    """

    def __init__(self, store: DuplicatesStore, cluster_size: int = 2) -> None:
        self.store = store
        self.cluster_size = cluster_size

    def detect(self, progress: Optional[ProgressSink] = None) -> CandidateClusters:
        sink = as_progress_sink(progress)
        shared = self.store.shared_fingerprints()
        logger.info("Exact pass: %d shared fingerprint(s)", len(shared))
        sink.start(len(shared))

        found: CandidateClusters = defaultdict(list)
        for fingerprint_id, combination, _members in shared:
            member_ids = self.store.fingerprint_members(fingerprint_id)
            for cluster in combinations(member_ids, self.cluster_size):
                found[combination].append(tuple(cluster))
                logger.debug("Exact duplicate %s on %s", cluster, combination)
            sink.advance()

        sink.finish()
        return dict(found)
