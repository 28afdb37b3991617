"""Fuzzy duplicate detection: phonetic buckets verified field by field."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from ..app.progress import ProgressSink, as_progress_sink
from ..config.models import FieldOptions
from ..core.combinations import combinations
from ..core.field_combination import FieldCombination, FieldCombinationConfig
from ..core.phonetic import SUPPORTED_ALGORITHMS
from ..database.store import BucketRow, DuplicatesStore
from ..plugins.base import SimilarityMatcher
from ..plugins.registry import PluginRegistry
from .exact_match import CandidateClusters

logger = logging.getLogger(__name__)


class FuzzyMatchDetector:
    """Find near-duplicates that share a soundex or metaphone bucket.

    A pair from a bucket only becomes a candidate when every field of its
    combination that names a similarity algorithm passes that matcher.
    Combinations without any similarity field never match fuzzily.
    Rejected pairs are written as false positives when ``analyze_false_positives``
    is on, once per customer pair and combination for a whole ``detect`` run.
    """

    def __init__(
        self,
        store: DuplicatesStore,
        config: FieldCombinationConfig,
        registry: PluginRegistry,
        *,
        cluster_size: int = 2,
        analyze_false_positives: bool = False,
    ) -> None:
        self.store = store
        self.config = config
        self.cluster_size = cluster_size
        self.analyze_false_positives = analyze_false_positives
        # resolved up front so an unknown matcher name fails at startup
        self._matchers: Dict[str, SimilarityMatcher] = {}
        for _combination, options in config.items():
            for field_options in options.values():
                name = field_options.similarity
                if name and name not in self._matchers:
                    self._matchers[name] = registry.matcher(name)
        self._recorded: Set[Tuple[FieldCombination, int, int]] = set()

    def detect(self, progress: Optional[ProgressSink] = None) -> CandidateClusters:
        """Union of all phonetic passes, metaphone first."""
        merged: CandidateClusters = defaultdict(list)
        self._recorded = set()
        for algorithm in SUPPORTED_ALGORITHMS:
            for combination, clusters in self._detect_pass(algorithm, progress).items():
                merged[combination].extend(clusters)
        return dict(merged)

    def detect_for_algorithm(self, algorithm: str, progress: Optional[ProgressSink] = None) -> CandidateClusters:
        self._recorded = set()
        return self._detect_pass(algorithm, progress)

    def _detect_pass(self, algorithm: str, progress: Optional[ProgressSink]) -> CandidateClusters:
        sink = as_progress_sink(progress)
        hashes = self.store.shared_phonetic_hashes(algorithm)
        logger.info("Fuzzy pass (%s): %d shared bucket(s)", algorithm, len(hashes))
        sink.write_line(f"Fuzzy pass {algorithm}")
        sink.start(len(hashes))

        found: CandidateClusters = defaultdict(list)
        for hash_value in hashes:
            groups: Dict[FieldCombination, List[BucketRow]] = defaultdict(list)
            for row in self.store.phonetic_bucket(algorithm, hash_value):
                groups[row.field_combination].append(row)

            for combination, rows in groups.items():
                for candidate in combinations(rows, self.cluster_size):
                    if self._verify(combination, candidate, algorithm, hash_value):
                        ids = tuple(row.customer_id for row in candidate)
                        found[combination].append(ids)
                        logger.debug("Potential duplicate %s on %s (%s)", ids, combination, algorithm)
            sink.advance()

        sink.finish()
        return dict(found)

    def is_match(self, combination: FieldCombination, values_a: Mapping[str, str], values_b: Mapping[str, str]) -> bool:
        """AND over every field of ``combination`` that names a similarity algorithm."""
        options = self.config.options_for(combination)
        configured = [(field, opts) for field, opts in options.items() if opts.similarity]
        if not configured:
            return False
        return all(self._field_matches(field, opts, values_a, values_b) for field, opts in configured)

    def _field_matches(
        self,
        field: str,
        options: FieldOptions,
        values_a: Mapping[str, str],
        values_b: Mapping[str, str],
    ) -> bool:
        matcher = self._matchers[options.similarity]
        return matcher.is_similar(
            str(values_a.get(field, "")),
            str(values_b.get(field, "")),
            options.similarity_threshold,
        )

    def _verify(
        self,
        combination: FieldCombination,
        candidate: Sequence[BucketRow],
        algorithm: str,
        hash_value: str,
    ) -> bool:
        for first, second in _pairs(candidate):
            if self.is_match(combination, first.values, second.values):
                continue
            logger.debug(
                "False positive %s/%s on %s (%s)",
                first.customer_id,
                second.customer_id,
                combination,
                algorithm,
            )
            if self.analyze_false_positives:
                self._record_false_positive(combination, first, second, algorithm, hash_value)
            return False
        return True

    def _record_false_positive(
        self,
        combination: FieldCombination,
        first: BucketRow,
        second: BucketRow,
        algorithm: str,
        hash_value: str,
    ) -> None:
        low, high = sorted((first.customer_id, second.customer_id))
        key = (combination, low, high)
        if key in self._recorded:
            return
        self._recorded.add(key)
        extra = {"algorithm": algorithm, "hash": hash_value}
        self.store.insert_false_positive(
            first.duplicate_data,
            second.duplicate_data,
            {**first.details(), **extra},
            {**second.details(), **extra},
        )


def _pairs(rows: Sequence[BucketRow]) -> List[Tuple[BucketRow, BucketRow]]:
    return [(pair[0], pair[1]) for pair in combinations(rows, 2)]
