"""Duplicate detection, reconciliation and review.

- Exact matches over shared fingerprints
- Fuzzy matches over phonetic buckets
- Cluster reconciliation keyed by member set
- Review listing and moderation
"""

from .exact_match import CandidateClusters, ExactMatchDetector
from .fuzzy_match import FuzzyMatchDetector
from .reconciler import ClusterReconciler, ReconcileReport, canonical_key, merge_candidates
from .review import ClusterView, Page, ReviewService

__all__ = [
    "CandidateClusters",
    "ExactMatchDetector",
    "FuzzyMatchDetector",
    "ClusterReconciler",
    "ReconcileReport",
    "canonical_key",
    "merge_candidates",
    "ClusterView",
    "Page",
    "ReviewService",
]
