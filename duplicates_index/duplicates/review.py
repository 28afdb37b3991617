"""Paginated review and moderation of potential duplicates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, List, Tuple, TypeVar

from ..app.record_source import RecordSource
from ..core.extraction import record_id
from ..core.field_combination import FieldCombination
from ..database.store import ClusterRecord, DuplicatesStore, FalsePositiveRecord
from ..exceptions import RecordNotFoundError, ResolutionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results; ``total`` counts persisted entries for the filter."""

    items: List[T] = field(default_factory=list)
    page: int = 1
    page_size: int = 20
    total: int = 0

    @property
    def page_count(self) -> int:
        return -(-self.total // self.page_size) if self.page_size else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count


@dataclass(frozen=True)
class ClusterView:
    id: int
    members: Tuple[Any, ...]
    field_combinations: Tuple[FieldCombination, ...]
    declined: bool
    created_at: str
    modified_at: str

    @property
    def member_ids(self) -> Tuple[int, ...]:
        return tuple(record_id(member) for member in self.members)


def _check_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")


class ReviewService:
    def __init__(self, store: DuplicatesStore, records: RecordSource) -> None:
        self.store = store
        self.records = records

    def list_potential_duplicates(self, page: int = 1, page_size: int = 20, declined: bool = False) -> Page[ClusterView]:
        """Clusters ordered by id; clusters with an unresolvable member are left out."""
        _check_paging(page, page_size)
        clusters = self.store.list_clusters(declined, (page - 1) * page_size, page_size)
        views: List[ClusterView] = []
        for cluster in clusters:
            try:
                views.append(self._resolve(cluster))
            except ResolutionError as exc:
                logger.debug("Skipping cluster %s: %s", cluster.id, exc)
        return Page(items=views, page=page, page_size=page_size, total=self.store.count_clusters(declined))

    def decline(self, cluster_id: int) -> None:
        """Mark a cluster as not a duplicate. Declining twice is harmless."""
        if not self.store.set_declined(cluster_id, True):
            raise RecordNotFoundError(f"Potential duplicate {cluster_id} does not exist", cluster_id=cluster_id)
        logger.info("Declined potential duplicate %s", cluster_id)

    def list_false_positives(self, page: int = 1, page_size: int = 20) -> Page[FalsePositiveRecord]:
        _check_paging(page, page_size)
        items = self.store.list_false_positives((page - 1) * page_size, page_size)
        return Page(items=items, page=page, page_size=page_size, total=self.store.count_false_positives())

    def _resolve(self, cluster: ClusterRecord) -> ClusterView:
        members = []
        for customer_id in cluster.member_ids:
            record = self.records.get_by_id(customer_id)
            if record is None:
                raise ResolutionError(
                    f"Customer {customer_id} of cluster {cluster.id} no longer exists",
                    customer_id=customer_id,
                    cluster_id=cluster.id,
                )
            members.append(record)
        return ClusterView(
            id=cluster.id,
            members=tuple(members),
            field_combinations=cluster.field_combinations,
            declined=cluster.declined,
            created_at=cluster.created_at,
            modified_at=cluster.modified_at,
        )
