"""Duplicates index service: rebuild, per-record hook, recompute and review."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..config.io import load_settings
from ..config.models import DuplicatesIndexSettings
from ..core.extraction import RelevancePredicate, RowExtractor, is_relevant, record_id
from ..core.field_combination import FieldCombinationConfig
from ..core.index_lock import index_lock
from ..core.index_updater import IndexUpdater
from ..database.store import DuplicatesStore, FalsePositiveRecord
from ..duplicates.exact_match import ExactMatchDetector
from ..duplicates.fuzzy_match import FuzzyMatchDetector
from ..duplicates.reconciler import ClusterReconciler, ReconcileReport
from ..duplicates.review import ClusterView, Page, ReviewService
from ..exceptions import ConfigurationError, IndexRebuildError
from ..logging_config import LoggingTimer
from ..plugins.registry import PluginRegistry, get_plugin_registry
from .progress import as_progress_sink
from .record_source import RecordSource

logger = logging.getLogger(__name__)


@dataclass
class RebuildReport:
    processed: int = 0
    indexed: int = 0
    removed: int = 0
    pages: int = 0
    cancelled: bool = False
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "indexed": self.indexed,
            "removed": self.removed,
            "pages": self.pages,
            "cancelled": self.cancelled,
            "failed": dict(self.failed),
        }


def _is_cancelled(cancel_event: Optional[object]) -> bool:
    return cancel_event is not None and bool(getattr(cancel_event, "is_set", lambda: False)())


class DuplicatesIndexService:
    """Entry point for schedulers and record-save hooks.

    Every plugin name in the settings is resolved on construction, so a
    misconfigured index fails here with ConfigurationError instead of
    halfway through a rebuild.
    """

    def __init__(
        self,
        settings: DuplicatesIndexSettings,
        records: RecordSource,
        *,
        store: Optional[DuplicatesStore] = None,
        registry: Optional[PluginRegistry] = None,
        relevance: RelevancePredicate = is_relevant,
    ) -> None:
        self.settings = settings
        self.records = records
        self.relevance = relevance
        self.registry = registry or get_plugin_registry(settings.plugin_paths)
        self.config = FieldCombinationConfig(settings.duplicate_check_fields)
        self._validate_plugins()

        self.store = store or DuplicatesStore.from_settings(settings)
        self.extractor = RowExtractor(self.config, self.registry, settings.data_transformers)
        self.updater = IndexUpdater(self.store, self.config)
        self.exact_detector = ExactMatchDetector(self.store, cluster_size=settings.cluster_size)
        self.fuzzy_detector = FuzzyMatchDetector(
            self.store,
            self.config,
            self.registry,
            cluster_size=settings.cluster_size,
            analyze_false_positives=settings.analyze_false_positives,
        )
        self.reconciler = ClusterReconciler(self.store)
        self.review = ReviewService(self.store, records)

        if not len(self.config):
            logger.warning("No duplicate check fields configured; the index stays empty")

    @classmethod
    def from_config(cls, records: RecordSource, config_path: Optional[str] = None, **kwargs: Any) -> "DuplicatesIndexService":
        return cls(load_settings(config_path), records, **kwargs)

    @property
    def enabled(self) -> bool:
        return bool(self.settings.enabled)

    def close(self) -> None:
        self.store.close()

    def _validate_plugins(self) -> None:
        for field_name, name in self.settings.data_transformers.items():
            if not self.registry.has_transformer(name):
                raise ConfigurationError(
                    f"Unknown data transformer '{name}' for field '{field_name}'",
                    "UNKNOWN_TRANSFORMER",
                    details={"field": field_name, "name": name},
                )
        for combination, options in self.config.items():
            for field_name, field_options in options.items():
                name = field_options.similarity
                if name and not self.registry.has_matcher(name):
                    raise ConfigurationError(
                        f"Unknown similarity algorithm '{name}' for field '{field_name}' in {combination}",
                        "UNKNOWN_MATCHER",
                        details={"field": field_name, "name": name, "field_combination": str(combination)},
                    )

    # -- index maintenance ------------------------------------------------

    def recreate_index(self, cancel_event: Optional[object] = None, progress: Any = None) -> RebuildReport:
        """Truncate the index and re-add every relevant record page by page.

        A failing customer is rolled back and the rebuild moves on. With
        ``strict_rebuild`` the collected failures are raised as
        IndexRebuildError once every page has been processed.
        ``cancel_event`` is checked between pages.
        """
        sink = as_progress_sink(progress)
        report = RebuildReport()
        lock_path = Path(self.settings.lock_path) if self.settings.lock_path else None

        with index_lock(lock_path, self.store.db_path), LoggingTimer("recreate_index"):
            self.store.truncate_index()
            if self.settings.analyze_false_positives:
                self.store.truncate_false_positives()
            logger.info("Truncated duplicates index tables")

            pager = self.records.pager(self.settings.page_size)
            sink.start(int(getattr(pager, "total", 0) or 0))
            while pager.has_next:
                if _is_cancelled(cancel_event):
                    report.cancelled = True
                    logger.warning("Index rebuild cancelled after %d page(s)", report.pages)
                    break
                page = pager.next_page()
                report.pages += 1
                logger.info("Indexing page %d (%d record(s))", report.pages, len(page))
                for record in page:
                    self._rebuild_record(record, report)
                    sink.advance()
            sink.finish()

        logger.info(
            "Index rebuild finished: %d processed, %d indexed, %d failed",
            report.processed,
            report.indexed,
            len(report.failed),
        )
        if report.failed and self.settings.strict_rebuild:
            error = IndexRebuildError(f"{len(report.failed)} customer(s) failed to index", failed=report.failed)
            logger.error("Index rebuild incomplete", extra={"error": error.to_dict()})
            raise error
        return report

    def _rebuild_record(self, record: Any, report: RebuildReport) -> None:
        customer_id = record_id(record)
        report.processed += 1
        try:
            if self._update(record, customer_id):
                report.indexed += 1
            else:
                report.removed += 1
        except ConfigurationError:
            raise
        except Exception as exc:
            # a failing plugin or encoder must not end the rebuild
            logger.warning("Skipping customer %s: %s", customer_id, exc)
            report.failed[customer_id] = str(exc) or type(exc).__name__

    def _update(self, record: Any, customer_id: int) -> bool:
        if not self.relevance(record):
            self.updater.remove_from_index(customer_id)
            return False
        self.updater.update_index(customer_id, self.extractor.extract_rows(record))
        return True

    def update_for_record(self, record: Any, force: bool = False) -> bool:
        """Refresh one record after it was saved.

        Returns True when the record is indexed afterwards, False when it was
        removed as irrelevant or the index is disabled.
        """
        if not self.enabled and not force:
            logger.debug("Duplicates index disabled; ignoring record %s", record_id(record))
            return False
        return self._update(record, record_id(record))

    def delete_record(self, customer_id: int) -> int:
        """Forget a deleted record; returns the number of clusters dropped."""
        return self.updater.remove_from_index(customer_id)

    # -- detection --------------------------------------------------------

    def calculate_potential_duplicates(self, progress: Any = None) -> ReconcileReport:
        sink = as_progress_sink(progress)
        with LoggingTimer("calculate_potential_duplicates"):
            if self.settings.analyze_false_positives:
                self.store.truncate_false_positives()
                logger.info("Truncated false positives")

            logger.info("Searching exact duplicates")
            exact = self.exact_detector.detect(sink)
            logger.info("Searching fuzzy duplicates")
            fuzzy = self.fuzzy_detector.detect(sink)
            return self.reconciler.reconcile(exact, fuzzy)

    # -- review -----------------------------------------------------------

    def list_potential_duplicates(self, page: int = 1, page_size: int = 20, declined: bool = False) -> Page[ClusterView]:
        return self.review.list_potential_duplicates(page, page_size, declined)

    def decline(self, cluster_id: int) -> None:
        self.review.decline(cluster_id)

    def list_false_positives(self, page: int = 1, page_size: int = 20) -> Page[FalsePositiveRecord]:
        return self.review.list_false_positives(page, page_size)

    def statistics(self) -> Dict[str, int]:
        return self.store.statistics()
