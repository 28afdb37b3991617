"""Transactional per-customer update of the duplicates index."""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable

from ..database.store import DuplicatesStore
from ..exceptions import TransientStorageError
from .extraction import Row
from .field_combination import FieldCombinationConfig
from .phonetic import phonetic_hash

logger = logging.getLogger(__name__)


class IndexUpdater:
    def __init__(self, store: DuplicatesStore, config: FieldCombinationConfig) -> None:
        self.store = store
        self.config = config

    def update_index(self, customer_id: int, rows: Iterable[Row]) -> int:
        """Replace every membership of ``customer_id`` with ``rows``.

        Runs as one transaction. Invalid rows are skipped. Any storage failure
        rolls the customer back to its previous state.

        Returns:
            Number of memberships written.

        Raises:
            TransientStorageError: the transaction was rolled back.
        """
        written = 0
        try:
            with self.store.transaction():
                self.store.delete_memberships(customer_id)
                for row in rows:
                    if not row.valid:
                        continue
                    self.store.insert_membership(customer_id, self._fingerprint_id(row))
                    written += 1
        except sqlite3.Error as exc:
            raise TransientStorageError(
                f"Index update failed for customer {customer_id}: {exc}",
                customer_id=customer_id,
            ) from exc
        logger.debug("Indexed customer %s with %d fingerprint(s)", customer_id, written)
        return written

    def remove_from_index(self, customer_id: int) -> int:
        """Drop the customer's memberships and every cluster naming it.

        Returns:
            Number of clusters removed.
        """
        try:
            with self.store.transaction():
                self.store.delete_memberships(customer_id)
                removed = self.store.delete_clusters_with_member(customer_id)
        except sqlite3.Error as exc:
            raise TransientStorageError(
                f"Index removal failed for customer {customer_id}: {exc}",
                customer_id=customer_id,
            ) from exc
        logger.debug("Removed customer %s from index (%d cluster(s) dropped)", customer_id, removed)
        return removed

    def _fingerprint_id(self, row: Row) -> int:
        combination = row.combination
        data_hash = row.data_hash
        existing = self.store.find_fingerprint_id(data_hash, combination.storage_hash)
        if existing is not None:
            return existing
        options = self.config.options_for(combination)
        return self.store.insert_fingerprint(
            combination,
            row.serialize(),
            data_hash,
            soundex=phonetic_hash(row.values, options, "soundex"),
            metaphone=phonetic_hash(row.values, options, "metaphone"),
        )
