"""Tests for cluster reconciliation keyed by member set."""

import sqlite3

import pytest

from duplicates_index.core.field_combination import FieldCombination
from duplicates_index.duplicates.reconciler import ClusterReconciler, canonical_key, merge_candidates

LASTNAME_ZIP = FieldCombination.of("lastname", "zip")
EMAIL = FieldCombination.of("email")


def test_canonical_key_sorts_numerically():
    assert canonical_key([10, 2]) == "2,10"
    assert canonical_key((2, 10)) == canonical_key((10, 2))


def test_merge_collects_field_combinations_per_key():
    merged = merge_candidates({LASTNAME_ZIP: [(1, 2), (2, 3)]}, {EMAIL: [(2, 1)], LASTNAME_ZIP: [(1, 2)]})
    assert merged == {"1,2": {LASTNAME_ZIP, EMAIL}, "2,3": {LASTNAME_ZIP}}


class TestClusterReconciler:
    def test_inserts_new_clusters(self, store):
        report = ClusterReconciler(store).reconcile({LASTNAME_ZIP: [(2, 1)]}, {EMAIL: [(1, 2)]})
        assert report.inserted == 1
        cluster = store.cluster_by_key("1,2")
        assert cluster.member_ids == (1, 2)
        assert set(cluster.field_combinations) == {LASTNAME_ZIP, EMAIL}
        assert cluster.declined is False
        assert cluster.created_at == cluster.modified_at

    def test_keeps_identity_and_moderation_state(self, store):
        reconciler = ClusterReconciler(store)
        reconciler.reconcile({LASTNAME_ZIP: [(1, 2)]})
        original = store.cluster_by_key("1,2")
        store.set_declined(original.id)

        report = reconciler.reconcile({LASTNAME_ZIP: [(1, 2)]})

        again = store.cluster_by_key("1,2")
        assert report.unchanged == 1
        assert report.inserted == 0
        assert again.id == original.id
        assert again.declined is True
        assert again.created_at == original.created_at
        assert again.modified_at == original.modified_at

    def test_updates_changed_field_combinations(self, store):
        reconciler = ClusterReconciler(store)
        reconciler.reconcile({LASTNAME_ZIP: [(1, 2)]})
        original = store.cluster_by_key("1,2")

        report = reconciler.reconcile({LASTNAME_ZIP: [(1, 2)], EMAIL: [(1, 2)]})

        updated = store.cluster_by_key("1,2")
        assert report.updated == 1
        assert updated.id == original.id
        assert set(updated.field_combinations) == {LASTNAME_ZIP, EMAIL}
        assert updated.created_at == original.created_at

    def test_purges_untouched_clusters(self, store):
        reconciler = ClusterReconciler(store)
        reconciler.reconcile({LASTNAME_ZIP: [(1, 2), (3, 4)]})
        kept = store.cluster_by_key("1,2")

        report = reconciler.reconcile({LASTNAME_ZIP: [(1, 2)]})

        assert report.purged == 1
        assert store.cluster_by_key("3,4") is None
        assert report.to_dict() == {"inserted": 0, "updated": 0, "unchanged": 1, "purged": 1}
        assert store.cluster_ids() == [kept.id]

    def test_empty_run_purges_everything(self, store):
        reconciler = ClusterReconciler(store)
        reconciler.reconcile({LASTNAME_ZIP: [(1, 2)]})
        assert reconciler.reconcile().purged == 1
        assert store.count_clusters() == 0

    def test_failure_rolls_back_whole_run(self, store, monkeypatch):
        reconciler = ClusterReconciler(store)
        reconciler.reconcile({LASTNAME_ZIP: [(1, 2)]})

        def boom(cluster_ids):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(store, "delete_clusters", boom)
        with pytest.raises(sqlite3.OperationalError):
            reconciler.reconcile({LASTNAME_ZIP: [(3, 4)]})

        assert store.cluster_by_key("3,4") is None
        assert store.cluster_by_key("1,2") is not None
