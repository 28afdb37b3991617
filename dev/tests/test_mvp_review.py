"""Tests for review listing and moderation."""

import pytest

from duplicates_index.app.record_source import InMemoryRecordSource
from duplicates_index.core.field_combination import FieldCombination
from duplicates_index.duplicates.review import Page, ReviewService
from duplicates_index.exceptions import RecordNotFoundError

from conftest import make_customer

LASTNAME_ZIP = FieldCombination.of("lastname", "zip")


@pytest.fixture
def source():
    return InMemoryRecordSource(make_customer(i, "Meier") for i in range(1, 7))


@pytest.fixture
def review(store, source):
    return ReviewService(store, source)


def _clusters(store, *pairs):
    return [store.insert_cluster(f"{a},{b}", [a, b], [LASTNAME_ZIP]) for a, b in pairs]


class TestListPotentialDuplicates:
    def test_resolves_members_in_id_order(self, store, review):
        (cluster_id,) = _clusters(store, (1, 2))
        page = review.list_potential_duplicates()
        assert isinstance(page, Page)
        assert page.total == 1
        view = page.items[0]
        assert view.id == cluster_id
        assert view.member_ids == (1, 2)
        assert view.members[0]["lastname"] == "Meier"
        assert view.field_combinations == (LASTNAME_ZIP,)
        assert view.declined is False

    def test_ordered_by_cluster_id_and_paginated(self, store, review):
        ids = _clusters(store, (1, 2), (3, 4), (5, 6))
        first = review.list_potential_duplicates(page=1, page_size=2)
        second = review.list_potential_duplicates(page=2, page_size=2)
        assert [view.id for view in first.items] == ids[:2]
        assert [view.id for view in second.items] == ids[2:]
        assert first.total == 3
        assert first.page_count == 2
        assert first.has_next and not second.has_next

    def test_unresolvable_cluster_is_dropped(self, store, source, review):
        _clusters(store, (1, 2), (3, 4))
        source.remove(3)
        page = review.list_potential_duplicates()
        assert [view.member_ids for view in page.items] == [(1, 2)]

    def test_invalid_paging(self, review):
        with pytest.raises(ValueError):
            review.list_potential_duplicates(page=0)
        with pytest.raises(ValueError):
            review.list_false_positives(page_size=0)


class TestDecline:
    def test_moves_cluster_to_declined_view(self, store, review):
        declined_id, active_id = _clusters(store, (1, 2), (3, 4))
        review.decline(declined_id)

        active = review.list_potential_duplicates(declined=False)
        declined = review.list_potential_duplicates(declined=True)
        assert [view.id for view in active.items] == [active_id]
        assert [view.id for view in declined.items] == [declined_id]
        assert declined.items[0].declined is True

    def test_idempotent(self, store, review):
        (cluster_id,) = _clusters(store, (1, 2))
        review.decline(cluster_id)
        review.decline(cluster_id)
        assert store.cluster(cluster_id).declined is True

    def test_unknown_cluster(self, review):
        with pytest.raises(RecordNotFoundError) as exc_info:
            review.decline(999)
        assert exc_info.value.cluster_id == 999
        assert exc_info.value.to_dict()["error_code"] == "RECORD_NOT_FOUND"


class TestFalsePositives:
    def test_ordered_by_first_row(self, store, review):
        store.insert_false_positive('{"lastname":"schulz"}', '{"lastname":"schultz"}', {"customer_id": 5}, {"customer_id": 6})
        store.insert_false_positive('{"lastname":"meier"}', '{"lastname":"meyer"}', {"customer_id": 1}, {"customer_id": 2})

        page = review.list_false_positives(page=1, page_size=10)

        assert page.total == 2
        assert [fp.row1 for fp in page.items] == ['{"lastname":"meier"}', '{"lastname":"schulz"}']
        assert page.items[0].row2_details == {"customer_id": 2}
