"""Tests for the exact and fuzzy detection passes."""

import pytest

from duplicates_index.core.field_combination import FieldCombination
from duplicates_index.exceptions import ConfigurationError

from conftest import make_customer

LASTNAME_ZIP = FieldCombination.of("lastname", "zip")
LASTNAME_CITY = FieldCombination.of("lastname", "city")

SOUNDEX_SIMILAR = [{"lastname": {"similarity": "similar_text", "similarity_threshold": 90, "soundex": True}, "zip": {}}]


def _index(service, records, customers):
    for customer in customers:
        records.put(customer)
        service.update_for_record(customer)


class TestExactMatch:
    def test_three_identical_customers_yield_all_pairs(self, build_service, records):
        service = build_service()
        _index(
            service,
            records,
            [
                make_customer(3, "Meier"),
                make_customer(1, "meier "),
                make_customer(2, "MEIER"),
                make_customer(4, "Schulz"),
            ],
        )

        found = service.exact_detector.detect()

        assert found == {LASTNAME_ZIP: [(1, 2), (1, 3), (2, 3)]}

    def test_no_shared_fingerprint(self, build_service, records):
        service = build_service()
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meier", zip_code="80331")])
        assert service.exact_detector.detect() == {}

    def test_larger_groups_first(self, build_service, records):
        service = build_service()
        _index(
            service,
            records,
            [
                make_customer(1, "Schulz"),
                make_customer(2, "Schulz"),
                make_customer(3, "Meier"),
                make_customer(4, "Meier"),
                make_customer(5, "Meier"),
            ],
        )
        shared = service.store.shared_fingerprints()
        assert [members for _id, _combo, members in shared] == [3, 2]

    def test_cluster_size_three(self, build_service, records):
        service = build_service(cluster_size=3)
        _index(service, records, [make_customer(i, "Meier") for i in (1, 2, 3, 4)])
        assert service.exact_detector.detect() == {LASTNAME_ZIP: [(1, 2, 3), (1, 2, 4), (1, 3, 4), (2, 3, 4)]}


class TestFuzzyMatch:
    def test_failed_threshold_is_rejected_and_recorded(self, build_service, records):
        service = build_service(SOUNDEX_SIMILAR, analyze_false_positives=True)
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meyer", zip_code="80331")])

        found = service.fuzzy_detector.detect()

        assert found == {}
        false_positives = service.store.list_false_positives(0, 10)
        assert len(false_positives) == 1
        record = false_positives[0]
        assert record.row1 == '{"lastname":"meier","zip":"10115"}'
        assert record.row2 == '{"lastname":"meyer","zip":"80331"}'
        assert record.row1_details["customer_id"] == 1
        assert record.row2_details["customer_id"] == 2
        assert record.row1_details["algorithm"] == "soundex"

    def test_no_false_positive_without_diagnostics(self, build_service, records):
        service = build_service(SOUNDEX_SIMILAR)
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meyer", zip_code="80331")])
        assert service.fuzzy_detector.detect() == {}
        assert service.store.count_false_positives() == 0

    def test_pair_rejected_by_both_algorithms_is_recorded_once(self, build_service, records):
        field_sets = [
            {
                "lastname": {"soundex": True, "metaphone": True},
                "city": {"similarity": "similar_text", "similarity_threshold": 90},
            }
        ]
        service = build_service(field_sets, analyze_false_positives=True)
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meier", city="bern")])

        assert service.fuzzy_detector.detect() == {}
        assert service.store.count_false_positives() == 1

        service.fuzzy_detector.detect_for_algorithm("soundex")
        assert service.store.count_false_positives() == 2

    def test_passing_threshold_becomes_candidate(self, build_service, records):
        field_sets = [{"lastname": {"similarity": "similar_text", "similarity_threshold": 80, "soundex": True}, "zip": {}}]
        service = build_service(field_sets)
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meyer", zip_code="80331")])
        assert service.fuzzy_detector.detect() == {LASTNAME_ZIP: [(1, 2)]}

    def test_all_configured_fields_must_pass(self, build_service, records):
        field_sets = [
            {
                "lastname": {"similarity": "similar_text", "similarity_threshold": 80, "soundex": True},
                "city": {"similarity": "similar_text", "similarity_threshold": 90},
            }
        ]
        service = build_service(field_sets, analyze_false_positives=True)
        _index(
            service,
            records,
            [make_customer(1, "Meier", city="berlin"), make_customer(2, "Meyer", city="bern")],
        )

        assert service.fuzzy_detector.detect() == {}
        assert service.store.count_false_positives() == 1

    def test_all_configured_fields_pass(self, build_service, records):
        field_sets = [
            {
                "lastname": {"similarity": "similar_text", "similarity_threshold": 80, "soundex": True},
                "city": {"similarity": "similar_text", "similarity_threshold": 90},
            }
        ]
        service = build_service(field_sets)
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meyer")])
        assert service.fuzzy_detector.detect() == {LASTNAME_CITY: [(1, 2)]}

    def test_combination_without_similarity_never_matches(self, build_service, records):
        field_sets = [{"lastname": {"soundex": True, "metaphone": True}, "zip": {}}]
        service = build_service(field_sets)
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meyer", zip_code="80331")])

        assert service.store.shared_phonetic_hashes("soundex")
        assert service.fuzzy_detector.detect() == {}
        service.calculate_potential_duplicates()
        assert service.store.count_clusters() == 0

    def test_is_match_ignores_fields_without_similarity(self, build_service):
        service = build_service(SOUNDEX_SIMILAR)
        detector = service.fuzzy_detector
        assert detector.is_match(LASTNAME_ZIP, {"lastname": "meier", "zip": "1"}, {"lastname": "meier", "zip": "2"})
        assert not detector.is_match(LASTNAME_ZIP, {"lastname": "meier", "zip": "1"}, {"lastname": "schulz", "zip": "1"})

    def test_unconfigured_combination_never_matches(self, build_service):
        detector = build_service(SOUNDEX_SIMILAR).fuzzy_detector
        email = FieldCombination.of("email")
        assert not detector.is_match(email, {"email": "a"}, {"email": "a"})

    def test_results_union_over_algorithms(self, build_service, records):
        field_sets = [
            {"lastname": {"similarity": "similar_text", "similarity_threshold": 80, "soundex": True, "metaphone": True}, "zip": {}}
        ]
        service = build_service(field_sets)
        _index(service, records, [make_customer(1, "Meier"), make_customer(2, "Meier", zip_code="80331")])

        found = service.fuzzy_detector.detect()

        # one candidate per phonetic pass; the reconciler dedupes them
        assert found == {LASTNAME_ZIP: [(1, 2), (1, 2)]}

    def test_unknown_matcher_fails_at_startup(self, build_service):
        with pytest.raises(ConfigurationError) as exc_info:
            build_service([{"lastname": {"similarity": "jaro_winkler_deluxe", "soundex": True}}])
        assert exc_info.value.error_code == "UNKNOWN_MATCHER"
