"""Tests for dimension aggregation and percentage math."""

import pytest

from analytics.engine.aggregator import (
    aggregate,
    breakdown_percentages,
    breakdown_total,
    extract_keys,
    group_records,
    market_footprints,
    percentages,
    round_half_away,
)
from analytics.engine.normalizer import normalize_record
from analytics.lib.errors import ContractViolationError
from models.analytics_models import GroupStats


def _records(*raws):
    return [normalize_record(raw) for raw in raws]


def _markets(record):
    return record.markets


class TestAggregate:
    def test_market_breakdown(self):
        records = _records(
            {"id": "1", "markets": ["ro", "de"], "hours": 2},
            {"id": "2", "markets": ["ro"], "hours": 3},
        )
        breakdown = aggregate(records, _markets)
        assert breakdown == {
            "ro": GroupStats(count=2, hours=5.0),
            "de": GroupStats(count=1, hours=2.0),
        }
        assert list(breakdown) == ["ro", "de"]

    def test_duplicate_keys_count_once_per_record(self):
        records = _records({"id": "1", "markets": ["ro", "RO", "ro"]})
        assert aggregate(records, _markets)["ro"].count == 1

    def test_records_without_keys_join_no_group(self):
        records = _records({"id": "1"}, {"id": "2", "markets": ["de"]})
        assert aggregate(records, _markets) == {"de": GroupStats(count=1, hours=0.0)}

    def test_failing_extractor_skips_only_that_record(self):
        records = _records({"id": "1", "product": "a"}, {"id": "2", "product": "b"})

        def extractor(record):
            if record.id == "1":
                raise KeyError("boom")
            return record.product

        assert list(aggregate(records, extractor)) == ["b"]

    def test_custom_hours_extractor(self):
        records = _records(
            {"id": "1", "aiUsage": [{"models": ["Tool-A"], "aiHours": 1.25}], "hours": 8},
        )
        breakdown = aggregate(records, lambda r: r.ai_models, lambda r: r.ai_hours)
        assert breakdown["Tool-A"].hours == 1.25

    def test_hours_rounded(self):
        records = _records(
            {"id": "1", "product": "p", "hours": 0.1},
            {"id": "2", "product": "p", "hours": 0.2},
        )
        assert aggregate(records, lambda r: r.product)["p"].hours == 0.3

    def test_empty_input(self):
        assert aggregate([], _markets) == {}

    def test_input_not_mutated(self):
        records = _records({"id": "1", "markets": ["ro"]})
        before = list(records)
        aggregate(records, _markets)
        assert records == before

    @pytest.mark.parametrize("records", ["abc", b"abc", {"id": "1"}, 5, None])
    def test_wrong_collection_type(self, records):
        with pytest.raises(ContractViolationError):
            aggregate(records, _markets)

    def test_contract_violation_is_type_error(self):
        with pytest.raises(TypeError):
            aggregate("abc", _markets)


class TestExtractKeys:
    def test_strips_and_skips_blank(self):
        record = normalize_record({"id": "1"})
        assert extract_keys(record, lambda r: [" a ", "", None, 3, "a", "b"]) == ("a", "b")

    def test_mapping_result_ignored(self):
        record = normalize_record({"id": "1"})
        assert extract_keys(record, lambda r: {"a": 1}) == ()


class TestGrouping:
    def test_group_records(self):
        records = _records(
            {"id": "1", "ownerId": "u1"},
            {"id": "2", "ownerId": "u2"},
            {"id": "3", "ownerId": "u1"},
        )
        groups = group_records(records, lambda r: r.contributor_id)
        assert {k: [r.id for r in v] for k, v in groups.items()} == {
            "u1": ["1", "3"], "u2": ["2"],
        }

    def test_market_footprints(self):
        records = _records(
            {"id": "1", "ownerId": "u1", "markets": ["ro", "de"]},
            {"id": "2", "ownerId": "u1", "markets": ["ro"]},
            {"id": "3", "ownerId": "u2"},
        )
        assert market_footprints(records, lambda r: r.contributor_id) == {
            "u1": {"ro": 2, "de": 1},
            "u2": {},
        }


class TestPercentages:
    def test_half_away_from_zero(self):
        assert percentages({"a": 1, "b": 399}) == {"a": 0.3, "b": 99.8}

    def test_thirds(self):
        assert percentages({"a": 2, "b": 1}) == {"a": 66.7, "b": 33.3}

    @pytest.mark.parametrize("groups", [3, 6, 7, 9, 11, 12])
    def test_equal_groups_sum_within_a_tenth(self, groups):
        shares = percentages({f"g{i}": 1 for i in range(groups)})
        tenths = sum(round(value * 10) for value in shares.values())
        assert abs(tenths - 1000) <= 1
        assert sum(shares.values()) == pytest.approx(100, abs=0.1 + 1e-9)

    def test_excess_taken_from_first_seen_groups(self):
        shares = percentages({k: 1 for k in "abcdef"})
        assert list(shares.values()) == [16.6, 16.7, 16.7, 16.7, 16.7, 16.7]

    def test_rounding_excess_on_hours(self):
        shares = percentages({"a": 0.5, "b": 0.5, "c": 0.5, "d": 0.5, "e": 0.5, "f": 0.5})
        assert sum(round(value * 10) for value in shares.values()) == 1001

    def test_zero_base(self):
        assert percentages({"a": 0, "b": 0}) == {"a": 0.0, "b": 0.0}

    def test_empty(self):
        assert percentages({}) == {}

    @pytest.mark.parametrize("value, expected", [
        (12.25, 12.3), (-12.25, -12.3), (0.05, 0.1), (99.94, 99.9),
    ])
    def test_round_half_away(self, value, expected):
        assert round_half_away(value) == expected

    def test_breakdown_helpers(self):
        breakdown = {"ro": GroupStats(count=3), "de": GroupStats(count=1)}
        assert breakdown_total(breakdown) == 4
        assert breakdown_percentages(breakdown) == {"ro": 75.0, "de": 25.0}
