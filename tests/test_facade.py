"""Tests for snapshot assembly."""

import copy
import json
from unittest.mock import patch

import pytest

from analytics.engine import facade as facade_module
from analytics.engine.facade import (
    FACETS,
    AnalyticsFacade,
    FacetSpec,
    build_snapshot,
    coerce_filters,
)
from analytics.lib.errors import ContractViolationError
from models.analytics_models import (
    AnalyticsFilters,
    Category,
    GroupStats,
    Icon,
    SummaryTotals,
    TimeDistribution,
    TrendPoint,
)

FACET_NAMES = ("markets", "ai_models", "deliverables", "contributors", "reporters", "products", "days")

TASKS = [
    {
        "id": "t1", "reportingPeriodId": "2024-03", "ownerId": "u1", "reporterId": "r1",
        "departments": ["design"], "product": "prod casino", "markets": ["ro", "de"],
        "hours": 2, "createdAt": "2024-03-05", "updatedAt": 1000,
        "aiUsage": [{"models": ["Tool-A"], "aiHours": 1}], "deliverables": ["banner"],
        "isPriority": True,
    },
    {
        "id": "t2", "reportingPeriodId": "2024-03", "createdById": "u1", "reporterId": "r2",
        "departments": ["video"], "product": "acq sport", "markets": ["ro"],
        "hours": 3, "createdAt": "2024-03-05", "updatedAt": 3000,
    },
    {
        "id": "t3", "reportingPeriodId": "2024-04", "ownerId": "u2", "reporterId": "r1",
        "product": "prod sport", "markets": ["it"], "hours": 5,
        "createdAt": "2024-04-01", "isReworked": True,
    },
]


class TestReferenceScenarios:
    def test_category_totals(self):
        records = [{"id": str(i), "product": p} for i, p in enumerate(
            ["prod casino", "acq sport", "prod casino"]
        )]
        categories = build_snapshot(records).categories
        assert categories.totals.counts == {
            Category.PROD: 2, Category.ACQ: 1, Category.MKT: 0, Category.MISC: 0,
        }
        assert categories.totals.total == 3
        assert categories.percentages[Category.PROD] == 66.7
        assert categories.percentages[Category.ACQ] == 33.3

    def test_market_breakdown_and_top_one(self):
        records = [
            {"id": "1", "markets": ["ro", "de"], "hours": 2},
            {"id": "2", "markets": ["ro"], "hours": 3},
        ]
        markets = build_snapshot(records, {"limit": 1}).markets
        assert {k: (v.count, v.hours) for k, v in markets.breakdown.items()} == {
            "ro": (2, 5.0), "de": (1, 2.0),
        }
        assert [e.label for e in markets.top] == ["ro"]
        assert markets.top[0].value == "2 tasks"

    def test_empty_input_is_zero_filled(self):
        snapshot = build_snapshot([])
        for name in FACET_NAMES:
            facet = getattr(snapshot, name)
            assert facet.breakdown == {}
            assert facet.total == 0
            assert len(facet.top) == 1
            assert facet.top[0].is_no_data is True
        assert snapshot.categories.totals.total == 0
        assert set(snapshot.categories.totals.counts) == set(Category)
        assert snapshot.summary == SummaryTotals()

    def test_ai_models_tie_keeps_first_seen_order(self):
        records = [
            {"id": "1", "aiUsage": []},
            {"id": "2", "aiUsage": [{"models": ["Tool-A", "Tool-B"]}]},
        ]
        ai = build_snapshot(records).ai_models
        assert {k: v.count for k, v in ai.breakdown.items()} == {"Tool-A": 1, "Tool-B": 1}
        assert [e.label for e in ai.top] == ["Tool-A", "Tool-B"]


class TestInputContract:
    @pytest.mark.parametrize("records", [None, {"id": "t1"}, 42])
    def test_non_list_returns_empty_snapshot(self, records):
        snapshot = build_snapshot(records)
        assert snapshot.summary.total_tasks == 0
        assert snapshot.markets.top[0].is_no_data is True

    @pytest.mark.parametrize("records", ["t1,t2", b"t1"])
    def test_string_input_raises(self, records):
        with pytest.raises(ContractViolationError):
            build_snapshot(records)

    def test_malformed_records_are_skipped(self):
        snapshot = build_snapshot([TASKS[0], "junk", None])
        assert snapshot.summary.total_tasks == 1

    def test_huge_integer_timestamps_do_not_raise(self):
        records = json.loads('[{"id": "a", "createdAt": 1' + "0" * 400 + ', "hours": 2}]')
        snapshot = build_snapshot(records)
        assert snapshot.summary.total_tasks == 1
        assert snapshot.days.top[0].is_no_data is True

    @pytest.mark.parametrize("filters", [
        {"limit": 0}, {"limit": "many"}, {"unknown": "x"}, "2024-03", 7,
    ])
    def test_invalid_filters_raise(self, filters):
        with pytest.raises(ContractViolationError):
            build_snapshot(TASKS, filters)

    def test_camel_case_filters(self):
        assert coerce_filters({"periodId": "2024-03", "sourceId": " "}) == AnalyticsFilters(
            period_id="2024-03",
        )

    def test_input_not_mutated(self):
        tasks = copy.deepcopy(TASKS)
        build_snapshot(tasks, {"period_id": "2024-03"})
        assert tasks == TASKS


class TestFilters:
    def test_period(self):
        snapshot = build_snapshot(TASKS, {"period_id": "2024-03"})
        assert snapshot.summary.total_tasks == 2
        assert snapshot.period_id == "2024-03"

    def test_contributor_matches_owner_or_creator(self):
        snapshot = build_snapshot(TASKS, {"contributor_id": "u1"})
        assert snapshot.summary.total_tasks == 2

    def test_source(self):
        snapshot = build_snapshot(TASKS, {"source_id": "r1"})
        assert {e.label for e in snapshot.products.top} == {"prod casino", "prod sport"}

    def test_filters_combine_with_and(self):
        snapshot = build_snapshot(TASKS, {"source_id": "r1", "department": "design"})
        assert snapshot.summary.total_tasks == 1

    def test_blank_filters_ignored(self):
        snapshot = build_snapshot(TASKS, {"period_id": "", "department": "  "})
        assert snapshot.summary.total_tasks == 3


class TestSnapshotContents:
    def test_summary(self):
        summary = build_snapshot(TASKS).summary
        assert summary.total_tasks == 3
        assert summary.total_hours == 10.0
        assert summary.total_ai_hours == 1.0
        assert summary.tasks_with_ai == 1
        assert summary.ai_usage_percentage == 33.3
        assert summary.average_hours_per_task == 3.33
        assert summary.priority_tasks == 1
        assert summary.reworked_tasks == 1

    def test_subtype_breakdown(self):
        records = [
            {"id": "1", "product": "prod casino"},
            {"id": "2", "product": "prod sport"},
            {"id": "3", "product": "acq casino"},
            {"id": "4", "product": "misc lotto"},
        ]
        categories = build_snapshot(records).categories
        assert categories.subtypes == {
            Category.PROD: {"casino": 1, "sport": 1, "lotto": 0},
            Category.ACQ: {"casino": 1, "sport": 0, "lotto": 0},
        }
        assert categories.subtype_percentages[Category.PROD] == {
            "casino": 50.0, "sport": 50.0, "lotto": 0.0,
        }

    def test_time_distribution(self):
        dist = build_snapshot(TASKS, {"period_id": "2024-03"}).time_distribution
        assert dist.total_hours == 5.0
        assert dist.average_hours == 2.5
        assert dist.category_hours[Category.PROD] == 2.0
        assert dist.category_hours[Category.MKT] == 0.0
        assert dist.percentages[Category.PROD] == 40.0
        assert dist.percentages[Category.ACQ] == 60.0

    def test_contributors_use_directory_and_footprint(self):
        snapshot = build_snapshot(TASKS, users={"u1": "Ana Pop"})
        top = snapshot.contributors.top
        assert top[0].label == "Ana Pop"
        assert top[0].sub_value == "2xro de"
        assert top[1].label == "User u2"

    def test_contributor_hours_value(self):
        top = build_snapshot(TASKS).contributors.top
        assert [(e.label, e.hours_value) for e in top] == [("User u1", "5h"), ("User u2", "5h")]
        assert build_snapshot(TASKS).reporters.top[0].hours_value == ""

    def test_weekly_trends(self):
        trends = build_snapshot(TASKS + [{"id": "t4", "hours": 9}]).trends
        assert trends.weekly == {
            "2024-W10": TrendPoint(count=2, hours=5.0, ai_hours=1.0),
            "2024-W14": TrendPoint(count=1, hours=5.0, ai_hours=0.0),
        }
        assert list(trends.weekly) == ["2024-W10", "2024-W14"]
        assert trends.category_weekly == {
            Category.PROD: {"2024-W10": 1, "2024-W14": 1},
            Category.ACQ: {"2024-W10": 1, "2024-W14": 0},
            Category.MKT: {"2024-W10": 0, "2024-W14": 0},
            Category.MISC: {"2024-W10": 0, "2024-W14": 0},
        }
        assert trends.ai_weekly == {"2024-W10": GroupStats(count=1, hours=1.0)}

    def test_weeks_sorted_oldest_first(self):
        records = [
            {"id": "late", "createdAt": "2024-05-20"},
            {"id": "early", "createdAt": "2024-01-03"},
        ]
        assert list(build_snapshot(records).trends.weekly) == ["2024-W01", "2024-W21"]

    def test_empty_trends(self):
        trends = build_snapshot([]).trends
        assert trends.weekly == {}
        assert trends.ai_weekly == {}
        assert trends.category_weekly == {c: {} for c in Category}

    def test_product_market_combinations(self):
        records = TASKS + [
            {"id": "t4", "product": "prod casino", "markets": ["ro"]},
            {"id": "t5", "product": "prod casino"},
            {"id": "t6", "markets": ["de"]},
        ]
        combinations = build_snapshot(records).product_markets
        assert {k: (v.total_tasks, v.markets) for k, v in combinations.items()} == {
            "prod casino": (2, {"ro": 2, "de": 1}),
            "acq sport": (1, {"ro": 1}),
            "prod sport": (1, {"it": 1}),
        }

    def test_reporter_directory_as_list(self):
        reporters = [{"uid": "r1", "name": "Growth Team"}, {"id": "r2", "email": "r2@example.com"}]
        top = build_snapshot(TASKS, reporters=reporters).reporters.top
        assert [e.label for e in top] == ["Growth Team", "r2@example.com"]

    def test_days(self):
        days = build_snapshot(TASKS + [{"id": "t4"}]).days
        assert days.total == 3
        assert days.top[0].label == "2024-03-05"
        assert days.top[0].value == "2 tasks"

    def test_sections_have_headers(self):
        sections = build_snapshot(TASKS).sections
        assert set(sections) == set(FACET_NAMES)
        assert sections["markets"][0].is_header is True
        assert sections["markets"][0].label == "Top Markets"
        assert sections["ai_models"][0].icon is Icon.CPU

    def test_percentages_bounded(self):
        snapshot = build_snapshot(TASKS)
        for name in FACET_NAMES:
            values = getattr(snapshot, name).percentages.values()
            assert all(0 <= v <= 100 for v in values)
            assert abs(sum(round(v * 10) for v in values) - 1000) <= 1

    @pytest.mark.parametrize("groups", [3, 6, 7])
    def test_equal_market_groups_sum_within_a_tenth(self, groups):
        records = [{"id": str(i), "markets": [f"m{i}"]} for i in range(groups)]
        values = build_snapshot(records).markets.percentages.values()
        assert abs(sum(round(v * 10) for v in values) - 1000) <= 1
        assert sum(values) == pytest.approx(100, abs=0.1 + 1e-9)

    def test_cache_key(self):
        snapshot = build_snapshot(TASKS, {"period_id": "2024-03", "contributor_id": "u1"})
        assert snapshot.cache_key == "2024-03_u1_2_3000_t1,t2"

    def test_idempotent(self):
        first = build_snapshot(TASKS, users={"u1": "Ana"})
        second = build_snapshot(list(TASKS), users={"u1": "Ana"})
        assert first.model_dump() == second.model_dump()

    def test_json_serializable(self):
        dumped = json.loads(json.dumps(build_snapshot(TASKS).model_dump(mode="json")))
        assert dumped["categories"]["totals"]["counts"]["PROD"] == 2
        assert dumped["markets"]["top"][0]["icon"] == "trending_up"


class TestFacetIsolation:
    def test_failing_facet_is_zero_filled(self):
        def explode(record):
            raise RuntimeError("extractor bug")

        broken = FacetSpec(explode, Icon.TRENDING_UP, "No market data", "Top Markets")
        with patch.dict(FACETS, {"markets": broken}):
            snapshot = build_snapshot(TASKS)

        assert snapshot.markets.breakdown == {}
        assert snapshot.markets.top[0].is_no_data is True
        assert snapshot.products.total == 3
        assert snapshot.summary.total_tasks == 3

    def test_failing_time_distribution(self):
        with patch.object(AnalyticsFacade, "_time_distribution", side_effect=RuntimeError("boom")):
            snapshot = build_snapshot(TASKS)
        assert snapshot.time_distribution == TimeDistribution()
        assert snapshot.categories.totals.total == 3

    def test_failing_trends_leave_facets_intact(self):
        with patch.object(AnalyticsFacade, "_trends", side_effect=RuntimeError("boom")):
            snapshot = build_snapshot(TASKS)
        assert snapshot.trends.weekly == {}
        assert snapshot.markets.total == 4


class TestStandaloneOperations:
    def test_per_need_methods_accept_raw_records(self):
        facade = AnalyticsFacade()
        assert [e.label for e in facade.top_ai_tools(TASKS)] == ["Tool-A"]
        assert [e.label for e in facade.top_deliverables(TASKS)] == ["banner"]
        assert facade.top_reporters(TASKS, limit=1)[0].label == "Reporter r1"
        assert facade.market_distribution(TASKS).breakdown["ro"].count == 2
        assert facade.product_distribution(TASKS).total == 3
        assert facade.daily_distribution([]).top[0].label == "No dated tasks"
        assert facade.category_snapshot(TASKS).totals.counts[Category.PROD] == 2
        assert list(facade.trends(TASKS).weekly) == ["2024-W10", "2024-W14"]
        assert list(facade.product_market_combinations(TASKS)) == [
            "prod casino", "acq sport", "prod sport",
        ]

    def test_cache_key_id_chars(self):
        snapshot = AnalyticsFacade(cache_key_id_chars=2).build_snapshot(TASKS)
        assert snapshot.cache_key == "all_all_3_3000_t1"

    def test_snapshot_normalizes_records_once(self):
        with patch.object(
            facade_module, "normalize_records", wraps=facade_module.normalize_records,
        ) as normalize:
            build_snapshot(TASKS)
        assert normalize.call_count == 1
