"""
Workforce Analytics Facade
============================

Builds one AnalyticsSnapshot per reporting request:

  1. validate the input collection and filters
  2. normalize every record once (malformed records are skipped)
  3. apply the filters (period, contributor, source, department; AND)
  4. compute every facet independently (breakdowns, weekly trends,
     product x market combinations)
  5. assemble the fixed-shape snapshot

A facet that fails is logged and zero-filled; the other facets are not
affected. The facade keeps no state between calls.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional

from pydantic import ValidationError

from analytics.engine.aggregator import (
    KeyExtractor,
    aggregate,
    breakdown_percentages,
    breakdown_total,
    ensure_record_collection,
    group_records,
    market_footprints,
    percentages,
    round_half_away,
)
from analytics.engine.cache_key import DEFAULT_ID_CHARS, build_cache_key
from analytics.engine.classifier import SUBTYPE_VOCABULARY, classify_category, classify_subtype
from analytics.engine.dates import week_key
from analytics.engine.normalizer import normalize_records
from analytics.engine.top_n import DEFAULT_LIMIT, no_data_entry, top_n, with_header
from analytics.lib.errors import ContractViolationError
from analytics.lib.logger import setup_logger
from models.analytics_models import (
    CANONICAL_CATEGORIES,
    AnalyticsFilters,
    AnalyticsSnapshot,
    Category,
    CategorySnapshot,
    CategoryTotals,
    FacetSnapshot,
    GroupStats,
    Icon,
    ProductMarketStats,
    SummaryTotals,
    TimeDistribution,
    TopNEntry,
    TrendPoint,
    TrendSnapshot,
    WorkItemRecord,
)

logger = setup_logger(__name__)

Directory = Optional[Any]

_FILTER_KEY_ALIASES = {
    "periodId": "period_id",
    "contributorId": "contributor_id",
    "sourceId": "source_id",
}


class FacetSpec(NamedTuple):
    key_extractor: KeyExtractor
    icon: Icon
    no_data_label: str
    header_label: str
    hours_extractor: Optional[Callable[[WorkItemRecord], float]] = None
    with_footprints: bool = False
    with_hours: bool = False


def _product_of(record: WorkItemRecord) -> Optional[str]:
    return record.product


def _week_of(record: WorkItemRecord) -> Optional[str]:
    return week_key(record.created_at)


def _day_key(record: WorkItemRecord) -> Optional[str]:
    return record.created_at.isoformat() if record.created_at else None


FACETS: Dict[str, FacetSpec] = {
    "markets": FacetSpec(
        lambda r: r.markets, Icon.TRENDING_UP, "No market data", "Top Markets",
    ),
    "ai_models": FacetSpec(
        lambda r: r.ai_models, Icon.CPU, "No AI models used", "Top AI Models",
        hours_extractor=lambda r: r.ai_hours,
    ),
    "deliverables": FacetSpec(
        lambda r: [d.name for d in r.deliverables], Icon.DELIVERABLE,
        "No deliverables", "Top Deliverables",
    ),
    "contributors": FacetSpec(
        lambda r: r.contributor_id, Icon.USER, "No contributors", "Top Contributors",
        with_footprints=True, with_hours=True,
    ),
    "reporters": FacetSpec(
        lambda r: r.reporter_id, Icon.REPORTER, "No reporters", "Top Reporters",
        with_footprints=True,
    ),
    "products": FacetSpec(
        _product_of, Icon.PACKAGE, "No products worked on", "Top Products",
    ),
    "days": FacetSpec(
        _day_key, Icon.CALENDAR, "No dated tasks", "Busiest Days",
    ),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def coerce_filters(filters: Any) -> AnalyticsFilters:
    """Accept None, a mapping (camelCase or snake_case) or AnalyticsFilters."""
    if filters is None:
        return AnalyticsFilters()
    if isinstance(filters, AnalyticsFilters):
        return filters
    if not isinstance(filters, Mapping):
        raise ContractViolationError(
            f"filters must be a mapping, got {type(filters).__name__}",
            argument="filters", received=filters,
        )

    values = {
        _FILTER_KEY_ALIASES.get(key, key): value
        for key, value in filters.items()
        if value is not None
    }
    try:
        return AnalyticsFilters.model_validate(values)
    except ValidationError as e:
        raise ContractViolationError(
            f"Invalid filters: {e.errors()[0]['msg']}", argument="filters", received=filters,
        ) from e


def matches_filters(record: WorkItemRecord, filters: AnalyticsFilters) -> bool:
    if filters.period_id is not None and record.reporting_period_id != filters.period_id:
        return False
    if filters.contributor_id is not None and filters.contributor_id not in (
        record.owner_id, record.created_by_id,
    ):
        return False
    if filters.source_id is not None and record.reporter_id != filters.source_id:
        return False
    if filters.department is not None and filters.department not in record.departments:
        return False
    return True


def _directory_names(directory: Directory) -> Dict[str, str]:
    """Id -> display name from a mapping or a list of {id|uid, name|email}."""
    if isinstance(directory, Mapping):
        return {
            str(key): name.strip() for key, name in directory.items()
            if isinstance(name, str) and name.strip()
        }
    names: Dict[str, str] = {}
    if isinstance(directory, (list, tuple)):
        for entry in directory:
            if not isinstance(entry, Mapping):
                continue
            entity_id = entry.get("id") or entry.get("uid")
            name = entry.get("name") or entry.get("reporterName") or entry.get("email")
            if entity_id and isinstance(name, str) and name.strip():
                names[str(entity_id)] = name.strip()
    return names


def directory_labeler(directory: Directory, fallback_prefix: str) -> Callable[[str], str]:
    names = _directory_names(directory)

    def label(key: str) -> str:
        return names.get(key) or f"{fallback_prefix} {key}"

    return label


def empty_facet(name: str) -> FacetSnapshot:
    spec = FACETS[name]
    return FacetSnapshot(top=[no_data_entry(spec.icon, spec.no_data_label)])


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------

class AnalyticsFacade:
    """Assembles analytics snapshots from plain work item collections."""

    def __init__(self, cache_key_id_chars: int = DEFAULT_ID_CHARS) -> None:
        self._cache_key_id_chars = cache_key_id_chars

    def _prepare(self, records: Any) -> List[WorkItemRecord]:
        items, skipped = normalize_records(ensure_record_collection(records))
        if skipped:
            logger.warning("Skipped %d malformed work item(s)", skipped)
        return items

    # --- computations over normalized records -------------------------

    def _summary(self, items: List[WorkItemRecord]) -> SummaryTotals:
        total = len(items)
        total_hours = round(sum(r.hours for r in items), 2)
        with_ai = sum(1 for r in items if r.ai_usage)
        return SummaryTotals(
            total_tasks=total,
            total_hours=total_hours,
            total_ai_hours=round(sum(r.ai_hours for r in items), 2),
            tasks_with_ai=with_ai,
            ai_usage_percentage=round_half_away(100 * with_ai / total) if total else 0.0,
            average_hours_per_task=round(total_hours / total, 2) if total else 0.0,
            priority_tasks=sum(1 for r in items if r.is_priority),
            reworked_tasks=sum(1 for r in items if r.is_reworked),
        )

    def _categories(self, items: List[WorkItemRecord]) -> CategorySnapshot:
        def category_of(record: WorkItemRecord) -> Category:
            return classify_category(record.product)

        def subtype_of(record: WorkItemRecord) -> str:
            return classify_subtype(record.product).value

        breakdown = aggregate(items, category_of)
        counts = {
            category: breakdown.get(category.value, GroupStats()).count
            for category in CANONICAL_CATEGORIES
        }

        present_subtypes = {subtype_of(r) for r in items}
        discovered = [s.value for s in SUBTYPE_VOCABULARY if s.value in present_subtypes]

        subtypes: Dict[Category, Dict[str, int]] = {}
        members = group_records(items, category_of)
        for category in CANONICAL_CATEGORIES:
            if category is Category.MISC or category.value not in members:
                continue
            found = aggregate(members[category.value], subtype_of)
            subtypes[category] = {
                subtype: found.get(subtype, GroupStats()).count for subtype in discovered
            }

        return CategorySnapshot(
            totals=CategoryTotals(counts=counts, total=sum(counts.values())),
            percentages=percentages(counts),
            subtypes=subtypes,
            subtype_percentages={
                category: percentages(sub_counts)
                for category, sub_counts in subtypes.items()
            },
        )

    def _time_distribution(self, items: List[WorkItemRecord]) -> TimeDistribution:
        breakdown = aggregate(items, lambda r: classify_category(r.product))
        category_hours = {
            category: breakdown.get(category.value, GroupStats()).hours
            for category in CANONICAL_CATEGORIES
        }
        total_hours = round(sum(r.hours for r in items), 2)
        return TimeDistribution(
            total_hours=total_hours,
            average_hours=round(total_hours / len(items), 2) if items else 0.0,
            category_hours=category_hours,
            percentages=percentages(category_hours),
        )

    def _facet(
        self,
        name: str,
        items: List[WorkItemRecord],
        limit: int,
        labeler: Optional[Callable[[str], str]] = None,
    ) -> FacetSnapshot:
        spec = FACETS[name]
        breakdown = aggregate(items, spec.key_extractor, spec.hours_extractor)
        footprints = (
            market_footprints(items, spec.key_extractor) if spec.with_footprints else None
        )
        return FacetSnapshot(
            breakdown=breakdown,
            percentages=breakdown_percentages(breakdown),
            total=breakdown_total(breakdown),
            top=top_n(
                breakdown, limit, spec.no_data_label, spec.icon,
                labeler=labeler, footprints=footprints, with_hours=spec.with_hours,
            ),
        )

    def _trends(self, items: List[WorkItemRecord]) -> TrendSnapshot:
        """Weekly counts and hours; undated records are left out."""
        counted = aggregate(items, _week_of)
        ai_time = aggregate(items, _week_of, lambda r: r.ai_hours)
        weeks = sorted(counted)

        members = group_records(items, lambda r: classify_category(r.product))
        category_weekly: Dict[Category, Dict[str, int]] = {}
        for category in CANONICAL_CATEGORIES:
            found = aggregate(members.get(category.value, []), _week_of)
            category_weekly[category] = {
                week: found.get(week, GroupStats()).count for week in weeks
            }

        ai_found = aggregate([r for r in items if r.ai_hours > 0], _week_of, lambda r: r.ai_hours)
        return TrendSnapshot(
            weekly={
                week: TrendPoint(
                    count=counted[week].count,
                    hours=counted[week].hours,
                    ai_hours=ai_time[week].hours,
                )
                for week in weeks
            },
            category_weekly=category_weekly,
            ai_weekly={week: ai_found[week] for week in weeks if week in ai_found},
        )

    def _product_markets(self, items: List[WorkItemRecord]) -> Dict[str, ProductMarketStats]:
        with_markets = [r for r in items if r.markets]
        footprints = market_footprints(with_markets, _product_of)
        return {
            product: ProductMarketStats(total_tasks=stats.count, markets=footprints[product])
            for product, stats in aggregate(with_markets, _product_of).items()
        }

    # --- per-need snapshots -------------------------------------------

    def summary(self, records: Any) -> SummaryTotals:
        return self._summary(self._prepare(records))

    def category_snapshot(self, records: Any) -> CategorySnapshot:
        """
        Category totals over the four canonical categories (zero-filled),
        plus subtype counts for the non-MISC categories that occur.
        """
        return self._categories(self._prepare(records))

    def time_distribution(self, records: Any) -> TimeDistribution:
        return self._time_distribution(self._prepare(records))

    def trends(self, records: Any) -> TrendSnapshot:
        return self._trends(self._prepare(records))

    def product_market_combinations(self, records: Any) -> Dict[str, ProductMarketStats]:
        """Per product: tasks that name at least one market, and their market counts."""
        return self._product_markets(self._prepare(records))

    def facet(
        self,
        name: str,
        records: Any,
        limit: int = DEFAULT_LIMIT,
        labeler: Optional[Callable[[str], str]] = None,
    ) -> FacetSnapshot:
        """Breakdown, percentages and top-N list for one named facet."""
        return self._facet(name, self._prepare(records), limit, labeler)

    def market_distribution(self, records: Any, limit: int = DEFAULT_LIMIT) -> FacetSnapshot:
        return self.facet("markets", records, limit)

    def product_distribution(self, records: Any, limit: int = DEFAULT_LIMIT) -> FacetSnapshot:
        return self.facet("products", records, limit)

    def daily_distribution(self, records: Any, limit: int = DEFAULT_LIMIT) -> FacetSnapshot:
        return self.facet("days", records, limit)

    def top_contributors(
        self, records: Any, limit: int = DEFAULT_LIMIT, users: Directory = None,
    ) -> List[TopNEntry]:
        return self.facet(
            "contributors", records, limit, directory_labeler(users, "User"),
        ).top

    def top_reporters(
        self, records: Any, limit: int = DEFAULT_LIMIT, reporters: Directory = None,
    ) -> List[TopNEntry]:
        return self.facet(
            "reporters", records, limit, directory_labeler(reporters, "Reporter"),
        ).top

    def top_ai_tools(self, records: Any, limit: int = DEFAULT_LIMIT) -> List[TopNEntry]:
        return self.facet("ai_models", records, limit).top

    def top_deliverables(self, records: Any, limit: int = DEFAULT_LIMIT) -> List[TopNEntry]:
        return self.facet("deliverables", records, limit).top

    # --- full snapshot ------------------------------------------------

    def _isolated(self, name: str, build: Callable[[], Any], fallback: Callable[[], Any]) -> Any:
        try:
            return build()
        except ContractViolationError:
            raise
        except Exception:
            logger.exception("Facet '%s' failed; reporting it as empty", name)
            return fallback()

    def build_snapshot(
        self,
        records: Any,
        filters: Any = None,
        users: Directory = None,
        reporters: Directory = None,
    ) -> AnalyticsSnapshot:
        """
        Compute the complete snapshot for one reporting request.

        Args:
            records: List of raw work item mappings (or WorkItemRecords).
            filters: None, a mapping or AnalyticsFilters.
            users: Optional contributor directory (id -> name, or a list of
                {id|uid, name|email} mappings).
            reporters: Optional reporter directory, same shapes as ``users``.

        Returns:
            A fully populated AnalyticsSnapshot; zero-filled when there is
            nothing to aggregate.

        Raises:
            ContractViolationError: ``records`` is a string/bytes, or the
                filters are invalid.
        """
        applied = coerce_filters(filters)

        if isinstance(records, (str, bytes, bytearray)):
            raise ContractViolationError(
                "records must be a list of work items, got a string",
                argument="records", received=records,
            )
        if not isinstance(records, (list, tuple)):
            logger.warning(
                "Expected a list of work items, got %s; returning an empty snapshot",
                type(records).__name__,
            )
            records = []

        normalized = self._prepare(records)
        items = [record for record in normalized if matches_filters(record, applied)]
        limit = applied.limit

        labelers = {
            "contributors": directory_labeler(users, "User"),
            "reporters": directory_labeler(reporters, "Reporter"),
        }
        facets = {
            name: self._isolated(
                name,
                lambda name=name: self._facet(name, items, limit, labelers.get(name)),
                lambda name=name: empty_facet(name),
            )
            for name in FACETS
        }

        snapshot = AnalyticsSnapshot(
            period_id=applied.period_id,
            filters=applied,
            cache_key=build_cache_key(
                items, applied.period_id, applied.contributor_id,
                id_chars=self._cache_key_id_chars,
            ),
            summary=self._isolated("summary", lambda: self._summary(items), SummaryTotals),
            categories=self._isolated(
                "categories", lambda: self._categories(items), CategorySnapshot,
            ),
            time_distribution=self._isolated(
                "time_distribution", lambda: self._time_distribution(items), TimeDistribution,
            ),
            trends=self._isolated("trends", lambda: self._trends(items), TrendSnapshot),
            product_markets=self._isolated(
                "product_markets", lambda: self._product_markets(items), dict,
            ),
            sections={
                name: with_header(FACETS[name].icon, FACETS[name].header_label, facet.top)
                for name, facet in facets.items()
            },
            **facets,
        )

        logger.debug(
            "Snapshot %s: %d of %d task(s) after filters, %.2f hours",
            snapshot.cache_key, len(items), len(normalized), snapshot.summary.total_hours,
        )
        return snapshot


def build_snapshot(
    records: Any,
    filters: Any = None,
    users: Directory = None,
    reporters: Directory = None,
) -> AnalyticsSnapshot:
    """Convenience wrapper around a default AnalyticsFacade."""
    return AnalyticsFacade().build_snapshot(records, filters, users, reporters)
