"""
Workforce Analytics — Pydantic Models
=======================================

Normalized work item records, filter parameters and the snapshot objects
produced by the aggregation engine. Every model here is rebuilt on each
engine call; none of them carries state between calls.
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Closed vocabularies ────────────────────────────────────

class Category(str, Enum):
    """High-level work category derived from the product label."""
    PROD = "PROD"
    ACQ = "ACQ"
    MKT = "MKT"
    MISC = "MISC"


CANONICAL_CATEGORIES: Tuple[Category, ...] = (
    Category.PROD, Category.ACQ, Category.MKT, Category.MISC,
)


class ProductSubtype(str, Enum):
    """Product subtype, in matching priority order."""
    CASINO = "casino"
    SPORT = "sport"
    POKER = "poker"
    LOTTO = "lotto"
    NONE = ""


class Icon(str, Enum):
    """Icon tokens understood by the presentation layer."""
    TRENDING_UP = "trending_up"
    CPU = "cpu"
    PACKAGE = "package"
    USER = "user"
    REPORTER = "reporter"
    CLOCK = "clock"
    CALENDAR = "calendar"
    DELIVERABLE = "deliverable"


class Classification(NamedTuple):
    category: Category
    subtype: ProductSubtype


# ─── Work item records ──────────────────────────────────────

class AIUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    models: Tuple[str, ...] = ()
    ai_hours: float = 0.0


class Deliverable(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    count: float = 1.0


class WorkItemRecord(BaseModel):
    """One normalized work item. Built by the record normalizer."""
    model_config = ConfigDict(frozen=True)

    id: str
    reporting_period_id: Optional[str] = None
    owner_id: Optional[str] = None
    created_by_id: Optional[str] = None
    reporter_id: Optional[str] = None
    departments: Tuple[str, ...] = ()
    product: Optional[str] = None
    markets: Tuple[str, ...] = ()
    hours: float = 0.0
    ai_usage: Tuple[AIUsage, ...] = ()
    deliverables: Tuple[Deliverable, ...] = ()
    created_at: Optional[date] = None
    updated_at: Optional[datetime] = None
    is_priority: bool = False
    is_reworked: bool = False

    @property
    def contributor_id(self) -> Optional[str]:
        """The owner wins over the creator."""
        return self.owner_id or self.created_by_id

    @property
    def ai_models(self) -> Tuple[str, ...]:
        seen = dict.fromkeys(
            model for usage in self.ai_usage for model in usage.models
        )
        return tuple(seen)

    @property
    def ai_hours(self) -> float:
        return sum(usage.ai_hours for usage in self.ai_usage)


class AnalyticsFilters(BaseModel):
    """Optional record filters, combined with AND semantics."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    period_id: Optional[str] = None
    contributor_id: Optional[str] = None
    source_id: Optional[str] = None
    department: Optional[str] = None
    limit: int = Field(3, ge=1, description="Size of every top-N list")

    @field_validator("period_id", "contributor_id", "source_id", "department", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


# ─── Aggregation results ────────────────────────────────────

class GroupStats(BaseModel):
    """Count and summed hours for one group of a breakdown."""
    model_config = ConfigDict(frozen=True)

    count: int = 0
    hours: float = 0.0


class TopNEntry(BaseModel):
    """One row of a ranked list, a section header, or the no-data sentinel."""
    model_config = ConfigDict(frozen=True)

    icon: Icon
    label: str
    value: str = ""
    sub_value: str = ""
    hours_value: str = ""
    is_header: bool = False
    is_no_data: bool = False


class CategoryTotals(BaseModel):
    counts: Dict[Category, int] = Field(
        default_factory=lambda: {c: 0 for c in CANONICAL_CATEGORIES}
    )
    total: int = 0


class CategorySnapshot(BaseModel):
    totals: CategoryTotals = Field(default_factory=CategoryTotals)
    percentages: Dict[Category, float] = Field(
        default_factory=lambda: {c: 0.0 for c in CANONICAL_CATEGORIES}
    )
    subtypes: Dict[Category, Dict[str, int]] = Field(default_factory=dict)
    subtype_percentages: Dict[Category, Dict[str, float]] = Field(default_factory=dict)


class TimeDistribution(BaseModel):
    total_hours: float = 0.0
    average_hours: float = 0.0
    category_hours: Dict[Category, float] = Field(
        default_factory=lambda: {c: 0.0 for c in CANONICAL_CATEGORIES}
    )
    percentages: Dict[Category, float] = Field(
        default_factory=lambda: {c: 0.0 for c in CANONICAL_CATEGORIES}
    )


class FacetSnapshot(BaseModel):
    """Breakdown, percentages and top-N list for one facet."""
    breakdown: Dict[str, GroupStats] = Field(default_factory=dict)
    percentages: Dict[str, float] = Field(default_factory=dict)
    total: int = Field(0, description="Percentage base: sum of group counts")
    top: List[TopNEntry] = Field(default_factory=list)


class TrendPoint(BaseModel):
    """Tasks, task hours and AI hours for one week."""
    model_config = ConfigDict(frozen=True)

    count: int = 0
    hours: float = 0.0
    ai_hours: float = 0.0


class TrendSnapshot(BaseModel):
    """Week-by-week activity, keyed by ISO week ("2024-W09"), oldest first."""
    weekly: Dict[str, TrendPoint] = Field(default_factory=dict)
    category_weekly: Dict[Category, Dict[str, int]] = Field(
        default_factory=lambda: {c: {} for c in CANONICAL_CATEGORIES}
    )
    ai_weekly: Dict[str, GroupStats] = Field(
        default_factory=dict,
        description="Tasks with AI time per week; hours are AI hours",
    )


class ProductMarketStats(BaseModel):
    """Markets a product was delivered for."""
    total_tasks: int = 0
    markets: Dict[str, int] = Field(default_factory=dict)


class SummaryTotals(BaseModel):
    total_tasks: int = 0
    total_hours: float = 0.0
    total_ai_hours: float = 0.0
    tasks_with_ai: int = 0
    ai_usage_percentage: float = 0.0
    average_hours_per_task: float = 0.0
    priority_tasks: int = 0
    reworked_tasks: int = 0


class AnalyticsSnapshot(BaseModel):
    """Complete, always fully populated result of one aggregation call."""
    period_id: Optional[str] = None
    filters: AnalyticsFilters = Field(default_factory=AnalyticsFilters)
    cache_key: str = ""
    summary: SummaryTotals = Field(default_factory=SummaryTotals)
    categories: CategorySnapshot = Field(default_factory=CategorySnapshot)
    time_distribution: TimeDistribution = Field(default_factory=TimeDistribution)
    markets: FacetSnapshot = Field(default_factory=FacetSnapshot)
    ai_models: FacetSnapshot = Field(default_factory=FacetSnapshot)
    deliverables: FacetSnapshot = Field(default_factory=FacetSnapshot)
    contributors: FacetSnapshot = Field(default_factory=FacetSnapshot)
    reporters: FacetSnapshot = Field(default_factory=FacetSnapshot)
    products: FacetSnapshot = Field(default_factory=FacetSnapshot)
    days: FacetSnapshot = Field(default_factory=FacetSnapshot)
    trends: TrendSnapshot = Field(default_factory=TrendSnapshot)
    product_markets: Dict[str, ProductMarketStats] = Field(default_factory=dict)
    sections: Dict[str, List[TopNEntry]] = Field(default_factory=dict)
