"""
Aggregation Service — Folds labelled keyword/search-term rows into groups
keyed by syntax label or by label root, and derives rate metrics per group.

Filters apply to input rows before folding. Rates are computed once per
group from the summed totals after every row has been folded in; they are
never averaged across members.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from ppc_dashboard.services.reporting_service import derive_rates
from ppc_dashboard.services.syntax_classifier import split_root

logger = logging.getLogger(__name__)


class GroupingMode(str, enum.Enum):
    BY_LABEL = "BY_LABEL"
    BY_ROOT = "BY_ROOT"


@dataclass(frozen=True)
class MetricTuple:
    impressions: int = 0
    clicks: int = 0
    cost: float = 0.0
    sales: float = 0.0
    orders: int = 0


@dataclass(frozen=True)
class AggregationInput:
    """One labelled row: a keyword (or search term) and its metrics for one day or window."""
    label: str
    metrics: MetricTuple
    member_id: str
    campaign_id: str
    campaign_type: Optional[str] = None
    match_type: Optional[str] = None
    portfolio: Optional[str] = None
    date: Optional[date] = None


@dataclass
class AggregationFilters:
    """Row-level filters. Rows without a date pass the date bounds."""
    root_prefix: Optional[str] = None
    campaign_type: Optional[str] = None
    match_type: Optional[str] = None
    portfolio: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def matches(self, row: AggregationInput) -> bool:
        if self.root_prefix and not row.label.startswith(self.root_prefix):
            return False
        if self.campaign_type and row.campaign_type != self.campaign_type:
            return False
        if self.match_type and row.match_type != self.match_type:
            return False
        if self.portfolio and row.portfolio != self.portfolio:
            return False
        if row.date is not None:
            if self.start_date and row.date < self.start_date:
                return False
            if self.end_date and row.date > self.end_date:
                return False
        return True


@dataclass
class AggregateGroup:
    key: str
    impressions: int = 0
    clicks: int = 0
    cost: float = 0.0
    sales: float = 0.0
    orders: int = 0
    member_ids: set = field(default_factory=set)
    campaign_ids: set = field(default_factory=set)
    sub_groups: set = field(default_factory=set)
    ctr: float = 0.0
    cvr: float = 0.0
    cpc: float = 0.0
    acos: float = 0.0
    roas: float = 0.0

    @property
    def keyword_count(self) -> int:
        return len(self.member_ids)

    @property
    def campaign_count(self) -> int:
        return len(self.campaign_ids)

    @property
    def syntax_group_count(self) -> int:
        return len(self.sub_groups)

    def fold(self, row: AggregationInput, mode: GroupingMode) -> None:
        m = row.metrics
        self.impressions += m.impressions
        self.clicks += m.clicks
        self.cost += m.cost
        self.sales += m.sales
        self.orders += m.orders
        self.member_ids.add(row.member_id)
        self.campaign_ids.add(row.campaign_id)
        if mode == GroupingMode.BY_ROOT:
            self.sub_groups.add(row.label)

    def finalize(self) -> "AggregateGroup":
        rates = derive_rates(self.impressions, self.clicks, self.cost, self.sales, self.orders)
        self.ctr = rates["ctr"]
        self.cvr = rates["cvr"]
        self.cpc = rates["cpc"]
        self.acos = rates["acos"]
        self.roas = rates["roas"]
        return self

    def metrics_dict(self) -> dict:
        return {
            "impressions": self.impressions,
            "clicks": self.clicks,
            "cost": self.cost,
            "sales": self.sales,
            "orders": self.orders,
            "ctr": self.ctr,
            "cvr": self.cvr,
            "cpc": self.cpc,
            "acos": self.acos,
            "roas": self.roas,
        }

    def to_dict(self, mode: GroupingMode) -> dict:
        if mode == GroupingMode.BY_ROOT:
            return {
                "root": self.key,
                "syntax_group_count": self.syntax_group_count,
                "keyword_count": self.keyword_count,
                "campaign_count": self.campaign_count,
                "metrics": self.metrics_dict(),
                "sub_groups": sorted(self.sub_groups),
            }
        return {
            "syntax_group": self.key,
            "keyword_count": self.keyword_count,
            "campaign_count": self.campaign_count,
            "metrics": self.metrics_dict(),
        }


def group_key(label: str, mode: GroupingMode) -> str:
    if mode == GroupingMode.BY_ROOT:
        return split_root(label)
    return label


def aggregate(
    rows: Iterable[AggregationInput],
    mode: GroupingMode = GroupingMode.BY_LABEL,
    filters: Optional[AggregationFilters] = None,
) -> list[AggregateGroup]:
    """
    Group rows and return finalized groups sorted by cost, highest first.
    Ties keep first-seen order.
    """
    groups: dict[str, AggregateGroup] = {}
    skipped = 0

    for row in rows:
        if filters is not None and not filters.matches(row):
            skipped += 1
            continue
        key = group_key(row.label, mode)
        group = groups.get(key)
        if group is None:
            group = groups[key] = AggregateGroup(key=key)
        group.fold(row, mode)

    if skipped:
        logger.debug(f"Aggregation filtered out {skipped} rows")

    finalized = [g.finalize() for g in groups.values()]
    return sorted(finalized, key=lambda g: g.cost, reverse=True)
