from dataclasses import dataclass
from typing import Dict, Tuple

import pandas as pd

from .expert_rules import ExpertRules, Tier
from .history import HistoryLedger
from .registry import BinRegistry, Category

BIN_COLUMNS = ['id', 'location', 'capacity', 'category', 'fill_level']


@dataclass(frozen=True)
class CategoryStats:
    count: int
    average_fill: float


@dataclass(frozen=True)
class AnalyticsReport:
    total_bins: int
    tier_counts: Dict[Tier, int]
    tier_percentages: Dict[Tier, float]
    average_fill: float
    categories: Dict[Category, CategoryStats]
    overflow_risk_count: int
    total_collections: int
    co2_saved_kg: float
    waste_diverted_kg: float
    route_efficiency: float   # kg CO2 saved per route


class AnalyticsAggregator:
    """
    Read-side summary of the fleet and its collection history.

    Every figure is recomputed from a registry snapshot and the ledger length
    on each call. CO2 saved and waste diverted are flat per-collection policy
    constants from config, not measured quantities.
    """

    def __init__(self, config: dict, registry: BinRegistry, ledger: HistoryLedger, rules: ExpertRules = None):
        self.config = config
        self.registry = registry
        self.ledger = ledger
        self.rules = rules or ExpertRules(config)
        self.co2_per_route = float(self.config['routing']['co2_saved_per_route_kg'])
        self.waste_per_collection = float(self.config['analytics']['waste_diverted_per_collection_kg'])

    def snapshot(self) -> Tuple[pd.DataFrame, int]:
        """Bins as a frame plus the collection count, read under one lock."""
        with self.registry.lock:
            records = self.registry.snapshot()
            collections = len(self.ledger)
        return pd.DataFrame.from_records(records, columns=BIN_COLUMNS), collections

    def compute(self) -> AnalyticsReport:
        frame, collections = self.snapshot()
        total = len(frame)

        tiers = frame['fill_level'].map(self.rules.classify)
        tier_counts = {tier: int((tiers == tier).sum()) for tier in Tier}
        tier_percentages = {
            tier: (count * 100.0 / total) if total else 0.0
            for tier, count in tier_counts.items()
        }

        categories = {}
        by_category = frame.groupby('category')['fill_level'].agg(['count', 'mean']) if total else None
        for category in Category:
            if by_category is not None and category.value in by_category.index:
                row = by_category.loc[category.value]
                categories[category] = CategoryStats(int(row['count']), float(row['mean']))
            else:
                categories[category] = CategoryStats(0, 0.0)

        co2_saved = collections * self.co2_per_route
        return AnalyticsReport(
            total_bins=total,
            tier_counts=tier_counts,
            tier_percentages=tier_percentages,
            average_fill=float(frame['fill_level'].mean()) if total else 0.0,
            categories=categories,
            overflow_risk_count=int((frame['fill_level'] >= self.rules.overflow).sum()) if total else 0,
            total_collections=collections,
            co2_saved_kg=co2_saved,
            waste_diverted_kg=collections * self.waste_per_collection,
            route_efficiency=(co2_saved / collections) if collections else 0.0,
        )
