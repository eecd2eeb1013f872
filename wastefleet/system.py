"""
system.py - Command surface of the waste fleet engine

WasteManagementSystem wires the registry, simulator, classifier, route
optimizer, history ledger and analytics together and exposes the operations a
shell (CLI, GUI, persistence) calls.

RESPONSIBILITIES:
- Validate caller input before it reaches the registry
- Serialize every state change through the registry lock
- Own the simulator lifecycle (start/stop, or use as a context manager)
- Notify change listeners with a consistent snapshot after each change

DOES NOT:
- Parse or write files (that's storage.CsvStorage)
- Ask for confirmation before executing a route (callers decide when to commit)

USAGE:
    system = WasteManagementSystem(CONFIG)
    system.load_defaults()

    plan = system.plan_route()
    if plan:
        system.execute_route(plan)

    report = system.get_analytics()
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .analytics import AnalyticsAggregator, AnalyticsReport
from .config import CONFIG
from .errors import NoOperationNeeded
from .expert_rules import Alert, ExpertRules, Tier
from .history import CollectionEvent, HistoryLedger
from .registry import Bin, BinRegistry, Category
from .routing import RouteOptimizer, RoutePlan
from .simulation import FillSimulator, TickResult

logger = logging.getLogger(__name__)

ALL_FILTER = "ALL"

ChangeListener = Callable[[List[dict], Tuple[CollectionEvent, ...]], None]


def _is_unfiltered(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip().upper()
        return text == "" or text.startswith(ALL_FILTER)
    return False


class WasteManagementSystem:

    def __init__(self, config: dict = None, rng=None, clock: Callable[[], datetime] = None):
        self.config = config if config is not None else CONFIG
        self.clock = clock or datetime.now
        self.registry = BinRegistry(clock=self.clock)
        self.ledger = HistoryLedger()
        self.rules = ExpertRules(self.config)
        self.simulator = FillSimulator(self.config, self.registry, rng=rng, rules=self.rules)
        self.router = RouteOptimizer(self.config, self.registry, self.ledger, clock=self.clock)
        self.analytics = AnalyticsAggregator(self.config, self.registry, self.ledger, rules=self.rules)

        self._change_listeners: List[ChangeListener] = []
        self.simulator.add_listener(self._on_tick)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def start(self) -> None:
        self.simulator.start()

    def stop(self) -> None:
        self.simulator.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    # ========================================================================
    # LOADING
    # ========================================================================

    def load_bins(self, records: Iterable[dict]) -> int:
        """Bulk-load persisted bin records. Rejects the whole batch on any bad record."""
        now = self.clock()
        bins = []
        for record in records:
            bins.append(Bin.from_dict(record, last_updated=now))
        with self.registry.lock:
            self.registry.add_many(bins)
        logger.info(f"Loaded {len(bins)} bins")
        self._notify_change()
        return len(bins)

    def load_history(self, events: Iterable[CollectionEvent]) -> int:
        events = list(events)
        self.ledger.extend(events)
        logger.info(f"Loaded {len(events)} collection events")
        return len(events)

    def load_defaults(self) -> int:
        """Seed the starter fleet from config with random initial levels."""
        defaults = self.config['defaults']
        max_level = int(defaults.get('max_initial_level', 49))
        records = []
        for entry in defaults['bins']:
            record = dict(entry)
            record['fill_level'] = int(self.simulator.rng.integers(0, max_level + 1))
            records.append(record)
        return self.load_bins(records)

    # ========================================================================
    # COMMANDS
    # ========================================================================

    def add_bin(self, bin_id: str, location: str, capacity, category, fill_level=0) -> Bin:
        b = Bin(bin_id, location, capacity, category, fill_level, last_updated=self.clock())
        self.registry.add(b)
        logger.info(f"Added bin {b.id} at {b.location}")
        self._notify_change()
        return b

    def remove_bin(self, bin_id: str) -> Bin:
        b = self.registry.remove(bin_id)
        logger.info(f"Removed bin {bin_id}")
        self._notify_change()
        return b

    def get_bin(self, bin_id: str) -> Bin:
        return self.registry.get(bin_id)

    def reset_bin(self, bin_id: str) -> None:
        self.registry.set_fill_level(bin_id, 0)
        self._notify_change()

    def reset_all(self) -> int:
        """Empty every bin without recording a collection."""
        with self.registry.lock:
            ids = self.registry.ids()
            for bin_id in ids:
                self.registry.set_fill_level(bin_id, 0)
        logger.info(f"All {len(ids)} bins reset to 0%")
        self._notify_change()
        return len(ids)

    def tick(self) -> TickResult:
        """Run one simulation step now, outside the timer."""
        return self.simulator.tick()

    def plan_route(self, threshold=None) -> Union[RoutePlan, NoOperationNeeded]:
        return self.router.plan_route(threshold)

    def execute_route(self, plan: Union[RoutePlan, NoOperationNeeded]) -> Union[CollectionEvent, NoOperationNeeded]:
        result = self.router.execute_route(plan)
        if result:
            self._notify_change()
        return result

    def get_analytics(self) -> AnalyticsReport:
        return self.analytics.compute()

    def get_alerts(self) -> List[Alert]:
        with self.registry.lock:
            critical = self.registry.search(lambda b: self.rules.evaluate(b) is Tier.CRITICAL)
            critical.sort(key=lambda b: b.fill_level, reverse=True)
            return [self.rules.alert_for(b) for b in critical]

    def get_history(self) -> Union[Tuple[CollectionEvent, ...], NoOperationNeeded]:
        """Committed collections, oldest first."""
        events = self.ledger.all()
        if not events:
            return NoOperationNeeded("No collection history available yet")
        return events

    def search(self, text: str = "", category=None, status=None) -> List[Bin]:
        needle = (text or "").strip().lower()
        wanted_category: Optional[Category] = None if _is_unfiltered(category) else Category.parse(category)
        wanted_status: Optional[Tier] = None if _is_unfiltered(status) else Tier.parse(status)

        def matches(b: Bin) -> bool:
            if needle and needle not in b.id.lower() and needle not in b.location.lower():
                return False
            if wanted_category is not None and b.category is not wanted_category:
                return False
            if wanted_status is not None and self.rules.evaluate(b) is not wanted_status:
                return False
            return True

        return self.registry.search(matches)

    def status_of(self, bin_id: str) -> Tier:
        return self.rules.evaluate(self.registry.get(bin_id))

    # ========================================================================
    # SNAPSHOTS / CHANGE NOTIFICATION
    # ========================================================================

    def snapshot(self) -> List[dict]:
        return self.registry.snapshot()

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    def _on_tick(self, result: TickResult) -> None:
        if result.changed:
            self._notify_change()

    def _notify_change(self) -> None:
        if not self._change_listeners:
            return
        with self.registry.lock:
            bins = self.registry.snapshot()
            history = self.ledger.all()
        for listener in list(self._change_listeners):
            try:
                listener(bins, history)
            except Exception:
                # Persistence is best effort and never rolls back core state
                logger.exception("Change listener failed")
