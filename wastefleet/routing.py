import logging
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Tuple, Union

from .errors import NoOperationNeeded, StaleReferenceError
from .history import CollectionEvent, HistoryLedger
from .registry import BinRegistry, parse_threshold

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteStop:
    bin_id: str
    location: str
    fill_level: int


@dataclass(frozen=True)
class RoutePlan:
    """An ordered, not yet committed list of bins to collect."""
    stops: Tuple[RouteStop, ...]
    threshold: int
    estimated_minutes: int
    co2_saved_kg: float
    plan_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def bin_ids(self) -> Tuple[str, ...]:
        return tuple(s.bin_id for s in self.stops)

    def __len__(self):
        return len(self.stops)

    def __bool__(self):
        return bool(self.stops)


class RouteOptimizer:
    """
    Greedy dispatch: collect every bin at or above the threshold, fullest first.

    This does not look at geography. Ties on fill level keep registry insertion
    order. Planning is side-effect free; `execute_route` is the commit step.
    """

    def __init__(self, config: dict, registry: BinRegistry, ledger: HistoryLedger,
                 clock: Callable[[], datetime] = None):
        self.config = config
        self.registry = registry
        self.ledger = ledger
        self.clock = clock or datetime.now
        routing = self.config['routing']
        self.default_threshold = routing['dispatch_threshold']
        self.minutes_per_bin = routing['minutes_per_bin']
        self.co2_per_route = float(routing['co2_saved_per_route_kg'])
        # Plans drop out once the caller releases them
        self._executed_plans = weakref.WeakSet()

    def plan_route(self, threshold=None) -> Union[RoutePlan, NoOperationNeeded]:
        if threshold is None:
            threshold = self.default_threshold
        threshold = parse_threshold(threshold)
        with self.registry.lock:
            candidates = self.registry.search(lambda b: b.fill_level >= threshold)
            # sorted() is stable, so equal levels stay in insertion order
            candidates = sorted(candidates, key=lambda b: b.fill_level, reverse=True)
            stops = tuple(RouteStop(b.id, b.location, b.fill_level) for b in candidates)

        if not stops:
            return NoOperationNeeded(f"No bins require collection. All bins are below {threshold}% capacity.")

        return RoutePlan(
            stops=stops,
            threshold=threshold,
            estimated_minutes=self.minutes_per_bin * len(stops),
            co2_saved_kg=self.co2_per_route,
        )

    def execute_route(self, plan: Union[RoutePlan, NoOperationNeeded]) -> Union[CollectionEvent, NoOperationNeeded]:
        """Empty every planned bin and record one collection event.

        Raises StaleReferenceError, without changing anything, when a planned
        bin has been removed or the plan was already executed.
        """
        if not plan:
            return plan if isinstance(plan, NoOperationNeeded) else NoOperationNeeded("Route plan is empty")

        with self.registry.lock:
            if plan in self._executed_plans:
                raise StaleReferenceError(f"Route plan {plan.plan_id} was already executed", plan.bin_ids)
            missing = [bin_id for bin_id in plan.bin_ids if bin_id not in self.registry]
            if missing:
                raise StaleReferenceError(f"Route references bins no longer registered: {', '.join(missing)}",
                                          missing)

            for bin_id in plan.bin_ids:
                self.registry.set_fill_level(bin_id, 0)
            event = self.ledger.append(CollectionEvent.for_route(plan.bin_ids, self.clock()))
            self._executed_plans.add(plan)

        logger.info(f"Collection completed: {event.count} bins emptied ({', '.join(event.bin_ids)})")
        return event
