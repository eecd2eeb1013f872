import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from .errors import InvalidValueError
from .expert_rules import ExpertRules, Tier
from .registry import MAX_LEVEL, BinRegistry, Category
from .seed import init_seed

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    tick: int
    updated: Dict[str, int] = field(default_factory=dict)   # bin id -> new level
    became_critical: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updated)


def parse_growth_ranges(raw: dict) -> Dict[Category, Tuple[int, int]]:
    ranges = {}
    for name, bounds in raw.items():
        category = Category.parse(name)
        try:
            low, high = (int(v) for v in bounds)
        except (TypeError, ValueError):
            raise InvalidValueError(f"Growth range for {name} must be [low, high], got {bounds!r}",
                                    value=bounds) from None
        if low < 0 or high < low:
            raise InvalidValueError(f"Invalid growth range for {name}: [{low}, {high}]", value=bounds)
        ranges[category] = (low, high)
    missing = [c.value for c in Category if c not in ranges]
    if missing:
        raise InvalidValueError(f"No growth range configured for: {', '.join(missing)}", value=missing)
    return ranges


class FillSimulator:
    """
    Advances every bin's fill level on a fixed interval.

    Each tick adds a random whole number of percentage points drawn from the
    bin category's inclusive growth range, capped at 100. Bins already at 100
    are left alone, timestamp included. Ticks never touch the history ledger.

    `rng` is anything with numpy's `integers(low, high)` signature, so tests
    can pass a seeded generator or a stub.
    """

    def __init__(self, config: dict, registry: BinRegistry, rng=None, rules: ExpertRules = None):
        self.config = config
        self.registry = registry
        sim_cfg = self.config['simulation']
        self.interval = float(sim_cfg['tick_interval_seconds'])
        if self.interval <= 0:
            raise InvalidValueError(f"Tick interval must be positive, got {self.interval}", value=self.interval)
        self.growth_ranges = parse_growth_ranges(sim_cfg['growth_ranges'])
        self.rng = rng if rng is not None else init_seed(self.config['run'].get('seed'))
        self.rules = rules or ExpertRules(config)
        self.tick_count = 0

        self._listeners: List[Callable[[TickResult], None]] = []
        self._stop_event = threading.Event()
        self._thread = None
        self._lifecycle_lock = threading.Lock()

    def growth_for(self, category: Category) -> int:
        low, high = self.growth_ranges[category]
        # numpy's upper bound is exclusive
        return int(self.rng.integers(low, high + 1))

    def refill_bins(self) -> TickResult:
        """Run one tick over the whole registry, atomically."""
        with self.registry.lock:
            self.tick_count += 1
            result = TickResult(tick=self.tick_count)
            for b in self.registry.all():
                if b.fill_level >= MAX_LEVEL:
                    continue
                before = self.rules.classify(b.fill_level)
                delta = self.growth_for(b.category)
                level = self.registry.set_fill_level(b.id, b.fill_level + delta)
                result.updated[b.id] = level
                if before is not Tier.CRITICAL and self.rules.classify(level) is Tier.CRITICAL:
                    result.became_critical.append(b.id)

        logger.debug(f"Tick {result.tick}: {len(result.updated)} bins refilled")
        for bin_id in result.became_critical:
            logger.warning(f"Bin {bin_id} reached CRITICAL level ({result.updated[bin_id]}%)")
        return result

    def tick(self) -> TickResult:
        result = self.refill_bins()
        for listener in list(self._listeners):
            listener(result)
        return result

    def run_ticks(self, count: int) -> List[TickResult]:
        """Run `count` ticks synchronously, without the timer."""
        return [self.tick() for _ in range(count)]

    def add_listener(self, listener: Callable[[TickResult], None]) -> None:
        self._listeners.append(listener)

    # ========================================================================
    # PERIODIC TASK
    # ========================================================================

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lifecycle_lock:
            if self.is_running:
                return
            # Each run gets its own event so a later start cannot revive a cancelled loop
            self._stop_event = threading.Event()
            self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                            name="fill-simulator", daemon=True)
            self._thread.start()
        logger.info(f"Fill simulator started (interval {self.interval}s)")

    def stop(self, timeout: float = None) -> None:
        """Cancel the periodic task.

        Without a timeout this returns once no further tick can run. If the
        timeout expires first, the tick in progress completes and no new one starts.
        """
        with self._lifecycle_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            if thread is not threading.current_thread():
                thread.join(timeout)
            self._thread = None
        if thread.is_alive() and thread is not threading.current_thread():
            logger.warning(f"Fill simulator did not stop within {timeout}s, its in-flight tick will finish")
        logger.info(f"Fill simulator stopped after {self.tick_count} ticks")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.tick()
            except Exception:
                # Listener failures are logged; the timer keeps running
                logger.exception("Fill simulator tick failed")
