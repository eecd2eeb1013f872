import dataclasses
import gc

import pytest

from wastefleet.errors import InvalidValueError, NoOperationNeeded, StaleReferenceError
from wastefleet.history import HistoryLedger
from wastefleet.registry import Bin, BinRegistry
from wastefleet.routing import RouteOptimizer, RoutePlan


@pytest.fixture
def registry(clock):
    return BinRegistry(clock=clock)


@pytest.fixture
def ledger():
    return HistoryLedger()


@pytest.fixture
def router(config, registry, ledger, clock):
    return RouteOptimizer(config, registry, ledger, clock=clock)


def fill(registry, **levels):
    for bin_id, level in levels.items():
        registry.add(Bin(bin_id, f"Spot {bin_id}", 100, "General", level))


class TestPlanRoute:
    def test_selects_and_orders_by_level(self, registry, router):
        fill(registry, A=90, B=55, C=75)
        plan = router.plan_route(70)
        assert isinstance(plan, RoutePlan)
        assert plan.bin_ids == ("A", "C")
        assert [s.fill_level for s in plan.stops] == [90, 75]

    def test_default_threshold_from_config(self, registry, router):
        fill(registry, A=69, B=70)
        assert router.plan_route().bin_ids == ("B",)

    def test_threshold_is_inclusive(self, registry, router):
        fill(registry, A=50)
        assert router.plan_route(50).bin_ids == ("A",)

    def test_ties_keep_insertion_order(self, registry, router):
        fill(registry, D=80, A=95, B=80, C=80)
        assert router.plan_route(70).bin_ids == ("A", "D", "B", "C")

    def test_estimates_and_co2_constant(self, registry, router):
        fill(registry, A=90, B=85, C=71)
        plan = router.plan_route(70)
        assert plan.estimated_minutes == 45
        assert plan.co2_saved_kg == 2.5
        assert plan.threshold == 70

    def test_nothing_to_collect(self, registry, router):
        fill(registry, A=10, B=69)
        before = registry.snapshot()
        result = router.plan_route(70)
        assert isinstance(result, NoOperationNeeded)
        assert not result
        assert "70%" in result.reason
        assert registry.snapshot() == before

    @pytest.mark.parametrize("threshold", ["70", float("nan"), True, [70]])
    def test_invalid_threshold_rejected(self, registry, router, threshold):
        fill(registry, A=90)
        with pytest.raises(InvalidValueError):
            router.plan_route(threshold)

    def test_float_threshold(self, registry, router):
        fill(registry, A=90, B=70)
        assert router.plan_route(70.5).bin_ids == ("A",)

    def test_planning_has_no_side_effects(self, registry, ledger, router):
        fill(registry, A=90)
        router.plan_route(70)
        assert registry.get("A").fill_level == 90
        assert len(ledger) == 0


class TestExecuteRoute:
    def test_empties_bins_and_records_event(self, registry, ledger, router, clock):
        fill(registry, A=90, B=55, C=75)
        plan = router.plan_route(70)
        event = router.execute_route(plan)

        assert registry.get("A").fill_level == 0
        assert registry.get("C").fill_level == 0
        assert registry.get("B").fill_level == 55
        assert ledger.all() == (event,)
        assert event.bin_ids == ("A", "C")
        assert event.count == 2
        assert event.timestamp == clock()

    def test_empty_plan_is_noop(self, registry, ledger, router):
        fill(registry, A=10)
        nothing = router.plan_route(70)
        assert router.execute_route(nothing) is nothing
        empty = RoutePlan(stops=(), threshold=70, estimated_minutes=0, co2_saved_kg=2.5)
        assert isinstance(router.execute_route(empty), NoOperationNeeded)
        assert registry.get("A").fill_level == 10
        assert len(ledger) == 0

    def test_removed_bin_aborts_whole_route(self, registry, ledger, router):
        fill(registry, A=90, B=85, C=80)
        plan = router.plan_route(70)
        registry.remove("B")
        with pytest.raises(StaleReferenceError) as excinfo:
            router.execute_route(plan)
        assert excinfo.value.bin_ids == ("B",)
        assert registry.get("A").fill_level == 90
        assert registry.get("C").fill_level == 80
        assert len(ledger) == 0

    def test_plan_cannot_be_executed_twice(self, registry, ledger, router):
        fill(registry, A=90)
        plan = router.plan_route(70)
        router.execute_route(plan)
        registry.set_fill_level("A", 95)
        with pytest.raises(StaleReferenceError):
            router.execute_route(plan)
        assert registry.get("A").fill_level == 95
        assert len(ledger) == 1

    def test_executed_plans_are_not_retained(self, registry, router):
        fill(registry, A=90)
        plan = router.plan_route(70)
        router.execute_route(plan)
        assert len(router._executed_plans) == 1
        del plan
        gc.collect()
        assert len(router._executed_plans) == 0

    def test_equal_copy_of_executed_plan_is_refused(self, registry, router):
        fill(registry, A=90)
        plan = router.plan_route(70)
        router.execute_route(plan)
        registry.set_fill_level("A", 90)
        with pytest.raises(StaleReferenceError):
            router.execute_route(dataclasses.replace(plan))
