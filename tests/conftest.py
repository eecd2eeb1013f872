import copy
from datetime import datetime, timedelta

import pytest

from wastefleet.config import load_config
from wastefleet.system import WasteManagementSystem


class StubRng:
    """Always draws the low end of a range, or a fixed value when given one."""

    def __init__(self, value=None):
        self.value = value
        self.calls = []

    def integers(self, low, high):
        self.calls.append((low, high))
        if self.value is None:
            return low
        return self.value


class FakeClock:
    def __init__(self, start=datetime(2024, 3, 1, 8, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def config():
    return copy.deepcopy(load_config())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stub_rng():
    return StubRng()


@pytest.fixture
def system(config, clock, stub_rng):
    return WasteManagementSystem(config, rng=stub_rng, clock=clock)


@pytest.fixture
def abc_system(system):
    """A(90, Organic), B(55, General), C(75, Recyclable)."""
    system.add_bin("A", "North Gate", 100, "Organic", 90)
    system.add_bin("B", "Library", 80, "General", 55)
    system.add_bin("C", "Canteen", 120, "Recyclable", 75)
    return system
