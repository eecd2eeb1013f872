import logging
import math
import numbers
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from .errors import DuplicateIdError, InvalidValueError, NotFoundError

logger = logging.getLogger(__name__)

MIN_LEVEL = 0
MAX_LEVEL = 100


class Category(Enum):
    GENERAL = "General"
    ORGANIC = "Organic"
    RECYCLABLE = "Recyclable"

    @classmethod
    def parse(cls, value) -> "Category":
        """Accept a Category, its value ("Organic") or its name ("ORGANIC")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            for member in cls:
                if text == member.value or text.upper() == member.name:
                    return member
        raise InvalidValueError(f"Unknown bin category: {value!r}", value=value)


def clamp_level(value) -> int:
    """Coerce a fill level to an int inside [0, 100]."""
    if isinstance(value, bool):
        raise InvalidValueError(f"Invalid fill level: {value!r}", value=value)
    try:
        level = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        raise InvalidValueError(f"Invalid fill level: {value!r}", value=value) from None
    return max(MIN_LEVEL, min(MAX_LEVEL, level))


def parse_capacity(value) -> int:
    """Capacity in liters must be a positive whole number."""
    if isinstance(value, bool):
        raise InvalidValueError(f"Invalid capacity value: {value!r}", value=value)
    if isinstance(value, str):
        value = value.strip()
    try:
        capacity = int(value)
    except (TypeError, ValueError):
        raise InvalidValueError(f"Invalid capacity value: {value!r}", value=value) from None
    if capacity <= 0:
        raise InvalidValueError(f"Capacity must be positive, got {capacity}", value=value)
    return capacity


def parse_threshold(value) -> float:
    """A percentage threshold must be a real number. Strings, booleans and NaN are rejected."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or math.isnan(value):
        raise InvalidValueError(f"Invalid threshold: {value!r}", value=value)
    return value


class Bin:
    """A monitored waste receptacle.

    id, location, category and capacity are fixed at creation. The fill level
    is a percentage of capacity and is only changed through the registry.
    """

    def __init__(self, bin_id: str, location: str, capacity, category, fill_level=0,
                 last_updated: Optional[datetime] = None):
        if not isinstance(bin_id, str) or not bin_id.strip():
            raise InvalidValueError("Bin ID is required", value=bin_id)
        if not isinstance(location, str) or not location.strip():
            raise InvalidValueError("Bin location is required", value=location)
        self._id = bin_id.strip()
        self._location = location.strip()
        self._capacity = parse_capacity(capacity)
        self._category = Category.parse(category)
        self._fill_level = clamp_level(fill_level)
        self._last_updated = last_updated or datetime.now()

    @property
    def id(self) -> str:
        return self._id

    @property
    def location(self) -> str:
        return self._location

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def category(self) -> Category:
        return self._category

    @property
    def fill_level(self) -> int:
        return self._fill_level

    @property
    def last_updated(self) -> datetime:
        return self._last_updated

    def __repr__(self):
        return (f"Bin(id={self.id!r}, location={self.location!r}, capacity={self.capacity}, "
                f"category={self.category.value}, fill_level={self.fill_level})")

    def to_dict(self) -> dict:
        """Plain record for persistence."""
        return {
            'id': self.id,
            'location': self.location,
            'capacity': self.capacity,
            'category': self.category.value,
            'fill_level': self.fill_level,
        }

    @staticmethod
    def from_dict(data: dict, last_updated: Optional[datetime] = None) -> "Bin":
        """Create a Bin from a persisted record."""
        return Bin(
            bin_id=data['id'],
            location=data['location'],
            capacity=data['capacity'],
            category=data['category'],
            fill_level=data.get('fill_level', 0),
            last_updated=last_updated,
        )


class BinRegistry:
    """
    Holds every bin of the fleet, keyed by id, in insertion order.

    `lock` guards the whole registry. Single operations take it themselves;
    compound operations (a simulator tick, a route execution) hold it for their
    whole duration so readers never see a half-applied update.
    """

    def __init__(self, clock: Callable[[], datetime] = None):
        self.lock = threading.RLock()
        self.clock = clock or datetime.now
        self._bins: Dict[str, Bin] = {}

    def __len__(self):
        with self.lock:
            return len(self._bins)

    def __contains__(self, bin_id):
        with self.lock:
            return bin_id in self._bins

    def __iter__(self):
        return self.all()

    def add(self, bin_obj: Bin) -> Bin:
        with self.lock:
            if bin_obj.id in self._bins:
                raise DuplicateIdError(bin_obj.id)
            self._bins[bin_obj.id] = bin_obj
        logger.debug(f"Registered bin {bin_obj.id} ({bin_obj.category.value}, {bin_obj.fill_level}%)")
        return bin_obj

    def add_many(self, bins: List[Bin]) -> None:
        """Insert a batch of bins, all or nothing."""
        with self.lock:
            seen = set()
            for b in bins:
                if b.id in self._bins or b.id in seen:
                    raise DuplicateIdError(b.id)
                seen.add(b.id)
            for b in bins:
                self._bins[b.id] = b

    def get(self, bin_id: str) -> Bin:
        with self.lock:
            try:
                return self._bins[bin_id]
            except KeyError:
                raise NotFoundError(bin_id) from None

    def remove(self, bin_id: str) -> Bin:
        with self.lock:
            if bin_id not in self._bins:
                raise NotFoundError(bin_id)
            return self._bins.pop(bin_id)

    def all(self) -> Iterator[Bin]:
        """Iterate bins in insertion order over a copy of the current membership."""
        with self.lock:
            bins = list(self._bins.values())
        yield from bins

    def ids(self) -> List[str]:
        with self.lock:
            return list(self._bins)

    def set_fill_level(self, bin_id: str, value) -> int:
        """Clamp `value` into [0, 100], store it and stamp the bin."""
        level = clamp_level(value)
        with self.lock:
            b = self.get(bin_id)
            b._fill_level = level
            b._last_updated = self.clock()
        return level

    def search(self, predicate: Callable[[Bin], bool]) -> List[Bin]:
        with self.lock:
            return [b for b in self._bins.values() if predicate(b)]

    def snapshot(self) -> List[dict]:
        """Consistent copy of all bin records, safe to serialize from any thread."""
        with self.lock:
            return [b.to_dict() for b in self._bins.values()]
