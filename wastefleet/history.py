"""
history.py - Append-only ledger of committed collection routes

Each executed route leaves exactly one CollectionEvent. Events are never edited
or removed; running totals (collections, CO2 saved) are derived from the ledger
length instead of being counted separately.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Sequence, Tuple

from .errors import InvalidValueError

logger = logging.getLogger(__name__)

BIN_ID_SEPARATOR = ';'


@dataclass(frozen=True)
class CollectionEvent:
    timestamp: datetime
    bin_ids: Tuple[str, ...]   # in service order
    count: int

    def __post_init__(self):
        # Normalise lists to tuples so the event stays immutable
        object.__setattr__(self, 'bin_ids', tuple(self.bin_ids))
        if not isinstance(self.timestamp, datetime):
            raise InvalidValueError(f"Event timestamp must be a datetime, got {self.timestamp!r}",
                                    value=self.timestamp)
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 0:
            raise InvalidValueError(f"Event count must be a non-negative int, got {self.count!r}",
                                    value=self.count)

    @classmethod
    def for_route(cls, bin_ids: Sequence[str], timestamp: datetime) -> "CollectionEvent":
        return cls(timestamp=timestamp, bin_ids=tuple(bin_ids), count=len(bin_ids))

    def to_dict(self, timestamp_format: str = None) -> dict:
        stamp = self.timestamp.strftime(timestamp_format) if timestamp_format else self.timestamp.isoformat()
        return {
            'timestamp': stamp,
            'bin_ids': BIN_ID_SEPARATOR.join(self.bin_ids),
            'count': self.count,
        }


class HistoryLedger:
    """Ordered collection events, oldest first."""

    def __init__(self):
        self.lock = threading.RLock()
        self._events: List[CollectionEvent] = []

    def __len__(self):
        with self.lock:
            return len(self._events)

    def append(self, event: CollectionEvent) -> CollectionEvent:
        if not isinstance(event, CollectionEvent):
            raise InvalidValueError(f"Not a CollectionEvent: {event!r}", value=event)
        with self.lock:
            self._events.append(event)
        logger.debug(f"Recorded collection of {event.count} bins at {event.timestamp}")
        return event

    def extend(self, events: Sequence[CollectionEvent]) -> None:
        """Append a batch of previously persisted events, all or nothing."""
        for event in events:
            if not isinstance(event, CollectionEvent):
                raise InvalidValueError(f"Not a CollectionEvent: {event!r}", value=event)
        with self.lock:
            self._events.extend(events)

    def all(self) -> Tuple[CollectionEvent, ...]:
        with self.lock:
            return tuple(self._events)
