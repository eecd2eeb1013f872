"""
errors.py - Error taxonomy for the waste fleet engine

Every error is raised synchronously to the immediate caller. An operation that
raises leaves the bin registry and the history ledger exactly as it found them.

`NoOperationNeeded` is not an exception: it is the result returned when there
is nothing to do (an empty route plan, an empty history), so callers can tell
"nothing to do" apart from failure.
"""

from dataclasses import dataclass
from typing import Iterable, Optional


class WasteFleetError(Exception):
    """Base class for all waste fleet errors."""


class DuplicateIdError(WasteFleetError):
    """A bin with the same id is already registered."""

    def __init__(self, bin_id: str):
        super().__init__(f"Bin ID already exists: {bin_id}")
        self.bin_id = bin_id


class NotFoundError(WasteFleetError, LookupError):
    """An operation referenced a bin id that is not registered."""

    def __init__(self, bin_id: str):
        super().__init__(f"Unknown bin ID: {bin_id}")
        self.bin_id = bin_id


class StaleReferenceError(WasteFleetError):
    """A route plan references bins removed since planning, or was already executed."""

    def __init__(self, message: str, bin_ids: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.bin_ids = tuple(bin_ids or ())


class InvalidValueError(WasteFleetError, ValueError):
    """Malformed input rejected at the boundary, before any state is touched."""

    def __init__(self, message: str, value=None):
        super().__init__(message)
        self.value = value


@dataclass(frozen=True)
class NoOperationNeeded:
    """Successful no-op result. Falsy, so `if plan:` reads naturally."""

    reason: str = "Nothing to do"

    def __bool__(self):
        return False
