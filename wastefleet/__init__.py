from .config import CONFIG, DATA_DIR, load_config
from .errors import (
    DuplicateIdError,
    InvalidValueError,
    NoOperationNeeded,
    NotFoundError,
    StaleReferenceError,
    WasteFleetError,
)
from .expert_rules import Tier, Urgency, classify
from .history import CollectionEvent, HistoryLedger
from .registry import Bin, BinRegistry, Category
from .routing import RoutePlan, RouteStop
from .system import WasteManagementSystem

__all__ = [
    "CONFIG", "DATA_DIR", "load_config",
    "WasteFleetError", "DuplicateIdError", "NotFoundError", "StaleReferenceError",
    "InvalidValueError", "NoOperationNeeded",
    "Tier", "Urgency", "classify",
    "Bin", "BinRegistry", "Category",
    "CollectionEvent", "HistoryLedger",
    "RoutePlan", "RouteStop",
    "WasteManagementSystem",
]
