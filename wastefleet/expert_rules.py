from dataclasses import dataclass
from enum import Enum

from .errors import InvalidValueError
from .registry import Bin

WARNING_THRESHOLD = 60
CRITICAL_THRESHOLD = 80


class Tier(Enum):
    NORMAL = "NORMAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @classmethod
    def parse(cls, value) -> "Tier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidValueError(f"Unknown status: {value!r}", value=value) from None


_TIER_RANK = {Tier.NORMAL: 0, Tier.WARNING: 1, Tier.CRITICAL: 2}


class Urgency(Enum):
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


def classify(fill_level, warning: float = WARNING_THRESHOLD, critical: float = CRITICAL_THRESHOLD) -> Tier:
    """Map a fill percentage to its urgency tier.

    Total over all numbers: values below 0 read as NORMAL and values above 100
    as CRITICAL, so out-of-range input never raises.
    """
    if fill_level >= critical:
        return Tier.CRITICAL
    if fill_level >= warning:
        return Tier.WARNING
    return Tier.NORMAL


@dataclass(frozen=True)
class Alert:
    bin_id: str
    location: str
    fill_level: int
    urgency: Urgency


class ExpertRules:
    """
    Threshold rules applied to bins: tier classification, overflow risk and
    alert urgency. Thresholds come from the `expert_rules` config section.
    """
    def __init__(self, config: dict, warning_threshold: float = None, critical_threshold: float = None):
        self.config = config
        rules = self.config['expert_rules']
        self.warning = warning_threshold if warning_threshold is not None else rules['warning_threshold']
        self.critical = critical_threshold if critical_threshold is not None else rules['critical_threshold']
        self.overflow = rules.get('overflow_threshold', 90)
        self.alert_high = rules.get('alert_high_threshold', 90)
        self.alert_urgent = rules.get('alert_urgent_threshold', 95)

    def classify(self, fill_level) -> Tier:
        return classify(fill_level, warning=self.warning, critical=self.critical)

    def evaluate(self, bin_obj: Bin) -> Tier:
        return self.classify(bin_obj.fill_level)

    def is_overflow_risk(self, bin_obj: Bin) -> bool:
        return bin_obj.fill_level >= self.overflow

    def urgency(self, fill_level) -> Urgency:
        if fill_level >= self.alert_urgent:
            return Urgency.URGENT
        if fill_level >= self.alert_high:
            return Urgency.HIGH
        return Urgency.MEDIUM

    def alert_for(self, bin_obj: Bin) -> Alert:
        return Alert(bin_obj.id, bin_obj.location, bin_obj.fill_level, self.urgency(bin_obj.fill_level))
