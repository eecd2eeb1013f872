import pytest

from wastefleet.errors import InvalidValueError
from wastefleet.expert_rules import ExpertRules, Tier, Urgency, classify
from wastefleet.registry import Bin


class TestClassify:
    @pytest.mark.parametrize("level,tier", [
        (0, Tier.NORMAL), (59, Tier.NORMAL), (60, Tier.WARNING), (79, Tier.WARNING),
        (80, Tier.CRITICAL), (100, Tier.CRITICAL),
    ])
    def test_thresholds(self, level, tier):
        assert classify(level) is tier

    def test_total_and_monotonic(self):
        previous = Tier.NORMAL
        for level in range(0, 101):
            tier = classify(level)
            assert isinstance(tier, Tier)
            assert tier.rank >= previous.rank
            previous = tier

    def test_out_of_range_does_not_raise(self):
        assert classify(-20) is Tier.NORMAL
        assert classify(150) is Tier.CRITICAL


class TestExpertRules:
    def test_uses_configured_thresholds(self, config):
        config['expert_rules']['warning_threshold'] = 50
        rules = ExpertRules(config)
        assert rules.classify(55) is Tier.WARNING
        assert rules.evaluate(Bin("A", "Gate", 100, "General", 85)) is Tier.CRITICAL

    def test_overrides_beat_config(self, config):
        rules = ExpertRules(config, warning_threshold=10, critical_threshold=20)
        assert rules.classify(15) is Tier.WARNING
        assert rules.classify(20) is Tier.CRITICAL

    @pytest.mark.parametrize("level,urgency", [(80, Urgency.MEDIUM), (89, Urgency.MEDIUM),
                                               (90, Urgency.HIGH), (94, Urgency.HIGH),
                                               (95, Urgency.URGENT), (100, Urgency.URGENT)])
    def test_alert_urgency(self, config, level, urgency):
        assert ExpertRules(config).urgency(level) is urgency

    def test_overflow_risk(self, config):
        rules = ExpertRules(config)
        assert rules.is_overflow_risk(Bin("A", "Gate", 100, "General", 90))
        assert not rules.is_overflow_risk(Bin("B", "Gate", 100, "General", 89))


class TestTierParse:
    def test_parse(self):
        assert Tier.parse("critical") is Tier.CRITICAL
        assert Tier.parse(Tier.WARNING) is Tier.WARNING
        with pytest.raises(InvalidValueError):
            Tier.parse("SEVERE")
