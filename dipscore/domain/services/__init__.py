"""Domain services - Pure business logic with no external dependencies."""
from dipscore.domain.services.indicator_calculator import IndicatorCalculator
from dipscore.domain.services.signal_rules import SignalRules, SignalRulesConfig

__all__ = [
    "IndicatorCalculator",
    "SignalRules",
    "SignalRulesConfig",
]
