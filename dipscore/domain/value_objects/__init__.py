"""Domain value objects."""
from dipscore.domain.value_objects.indicator_snapshot import (
    BollingerBands,
    IndicatorSnapshot,
    MACDResult,
    MomentumResult,
    PriceVelocity,
    StochasticResult,
    SupportResistance,
    VolatilityResult,
)
from dipscore.domain.value_objects.tick import Tick
from dipscore.domain.value_objects.trading_signals import TradingSignals

__all__ = [
    "Tick",
    "IndicatorSnapshot",
    "MACDResult",
    "BollingerBands",
    "StochasticResult",
    "MomentumResult",
    "PriceVelocity",
    "VolatilityResult",
    "SupportResistance",
    "TradingSignals",
]
