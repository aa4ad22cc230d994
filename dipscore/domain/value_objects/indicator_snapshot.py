"""
DipScore – Domain Value Objects: Indicator results
====================================================
Resultados inmutables del IndicatorCalculator y el snapshot completo
de un (símbolo, timeframe).

Todos son frozen: un snapshot se recalcula desde la serie de velas,
nunca se modifica.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True, slots=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float

    def to_dict(self) -> dict:
        return {"macd": self.macd, "signal": self.signal, "histogram": self.histogram}


@dataclass(frozen=True, slots=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    bandwidth: float

    def to_dict(self) -> dict:
        return {
            "upper": self.upper,
            "middle": self.middle,
            "lower": self.lower,
            "bandwidth": self.bandwidth,
        }


@dataclass(frozen=True, slots=True)
class StochasticResult:
    k: float
    interpretation: str   # oversold | overbought | neutral

    def to_dict(self) -> dict:
        return {"k": self.k, "interpretation": self.interpretation}


@dataclass(frozen=True, slots=True)
class MomentumResult:
    value: float          # % de cambio
    interpretation: str   # strong_bullish … strong_bearish

    def to_dict(self) -> dict:
        return {"value": self.value, "interpretation": self.interpretation}


@dataclass(frozen=True, slots=True)
class PriceVelocity:
    velocity: float       # % por segundo
    acceleration: float
    interpretation: str   # low_velocity | medium_velocity | high_velocity

    def to_dict(self) -> dict:
        return {
            "velocity": self.velocity,
            "acceleration": self.acceleration,
            "interpretation": self.interpretation,
        }


@dataclass(frozen=True, slots=True)
class VolatilityResult:
    volatility: float
    annualized: float
    classification: str   # very_low … extremely_high

    def to_dict(self) -> dict:
        return {
            "volatility": self.volatility,
            "annualized": self.annualized,
            "classification": self.classification,
        }


@dataclass(frozen=True, slots=True)
class SupportResistance:
    support: List[float]
    resistance: List[float]
    current_price: float

    def to_dict(self) -> dict:
        return {
            "support": list(self.support),
            "resistance": list(self.resistance),
            "current_price": self.current_price,
        }


@dataclass(frozen=True)
class IndicatorSnapshot:
    """
    Foto completa de indicadores para un (símbolo, timeframe).

    Los campos son Optional: cada indicador puede seguir sin datos
    suficientes aunque el snapshot en sí ya exista.
    """

    price: float
    timestamp: int                              # bucket_start de la última vela
    data_points: int
    sma_fast: Optional[float] = None
    sma_slow: Optional[float] = None
    sma_20: Optional[float] = None
    ema_fast: Optional[float] = None
    ema_slow: Optional[float] = None
    rsi: Optional[float] = None
    macd: Optional[MACDResult] = None
    bollinger: Optional[BollingerBands] = None
    volume_sma: Optional[float] = None
    stochastic: Optional[StochasticResult] = None
    atr: Optional[float] = None
    momentum: Optional[MomentumResult] = None
    price_velocity: Optional[PriceVelocity] = None
    volatility: Optional[VolatilityResult] = None
    trend: Optional[str] = None
    support_resistance: Optional[SupportResistance] = None
    periods: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialización para push callbacks / API."""

        def _nested(value):
            return value.to_dict() if value is not None else None

        return {
            "price": self.price,
            "timestamp": self.timestamp,
            "data_points": self.data_points,
            "sma_fast": self.sma_fast,
            "sma_slow": self.sma_slow,
            "sma_20": self.sma_20,
            "ema_fast": self.ema_fast,
            "ema_slow": self.ema_slow,
            "rsi": self.rsi,
            "macd": _nested(self.macd),
            "bb": _nested(self.bollinger),
            "volume_sma": self.volume_sma,
            "stoch": _nested(self.stochastic),
            "atr": self.atr,
            "momentum": _nested(self.momentum),
            "price_velocity": _nested(self.price_velocity),
            "volatility": _nested(self.volatility),
            "trend": self.trend,
            "support_resistance": _nested(self.support_resistance),
            "periods": dict(self.periods),
        }
