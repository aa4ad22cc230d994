"""
DipScore – Timeframes & Period Tables
=======================================
Conjunto cerrado de timeframes soportados y ajuste de períodos.

TIMEFRAMES:
  1s, 5s, 15s, 1m, 5m, 15m, 1h, 4h, 1d → duración exacta en ms.

PERÍODOS:
  Cada timeframe tiene su propia tabla: los timeframes cortos usan
  períodos proporcionalmente menores para reaccionar antes; de 15m en
  adelante se mantienen los osciladores clásicos (RSI 14, MACD 12/26)
  y se ensanchan las ventanas de tendencia y volatilidad. Además,
  todo período se limita a floor(0.8 × velas disponibles), de modo que
  un indicador nunca lee más allá de lo que soporta el buffer.
"""

from __future__ import annotations

import math
from typing import Dict

from dipscore.domain.exceptions import InvalidTimeframeError

TIMEFRAME_MS: Dict[str, int] = {
    "1s": 1_000,
    "5s": 5_000,
    "15s": 15_000,
    "1m": 60_000,
    "5m": 300_000,
    "15m": 900_000,
    "1h": 3_600_000,
    "4h": 14_400_000,
    "1d": 86_400_000,
}

# Velas mínimas antes de considerar un (símbolo, timeframe) "listo"
MINIMUM_PERIODS: Dict[str, int] = {
    "1s": 10,
    "5s": 8,
    "15s": 6,
    "1m": 15,
}
DEFAULT_MINIMUM_PERIODS = 20

# Fracción máxima del buffer que puede consumir un período
BUFFER_USAGE_RATIO = 0.8

PERIOD_TABLES: Dict[str, Dict[str, int]] = {
    "1s": {
        "sma_fast": 5, "sma_slow": 10, "ema_fast": 3, "ema_slow": 8,
        "rsi": 6, "bb": 8, "volume": 5, "stoch": 5, "atr": 5,
        "momentum": 3, "volatility": 5,
    },
    "5s": {
        "sma_fast": 4, "sma_slow": 8, "ema_fast": 3, "ema_slow": 6,
        "rsi": 5, "bb": 6, "volume": 4, "stoch": 4, "atr": 4,
        "momentum": 3, "volatility": 4,
    },
    "15s": {
        "sma_fast": 4, "sma_slow": 6, "ema_fast": 2, "ema_slow": 5,
        "rsi": 4, "bb": 5, "volume": 4, "stoch": 4, "atr": 3,
        "momentum": 2, "volatility": 3,
    },
    "1m": {
        "sma_fast": 10, "sma_slow": 20, "ema_fast": 6, "ema_slow": 12,
        "rsi": 8, "bb": 12, "volume": 10, "stoch": 8, "atr": 8,
        "momentum": 5, "volatility": 8,
    },
    "5m": {
        "sma_fast": 20, "sma_slow": 50, "ema_fast": 12, "ema_slow": 26,
        "rsi": 14, "bb": 20, "volume": 20, "stoch": 14, "atr": 14,
        "momentum": 10, "volatility": 14,
    },
    "15m": {
        "sma_fast": 20, "sma_slow": 50, "ema_fast": 12, "ema_slow": 26,
        "rsi": 14, "bb": 20, "volume": 20, "stoch": 14, "atr": 14,
        "momentum": 12, "volatility": 20,
    },
    "1h": {
        "sma_fast": 24, "sma_slow": 60, "ema_fast": 12, "ema_slow": 26,
        "rsi": 14, "bb": 20, "volume": 24, "stoch": 14, "atr": 14,
        "momentum": 12, "volatility": 24,
    },
    "4h": {
        "sma_fast": 30, "sma_slow": 90, "ema_fast": 12, "ema_slow": 26,
        "rsi": 14, "bb": 20, "volume": 30, "stoch": 14, "atr": 14,
        "momentum": 14, "volatility": 30,
    },
    "1d": {
        "sma_fast": 50, "sma_slow": 100, "ema_fast": 12, "ema_slow": 26,
        "rsi": 14, "bb": 20, "volume": 30, "stoch": 14, "atr": 14,
        "momentum": 20, "volatility": 30,
    },
}

# Período fijo de la SMA usada por la regla "precio vs SMA20"
SMA_REFERENCE_PERIOD = 20


def validate_timeframe(timeframe: str) -> str:
    if timeframe not in TIMEFRAME_MS:
        raise InvalidTimeframeError(timeframe)
    return timeframe


def timeframe_ms(timeframe: str) -> int:
    """Duración exacta del timeframe en milisegundos."""
    return TIMEFRAME_MS[validate_timeframe(timeframe)]


def minimum_periods(timeframe: str) -> int:
    """Velas necesarias antes de emitir indicadores/señales."""
    validate_timeframe(timeframe)
    return MINIMUM_PERIODS.get(timeframe, DEFAULT_MINIMUM_PERIODS)


def align_bucket(timestamp_ms: int, timeframe: str) -> int:
    """
    Inicio del bucket que contiene timestamp_ms.

    Ejemplo (5m = 300000 ms):
      1_700_000_123_456 → 1_700_000_100_000
    """
    duration = timeframe_ms(timeframe)
    return (int(timestamp_ms) // duration) * duration


def max_period(data_length: int) -> int:
    return math.floor(data_length * BUFFER_USAGE_RATIO)


def optimal_periods(timeframe: str, data_length: int) -> Dict[str, int]:
    """
    Tabla de períodos del timeframe, cada uno limitado por el buffer.

    Incluye `macd_signal` = max(2, ema_fast // 2) y `sma_20`, ambos
    derivados y también limitados.
    """
    validate_timeframe(timeframe)
    cap = max_period(data_length)

    periods = {name: min(value, cap) for name, value in PERIOD_TABLES[timeframe].items()}
    periods["macd_signal"] = min(max(2, periods["ema_fast"] // 2), cap)
    periods["sma_20"] = min(SMA_REFERENCE_PERIOD, cap)
    return periods
