"""
DipScore – Domain Service: Indicator Calculator
=================================================
Cálculos de indicadores técnicos puros sobre series de precios.

Todas las funciones:
- Reciben listas ordenadas (más antiguo primero).
- Son stateless: mismo input → mismo output.
- Retornan None cuando la serie es más corta que el período requerido
  ("todavía no listo"), NUNCA lanzan por datos insuficientes.

SIN DEPENDENCIAS EXTERNAS:
Las series son cortas (≤ capacidad del buffer de velas) y los cálculos son
aritmética simple, por lo que math puro basta y las fórmulas quedan
explícitas y auditables.

REDONDEO:
  SMA, RSI, Bollinger, ATR → 2 decimales
  MACD, Momentum           → 4 decimales
  EMA                      → sin redondeo (EMA(p, 1) == p[-1] exacto)
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from dipscore.domain.value_objects.indicator_snapshot import (
    BollingerBands,
    MACDResult,
    MomentumResult,
    PriceVelocity,
    StochasticResult,
    SupportResistance,
    VolatilityResult,
)

# Factor de anualización para volatilidad de retornos "por segundo"
SECONDS_PER_YEAR = 365 * 24 * 3600

# Ventana de búsqueda de soportes/resistencias
SR_LOOKBACK = 50

# Velas necesarias para comparar media reciente (10) vs anterior (10)
TREND_WINDOW = 10


class IndicatorCalculator:
    """
    Calculadora de indicadores técnicos puros.

    NO mantiene estado. El ajuste de períodos por timeframe vive en
    market_data.services.timeframes; aquí solo están las fórmulas.
    """

    # ════════════════════════════════════════════════════════════════
    #  MEDIAS MÓVILES
    # ════════════════════════════════════════════════════════════════

    @staticmethod
    def sma(prices: Sequence[float], period: int) -> Optional[float]:
        """
        SMA = Σ(prices[-period:]) / period, redondeado a 2 decimales.
        """
        if period < 1 or len(prices) < period:
            return None
        return round(sum(prices[-period:]) / period, 2)

    @staticmethod
    def ema(prices: Sequence[float], period: int) -> Optional[float]:
        """
        EMA con seed en el PRIMER precio de la serie.

        FÓRMULA:
            k     = 2 / (period + 1)
            EMA_0 = prices[0]
            EMA_t = price_t × k + EMA_{t-1} × (1 − k)

        Con period=1 → k=1 y el resultado es exactamente prices[-1].
        """
        if period < 1 or len(prices) < period:
            return None
        k = 2.0 / (period + 1)
        value = prices[0]
        for price in prices[1:]:
            value = price * k + value * (1.0 - k)
        return value

    @staticmethod
    def _ema_series(prices: Sequence[float], period: int) -> List[float]:
        """EMA acumulada: elemento i == ema(prices[:i + 1], period) sin chequeo de longitud."""
        k = 2.0 / (period + 1)
        series: List[float] = []
        value = prices[0]
        for i, price in enumerate(prices):
            if i > 0:
                value = price * k + value * (1.0 - k)
            series.append(value)
        return series

    # ════════════════════════════════════════════════════════════════
    #  OSCILADORES
    # ════════════════════════════════════════════════════════════════

    @staticmethod
    def rsi(prices: Sequence[float], period: int = 14) -> Optional[float]:
        """
        RSI sobre los últimos `period` cambios de precio.

        FÓRMULA:
            avg_gain = Σ(gains) / period
            avg_loss = Σ(losses) / period
            RSI      = 100 − 100 / (1 + avg_gain / avg_loss)

        Sin pérdidas en la ventana (avg_loss == 0) → 100.
        """
        if period < 1 or len(prices) < period + 1:
            return None

        recent = prices[-(period + 1):]
        total_gain = 0.0
        total_loss = 0.0
        for prev, curr in zip(recent, recent[1:]):
            delta = curr - prev
            if delta > 0:
                total_gain += delta
            elif delta < 0:
                total_loss -= delta

        avg_gain = total_gain / period
        avg_loss = total_loss / period

        if avg_loss == 0:
            return 100.0

        rs = avg_gain / avg_loss
        return round(100.0 - (100.0 / (1.0 + rs)), 2)

    @classmethod
    def macd(
        cls,
        prices: Sequence[float],
        fast_period: int = 12,
        slow_period: int = 26,
        signal_period: int = 9,
    ) -> Optional[MACDResult]:
        """
        MACD = EMA_fast − EMA_slow.

        La línea de señal es la EMA(signal_period) del HISTÓRICO de la
        línea MACD, evaluada en cada prefijo de la serie con al menos
        max(fast, slow) precios. Como la EMA tiene seed en prices[0], el
        valor para cada prefijo es la EMA acumulada en ese índice → O(n).

        Si el histórico es más corto que signal_period, signal = 0 e
        histogram = 0.
        """
        if min(fast_period, slow_period, signal_period) < 1:
            return None
        warmup = max(fast_period, slow_period)
        if len(prices) < warmup:
            return None

        fast_series = cls._ema_series(prices, fast_period)
        slow_series = cls._ema_series(prices, slow_period)
        history = [
            fast - slow
            for fast, slow in zip(fast_series[warmup - 1:], slow_series[warmup - 1:])
        ]

        macd_line = history[-1]
        signal_line = cls.ema(history, signal_period)
        histogram = macd_line - signal_line if signal_line is not None else 0.0

        return MACDResult(
            macd=round(macd_line, 4),
            signal=round(signal_line or 0.0, 4),
            histogram=round(histogram, 4),
        )

    @staticmethod
    def stochastic(
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
        period: int = 14,
    ) -> Optional[StochasticResult]:
        """
        %K = (close − lowest_low) / (highest_high − lowest_low) × 100

        < 20 oversold, > 80 overbought. Rango plano → 50 (neutral).
        """
        if period < 1 or min(len(highs), len(lows), len(closes)) < period:
            return None

        highest = max(highs[-period:])
        lowest = min(lows[-period:])
        close = closes[-1]

        spread = highest - lowest
        k = 50.0 if spread == 0 else (close - lowest) / spread * 100.0

        if k > 80:
            interpretation = "overbought"
        elif k < 20:
            interpretation = "oversold"
        else:
            interpretation = "neutral"

        return StochasticResult(k=round(k, 2), interpretation=interpretation)

    # ════════════════════════════════════════════════════════════════
    #  VOLATILIDAD / RANGO
    # ════════════════════════════════════════════════════════════════

    @classmethod
    def bollinger_bands(
        cls,
        prices: Sequence[float],
        period: int = 20,
        std_dev: float = 2.0,
    ) -> Optional[BollingerBands]:
        """
        Middle = SMA(period)
        Upper  = Middle + std_dev × σ
        Lower  = Middle − std_dev × σ
        Bandwidth = (2 × std_dev × σ) / Middle × 100
        """
        middle = cls.sma(prices, period)
        if middle is None:
            return None

        recent = prices[-period:]
        variance = sum((p - middle) ** 2 for p in recent) / period
        sigma = math.sqrt(variance)
        bandwidth = (2 * std_dev * sigma) / middle * 100 if middle else 0.0

        return BollingerBands(
            upper=round(middle + std_dev * sigma, 2),
            middle=middle,
            lower=round(middle - std_dev * sigma, 2),
            bandwidth=round(bandwidth, 2),
        )

    @staticmethod
    def atr(
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
        period: int = 14,
    ) -> Optional[float]:
        """
        TR  = max(high − low, |high − prev_close|, |low − prev_close|)
        ATR = media de los últimos `period` TR
        """
        n = len(closes)
        if period < 1 or n < period + 1 or len(highs) != n or len(lows) != n:
            return None

        total = 0.0
        for i in range(n - period, n):
            prev_close = closes[i - 1]
            total += max(
                highs[i] - lows[i],
                abs(highs[i] - prev_close),
                abs(lows[i] - prev_close),
            )
        return round(total / period, 2)

    @staticmethod
    def volatility(prices: Sequence[float], period: int) -> Optional[VolatilityResult]:
        """
        σ de los log-retornos de los últimos `period` precios.

        annualized = σ × √(segundos por año) × 100
        Clasificación: > 0.05 extremely_high, > 0.02 high, > 0.01 medium,
        > 0.005 low, resto very_low.
        """
        if period < 2 or len(prices) < period:
            return None
        recent = prices[-period:]
        if any(p <= 0 for p in recent):
            return None

        returns = [math.log(curr / prev) for prev, curr in zip(recent, recent[1:])]
        mean = sum(returns) / len(returns)
        variance = sum((r - mean) ** 2 for r in returns) / len(returns)
        sigma = math.sqrt(variance)

        if sigma > 0.05:
            classification = "extremely_high"
        elif sigma > 0.02:
            classification = "high"
        elif sigma > 0.01:
            classification = "medium"
        elif sigma > 0.005:
            classification = "low"
        else:
            classification = "very_low"

        return VolatilityResult(
            volatility=round(sigma, 4),
            annualized=round(sigma * math.sqrt(SECONDS_PER_YEAR) * 100, 2),
            classification=classification,
        )

    # ════════════════════════════════════════════════════════════════
    #  MOMENTUM / TENDENCIA
    # ════════════════════════════════════════════════════════════════

    @staticmethod
    def momentum(prices: Sequence[float], period: int = 10) -> Optional[MomentumResult]:
        """
        Momentum = (current − prices[-(period+1)]) / prices[-(period+1)] × 100
        """
        if period < 1 or len(prices) < period + 1:
            return None

        previous = prices[-(period + 1)]
        if previous == 0:
            return None
        value = (prices[-1] - previous) / previous * 100

        if value > 2:
            interpretation = "strong_bullish"
        elif value > 0.5:
            interpretation = "bullish"
        elif value > -0.5:
            interpretation = "neutral"
        elif value > -2:
            interpretation = "bearish"
        else:
            interpretation = "strong_bearish"

        return MomentumResult(value=round(value, 4), interpretation=interpretation)

    @staticmethod
    def price_velocity(
        prices: Sequence[float],
        interval_seconds: float,
    ) -> Optional[PriceVelocity]:
        """
        Velocidad = media del % de cambio de las últimas 3 velas, normalizada
        por segundo de timeframe. Aceleración = diferencia entre ambos cambios.
        """
        if len(prices) < 3 or interval_seconds <= 0:
            return None

        last3 = prices[-3:]
        if last3[0] == 0 or last3[1] == 0:
            return None
        changes = [(curr - prev) / prev * 100 for prev, curr in zip(last3, last3[1:])]

        per_second = (sum(changes) / len(changes)) / interval_seconds
        magnitude = abs(per_second)
        if magnitude > 0.01:
            interpretation = "high_velocity"
        elif magnitude > 0.001:
            interpretation = "medium_velocity"
        else:
            interpretation = "low_velocity"

        return PriceVelocity(
            velocity=round(per_second, 5),
            acceleration=round(changes[1] - changes[0], 6),
            interpretation=interpretation,
        )

    @staticmethod
    def trend(prices: Sequence[float]) -> Optional[str]:
        """
        Compara la media de los últimos 10 valores con la de los 10 anteriores.

        > 2% strong_uptrend, > 0.5% uptrend, > −0.5% sideways,
        > −2% downtrend, resto strong_downtrend.
        """
        if len(prices) < TREND_WINDOW * 2:
            return None

        recent = prices[-TREND_WINDOW:]
        older = prices[-TREND_WINDOW * 2:-TREND_WINDOW]
        recent_avg = sum(recent) / TREND_WINDOW
        older_avg = sum(older) / TREND_WINDOW
        if older_avg == 0:
            return None

        change = (recent_avg - older_avg) / older_avg * 100
        if change > 2:
            return "strong_uptrend"
        if change > 0.5:
            return "uptrend"
        if change > -0.5:
            return "sideways"
        if change > -2:
            return "downtrend"
        return "strong_downtrend"

    @staticmethod
    def support_resistance(
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
        lookback: int = SR_LOOKBACK,
    ) -> Optional[SupportResistance]:
        """
        Soportes: los 3 mínimos más bajos de la ventana que estén por DEBAJO
        del precio actual. Resistencias: los 3 máximos más altos por ENCIMA.
        """
        if lookback < 1 or min(len(highs), len(lows), len(closes)) < lookback:
            return None

        current = closes[-1]
        lowest = sorted(lows[-lookback:])[:3]
        highest = sorted(highs[-lookback:], reverse=True)[:3]

        return SupportResistance(
            support=[level for level in lowest if level < current],
            resistance=[level for level in highest if level > current],
            current_price=current,
        )
