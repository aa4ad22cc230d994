"""
DipScore – Candle Aggregator
==============================
Pliega ticks en series OHLCV acotadas por (símbolo, timeframe).

ALGORITMO (por tick):
  1. bucket_start = floor(timestamp / timeframe_ms) × timeframe_ms
  2. Si coincide con el bucket de la última vela → se reemplaza por una
     copia actualizada (high=max, low=min, close=price, volume+=, trades+1).
  3. Si es un bucket POSTERIOR → se abre vela nueva con
     open=high=low=close=price; deque(maxlen) descarta la más antigua.
  4. Si es un bucket ANTERIOR (tick tardío) → se descarta sin tocar el
     histórico y se cuenta en late_ticks_dropped.

ALINEACIÓN TEMPORAL:
  Los buckets son múltiplos exactos del timeframe:
    - 1m  (60000 ms)   → 00:00, 00:01, 00:02, ...
    - 5m  (300000 ms)  → 00:00, 00:05, 00:10, ...
    - 1h  (3600000 ms) → 00:00, 01:00, 02:00, ...

COMPLEJIDAD: O(1) por tick. Sin I/O, sin await.
"""

from __future__ import annotations

from typing import Optional

from dipscore.domain.entities.candle import Candle
from dipscore.domain.value_objects.tick import Tick
from dipscore.market_data.services.timeframes import align_bucket, validate_timeframe
from dipscore.market_data.state.candle_state import CandleSeries, CandleStateManager
from dipscore.shared.logging.logger import get_logger

logger = get_logger("candle_aggregator")


class CandleAggregator:
    """
    Agregador de ticks → velas para múltiples (símbolo, timeframe).

    Uso:
        aggregator = CandleAggregator(capacity=200)
        candle = aggregator.on_tick("bitcoin", tick, "5m")
        series = aggregator.get_series("bitcoin", "5m")
    """

    def __init__(self, capacity: int = 200, state: Optional[CandleStateManager] = None) -> None:
        self._state = state or CandleStateManager(capacity)

    @property
    def state(self) -> CandleStateManager:
        return self._state

    def on_tick(self, symbol: str, tick: Tick, timeframe: str) -> Optional[Candle]:
        """
        Aplicar un tick a la serie (symbol, timeframe).

        Returns:
            La vela resultante (nueva o actualizada), o None si el tick
            pertenecía a un bucket ya superado.

        Raises:
            InvalidTimeframeError: timeframe fuera del conjunto soportado.
        """
        validate_timeframe(timeframe)
        bucket_start = align_bucket(tick.timestamp, timeframe)
        series = self._state.get_or_create(symbol, timeframe)
        last = series.last

        if last is not None and bucket_start < last.bucket_start:
            series.late_ticks_dropped += 1
            logger.debug(
                "Tick tardío descartado [%s:%s] bucket=%d < last=%d",
                symbol, timeframe, bucket_start, last.bucket_start,
            )
            return None

        series.total_ticks += 1

        if last is not None and bucket_start == last.bucket_start:
            updated = last.with_tick(tick.price, tick.volume)
            series.replace_last(updated)
            return updated

        candle = Candle.open_bucket(bucket_start, tick.price, tick.volume)
        series.append(candle)
        if last is not None:
            logger.debug(
                "Vela %s cerrada [%s] O=%.5f H=%.5f L=%.5f C=%.5f trades=%d",
                timeframe, symbol, last.open, last.high, last.low, last.close,
                last.trade_count,
            )
        return candle

    def get_series(self, symbol: str, timeframe: str) -> CandleSeries:
        """Serie del (símbolo, timeframe); vacía si todavía no hubo ticks."""
        validate_timeframe(timeframe)
        return self._state.get_or_create(symbol, timeframe)

    def discard(self, symbol: str) -> int:
        return self._state.discard(symbol)

    def discard_series(self, symbol: str, timeframe: str) -> bool:
        return self._state.discard_series(symbol, timeframe)

    def snapshot(self) -> dict:
        return self._state.snapshot()
