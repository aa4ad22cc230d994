"""
DipScore – Candle State Manager
=================================
Estado en memoria por (símbolo, timeframe): serie acotada de velas.

PROTECCIÓN DE MEMORIA:
- Cada serie usa collections.deque con maxlen → descarta automáticamente
  la vela más antigua cuando se excede la capacidad. O(1) en append.
- Nunca se almacenan más de `capacity` velas por serie.

INMUTABILIDAD:
- Las velas son frozen. La vela del bucket actual se REEMPLAZA por una
  copia actualizada; las anteriores no se vuelven a tocar.

RACE CONDITIONS:
- Todas las operaciones se ejecutan dentro del mismo event loop asyncio.
- No hay threads → la actualización de OHLC por tick es atómica.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

from dipscore.domain.entities.candle import Candle
from dipscore.shared.logging.logger import get_logger

logger = get_logger("candle_state")


def series_key(symbol: str, timeframe: str) -> str:
    return f"{symbol}:{timeframe}"


@dataclass
class CandleSeries:
    """Serie FIFO acotada de velas para UN (símbolo, timeframe)."""

    symbol: str
    timeframe: str
    capacity: int
    candles: Deque[Candle] = field(init=False)

    # Contadores de monitoreo
    late_ticks_dropped: int = 0
    total_ticks: int = 0

    def __post_init__(self) -> None:
        self.candles = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self.candles)

    @property
    def last(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    def append(self, candle: Candle) -> None:
        self.candles.append(candle)

    def replace_last(self, candle: Candle) -> None:
        self.candles[-1] = candle

    # ─── Vistas por columna (más antiguo primero) ──────────────────

    def closes(self) -> List[float]:
        return [c.close for c in self.candles]

    def highs(self) -> List[float]:
        return [c.high for c in self.candles]

    def lows(self) -> List[float]:
        return [c.low for c in self.candles]

    def volumes(self) -> List[float]:
        return [c.volume for c in self.candles]

    def to_list(self) -> List[Candle]:
        return list(self.candles)


class CandleStateManager:
    """
    Gestor centralizado de series de velas.

    Clave: "symbol:timeframe" → CandleSeries
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity debe ser >= 1")
        self._capacity = capacity
        self._series: Dict[str, CandleSeries] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def get_or_create(self, symbol: str, timeframe: str) -> CandleSeries:
        """Obtener la serie de un (símbolo, timeframe); crearla si no existe."""
        key = series_key(symbol, timeframe)
        series = self._series.get(key)
        if series is None:
            series = CandleSeries(symbol=symbol, timeframe=timeframe, capacity=self._capacity)
            self._series[key] = series
            logger.info("Serie creada '%s' (capacity=%d)", key, self._capacity)
        return series

    def get(self, symbol: str, timeframe: str) -> Optional[CandleSeries]:
        return self._series.get(series_key(symbol, timeframe))

    def discard(self, symbol: str) -> int:
        """Eliminar todas las series de un símbolo. Retorna cuántas se borraron."""
        keys = [k for k, s in self._series.items() if s.symbol == symbol]
        for key in keys:
            del self._series[key]
        if keys:
            logger.info("Series descartadas para '%s': %s", symbol, keys)
        return len(keys)

    def discard_series(self, symbol: str, timeframe: str) -> bool:
        """Eliminar UNA serie. False si no existía."""
        key = series_key(symbol, timeframe)
        if self._series.pop(key, None) is None:
            return False
        logger.info("Serie descartada '%s'", key)
        return True

    def all_series(self) -> List[CandleSeries]:
        return list(self._series.values())

    def snapshot(self) -> dict:
        """Snapshot completo para diagnóstico / API."""
        result: Dict[str, dict] = {}
        for key, s in self._series.items():
            last = s.last
            result[key] = {
                "symbol": s.symbol,
                "timeframe": s.timeframe,
                "candles": len(s),
                "capacity": s.capacity,
                "total_ticks": s.total_ticks,
                "late_ticks_dropped": s.late_ticks_dropped,
                "latest_timestamp": last.bucket_start if last else None,
            }
        return result
