"""
DipScore – Domain Entity: Candle
==================================
Vela OHLCV de un bucket temporal fijo.

Decisiones de diseño:
- frozen=True → una vela NUNCA se modifica en sitio. La vela del bucket
  actual se reemplaza por una copia actualizada (with_tick) en cada tick;
  al llegar un bucket nuevo la anterior queda congelada para siempre.
- bucket_start está alineado a múltiplos exactos del timeframe (ms).
- Se usa dataclass por rendimiento (más ligera que Pydantic para hot-path).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

# Aproximación documentada: el feed solo entrega volumen 24h, así que cada
# tick aporta su parte "por minuto" (24 * 60) en vez de volumen real por trade.
MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, slots=True)
class Candle:
    """Vela OHLCV con timestamp de apertura del bucket."""

    bucket_start: int    # epoch ms, múltiplo exacto del timeframe
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    trade_count: int = 0

    @classmethod
    def open_bucket(cls, bucket_start: int, price: float, volume_24h: Optional[float]) -> "Candle":
        """Abrir una vela nueva con el primer tick del bucket."""
        return cls(
            bucket_start=bucket_start,
            open=price,
            high=price,
            low=price,
            close=price,
            volume=(volume_24h or 0.0) / MINUTES_PER_DAY,
            trade_count=1,
        )

    def with_tick(self, price: float, volume_24h: Optional[float]) -> "Candle":
        """Copia actualizada con un tick más del mismo bucket."""
        return replace(
            self,
            high=max(self.high, price),
            low=min(self.low, price),
            close=price,
            volume=self.volume + (volume_24h or 0.0) / MINUTES_PER_DAY,
            trade_count=self.trade_count + 1,
        )

    def to_dict(self) -> dict:
        """Serialización para API / callbacks."""
        return {
            "timestamp": self.bucket_start,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "trades": self.trade_count,
        }
