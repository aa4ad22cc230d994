"""
DipScore – Domain Value Object: Tick
======================================
Un update de precio/volumen para un símbolo, tal como llega del feed.

- frozen=True → inmutable, seguro para pasar entre coroutines/subscribers.
- slots=True  → menor footprint de memoria en hot-path.
- timestamp en MILISEGUNDOS epoch (int), igual que las velas.
- volume es el volumen 24h del canal ticker (no volumen por trade).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Tick:
    """Tick de precio atómico recibido del feed."""

    symbol: str                          # símbolo normalizado (e.g. "bitcoin")
    price: float                         # último precio
    timestamp: int                       # epoch ms
    source: str = "unknown"              # e.g. "binance_websocket"
    volume: Optional[float] = None       # volumen 24h (si disponible)
    bid: Optional[float] = None
    ask: Optional[float] = None
    change_24h: Optional[float] = None   # % de cambio 24h
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None

    def to_dict(self) -> dict:
        """Serialización para callbacks / API."""
        return {
            "symbol": self.symbol,
            "price": self.price,
            "timestamp": self.timestamp,
            "source": self.source,
            "volume": self.volume,
            "bid": self.bid,
            "ask": self.ask,
            "change_24h": self.change_24h,
            "high_24h": self.high_24h,
            "low_24h": self.low_24h,
        }
