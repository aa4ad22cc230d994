"""External systems - upstream market feeds."""

from dipscore.infrastructure.external.binance_feed import BinanceTickerFeed

__all__ = ["BinanceTickerFeed"]
