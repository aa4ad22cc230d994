"""Application ports (interfaces hacia infraestructura)."""
from dipscore.application.ports.market_feed import MarketFeed, TickStream

__all__ = ["MarketFeed", "TickStream"]
