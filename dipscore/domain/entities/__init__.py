"""Domain entities."""
from dipscore.domain.entities.candle import Candle

__all__ = ["Candle"]
