"""
Market Data Bounded Context
============================
Gestiona datos de mercado: ticks, velas e indicadores por timeframe.

Componentes:
- services/: ConnectionManager, CandleAggregator, TechnicalEngine, timeframes
- state/: Series de velas en memoria (CandleStateManager)
"""

from dipscore.market_data.services.candle_aggregator import CandleAggregator
from dipscore.market_data.services.connection_manager import ConnectionManager
from dipscore.market_data.services.technical_engine import TechnicalEngine
from dipscore.market_data.state.candle_state import CandleSeries, CandleStateManager

__all__ = [
    "CandleAggregator",
    "ConnectionManager",
    "TechnicalEngine",
    "CandleSeries",
    "CandleStateManager",
]
