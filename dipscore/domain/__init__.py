"""
DipScore – Domain Layer
=========================
Núcleo puro del sistema. CERO dependencias externas.

Este módulo contiene:
- entities/: Entidades (Candle)
- value_objects/: Objetos inmutables (Tick, IndicatorSnapshot, TradingSignals)
- services/: Servicios de dominio puros (IndicatorCalculator, SignalRules)
- exceptions/: Excepciones de dominio

REGLA DE DEPENDENCIA:
Este módulo NO puede importar de:
- infrastructure/
- presentation/
- application/
- Frameworks externos (websockets, FastAPI, etc.)
"""

from dipscore.domain.entities.candle import Candle
from dipscore.domain.value_objects.indicator_snapshot import IndicatorSnapshot
from dipscore.domain.value_objects.tick import Tick
from dipscore.domain.value_objects.trading_signals import TradingSignals

__all__ = [
    "Candle",
    "Tick",
    "IndicatorSnapshot",
    "TradingSignals",
]
