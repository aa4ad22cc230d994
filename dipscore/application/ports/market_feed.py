"""
DipScore – Application Port: Market Feed
==========================================
Interfaz del feed upstream de ticks.

El ConnectionManager solicita un stream por símbolo; la infraestructura
decide CÓMO obtenerlo (WebSocket Binance, replay histórico, fake en tests).

CONTRATO:
- connect(symbol) abre el canal y retorna un TickStream, o lanza si no
  pudo abrirlo. El caller acota la espera con su propio timeout.
- El TickStream itera payloads CRUDOS; terminar la iteración (o lanzar)
  significa que el canal se cerró.
- parse(symbol, raw) convierte un payload en Tick o lanza TickParseError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from dipscore.domain.value_objects.tick import Tick


class TickStream(ABC):
    """Canal abierto de un símbolo: iterador asíncrono de payloads crudos."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[Any]:
        """Iterar mensajes hasta que el canal se cierre."""

    @abstractmethod
    async def close(self) -> None:
        """Cerrar el canal. Debe ser idempotente."""


class MarketFeed(ABC):
    """
    Interfaz para proveer ticks en tiempo real.

    IMPLEMENTACIONES:
    - BinanceTickerFeed (ticker 24h vía WebSocket)
    - FakeFeed (tests)
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def connect(self, symbol: str) -> TickStream:
        """
        Abrir el canal de un símbolo.

        Args:
            symbol: Símbolo normalizado (e.g. "bitcoin")

        Raises:
            FeedConnectionError u otra excepción de red si no se pudo abrir.
        """

    @abstractmethod
    def parse(self, symbol: str, raw: Any) -> Tick:
        """
        Convertir un payload crudo en Tick.

        Raises:
            TickParseError: payload malformado.
        """
