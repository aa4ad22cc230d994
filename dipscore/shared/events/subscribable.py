"""
DipScore – Subscribable (fan-out síncrono)
============================================
Registro de handlers con fan-out por iteración.

    events = Subscribable[Tick]("ticks:btc")
    dispose = events.subscribe(on_tick)
    events.emit(tick)      # → on_tick(tick)
    dispose()              # elimina EXACTAMENTE esa registración

DISEÑO:
- Cada subscribe() crea un token propio, por lo que el mismo callable
  registrado dos veces recibe el evento dos veces y cada disposer quita
  solo su registración.
- El disposer es idempotente: llamarlo de nuevo no hace nada.
- emit() itera sobre una copia → un handler puede desuscribirse (o
  suscribir a otro) durante el fan-out sin romper la iteración. Un
  handler quitado a mitad del fan-out ya no recibe ese evento.
- Un handler que lanza excepción se loguea con traceback y NO impide
  que el resto reciba el evento.
"""

from __future__ import annotations

from typing import Callable, Dict, Generic, TypeVar

from dipscore.shared.logging.logger import get_logger

logger = get_logger("subscribable")

T = TypeVar("T")

Handler = Callable[[T], None]
Disposer = Callable[[], None]


class Subscribable(Generic[T]):
    """Conjunto de handlers con entrega síncrona en orden de registro."""

    def __init__(self, name: str = "events") -> None:
        self._name = name
        self._handlers: Dict[object, Callable[[T], None]] = {}

    def subscribe(self, handler: Callable[[T], None]) -> Disposer:
        token = object()
        self._handlers[token] = handler

        def dispose() -> None:
            self._handlers.pop(token, None)

        return dispose

    def emit(self, event: T) -> int:
        """Entregar `event` a todos los handlers. Retorna cuántos lo recibieron."""
        delivered = 0
        for token, handler in list(self._handlers.items()):
            if token not in self._handlers:
                continue
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.error(
                    "Error en handler de '%s'", self._name, exc_info=True,
                )
        return delivered

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)

    def __bool__(self) -> bool:
        return bool(self._handlers)
