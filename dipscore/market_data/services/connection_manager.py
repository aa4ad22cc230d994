"""
DipScore – Connection Manager (ingesta de ticks)
==================================================
Una suscripción upstream lógica por símbolo, multiplexada a N suscriptores.

CICLO DE VIDA (por símbolo):
    idle ──subscribe──► connecting ──ok──► connected
                            ▲                  │ error / cierre
                            │                  ▼
                            └──timer──── reconnect_waiting
    (último unsubscribe desde cualquier estado) ──► closed

RECONEXIÓN CON BACKOFF EXPONENCIAL:
- delay = min(base × 2^(intento−1), max)  → 1, 2, 4, 8, 16, 30, 30 …
- Una conexión exitosa resetea el contador de intentos.
- El timer se programa con un scheduler inyectable (por defecto
  loop.call_later) para que los tests controlen el tiempo.

TEARDOWN:
- Al salir el último suscriptor se cancela el timer pendiente y el task
  de stream, se cierra el socket, se descartan los buffers del símbolo
  (evento "closed"), el estado queda `closed` y sale del registro.
- Re-suscribirse después de `closed` crea un estado nuevo en `idle`.

PRECIO EN VIVO:
- Cada símbolo activo retiene sus últimos N ticks (deque acotado):
  get_current_price() / get_price_history() responden aunque todavía
  no existan velas suficientes para indicadores.

CÓMO SE EVITA PÉRDIDA DE TICKS:
- parse + fan-out son síncronos dentro del task de stream: sin await
  entre recibir el mensaje y entregarlo a los suscriptores.
- Mensajes malformados se descartan y se cuentan (parse_errors).

RACE CONDITIONS:
- Un único event loop. Cada arranque de stream lleva un número de
  generación; un task cancelado o de una generación anterior nunca
  modifica el estado vigente.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from dipscore.application.ports.market_feed import MarketFeed, TickStream
from dipscore.domain.exceptions import TickParseError
from dipscore.domain.value_objects.tick import Tick
from dipscore.shared.events.subscribable import Disposer, Subscribable
from dipscore.shared.logging.logger import get_logger

logger = get_logger("connection_manager")

TickCallback = Callable[[Tick], None]

# scheduler(delay_seconds, callback) → handle con .cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]

EVENT_CONNECT = "connect"
EVENT_DISCONNECT = "disconnect"
EVENT_CLOSED = "closed"

# Ticks recientes retenidos por símbolo para consultas de precio en vivo
DEFAULT_PRICE_HISTORY = 1000


class ConnectionStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_WAITING = "reconnect_waiting"
    CLOSED = "closed"


@dataclass
class ConnectionState:
    """Estado de la suscripción upstream de UN símbolo."""

    symbol: str
    status: ConnectionStatus = ConnectionStatus.IDLE
    reconnect_attempts: int = 0
    pending_timer: Any = None
    subscribers: Subscribable = field(default=None)
    registrations: List[Tuple[TickCallback, Disposer]] = field(default_factory=list)

    # Recursos del stream en curso
    task: Optional[asyncio.Task] = None
    stream: Optional[TickStream] = None
    generation: int = 0

    # Contadores de monitoreo
    ticks_received: int = 0
    parse_errors: int = 0
    last_tick_time: Optional[int] = None
    last_delay: Optional[float] = None

    # Precio en vivo
    history_size: int = DEFAULT_PRICE_HISTORY
    price_history: Deque[Tick] = field(init=False)

    def __post_init__(self) -> None:
        if self.subscribers is None:
            self.subscribers = Subscribable(f"ticks:{self.symbol}")
        self.price_history = deque(maxlen=self.history_size)

    @property
    def last_tick(self) -> Optional[Tick]:
        return self.price_history[-1] if self.price_history else None

    def to_dict(self) -> dict:
        return {
            "connected": self.status is ConnectionStatus.CONNECTED,
            "status": self.status.value,
            "subscribers": len(self.subscribers),
            "reconnect_attempts": self.reconnect_attempts,
            "ticks_received": self.ticks_received,
            "parse_errors": self.parse_errors,
            "last_tick_time": self.last_tick_time,
            "last_price": self.last_tick.price if self.last_tick else None,
            "last_delay": self.last_delay,
        }


@dataclass(frozen=True)
class ConnectionEvent:
    """Notificación de observabilidad (no autoritativa)."""

    symbol: str
    kind: str                      # connect | disconnect | closed
    attempt: int = 0
    delay: Optional[float] = None
    timestamp: int = 0             # epoch ms

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "kind": self.kind,
            "attempt": self.attempt,
            "delay": self.delay,
            "timestamp": self.timestamp,
        }


def compute_backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay (seg) antes del intento `attempt` (1-based)."""
    return min(base_delay * (2 ** max(attempt - 1, 0)), max_delay)


def _default_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ConnectionManager:
    """
    Multiplexor de streams de ticks por símbolo.

    Uso:
        manager = ConnectionManager(feed)
        unsubscribe = manager.subscribe("bitcoin", on_tick)
        ...
        unsubscribe()
    """

    def __init__(
        self,
        feed: MarketFeed,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        connect_timeout: float = 10.0,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time,
        price_history_size: int = DEFAULT_PRICE_HISTORY,
    ) -> None:
        self._feed = feed
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay
        self._connect_timeout = connect_timeout
        self._history_size = price_history_size
        self._schedule = scheduler or _default_scheduler
        self._clock = clock
        self._states: Dict[str, ConnectionState] = {}
        self.events: Subscribable[ConnectionEvent] = Subscribable("connection_events")

    # ──────────────────────── Suscripción ───────────────────────────────

    def subscribe(self, symbol: str, callback: TickCallback) -> Disposer:
        """
        Registrar `callback` para los ticks de `symbol`.

        El primer suscriptor abre el stream upstream. Retorna una función
        idempotente que elimina EXACTAMENTE esta registración.
        """
        symbol = symbol.lower()
        state = self._states.get(symbol)
        if state is None:
            state = ConnectionState(symbol=symbol, history_size=self._history_size)
            self._states[symbol] = state

        dispose = state.subscribers.subscribe(callback)
        entry: Tuple[TickCallback, Disposer] = (callback, dispose)
        state.registrations.append(entry)

        if state.status is ConnectionStatus.IDLE:
            try:
                self._open(state)
            except RuntimeError:
                # Sin event loop corriendo: deshacer la registración
                state.registrations.remove(entry)
                dispose()
                if not state.subscribers:
                    self._states.pop(symbol, None)
                raise

        def unsubscribe() -> None:
            if entry not in state.registrations:
                return
            state.registrations.remove(entry)
            dispose()
            if not state.subscribers:
                self._teardown(state)

        return unsubscribe

    def unsubscribe(self, symbol: str, callback: TickCallback) -> bool:
        """Eliminar UNA registración de `callback`. False si no estaba."""
        state = self._states.get(symbol.lower())
        if state is None:
            return False
        for registered, dispose in state.registrations:
            if registered == callback:
                state.registrations.remove((registered, dispose))
                dispose()
                if not state.subscribers:
                    self._teardown(state)
                return True
        return False

    async def disconnect(self) -> None:
        """Cerrar todos los símbolos y esperar a que sus streams terminen."""
        states = list(self._states.values())
        tasks = [s.task for s in states if s.task is not None]
        for state in states:
            self._teardown(state)
        pending = [t for t in tasks if t is not _current_task()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("ConnectionManager desconectado (%d símbolos)", len(states))

    # ──────────────────────── Consultas ─────────────────────────────────

    def get_state(self, symbol: str) -> Optional[ConnectionState]:
        return self._states.get(symbol.lower())

    def get_status(self) -> Dict[str, dict]:
        return {symbol: state.to_dict() for symbol, state in self._states.items()}

    def symbols(self) -> List[str]:
        return list(self._states)

    def get_current_price(self, symbol: str) -> Optional[Tick]:
        """Último tick recibido de `symbol`, o None si no hay stream activo o aún no llegó nada."""
        state = self._states.get(symbol.lower())
        return state.last_tick if state else None

    def get_price_history(self, symbol: str, periods: int = 100) -> List[Tick]:
        """Los últimos `periods` ticks de `symbol` (más antiguo primero)."""
        state = self._states.get(symbol.lower())
        if state is None or periods <= 0:
            return []
        history = list(state.price_history)
        return history[-periods:]

    # ──────────────────────── Stream ────────────────────────────────────

    def _open(self, state: ConnectionState) -> None:
        state.generation += 1
        self._start_stream(state, state.generation)

    def _start_stream(self, state: ConnectionState, generation: int) -> None:
        loop = asyncio.get_running_loop()
        state.status = ConnectionStatus.CONNECTING
        state.task = loop.create_task(
            self._run_stream(state, generation),
            name=f"stream-{state.symbol}",
        )

    def _is_current(self, state: ConnectionState, generation: int) -> bool:
        return state.generation == generation and state.status is not ConnectionStatus.CLOSED

    async def _run_stream(self, state: ConnectionState, generation: int) -> None:
        symbol = state.symbol
        stream: Optional[TickStream] = None
        error: Optional[BaseException] = None

        try:
            stream = await asyncio.wait_for(
                self._feed.connect(symbol), timeout=self._connect_timeout,
            )
            if not self._is_current(state, generation):
                return

            state.stream = stream
            state.status = ConnectionStatus.CONNECTED
            state.reconnect_attempts = 0
            logger.info("✓ Conectado stream de '%s' vía %s", symbol, self._feed.name)
            self._emit(symbol, EVENT_CONNECT)

            async for raw in stream:
                self._handle_message(state, raw)
                if not self._is_current(state, generation):
                    return
            logger.warning("Stream de '%s' cerrado por el servidor", symbol)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as e:
            error = e
            logger.warning(
                "Timeout (%.1fs) conectando stream de '%s'", self._connect_timeout, symbol,
            )
        except Exception as e:
            error = e
            logger.warning("Conexión de '%s' perdida: %s", symbol, e)
        finally:
            if stream is not None:
                if state.stream is stream:
                    state.stream = None
                await self._close_stream(symbol, stream)

        if self._is_current(state, generation):
            self._schedule_reconnect(state, generation, error)

    def _handle_message(self, state: ConnectionState, raw: Any) -> None:
        try:
            tick = self._feed.parse(state.symbol, raw)
        except TickParseError as e:
            state.parse_errors += 1
            logger.debug("Mensaje descartado [%s]: %s", state.symbol, e.message)
            return

        state.ticks_received += 1
        state.last_tick_time = tick.timestamp
        state.price_history.append(tick)
        state.subscribers.emit(tick)

    async def _close_stream(self, symbol: str, stream: TickStream) -> None:
        try:
            await stream.close()
        except Exception as e:
            logger.debug("Error cerrando stream de '%s': %s", symbol, e)

    # ──────────────────────── Reconexión ────────────────────────────────

    def _schedule_reconnect(
        self, state: ConnectionState, generation: int, error: Optional[BaseException],
    ) -> None:
        state.task = None
        state.reconnect_attempts += 1
        delay = compute_backoff_delay(
            state.reconnect_attempts, self._base_delay, self._max_delay,
        )
        state.last_delay = delay
        state.status = ConnectionStatus.RECONNECT_WAITING

        logger.info(
            "Reconectando '%s' en %.1fs (intento #%d)...",
            state.symbol, delay, state.reconnect_attempts,
        )
        self._emit(state.symbol, EVENT_DISCONNECT, attempt=state.reconnect_attempts, delay=delay)

        def fire() -> None:
            state.pending_timer = None
            if self._is_current(state, generation):
                self._start_stream(state, generation)

        state.pending_timer = self._schedule(delay, fire)

    # ──────────────────────── Teardown ──────────────────────────────────

    def _teardown(self, state: ConnectionState) -> None:
        if state.status is ConnectionStatus.CLOSED:
            return

        state.generation += 1
        if state.pending_timer is not None:
            state.pending_timer.cancel()
            state.pending_timer = None

        task = state.task
        state.task = None
        # Si el teardown ocurre dentro del propio task (fan-out), el task
        # sale solo al ver la generación nueva y cierra el stream.
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        state.stream = None
        state.subscribers.clear()
        state.registrations.clear()
        state.price_history.clear()
        state.status = ConnectionStatus.CLOSED
        state.reconnect_attempts = 0
        if self._states.get(state.symbol) is state:
            del self._states[state.symbol]

        logger.info("Stream de '%s' cerrado (sin suscriptores)", state.symbol)
        self._emit(state.symbol, EVENT_CLOSED)

    def _emit(self, symbol: str, kind: str, attempt: int = 0, delay: Optional[float] = None) -> None:
        self.events.emit(ConnectionEvent(
            symbol=symbol,
            kind=kind,
            attempt=attempt,
            delay=delay,
            timestamp=int(self._clock() * 1000),
        ))
