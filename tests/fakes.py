"""Dobles de prueba compartidos: feed, scheduler y reloj controlados."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

from dipscore.application.ports.market_feed import MarketFeed, TickStream
from dipscore.domain.exceptions import FeedConnectionError, TickParseError
from dipscore.domain.value_objects.tick import Tick

_END = object()


async def settle(rounds: int = 20) -> None:
    """Ceder el loop varias veces para que los tasks pendientes avancen."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeStream(TickStream):
    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, raw: Any) -> None:
        self._queue.put_nowait(raw)

    def end(self) -> None:
        """Cierre del lado del servidor."""
        self._queue.put_nowait(_END)

    def fail(self, error: Exception) -> None:
        self._queue.put_nowait(error)

    async def _iterate(self):
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def __aiter__(self):
        return self._iterate()

    async def close(self) -> None:
        self.closed = True


class FakeFeed(MarketFeed):
    """Feed en memoria. Payloads válidos: {"price": float, "ts": int, "volume": float}."""

    def __init__(self, fail_connect: bool = False) -> None:
        self.fail_connect = fail_connect
        self.connect_calls: List[str] = []
        self.streams: List[FakeStream] = []

    async def connect(self, symbol: str) -> TickStream:
        self.connect_calls.append(symbol)
        if self.fail_connect:
            raise FeedConnectionError("upstream caído", symbol=symbol)
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    def parse(self, symbol: str, raw: Any) -> Tick:
        if not isinstance(raw, dict) or "price" not in raw:
            raise TickParseError("payload inválido", payload=raw)
        return Tick(
            symbol=symbol,
            price=float(raw["price"]),
            timestamp=int(raw.get("ts", 0)),
            source="fake",
            volume=raw.get("volume"),
        )

    @property
    def last_stream(self) -> Optional[FakeStream]:
        return self.streams[-1] if self.streams else None


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Registra (delay, callback); los timers solo disparan con fire_next()."""

    def __init__(self) -> None:
        self.handles: List[FakeHandle] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def delays(self) -> List[float]:
        return [h.delay for h in self.handles]

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def fire_next(self) -> float:
        handle = self.pending[0]
        handle.fired = True
        handle.callback()
        return handle.delay


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
