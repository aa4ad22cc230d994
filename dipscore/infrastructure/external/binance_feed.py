"""
DipScore – Binance Ticker Feed (adaptador WebSocket)
======================================================
Implementa MarketFeed sobre el canal público `<pair>@ticker` de Binance.

UN SOCKET POR SÍMBOLO:
  wss://stream.binance.com:9443/ws/btcusdt@ticker
  El ConnectionManager abre/cierra cada socket según haya suscriptores;
  este adaptador solo abre el canal y parsea mensajes.

HEARTBEAT:
  Se delega en el ping/pong nativo de `websockets` (ping_interval).
  Si el servidor no responde, la iteración termina con ConnectionClosed
  y el ConnectionManager programa la reconexión.

FORMATO (24hrTicker, solo los campos usados):
  c → último precio        v → volumen 24h (base)
  P → % cambio 24h         h / l → máximo / mínimo 24h
  b / a → bid / ask        E → event time (ms)
"""

from __future__ import annotations

import json
import math
import time
from typing import Any, AsyncIterator, Callable, Dict, Optional

from websockets.asyncio.client import ClientConnection, connect

from dipscore.application.ports.market_feed import MarketFeed, TickStream
from dipscore.domain.exceptions import FeedConnectionError, TickParseError
from dipscore.domain.value_objects.tick import Tick
from dipscore.shared.logging.logger import get_logger

logger = get_logger("binance_feed")

SOURCE = "binance_websocket"

# Nombre de moneda (id estilo CoinGecko) → par spot contra USDT
BINANCE_SYMBOL_MAP: Dict[str, str] = {
    "bitcoin": "btcusdt",
    "ethereum": "ethusdt",
    "bnb": "bnbusdt",
    "cardano": "adausdt",
    "solana": "solusdt",
    "polkadot": "dotusdt",
    "dogecoin": "dogeusdt",
    "avalanche-2": "avaxusdt",
    "chainlink": "linkusdt",
    "polygon": "maticusdt",
    "uniswap": "uniusdt",
    "litecoin": "ltcusdt",
    "bitcoin-cash": "bchusdt",
    "stellar": "xlmusdt",
    "vechain": "vetusdt",
    "ethereum-classic": "etcusdt",
    "monero": "xmrusdt",
    "tron": "trxusdt",
    "cosmos": "atomusdt",
    "algorand": "algousdt",
}


def to_binance_pair(symbol: str) -> str:
    """bitcoin → btcusdt; símbolos desconocidos → '<symbol>usdt'."""
    symbol = symbol.lower()
    return BINANCE_SYMBOL_MAP.get(symbol, f"{symbol}usdt")


def _optional_float(data: dict, key: str) -> Optional[float]:
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


class _WebSocketTickStream(TickStream):
    """Envuelve una ClientConnection abierta como TickStream."""

    def __init__(self, ws: ClientConnection, pair: str) -> None:
        self._ws = ws
        self._pair = pair

    async def _iterate(self) -> AsyncIterator[Any]:
        async for message in self._ws:
            yield message

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def close(self) -> None:
        await self._ws.close()
        logger.debug("Socket cerrado para %s", self._pair)


class BinanceTickerFeed(MarketFeed):
    """
    Feed de ticks 24h de Binance.

    Uso:
        feed = BinanceTickerFeed("wss://stream.binance.com:9443/ws")
        stream = await feed.connect("bitcoin")
        async for raw in stream:
            tick = feed.parse("bitcoin", raw)
    """

    def __init__(
        self,
        ws_url: str,
        heartbeat_interval: float = 30,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ws_url = ws_url.rstrip("/")
        self._heartbeat_interval = heartbeat_interval
        self._clock = clock

    def stream_url(self, symbol: str) -> str:
        return f"{self._ws_url}/{to_binance_pair(symbol)}@ticker"

    async def connect(self, symbol: str) -> TickStream:
        url = self.stream_url(symbol)
        logger.info("Conectando a Binance: %s", url)
        try:
            ws = await connect(
                url,
                ping_interval=self._heartbeat_interval,
                ping_timeout=10,
                close_timeout=10,
                max_size=2**20,       # 1 MB máximo por mensaje
            )
        except OSError as e:
            raise FeedConnectionError(f"No se pudo abrir {url}: {e}", symbol=symbol) from e
        return _WebSocketTickStream(ws, to_binance_pair(symbol))

    def parse(self, symbol: str, raw: Any) -> Tick:
        """Parsear un mensaje 24hrTicker. Lanza TickParseError si es inválido."""
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        if isinstance(raw, str):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise TickParseError("Mensaje no-JSON", payload=raw) from e
        else:
            data = raw

        if not isinstance(data, dict):
            raise TickParseError("Payload no es un objeto", payload=raw)

        price = _optional_float(data, "c")
        if price is None or price <= 0:
            raise TickParseError("Precio ausente o inválido", payload=raw)

        event_time = _optional_float(data, "E")
        timestamp = int(event_time) if event_time else int(self._clock() * 1000)

        return Tick(
            symbol=symbol,
            price=price,
            timestamp=timestamp,
            source=SOURCE,
            volume=_optional_float(data, "v"),
            bid=_optional_float(data, "b"),
            ask=_optional_float(data, "a"),
            change_24h=_optional_float(data, "P"),
            high_24h=_optional_float(data, "h"),
            low_24h=_optional_float(data, "l"),
        )
