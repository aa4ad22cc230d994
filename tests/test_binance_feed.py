import json

import pytest

from dipscore.domain.exceptions import TickParseError
from dipscore.infrastructure.external.binance_feed import BinanceTickerFeed, to_binance_pair

TICKER = {
    "e": "24hrTicker",
    "E": 1_700_000_000_123,
    "s": "BTCUSDT",
    "P": "-2.350",
    "c": "65000.10",
    "b": "64999.90",
    "a": "65000.20",
    "h": "67000.00",
    "l": "64000.00",
    "v": "12345.6",
}


def _feed(clock=None):
    return BinanceTickerFeed("wss://stream.binance.com:9443/ws/", clock=clock or (lambda: 1.5))


def test_symbol_map_and_fallback():
    assert to_binance_pair("bitcoin") == "btcusdt"
    assert to_binance_pair("Avalanche-2") == "avaxusdt"
    assert to_binance_pair("pepe") == "pepeusdt"
    assert _feed().stream_url("ethereum") == "wss://stream.binance.com:9443/ws/ethusdt@ticker"


def test_parse_ticker_message():
    tick = _feed().parse("bitcoin", json.dumps(TICKER))

    assert tick.symbol == "bitcoin"
    assert tick.price == 65000.10
    assert tick.timestamp == 1_700_000_000_123
    assert tick.volume == 12345.6
    assert tick.bid == 64999.90
    assert tick.ask == 65000.20
    assert tick.change_24h == -2.35
    assert tick.high_24h == 67000.0
    assert tick.low_24h == 64000.0
    assert tick.source == "binance_websocket"


def test_parse_accepts_bytes_and_falls_back_to_clock():
    payload = {k: v for k, v in TICKER.items() if k != "E"}
    tick = _feed(clock=lambda: 2.0).parse("bitcoin", json.dumps(payload).encode())
    assert tick.timestamp == 2_000


@pytest.mark.parametrize("raw", [
    "not json",
    json.dumps([1, 2, 3]),
    json.dumps({"E": 1}),
    json.dumps({"c": "abc"}),
    json.dumps({"c": "0"}),
])
def test_malformed_payloads_raise_parse_error(raw):
    with pytest.raises(TickParseError):
        _feed().parse("bitcoin", raw)
