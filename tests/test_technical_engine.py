import asyncio

import pytest

from dipscore.domain.exceptions import InvalidTimeframeError
from dipscore.market_data.services.candle_aggregator import CandleAggregator
from dipscore.market_data.services.connection_manager import ConnectionManager
from dipscore.market_data.services.technical_engine import TechnicalEngine
from tests.fakes import settle


def _engine(feed, scheduler, clock, capacity=100):
    manager = ConnectionManager(feed, scheduler=scheduler)
    engine = TechnicalEngine(
        manager, CandleAggregator(capacity=capacity), default_interval="1s", clock=clock,
    )
    return manager, engine


def _push_candles(stream, count, start_price=100.0, step=1.0):
    for i in range(count):
        stream.push({"price": start_price + i * step, "ts": i * 1_000, "volume": 1440.0})


def test_push_api_delivers_snapshots_once_ready(feed, scheduler, clock):
    async def run():
        manager, engine = _engine(feed, scheduler, clock)
        payloads = []
        unsubscribe = engine.subscribe_to_technicals("Bitcoin", payloads.append, "1s")
        await settle()
        _push_candles(feed.last_stream, 12)
        await settle(60)

        assert len(payloads) == 3
        last = payloads[-1]
        assert last["symbol"] == "BITCOIN"
        assert last["interval"] == "1s"
        assert last["timestamp"] == int(clock() * 1000)
        assert last["data_points"] == 12
        assert last["price"] == 111.0
        assert last["rsi"] == 100.0
        assert last["volume_sma"] == pytest.approx(1.0)
        assert last["periods"]["rsi"] == 6

        unsubscribe()
        await settle()
        assert manager.get_state("bitcoin") is None
        assert engine.get_status() == {}

    asyncio.run(run())


def test_pull_api_returns_none_until_minimum_periods(feed, scheduler, clock):
    async def run():
        manager, engine = _engine(feed, scheduler, clock)
        release = engine.track("bitcoin", "1s")
        await settle()
        stream = feed.last_stream

        _push_candles(stream, 9)
        await settle(40)
        assert engine.get_technical_snapshot("bitcoin", "1s") is None
        assert engine.generate_trading_signals("bitcoin", "1s") is None
        assert engine.get_status()["bitcoin"]["1s"]["has_technicals"] is False

        stream.push({"price": 110.0, "ts": 9_000, "volume": 1440.0})
        await settle()
        snapshot = engine.get_technical_snapshot("bitcoin", "1s")
        assert snapshot is not None
        assert snapshot.data_points == engine.minimum_periods("1s") == 10

        signals = engine.generate_trading_signals("bitcoin", "1s")
        assert "Golden cross - bullish trend" in signals.signals
        assert signals.net == signals.bullish_votes - signals.bearish_votes

        status = engine.get_status()["bitcoin"]["1s"]
        assert status["data_points"] == 10
        assert status["latest_timestamp"] == 9_000
        assert status["has_technicals"] is True

        release()
        release()
        await settle()
        assert manager.get_state("bitcoin") is None

    asyncio.run(run())


def test_callbacks_share_one_tick_subscription(feed, scheduler, clock):
    async def run():
        manager, engine = _engine(feed, scheduler, clock)
        a, b = [], []
        un_a = engine.subscribe_to_technicals("bitcoin", a.append, "1s")
        un_b = engine.subscribe_to_technicals("bitcoin", b.append, "1s")
        await settle()

        assert feed.connect_calls == ["bitcoin"]
        assert len(manager.get_state("bitcoin").subscribers) == 1

        _push_candles(feed.last_stream, 10)
        await settle(40)
        assert len(a) == len(b) == 1

        un_a()
        feed.last_stream.push({"price": 201.0, "ts": 10_000})
        await settle()
        assert len(a) == 1
        assert len(b) == 2

        un_b()
        await settle()
        assert manager.get_state("bitcoin") is None

    asyncio.run(run())


def test_late_ticks_do_not_trigger_computation(feed, scheduler, clock):
    async def run():
        manager, engine = _engine(feed, scheduler, clock)
        payloads = []
        engine.subscribe_to_technicals("bitcoin", payloads.append, "1s")
        await settle()
        _push_candles(feed.last_stream, 10)
        feed.last_stream.push({"price": 50.0, "ts": 500})
        await settle(40)

        assert len(payloads) == 1
        assert engine.get_status()["bitcoin"]["1s"]["late_ticks_dropped"] == 1
        engine.close()
        await manager.disconnect()

    asyncio.run(run())


def test_invalid_interval_is_rejected(feed, scheduler, clock):
    manager, engine = _engine(feed, scheduler, clock)
    with pytest.raises(InvalidTimeframeError):
        engine.subscribe_to_technicals("bitcoin", lambda payload: None, "3m")
    with pytest.raises(InvalidTimeframeError):
        engine.get_technical_snapshot("bitcoin", "2d")
    assert engine.get_technical_snapshot("bitcoin", "1m") is None


def test_releasing_one_interval_discards_only_its_series(feed, scheduler, clock):
    async def run():
        manager, engine = _engine(feed, scheduler, clock)
        keep = engine.track("bitcoin", "5s")
        payloads = []
        unsubscribe = engine.subscribe_to_technicals("bitcoin", payloads.append, "1s")
        await settle()
        _push_candles(feed.last_stream, 12)
        await settle(60)
        assert engine.get_status()["bitcoin"]["1s"]["data_points"] == 12

        unsubscribe()
        await settle()
        assert manager.get_state("bitcoin") is not None
        assert "1s" not in engine.get_status()["bitcoin"]
        assert engine.get_status()["bitcoin"]["5s"]["data_points"] == 3

        engine.subscribe_to_technicals("bitcoin", payloads.append, "1s")
        feed.last_stream.push({"price": 500.0, "ts": 3_600_000, "volume": 1440.0})
        await settle()
        assert engine.get_status()["bitcoin"]["1s"]["data_points"] == 1
        assert engine.get_technical_snapshot("bitcoin", "1s") is None

        keep()
        engine.close()
        await manager.disconnect()

    asyncio.run(run())


def test_get_candles_returns_most_recent_oldest_first(feed, scheduler, clock):
    async def run():
        manager, engine = _engine(feed, scheduler, clock)
        release = engine.track("bitcoin", "1s")
        await settle()
        _push_candles(feed.last_stream, 5)
        await settle(40)

        candles = engine.get_candles("BITCOIN", "1s", limit=3)
        assert [c.close for c in candles] == [102.0, 103.0, 104.0]
        assert candles[-1].to_dict()["timestamp"] == 4_000
        assert engine.get_candles("ethereum", "1s") == []

        release()
        await settle()

    asyncio.run(run())
