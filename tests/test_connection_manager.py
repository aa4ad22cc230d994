import asyncio

import pytest

from dipscore.market_data.services.connection_manager import (
    ConnectionManager,
    ConnectionStatus,
    compute_backoff_delay,
)
from tests.fakes import FakeFeed, settle


class HangingFeed(FakeFeed):
    async def connect(self, symbol):
        self.connect_calls.append(symbol)
        await asyncio.Event().wait()


def test_backoff_delays_are_capped():
    delays = [compute_backoff_delay(n, 1.0, 30.0) for n in range(1, 9)]
    assert delays == [1, 2, 4, 8, 16, 30, 30, 30]


def test_failed_reconnects_follow_backoff_and_stop_after_last_unsubscribe(scheduler):
    feed = FakeFeed(fail_connect=True)

    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)
        unsubscribe = manager.subscribe("BITCOIN", lambda tick: None)
        await settle()
        for _ in range(6):
            scheduler.fire_next()
            await settle()

        state = manager.get_state("bitcoin")
        assert scheduler.delays == [1, 2, 4, 8, 16, 30, 30]
        assert state.status is ConnectionStatus.RECONNECT_WAITING
        assert state.reconnect_attempts == 7

        pending = scheduler.pending[0]
        unsubscribe()
        assert scheduler.pending == []
        assert pending.cancelled
        assert state.status is ConnectionStatus.CLOSED
        assert state.pending_timer is None
        assert state.task is None

        # Un timer que igual llegara a disparar no reabre nada
        pending.callback()
        await settle()
        assert len(feed.connect_calls) == 7
        assert state.status is ConnectionStatus.CLOSED

    asyncio.run(run())


def test_single_upstream_fans_out_to_all_subscribers(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)
        events = []
        manager.events.subscribe(events.append)
        got_a, got_b = [], []
        un_a = manager.subscribe("bitcoin", got_a.append)
        un_b = manager.subscribe("bitcoin", got_b.append)
        await settle()

        state = manager.get_state("bitcoin")
        assert feed.connect_calls == ["bitcoin"]
        assert state.status is ConnectionStatus.CONNECTED

        stream = feed.last_stream
        stream.push({"price": 100, "ts": 1})
        stream.push("garbage")
        stream.push({"price": 101, "ts": 2})
        await settle()

        assert [t.price for t in got_a] == [100.0, 101.0]
        assert [t.price for t in got_b] == [100.0, 101.0]
        assert state.parse_errors == 1
        assert state.ticks_received == 2
        assert state.last_tick_time == 2

        un_a()
        un_a()
        stream.push({"price": 102, "ts": 3})
        await settle()
        assert len(got_a) == 2
        assert len(got_b) == 3
        assert state.status is ConnectionStatus.CONNECTED

        un_b()
        await settle()
        assert stream.closed
        assert state.status is ConnectionStatus.CLOSED
        assert [e.kind for e in events] == ["connect", "closed"]

    asyncio.run(run())


def test_server_close_reconnects_and_resets_attempts(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)
        events = []
        manager.events.subscribe(events.append)
        manager.subscribe("ethereum", lambda tick: None)
        await settle()

        first = feed.last_stream
        first.end()
        await settle()

        state = manager.get_state("ethereum")
        assert first.closed
        assert state.status is ConnectionStatus.RECONNECT_WAITING
        assert state.reconnect_attempts == 1
        assert scheduler.delays == [1.0]

        scheduler.fire_next()
        await settle()
        assert state.status is ConnectionStatus.CONNECTED
        assert state.reconnect_attempts == 0
        assert len(feed.streams) == 2
        assert [e.kind for e in events] == ["connect", "disconnect", "connect"]
        assert events[1].attempt == 1 and events[1].delay == 1.0

        await manager.disconnect()
        assert feed.streams[1].closed

    asyncio.run(run())


def test_stream_error_schedules_reconnect(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)
        manager.subscribe("solana", lambda tick: None)
        await settle()
        feed.last_stream.fail(ConnectionResetError("reset by peer"))
        await settle()
        return manager.get_state("solana")

    state = asyncio.run(run())
    assert state.status is ConnectionStatus.RECONNECT_WAITING
    assert scheduler.delays == [1.0]


def test_connect_timeout_counts_as_failure(scheduler):
    feed = HangingFeed()

    async def run():
        manager = ConnectionManager(feed, connect_timeout=0.01, scheduler=scheduler)
        unsubscribe = manager.subscribe("bitcoin", lambda tick: None)
        await asyncio.sleep(0.05)
        await settle()
        state = manager.get_state("bitcoin")
        assert state.status is ConnectionStatus.RECONNECT_WAITING
        assert scheduler.delays == [1.0]
        unsubscribe()
        assert scheduler.pending == []

    asyncio.run(run())


def test_resubscribe_after_close_starts_fresh(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)
        unsubscribe = manager.subscribe("bitcoin", lambda tick: None)
        await settle()
        unsubscribe()
        await settle()
        assert manager.get_state("bitcoin") is None

        received = []
        manager.subscribe("bitcoin", received.append)
        await settle()
        state = manager.get_state("bitcoin")
        assert state.status is ConnectionStatus.CONNECTED
        assert len(feed.connect_calls) == 2

        feed.last_stream.push({"price": 5, "ts": 10})
        await settle()
        assert [t.price for t in received] == [5.0]
        await manager.disconnect()

    asyncio.run(run())


def test_unsubscribe_by_callback_and_status(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)

        def handler(tick):
            pass

        manager.subscribe("bitcoin", handler)
        manager.subscribe("bitcoin", handler)
        manager.subscribe("ethereum", handler)
        await settle()

        status = manager.get_status()
        assert status["bitcoin"]["subscribers"] == 2
        assert status["bitcoin"]["connected"] is True
        assert status["ethereum"]["status"] == "connected"

        assert manager.unsubscribe("bitcoin", handler) is True
        assert manager.get_status()["bitcoin"]["subscribers"] == 1
        assert manager.unsubscribe("bitcoin", handler) is True
        assert manager.unsubscribe("bitcoin", handler) is False
        assert "bitcoin" not in manager.get_status()
        assert manager.symbols() == ["ethereum"]

        await manager.disconnect()
        await settle()
        assert all(s.closed for s in feed.streams)
        assert manager.get_status() == {}

    asyncio.run(run())


def test_last_subscriber_leaving_during_fan_out(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)
        holder = {}

        def once(tick):
            holder["unsubscribe"]()

        holder["unsubscribe"] = manager.subscribe("bitcoin", once)
        await settle()
        state = manager.get_state("bitcoin")
        stream = feed.last_stream
        stream.push({"price": 1, "ts": 1})
        await settle()

        assert state.status is ConnectionStatus.CLOSED
        assert manager.get_state("bitcoin") is None
        assert stream.closed
        assert scheduler.handles == []

    asyncio.run(run())


def test_closed_symbols_leave_the_registry(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler)
        disposers = [manager.subscribe(f"coin{i}", lambda tick: None) for i in range(50)]
        await settle()
        assert len(manager.get_status()) == 50

        for dispose in disposers:
            dispose()
        await settle()
        assert manager.get_status() == {}
        assert manager.symbols() == []
        assert all(s.closed for s in feed.streams)

        # Un disposer viejo no toca el estado nuevo del mismo símbolo
        manager.subscribe("coin0", lambda tick: None)
        disposers[0]()
        await settle()
        assert manager.get_state("coin0").status is ConnectionStatus.CONNECTED
        await manager.disconnect()

    asyncio.run(run())


def test_subscribe_without_running_loop_is_rolled_back(feed, scheduler):
    manager = ConnectionManager(feed, scheduler=scheduler)

    with pytest.raises(RuntimeError):
        manager.subscribe("bitcoin", lambda tick: None)

    assert manager.get_state("bitcoin") is None
    assert manager.get_status() == {}
    assert feed.connect_calls == []


def test_current_price_and_history(feed, scheduler):
    async def run():
        manager = ConnectionManager(feed, scheduler=scheduler, price_history_size=3)
        assert manager.get_current_price("bitcoin") is None

        unsubscribe = manager.subscribe("bitcoin", lambda tick: None)
        await settle()
        for i in range(5):
            feed.last_stream.push({"price": 100 + i, "ts": i})
        await settle()

        assert manager.get_current_price("BITCOIN").price == 104.0
        assert [t.price for t in manager.get_price_history("bitcoin")] == [102.0, 103.0, 104.0]
        assert [t.price for t in manager.get_price_history("bitcoin", 2)] == [103.0, 104.0]
        assert manager.get_status()["bitcoin"]["last_price"] == 104.0

        unsubscribe()
        await settle()
        assert manager.get_current_price("bitcoin") is None
        assert manager.get_price_history("bitcoin") == []

    asyncio.run(run())
