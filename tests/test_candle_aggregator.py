import pytest

from dipscore.domain.exceptions import InvalidTimeframeError
from dipscore.domain.value_objects.tick import Tick
from dipscore.market_data.services.candle_aggregator import CandleAggregator
from dipscore.market_data.services.timeframes import TIMEFRAME_MS, align_bucket


def _tick(ts, price, volume=None):
    return Tick(symbol="bitcoin", price=price, timestamp=ts, volume=volume)


def test_three_ticks_build_two_one_minute_candles():
    aggregator = CandleAggregator(capacity=10)
    for ts, price in [(0, 100.0), (30_000, 101.0), (61_000, 99.0)]:
        aggregator.on_tick("bitcoin", _tick(ts, price), "1m")

    candles = aggregator.get_series("bitcoin", "1m").to_list()
    assert len(candles) == 2

    first, second = candles
    assert first.bucket_start == 0
    assert (first.open, first.high, first.low, first.close) == (100.0, 101.0, 100.0, 101.0)
    assert first.trade_count == 2
    assert second.bucket_start == 60_000
    assert (second.open, second.high, second.low, second.close) == (99.0, 99.0, 99.0, 99.0)
    assert second.trade_count == 1


@pytest.mark.parametrize("timeframe", sorted(TIMEFRAME_MS))
def test_bucket_starts_are_multiples_of_timeframe(timeframe):
    aggregator = CandleAggregator(capacity=50)
    duration = TIMEFRAME_MS[timeframe]
    ts = 1_700_000_123_457
    for i in range(30):
        aggregator.on_tick("bitcoin", _tick(ts + i * 7_777_777 % (duration * 3), 100.0 + i), timeframe)
        ts += 1_333

    for candle in aggregator.get_series("bitcoin", timeframe).candles:
        assert candle.bucket_start % duration == 0


def test_capacity_evicts_oldest_first():
    aggregator = CandleAggregator(capacity=3)
    for i in range(5):
        aggregator.on_tick("bitcoin", _tick(i * 1_000, 100.0 + i), "1s")

    series = aggregator.get_series("bitcoin", "1s")
    assert len(series) == 3
    assert [c.bucket_start for c in series.candles] == [2_000, 3_000, 4_000]


def test_late_tick_is_dropped_and_counted():
    aggregator = CandleAggregator(capacity=10)
    aggregator.on_tick("bitcoin", _tick(120_000, 100.0), "1m")
    before = aggregator.get_series("bitcoin", "1m").to_list()

    assert aggregator.on_tick("bitcoin", _tick(10_000, 50.0), "1m") is None

    series = aggregator.get_series("bitcoin", "1m")
    assert series.to_list() == before
    assert series.late_ticks_dropped == 1


def test_volume_uses_daily_share_per_tick():
    aggregator = CandleAggregator(capacity=10)
    aggregator.on_tick("bitcoin", _tick(0, 100.0, volume=1440.0), "1m")
    candle = aggregator.on_tick("bitcoin", _tick(1_000, 100.5, volume=2880.0), "1m")

    assert candle.volume == pytest.approx(3.0)
    assert candle.trade_count == 2


def test_superseded_candle_is_not_modified():
    aggregator = CandleAggregator(capacity=10)
    first = aggregator.on_tick("bitcoin", _tick(0, 100.0), "1s")
    aggregator.on_tick("bitcoin", _tick(1_500, 105.0), "1s")

    assert aggregator.get_series("bitcoin", "1s").candles[0] is first
    assert first.close == 100.0


def test_unknown_timeframe_raises():
    aggregator = CandleAggregator(capacity=10)
    with pytest.raises(InvalidTimeframeError):
        aggregator.on_tick("bitcoin", _tick(0, 1.0), "7m")
    with pytest.raises(InvalidTimeframeError):
        align_bucket(0, "2h")


def test_discard_drops_all_series_of_symbol():
    aggregator = CandleAggregator(capacity=10)
    aggregator.on_tick("bitcoin", _tick(0, 1.0), "1m")
    aggregator.on_tick("bitcoin", _tick(0, 1.0), "5m")
    aggregator.on_tick("ethereum", _tick(0, 1.0), "1m")

    assert aggregator.discard("bitcoin") == 2
    assert set(aggregator.snapshot()) == {"ethereum:1m"}
