"""
DipScore – Technical Engine (API pull/push)
=============================================
Orquesta el pipeline por (símbolo, intervalo):

    ConnectionManager ─tick─► CandleAggregator ─serie─► IndicatorCalculator
                                                           │ snapshot
                                                           ▼
                                   callbacks push ◄── SignalRules (pull)

PULL:
- get_technical_snapshot(symbol, interval) → IndicatorSnapshot | None
- generate_trading_signals(symbol, interval) → TradingSignals | None
  Ambos retornan None hasta que existan minimum_periods(interval) velas.
- get_status() → velas y disponibilidad por símbolo/intervalo.
- get_candles(symbol, interval, limit) → últimas velas OHLCV.

PUSH:
- subscribe_to_technicals(symbol, callback, interval) entrega
  {symbol, interval, **snapshot, timestamp} en cada tick que produce
  un cálculo nuevo. Un único feed de ticks por (símbolo, intervalo)
  se comparte entre todos los callbacks (conteo de referencias).

LIMPIEZA:
- Cuando el ConnectionManager cierra un símbolo (evento "closed") se
  descartan sus series de velas y sus feeds.
- Al liberarse el último consumidor de un (símbolo, intervalo) se
  descarta esa serie aunque el símbolo siga activo en otro intervalo.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from dipscore.domain.entities.candle import Candle
from dipscore.domain.services.indicator_calculator import IndicatorCalculator
from dipscore.domain.services.signal_rules import SignalRules
from dipscore.domain.value_objects.indicator_snapshot import IndicatorSnapshot
from dipscore.domain.value_objects.tick import Tick
from dipscore.domain.value_objects.trading_signals import TradingSignals
from dipscore.market_data.services.candle_aggregator import CandleAggregator
from dipscore.market_data.services.connection_manager import (
    EVENT_CLOSED,
    ConnectionEvent,
    ConnectionManager,
)
from dipscore.market_data.services.timeframes import (
    minimum_periods,
    optimal_periods,
    timeframe_ms,
    validate_timeframe,
)
from dipscore.market_data.state.candle_state import CandleSeries
from dipscore.shared.events.subscribable import Disposer, Subscribable
from dipscore.shared.logging.logger import get_logger

logger = get_logger("technical_engine")

TechnicalsCallback = Callable[[Dict[str, Any]], None]


def build_snapshot(series: CandleSeries, timeframe: str) -> Optional[IndicatorSnapshot]:
    """
    Calcular todos los indicadores de una serie con los períodos del
    timeframe (limitados al 80% del buffer). None si la serie está vacía.
    """
    if len(series) == 0:
        return None

    closes = series.closes()
    highs = series.highs()
    lows = series.lows()
    volumes = series.volumes()
    periods = optimal_periods(timeframe, len(closes))
    calc = IndicatorCalculator

    return IndicatorSnapshot(
        price=closes[-1],
        timestamp=series.last.bucket_start,
        data_points=len(closes),
        sma_fast=calc.sma(closes, periods["sma_fast"]),
        sma_slow=calc.sma(closes, periods["sma_slow"]),
        sma_20=calc.sma(closes, periods["sma_20"]),
        ema_fast=calc.ema(closes, periods["ema_fast"]),
        ema_slow=calc.ema(closes, periods["ema_slow"]),
        rsi=calc.rsi(closes, periods["rsi"]),
        macd=calc.macd(closes, periods["ema_fast"], periods["ema_slow"], periods["macd_signal"]),
        bollinger=calc.bollinger_bands(closes, periods["bb"]),
        volume_sma=calc.sma(volumes, periods["volume"]),
        stochastic=calc.stochastic(highs, lows, closes, periods["stoch"]),
        atr=calc.atr(highs, lows, closes, periods["atr"]),
        momentum=calc.momentum(closes, periods["momentum"]),
        price_velocity=calc.price_velocity(closes, timeframe_ms(timeframe) / 1000),
        volatility=calc.volatility(closes, periods["volatility"]),
        trend=calc.trend(closes),
        support_resistance=calc.support_resistance(highs, lows, closes),
        periods=periods,
    )


@dataclass
class _IntervalFeed:
    """Feed de ticks compartido por todos los consumidores de un (símbolo, intervalo)."""

    symbol: str
    interval: str
    listeners: Subscribable
    release_ticks: Disposer = None
    refs: int = 0


class TechnicalEngine:
    """
    Motor técnico por (símbolo, intervalo).

    Uso:
        engine = TechnicalEngine(manager, aggregator, SignalRules())
        unsubscribe = engine.subscribe_to_technicals("bitcoin", on_update, "1m")
        snapshot = engine.get_technical_snapshot("bitcoin", "1m")
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        aggregator: CandleAggregator,
        signal_rules: Optional[SignalRules] = None,
        default_interval: str = "5m",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._connections = connection_manager
        self._aggregator = aggregator
        self._rules = signal_rules or SignalRules()
        self._default_interval = validate_timeframe(default_interval)
        self._clock = clock
        self._feeds: Dict[Tuple[str, str], _IntervalFeed] = {}
        self._release_events = connection_manager.events.subscribe(self._on_connection_event)

    @property
    def default_interval(self) -> str:
        return self._default_interval

    # ──────────────────────── Push API ──────────────────────────────────

    def track(self, symbol: str, interval: Optional[str] = None) -> Disposer:
        """
        Agregar ticks de `symbol` en velas de `interval` sin callback.

        Retorna una función idempotente que libera esta referencia; al
        liberarse la última se cancela la suscripción de ticks.
        """
        symbol = symbol.lower()
        interval = validate_timeframe(interval or self._default_interval)
        feed = self._acquire_feed(symbol, interval)
        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            self._release_feed(feed)

        return release

    def subscribe_to_technicals(
        self,
        symbol: str,
        callback: TechnicalsCallback,
        interval: Optional[str] = None,
    ) -> Disposer:
        """
        Registrar `callback` para recibir snapshots de `symbol` en `interval`.

        Raises:
            InvalidTimeframeError: intervalo no soportado.
        """
        symbol = symbol.lower()
        interval = validate_timeframe(interval or self._default_interval)
        feed = self._acquire_feed(symbol, interval)
        dispose_listener = feed.listeners.subscribe(callback)
        released = False

        logger.info("Suscripción técnica: %s @ %s (refs=%d)", symbol, interval, feed.refs)

        def unsubscribe() -> None:
            nonlocal released
            if released:
                return
            released = True
            dispose_listener()
            self._release_feed(feed)

        return unsubscribe

    def _acquire_feed(self, symbol: str, interval: str) -> _IntervalFeed:
        key = (symbol, interval)
        feed = self._feeds.get(key)
        if feed is None:
            feed = _IntervalFeed(
                symbol=symbol,
                interval=interval,
                listeners=Subscribable(f"technicals:{symbol}:{interval}"),
            )
            self._feeds[key] = feed
            feed.release_ticks = self._connections.subscribe(
                symbol, lambda tick: self._on_tick(feed, tick),
            )
        feed.refs += 1
        return feed

    def _release_feed(self, feed: _IntervalFeed) -> None:
        key = (feed.symbol, feed.interval)
        if self._feeds.get(key) is not feed:
            return
        feed.refs -= 1
        if feed.refs > 0:
            return
        del self._feeds[key]
        feed.listeners.clear()
        feed.release_ticks()
        # Sin consumidores la serie dejaría de recibir ticks: un re-subscribe
        # posterior arranca con buffer limpio.
        self._aggregator.discard_series(feed.symbol, feed.interval)

    def _on_tick(self, feed: _IntervalFeed, tick: Tick) -> None:
        candle = self._aggregator.on_tick(feed.symbol, tick, feed.interval)
        if candle is None or not feed.listeners:
            return

        snapshot = self.get_technical_snapshot(feed.symbol, feed.interval)
        if snapshot is None:
            return

        payload = {
            "symbol": feed.symbol.upper(),
            "interval": feed.interval,
            **snapshot.to_dict(),
            "timestamp": int(self._clock() * 1000),
        }
        feed.listeners.emit(payload)

    def _on_connection_event(self, event: ConnectionEvent) -> None:
        if event.kind != EVENT_CLOSED:
            return
        stale = [key for key in self._feeds if key[0] == event.symbol]
        for key in stale:
            self._feeds.pop(key).listeners.clear()
        self._aggregator.discard(event.symbol)

    def close(self) -> None:
        """Liberar todos los feeds (shutdown)."""
        for feed in list(self._feeds.values()):
            feed.listeners.clear()
            feed.release_ticks()
        self._feeds.clear()
        self._release_events()

    # ──────────────────────── Pull API ──────────────────────────────────

    def minimum_periods(self, interval: str) -> int:
        return minimum_periods(interval)

    def get_technical_snapshot(
        self, symbol: str, interval: Optional[str] = None,
    ) -> Optional[IndicatorSnapshot]:
        """Snapshot de indicadores, o None si todavía no hay velas suficientes."""
        interval = validate_timeframe(interval or self._default_interval)
        series = self._aggregator.state.get(symbol.lower(), interval)
        if series is None or len(series) < minimum_periods(interval):
            return None
        return build_snapshot(series, interval)

    def generate_trading_signals(
        self, symbol: str, interval: Optional[str] = None,
    ) -> Optional[TradingSignals]:
        snapshot = self.get_technical_snapshot(symbol, interval)
        if snapshot is None:
            return None
        return self._rules.generate_signals(snapshot)

    def get_candles(
        self, symbol: str, interval: Optional[str] = None, limit: int = 100,
    ) -> List[Candle]:
        """Últimas `limit` velas de (symbol, interval), más antigua primero."""
        interval = validate_timeframe(interval or self._default_interval)
        series = self._aggregator.state.get(symbol.lower(), interval)
        if series is None or limit <= 0:
            return []
        return series.to_list()[-limit:]

    def get_status(self) -> Dict[str, Dict[str, dict]]:
        """{symbol: {interval: {data_points, latest_timestamp, has_technicals, ...}}}"""
        status: Dict[str, Dict[str, dict]] = {}
        for series in self._aggregator.state.all_series():
            last = series.last
            required = minimum_periods(series.timeframe)
            feed = self._feeds.get((series.symbol, series.timeframe))
            status.setdefault(series.symbol, {})[series.timeframe] = {
                "data_points": len(series),
                "minimum_periods": required,
                "latest_timestamp": last.bucket_start if last else None,
                "has_technicals": len(series) >= required,
                "late_ticks_dropped": series.late_ticks_dropped,
                "subscribers": len(feed.listeners) if feed else 0,
            }
        return status
