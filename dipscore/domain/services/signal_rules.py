"""
DipScore – Domain Service: Signal Rules
=========================================
Convierte un IndicatorSnapshot en un veredicto discreto.

Este servicio contiene SOLO lógica de negocio sin dependencias
externas. Puede testearse unitariamente sin mocks.

REGLAS (cada una emite como máximo un voto):
1. RSI          < oversold → alcista,  > overbought → bajista
2. MACD         histogram > 0 → alcista, < 0 → bajista
3. Cruce SMA    sma_fast > sma_slow (golden) / < (death)
4. Precio/SMA20 price > sma_20 → alcista, < → bajista

AGREGACIÓN:
    net        = alcistas − bajistas
    overall    = bullish si net ≥ 2, bearish si net ≤ −2, neutral resto
    strength   = min(|net| × 25, 100)
    confidence = high si |net| ≥ 3, medium si |net| ≥ 2, low resto

NOTA: Este servicio recibe DATOS ya calculados.
Los indicadores se calculan en IndicatorCalculator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from dipscore.domain.value_objects.indicator_snapshot import IndicatorSnapshot
from dipscore.domain.value_objects.trading_signals import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    OVERALL_BEARISH,
    OVERALL_BULLISH,
    OVERALL_NEUTRAL,
    TradingSignals,
)

BULLISH = 1
BEARISH = -1

# Resultado de una regla: (dirección del voto, descripción)
Vote = Optional[Tuple[int, str]]


@dataclass
class SignalRulesConfig:
    """Configuración para reglas de señales."""

    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    overall_threshold: int = 2     # |net| mínimo para salir de neutral
    high_confidence_net: int = 3
    strength_per_vote: int = 25


class SignalRules:
    """
    Servicio de dominio para evaluar votos técnicos.

    TESTABILIDAD:
    No tiene dependencias externas ni estado mutable.

    USO:
        rules = SignalRules(SignalRulesConfig(rsi_oversold=25))
        signals = rules.generate_signals(snapshot)
    """

    def __init__(self, config: SignalRulesConfig = None):
        self._config = config or SignalRulesConfig()

    @property
    def config(self) -> SignalRulesConfig:
        return self._config

    # ─── Reglas individuales ───────────────────────────────────────

    def rsi_vote(self, rsi: Optional[float]) -> Vote:
        if rsi is None:
            return None
        if rsi < self._config.rsi_oversold:
            return BULLISH, "RSI oversold - potential buy"
        if rsi > self._config.rsi_overbought:
            return BEARISH, "RSI overbought - potential sell"
        return None

    @staticmethod
    def macd_vote(histogram: Optional[float]) -> Vote:
        if histogram is None:
            return None
        if histogram > 0:
            return BULLISH, "MACD bullish momentum"
        if histogram < 0:
            return BEARISH, "MACD bearish momentum"
        return None

    @staticmethod
    def sma_cross_vote(sma_fast: Optional[float], sma_slow: Optional[float]) -> Vote:
        if sma_fast is None or sma_slow is None:
            return None
        if sma_fast > sma_slow:
            return BULLISH, "Golden cross - bullish trend"
        if sma_fast < sma_slow:
            return BEARISH, "Death cross - bearish trend"
        return None

    @staticmethod
    def price_vs_sma_vote(price: Optional[float], sma_20: Optional[float]) -> Vote:
        if price is None or sma_20 is None:
            return None
        if price > sma_20:
            return BULLISH, "Price above SMA20 - bullish"
        if price < sma_20:
            return BEARISH, "Price below SMA20 - bearish"
        return None

    # ─── Agregación ────────────────────────────────────────────────

    def generate_signals(self, snapshot: IndicatorSnapshot) -> TradingSignals:
        """Evalúa todas las reglas y agrega los votos en un TradingSignals."""
        histogram = snapshot.macd.histogram if snapshot.macd is not None else None

        votes = [
            self.rsi_vote(snapshot.rsi),
            self.macd_vote(histogram),
            self.sma_cross_vote(snapshot.sma_fast, snapshot.sma_slow),
            self.price_vs_sma_vote(snapshot.price, snapshot.sma_20),
        ]

        bullish = 0
        bearish = 0
        descriptions: List[str] = []
        for vote in votes:
            if vote is None:
                continue
            direction, description = vote
            if direction == BULLISH:
                bullish += 1
            else:
                bearish += 1
            descriptions.append(description)

        net = bullish - bearish
        return TradingSignals(
            overall=self._overall(net),
            strength=min(abs(net) * self._config.strength_per_vote, 100),
            confidence=self._confidence(net),
            net=net,
            bullish_votes=bullish,
            bearish_votes=bearish,
            signals=descriptions,
        )

    def _overall(self, net: int) -> str:
        if net >= self._config.overall_threshold:
            return OVERALL_BULLISH
        if net <= -self._config.overall_threshold:
            return OVERALL_BEARISH
        return OVERALL_NEUTRAL

    def _confidence(self, net: int) -> str:
        if abs(net) >= self._config.high_confidence_net:
            return CONFIDENCE_HIGH
        if abs(net) >= self._config.overall_threshold:
            return CONFIDENCE_MEDIUM
        return CONFIDENCE_LOW
