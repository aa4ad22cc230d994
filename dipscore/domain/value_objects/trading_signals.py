"""
DipScore – Domain Value Object: TradingSignals
================================================
Veredicto discreto derivado de un IndicatorSnapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

OVERALL_BULLISH = "bullish"
OVERALL_BEARISH = "bearish"
OVERALL_NEUTRAL = "neutral"

CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_LOW = "low"


@dataclass(frozen=True)
class TradingSignals:
    overall: str                 # bullish | bearish | neutral
    strength: int                # 0..100
    confidence: str              # high | medium | low
    net: int                     # votos alcistas − votos bajistas
    bullish_votes: int = 0
    bearish_votes: int = 0
    signals: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overall": self.overall,
            "strength": self.strength,
            "confidence": self.confidence,
            "net": self.net,
            "bullish_votes": self.bullish_votes,
            "bearish_votes": self.bearish_votes,
            "signals": list(self.signals),
        }
