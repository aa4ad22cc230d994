"""
DipScore – Domain Exceptions
==============================
Excepciones del núcleo de datos de mercado.

JERARQUÍA:
    DomainError (base)
    ├── FeedConnectionError     → se recupera con backoff, nunca llega al caller
    ├── TickParseError          → el mensaje se descarta y se cuenta
    └── InvalidTimeframeError   → intervalo fuera del conjunto soportado

"Datos insuficientes" NO es una excepción: los indicadores y snapshots
retornan None y el caller lo interpreta como "todavía no listo".
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class FeedConnectionError(DomainError):
    """El feed upstream no se pudo abrir o se cerró inesperadamente."""

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message, code="FEED_CONNECTION")
        self.symbol = symbol


class TickParseError(DomainError):
    """Payload del feed que no se puede convertir en Tick."""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message, code="TICK_PARSE")
        self.payload = payload


class InvalidTimeframeError(DomainError):
    """Timeframe no incluido en el conjunto soportado."""

    def __init__(self, timeframe: str):
        super().__init__(f"Timeframe no soportado: '{timeframe}'", code="INVALID_TIMEFRAME")
        self.timeframe = timeframe
