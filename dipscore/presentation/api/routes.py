"""
DipScore – API Routes (FastAPI)
=================================
Capa fina de consulta sobre el núcleo de datos de mercado.

Endpoints disponibles:
  GET    /api/health                → health check
  GET    /api/status                → conexiones, series y cache
  GET    /api/technicals/{symbol}   → snapshot de indicadores
  GET    /api/signals/{symbol}      → veredicto bullish/bearish/neutral
  GET    /api/candles/{symbol}      → últimas velas OHLCV
  GET    /api/price/{symbol}        → último tick e historial reciente
  GET    /api/cache/stats           → estadísticas del cache
  DELETE /api/cache                 → vaciar cache
  DELETE /api/cache/{category}      → invalidar una categoría
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from dipscore.domain.exceptions import InvalidTimeframeError
from dipscore.shared.logging.logger import get_logger

logger = get_logger("api.routes")

router = APIRouter()

# Referencias a componentes inyectados desde main.py
_technical_engine = None
_connection_manager = None
_cache_manager = None


def init_routes(technical_engine, connection_manager, cache_manager) -> None:
    """Inyectar dependencias desde main.py al arrancar."""
    global _technical_engine, _connection_manager, _cache_manager
    _technical_engine = technical_engine
    _connection_manager = connection_manager
    _cache_manager = cache_manager


def _invalid_timeframe(error: InvalidTimeframeError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error.to_dict())


# ─── REST endpoints de estado ──────────────────────────────────────────

@router.get("/api/health")
async def health_check() -> dict:
    """Health check para monitoreo."""
    return {"status": "ok", "service": "dipscore"}


@router.get("/api/status")
async def system_status() -> dict:
    """Estado completo: conexiones upstream, series de velas y cache."""
    cache_stats = _cache_manager.get_stats() if _cache_manager else {}
    cache_stats.pop("entries", None)
    return {
        "connections": _connection_manager.get_status() if _connection_manager else {},
        "technicals": _technical_engine.get_status() if _technical_engine else {},
        "cache": cache_stats,
    }


# ─── REST endpoints técnicos ──────────────────────────────────────────

@router.get("/api/technicals/{symbol}")
async def get_technicals(
    symbol: str,
    interval: Optional[str] = Query(default=None, description="Timeframe (1s … 1d)"),
):
    """Snapshot de indicadores de un símbolo; status=insufficient_data si no está listo."""
    if _technical_engine is None:
        return {"error": "Technical engine not ready"}

    interval = interval or _technical_engine.default_interval
    try:
        snapshot = _technical_engine.get_technical_snapshot(symbol, interval)
    except InvalidTimeframeError as e:
        return _invalid_timeframe(e)

    if snapshot is None:
        return {
            "symbol": symbol.upper(),
            "interval": interval,
            "status": "insufficient_data",
            "minimum_periods": _technical_engine.minimum_periods(interval),
        }
    return {"symbol": symbol.upper(), "interval": interval, **snapshot.to_dict()}


@router.get("/api/signals/{symbol}")
async def get_signals(
    symbol: str,
    interval: Optional[str] = Query(default=None, description="Timeframe (1s … 1d)"),
):
    """Veredicto de señales de un símbolo."""
    if _technical_engine is None:
        return {"error": "Technical engine not ready"}

    interval = interval or _technical_engine.default_interval
    try:
        signals = _technical_engine.generate_trading_signals(symbol, interval)
    except InvalidTimeframeError as e:
        return _invalid_timeframe(e)

    if signals is None:
        return {"symbol": symbol.upper(), "interval": interval, "status": "insufficient_data"}
    return {"symbol": symbol.upper(), "interval": interval, **signals.to_dict()}


@router.get("/api/candles/{symbol}")
async def get_candles(
    symbol: str,
    interval: Optional[str] = Query(default=None, description="Timeframe (1s … 1d)"),
    limit: int = Query(default=100, ge=1, le=1000),
):
    if _technical_engine is None:
        return {"error": "Technical engine not ready"}

    interval = interval or _technical_engine.default_interval
    try:
        candles = _technical_engine.get_candles(symbol, interval, limit)
    except InvalidTimeframeError as e:
        return _invalid_timeframe(e)
    return {
        "symbol": symbol.upper(),
        "interval": interval,
        "candles": [c.to_dict() for c in candles],
    }


@router.get("/api/price/{symbol}")
async def get_live_price(
    symbol: str,
    periods: int = Query(default=100, ge=1, le=1000),
):
    """Precio en vivo: disponible desde el primer tick, sin esperar velas."""
    if _connection_manager is None:
        return {"error": "Connection manager not ready"}

    tick = _connection_manager.get_current_price(symbol)
    if tick is None:
        return {"symbol": symbol.upper(), "status": "no_data"}

    history = _connection_manager.get_price_history(symbol, periods)
    return {
        **tick.to_dict(),
        "symbol": symbol.upper(),
        "history": [{"price": t.price, "timestamp": t.timestamp} for t in history],
    }


# ─── REST endpoints de cache ──────────────────────────────────────────

@router.get("/api/cache/stats")
async def cache_stats() -> dict:
    if _cache_manager is None:
        return {"error": "Cache not ready"}
    return _cache_manager.get_stats()


@router.delete("/api/cache")
async def clear_cache() -> dict:
    if _cache_manager is None:
        return {"error": "Cache not ready"}
    removed = _cache_manager.clear()
    logger.info("Cache vaciado vía API (%d entradas)", removed)
    return {"cleared": removed}


@router.delete("/api/cache/{category}")
async def invalidate_cache_category(category: str) -> dict:
    if _cache_manager is None:
        return {"error": "Cache not ready"}
    removed = _cache_manager.invalidate_by_type(category)
    return {"category": category, "invalidated": removed}
