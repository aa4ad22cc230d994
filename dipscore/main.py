"""
DipScore – Main Application Entry Point
=========================================
Orquesta el núcleo: Feed → Connection Manager → Candles → Indicators → Signals,
más el TTL cache para lookups externos.

ARQUITECTURA DE ARRANQUE:
  1. Configurar logging
  2. Obtener instancias del Container (DI)
  3. FastAPI lifespan startup:
     a. Inyectar dependencias al router
     b. Iniciar barrido periódico del cache
     c. Suscribir los símbolos de `watch_symbols` al intervalo por defecto
  4. FastAPI lifespan shutdown:
     a. Liberar suscripciones y cerrar streams
     b. Detener barrido del cache

FLUJO DE DATOS:
  Binance WS → BinanceTickerFeed → ConnectionManager (fan-out por símbolo)
       → CandleAggregator (symbol:timeframe, deque acotado)
       → IndicatorCalculator → IndicatorSnapshot
       → SignalRules → TradingSignals
       → API pull (/api/technicals, /api/signals) o callbacks push

  uvicorn dipscore.main:app --host 0.0.0.0 --port 8888
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable, List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dipscore.container import get_container
from dipscore.presentation.api.routes import init_routes, router
from dipscore.shared.config.settings import settings as app_settings
from dipscore.shared.logging.logger import get_logger, setup_logging

# ─── Logging ────────────────────────────────────────────────────────────
setup_logging(app_settings.log_level)
logger = get_logger("main")


# ─── FastAPI Lifespan ───────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle de la aplicación."""
    container = get_container()
    settings = container.settings

    logger.info("=" * 60)
    logger.info("  DipScore - Market Data Core v1.0")
    logger.info("  Símbolos: %s", ", ".join(settings.watch_symbols) or "(ninguno)")
    logger.info("  Timeframe por defecto: %s", settings.default_timeframe)
    logger.info("  Buffer máximo: %d velas por símbolo por TF", settings.max_candles_buffer)
    logger.info("  Backoff: %.0fs → %.0fs", settings.ws_reconnect_base_delay,
                settings.ws_reconnect_max_delay)
    logger.info("  Cache: max=%d, barrido cada %.0fs",
                settings.cache_max_entries, settings.cache_cleanup_interval)
    logger.info("=" * 60)

    engine = container.technical_engine
    connections = container.connection_manager
    cache = container.cache_manager

    # Inyectar dependencias al router (desde container)
    init_routes(engine, connections, cache)

    await cache.start()

    releases: List[Callable[[], None]] = [
        engine.track(symbol, settings.default_timeframe)
        for symbol in settings.watch_symbols
    ]

    logger.info("✓ Todos los componentes iniciados correctamente")

    yield  # ← La app está corriendo aquí

    # ── SHUTDOWN ──
    logger.info("Iniciando shutdown...")
    for release in releases:
        release()
    engine.close()
    await connections.disconnect()
    await cache.stop()
    cache.log_cache_status()
    logger.info("✓ Shutdown completo")


# ─── FastAPI App ────────────────────────────────────────────────────────

def create_app() -> FastAPI:
    app = FastAPI(
        title="DipScore - Market Data Core",
        description="Ingesta de ticks, velas multi-timeframe, indicadores técnicos y señales",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS para frontend local
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # En producción: restringir a dominios específicos
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_container().settings
    uvicorn.run("dipscore.main:app", host=_settings.host, port=_settings.port,
                reload=_settings.debug)
