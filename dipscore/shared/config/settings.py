"""
DipScore – Settings (Pydantic BaseSettings)
=============================================
Configuración centralizada cargada desde variables de entorno / .env.
Se usa pydantic-settings para validación estricta al arranque.

Los componentes NO leen `settings` directamente: reciben sus valores por
constructor desde el Container. Así cada test crea instancias aisladas.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List


class Settings(BaseSettings):
    # ─── Feed de mercado (Binance 24h ticker) ───────────────────────────
    binance_ws_url: str = Field(
        default="wss://stream.binance.com:9443/ws",
        description="Endpoint base de streams individuales de Binance",
    )
    watch_symbols: List[str] = Field(
        default=["bitcoin", "ethereum", "solana"],
        description="Símbolos suscritos automáticamente al arrancar la app",
    )

    # ─── Velas / Timeframes ─────────────────────────────────────────────
    default_timeframe: str = Field(
        default="5m", description="Intervalo por defecto para snapshots y señales",
    )
    max_candles_buffer: int = Field(
        default=200, description="Máximo de velas en memoria por símbolo por timeframe",
    )

    # ─── Reconexión ─────────────────────────────────────────────────────
    ws_reconnect_base_delay: float = Field(
        default=1.0, description="Delay base (seg) para backoff exponencial",
    )
    ws_reconnect_max_delay: float = Field(
        default=30.0, description="Delay máximo (seg) entre reconexiones",
    )
    ws_heartbeat_interval: int = Field(
        default=30, description="Intervalo (seg) de ping del cliente WebSocket",
    )
    feed_connect_timeout: float = Field(
        default=10.0, description="Timeout (seg) para abrir la conexión upstream",
    )

    # ─── Cache TTL ──────────────────────────────────────────────────────
    cache_default_ttl: float = Field(
        default=300.0, description="TTL (seg) para categorías sin entrada propia",
    )
    cache_cleanup_interval: float = Field(
        default=120.0, description="Intervalo (seg) del barrido de entradas expiradas",
    )
    cache_max_entries: int = Field(
        default=5_000, description="Capacidad máxima del cache (evicción más antigua)",
    )
    cache_producer_timeout: float = Field(
        default=8.0, description="Timeout (seg) de cada producer en fetch_with_cache",
    )

    # ─── Signal Generator ───────────────────────────────────────────────
    signal_rsi_oversold: float = Field(
        default=30.0, description="Umbral RSI de sobreventa (voto alcista)",
    )
    signal_rsi_overbought: float = Field(
        default=70.0, description="Umbral RSI de sobrecompra (voto bajista)",
    )

    # ─── Server ─────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8888)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", description="Nivel del root logger")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton global – se importa donde se necesite
settings = Settings()
