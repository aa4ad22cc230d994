"""
DipScore – Logging configuration
==================================
Logging de texto legible a stdout, configurado una sola vez al arranque.

Todos los módulos obtienen su logger con:
    from dipscore.shared.logging.logger import get_logger
    logger = get_logger("candle_aggregator")   # → "dipscore.candle_aggregator"

El nivel llega desde Settings.log_level ("DEBUG", "INFO", ...) o como
entero de `logging`.
"""

from __future__ import annotations

import logging
import sys
from typing import Union

ROOT_NAMESPACE = "dipscore"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-34s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Librerías que a INFO ensucian la salida (pings, accesos HTTP, debug del loop)
NOISY_LOGGERS = ("websockets", "uvicorn.access", "asyncio")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Nivel de log desconocido: {level!r}")
    return resolved


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Configura el root logger; llamadas repetidas solo ajustan el nivel."""
    root = logging.getLogger()
    if not any(getattr(h, "_dipscore", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler._dipscore = True
        root.addHandler(handler)
    root.setLevel(_resolve_level(level))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger hijo de `dipscore`."""
    return logging.getLogger(f"{ROOT_NAMESPACE}.{name}")
