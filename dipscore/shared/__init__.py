"""
DipScore – Shared Module
==========================
Utilidades transversales usadas por todas las capas.

Este módulo contiene:
- config/: Settings y configuración
- logging/: Setup de logging
- events/: Fan-out síncrono (Subscribable)

NOTA: Este módulo no contiene lógica de negocio.
"""

from dipscore.shared.logging.logger import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
]
