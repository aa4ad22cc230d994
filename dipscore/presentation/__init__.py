"""
DipScore – Presentation Layer
===============================
API HTTP (FastAPI routes).
"""

from dipscore.presentation.api.routes import init_routes, router

__all__ = [
    "router",
    "init_routes",
]
