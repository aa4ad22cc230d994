"""DipScore – núcleo de datos de mercado (ticks, velas, indicadores, señales, cache)."""

__version__ = "1.0.0"
