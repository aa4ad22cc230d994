"""
Dependency Injection Container.

Este módulo proporciona el contenedor de inyección de dependencias
que gestiona las instancias del núcleo de datos de mercado.

Clean Architecture: Este contenedor vive en la capa más externa y es el único
lugar donde se crean dependencias concretas y donde se leen los Settings.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

# Domain
from dipscore.domain.services.signal_rules import SignalRules, SignalRulesConfig

# Application Ports
from dipscore.application.ports.market_feed import MarketFeed

# Market data
from dipscore.market_data.services.candle_aggregator import CandleAggregator
from dipscore.market_data.services.connection_manager import ConnectionManager
from dipscore.market_data.services.technical_engine import TechnicalEngine

# Infrastructure
from dipscore.infrastructure.cache.cache_manager import CacheManager

# Shared
from dipscore.shared.config.settings import Settings, settings as app_settings


@dataclass
class Container:
    """
    Contenedor de Inyección de Dependencias.

    Cada propiedad crea su instancia de forma perezosa la primera vez
    (singleton por contenedor). Los tests sustituyen piezas con override().
    """

    # Configuración
    settings: Settings = field(default_factory=Settings)

    # Ports (implementaciones concretas)
    _market_feed: Optional[MarketFeed] = None

    # Domain Services (stateless, se pueden compartir)
    _signal_rules: Optional[SignalRules] = None

    # Servicios con estado
    _connection_manager: Optional[ConnectionManager] = None
    _candle_aggregator: Optional[CandleAggregator] = None
    _technical_engine: Optional[TechnicalEngine] = None
    _cache_manager: Optional[CacheManager] = None

    # ==================== Domain Services ====================

    @property
    def signal_rules(self) -> SignalRules:
        """Obtiene o crea SignalRules con los umbrales configurados."""
        if self._signal_rules is None:
            self._signal_rules = SignalRules(SignalRulesConfig(
                rsi_oversold=self.settings.signal_rsi_oversold,
                rsi_overbought=self.settings.signal_rsi_overbought,
            ))
        return self._signal_rules

    # ==================== Ports ====================

    @property
    def market_feed(self) -> MarketFeed:
        """Obtiene el feed de ticks upstream."""
        if self._market_feed is None:
            from dipscore.infrastructure.external.binance_feed import BinanceTickerFeed
            self._market_feed = BinanceTickerFeed(
                ws_url=self.settings.binance_ws_url,
                heartbeat_interval=self.settings.ws_heartbeat_interval,
            )
        return self._market_feed

    # ==================== Market Data ====================

    @property
    def connection_manager(self) -> ConnectionManager:
        if self._connection_manager is None:
            self._connection_manager = ConnectionManager(
                feed=self.market_feed,
                reconnect_base_delay=self.settings.ws_reconnect_base_delay,
                reconnect_max_delay=self.settings.ws_reconnect_max_delay,
                connect_timeout=self.settings.feed_connect_timeout,
            )
        return self._connection_manager

    @property
    def candle_aggregator(self) -> CandleAggregator:
        if self._candle_aggregator is None:
            self._candle_aggregator = CandleAggregator(
                capacity=self.settings.max_candles_buffer,
            )
        return self._candle_aggregator

    @property
    def technical_engine(self) -> TechnicalEngine:
        if self._technical_engine is None:
            self._technical_engine = TechnicalEngine(
                connection_manager=self.connection_manager,
                aggregator=self.candle_aggregator,
                signal_rules=self.signal_rules,
                default_interval=self.settings.default_timeframe,
            )
        return self._technical_engine

    # ==================== Cache ====================

    @property
    def cache_manager(self) -> CacheManager:
        if self._cache_manager is None:
            self._cache_manager = CacheManager(
                default_ttl=self.settings.cache_default_ttl,
                max_entries=self.settings.cache_max_entries,
                cleanup_interval=self.settings.cache_cleanup_interval,
                producer_timeout=self.settings.cache_producer_timeout,
            )
        return self._cache_manager

    # ==================== Lifecycle ====================

    def reset(self) -> None:
        """Resetea todas las instancias (útil para tests)."""
        self._market_feed = None
        self._signal_rules = None
        self._connection_manager = None
        self._candle_aggregator = None
        self._technical_engine = None
        self._cache_manager = None

    def override(self, name: str, instance: Any) -> None:
        """
        Override una dependencia (útil para tests con fakes).

        Args:
            name: Nombre de la dependencia (ej: 'market_feed')
            instance: Instancia a usar
        """
        attr_name = f"_{name}"
        if hasattr(self, attr_name):
            setattr(self, attr_name, instance)
        else:
            raise ValueError(f"Unknown dependency: {name}")


# ==================== Global Container ====================

_container: Optional[Container] = None


def get_container() -> Container:
    """
    Obtiene la instancia global del contenedor.

    Patrón Singleton para asegurar una única instancia
    compartida en toda la aplicación.
    """
    global _container
    if _container is None:
        _container = Container(settings=app_settings)
    return _container


def reset_container() -> None:
    """Resetea el contenedor global."""
    global _container
    if _container is not None:
        _container.reset()
    _container = None


def init_container(settings: Optional[Settings] = None, **overrides: Any) -> Container:
    """
    Inicializa el contenedor global con configuración específica.

    Args:
        settings: Configuración opcional. Si es None, usa la global (.env).
        **overrides: Dependencias a sustituir (ej: market_feed=FakeFeed())

    Returns:
        Container inicializado
    """
    global _container
    if settings is None:
        settings = app_settings
    _container = Container(settings=settings)
    for name, instance in overrides.items():
        _container.override(name, instance)
    return _container
