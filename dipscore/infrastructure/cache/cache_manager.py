"""
DipScore – TTL Cache Manager
==============================
Cache en memoria por categoría con expiración, contabilidad hit/miss y
barrido periódico de entradas vencidas.

CLAVES:
    "<category>:" + pares "k:v" ordenados por k, unidos por "|"
    e.g. crypto_data:ids:bitcoin|vs:usd

TTL POR CATEGORÍA (segundos):
    crypto_data 30 · global_market / bitcoin_dominance / search_results 300
    fear_greed 600 · coin_list 3600 · resto → default (300)

EXPIRACIÓN:
- get() borra en el momento una entrada vencida y cuenta un miss.
- Un task asyncio barre todas las vencidas cada `cleanup_interval`,
  haya o no lecturas.

fetch_with_cache():
- Hit → valor cacheado (incluido None si se cacheó None).
- Miss → producer() se espera UNA vez, acotado por `producer_timeout`.
  Si falla o vence el timeout, la excepción se propaga y NO se escribe
  nada (sin cache negativo, sin reintento).
- No hay lock alrededor del producer: un producer lento no bloquea
  otras claves.

PROTECCIÓN DE MEMORIA:
- Capacidad máxima `max_entries`; al excederla se expulsa la entrada
  escrita hace más tiempo (OrderedDict, O(1)).
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from dipscore.shared.logging.logger import get_logger

logger = get_logger("cache_manager")

CACHE_TTL_SECONDS: Dict[str, float] = {
    "global_market": 5 * 60,
    "crypto_data": 30,
    "fear_greed": 10 * 60,
    "bitcoin_dominance": 5 * 60,
    "coin_list": 60 * 60,
    "search_results": 5 * 60,
}

Producer = Callable[[], Awaitable[Any]]

_MISSING = object()


@dataclass
class CacheEntry:
    key: str
    value: Any
    category: str
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CacheManager:
    """
    Cache TTL por categoría.

    Uso:
        cache = CacheManager()
        await cache.start()
        data = await cache.fetch_with_cache("crypto_data", fetch_prices, {"ids": "bitcoin"})
        await cache.stop()
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        ttl_by_category: Optional[Mapping[str, float]] = None,
        max_entries: int = 5_000,
        cleanup_interval: float = 120.0,
        producer_timeout: Optional[float] = 8.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries debe ser >= 1")
        self._default_ttl = default_ttl
        self._ttls: Dict[str, float] = dict(CACHE_TTL_SECONDS)
        if ttl_by_category:
            self._ttls.update(ttl_by_category)
        self._max_entries = max_entries
        self._cleanup_interval = cleanup_interval
        self._producer_timeout = producer_timeout
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._sweep_task: Optional[asyncio.Task] = None

        # Estadísticas
        self._hits = 0
        self._misses = 0
        self._api_calls_saved = 0
        self._evictions = 0

    # ──────────────────────── Claves / TTL ──────────────────────────────

    @staticmethod
    def generate_key(category: str, params: Optional[Mapping[str, Any]] = None) -> str:
        params = params or {}
        param_string = "|".join(f"{k}:{params[k]}" for k in sorted(params))
        return f"{category}:{param_string}"

    def ttl_for(self, category: str) -> float:
        return self._ttls.get(category, self._default_ttl)

    # ──────────────────────── Lectura / escritura ───────────────────────

    def set(self, category: str, data: Any, params: Optional[Mapping[str, Any]] = None) -> None:
        """Guardar (sobrescribiendo) `data`; reinicia created_at/expires_at."""
        key = self.generate_key(category, params)
        now = self._clock()
        ttl = self.ttl_for(category)

        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            key=key,
            value=data,
            category=category,
            created_at=now,
            expires_at=now + ttl,
        )
        logger.debug("Cache SET: %s (expira en %.0fs)", key, ttl)

        while len(self._entries) > self._max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Cache EVICT: %s", evicted_key)

    def get(
        self,
        category: str,
        params: Optional[Mapping[str, Any]] = None,
        default: Any = None,
    ) -> Any:
        """Valor cacheado vigente, o `default` si no existe o venció."""
        value = self._lookup(self.generate_key(category, params))
        return default if value is _MISSING else value

    def contains(self, category: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        """¿Hay una entrada vigente? No modifica estadísticas."""
        entry = self._entries.get(self.generate_key(category, params))
        return entry is not None and not entry.is_expired(self._clock())

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            logger.debug("Cache MISS: %s", key)
            return _MISSING

        now = self._clock()
        if entry.is_expired(now):
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache EXPIRED: %s", key)
            return _MISSING

        self._hits += 1
        self._api_calls_saved += 1
        logger.debug("Cache HIT: %s (edad %.1fs)", key, now - entry.created_at)
        return entry.value

    async def fetch_with_cache(
        self,
        category: str,
        producer: Producer,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Retornar el valor cacheado o, en miss, el resultado de `producer()`.

        Raises:
            asyncio.TimeoutError: el producer excedió `producer_timeout`.
            Cualquier excepción del producer, sin modificar el cache.
        """
        key = self.generate_key(category, params)
        value = self._lookup(key)
        if value is not _MISSING:
            return value

        logger.debug("Cache miss %s → llamando producer", key)
        result = await asyncio.wait_for(producer(), timeout=self._producer_timeout)
        self.set(category, result, params)
        return result

    # ──────────────────────── Invalidación ──────────────────────────────

    def invalidate(self, category: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        key = self.generate_key(category, params)
        deleted = self._entries.pop(key, None) is not None
        if deleted:
            logger.debug("Cache INVALIDATED: %s", key)
        return deleted

    def invalidate_by_type(self, category: str) -> int:
        keys = [k for k, e in self._entries.items() if e.category == category]
        for key in keys:
            del self._entries[key]
        logger.info("Cache INVALIDATED TYPE: %s (%d entradas)", category, len(keys))
        return len(keys)

    def clear(self) -> int:
        size = len(self._entries)
        self._entries.clear()
        logger.info("Cache CLEARED: %d entradas eliminadas", size)
        return size

    def cleanup(self) -> int:
        """Eliminar todas las entradas vencidas. Retorna cuántas se borraron."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("Cache CLEANUP: %d entradas vencidas eliminadas", len(expired))
        return len(expired)

    # ──────────────────────── Warm-up ───────────────────────────────────

    async def preload(self, producers: Mapping[str, Producer]) -> int:
        """
        Precargar categorías comunes. Un producer que falla se loguea y
        se salta; el resto continúa. Retorna cuántas categorías quedaron
        cacheadas.
        """
        loaded = 0
        for category, producer in producers.items():
            try:
                await self.fetch_with_cache(category, producer)
                loaded += 1
            except Exception as e:
                logger.warning("Preload de '%s' falló: %s", category, e)
        logger.info("Cache preload: %d/%d categorías", loaded, len(producers))
        return loaded

    # ──────────────────────── Barrido periódico ─────────────────────────

    async def start(self) -> None:
        """Lanzar el task de barrido. Idempotente."""
        if self._sweep_task and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="cache-sweep")
        logger.info("Cache sweep iniciado (cada %.0fs)", self._cleanup_interval)

    async def stop(self) -> None:
        if self._sweep_task and not self._sweep_task.done():
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
        self._sweep_task = None

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._cleanup_interval)
            try:
                self.cleanup()
            except Exception:
                logger.error("Error en barrido del cache", exc_info=True)

    # ──────────────────────── Estadísticas ──────────────────────────────

    def __len__(self) -> int:
        return len(self._entries)

    def get_cache_entries(self) -> List[dict]:
        now = self._clock()
        entries = [
            {
                "key": e.key,
                "category": e.category,
                "age": round(now - e.created_at, 1),
                "ttl": round(max(0.0, e.expires_at - now), 1),
                "expired": e.is_expired(now),
            }
            for e in self._entries.values()
        ]
        return sorted(entries, key=lambda item: item["age"], reverse=True)

    def get_stats(self) -> dict:
        total = self._hits + self._misses
        hit_rate = round(self._hits / total * 100, 2) if total else 0.0
        return {
            "size": len(self._entries),
            "max_entries": self._max_entries,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": hit_rate,
            "api_calls_saved": self._api_calls_saved,
            "evictions": self._evictions,
            "entries": self.get_cache_entries(),
        }

    def log_cache_status(self) -> None:
        stats = self.get_stats()
        logger.info(
            "📊 Cache: %d entradas | hits=%d misses=%d | hit_rate=%.2f%% | "
            "llamadas ahorradas=%d | evicciones=%d",
            stats["size"], stats["hits"], stats["misses"], stats["hit_rate"],
            stats["api_calls_saved"], stats["evictions"],
        )
