"""
DipScore – Infrastructure Layer
=================================
Implementaciones concretas de interfaces.

Este módulo contiene:
- external/: Feeds upstream (Binance WebSocket)
- cache/: Cache TTL en memoria

REGLA DE DEPENDENCIA:
Esta capa implementa interfaces definidas en application/ports/.

Puede importar de:
- domain/ (entidades, value objects)
- application/ (ports)
- shared/ (config, logging)
"""
