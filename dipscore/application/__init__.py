"""
DipScore – Application Layer
==============================
Interfaces hacia infraestructura (ports).

REGLA DE DEPENDENCIA:
Esta capa puede importar de domain/.
NO puede importar de infrastructure/ ni presentation/.
"""
