"""
Periodic orbit value type and the oracle interface that supplies orbits.
"""

from .base import CatalogOracle, PeriodicOrbit, PeriodicOrbitOracle

__all__ = [
    'CatalogOracle',
    'PeriodicOrbit',
    'PeriodicOrbitOracle',
]
