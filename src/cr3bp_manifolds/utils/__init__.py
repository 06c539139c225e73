"""
Utilities for the CR3BP manifold library: physical constants, unit helpers
and the exception hierarchy.
"""

from .constants import Constants, EARTH_MOON_MU
from .crtbp import (
    mass_parameter,
    si_time,
    system_mass_parameter,
)
from .exceptions import (
    CR3BPError,
    DegenerateOrbitError,
    DegenerateStateError,
    IntegrationFailure,
)

__all__ = [
    'Constants',
    'EARTH_MOON_MU',
    'mass_parameter',
    'system_mass_parameter',
    'si_time',
    'CR3BPError',
    'DegenerateOrbitError',
    'DegenerateStateError',
    'IntegrationFailure',
]
