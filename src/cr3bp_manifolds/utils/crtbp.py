"""
Circular Restricted Three-Body Problem (CR3BP) unit helpers.

This module provides the mass parameter of a primary pair and the
conversion from non-dimensional CR3BP time to seconds, used to report
orbital periods in physical units.

The non-dimensional units in the CR3BP are based on these conventions:
- Distance unit: Distance between the primary bodies
- Time unit: Inverse of the mean motion (1/n)
- Mass unit: Sum of the primary and secondary masses
"""

import numba
import numpy as np

from cr3bp_manifolds.config import FASTMATH
from cr3bp_manifolds.utils.constants import G, Constants


def mass_parameter(primary_mass, secondary_mass):
    """
    Calculate the mass parameter μ for the CR3BP.

    The mass parameter μ is defined as the ratio of the secondary mass
    to the total system mass: μ = m₂/(m₁ + m₂).

    Parameters
    ----------
    primary_mass : float
        Mass of the primary body (m₁) in kilograms
    secondary_mass : float
        Mass of the secondary body (m₂) in kilograms

    Returns
    -------
    float
        Mass parameter μ (dimensionless)

    Raises
    ------
    ValueError
        If either mass is not positive or the secondary is the heavier body.
    """
    if primary_mass <= 0 or secondary_mass <= 0:
        raise ValueError("Primary and secondary masses must be positive")
    if secondary_mass > primary_mass:
        raise ValueError("The secondary must not be heavier than the primary (mu <= 0.5)")
    return float(secondary_mass / (primary_mass + secondary_mass))


def system_mass_parameter(primary, secondary):
    """Mass parameter of a named primary pair, e.g. ``("earth", "moon")``."""
    return mass_parameter(Constants.get_mass(primary), Constants.get_mass(secondary))


@numba.njit(fastmath=FASTMATH, cache=True)
def _get_angular_velocity(primary_mass, secondary_mass, distance):
    # Kepler's third law: n^2 = G (m1 + m2) / a^3
    return np.sqrt(G * (primary_mass + secondary_mass) / distance**3)


def si_time(T_dimless, m1, m2, distance):
    """Convert time from dimensionless CR3BP time units to seconds."""
    return T_dimless / _get_angular_velocity(m1, m2, distance)
