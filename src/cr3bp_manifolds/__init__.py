"""
cr3bp_manifolds
===============

Invariant manifolds of periodic orbits in the Circular Restricted Three-Body
Problem (CR3BP).

Typical use::

    from cr3bp_manifolds import PeriodicOrbit, compute_manifold

    orbit = PeriodicOrbit(mu, initial_state, period, family="lyapunov")
    bundle = compute_manifold(orbit, stable=False, eps=-1e-7)

Logging is left to the application; see :mod:`cr3bp_manifolds.logging_config`.
"""

from cr3bp_manifolds.algorithms.core import get_lagrange_point, jacobi_constant
from cr3bp_manifolds.algorithms.dynamics import (
    AdaptiveIntegrator,
    CR3BPModel,
    Trajectory,
    monodromy_matrix,
    propagate_orbit,
    propagate_with_stm,
)
from cr3bp_manifolds.algorithms.manifolds import (
    ManifoldBundle,
    PerturbedInitialCondition,
    StrandFailure,
    compute_manifold,
    converge,
    diverge,
    propagate_manifold,
)
from cr3bp_manifolds.algorithms.orbits import CatalogOracle, PeriodicOrbit, PeriodicOrbitOracle
from cr3bp_manifolds.utils import (
    EARTH_MOON_MU,
    CR3BPError,
    DegenerateOrbitError,
    DegenerateStateError,
    IntegrationFailure,
)

__version__ = "0.1.0"

__all__ = [
    'get_lagrange_point',
    'jacobi_constant',
    'AdaptiveIntegrator',
    'CR3BPModel',
    'Trajectory',
    'monodromy_matrix',
    'propagate_orbit',
    'propagate_with_stm',
    'ManifoldBundle',
    'PerturbedInitialCondition',
    'StrandFailure',
    'compute_manifold',
    'converge',
    'diverge',
    'propagate_manifold',
    'CatalogOracle',
    'PeriodicOrbit',
    'PeriodicOrbitOracle',
    'EARTH_MOON_MU',
    'CR3BPError',
    'DegenerateOrbitError',
    'DegenerateStateError',
    'IntegrationFailure',
]
