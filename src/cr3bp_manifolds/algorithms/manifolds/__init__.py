"""
Invariant manifolds of periodic orbits: eigenstructure, perturbation and
ensemble propagation.
"""

from .analysis import (
    Eigenpair,
    PerturbedInitialCondition,
    converge,
    diverge,
    eigenvalue_decomposition,
    libration_stability_analysis,
    stable_eigenpair,
    unstable_eigenpair,
)
from .manifold import (
    ManifoldBundle,
    StrandFailure,
    compute_manifold,
    perturb_orbit,
    propagate_manifold,
    sample_orbit,
)

__all__ = [
    'Eigenpair',
    'PerturbedInitialCondition',
    'converge',
    'diverge',
    'eigenvalue_decomposition',
    'libration_stability_analysis',
    'stable_eigenpair',
    'unstable_eigenpair',
    'ManifoldBundle',
    'StrandFailure',
    'compute_manifold',
    'perturb_orbit',
    'propagate_manifold',
    'sample_orbit',
]
