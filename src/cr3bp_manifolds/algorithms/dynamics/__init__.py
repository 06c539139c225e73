"""
Dynamics of the CR3BP: equations of motion, propagation and state
transition matrices.
"""

from .equations import (
    CR3BPModel,
    DynamicalSystem,
    augment,
    crtbp_accel,
    jacobian_crtbp,
    split_augmented,
    variational_equations,
)
from .propagator import (
    AdaptiveIntegrator,
    Integrator,
    Trajectory,
    propagate_orbit,
    propagate_with_stm,
)
from .stm import compute_stm, monodromy_matrix, stability_indices

__all__ = [
    'CR3BPModel',
    'DynamicalSystem',
    'augment',
    'crtbp_accel',
    'jacobian_crtbp',
    'split_augmented',
    'variational_equations',
    'AdaptiveIntegrator',
    'Integrator',
    'Trajectory',
    'propagate_orbit',
    'propagate_with_stm',
    'compute_stm',
    'monodromy_matrix',
    'stability_indices',
]
