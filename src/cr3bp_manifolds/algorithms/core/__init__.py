"""
Core mathematical functions for the Circular Restricted Three-Body Problem (CR3BP).

This package contains the integrals of motion and the libration point
locations used throughout the dynamics and manifold computations.
"""

from .lagrange_points import lagrange_point_locations, get_lagrange_point, collinear_gamma
from .energy import crtbp_energy, jacobi_constant, energy_to_jacobi

__all__ = [
    'lagrange_point_locations',
    'get_lagrange_point',
    'collinear_gamma',
    'crtbp_energy',
    'jacobi_constant',
    'energy_to_jacobi',
]
