"""
Energy computation functions for the Circular Restricted Three-Body Problem (CR3BP).

This module provides the integral of motion of the CR3BP in its two usual
normalisations, which the rest of the library uses as a conservation check
on propagated trajectories and manifold strands:
- Computing the energy (Hamiltonian) of a state
- Computing the Jacobi constant of a state (C = -2E)
"""

import numpy as np


def crtbp_energy(state, mu):
    """
    Compute the energy (Hamiltonian) of a state in the CR3BP.

    This function calculates the total energy of a given state in the CR3BP,
    which is a conserved quantity in the rotating frame and is related to
    the Jacobi constant by C = -2E.

    Parameters
    ----------
    state : array_like
        State vector [x, y, z, vx, vy, vz] in the rotating frame
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)

    Returns
    -------
    float
        The energy value (scalar)

    Notes
    -----
    The energy in the rotating frame consists of the kinetic energy plus
    the effective potential, which includes the gravitational potential and
    the centrifugal potential. The constant -mu(1-mu)/2 makes the energy of
    the triangular points exactly -3/2.
    """
    x, y, z, vx, vy, vz = np.asarray(state, dtype=np.float64)[:6]
    mu1 = 1.0 - mu
    mu2 = mu

    r1 = np.sqrt((x + mu2)**2 + y**2 + z**2)
    r2 = np.sqrt((x - mu1)**2 + y**2 + z**2)

    kin = 0.5 * (vx*vx + vy*vy + vz*vz)
    pot = -(mu1 / r1) - (mu2 / r2) - 0.5*(x*x + y*y) - 0.5*mu1*mu2
    return float(kin + pot)


def jacobi_constant(state, mu):
    """
    Jacobi constant C = -2E of a state in the CR3BP.

    Parameters
    ----------
    state : array_like
        State vector [x, y, z, vx, vy, vz] in the rotating frame
    mu : float
        Mass parameter of the CR3BP system

    Returns
    -------
    float
        The Jacobi constant
    """
    return energy_to_jacobi(crtbp_energy(state, mu))


def energy_to_jacobi(energy):
    """
    Convert energy to Jacobi constant.

    The Jacobi constant C is related to the energy E by C = -2E.
    """
    return -2 * energy
