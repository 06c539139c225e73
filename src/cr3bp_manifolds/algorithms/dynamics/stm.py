"""
State Transition Matrix (STM) computations for the CR3BP.

This module provides functionality for computing and analyzing state transition
matrices in the Circular Restricted Three-Body Problem (CR3BP). The state
transition matrix maps how small perturbations in initial conditions evolve
over time, which is crucial for:

1. Stability analysis of periodic orbits
2. Transporting eigendirections along an orbit
3. Constructing invariant manifolds

The STM is integrated together with the state through the variational
equations of :mod:`~cr3bp_manifolds.algorithms.dynamics.equations`.
"""

import logging

import numpy as np

from cr3bp_manifolds.config import DEFAULT_METHOD, STM_ATOL, STM_RTOL

from .equations import CR3BPModel, augment, split_augmented
from .propagator import AdaptiveIntegrator

logger = logging.getLogger(__name__)


def _variational_model(mu, model):
    if model is None:
        return CR3BPModel(mu, stm=True)
    if model.mu != mu:
        raise ValueError(f"Model mass parameter {model.mu} does not match mu={mu}")
    return model.with_stm()


def compute_stm(x0, mu, tf, steps=None, saveat=None, rtol=STM_RTOL, atol=STM_ATOL,
                method=DEFAULT_METHOD, model=None, integrator=None):
    """
    Compute the State Transition Matrix (STM) for the CR3BP.

    This function integrates the combined CR3BP equations of motion and
    variational equations from t=0 to t=tf to obtain the state transition
    matrix Phi(tf, 0).

    Parameters
    ----------
    x0 : array_like
        Initial state vector [x, y, z, vx, vy, vz] in the rotating frame
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)
    tf : float
        Final integration time; negative for backward integration
    steps, saveat : optional
        Sampling request forwarded to the integrator
    rtol, atol : float, optional
        Integrator tolerances, used when no integrator is given
    method : str, optional
        SciPy method, used when no integrator is given
    model : CR3BPModel, optional
        Dynamics model to use (its variational variant is integrated)
    integrator : Integrator, optional
        Integrator to use instead of a fresh AdaptiveIntegrator

    Returns
    -------
    trajectory : Trajectory
        Augmented samples of the state and the STM
    phi_tf : ndarray
        The 6x6 state transition matrix Phi(tf, 0) at the final time

    Notes
    -----
    The state transition matrix Phi(t, t0) maps perturbations in the initial
    state to perturbations at time t according to dx(t) = Phi(t, t0) dx(t0).
    It is initialized as the 6x6 identity matrix at t=0.
    """
    model = _variational_model(mu, model)
    if integrator is None:
        integrator = AdaptiveIntegrator(method=method, rtol=rtol, atol=atol)

    trajectory = integrator.integrate(model, augment(x0), (0.0, tf), steps=steps, saveat=saveat)
    _, phi_tf = split_augmented(trajectory.states[-1])
    return trajectory, phi_tf


def monodromy_matrix(x0, mu, period, model=None, integrator=None):
    """
    Compute the monodromy matrix for a periodic orbit.

    The monodromy matrix is the state transition matrix evaluated over one
    orbital period of a periodic orbit. Its eigenvalues (the Floquet multipliers)
    determine the stability properties of the orbit.

    Parameters
    ----------
    x0 : array_like
        Initial state vector [x, y, z, vx, vy, vz] representing a point on the periodic orbit
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)
    period : float
        Period of the orbit
    model : CR3BPModel, optional
        Dynamics model; built from ``mu`` when omitted
    integrator : Integrator, optional
        Defaults to DOP853 at the STM tolerances

    Returns
    -------
    M : ndarray
        6x6 monodromy matrix

    Notes
    -----
    Periodicity of ``x0`` is not checked; integration failures propagate.
    """
    if not period > 0:
        raise ValueError(f"Period must be positive, got {period}")
    _, M = compute_stm(x0, mu, period, model=model, integrator=integrator)
    logger.debug(f"Monodromy matrix over T={period:.12g}, det={np.linalg.det(M):.3e}")
    return M


def stability_indices(monodromy):
    """
    Compute stability indices from the monodromy matrix eigenvalues.

    The two eigenvalues closest to 1 (the trivial pair of the autonomous
    Hamiltonian flow) are discarded; the remaining four are grouped into
    reciprocal pairs and nu = (lambda + 1/lambda) / 2 is returned for each.
    |nu| > 1 indicates a hyperbolic (unstable) pair.

    Parameters
    ----------
    monodromy : ndarray
        6x6 monodromy matrix

    Returns
    -------
    nu : tuple of float
        Stability indices, the dominant pair first
    eigenvalues : ndarray
        The eigenvalues of the monodromy matrix sorted by decreasing magnitude
    """
    eigs = np.linalg.eigvals(np.asarray(monodromy, dtype=np.float64))

    order = np.argsort(np.abs(eigs - 1.0))
    rest = sorted(eigs[order[2:]], key=abs, reverse=True)

    first = rest.pop(0)
    partner = min(range(len(rest)), key=lambda j: abs(rest[j] * first - 1.0))
    rest.pop(partner)
    second = rest[0]

    nu1 = float(np.real(0.5 * (first + 1 / first)))
    nu2 = float(np.real(0.5 * (second + 1 / second)))

    return (nu1, nu2), np.array(sorted(eigs, key=abs, reverse=True))
