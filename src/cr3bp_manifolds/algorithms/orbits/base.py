"""
Periodic orbits in the Circular Restricted Three-Body Problem.

This module provides the value type describing a periodic orbit (an initial
state on the orbit, its period and the mass parameter it belongs to) and the
oracle interface through which the manifold machinery obtains such orbits.
Finding periodic orbits (differential correction, continuation) is the job
of an oracle; the library itself ships a tabulated :class:`CatalogOracle`
for orbits that are already known.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np

from cr3bp_manifolds.algorithms.core.energy import crtbp_energy, energy_to_jacobi
from cr3bp_manifolds.algorithms.dynamics.equations import CR3BPModel
from cr3bp_manifolds.algorithms.dynamics.propagator import AdaptiveIntegrator
from cr3bp_manifolds.algorithms.dynamics.stm import monodromy_matrix, stability_indices

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PeriodicOrbit:
    """
    Initial condition of a periodic orbit of the CR3BP.

    Attributes
    ----------
    mu : float
        Mass parameter of the CR3BP system
    initial_state : ndarray
        State vector [x, y, z, vx, vy, vz] on the orbit (read-only)
    period : float
        Orbital period, positive
    family : str, optional
        Descriptive family name, e.g. ``"lyapunov"`` or ``"halo"``
    libration_point : int, optional
        Libration point index (1-5) the orbit is associated with
    amplitude : float, optional
        Family amplitude parameter, as understood by the oracle that produced it
    """

    mu: float
    initial_state: np.ndarray
    period: float
    family: Optional[str] = None
    libration_point: Optional[int] = None
    amplitude: Optional[float] = None

    def __post_init__(self):
        state = np.array(self.initial_state, dtype=np.float64)
        if state.shape != (6,):
            raise ValueError(f"initial_state must have shape (6,), got {state.shape}")
        if not np.all(np.isfinite(state)):
            raise ValueError("initial_state must be finite")
        if not (np.isfinite(self.period) and self.period > 0):
            raise ValueError(f"Period must be positive, got {self.period}")
        if not 0 < self.mu <= 0.5:
            raise ValueError(f"Mass parameter must lie in (0, 0.5], got {self.mu}")
        state.setflags(write=False)
        object.__setattr__(self, "initial_state", state)
        object.__setattr__(self, "mu", float(self.mu))
        object.__setattr__(self, "period", float(self.period))

    @property
    def energy(self):
        """Compute the energy (Hamiltonian) value of the orbit."""
        return crtbp_energy(self.initial_state, self.mu)

    @property
    def jacobi_constant(self):
        """Compute the Jacobi constant of the orbit."""
        return energy_to_jacobi(self.energy)

    @property
    def model(self):
        """Non-variational dynamics model of the orbit's system."""
        return CR3BPModel(self.mu)

    def propagate(self, steps=1000, saveat=None, periods=1.0, integrator=None):
        """
        Propagate the orbit.

        Parameters
        ----------
        steps : int, optional
            Number of uniformly spaced samples. Default is 1000. Ignored when
            ``saveat`` is given.
        saveat : float or array_like, optional
            Sampling period or explicit sample times
        periods : float, optional
            Length of the propagation in orbital periods; negative values
            propagate backwards. Default is one period.
        integrator : Integrator, optional
            Defaults to DOP853 at the trajectory tolerances

        Returns
        -------
        Trajectory
        """
        if integrator is None:
            integrator = AdaptiveIntegrator()
        if saveat is not None:
            steps = None
        return integrator.integrate(
            self.model, self.initial_state, (0.0, periods * self.period),
            steps=steps, saveat=saveat,
        )

    def monodromy(self, integrator=None):
        """Monodromy matrix Phi(T, 0) of the orbit."""
        return monodromy_matrix(self.initial_state, self.mu, self.period, integrator=integrator)

    def compute_stability(self, integrator=None):
        """
        Compute stability information for the orbit.

        Returns
        -------
        tuple
            (stability_indices, eigenvalues) from the monodromy matrix
        """
        return stability_indices(self.monodromy(integrator=integrator))

    @property
    def is_stable(self):
        """True if all stability indices have magnitude <= 1 (within tolerance)."""
        indices, _ = self.compute_stability()
        return bool(np.all(np.abs(indices) <= 1.0 + 1e-6))

    def periodicity_error(self, integrator=None):
        """
        Distance between the initial state and the state one period later.

        A well-converged orbit returns a value of the order of the
        integration tolerance.
        """
        if integrator is None:
            integrator = AdaptiveIntegrator()
        trajectory = integrator.integrate(self.model, self.initial_state, (0.0, self.period), steps=2)
        return float(np.linalg.norm(trajectory.final_state - self.initial_state))

    def __repr__(self):
        return (f"PeriodicOrbit(mu={self.mu!r}, family={self.family!r}, "
                f"libration_point={self.libration_point!r}, period={self.period:.6f}, "
                f"initial_state={np.array2string(self.initial_state, precision=6)})")


class PeriodicOrbitOracle(ABC):
    """
    Source of periodic orbits.

    Orbits returned by an oracle are trusted: callers do not verify their
    periodicity.
    """

    @abstractmethod
    def find_periodic_orbit(self, mu, family, amplitude=None) -> PeriodicOrbit:
        """
        Return a periodic orbit of ``family`` for the mass parameter ``mu``.

        Parameters
        ----------
        mu : float
            Mass parameter of the CR3BP system
        family : str
            Family name understood by the oracle
        amplitude : float, optional
            Family amplitude parameter

        Raises
        ------
        LookupError
            If the oracle cannot provide such an orbit.
        """


class CatalogOracle(PeriodicOrbitOracle):
    """
    Oracle over a table of known periodic orbits.

    Parameters
    ----------
    orbits : iterable of PeriodicOrbit
        Orbits to serve. Each must carry a ``family``.
    mu_rtol : float, optional
        Relative tolerance when matching mass parameters.
    """

    def __init__(self, orbits, mu_rtol=1e-9):
        self._orbits = tuple(orbits)
        for orbit in self._orbits:
            if not isinstance(orbit, PeriodicOrbit):
                raise TypeError(f"Expected PeriodicOrbit, got {type(orbit).__name__}")
            if orbit.family is None:
                raise ValueError("Catalogued orbits must name their family")
        self.mu_rtol = mu_rtol

    def __len__(self):
        return len(self._orbits)

    @property
    def families(self):
        return sorted({orbit.family.lower() for orbit in self._orbits})

    def find_periodic_orbit(self, mu, family, amplitude=None):
        candidates = [
            orbit for orbit in self._orbits
            if orbit.family.lower() == family.lower()
            and math.isclose(orbit.mu, mu, rel_tol=self.mu_rtol)
        ]
        if not candidates:
            raise LookupError(f"No '{family}' orbit catalogued for mu={mu}")
        if amplitude is None:
            return candidates[0]

        with_amplitude = [orbit for orbit in candidates if orbit.amplitude is not None]
        if not with_amplitude:
            raise LookupError(f"No '{family}' orbit with a known amplitude for mu={mu}")
        best = min(with_amplitude, key=lambda orbit: abs(orbit.amplitude - amplitude))
        logger.debug(f"Catalog lookup {family} A={amplitude:g} -> A={best.amplitude:g}")
        return best
