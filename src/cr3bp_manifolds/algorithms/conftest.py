"""
Shared fixtures for the algorithm tests.

Periodic orbits are produced by a small symmetric single-shooting oracle
(linear-theory or tabulated seed, Newton iterations on the half-period
x-axis crossing) so that the tests never depend on hard-coded converged
initial conditions.
"""

import numpy as np
import pytest
from scipy.integrate import solve_ivp

from cr3bp_manifolds.algorithms.core.lagrange_points import collinear_gamma, get_lagrange_point
from cr3bp_manifolds.algorithms.dynamics.equations import augment, crtbp_accel, variational_equations
from cr3bp_manifolds.algorithms.dynamics.propagator import AdaptiveIntegrator
from cr3bp_manifolds.algorithms.dynamics.stm import monodromy_matrix
from cr3bp_manifolds.algorithms.orbits.base import PeriodicOrbit, PeriodicOrbitOracle
from cr3bp_manifolds.utils.constants import EARTH_MOON_MU

# Richardson third-order guess for the Earth-Moon L1 southern halo, Az = 0.2 gamma
HALO_SEED = np.array([0.823451685541845, 0, 0.032462441320139, 0, 0.142149195738938, 0])


class ShootingOracle(PeriodicOrbitOracle):
    """
    Symmetric single-shooting oracle for L1 Lyapunov and halo orbits.

    The orbit starts on the x-z plane with velocity along y; Newton
    iterations on the free components drive the target velocity components
    to zero at the next y = 0 crossing, which is then the half period.
    """

    def __init__(self, tol=1e-11, max_iter=50, rtol=3e-14, atol=1e-14):
        self.tol = tol
        self.max_iter = max_iter
        self.rtol = rtol
        self.atol = atol

    def find_periodic_orbit(self, mu, family, amplitude=None):
        family = family.lower()
        if family == "lyapunov":
            if amplitude is None:
                amplitude = 0.007
            guess = self.lyapunov_guess(mu, amplitude)
            free, targets = [4], [3]
        elif family == "halo":
            guess = HALO_SEED.copy()
            if amplitude is not None:
                guess[2] = amplitude
            free, targets = [0, 4], [3, 5]
        else:
            raise LookupError(f"Unsupported family '{family}'")

        state, half_period = self.correct(guess, mu, free, targets)
        return PeriodicOrbit(mu, state, 2 * half_period, family=family,
                             libration_point=1, amplitude=amplitude)

    @staticmethod
    def lyapunov_guess(mu, amplitude):
        """Linearised in-plane oscillation about L1, started on the far side of the point."""
        gamma = collinear_gamma(mu, 1)
        c2 = (mu + (1 - mu) * gamma**3 / (1 - gamma)**3) / gamma**3
        nu = np.sqrt((2 - c2 + np.sqrt(9 * c2**2 - 8 * c2)) / 2)
        k = (nu**2 + 1 + 2 * c2) / (2 * nu)
        x_l1 = get_lagrange_point(mu, 1)[0]
        return np.array([x_l1 + amplitude, 0, 0, 0, -k * nu * amplitude, 0], dtype=np.float64)

    def half_period_crossing(self, x0, mu):
        def crossing(t, y):
            return y[1]

        crossing.terminal = True
        crossing.direction = -np.sign(x0[4])

        sol = solve_ivp(lambda t, y: variational_equations(t, y, mu), (0.0, 10.0), augment(x0),
                        method="DOP853", rtol=self.rtol, atol=self.atol, events=crossing)
        if sol.t_events[0].size == 0:
            raise RuntimeError("No y = 0 crossing found")
        return sol.t_events[0][0], sol.y_events[0][0]

    def correct(self, guess, mu, free, targets):
        x0 = np.array(guess, dtype=np.float64)
        for _ in range(self.max_iter):
            t1, y1 = self.half_period_crossing(x0, mu)
            state1 = y1[:6]
            phi = y1[6:].reshape(6, 6)

            residual = state1[targets]
            if np.max(np.abs(residual)) < self.tol:
                return x0, t1

            # Variation of the crossing time removed through y(t1) = 0
            fdot = crtbp_accel(state1, mu)
            J = phi[np.ix_(targets, free)] - np.outer(fdot[targets], phi[1, free]) / state1[4]
            x0[free] += np.linalg.solve(J, -residual)

        raise RuntimeError(f"Shooting did not converge in {self.max_iter} iterations")


@pytest.fixture(scope="session")
def mu():
    return EARTH_MOON_MU


@pytest.fixture(scope="session")
def oracle():
    return ShootingOracle()


@pytest.fixture(scope="session")
def lyapunov_orbit(oracle, mu):
    return oracle.find_periodic_orbit(mu, "lyapunov", amplitude=0.007)


@pytest.fixture(scope="session")
def halo_orbit(oracle, mu):
    return oracle.find_periodic_orbit(mu, "halo")


@pytest.fixture(scope="session")
def tight_integrator():
    return AdaptiveIntegrator(rtol=3e-14, atol=1e-14)


@pytest.fixture(scope="session")
def lyapunov_monodromy(lyapunov_orbit, tight_integrator):
    return monodromy_matrix(lyapunov_orbit.initial_state, lyapunov_orbit.mu,
                            lyapunov_orbit.period, integrator=tight_integrator)


@pytest.fixture(scope="session")
def halo_monodromy(halo_orbit, tight_integrator):
    return monodromy_matrix(halo_orbit.initial_state, halo_orbit.mu,
                            halo_orbit.period, integrator=tight_integrator)
