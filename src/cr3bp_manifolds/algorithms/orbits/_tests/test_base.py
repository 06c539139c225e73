import numpy as np
import pytest

from cr3bp_manifolds.algorithms.core import get_lagrange_point, jacobi_constant
from cr3bp_manifolds.algorithms.orbits.base import CatalogOracle, PeriodicOrbit, PeriodicOrbitOracle


def test_lyapunov_fixture_is_periodic(lyapunov_orbit):
    assert lyapunov_orbit.family == "lyapunov"
    assert lyapunov_orbit.initial_state[2] == 0.0 and lyapunov_orbit.initial_state[5] == 0.0
    assert 2.5 < lyapunov_orbit.period < 3.0

    traj = lyapunov_orbit.propagate(steps=2)
    np.testing.assert_allclose(traj.final_state, lyapunov_orbit.initial_state, atol=1e-6)
    assert lyapunov_orbit.periodicity_error() < 1e-6


def test_halo_fixture_is_periodic(halo_orbit):
    assert halo_orbit.family == "halo"
    assert abs(halo_orbit.initial_state[2]) > 0.01

    traj = halo_orbit.propagate(steps=200)
    np.testing.assert_allclose(traj.final_state, halo_orbit.initial_state, atol=1e-6)
    # Genuinely three-dimensional
    assert np.ptp(traj.cartesian[:, 2]) > 0.01


def test_orbits_surround_l1(lyapunov_orbit, halo_orbit, mu):
    x_l1 = get_lagrange_point(mu, 1)[0]
    for orbit in (lyapunov_orbit, halo_orbit):
        xs = orbit.propagate(steps=100).cartesian[:, 0]
        assert xs.min() < x_l1 < xs.max()


def test_jacobi_constant_along_orbit(lyapunov_orbit):
    traj = lyapunov_orbit.propagate(steps=20)
    for state in traj.states:
        assert jacobi_constant(state, lyapunov_orbit.mu) == pytest.approx(
            lyapunov_orbit.jacobi_constant, abs=1e-10)


def test_backward_propagation_over_one_period(lyapunov_orbit):
    traj = lyapunov_orbit.propagate(steps=2, periods=-1.0)
    assert traj.final_time == pytest.approx(-lyapunov_orbit.period)
    np.testing.assert_allclose(traj.final_state, lyapunov_orbit.initial_state, atol=1e-6)


def test_orbit_is_unstable(lyapunov_orbit):
    (nu1, _), _ = lyapunov_orbit.compute_stability()
    assert nu1 > 1
    assert not lyapunov_orbit.is_stable


def test_periodic_orbit_validation(mu):
    state = np.array([0.84, 0, 0, 0, -0.05, 0])
    with pytest.raises(ValueError):
        PeriodicOrbit(mu, state[:5], 2.7)
    with pytest.raises(ValueError):
        PeriodicOrbit(mu, state, 0.0)
    with pytest.raises(ValueError):
        PeriodicOrbit(mu, state, np.inf)
    with pytest.raises(ValueError):
        PeriodicOrbit(0.7, state, 2.7)

    orbit = PeriodicOrbit(mu, state, 2.7)
    with pytest.raises(ValueError):
        orbit.initial_state[0] = 1.0
    state[0] = 0.0
    assert orbit.initial_state[0] == 0.84


def test_catalog_oracle_lookup(mu):
    small = PeriodicOrbit(mu, [0.84, 0, 0, 0, -0.05, 0], 2.69, family="lyapunov", amplitude=0.003)
    large = PeriodicOrbit(mu, [0.85, 0, 0, 0, -0.1, 0], 2.75, family="lyapunov", amplitude=0.013)
    halo = PeriodicOrbit(mu, [0.82, 0, 0.03, 0, 0.14, 0], 2.77, family="halo")
    other = PeriodicOrbit(0.1, [0.6, 0, 0, 0, -0.1, 0], 3.0, family="lyapunov", amplitude=0.01)

    oracle = CatalogOracle([small, large, halo, other])
    assert isinstance(oracle, PeriodicOrbitOracle)
    assert len(oracle) == 4
    assert oracle.families == ["halo", "lyapunov"]

    assert oracle.find_periodic_orbit(mu, "lyapunov", amplitude=0.004) is small
    assert oracle.find_periodic_orbit(mu, "Lyapunov", amplitude=0.01) is large
    assert oracle.find_periodic_orbit(mu, "lyapunov") is small
    assert oracle.find_periodic_orbit(mu, "halo") is halo
    assert oracle.find_periodic_orbit(0.1, "lyapunov", amplitude=0.5) is other

    with pytest.raises(LookupError):
        oracle.find_periodic_orbit(mu, "vertical")
    with pytest.raises(LookupError):
        oracle.find_periodic_orbit(0.3, "lyapunov")
    with pytest.raises(LookupError):
        oracle.find_periodic_orbit(mu, "halo", amplitude=0.1)


def test_catalog_oracle_rejects_bad_entries(mu):
    with pytest.raises(TypeError):
        CatalogOracle([np.zeros(6)])
    with pytest.raises(ValueError):
        CatalogOracle([PeriodicOrbit(mu, [0.84, 0, 0, 0, -0.05, 0], 2.69)])


def test_shooting_oracle_rejects_unknown_family(oracle, mu):
    with pytest.raises(LookupError):
        oracle.find_periodic_orbit(mu, "butterfly")
