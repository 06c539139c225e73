import logging

import numpy as np
import pytest

from cr3bp_manifolds.algorithms.core import jacobi_constant
from cr3bp_manifolds.algorithms.dynamics.equations import CR3BPModel
from cr3bp_manifolds.algorithms.dynamics.propagator import AdaptiveIntegrator, Trajectory
from cr3bp_manifolds.algorithms.manifolds.manifold import (
    ManifoldBundle,
    StrandFailure,
    compute_manifold,
    perturb_orbit,
    propagate_manifold,
    sample_orbit,
)


def test_sample_orbit(lyapunov_orbit):
    samples = sample_orbit(lyapunov_orbit, n_samples=5)

    assert len(samples) == 5
    assert samples.is_augmented
    np.testing.assert_allclose(samples.times, np.linspace(0, lyapunov_orbit.period, 5))
    np.testing.assert_array_equal(samples.stms[0], np.eye(6))
    np.testing.assert_array_equal(samples.cartesian[0], lyapunov_orbit.initial_state)
    np.testing.assert_allclose(samples.cartesian[-1], lyapunov_orbit.initial_state, atol=1e-6)


def test_sample_orbit_with_saveat(lyapunov_orbit):
    T = lyapunov_orbit.period
    samples = sample_orbit(lyapunov_orbit, saveat=T / 10)
    assert len(samples) == 11
    assert samples.final_time == T


def test_perturb_orbit_unstable(lyapunov_orbit):
    eps = 1e-6
    samples = sample_orbit(lyapunov_orbit, n_samples=4)
    perturbed = perturb_orbit(lyapunov_orbit, eps=eps, n_samples=4)

    assert len(perturbed) == 4
    for p, source in zip(perturbed, samples.cartesian):
        assert p.is_unstable
        np.testing.assert_array_equal(p.source, source)
        assert np.linalg.norm(p.direction[:3]) == pytest.approx(1.0)
        assert 0.99 * eps <= p.offset < 100 * eps

    # Same eigenpair for every sample
    assert len({p.eigenvalue for p in perturbed}) == 1


def test_perturb_orbit_stable(lyapunov_orbit):
    unstable = perturb_orbit(lyapunov_orbit, n_samples=3)
    stable = perturb_orbit(lyapunov_orbit, stable=True, n_samples=3)
    assert all(not p.is_unstable for p in stable)
    assert abs(unstable[0].eigenvalue * stable[0].eigenvalue - 1) < 1e-3


def test_transported_direction_is_invariant(lyapunov_orbit):
    # Phi(t) v is an eigenvector of the monodromy matrix based at the sample point
    samples = sample_orbit(lyapunov_orbit, n_samples=3)
    perturbed = perturb_orbit(lyapunov_orbit, n_samples=3)
    M = samples.final_stm
    phi = samples.stms[1]
    M_t = phi @ M @ np.linalg.inv(phi)

    d = perturbed[1].direction
    lam = perturbed[1].eigenvalue
    np.testing.assert_allclose(M_t @ d, lam * d, rtol=1e-4, atol=1e-4 * abs(lam))


def test_perturb_orbit_partial_period(lyapunov_orbit):
    T = lyapunov_orbit.period
    full = perturb_orbit(lyapunov_orbit, n_samples=3)
    partial = perturb_orbit(lyapunov_orbit, saveat=[0.0, 0.3 * T])
    assert len(partial) == 2
    assert partial[0].eigenvalue == pytest.approx(full[0].eigenvalue, rel=1e-5)


def test_unstable_manifold_runs_forward(lyapunov_orbit):
    T = lyapunov_orbit.period
    bundle = compute_manifold(lyapunov_orbit, n_samples=3, periods=0.5, steps=10)

    assert isinstance(bundle, ManifoldBundle)
    assert bundle.direction == 1
    assert bundle.time_span == pytest.approx(0.5 * T)
    assert bundle.success_count == bundle.attempt_count == 3
    for traj in bundle:
        assert len(traj) == 10
        assert traj.times[0] == 0.0
        assert traj.final_time == pytest.approx(0.5 * T)


def test_stable_manifold_runs_backward(lyapunov_orbit):
    T = lyapunov_orbit.period
    bundle = compute_manifold(lyapunov_orbit, stable=True, n_samples=2)

    assert bundle.direction == -1
    assert bundle.time_span == pytest.approx(2.1 * T)
    for traj in bundle:
        assert np.all(np.diff(traj.times) < 0)
        assert traj.final_time == pytest.approx(-2.1 * T)


def test_default_unstable_span(lyapunov_orbit):
    bundle = compute_manifold(lyapunov_orbit, n_samples=2, strand_saveat=0.1)
    assert bundle.time_span == pytest.approx(2.0 * lyapunov_orbit.period)


def test_strands_depart_from_orbit(lyapunov_orbit):
    eps = 1e-6
    x0 = lyapunov_orbit.initial_state
    for stable in (False, True):
        bundle = compute_manifold(lyapunov_orbit, stable=stable, eps=eps, n_samples=2, periods=1.0)
        # After one period the orbit is back at x0; the strand is not
        departure = np.linalg.norm(bundle.strands[0].final_state[:3] - x0[:3])
        assert departure > 100 * eps


def test_strands_conserve_jacobi_constant(lyapunov_orbit):
    C = lyapunov_orbit.jacobi_constant
    bundle = compute_manifold(lyapunov_orbit, n_samples=3, periods=1.0, steps=20)
    for traj in bundle:
        for state in traj.states:
            assert jacobi_constant(state, lyapunov_orbit.mu) == pytest.approx(C, abs=1e-5)


def test_halo_manifold(halo_orbit):
    bundle = compute_manifold(halo_orbit, eps=-1e-7, n_samples=3, periods=0.5)
    assert bundle.success_rate == 1.0
    for traj in bundle:
        assert np.ptp(traj.cartesian[:, 2]) > 0


def test_results_independent_of_worker_count(lyapunov_orbit):
    serial = compute_manifold(lyapunov_orbit, n_samples=4, periods=0.5, n_workers=1)
    parallel = compute_manifold(lyapunov_orbit, n_samples=4, periods=0.5, n_workers=4)
    for a, b in zip(serial.strands, parallel.strands):
        np.testing.assert_array_equal(a.times, b.times)
        np.testing.assert_array_equal(a.states, b.states)


def test_partial_failures_are_isolated(mu, caplog):
    model = CR3BPModel(mu)
    good = np.array([0.843995693043320, 0.0, 0.0, 0.0, -0.0565838306397683, 0.0])
    at_moon = np.array([1 - mu, 0.0, 0.0, 0.0, 0.0, 0.0])
    falling = np.array([1 - mu - 1e-3, 0.0, 0.0, 0.0, 0.0, 0.0])

    with caplog.at_level(logging.INFO):
        bundle = propagate_manifold([good, at_moon, falling], model, 1.0, n_workers=3)

    assert isinstance(bundle.strands[0], Trajectory)
    assert bundle.strands[0].final_time == pytest.approx(1.0)

    rejected, crashed = bundle.strands[1], bundle.strands[2]
    assert isinstance(rejected, StrandFailure) and rejected.index == 1
    assert rejected.t_reached is None
    np.testing.assert_array_equal(rejected.initial_state, at_moon)

    assert isinstance(crashed, StrandFailure) and crashed.index == 2
    # Stopped by the collision check during the fall, not by the step budget
    assert 0.0 < crashed.t_reached < 1e-3
    assert "singular" in crashed.reason
    assert crashed.last_state.shape == (6,)

    assert bundle.success_count == 1 and bundle.failure_count == 2
    assert bundle.success_rate == pytest.approx(1 / 3)
    assert len(bundle) == 1
    assert list(bundle) == bundle.trajectories
    assert [f.index for f in bundle.failures] == [1, 2]
    assert "Strand 1 failed" in caplog.text
    assert "Propagating 3 manifold strands over t in [0, 1] on 3 workers" in caplog.text
    assert "Success rate: 1/3 strands (33.3%)" in caplog.text


def test_collision_with_default_model_fails_fast(mu):
    falling = np.array([1 - mu - 1e-3, 0.0, 0.0, 0.0, 0.0, 0.0])
    bundle = propagate_manifold([falling], CR3BPModel(mu), 1.0)

    failure = bundle.strands[0]
    assert isinstance(failure, StrandFailure)
    assert "Exceeded" not in failure.reason
    assert np.linalg.norm(failure.last_state[:3] - np.array([1 - mu, 0, 0])) < 1e-3


def test_bundle_sequence_protocol(mu):
    good = np.array([0.843995693043320, 0.0, 0.0, 0.0, -0.0565838306397683, 0.0])
    at_moon = np.array([1 - mu, 0.0, 0.0, 0.0, 0.0, 0.0])
    bundle = propagate_manifold([at_moon, good], CR3BPModel(mu), 0.5, steps=3)

    assert len(bundle) == len(list(bundle)) == 1
    assert list(bundle)[-1] is bundle.strands[1]
    assert isinstance(bundle.strands[0], StrandFailure)
    with pytest.raises(TypeError):
        bundle[0]


def test_value_types_compare_by_identity(mu):
    state = np.array([0.843995693043320, 0.0, 0.0, 0.0, -0.0565838306397683, 0.0])
    bundle = propagate_manifold([state], CR3BPModel(mu), 0.2, steps=3)
    traj = bundle.strands[0]
    twin = Trajectory(traj.times, traj.states)

    assert traj == traj and traj != twin
    assert bundle == bundle
    assert len({traj, twin, bundle}) == 3


def test_step_budget_failure_is_recorded(mu):
    state = np.array([0.843995693043320, 0.0, 0.0, 0.0, -0.0565838306397683, 0.0])
    bundle = propagate_manifold([state], CR3BPModel(mu), 1.0, direction=-1,
                                integrator=AdaptiveIntegrator(max_steps=2))
    failure = bundle.strands[0]
    assert isinstance(failure, StrandFailure)
    assert -1.0 < failure.t_reached < 0.0
    assert "Exceeded" in failure.reason


def test_accepts_variational_model(mu):
    state = np.array([0.843995693043320, 0.0, 0.0, 0.0, -0.0565838306397683, 0.0])
    bundle = propagate_manifold([state], CR3BPModel(mu, stm=True), 0.2, steps=3)
    assert bundle.strands[0].states.shape == (3, 6)


def test_empty_ensemble(mu):
    bundle = propagate_manifold([], CR3BPModel(mu), 1.0)
    assert bundle.attempt_count == 0
    assert bundle.success_rate == 0.0
    assert list(bundle) == []


def test_invalid_ensemble_requests(mu, lyapunov_orbit):
    model = CR3BPModel(mu)
    state = lyapunov_orbit.initial_state
    with pytest.raises(ValueError):
        propagate_manifold([state], model, 1.0, direction=0)
    with pytest.raises(ValueError):
        propagate_manifold([state], model, -1.0)
    with pytest.raises(ValueError):
        propagate_manifold([state], model, np.nan)
    with pytest.raises(ValueError):
        propagate_manifold([state[:4]], model, 1.0)
    with pytest.raises(ValueError):
        compute_manifold(lyapunov_orbit, periods=0.0)
