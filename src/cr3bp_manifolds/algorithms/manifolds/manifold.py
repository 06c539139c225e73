"""
Manifold computation module for the Circular Restricted Three-Body Problem (CR3BP).

This module provides functions to compute the stable and unstable invariant
manifolds of periodic orbits in the CR3BP. It samples the orbit together with
its state transition matrix, seeds perturbed initial conditions along the
transported stable or unstable eigendirection and propagates the resulting
ensemble of strands on a thread pool.

Strands are independent: a strand that hits a primary or exhausts the
integrator's step budget is recorded as a :class:`StrandFailure` at its input
index while the others complete normally.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from tqdm import tqdm

from cr3bp_manifolds.algorithms.dynamics.propagator import AdaptiveIntegrator, Trajectory
from cr3bp_manifolds.algorithms.dynamics.stm import compute_stm, monodromy_matrix
from cr3bp_manifolds.config import DEFAULT_EPS, N_SAMPLES, N_WORKERS, STM_ATOL, STM_RTOL
from cr3bp_manifolds.utils.exceptions import DegenerateStateError, IntegrationFailure

from .analysis import converge, diverge, stable_eigenpair, unstable_eigenpair

logger = logging.getLogger(__name__)

# Propagation length in orbital periods when none is requested
UNSTABLE_PERIODS = 2.0
STABLE_PERIODS = 2.1


@dataclass(frozen=True, eq=False)
class StrandFailure:
    """
    Record of a manifold strand that could not be propagated.

    Attributes
    ----------
    index : int
        Position of the strand in the input sequence
    initial_state : ndarray
        State the strand started from
    reason : str
        Error message
    t_reached : float or None
        Furthest time reached, if integration started
    last_state : ndarray or None
        Last accepted state, if integration started
    """

    index: int
    initial_state: np.ndarray
    reason: str
    t_reached: Optional[float] = None
    last_state: Optional[np.ndarray] = None


@dataclass(frozen=True, eq=False)
class ManifoldBundle:
    """
    Outcome of a manifold ensemble propagation.

    Attributes
    ----------
    strands : tuple
        One entry per input state, in input order: a Trajectory for a
        successful strand, a StrandFailure otherwise
    direction : int
        +1 for forward propagation, -1 for backward
    time_span : float
        Magnitude of the propagation time
    """

    strands: Tuple[Union[Trajectory, StrandFailure], ...]
    direction: int
    time_span: float

    @property
    def trajectories(self):
        """Successful strands, in input order."""
        return [s for s in self.strands if isinstance(s, Trajectory)]

    @property
    def failures(self):
        return [s for s in self.strands if isinstance(s, StrandFailure)]

    @property
    def success_count(self) -> int:
        return len(self.trajectories)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def attempt_count(self) -> int:
        return len(self.strands)

    @property
    def success_rate(self) -> float:
        """Return the success rate of manifold computations."""
        return self.success_count / max(1, self.attempt_count)

    def __len__(self):
        return self.success_count

    def __iter__(self):
        return iter(self.trajectories)


def _initial_state(perturbed):
    state = np.asarray(getattr(perturbed, "state", perturbed), dtype=np.float64)
    if state.shape != (6,):
        raise ValueError(f"Manifold strands start from 6-dimensional states, got shape {state.shape}")
    return state


def _propagate_strand(index, state, model, integrator, t_span, steps, saveat):
    try:
        return integrator.integrate(model, state, t_span, steps=steps, saveat=saveat)
    except IntegrationFailure as exc:
        return StrandFailure(index, state, str(exc), exc.t_reached, exc.last_state)
    except DegenerateStateError as exc:
        return StrandFailure(index, state, str(exc))


def propagate_manifold(perturbed_states, model, time_span, direction=1, integrator=None,
                       n_workers=N_WORKERS, steps=None, saveat=None, show_progress=False):
    """
    Propagate an ensemble of perturbed initial conditions.

    Parameters
    ----------
    perturbed_states : sequence
        PerturbedInitialCondition objects or plain (6,) states
    model : CR3BPModel
        Dynamics model; its non-variational variant is integrated
    time_span : float
        Positive propagation time magnitude
    direction : {1, -1}, optional
        1 integrates over (0, time_span) (unstable manifolds), -1 over
        (0, -time_span) (stable manifolds)
    integrator : Integrator, optional
        Shared by all strands; defaults to DOP853 at the trajectory tolerances
    n_workers : int, optional
        Thread pool size; defaults to the number of CPUs
    steps, saveat : optional
        Per-strand sampling request, see AdaptiveIntegrator.integrate
    show_progress : bool, optional
        Whether to display a progress bar during computation

    Returns
    -------
    ManifoldBundle
    """
    if direction not in (1, -1):
        raise ValueError(f"direction must be 1 (forward) or -1 (backward), got {direction}")
    if not (np.isfinite(time_span) and time_span > 0):
        raise ValueError(f"time_span must be positive, got {time_span}")

    states = [_initial_state(p) for p in perturbed_states]
    model = model.without_stm()
    if integrator is None:
        integrator = AdaptiveIntegrator()
    t_span = (0.0, direction * float(time_span))

    results = [None] * len(states)
    if states:
        workers = max(1, min(n_workers or os.cpu_count() or 1, len(states)))
        logger.info(f"Propagating {len(states)} manifold strands over t in [0, {t_span[1]:g}] "
                    f"on {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(_propagate_strand, i, s, model, integrator, t_span, steps, saveat): i
                for i, s in enumerate(states)
            }
            with tqdm(total=len(futures), desc="Propagating manifold", disable=not show_progress) as pbar:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
                    pbar.update(1)

    bundle = ManifoldBundle(strands=tuple(results), direction=direction, time_span=float(time_span))
    for failure in bundle.failures:
        logger.warning(f"Strand {failure.index} failed: {failure.reason}")
    logger.info(f"Manifold propagation completed. Success rate: "
                f"{bundle.success_count}/{bundle.attempt_count} strands ({bundle.success_rate * 100:.1f}%)")
    return bundle


def sample_orbit(orbit, n_samples=N_SAMPLES, saveat=None, integrator=None):
    """
    Sample a periodic orbit together with its state transition matrix.

    Parameters
    ----------
    orbit : PeriodicOrbit
        The orbit to sample
    n_samples : int, optional
        Number of uniformly spaced samples over one period, both ends
        included. Ignored when ``saveat`` is given.
    saveat : float or array_like, optional
        Sampling period (e.g. a tenth of the period) or explicit times in [0, T]
    integrator : Integrator, optional
        Defaults to DOP853 at the STM tolerances

    Returns
    -------
    Trajectory
        Augmented samples; ``.cartesian`` gives the orbit states and
        ``.stms`` the STMs Phi(t, 0)
    """
    if integrator is None:
        integrator = AdaptiveIntegrator(rtol=STM_RTOL, atol=STM_ATOL)
    steps = None if saveat is not None else n_samples
    trajectory, _ = compute_stm(orbit.initial_state, orbit.mu, orbit.period,
                                steps=steps, saveat=saveat, integrator=integrator)
    return trajectory


def perturb_orbit(orbit, stable=False, eps=DEFAULT_EPS, n_samples=N_SAMPLES, saveat=None,
                  integrator=None):
    """
    Seed manifold initial conditions along a periodic orbit.

    Parameters
    ----------
    orbit : PeriodicOrbit
        The orbit whose manifold is seeded
    stable : bool, optional
        Seed the stable manifold (converge) instead of the unstable one (diverge)
    eps : float, optional
        Signed position offset; the sign selects the branch
    n_samples, saveat : optional
        Sampling along the orbit, see :func:`sample_orbit`
    integrator : Integrator, optional
        Integrator for the variational equations

    Returns
    -------
    list of PerturbedInitialCondition
        One per sample, in time order
    """
    samples = sample_orbit(orbit, n_samples=n_samples, saveat=saveat, integrator=integrator)

    if np.isclose(samples.final_time, orbit.period, rtol=0.0, atol=1e-12 * max(1.0, orbit.period)):
        monodromy = samples.final_stm
    else:
        monodromy = monodromy_matrix(orbit.initial_state, orbit.mu, orbit.period, integrator=integrator)

    if stable:
        eigenpair = stable_eigenpair(monodromy)
        perturb = converge
    else:
        eigenpair = unstable_eigenpair(monodromy)
        perturb = diverge
    logger.info(f"{'Stable' if stable else 'Unstable'} eigenvalue of the monodromy matrix: "
                f"{eigenpair.value:.10g}")

    return [
        perturb(state, stm, monodromy, eps=eps, eigenpair=eigenpair)
        for state, stm in zip(samples.cartesian, samples.stms)
    ]


def compute_manifold(orbit, stable=False, eps=DEFAULT_EPS, n_samples=N_SAMPLES, saveat=None,
                     periods=None, integrator=None, stm_integrator=None, n_workers=N_WORKERS,
                     steps=None, strand_saveat=None, show_progress=False):
    """
    Computes the stable or unstable manifold of a periodic orbit in the CR3BP.

    Unstable manifolds are propagated forward in time and stable manifolds
    backward, both over ``periods`` orbital periods.

    Parameters
    ----------
    orbit : PeriodicOrbit
        The periodic orbit
    stable : bool, optional
        Compute the stable manifold instead of the unstable one
    eps : float, optional
        Signed perturbation size; the sign selects the branch
    n_samples, saveat : optional
        Sampling along the orbit, see :func:`sample_orbit`
    periods : float, optional
        Propagation length in orbital periods. Default is 2 for unstable
        and 2.1 for stable manifolds.
    integrator : Integrator, optional
        Integrator for the strands
    stm_integrator : Integrator, optional
        Integrator for the variational equations along the orbit
    n_workers : int, optional
        Thread pool size
    steps, strand_saveat : optional
        Per-strand sampling request
    show_progress : bool, optional
        Whether to display a progress bar during computation

    Returns
    -------
    ManifoldBundle
    """
    if periods is None:
        periods = STABLE_PERIODS if stable else UNSTABLE_PERIODS
    if periods <= 0:
        raise ValueError(f"periods must be positive, got {periods}")

    logger.info(f"Computing {'stable' if stable else 'unstable'} manifold of {orbit!r} with eps={eps:g}")

    perturbed = perturb_orbit(orbit, stable=stable, eps=eps, n_samples=n_samples,
                              saveat=saveat, integrator=stm_integrator)
    return propagate_manifold(
        perturbed, orbit.model, periods * orbit.period,
        direction=-1 if stable else 1, integrator=integrator, n_workers=n_workers,
        steps=steps, saveat=strand_saveat, show_progress=show_progress,
    )
