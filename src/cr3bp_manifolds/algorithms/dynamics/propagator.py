"""
Numerical propagation of CR3BP trajectories.

This module provides the integrator adapter used everywhere in the package:
a thin driver around SciPy's explicit Runge-Kutta ``OdeSolver`` classes
(DOP853 by default) that advances the solver step by step so that it can

- sample the solution from the solver's dense output at requested times,
- check every accepted state against the dynamical system,
- enforce a hard limit on the number of accepted steps.

Integration may run backwards in time (``t_span[1] < t_span[0]``) without
altering the vector field. Failures never produce a truncated trajectory:
they raise :class:`~cr3bp_manifolds.utils.exceptions.IntegrationFailure`
carrying the last accepted time and state.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from scipy.integrate import DOP853, RK23, RK45

from cr3bp_manifolds.config import (
    DEFAULT_ATOL,
    DEFAULT_METHOD,
    DEFAULT_RTOL,
    MAX_STEPS,
    STM_ATOL,
    STM_RTOL,
)
from cr3bp_manifolds.utils.exceptions import DegenerateStateError, IntegrationFailure

from .equations import AUGMENTED_DIM, STATE_DIM, CR3BPModel, augment

logger = logging.getLogger(__name__)

_SOLVERS = {
    "DOP853": DOP853,
    "RK45": RK45,
    "RK23": RK23,
}


def _readonly(array):
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class Trajectory:
    """
    Time-ordered samples of a propagated state.

    Attributes
    ----------
    times : numpy.ndarray
        Sample times, shape (n,), in the order they were reached (decreasing
        for backward propagation)
    states : numpy.ndarray
        States at the sample times, shape (n, dim) with dim 6 or 42
    n_steps : int
        Number of accepted integrator steps
    nfev : int
        Number of vector field evaluations
    """

    times: np.ndarray
    states: np.ndarray
    n_steps: int = 0
    nfev: int = 0

    def __post_init__(self):
        times = _readonly(self.times)
        states = _readonly(self.states)
        if times.ndim != 1 or states.ndim != 2:
            raise ValueError("times must be 1-D and states 2-D")
        if len(times) != len(states):
            raise ValueError(
                f"Times and states must have same length: {len(times)} != {len(states)}"
            )
        if len(times) == 0:
            raise ValueError("A trajectory needs at least one sample")
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "states", states)

    def __len__(self):
        return len(self.times)

    @property
    def dim(self):
        return self.states.shape[1]

    @property
    def is_augmented(self):
        """True when the samples carry the flattened STM."""
        return self.dim == AUGMENTED_DIM

    @property
    def final_time(self):
        return float(self.times[-1])

    @property
    def final_state(self):
        """Cartesian state of the last sample."""
        return self.states[-1, :STATE_DIM].copy()

    @property
    def cartesian(self):
        """Cartesian part of every sample, shape (n, 6)."""
        return self.states[:, :STATE_DIM]

    @property
    def stms(self):
        """State transition matrices of every sample, shape (n, 6, 6)."""
        if not self.is_augmented:
            raise ValueError("Trajectory was not propagated with the variational equations")
        return self.states[:, STATE_DIM:].reshape(len(self), STATE_DIM, STATE_DIM)

    @property
    def final_stm(self):
        return self.stms[-1].copy()


class Integrator(ABC):
    """
    Abstract base class for numerical integrators.

    Concrete integrators turn a dynamical system, an initial vector and a
    time span into a :class:`Trajectory`.
    """

    def __init__(self, name: str, **options):
        self.name = name
        self.options = options

    @abstractmethod
    def integrate(self, system, y0, t_span, *, steps=None, saveat=None) -> Trajectory:
        """
        Integrate ``system`` from ``y0`` over ``t_span``.

        Parameters
        ----------
        system : DynamicalSystem
            Provides ``dim``, ``rhs(t, y)`` and ``validate_state(y)``
        y0 : array_like
            Initial vector of length ``system.dim``
        t_span : tuple of float
            (t_start, t_end); t_end may be smaller than t_start
        steps : int, optional
            Number of uniformly spaced samples, both ends included
        saveat : float or array_like, optional
            Sampling period, or explicit sample times

        Returns
        -------
        Trajectory
        """

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r}, options={self.options!r})"


class AdaptiveIntegrator(Integrator):
    """
    Adaptive explicit Runge-Kutta integrator backed by SciPy.

    Parameters
    ----------
    method : {'DOP853', 'RK45', 'RK23'}, optional
        SciPy solver; DOP853 is the 8th-order Dormand-Prince scheme.
    rtol, atol : float, optional
        Relative and absolute error tolerances.
    max_step : float, optional
        Upper bound on the step size. Default is no bound.
    max_steps : int, optional
        Accepted steps allowed before giving up with IntegrationFailure.
    """

    def __init__(self, method=DEFAULT_METHOD, rtol=DEFAULT_RTOL, atol=DEFAULT_ATOL,
                 max_step=np.inf, max_steps=MAX_STEPS):
        if method not in _SOLVERS:
            raise ValueError(f"Unknown method '{method}', expected one of {sorted(_SOLVERS)}")
        if rtol <= 0 or atol <= 0:
            raise ValueError("Tolerances must be positive")
        if max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}")
        super().__init__(method, rtol=rtol, atol=atol, max_step=max_step, max_steps=max_steps)
        self.method = method
        self.rtol = float(rtol)
        self.atol = float(atol)
        self.max_step = max_step
        self.max_steps = int(max_steps)

    def integrate(self, system, y0, t_span, *, steps=None, saveat=None):
        y0 = np.array(y0, dtype=np.float64)
        t0, t1 = _check_span(t_span)
        sample_times = _sample_times(t0, t1, steps, saveat)

        # Raises ValueError / DegenerateStateError before any work is done.
        system.validate_state(y0)
        if not np.all(np.isfinite(y0)):
            raise ValueError("Initial state contains non-finite values")

        solver = _SOLVERS[self.method](
            system.rhs, t0, y0, t1,
            rtol=self.rtol, atol=self.atol, max_step=self.max_step,
        )

        times = []
        states = []
        cursor = 0
        if sample_times is None:
            times.append(t0)
            states.append(y0.copy())
        else:
            while cursor < len(sample_times) and sample_times[cursor] == t0:
                times.append(t0)
                states.append(y0.copy())
                cursor += 1

        direction = 1.0 if t1 > t0 else -1.0
        n_steps = 0
        while solver.status == "running":
            if n_steps >= self.max_steps:
                raise IntegrationFailure(
                    f"Exceeded {self.max_steps} steps at t={solver.t:.6g} "
                    f"before reaching t={t1:.6g}",
                    t_reached=solver.t,
                    last_state=solver.y,
                )

            t_prev, y_prev = solver.t, solver.y.copy()
            try:
                message = solver.step()
            except ZeroDivisionError as exc:
                raise IntegrationFailure(
                    f"Vector field evaluated at a singularity near t={t_prev:.6g}",
                    t_reached=t_prev,
                    last_state=y_prev,
                ) from exc

            if solver.status == "failed":
                raise IntegrationFailure(
                    f"Integrator failed at t={solver.t:.6g}: {message}",
                    t_reached=solver.t,
                    last_state=solver.y,
                )
            n_steps += 1

            if not np.all(np.isfinite(solver.y)):
                raise IntegrationFailure(
                    f"Non-finite state after step to t={solver.t:.6g}",
                    t_reached=t_prev,
                    last_state=y_prev,
                )
            try:
                system.validate_state(solver.y)
            except DegenerateStateError as exc:
                raise IntegrationFailure(
                    f"Trajectory reached a singular state at t={solver.t:.6g}: {exc}",
                    t_reached=solver.t,
                    last_state=solver.y,
                ) from exc

            if sample_times is None:
                times.append(solver.t)
                states.append(solver.y.copy())
                continue

            dense = None
            while cursor < len(sample_times) and direction * (sample_times[cursor] - solver.t) <= 0:
                ts = sample_times[cursor]
                if ts == solver.t:
                    states.append(solver.y.copy())
                else:
                    if dense is None:
                        dense = solver.dense_output()
                    states.append(dense(ts))
                times.append(ts)
                cursor += 1

        logger.debug(
            f"{self.method}: integrated {len(y0)}-dim system over [{t0:g}, {t1:g}] "
            f"in {n_steps} steps ({solver.nfev} rhs evaluations)"
        )
        return Trajectory(np.asarray(times), np.asarray(states), n_steps=n_steps, nfev=solver.nfev)


def _check_span(t_span):
    if len(t_span) != 2:
        raise ValueError(f"t_span must be (t_start, t_end), got {t_span!r}")
    t0, t1 = float(t_span[0]), float(t_span[1])
    if not (np.isfinite(t0) and np.isfinite(t1)):
        raise ValueError("t_span must be finite")
    if t0 == t1:
        raise ValueError("t_span must have non-zero length")
    return t0, t1


def _sample_times(t0, t1, steps, saveat):
    """
    Resolve the sampling request into an ordered array of times.

    Returns None when every accepted step should be recorded.
    """
    if steps is not None and saveat is not None:
        raise ValueError("Pass either steps or saveat, not both")

    direction = 1.0 if t1 > t0 else -1.0
    span = abs(t1 - t0)

    if steps is not None:
        steps = int(steps)
        if steps < 2:
            raise ValueError(f"steps must be at least 2, got {steps}")
        times = np.linspace(t0, t1, steps)
        times[-1] = t1
        return times

    if saveat is None:
        return None

    if np.ndim(saveat) == 0:
        dt = abs(float(saveat))
        if dt == 0 or not np.isfinite(dt):
            raise ValueError("saveat period must be non-zero and finite")
        offsets = np.arange(0.0, span, dt)
        # Drop a round-off duplicate of the end point before appending it exactly.
        offsets = offsets[span - offsets > 1e-12 * max(1.0, span)]
        return np.append(t0 + direction * offsets, t1)

    times = np.asarray(saveat, dtype=np.float64)
    if times.ndim != 1 or len(times) == 0:
        raise ValueError("saveat must be a scalar or a non-empty 1-D array of times")
    if np.any(np.diff(times) * direction <= 0):
        raise ValueError("Sample times must be strictly monotonic in the direction of integration")
    if np.any((times - t0) * direction < 0) or np.any((times - t1) * direction > 0):
        raise ValueError("Sample times must lie within t_span")
    return times


def propagate_orbit(initial_state, mu, t_span, steps=None, saveat=None, rtol=DEFAULT_RTOL,
                    atol=DEFAULT_ATOL, method=DEFAULT_METHOD, max_step=np.inf, max_steps=MAX_STEPS):
    """
    Propagate an orbit in the CR3BP.

    Parameters
    ----------
    initial_state : array_like
        Initial state vector [x, y, z, vx, vy, vz]
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)
    t_span : tuple of float
        (t_start, t_end); backward propagation when t_end < t_start
    steps, saveat : optional
        Sampling request, see :meth:`AdaptiveIntegrator.integrate`
    rtol, atol : float, optional
        Integrator tolerances
    method : str, optional
        SciPy explicit Runge-Kutta method
    max_step : float, optional
        Maximum allowed step size for the integrator
    max_steps : int, optional
        Maximum number of accepted steps

    Returns
    -------
    Trajectory
        Samples of the 6-dimensional state
    """
    integrator = AdaptiveIntegrator(method=method, rtol=rtol, atol=atol,
                                    max_step=max_step, max_steps=max_steps)
    return integrator.integrate(CR3BPModel(mu), initial_state, t_span, steps=steps, saveat=saveat)


def propagate_with_stm(initial_state, mu, t_span, steps=None, saveat=None, rtol=STM_RTOL,
                       atol=STM_ATOL, method=DEFAULT_METHOD, max_step=np.inf, max_steps=MAX_STEPS):
    """
    Propagate a state together with its state transition matrix.

    The STM starts from the identity at ``t_span[0]``. Arguments are those of
    :func:`propagate_orbit`; the default tolerances are the (looser) STM ones.

    Returns
    -------
    Trajectory
        Augmented samples; use ``.cartesian`` and ``.stms`` to split them
    """
    integrator = AdaptiveIntegrator(method=method, rtol=rtol, atol=atol,
                                    max_step=max_step, max_steps=max_steps)
    model = CR3BPModel(mu, stm=True)
    return integrator.integrate(model, augment(initial_state), t_span, steps=steps, saveat=saveat)
