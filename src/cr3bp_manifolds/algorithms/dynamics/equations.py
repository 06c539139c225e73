"""
Equations of motion of the Circular Restricted Three-Body Problem (CR3BP).

This module provides the Numba-compiled vector field of the CR3BP in the
rotating, non-dimensional frame, its analytic Jacobian and the variational
equations that propagate the state transition matrix (STM) alongside the
state. The :class:`CR3BPModel` wraps these kernels behind the small
interface the integrators consume (``dim``, ``rhs``, ``validate_state``).

The augmented (variational) state is a 42-vector laid out as::

    y[:6]  = [x, y, z, vx, vy, vz]
    y[6:]  = Phi.ravel()   (row-major flattening of the 6x6 STM)

The primaries sit at (-mu, 0, 0) and (1-mu, 0, 0).
"""

from abc import ABC, abstractmethod

import numba
import numpy as np

from cr3bp_manifolds.config import FASTMATH, SINGULARITY_TOL
from cr3bp_manifolds.utils.exceptions import DegenerateStateError

STATE_DIM = 6
AUGMENTED_DIM = STATE_DIM + STATE_DIM * STATE_DIM


@numba.njit(fastmath=FASTMATH, cache=True)
def crtbp_accel(state, mu):
    """
    Calculate the state derivative (acceleration) for the CR3BP.

    Parameters
    ----------
    state : array_like
        State vector [x, y, z, vx, vy, vz] in the rotating frame
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)

    Returns
    -------
    ndarray
        Time derivative of the state vector [vx, vy, vz, ax, ay, az]

    Notes
    -----
    The equations of motion include gravitational forces from both primaries
    and the Coriolis and centrifugal forces from the rotating reference frame.
    The field is singular at the primaries; callers are expected to keep
    states away from them.
    """
    x, y, z, vx, vy, vz = state[0], state[1], state[2], state[3], state[4], state[5]

    # Distances to each primary
    r1 = np.sqrt((x + mu)**2 + y**2 + z**2)      # from m1 at (-mu, 0, 0)
    r2 = np.sqrt((x - (1 - mu))**2 + y**2 + z**2) # from m2 at (1-mu, 0, 0)

    # Accelerations
    ax = 2*vy + x - (1 - mu)*(x + mu) / r1**3 - mu*(x - 1 + mu) / r2**3
    ay = -2*vx + y - (1 - mu)*y / r1**3          - mu*y / r2**3
    az = -(1 - mu)*z / r1**3 - mu*z / r2**3

    return np.array([vx, vy, vz, ax, ay, az], dtype=np.float64)


@numba.njit(fastmath=FASTMATH, cache=True)
def jacobian_crtbp(x, y, z, mu):
    """
    Compute the Jacobian matrix of the CR3BP vector field.

    Parameters
    ----------
    x, y, z : float
        Position in the rotating frame
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)

    Returns
    -------
    ndarray
        6x6 Jacobian matrix structured as:
        [ 0     0     0     1     0    0 ]
        [ 0     0     0     0     1    0 ]
        [ 0     0     0     0     0    1 ]
        [ omgxx omgxy omgxz  0     2    0 ]
        [ omgxy omgyy omgyz -2     0    0 ]
        [ omgxz omgyz omgzz  0     0    0 ]

    Notes
    -----
    The indices of the matrix correspond to: x=0, y=1, z=2, vx=3, vy=4, vz=5.
    The position block is the Hessian of the effective potential Omega.
    """
    mu2 = 1.0 - mu

    # Squared distances to M1 at (-mu, 0, 0) and M2 at (1-mu, 0, 0)
    r2 = (x + mu)**2 + y**2 + z**2
    R2 = (x - mu2)**2 + y**2 + z**2
    r3 = r2**1.5
    r5 = r2**2.5
    R3 = R2**1.5
    R5 = R2**2.5

    omgxx = 1.0 \
        + mu2/r5 * 3.0*(x + mu)**2 \
        + mu  /R5 * 3.0*(x - mu2)**2 \
        - (mu2/r3 + mu/R3)

    omgyy = 1.0 \
        + mu2/r5 * 3.0*(y**2) \
        + mu  /R5 * 3.0*(y**2) \
        - (mu2/r3 + mu/R3)

    omgzz = 0.0 \
        + mu2/r5 * 3.0*(z**2) \
        + mu  /R5 * 3.0*(z**2) \
        - (mu2/r3 + mu/R3)

    omgxy = 3.0*y * ( mu2*(x + mu)/r5 + mu*(x - mu2)/R5 )
    omgxz = 3.0*z * ( mu2*(x + mu)/r5 + mu*(x - mu2)/R5 )
    omgyz = 3.0*y*z*( mu2/r5 + mu/R5 )

    F = np.zeros((6, 6), dtype=np.float64)

    # Identity block for velocity wrt position
    F[0, 3] = 1.0
    F[1, 4] = 1.0
    F[2, 5] = 1.0

    F[3, 0] = omgxx
    F[3, 1] = omgxy
    F[3, 2] = omgxz

    F[4, 0] = omgxy
    F[4, 1] = omgyy
    F[4, 2] = omgyz

    F[5, 0] = omgxz
    F[5, 1] = omgyz
    F[5, 2] = omgzz

    # Coriolis terms
    F[3, 4] = 2.0
    F[4, 3] = -2.0

    return F


@numba.njit(fastmath=FASTMATH, cache=True)
def variational_equations(t, y, mu):
    """
    Compute the time derivative of an augmented (state + STM) vector.

    Parameters
    ----------
    t : float
        Current time (not used, but required for ODE integrators)
    y : ndarray
        42-element vector: the state [x, y, z, vx, vy, vz] followed by the
        row-major flattening of the 6x6 STM
    mu : float
        Mass parameter of the CR3BP system

    Returns
    -------
    ndarray
        42-element vector: the state derivative followed by the flattened
        dPhi/dt = F(state) @ Phi
    """
    dy = np.empty(42, dtype=np.float64)
    dy[:6] = crtbp_accel(y[:6], mu)

    F = jacobian_crtbp(y[0], y[1], y[2], mu)

    # dPhi/dt = F * Phi (manually done to keep numba happy)
    for i in range(6):
        for j in range(6):
            s = 0.0
            for k in range(6):
                s += F[i, k] * y[6 + 6*k + j]
            dy[6 + 6*i + j] = s

    return dy


def augment(state):
    """
    Build the augmented 42-vector [state, vec(I)] with Phi(0) = I.

    Parameters
    ----------
    state : array_like
        Cartesian state of shape (6,)

    Returns
    -------
    ndarray
        Augmented state of shape (42,)
    """
    state = np.asarray(state, dtype=np.float64)
    if state.shape != (STATE_DIM,):
        raise ValueError(f"Expected a state of shape (6,), got {state.shape}")
    y = np.empty(AUGMENTED_DIM, dtype=np.float64)
    y[:STATE_DIM] = state
    y[STATE_DIM:] = np.eye(STATE_DIM).ravel()
    return y


def split_augmented(y):
    """
    Split an augmented 42-vector into its state and 6x6 STM.

    Returns copies, so the caller may modify them freely.
    """
    y = np.asarray(y, dtype=np.float64)
    if y.shape[-1] != AUGMENTED_DIM:
        raise ValueError(f"Expected an augmented state of length 42, got {y.shape[-1]}")
    state = y[..., :STATE_DIM].copy()
    phi = y[..., STATE_DIM:].reshape(y.shape[:-1] + (STATE_DIM, STATE_DIM)).copy()
    return state, phi


class DynamicalSystem(ABC):
    """
    Abstract base class for dynamical systems.

    The integrator adapter only relies on ``dim``, ``rhs`` and
    ``validate_state``.
    """

    def __init__(self, dim: int):
        if dim <= 0:
            raise ValueError(f"Dimension must be positive, got {dim}")
        self._dim = dim

    @property
    def dim(self) -> int:
        """Dimension of the state space."""
        return self._dim

    @abstractmethod
    def rhs(self, t: float, y: np.ndarray) -> np.ndarray:
        """Time derivative of ``y`` at time ``t``."""

    def validate_state(self, y: np.ndarray) -> None:
        """
        Validate that a state vector has the correct dimension.

        Raises
        ------
        ValueError
            If the state vector has incorrect dimension
        """
        if len(y) != self.dim:
            raise ValueError(f"State vector dimension {len(y)} != system dimension {self.dim}")


class CR3BPModel(DynamicalSystem):
    """
    The CR3BP vector field for a fixed mass parameter.

    Parameters
    ----------
    mu : float
        Mass parameter, in (0, 0.5]
    stm : bool, optional
        If True the model integrates the 42-dimensional augmented state
        (state plus STM); otherwise the plain 6-dimensional state.
    singularity_tol : float, optional
        States closer than this to either primary are rejected by
        :meth:`validate_state`.

    Notes
    -----
    Instances are immutable, so a single model can be shared by any number
    of concurrent integrations.
    """

    def __init__(self, mu: float, stm: bool = False, singularity_tol: float = SINGULARITY_TOL):
        mu = float(mu)
        if not np.isfinite(mu) or mu <= 0.0 or mu > 0.5:
            raise ValueError(f"Mass parameter must lie in (0, 0.5], got {mu}")
        if singularity_tol < 0:
            raise ValueError(f"singularity_tol must be non-negative, got {singularity_tol}")
        super().__init__(AUGMENTED_DIM if stm else STATE_DIM)
        self._mu = mu
        self._stm = bool(stm)
        self._singularity_tol = float(singularity_tol)

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def stm(self) -> bool:
        """Whether the model integrates the variational equations."""
        return self._stm

    @property
    def singularity_tol(self) -> float:
        return self._singularity_tol

    @property
    def primaries(self):
        """Positions of the larger and smaller primary."""
        return (np.array([-self._mu, 0.0, 0.0]), np.array([1.0 - self._mu, 0.0, 0.0]))

    def rhs(self, t, y):
        if self._stm:
            return variational_equations(t, y, self._mu)
        return crtbp_accel(y, self._mu)

    def jacobian(self, state):
        """Analytic 6x6 Jacobian of the vector field at ``state``."""
        return jacobian_crtbp(float(state[0]), float(state[1]), float(state[2]), self._mu)

    def with_stm(self):
        """The variational (42-dimensional) variant of this model."""
        if self._stm:
            return self
        return CR3BPModel(self._mu, stm=True, singularity_tol=self._singularity_tol)

    def without_stm(self):
        """The plain (6-dimensional) variant of this model."""
        if not self._stm:
            return self
        return CR3BPModel(self._mu, stm=False, singularity_tol=self._singularity_tol)

    def augment(self, state):
        return augment(state)

    def initial_vector(self, state):
        """Integration vector for ``state`` matching this model's dimension."""
        state = np.asarray(state, dtype=np.float64)
        if self._stm and state.shape == (STATE_DIM,):
            return augment(state)
        return state.copy()

    def validate_state(self, y):
        """
        Check the dimension of ``y`` and its distance to both primaries.

        Raises
        ------
        ValueError
            If ``y`` has the wrong dimension.
        DegenerateStateError
            If the position lies within ``singularity_tol`` of a primary.
        """
        super().validate_state(y)
        x, yy, z = y[0], y[1], y[2]
        for body, xb in ((1, -self._mu), (2, 1.0 - self._mu)):
            distance = float(np.sqrt((x - xb)**2 + yy**2 + z**2))
            if distance <= self._singularity_tol:
                raise DegenerateStateError(
                    f"State lies within {self._singularity_tol:.1e} of primary {body} "
                    f"(distance {distance:.3e})",
                    state=y[:STATE_DIM],
                    body=body,
                    distance=distance,
                )

    def __repr__(self):
        return f"CR3BPModel(mu={self._mu!r}, stm={self._stm})"
