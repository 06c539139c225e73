"""
Stability analysis and manifold seeding for periodic orbits of the CR3BP.

This module provides the eigen-decomposition of monodromy matrices (and of
the linearised flow at libration points), the deterministic selection of the
stable and unstable eigenpairs, and the two perturbation operators
:func:`diverge` and :func:`converge` that displace a point of the orbit along
the transported unstable or stable eigendirection.

Selection rules
---------------
Only real eigenvalues (``|Im| <= imag_tol * max(1, |lambda|)``) are
considered. The unstable pair uses the eigenvalue of largest magnitude, the
stable pair the one of smallest magnitude. Eigenvalues whose magnitudes agree
with the extreme one to a relative ``tie_tol`` are tied, and the one with the
lowest index in the NumPy eigen-decomposition wins. Eigenvectors are divided
by their first component of magnitude above 1e-14, stripped of imaginary
round-off and scaled to unit 2-norm.

Perturbation
------------
The eigenvector is transported to the sample point as ``stm @ v`` and scaled
so that its position sub-vector has unit 2-norm; ``eps`` is then a position
offset in non-dimensional length units and its sign picks the branch.
"""

import logging
from dataclasses import dataclass

import numpy as np

from cr3bp_manifolds.algorithms.core.lagrange_points import get_lagrange_point
from cr3bp_manifolds.algorithms.dynamics.equations import jacobian_crtbp
from cr3bp_manifolds.config import DEFAULT_EPS, EIGEN_TIE_TOL, IMAG_TOL, STABILITY_TOL
from cr3bp_manifolds.utils.exceptions import DegenerateOrbitError

logger = logging.getLogger(__name__)

_PIVOT_TOL = 1e-14


def _readonly(array):
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class Eigenpair:
    """
    A real eigenvalue of a monodromy matrix and its canonical eigenvector.

    Attributes
    ----------
    value : float
        The eigenvalue
    vector : ndarray
        Unit 2-norm real eigenvector, pivot component positive
    index : int
        Position of the eigenvalue in ``numpy.linalg.eig`` output
    """

    value: float
    vector: np.ndarray
    index: int

    def __post_init__(self):
        object.__setattr__(self, "value", float(self.value))
        object.__setattr__(self, "vector", _readonly(self.vector))


@dataclass(frozen=True, eq=False)
class PerturbedInitialCondition:
    """
    A state displaced from a periodic orbit along a manifold direction.

    Attributes
    ----------
    state : ndarray
        Perturbed state, ``source + eps * direction``
    source : ndarray
        Unperturbed state on the orbit
    direction : ndarray
        Transported eigenvector, position sub-vector of unit norm
    eigenvalue : float
        Monodromy eigenvalue the direction belongs to
    eps : float
        Signed perturbation size
    """

    state: np.ndarray
    source: np.ndarray
    direction: np.ndarray
    eigenvalue: float
    eps: float

    def __post_init__(self):
        for name in ("state", "source", "direction"):
            object.__setattr__(self, name, _readonly(getattr(self, name)))
        object.__setattr__(self, "eigenvalue", float(self.eigenvalue))
        object.__setattr__(self, "eps", float(self.eps))

    @property
    def is_unstable(self):
        return abs(self.eigenvalue) > 1.0

    @property
    def offset(self):
        """Euclidean distance between the perturbed and the source state."""
        return float(np.linalg.norm(self.state - self.source))


def _zero_small_imag_part(eig_val, tol=1e-12):
    """Return the real part of ``eig_val`` when its imaginary part is negligible."""
    if abs(eig_val.imag) <= tol * max(1.0, abs(eig_val)):
        return complex(eig_val.real, 0.0)
    return complex(eig_val)


def _canonical_vector(vec):
    """
    Divide by the first non-negligible component, then normalise.

    Tiny components are zeroed so that symmetric orbits give exact zeros.
    """
    vec = np.asarray(vec, dtype=np.complex128)
    pivots = np.flatnonzero(np.abs(vec) > _PIVOT_TOL)
    if len(pivots):
        vec = vec / vec[pivots[0]]
    vec = np.where(np.abs(vec.real) < _PIVOT_TOL, 0.0, vec.real) + 1j * np.where(
        np.abs(vec.imag) < _PIVOT_TOL, 0.0, vec.imag)
    norm = np.linalg.norm(vec)
    return vec / norm if norm > 0 else vec


def eigenvalue_decomposition(A, discrete=1, delta=STABILITY_TOL):
    """
    Compute and classify eigenvalues and eigenvectors of a matrix into stable,
    unstable, and center subspaces.

    Parameters
    ----------
    A : ndarray
        Square matrix to analyze
    discrete : int, optional
        Classification mode:
        * 0: continuous-time system (classify by real part sign)
        * 1: discrete-time system, e.g. a monodromy matrix (classify by
          magnitude relative to 1). Default.
    delta : float, optional
        Tolerance for classification

    Returns
    -------
    tuple
        (sn, un, cn, Ws, Wu, Wc) containing:
        - sn: stable eigenvalues
        - un: unstable eigenvalues
        - cn: center eigenvalues
        - Ws: eigenvectors spanning stable subspace (as columns)
        - Wu: eigenvectors spanning unstable subspace
        - Wc: eigenvectors spanning center subspace
    """
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {A.shape}")

    eigvals, eigvecs = np.linalg.eig(A)
    eigvals = np.array([_zero_small_imag_part(ev) for ev in eigvals])

    sn, un, cn = [], [], []
    Ws_list, Wu_list, Wc_list = [], [], []

    for k in range(len(eigvals)):
        val = eigvals[k]
        vec = _canonical_vector(eigvecs[:, k])

        if discrete == 1:
            mag = abs(val)
            if mag < 1 - delta:
                sn.append(val)
                Ws_list.append(vec)
            elif mag > 1 + delta:
                un.append(val)
                Wu_list.append(vec)
            else:
                cn.append(val)
                Wc_list.append(vec)
        else:
            if val.real < -delta:
                sn.append(val)
                Ws_list.append(vec)
            elif val.real > +delta:
                un.append(val)
                Wu_list.append(vec)
            else:
                cn.append(val)
                Wc_list.append(vec)

    n = A.shape[0]
    sn = np.array(sn, dtype=np.complex128)
    un = np.array(un, dtype=np.complex128)
    cn = np.array(cn, dtype=np.complex128)

    Ws = np.column_stack(Ws_list) if Ws_list else np.zeros((n, 0), dtype=np.complex128)
    Wu = np.column_stack(Wu_list) if Wu_list else np.zeros((n, 0), dtype=np.complex128)
    Wc = np.column_stack(Wc_list) if Wc_list else np.zeros((n, 0), dtype=np.complex128)

    return sn, un, cn, Ws, Wu, Wc


def libration_stability_analysis(mu, L_i, delta=STABILITY_TOL):
    """
    Analyze the linear stability of a libration point.

    Parameters
    ----------
    mu : float
        Mass parameter of the CR3BP system
    L_i : int
        Libration point index (1-5)
    delta : float, optional
        Tolerance for classification

    Returns
    -------
    tuple
        (sn, un, cn, Ws, Wu, Wc), see :func:`eigenvalue_decomposition`
        in continuous-time mode
    """
    x, y, z = get_lagrange_point(mu, L_i)
    A = jacobian_crtbp(x, y, z, mu)
    return eigenvalue_decomposition(A, discrete=0, delta=delta)


def _select_eigenpair(monodromy, unstable, stability_tol, tie_tol, imag_tol):
    M = np.asarray(monodromy, dtype=np.float64)
    if M.shape != (6, 6):
        raise ValueError(f"Expected a 6x6 monodromy matrix, got shape {M.shape}")
    if not np.all(np.isfinite(M)):
        raise ValueError("Monodromy matrix contains non-finite entries")

    eigvals, eigvecs = np.linalg.eig(M)
    mags = np.abs(eigvals)
    is_real = np.abs(eigvals.imag) <= imag_tol * np.maximum(1.0, mags)

    if unstable:
        candidates = np.flatnonzero(is_real & (mags > 1.0 + stability_tol))
    else:
        candidates = np.flatnonzero(is_real & (mags < 1.0 - stability_tol))

    if len(candidates) == 0:
        kind = "unstable" if unstable else "stable"
        raise DegenerateOrbitError(
            f"No real {kind} eigenvalue outside 1 +/- {stability_tol:g}; "
            f"|lambda| = {np.array2string(np.sort(mags), precision=8)}",
            eigenvalues=eigvals,
        )

    if unstable:
        extreme = mags[candidates].max()
        tied = candidates[mags[candidates] >= extreme * (1.0 - tie_tol)]
    else:
        extreme = mags[candidates].min()
        tied = candidates[mags[candidates] <= extreme * (1.0 + tie_tol)]
    if len(tied) > 1:
        logger.debug(f"Eigenvalues {eigvals[tied]} tied within {tie_tol:g}, taking index {tied.min()}")

    k = int(tied.min())
    vector = _canonical_vector(eigvecs[:, k]).real
    vector = vector / np.linalg.norm(vector)
    return Eigenpair(value=eigvals[k].real, vector=vector, index=k)


def unstable_eigenpair(monodromy, stability_tol=STABILITY_TOL, tie_tol=EIGEN_TIE_TOL, imag_tol=IMAG_TOL):
    """
    Real eigenpair of largest magnitude of a monodromy matrix.

    Raises
    ------
    DegenerateOrbitError
        If no real eigenvalue has magnitude above ``1 + stability_tol``.
    """
    return _select_eigenpair(monodromy, True, stability_tol, tie_tol, imag_tol)


def stable_eigenpair(monodromy, stability_tol=STABILITY_TOL, tie_tol=EIGEN_TIE_TOL, imag_tol=IMAG_TOL):
    """
    Real eigenpair of smallest magnitude of a monodromy matrix.

    Raises
    ------
    DegenerateOrbitError
        If no real eigenvalue has magnitude below ``1 - stability_tol``.
    """
    return _select_eigenpair(monodromy, False, stability_tol, tie_tol, imag_tol)


def _perturb(state, stm, eigenpair, eps):
    state = np.asarray(state, dtype=np.float64)
    stm = np.asarray(stm, dtype=np.float64)
    if state.shape != (6,):
        raise ValueError(f"Expected a state of shape (6,), got {state.shape}")
    if stm.shape != (6, 6):
        raise ValueError(f"Expected a 6x6 STM, got shape {stm.shape}")

    direction = stm @ eigenpair.vector
    norm = np.linalg.norm(direction[:3])
    if norm < _PIVOT_TOL:
        logger.warning("Transported eigenvector has no position component; "
                       "normalising the full 6-vector instead")
        norm = np.linalg.norm(direction)
        if norm < _PIVOT_TOL:
            raise DegenerateOrbitError("Transported eigenvector vanishes at this sample")
    direction = direction / norm

    return PerturbedInitialCondition(
        state=state + eps * direction,
        source=state,
        direction=direction,
        eigenvalue=eigenpair.value,
        eps=eps,
    )


def diverge(state, stm, monodromy, eps=DEFAULT_EPS, eigenpair=None):
    """
    Displace a point of a periodic orbit onto its unstable manifold.

    Parameters
    ----------
    state : array_like
        State on the orbit at the sample time
    stm : array_like
        6x6 STM from the orbit's initial state to the sample
    monodromy : array_like
        6x6 monodromy matrix of the orbit
    eps : float, optional
        Signed position offset; the sign selects the branch
    eigenpair : Eigenpair, optional
        Pre-selected unstable eigenpair of ``monodromy``, to avoid repeating
        the decomposition for every sample of the same orbit

    Returns
    -------
    PerturbedInitialCondition
    """
    if eigenpair is None:
        eigenpair = unstable_eigenpair(monodromy)
    return _perturb(state, stm, eigenpair, eps)


def converge(state, stm, monodromy, eps=DEFAULT_EPS, eigenpair=None):
    """
    Displace a point of a periodic orbit onto its stable manifold.

    Same as :func:`diverge` with the stable eigenpair (smallest magnitude).
    """
    if eigenpair is None:
        eigenpair = stable_eigenpair(monodromy)
    return _perturb(state, stm, eigenpair, eps)
