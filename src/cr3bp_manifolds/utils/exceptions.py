"""
Custom exceptions for the CR3BP manifold library.
"""

import numpy as np


class CR3BPError(Exception):
    """Base exception for CR3BP errors.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class DegenerateStateError(CR3BPError):
    """Raised when a state coincides with one of the primaries.

    The CR3BP vector field is singular at the primaries, so no trajectory
    can be propagated from (or through) such a state.

    Parameters
    ----------
    message : str
        The error message.
    state : numpy.ndarray, optional
        The offending state.
    body : int, optional
        Index of the primary (1 for the larger, 2 for the smaller).
    distance : float, optional
        Distance between the state and that primary.
    """

    def __init__(self, message: str, state=None, body=None, distance=None):
        super().__init__(message)
        self.state = None if state is None else np.array(state, dtype=np.float64)
        self.body = body
        self.distance = distance


class IntegrationFailure(CR3BPError):
    """Raised when the integrator cannot complete the requested time span.

    Parameters
    ----------
    message : str
        The error message.
    t_reached : float
        Furthest time the solver reached with an accepted step.
    last_state : numpy.ndarray
        Last accepted state, for diagnostics.
    """

    def __init__(self, message: str, t_reached=None, last_state=None):
        super().__init__(message)
        self.t_reached = t_reached
        self.last_state = None if last_state is None else np.array(last_state, dtype=np.float64)


class DegenerateOrbitError(CR3BPError):
    """Raised when a monodromy matrix has no eigenvalue distinctly off the unit circle.

    Parameters
    ----------
    message : str
        The error message.
    eigenvalues : numpy.ndarray, optional
        Eigenvalues of the monodromy matrix.
    """

    def __init__(self, message: str, eigenvalues=None):
        super().__init__(message)
        self.eigenvalues = eigenvalues
