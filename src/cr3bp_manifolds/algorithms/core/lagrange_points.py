"""
Computation of Lagrange (libration) points in the CR3BP.

This module provides functions for calculating the positions of the five
Lagrange points in the Circular Restricted Three-Body Problem (CR3BP), and
the distance of the collinear points to their nearest primary, which sets the
length scale of the local expansions used to seed libration point orbits.
"""

import mpmath as mp
import numpy as np

# Set mpmath precision to 50 digits for root finding
mp.mp.dps = 50


def lagrange_point_locations(mu):
    """
    Compute all five libration points in the CR3BP.

    Parameters
    ----------
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)

    Returns
    -------
    tuple
        A tuple containing the positions of L1, L2, L3, L4, and L5 as ndarrays
    """
    return tuple(get_lagrange_point(mu, i) for i in range(1, 6))


def get_lagrange_point(mu, point_index):
    """
    Get the position of a specific Lagrange point.

    Parameters
    ----------
    mu : float
        Mass parameter of the CR3BP system (ratio of smaller to total mass)
    point_index : int
        Lagrange point index (1-5)

    Returns
    -------
    ndarray
        3D vector [x, y, z] giving the position of the specified Lagrange point
    """
    if point_index == 1:
        return _l1(mu)
    elif point_index == 2:
        return _l2(mu)
    elif point_index == 3:
        return _l3(mu)
    elif point_index == 4:
        return _l4(mu)
    elif point_index == 5:
        return _l5(mu)
    else:
        raise ValueError("Invalid Lagrange point index. Must be 1-5.")


def collinear_gamma(mu, point_index):
    """
    Distance from a collinear libration point to its nearest primary.

    L1 and L2 are measured from the smaller primary at (1-mu, 0, 0), L3 from
    the larger one at (-mu, 0, 0).

    Parameters
    ----------
    mu : float
        Mass parameter of the CR3BP system
    point_index : {1, 2, 3}
        Collinear libration point index

    Returns
    -------
    float
        The distance gamma (non-dimensional)
    """
    if point_index not in (1, 2, 3):
        raise ValueError("gamma is only defined for the collinear points L1, L2 and L3")

    x = get_lagrange_point(mu, point_index)[0]
    if point_index == 3:
        return float(abs(x + mu))
    return float(abs(x - (1 - mu)))


# dOmega/dx is monotonic between consecutive singularities, so each
# collinear point is the unique root of a bracketing interval.
def _l1(mu):
    x = mp.findroot(lambda x: _dOmega_dx(x, mu), (-mu + 1e-3, 1 - mu - 1e-3), solver='anderson')
    return np.array([float(x), 0, 0], dtype=np.float64)


def _l2(mu):
    x = mp.findroot(lambda x: _dOmega_dx(x, mu), (1 - mu + 1e-3, 2.0), solver='anderson')
    return np.array([float(x), 0, 0], dtype=np.float64)


def _l3(mu):
    x = mp.findroot(lambda x: _dOmega_dx(x, mu), (-2.0, -mu - 1e-3), solver='anderson')
    return np.array([float(x), 0, 0], dtype=np.float64)


def _l4(mu):
    return np.array([1 / 2 - mu, np.sqrt(3) / 2, 0], dtype=np.float64)


def _l5(mu):
    return np.array([1 / 2 - mu, -np.sqrt(3) / 2, 0], dtype=np.float64)


def _dOmega_dx(x, mu):
    """
    Derivative of the effective potential along the x-axis.

    The collinear libration points are the zeros of this function.
    """
    r1 = abs(x + mu)
    r2 = abs(x - (1 - mu))
    return x - (1 - mu) * (x + mu) / (r1**3) - mu * (x - (1 - mu)) / (r2**3)
