import logging

import numpy as np

from cr3bp_manifolds.algorithms.core.lagrange_points import get_lagrange_point
from cr3bp_manifolds.algorithms.manifolds.manifold import compute_manifold
from cr3bp_manifolds.algorithms.orbits import CatalogOracle, PeriodicOrbit
from cr3bp_manifolds.logging_config import setup_logging
from cr3bp_manifolds.utils.constants import Constants
from cr3bp_manifolds.utils.crtbp import si_time, system_mass_parameter

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    setup_logging()

    def summarize(label, bundle, mu):
        if not bundle.success_count:
            logger.warning(f"{label}: no strand completed")
            return
        x_l1 = get_lagrange_point(mu, 1)[0]
        finals = np.array([traj.final_state for traj in bundle])
        logger.info(f"{label}: {bundle.success_count}/{bundle.attempt_count} strands, "
                    f"final x in [{finals[:, 0].min():.4f}, {finals[:, 0].max():.4f}] (L1 at x={x_l1:.4f})")
        for failure in bundle.failures:
            logger.info(f"  strand {failure.index} stopped at t={failure.t_reached}")

    earth_mass = Constants.get_mass("earth")
    moon_mass = Constants.get_mass("moon")
    earth_moon_distance = Constants.get_orbital_distance("earth", "moon")

    mu = 0.0121505856
    logger.info(f"Earth-Moon mass parameter from catalogued masses: {system_mass_parameter('earth', 'moon'):.10f}")

    lyapunov = PeriodicOrbit(
        mu,
        np.array([0.843995693043320, 0, 0, 0, -0.0565838306397683, 0]),
        2.70081224387894,
        family="lyapunov",
        libration_point=1,
    )
    oracle = CatalogOracle([lyapunov])
    orbit = oracle.find_periodic_orbit(mu, "lyapunov")

    period_days = si_time(orbit.period, earth_mass, moon_mass, earth_moon_distance) / 86400.0
    logger.info(f"{orbit!r}")
    logger.info(f"Period: {period_days:.2f} days, Jacobi constant: {orbit.jacobi_constant:.8f}")

    unstable = compute_manifold(orbit, stable=False, eps=-1e-7, saveat=orbit.period / 10,
                                strand_saveat=0.01, show_progress=True)
    stable = compute_manifold(orbit, stable=True, eps=1e-7, saveat=orbit.period / 10,
                              strand_saveat=0.01, show_progress=True)

    summarize("Unstable manifold", unstable, mu)
    summarize("Stable manifold", stable, mu)
