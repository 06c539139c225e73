"""
Physical constants for CR3BP system setup.

This module contains the gravitational constant and the masses and
mean separations of the primary pairs most commonly studied with the
Circular Restricted Three-Body Problem (CR3BP). All values are in SI units
and stored as numpy float64 for consistency in numerical computations.

References
----------
Values are based on standard IAU (International Astronomical Union) and
NASA/JPL data. For detailed sources, see:
- IAU 2015 Resolution B3 (https://www.iau.org/static/resolutions/IAU2015_English.pdf)
- NASA JPL Solar System Dynamics (https://ssd.jpl.nasa.gov/)
"""

import numpy as np

# Universal physical constants
#-----------------------------

#: float: Universal gravitational constant (m^3 kg^-1 s^-2)
G = np.float64(6.67430e-11)  # m^3 kg^-1 s^-2

# Celestial body masses
#---------------------

M_sun = np.float64(1.989e30)  # kg
M_earth = np.float64(5.972e24)  # kg
M_moon = np.float64(7.348e22)  # kg
M_mars = np.float64(6.417e23)  # kg
M_phobos = np.float64(1.072e16)  # kg
M_jupiter = np.float64(1.898e27)  # kg
M_europa = np.float64(4.8e22)  # kg
M_saturn = np.float64(5.683e26)  # kg
M_titan = np.float64(1.345e23)  # kg

# Characteristic distances
#------------------------

R_earth_sun = np.float64(149.6e9)  # m
R_earth_moon = np.float64(384400e3)  # m
R_mars_phobos = np.float64(9248e3)  # m
R_sun_jupiter = np.float64(778.5e9)  # m
R_jupiter_europa = np.float64(671100e3)  # m
R_saturn_titan = np.float64(1221870e3)  # m

#: float: Earth-Moon mass ratio used for libration point orbit design
#: (ephemeris value rather than the ratio of the rounded masses above)
EARTH_MOON_MU = 0.012150584395829193


class Constants:
    """
    Lookup of body masses and primary separations by name.

    Names are case-insensitive; separations are symmetric in the pair.
    """

    _masses = {
        "sun": M_sun,
        "earth": M_earth,
        "moon": M_moon,
        "mars": M_mars,
        "phobos": M_phobos,
        "jupiter": M_jupiter,
        "europa": M_europa,
        "saturn": M_saturn,
        "titan": M_titan,
    }

    _distances = {
        frozenset(("sun", "earth")): R_earth_sun,
        frozenset(("earth", "moon")): R_earth_moon,
        frozenset(("mars", "phobos")): R_mars_phobos,
        frozenset(("sun", "jupiter")): R_sun_jupiter,
        frozenset(("jupiter", "europa")): R_jupiter_europa,
        frozenset(("saturn", "titan")): R_saturn_titan,
    }

    @classmethod
    def get_mass(cls, body):
        return cls._lookup(cls._masses, body.lower(), "mass", body)

    @classmethod
    def get_orbital_distance(cls, primary, secondary):
        key = frozenset((primary.lower(), secondary.lower()))
        return cls._lookup(cls._distances, key, "distance", f"{primary}-{secondary}")

    @staticmethod
    def _lookup(table, key, quantity, label):
        try:
            return table[key]
        except KeyError:
            raise KeyError(f"No {quantity} available for '{label}'") from None
