"""
Background state of the Eady problem: a uniform horizontal buoyancy gradient
M^2 in x, in thermal wind balance with a vertically sheared along-front
velocity, on top of a uniform stratification N^2.

    V(x, y, z, t) = M^2 / f * (z - Lz / 2)
    B(x, y, z, t) = M^2 * x + N^2 * (z - Lz / 2)

Each background field is a function object carrying its parameters
explicitly, rather than closing over module-level constants.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class BackgroundParameters:
    """
    Parameters
    ----------
    M2 : float
        Horizontal buoyancy gradient (geostrophic shear) [s^-2].
    f : float
        Coriolis parameter [s^-1].
    N : float
        Buoyancy frequency [s^-1].
    Lz : float
        Domain depth [m].
    """

    M2: float = 1e-8
    f: float = 1e-4
    N: float = 1e-4
    Lz: float = 100.0


class EadyVelocity:
    """Thermal wind V(x, y, z, t) = M^2 / f (z - Lz / 2)."""

    def __init__(self, parameters):
        self.parameters = parameters

    def __call__(self, x, y, z, t):
        p = self.parameters
        return p.M2 / p.f * (z - p.Lz / 2)


class EadyBuoyancy:
    """Background buoyancy B(x, y, z, t) = M^2 x + N^2 (z - Lz / 2)."""

    def __init__(self, parameters):
        self.parameters = parameters

    def __call__(self, x, y, z, t):
        p = self.parameters
        return p.M2 * x + p.N**2 * (z - p.Lz / 2)
