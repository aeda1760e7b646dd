"""
Kelp (Saccharina latissima) particles. Each particle is a point agent with a
position and three state variables: frond area A [dm^2], and nitrogen and
carbon reserves N and C [g / g structural mass].

The growth physiology is external: it is supplied as ``growth_model``, called
as ``growth_model(particles, state, dt)``. After it, the user-supplied
``custom_dynamics(particles, state, biogeochemistry, dt)`` hook is called every
step, e.g. to correct particle positions.
"""

import numpy as np

STATE_VARIABLES = ("A", "N", "C")
POSITION_VARIABLES = ("x", "y", "z")


class KelpParticles:
    """
    Parameters
    ----------
    x, y, z : array_like
        Initial particle positions [m]. All must have the same length, which
        fixes the number of particles.
    A, N, C : array_like
        Initial frond area and reserves, one value per particle.
    latitude : float
        Latitude of the kelp farm [degrees N].
    scalefactor : float
        Number of individuals each particle represents.
    prescribed_temperature : callable
        Temperature seen by the kelp, ``f(x, y, z, t)`` [degC].
    growth_model : callable, optional
        External growth physiology.
    custom_dynamics : callable, optional
        Hook called after the growth model at every step.
    """

    # pylint: disable=too-many-arguments, invalid-name
    def __init__(
        self,
        x,
        y,
        z,
        A,
        N,
        C,
        latitude=57.5,
        scalefactor=1.0,
        prescribed_temperature=None,
        growth_model=None,
        custom_dynamics=None,
    ):
        self.x = np.array(x, dtype=np.float64)
        self.y = np.array(y, dtype=np.float64)
        self.z = np.array(z, dtype=np.float64)
        self.A = np.array(A, dtype=np.float64)
        self.N = np.array(N, dtype=np.float64)
        self.C = np.array(C, dtype=np.float64)
        lengths = {
            name: len(getattr(self, name)) for name in self.variables()
        }
        if len(set(lengths.values())) != 1:
            raise ValueError(
                "eadybgc.physics.particles.KelpParticles: all particle"
                f" variables must have the same length, got {lengths}"
            )
        self.latitude = latitude
        self.scalefactor = scalefactor
        self.prescribed_temperature = prescribed_temperature
        self.growth_model = growth_model
        self.custom_dynamics = custom_dynamics

    # pylint: enable=too-many-arguments, invalid-name

    def __len__(self):
        return len(self.x)

    @staticmethod
    def variables():
        return POSITION_VARIABLES + STATE_VARIABLES

    def advance(self, state, dt):
        """Advance the particles over one time step of length ``dt``."""
        if self.growth_model is not None:
            self.growth_model(self, state, dt)
        if self.custom_dynamics is not None:
            self.custom_dynamics(self, state, state.biogeochemistry, dt)


class ThermalWindDrift:
    """
    Position correction that moves every particle in y with the background
    thermal wind at the surface, ``y += V(0, 0, 0, t) * dt``.

    Parameters
    ----------
    background_velocity : callable
        Background velocity ``V(x, y, z, t)``,
        e.g. eadybgc.physics.background.EadyVelocity.
    """

    def __init__(self, background_velocity):
        self.background_velocity = background_velocity

    def __call__(self, particles, state, biogeochemistry, dt):
        velocity = self.background_velocity(0.0, 0.0, 0.0, state.clock.time)
        particles.y += velocity * dt


def square_array(centre_x, centre_y, spacing=100.0, per_side=5, depth=0.0):
    """
    Positions of a ``per_side`` x ``per_side`` square array of particles,
    centred on (centre_x, centre_y) with ``spacing`` metres between them.

    Returns
    -------
    x, y, z : np.ndarray
        Particle positions, each of length ``per_side**2``.
    """
    offsets = (np.arange(per_side) - (per_side - 1) / 2) * spacing
    # x varies fastest, matching a column-major flattening of the array
    x = np.tile(offsets, per_side) + centre_x
    y = np.repeat(offsets, per_side) + centre_y
    z = np.full(per_side**2, depth, dtype=np.float64)
    return x, y, z
