"""
Classes holding the state of a simulation: the clock, and the set of fields
(velocities, tracers and tendency buffers) defined on a Grid.
"""

import numpy as np

VELOCITY_NAMES = ("u", "v", "w")


class Clock:
    """Simulation time [s], iteration count, and current RK substage."""

    def __init__(self, time=0.0, iteration=0, stage=0):
        self.time = float(time)
        self.iteration = int(iteration)
        self.stage = int(stage)

    def __repr__(self):
        return (
            f"Clock(time={self.time}, iteration={self.iteration},"
            f" stage={self.stage})"
        )


class SimulationState:
    """
    Fields, clock and model components for a single simulation phase.

    Parameters
    ----------
    grid : eadybgc.core.model_grid.Grid
        Grid on which every field is defined.
    tracer_names : sequence of str
        Names of the tracers carried by the model. Each gets a field and a
        tendency buffer.
    biogeochemistry : eadybgc.physics.biogeochemistry.Biogeochemistry, optional
        Biogeochemical model configuration.
    particles : eadybgc.physics.particles.KelpParticles, optional
        Particle set advanced alongside the fields.
    dt : float, optional
        Current time step [s].
    background_fields : dict, optional
        Background fields keyed by the name of the field they underlie, each
        a function ``f(x, y, z, t)``, e.g.
        eadybgc.physics.background.EadyBuoyancy for ``b``. Engines that
        advect add them to the prognostic fields.
    """

    def __init__(
        self,
        grid,
        tracer_names,
        biogeochemistry=None,
        particles=None,
        dt=0.0,
        background_fields=None,
    ):
        self.grid = grid
        self.clock = Clock()
        self.velocities = {name: grid.zeros() for name in VELOCITY_NAMES}
        self.tracers = {name: grid.zeros() for name in tracer_names}
        self.tendencies = {name: grid.zeros() for name in tracer_names}
        self.biogeochemistry = biogeochemistry
        self.particles = particles
        self.dt = float(dt)
        self.background_fields = dict(background_fields or {})

    @property
    def tracer_names(self):
        return tuple(self.tracers.keys())

    def field(self, name):
        """Look up a velocity component or tracer by name."""
        if name in self.velocities:
            return self.velocities[name]
        if name in self.tracers:
            return self.tracers[name]
        raise KeyError(
            f"eadybgc.core.model_state.SimulationState.field: no field named"
            f" <{name}>. Available fields are"
            f" {list(self.velocities) + list(self.tracers)}"
        )

    def fields(self):
        """All velocity and tracer fields, velocities first."""
        merged = dict(self.velocities)
        merged.update(self.tracers)
        return merged

    def set(self, **kwargs):
        """
        Set fields from arrays, scalars, or functions of (x, y, z) evaluated
        at the cell centres.
        """
        x, y, z = self.grid.nodes()
        for name, value in kwargs.items():
            target = self.field(name)
            if callable(value):
                value = value(x, y, z)
            target[...] = np.broadcast_to(value, target.shape)
