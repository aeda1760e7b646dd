"""
Engines that advance a SimulationState by one time step.

An engine owns the discretisation: given a state and a step ``dt``, it
computes tendencies, integrates them, and updates the clock. The Phase Runner
(eadybgc.core.driver.run_phase) only talks to engines through
``Engine.advance``, so a full CFD engine can be plugged in by subclassing
``Engine``.

ReferenceEngine is the engine shipped with EADYBGC. It integrates only the
cell-local source terms of the tracer equations (forcing and biogeochemical
reactions), with no advection, diffusion or pressure solve, using the
three-stage low-storage Runge-Kutta scheme of Le and Moin (1991).
"""

from eadybgc.core.callbacks import Callsite, run_callbacks

# Stage coefficients of the low-storage RK3 scheme
RK3_GAMMA = (8 / 15, 5 / 12, 3 / 4)
RK3_ZETA = (0.0, -17 / 60, -5 / 12)
# fraction of the step at the start of each stage
RK3_STAGE_TIMES = (0.0, 8 / 15, 2 / 3)


class Engine:
    """
    Base class for engines.

    Subclasses must implement ``advance(state, dt, callbacks)``, which must:

    - run the callbacks registered at Callsite.TENDENCY after every
      evaluation of the tendencies, and before they are used;
    - run the callbacks registered at Callsite.UPDATE_STATE after every
      update of the prognostic fields;
    - advance ``state.clock.time`` by ``dt`` and ``state.clock.iteration`` by
      one;
    - raise on any unrecoverable numerical failure.

    Engines that advect the fields add ``state.background_fields`` (e.g. the
    Eady thermal wind and background buoyancy) to the prognostic velocities
    and tracers.
    """

    def advance(self, state, dt, callbacks=()):
        raise NotImplementedError


class ReferenceEngine(Engine):
    """
    Parameters
    ----------
    forcing : dict, optional
        Forcing functions keyed by tracer name, each called as
        ``forcing(x, y, z, t, field)``,
        e.g. eadybgc.physics.forcing.Relaxation.
    """

    def __init__(self, forcing=None):
        self.forcing = dict(forcing or {})
        self._nodes = None
        self._nodes_grid = None
        self._previous_tendencies = {}

    def nodes(self, grid):
        if self._nodes_grid is not grid:
            self._nodes = grid.nodes()
            self._nodes_grid = grid
        return self._nodes

    def compute_tendencies(self, state, t):
        """Fill ``state.tendencies`` with the source terms at time ``t``."""
        nodes = self.nodes(state.grid)
        x, y, z = nodes
        reactions = {}
        if state.biogeochemistry is not None:
            reactions = state.biogeochemistry.reaction_tendencies(
                nodes, t, state.tracers
            )
        for name, tendency in state.tendencies.items():
            tendency.fill(0.0)
            if name in self.forcing:
                tendency += self.forcing[name](x, y, z, t, state.tracers[name])
            if name in reactions:
                tendency += reactions[name]

    def advance(self, state, dt, callbacks=()):
        unknown = set(self.forcing) - set(state.tracers)
        if unknown:
            raise KeyError(
                "eadybgc.physics.timestep.ReferenceEngine.advance: forcing"
                f" given for tracers {sorted(unknown)} that the model does"
                " not carry"
            )
        start_time = state.clock.time
        for stage, (gamma, zeta, stage_time) in enumerate(
            zip(RK3_GAMMA, RK3_ZETA, RK3_STAGE_TIMES)
        ):
            state.clock.stage = stage
            self.compute_tendencies(state, start_time + stage_time * dt)
            run_callbacks(callbacks, Callsite.TENDENCY, state)
            for name, tracer in state.tracers.items():
                tendency = state.tendencies[name]
                tracer += gamma * dt * tendency
                if stage > 0:
                    tracer += zeta * dt * self._previous_tendencies[name]
                self._previous_tendencies[name] = tendency.copy()
            run_callbacks(callbacks, Callsite.UPDATE_STATE, state)
        state.clock.stage = 0
        state.clock.time = start_time + dt
        state.clock.iteration += 1
        return state
