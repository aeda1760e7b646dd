import numpy as np

from eadybgc.core.errors import SolverDivergenceError

# Time units, in seconds
second = 1.0
minute = 60.0
minutes = minute
hour = 3600.0
hours = hour
day = 86400.0
days = day


def prettytime(seconds):
    """Format a duration in seconds using the largest sensible unit."""
    if not np.isfinite(seconds):
        return str(seconds)
    magnitude = abs(seconds)
    if magnitude < 1e-6:
        return f"{seconds:.3f} seconds" if magnitude else "0 seconds"
    if magnitude < minute:
        return f"{seconds:.3f} seconds"
    if magnitude < hour:
        return f"{seconds / minute:.3f} minutes"
    if magnitude < day:
        return f"{seconds / hour:.3f} hours"
    return f"{seconds / day:.3f} days"


def calc_tracer_mass(state, names=None):
    """
    Total content of each tracer, i.e. the sum over all cells multiplied by
    the cell volume, to check for conservation.

    Parameters
    ----------
    state : eadybgc.core.model_state.SimulationState
        Model state.
    names : sequence of str, optional
        Tracers to include. Defaults to every tracer.

    Returns
    -------
    dict
        Tracer name -> total content.
    """
    grid = state.grid
    volume = grid.dx * grid.dy * grid.dz
    if names is None:
        names = state.tracer_names
    return {name: float(np.sum(state.tracers[name]) * volume) for name in names}


def check_state_correctness(state):
    """
    Sanity check that the model state is still usable. Velocities and tracers
    must all be finite; tendencies and negative concentrations are handled by
    eadybgc.physics.sanitise, so anything non-finite left here means the run
    has diverged.

    Raises
    ------
    SolverDivergenceError
        If any velocity or tracer value is NaN or infinite.
    """
    for name, field in state.fields().items():
        if not np.all(np.isfinite(field)):
            raise SolverDivergenceError(
                "eadybgc.core.utils.check_state_correctness: non-finite values"
                f" found in <{name}> at iteration {state.clock.iteration},"
                f" time {prettytime(state.clock.time)}"
            )
