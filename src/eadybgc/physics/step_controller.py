"""
Adaptive time step control. The time step is adjusted at every iteration so
that the advective CFL number stays close to a target value, while limiting
how quickly the step can change from one iteration to the next.
"""

import numpy as np


def advective_cfl(state, dt):
    """
    Advective CFL number of the current velocity field for a step ``dt``,
    i.e. ``dt * max(|u|/dx + |v|/dy + |w|/dz)`` over all cells.
    """
    grid = state.grid
    u = state.velocities["u"]
    v = state.velocities["v"]
    w = state.velocities["w"]
    inverse_timescale = (
        np.abs(u) / grid.dx + np.abs(v) / grid.dy + np.abs(w) / grid.dz
    )
    return dt * float(np.max(inverse_timescale))


# pylint: disable=too-many-arguments, too-many-positional-arguments
def next_step(
    current_step,
    measured_cfl,
    target_cfl,
    max_change,
    max_step,
    min_change=None,
    min_step=0.0,
):
    """
    Compute a new time step from the current one.

    Parameters
    ----------
    current_step : float
        Time step used for the last iteration [s].
    measured_cfl : float
        CFL number measured with ``current_step``.
    target_cfl : float
        CFL number we want to run at.
    max_change : float
        Largest factor by which the step may grow in one call. Must be > 1.
    max_step : float
        Ceiling on the step [s].
    min_change : float, optional
        Largest factor by which the step may shrink in one call.
        Defaults to ``1 / max_change``.
    min_step : float, optional
        Floor on the step [s]. Default 0.

    Returns
    -------
    float
        The new time step [s].
    """
    if min_change is None:
        min_change = 1 / max_change
    # A quiescent flow (CFL ~ 0) would send the ratio to infinity, so cap it
    # at the largest allowed growth instead of dividing.
    if not np.isfinite(measured_cfl) or measured_cfl <= target_cfl / max_change:
        ratio = max_change
    else:
        ratio = target_cfl / measured_cfl
    ratio = min(max(ratio, min_change), max_change)
    new_step = current_step * ratio
    return float(min(max(new_step, min_step), max_step))


# pylint: enable=too-many-arguments, too-many-positional-arguments


class TimeStepWizard:
    """
    Holds the step control parameters for a phase and computes the next step
    from the state.

    Parameters
    ----------
    cfl : float
        Target advective CFL number.
    max_change : float
        Maximum growth factor per iteration.
    max_dt : float
        Ceiling on the time step [s]. Default is no ceiling.
    min_change : float, optional
        Maximum shrink factor per iteration, default ``1 / max_change``.
    min_dt : float, optional
        Floor on the time step [s].
    """

    def __init__(
        self, cfl=0.2, max_change=1.1, max_dt=np.inf, min_change=None, min_dt=0.0
    ):
        if max_change <= 1:
            raise ValueError(
                "eadybgc.physics.step_controller.TimeStepWizard: max_change"
                f" must be greater than 1, not {max_change}"
            )
        if min_change is not None and not 0 < min_change <= 1:
            raise ValueError(
                "eadybgc.physics.step_controller.TimeStepWizard: min_change"
                f" must be in (0, 1], not {min_change}"
            )
        if not cfl > 0:
            raise ValueError(
                "eadybgc.physics.step_controller.TimeStepWizard: cfl must be"
                f" positive, not {cfl}"
            )
        self.cfl = cfl
        self.max_change = max_change
        self.min_change = min_change
        self.max_dt = max_dt
        self.min_dt = min_dt

    def __call__(self, state):
        """Return the step to use for the next iteration of ``state``."""
        measured = advective_cfl(state, state.dt)
        return next_step(
            state.dt,
            measured,
            self.cfl,
            self.max_change,
            self.max_dt,
            min_change=self.min_change,
            min_step=self.min_dt,
        )
