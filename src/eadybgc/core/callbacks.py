"""
Callbacks and the schedules that determine when they are run.

A callback is a (schedule, callsite, handler, name) tuple. The Phase Runner keeps
them in an ordered list, and at each callsite runs every callback registered
there whose schedule fires, in the order they were registered.
"""

from collections import namedtuple
from enum import Enum


class Callsite(Enum):
    """Points in the step cycle at which callbacks can be run."""

    # after the tendencies have been computed, before the state is updated
    TENDENCY = "tendency"
    # after each update of the prognostic state
    UPDATE_STATE = "update_state"
    # after a complete time step
    TIME_STEP = "time_step"


class IterationInterval:
    """Fire every ``interval`` iterations (including iteration 0)."""

    def __init__(self, interval):
        if int(interval) < 1:
            raise ValueError(
                "eadybgc.core.callbacks.IterationInterval: interval must be"
                f" >= 1, not {interval}"
            )
        self.interval = int(interval)

    def __call__(self, clock):
        return clock.iteration % self.interval == 0

    def initialise(self, clock):
        pass

    def __repr__(self):
        return f"IterationInterval({self.interval})"


class TimeInterval:
    """
    Fire whenever the clock reaches or passes the next actuation time.
    Actuation times are spaced ``interval`` seconds apart, starting from the
    time at which the schedule is initialised.
    """

    def __init__(self, interval):
        if not interval > 0:
            raise ValueError(
                "eadybgc.core.callbacks.TimeInterval: interval must be"
                f" positive, not {interval}"
            )
        self.interval = float(interval)
        self.first_actuation_time = 0.0
        self.actuations = 0

    def initialise(self, clock):
        self.first_actuation_time = clock.time
        self.actuations = 0

    @property
    def next_actuation_time(self):
        """Time [s] at which the schedule will next fire."""
        return self.first_actuation_time + self.actuations * self.interval

    def __call__(self, clock):
        if clock.time >= self.next_actuation_time:
            # skip any actuation times that were stepped over entirely
            elapsed = clock.time - self.first_actuation_time
            self.actuations = max(
                self.actuations + 1, int(elapsed // self.interval) + 1
            )
            return True
        return False

    def __repr__(self):
        return f"TimeInterval({self.interval})"


class Callback(
    namedtuple("Callback", ["schedule", "callsite", "handler", "name"])
):
    """
    A side-effecting function ``handler(state)`` run at ``callsite`` whenever
    ``schedule(clock)`` is True.
    """

    __slots__ = ()

    def __new__(
        cls, handler, schedule=None, callsite=Callsite.TIME_STEP, name=None
    ):
        if schedule is None:
            schedule = IterationInterval(1)
        if name is None:
            name = getattr(handler, "__name__", type(handler).__name__)
        return super().__new__(cls, schedule, callsite, handler, name)


def run_callbacks(callbacks, callsite, state):
    """
    Run, in order, every callback registered at ``callsite`` whose schedule
    fires for the current clock.
    """
    for callback in callbacks:
        if callback.callsite is callsite and callback.schedule(state.clock):
            callback.handler(state)


def initialise_schedules(callbacks, clock):
    for callback in callbacks:
        callback.schedule.initialise(clock)
