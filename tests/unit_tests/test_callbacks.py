import pytest

from eadybgc.core.callbacks import (
    Callback,
    Callsite,
    IterationInterval,
    TimeInterval,
    run_callbacks,
)
from eadybgc.core.model_state import Clock
from eadybgc.physics.sanitise import zero_negative_tracers
from setup_test_state import setup_state


def test_iteration_interval():
    schedule = IterationInterval(3)
    fired = [schedule(Clock(iteration=i)) for i in range(7)]
    assert fired == [True, False, False, True, False, False, True]


def test_time_interval_skips_missed_actuations():
    schedule = TimeInterval(10.0)
    schedule.initialise(Clock(time=5.0))
    assert schedule(Clock(time=5.0))
    assert not schedule(Clock(time=14.0))
    # 15 and 25 have both passed, but the schedule fires only once
    assert schedule(Clock(time=27.0))
    assert not schedule(Clock(time=34.0))
    assert schedule(Clock(time=35.0))


def test_time_interval_next_actuation_time():
    schedule = TimeInterval(10.0)
    schedule.initialise(Clock(time=5.0))
    assert schedule.next_actuation_time == 5.0
    schedule(Clock(time=5.0))
    assert schedule.next_actuation_time == 15.0
    schedule(Clock(time=27.0))
    assert schedule.next_actuation_time == 35.0


def test_bad_intervals():
    with pytest.raises(ValueError):
        IterationInterval(0)
    with pytest.raises(ValueError):
        TimeInterval(-1.0)


def test_callback_defaults():
    callback = Callback(zero_negative_tracers)
    assert callback.name == "zero_negative_tracers"
    assert callback.callsite is Callsite.TIME_STEP
    assert isinstance(callback.schedule, IterationInterval)


def test_callbacks_run_in_order_at_their_callsite():
    calls = []
    callbacks = [
        Callback(lambda state: calls.append("first"), callsite=Callsite.UPDATE_STATE),
        Callback(lambda state: calls.append("tendency"), callsite=Callsite.TENDENCY),
        Callback(lambda state: calls.append("second"), callsite=Callsite.UPDATE_STATE),
        Callback(
            lambda state: calls.append("sparse"),
            schedule=IterationInterval(2),
            callsite=Callsite.UPDATE_STATE,
        ),
    ]
    state = setup_state()
    state.clock.iteration = 1
    run_callbacks(callbacks, Callsite.UPDATE_STATE, state)
    assert calls == ["first", "second"]
