import numpy as np
import pytest
from numpy import testing as npt

from eadybgc.core.callbacks import Callback, TimeInterval
from eadybgc.core.driver import run_phase, sanitiser_callbacks
from eadybgc.core.errors import SolverDivergenceError
from eadybgc.core.model_output import OutputWriter, read_times
from eadybgc.core.utils import minutes
from eadybgc.physics.biogeochemistry import Biogeochemistry
from eadybgc.physics.forcing import Relaxation
from eadybgc.physics.step_controller import TimeStepWizard
from eadybgc.physics.timestep import Engine, ReferenceEngine
from setup_test_state import setup_grid, setup_state


class StepRecorder:
    def __init__(self):
        self.steps = []

    def __call__(self, state):
        self.steps.append(state.dt)


def test_two_iterations_respect_step_bounds():
    grid = setup_grid()
    state = setup_state(grid=grid, dt=15 * minutes)
    # CFL of 0.9 at a 15 minute step
    state.velocities["u"][...] = 0.9 * grid.dx / (15 * minutes)
    wizard = TimeStepWizard(cfl=0.85, max_change=1.1, max_dt=15 * minutes)
    recorder = StepRecorder()

    run_phase(
        state,
        ReferenceEngine(),
        wizard=wizard,
        callbacks=[Callback(recorder, name="recorder")],
        stop_iteration=2,
    )

    assert state.clock.iteration == 2
    # the recorder also runs once at the start of the phase
    steps = recorder.steps[1:]
    assert len(steps) == 2
    for step in steps:
        assert 15 * minutes / 1.1 <= step <= 15 * minutes
    npt.assert_almost_equal(state.clock.time, sum(steps))


def test_quiescent_flow_runs_at_ceiling():
    state = setup_state(dt=60.0)
    wizard = TimeStepWizard(cfl=0.85, max_change=1.1, max_dt=15 * minutes)
    recorder = StepRecorder()
    run_phase(
        state,
        ReferenceEngine(),
        wizard=wizard,
        callbacks=[Callback(recorder)],
        stop_iteration=40,
    )
    steps = recorder.steps[1:]
    # the step grows by at most 10% per iteration until it reaches the ceiling
    for previous, current in zip([60.0] + steps[:-1], steps):
        assert current <= previous * 1.1 + 1e-9
    assert steps[-1] == 15 * minutes


def test_last_step_lands_on_stop_time():
    state = setup_state(dt=600.0)
    run_phase(state, ReferenceEngine(), stop_time=1000.0)
    assert state.clock.time == 1000.0
    assert state.clock.iteration == 2
    # the controller's step is not changed by the shortened final step
    assert state.dt == 600.0


def test_stop_condition_required():
    with pytest.raises(ValueError):
        run_phase(setup_state(), ReferenceEngine())


def test_engine_errors_propagate():
    class FailingEngine(Engine):
        def __init__(self):
            self.calls = 0

        def advance(self, state, dt, callbacks=()):
            self.calls += 1
            raise RuntimeError("solver blew up")

    engine = FailingEngine()
    with pytest.raises(RuntimeError):
        run_phase(setup_state(), engine, stop_iteration=10)
    # no retries
    assert engine.calls == 1


def test_divergence_is_detected():
    state = setup_state()
    forcing = {"NO3": lambda x, y, z, t, field: np.full(field.shape, np.inf)}
    # without the sanitiser the infinite tendency reaches the state
    with pytest.raises(SolverDivergenceError):
        run_phase(state, ReferenceEngine(forcing=forcing), stop_iteration=1)


def test_sanitiser_keeps_tracers_finite_and_non_negative():
    def bad_reaction(x, y, z, t, tracers, biogeochemistry):
        return np.full(x.shape, np.nan)

    def sink(x, y, z, t, tracers, biogeochemistry):
        # strong enough to overshoot below zero in one step
        return -2e-3 * np.ones(x.shape)

    biogeochemistry = Biogeochemistry(
        carbonates=False, reactions={"P": bad_reaction, "Z": sink}
    )
    state = setup_state(
        tracers=("b",) + biogeochemistry.tracer_names,
        biogeochemistry=biogeochemistry,
        dt=900.0,
    )
    state.tracers["P"][...] = 0.1
    state.tracers["Z"][...] = 0.5
    state.tracers["Z"][0, 0, 0] = 5.0

    run_phase(
        state,
        ReferenceEngine(),
        callbacks=sanitiser_callbacks(["P", "Z"]),
        stop_iteration=3,
    )

    for tracer in state.tracers.values():
        assert np.all(np.isfinite(tracer))
        assert np.all(tracer >= 0)
    # the NaN reaction was ignored rather than propagated
    npt.assert_array_equal(state.tracers["P"], 0.1)


def test_relaxation_towards_target():
    state = setup_state(dt=100.0)
    rate = 1e-4
    engine = ReferenceEngine(forcing={"NO3": Relaxation(rate=rate, target=4.0)})
    run_phase(state, engine, stop_iteration=1)
    # RK3 is exact to third order for a linear decay
    h = -rate * 100.0
    amplification = 1 + h + h**2 / 2 + h**3 / 6
    npt.assert_allclose(state.tracers["NO3"], 4.0 * (1 - amplification), rtol=1e-12)

    run_phase(state, engine, stop_iteration=400)
    assert np.all(state.tracers["NO3"] > 3.5)
    assert np.all(state.tracers["NO3"] < 4.0)


def test_forcing_on_missing_tracer_raises():
    engine = ReferenceEngine(forcing={"DIC": Relaxation(rate=1.0, target=0.0)})
    with pytest.raises(KeyError):
        engine.advance(setup_state(), 1.0)


def test_steps_land_on_output_times(tmp_path):
    state = setup_state(dt=7 * minutes)
    wizard = TimeStepWizard(cfl=0.85, max_change=1.1, max_dt=7 * minutes)
    fname = str(tmp_path / "hourly.nc")
    writer = OutputWriter(fname, schedule=TimeInterval(3600.0))

    run_phase(
        state,
        ReferenceEngine(),
        wizard=wizard,
        stop_time=7200.0,
        output_writers=[writer],
    )

    npt.assert_array_equal(read_times(fname), [0.0, 3600.0, 7200.0])
    assert state.clock.time == 7200.0
    # eight 7 minute steps and one 4 minute step per hour
    assert state.clock.iteration == 18
    # the shortened steps do not feed back into the controller
    assert state.dt == 7 * minutes


def test_steps_land_on_time_interval_callbacks():
    state = setup_state(dt=7 * minutes)
    times = []
    callback = Callback(
        lambda state: times.append(state.clock.time),
        schedule=TimeInterval(10 * minutes),
        name="every_ten_minutes",
    )
    run_phase(state, ReferenceEngine(), callbacks=[callback], stop_time=1800.0)

    npt.assert_array_equal(times, [0.0, 600.0, 1200.0, 1800.0])
