"""
Core functions used in the running of EADYBGC.
This module contains the functions that drive the code when it is executed.

An experiment has two phases, run one after the other:

1. The Eady problem with LOBSTER biogeochemistry, started from random
   velocity perturbations and steady-state tracer profiles, and run for
   <duration>. Fields are written periodically to <output_filepath>.
2. The same problem with variable Redfield ratios and kelp particles, seeded
   from the last record of the phase-one output, with its clock fast-forwarded
   to <phase_two_start_time> (so that the kelp grows in the right season), and
   run until <phase_two_stop_time>.

Each phase is advanced by run_phase, which asks the step controller for a
time step, advances the state with the engine, runs the callbacks whose
schedule fires, writes output, and checks whether to stop.
"""

import sys
import time
import warnings

import numpy as np

from eadybgc.core import configuration
from eadybgc.core.callbacks import (
    Callback,
    Callsite,
    IterationInterval,
    TimeInterval,
    initialise_schedules,
    run_callbacks,
)
from eadybgc.core.checkpoint_bridge import (
    bridge,
    default_variable_map,
    read_archive_variables,
)
from eadybgc.core.dump_model_state import dump_exists, dump_state, reload_from_dump
from eadybgc.core.initial_conditions import (
    load_steady_state,
    set_eady_perturbation,
    set_tracer_profiles,
)
from eadybgc.core.load_model_setup import get_model_setup
from eadybgc.core.model_output import OutputWriter, ParticleOutputWriter
from eadybgc.core.model_state import SimulationState
from eadybgc.core.utils import calc_tracer_mass, check_state_correctness, prettytime
from eadybgc.physics.background import EadyBuoyancy, EadyVelocity
from eadybgc.physics.biogeochemistry import (
    Biogeochemistry,
    constant,
    get_tracer_names,
)
from eadybgc.physics.forcing import Relaxation
from eadybgc.physics.particles import KelpParticles, ThermalWindDrift, square_array
from eadybgc.physics.sanitise import (
    ScaleNegativeTracers,
    remove_nan_tendencies,
    zero_negative_tracers,
)
from eadybgc.physics.step_controller import TimeStepWizard, advective_cfl
from eadybgc.physics.timestep import ReferenceEngine


class ProgressMessenger:
    """Print iteration, simulation time, wall time, time step and CFL."""

    def __init__(self):
        self.start_time = time.perf_counter()

    def __call__(self, state):
        wall_time = time.perf_counter() - self.start_time
        print(
            f"i: {state.clock.iteration:6d},"
            f" sim time: {prettytime(state.clock.time):>16s},"
            f" wall time: {prettytime(wall_time):>16s},"
            f" dt: {prettytime(state.dt):>16s},"
            f" CFL: {advective_cfl(state, state.dt):.2e}"
        )
        # ensure that output is flushed to the console immediately rather
        # than being buffered.
        sys.stdout.flush()


class DumpState:
    """Callback that dumps the full model state to ``fname``."""

    def __init__(self, fname):
        self.fname = fname

    def __call__(self, state):
        print(f"Dumping model state to {self.fname}...")
        dump_state(self.fname, state)


def sanitiser_callbacks(scaled_tracers, verbose=False):
    """
    Callbacks that guard the state against non-physical values, in the order
    they must be run: the mass-conserving rescale before the hard clamp.
    """
    return [
        Callback(
            ScaleNegativeTracers(scaled_tracers, verbose=verbose),
            callsite=Callsite.UPDATE_STATE,
            name="neg",
        ),
        Callback(
            remove_nan_tendencies,
            callsite=Callsite.TENDENCY,
            name="nan_tendencies",
        ),
        Callback(
            zero_negative_tracers,
            callsite=Callsite.UPDATE_STATE,
            name="abort_zeros",
        ),
    ]


def stop_condition_met(state, stop_time, stop_iteration):
    if stop_time is not None and state.clock.time >= stop_time:
        return True
    if stop_iteration is not None and state.clock.iteration >= stop_iteration:
        return True
    return False


def next_alignment_time(state, stop_time, callbacks, output_writers):
    """
    Earliest time ahead of the clock that a step must land on exactly: the
    stop time, or the next actuation of a TimeInterval schedule belonging to
    a post-step callback or an output writer.

    Returns
    -------
    float or None
        The alignment time, or None if there is nothing to align to.
    """
    candidates = []
    if stop_time is not None:
        candidates.append(stop_time)
    schedules = [
        callback.schedule
        for callback in callbacks
        if callback.callsite is Callsite.TIME_STEP
    ]
    schedules.extend(writer.schedule for writer in output_writers)
    for schedule in schedules:
        if isinstance(schedule, TimeInterval):
            candidates.append(schedule.next_actuation_time)
    candidates = [
        candidate for candidate in candidates if candidate > state.clock.time
    ]
    return min(candidates) if candidates else None


# pylint: disable=too-many-arguments
def run_phase(
    state,
    engine,
    wizard=None,
    callbacks=(),
    stop_time=None,
    stop_iteration=None,
    output_writers=(),
    write_initial_output=True,
):
    """
    Advance ``state`` until the stop condition is met.

    Parameters
    ----------
    state : eadybgc.core.model_state.SimulationState
        State to advance. Modified in place. ``state.dt`` is the step the
        controller starts from.
    engine : eadybgc.physics.timestep.Engine
        Engine used to advance the state by one step.
    wizard : eadybgc.physics.step_controller.TimeStepWizard, optional
        Step controller. If None, the step is held at ``state.dt``.
    callbacks : sequence of eadybgc.core.callbacks.Callback
        Callbacks, run in order at their callsite when their schedule fires.
    stop_time : float, optional
        Simulation time [s] at which to stop. The last step is shortened so
        that the clock lands on it exactly. Steps are likewise shortened to
        land on the next actuation of any TimeInterval schedule of a
        post-step callback or output writer.
    stop_iteration : int, optional
        Iteration at which to stop.
    output_writers : sequence of eadybgc.core.model_output.OutputWriter
        Writers, run after the post-step callbacks when their schedule fires.
    write_initial_output : bool, optional
        Whether the writers write the initial state. Set to False when
        resuming from a dump, so the resumed record is not written twice.

    Returns
    -------
    state : eadybgc.core.model_state.SimulationState
        The state at the end of the phase.

    Raises
    ------
    ValueError
        If neither stop_time nor stop_iteration is given.
    SolverDivergenceError
        If the state becomes non-finite. Errors raised by the engine are
        propagated unchanged; there are no retries.
    """
    if stop_time is None and stop_iteration is None:
        raise ValueError(
            "eadybgc.core.driver.run_phase: at least one of stop_time and"
            " stop_iteration must be given"
        )
    if not state.dt > 0:
        raise ValueError(
            "eadybgc.core.driver.run_phase: the initial time step must be"
            f" positive, not {state.dt}"
        )
    callbacks = list(callbacks)
    initialise_schedules(callbacks, state.clock)
    for writer in output_writers:
        writer.initialise(state, write=write_initial_output)
    run_callbacks(callbacks, Callsite.TIME_STEP, state)

    while not stop_condition_met(state, stop_time, stop_iteration):
        if wizard is not None:
            state.dt = wizard(state)
        dt = state.dt
        alignment_time = next_alignment_time(
            state, stop_time, callbacks, output_writers
        )
        if alignment_time is not None and alignment_time - state.clock.time < dt:
            dt = alignment_time - state.clock.time
        else:
            alignment_time = None
        engine.advance(state, dt, callbacks)
        if alignment_time is not None:
            # land exactly on the alignment time, not on time + dt
            state.clock.time = alignment_time
        if state.particles is not None:
            state.particles.advance(state, dt)
        check_state_correctness(state)
        run_callbacks(callbacks, Callsite.TIME_STEP, state)
        for writer in output_writers:
            writer(state)
    return state


# pylint: enable=too-many-arguments


def phase_callbacks(config, phase):
    """Callbacks common to both phases: sanitiser, progress, and dumps."""
    callbacks = sanitiser_callbacks(
        config.scaled_tracers, verbose=config.verbose_logging
    )
    callbacks.append(
        Callback(
            ProgressMessenger(),
            schedule=IterationInterval(config.progress_interval),
            name="progress",
        )
    )
    if config.dump_data:
        callbacks.append(
            Callback(
                DumpState(phase.dump_filepath),
                schedule=TimeInterval(config.dump_interval),
                name="dump",
            )
        )
    return callbacks


def build_engine(config, state):
    """
    Reference engine with the configured relaxation forcing. Relaxation of
    tracers that the phase does not carry (e.g. Alk without carbonates) is
    skipped.
    """
    forcing = {}
    for name, rate, target in config.relaxation:
        if name not in state.tracers:
            print(
                "eadybgc.core.driver.build_engine: skipping relaxation of"
                f" <{name}>, which this phase does not carry"
            )
            continue
        forcing[name] = Relaxation(rate=rate, target=target)
    return ReferenceEngine(forcing=forcing)


def build_biogeochemistry(config, variable_redfield=False, particles=None):
    """
    Biogeochemistry for one phase. Reaction terms are given per tracer name,
    so only those for tracers that this phase carries are passed on.
    """
    tracer_names = get_tracer_names(config.carbonates, variable_redfield)
    return Biogeochemistry(
        carbonates=config.carbonates,
        open_bottom=config.open_bottom,
        variable_redfield=variable_redfield,
        organic_redfield=config.organic_redfield,
        surface_par=constant(config.surface_par),
        temperature=constant(config.temperature),
        salinity=constant(config.salinity),
        reactions={
            name: reaction
            for name, reaction in config.reactions
            if name in tracer_names
        },
        particles=particles,
    )


def build_kelp(config):
    """Square array of kelp particles at the surface, centred in the domain."""
    grid = config.grid
    kelp = config.kelp
    x, y, z = square_array(
        grid.Lx / 2, grid.Ly / 2, spacing=kelp.spacing, per_side=kelp.per_side
    )
    n = len(x)
    return KelpParticles(
        x,
        y,
        z,
        A=kelp.area * np.ones(n),
        N=kelp.nitrogen * np.ones(n),
        C=kelp.carbon * np.ones(n),
        latitude=kelp.latitude,
        scalefactor=kelp.scalefactor,
        prescribed_temperature=constant(kelp.temperature),
        custom_dynamics=ThermalWindDrift(EadyVelocity(config.background)),
    )


def background_fields(config):
    """Eady background fields, keyed by the prognostic field they underlie."""
    return {
        "v": EadyVelocity(config.background),
        "b": EadyBuoyancy(config.background),
    }


def initialise_phase_one(config):
    """
    Set up the phase-one state: buoyancy plus the LOBSTER tracers, random
    velocity perturbations, and horizontally uniform tracer profiles.
    """
    biogeochemistry = build_biogeochemistry(config)
    state = SimulationState(
        config.grid,
        ("b",) + biogeochemistry.tracer_names,
        biogeochemistry=biogeochemistry,
        background_fields=background_fields(config),
        dt=config.phase_one.initial_dt,
    )
    set_eady_perturbation(
        state, config.perturbation_amplitude, seed=config.random_seed
    )
    if config.steady_state_filepath:
        print(
            "eadybgc.core.driver.initialise_phase_one: loading tracer"
            f" profiles from {config.steady_state_filepath}"
        )
        profiles, depths = load_steady_state(config.steady_state_filepath)
        profiles = {
            name: profile
            for name, profile in profiles.items()
            if name in state.tracers
        }
        set_tracer_profiles(state, profiles, depths=depths)
    if config.initial_profiles:
        set_tracer_profiles(
            state,
            {name: np.array(profile) for name, profile in config.initial_profiles},
            depths=config.initial_profile_depths,
        )
    return state


def initialise_phase_two(config):
    """
    Set up the (empty) phase-two state: variable Redfield ratios and kelp
    particles. It is populated by seed_phase_two.
    """
    particles = build_kelp(config)
    biogeochemistry = build_biogeochemistry(
        config, variable_redfield=True, particles=particles
    )
    return SimulationState(
        config.grid,
        ("b",) + biogeochemistry.tracer_names,
        biogeochemistry=biogeochemistry,
        particles=particles,
        background_fields=background_fields(config),
        dt=config.phase_two.initial_dt,
    )


def seed_phase_two(config, state):
    """
    Populate the phase-two state from the last record of the phase-one
    output, and fast-forward its clock to <phase_two_start_time>.
    """
    source = config.phase_one.output_filepath
    variable_map = default_variable_map(
        read_archive_variables(source), state.biogeochemistry
    )
    state, label = bridge(
        source,
        state,
        variable_map,
        clock_time=config.phase_two.start_time,
    )
    print(
        f"eadybgc.core.driver.seed_phase_two: seeded from iteration {label} of"
        f" {source}; clock set to {prettytime(state.clock.time)}"
    )
    return state


def check_for_reload_from_dump(config, phase, state):
    """
    Determine if the phase needs to be resumed from a dump file, and if so
    load it into ``state``.

    Returns
    -------
    bool
        Whether the state was reloaded.
    """
    if not config.reload_from_dump:
        return False
    if not dump_exists(phase.dump_filepath):
        warnings.warn(
            f"Reload/dump filepath {phase.dump_filepath} does not exist -"
            " instead starting this phase from scratch. If you believe you do"
            " have a dump file, check that it is specified correctly in"
            " model_setup.py."
        )
        return False
    print(f"Reloading state from dump {phase.dump_filepath}...")
    reload_from_dump(phase.dump_filepath, state)
    print(
        f"Loaded model state from dump file {phase.dump_filepath} - iteration"
        f" = {state.clock.iteration}, time = {prettytime(state.clock.time)}"
    )
    return True


def build_output_writers(config, phase, reloaded, particle_output=False):
    """
    Field (and, if requested, particle) writers for a phase. None are built
    if <save_output> is False.
    """
    if not config.save_output:
        print(
            "eadybgc.core.driver.build_output_writers: <save_output> is False,"
            f" so no output will be written to {phase.output_filepath}"
        )
        return []
    writers = [
        OutputWriter(
            phase.output_filepath,
            schedule=TimeInterval(config.output_interval),
            vars_to_save=config.vars_to_save,
            # append to the existing output when resuming from a dump
            overwrite_existing=config.overwrite_existing and not reloaded,
        )
    ]
    if particle_output:
        writers.append(
            ParticleOutputWriter(
                config.particle_output_filepath,
                schedule=TimeInterval(config.output_interval),
                overwrite_existing=config.overwrite_existing and not reloaded,
            )
        )
    return writers


def run_experiment_phase(config, phase, state, reloaded, particle_output=False):
    """Wire up the wizard, callbacks and writers for a phase, and run it."""
    wizard = TimeStepWizard(
        cfl=phase.cfl,
        max_change=phase.max_change,
        max_dt=phase.max_dt,
        min_change=phase.min_change,
    )
    writers = build_output_writers(
        config, phase, reloaded, particle_output=particle_output
    )
    tic = time.perf_counter()
    state = run_phase(
        state,
        build_engine(config, state),
        wizard=wizard,
        callbacks=phase_callbacks(config, phase),
        stop_time=phase.stop_time,
        output_writers=writers,
        write_initial_output=not reloaded,
    )
    if config.dump_data:
        dump_state(phase.dump_filepath, state)
    print_end_of_phase_messages(state, time.perf_counter() - tic)
    return state


def print_end_of_phase_messages(state, run_time):
    print("\n*******************************************\n")
    print("End of phase diagnostics:")
    print(f"Iterations: {state.clock.iteration}")
    print(f"Sim end time: {prettytime(state.clock.time)}")
    print(f"Run time: {run_time:.2f} sec")
    for name, mass in calc_tracer_mass(state).items():
        print(f"Total {name} = {mass:.6e}")
    if state.particles is not None:
        print(f"Mean kelp frond area = {np.mean(state.particles.A):.4f}")
    sys.stdout.flush()


def main(config):
    """
    Run both phases of the experiment.

    Parameters
    ----------
    config : eadybgc.core.configuration.ExperimentConfig
        Experiment configuration.

    Returns
    -------
    phase_one_state : eadybgc.core.model_state.SimulationState
        State at the end of phase one.
    phase_two_state : eadybgc.core.model_state.SimulationState or None
        State at the end of phase two, or None if it was not run.
    """
    tic = time.perf_counter()
    print("\n*******************************************\n")
    print("Starting phase one (Eady + biogeochemistry)\n")
    state_one = initialise_phase_one(config)
    reloaded = check_for_reload_from_dump(config, config.phase_one, state_one)
    state_one = run_experiment_phase(
        config, config.phase_one, state_one, reloaded
    )

    state_two = None
    if config.run_phase_two:
        print("\n*******************************************\n")
        print("Starting phase two (Eady + biogeochemistry + kelp)\n")
        state_two = initialise_phase_two(config)
        reloaded = check_for_reload_from_dump(
            config, config.phase_two, state_two
        )
        if not reloaded:
            state_two = seed_phase_two(config, state_two)
        state_two = run_experiment_phase(
            config, config.phase_two, state_two, reloaded, particle_output=True
        )
    print("\n*******************************************\n")
    print("EADYBGC has finished running successfully!")
    print("Total time taken = ", time.perf_counter() - tic)
    return state_one, state_two


def eadybgc(argv=None):
    """
    Main function for running EADYBGC. This loads and checks the model setup,
    then runs the experiment.
    """
    model_setup_path = configuration.parse_args(argv)
    model_setup = get_model_setup(model_setup_path)

    # Model configuration steps
    configuration.handle_incompatible_flags(model_setup)
    configuration.create_defaults_for_missing_flags(model_setup)
    configuration.create_output_folders(model_setup)
    if model_setup.use_numba:
        configuration.jit_modules()

    config = configuration.get_experiment_config(model_setup)
    return main(config)
