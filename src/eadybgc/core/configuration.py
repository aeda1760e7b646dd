"""
Handle the configuration of EADYBGC: parse the command line, fill in defaults
for anything not set in the model setup script, check for incompatible
settings, and freeze the result into an ExperimentConfig that is passed
explicitly to each component.
"""

import argparse
import os
from dataclasses import dataclass

import numpy as np

from eadybgc.core.model_grid import Grid
from eadybgc.core.utils import day, days, hour, minutes
from eadybgc.physics.background import BackgroundParameters

# Tracers rescaled (mass-conservingly) when they go negative. Names that a
# phase does not carry are ignored.
DEFAULT_SCALED_TRACERS = (
    "NO3",
    "NH4",
    "P",
    "Z",
    "sPOM",
    "bPOM",
    "DOM",
    "sPON",
    "bPON",
    "DON",
)


def parse_args(argv=None):
    """
    Parse input. Most things are controlled by `model_setup.py`; the only
    input here is (optionally) the location (as a filepath, so including the
    filename) of that setup file.
    """
    parser = argparse.ArgumentParser(
        prog="eadybgc",
        description=(
            "Two-phase Eady baroclinic instability experiment with coupled"
            " biogeochemistry and kelp particles."
        ),
    )
    parser.add_argument(
        "--input_path",
        "-i",
        help=(
            "Absolute or relative path to an input file, in the format of"
            " <model_setup.py>"
        ),
        default="model_setup.py",
        required=False,
    )
    args, _ = parser.parse_known_args(argv)
    return args.input_path


def create_output_folders(model_setup):
    """
    Create the folders for the model output and dump files, if they do not
    already exist.
    """
    for attr in (
        "output_filepath",
        "phase_two_output_filepath",
        "particle_output_filepath",
        "dump_filepath",
        "phase_two_dump_filepath",
    ):
        path = getattr(model_setup, attr, None)
        if not path:
            continue
        folder = os.path.dirname(path)
        if folder and not os.path.exists(folder):
            os.makedirs(folder)


def handle_incompatible_flags(model_setup):
    """
    Handle incompatible model flags that could cause issues with the code.
    This mostly consists of raising errors that the user should check for,
    before any simulation time is spent.

    Raises
    ------
    NameError
        If a flag requires a filepath that has not been given.
    ValueError
        If a value is out of range, or two flags cannot be used together.
    """
    method_name = "eadybgc.core.configuration.handle_incompatible_flags()"
    dump_attrs = ["dump_data", "reload_from_dump"]
    for attr in dump_attrs:
        if getattr(model_setup, attr, False) and not getattr(
            model_setup, "dump_filepath", None
        ):
            raise NameError(
                f"{method_name}: <{attr}> is specified but <dump_filepath> is"
                " empty - please specify in model_setup a filepath to write"
                " the dump into via the <dump_filepath> attribute."
            )
    if getattr(model_setup, "run_phase_two", False):
        if getattr(model_setup, "save_output", True) is False:
            raise ValueError(
                f"{method_name}: <run_phase_two> is True but <save_output> is"
                " False. The second phase is seeded from the output of the"
                " first, so output must be saved."
            )
        if getattr(model_setup, "output_filepath", None) == getattr(
            model_setup, "phase_two_output_filepath", "unset"
        ):
            raise ValueError(
                f"{method_name}: <output_filepath> and"
                " <phase_two_output_filepath> must be different, as the first"
                " is read to seed the second phase."
            )
    for attr in ("cfl", "phase_two_cfl"):
        if hasattr(model_setup, attr) and not getattr(model_setup, attr) > 0:
            raise ValueError(
                f"{method_name}: <{attr}> must be positive, not"
                f" {getattr(model_setup, attr)}"
            )
    for attr in ("max_change", "phase_two_max_change"):
        if hasattr(model_setup, attr) and not getattr(model_setup, attr) > 1:
            raise ValueError(
                f"{method_name}: <{attr}> must be greater than 1, not"
                f" {getattr(model_setup, attr)}"
            )
    if hasattr(model_setup, "phase_two_stop_time") and hasattr(
        model_setup, "phase_two_start_time"
    ):
        if model_setup.phase_two_stop_time <= model_setup.phase_two_start_time:
            raise ValueError(
                f"{method_name}: <phase_two_stop_time>"
                f" ({model_setup.phase_two_stop_time}) must be later than"
                f" <phase_two_start_time> ({model_setup.phase_two_start_time})"
            )
    relaxation = getattr(model_setup, "relaxation", {})
    if not isinstance(relaxation, dict):
        raise ValueError(
            f"{method_name}: <relaxation> must be a dict of tracer name ->"
            f" (rate, target), not {type(relaxation).__name__}"
        )


def create_defaults_for_missing_flags(model_setup):
    """
    Prevent the model from crashing out if certain flags are not specified in
    the model_setup file. The defaults reproduce the reference experiment: a
    1 km x 1 km x 100 m Eady problem with LOBSTER biogeochemistry, run for the
    requested duration, followed by a kelp phase running from day 50 to day
    70.

    Args
    -------
    model_setup - loaded in model setup file (see <get_model_setup>)

    Returns
    -------
    None
    """
    method_name = "eadybgc.core.configuration.create_defaults_for_missing_flags"
    optional_args_to_true = [
        "carbonates",
        "open_bottom",
        "save_output",
        "run_phase_two",
        "overwrite_existing",
    ]
    optional_args_to_false = [
        "dump_data",
        "reload_from_dump",
        "use_numba",
        "verbose_logging",
    ]
    for attr in optional_args_to_true:
        if not hasattr(model_setup, attr):
            setattr(model_setup, attr, True)
            print(
                f"{method_name}: Setting missing model_setup attribute"
                f" <{attr}> to default value True"
            )
    for attr in optional_args_to_false:
        if not hasattr(model_setup, attr):
            setattr(model_setup, attr, False)
            print(
                f"{method_name}: Setting missing model_setup attribute"
                f" <{attr}> to default value False"
            )
    vardict = {}
    # background state
    vardict["coriolis_f"] = 1e-4
    vardict["M2"] = 1e-8
    vardict["N"] = 1e-4
    # initial conditions
    vardict["perturbation_amplitude"] = 1e-3
    vardict["random_seed"] = None
    vardict["steady_state_filepath"] = None
    vardict["initial_profiles"] = {}
    vardict["initial_profile_depths"] = None
    # biogeochemistry
    vardict["surface_par"] = 100.0
    vardict["temperature"] = 12.0
    vardict["salinity"] = 35.0
    vardict["organic_redfield"] = 106 / 16
    vardict["relaxation"] = {"NO3": (1 / (10 * days), 4.0), "Alk": (1 / day, 2409.0)}
    vardict["reactions"] = {}
    vardict["scaled_tracers"] = DEFAULT_SCALED_TRACERS
    # phase one time stepping
    vardict["max_dt"] = 15 * minutes
    vardict["cfl"] = 0.85
    vardict["max_change"] = 1.1
    vardict["min_change"] = None
    # phase two time stepping
    vardict["phase_two_start_time"] = 50 * days
    vardict["phase_two_stop_time"] = 70 * days
    vardict["phase_two_initial_dt"] = 5 * minutes
    vardict["phase_two_cfl"] = 0.8
    vardict["phase_two_max_change"] = 1.5
    vardict["phase_two_min_change"] = None
    vardict["phase_two_max_dt"] = np.inf
    # kelp
    vardict["kelp_per_side"] = 5
    vardict["kelp_spacing"] = 100.0
    vardict["kelp_area"] = 5.0
    vardict["kelp_nitrogen"] = 0.01
    vardict["kelp_carbon"] = 0.18
    vardict["kelp_latitude"] = 57.5
    vardict["kelp_scalefactor"] = 1e5
    vardict["kelp_temperature"] = 12.0
    # output
    vardict["output_filepath"] = "output/eady_turbulence_bgc.nc"
    vardict["phase_two_output_filepath"] = (
        "output/eady_turbulence_bgc_with_particles_dense.nc"
    )
    vardict["particle_output_filepath"] = (
        "output/eady_turbulence_bgc_with_particles_dense_particles.nc"
    )
    vardict["output_interval"] = 1 * hour
    vardict["vars_to_save"] = None
    vardict["progress_interval"] = 10
    vardict["dump_filepath"] = "output/eady_turbulence_bgc_dump.nc"
    vardict["phase_two_dump_filepath"] = (
        "output/eady_turbulence_bgc_with_particles_dump.nc"
    )
    vardict["dump_interval"] = 1 * day
    for key, value in vardict.items():
        if not hasattr(model_setup, key):
            setattr(model_setup, key, value)
            print(
                f"{method_name}: Setting missing model_setup attribute"
                f" <{key}> to default value <{value}>"
            )


def jit_modules():
    """
    If using Numba, apply the `numba.jit` decorator to the array kernels of
    the sanitiser, by overwriting the pure-Python versions in their module
    with `setattr`. The kernels are looked up by name at call time, so every
    caller picks up the compiled versions.

    This is only called when `use_numba` is `True`, so the import only happens
    if needed (important for if the user does not have Numba installed).
    """
    # pylint: disable=import-outside-toplevel
    from numba import jit

    from eadybgc.physics import sanitise

    # pylint: enable=import-outside-toplevel
    for name in ("_zero_non_finite", "_clamp_negative"):
        function = getattr(sanitise, name)
        if hasattr(function, "py_func"):
            # already compiled
            continue
        print(f"Applying Numba jit decorator to {sanitise.__name__}.{name}")
        setattr(sanitise, name, jit(function, nopython=True))


@dataclass(frozen=True)
class PhaseConfig:
    """Time stepping and output settings for one simulation phase."""

    start_time: float
    stop_time: float
    initial_dt: float
    cfl: float
    max_change: float
    max_dt: float
    min_change: float
    output_filepath: str
    dump_filepath: str


@dataclass(frozen=True)
class KelpConfig:
    per_side: int
    spacing: float
    area: float
    nitrogen: float
    carbon: float
    latitude: float
    scalefactor: float
    temperature: float


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True)
class ExperimentConfig:
    """
    Immutable configuration of a two-phase experiment, built from a loaded
    model setup by get_experiment_config.
    """

    grid: Grid
    background: BackgroundParameters
    phase_one: PhaseConfig
    phase_two: PhaseConfig
    kelp: KelpConfig
    run_phase_two: bool
    carbonates: bool
    open_bottom: bool
    organic_redfield: float
    surface_par: float
    temperature: float
    salinity: float
    relaxation: tuple
    reactions: tuple
    scaled_tracers: tuple
    perturbation_amplitude: float
    random_seed: object
    initial_profiles: tuple
    initial_profile_depths: object
    steady_state_filepath: object
    output_interval: float
    vars_to_save: object
    save_output: bool
    overwrite_existing: bool
    particle_output_filepath: str
    progress_interval: int
    dump_data: bool
    dump_interval: float
    reload_from_dump: bool
    verbose_logging: bool


# pylint: enable=too-many-instance-attributes


def get_experiment_config(model_setup):
    """
    Freeze a loaded model setup (with defaults already filled in by
    create_defaults_for_missing_flags) into an ExperimentConfig.
    """
    grid = Grid(
        Nx=int(model_setup.Nx),
        Ny=int(model_setup.Ny),
        Nz=int(model_setup.Nz),
        Lx=float(model_setup.Lx),
        Ly=float(model_setup.Ly),
        Lz=float(model_setup.Lz),
    )
    background = BackgroundParameters(
        M2=model_setup.M2, f=model_setup.coriolis_f, N=model_setup.N, Lz=grid.Lz
    )
    phase_one = PhaseConfig(
        start_time=0.0,
        stop_time=float(model_setup.duration),
        initial_dt=float(model_setup.max_dt),
        cfl=model_setup.cfl,
        max_change=model_setup.max_change,
        max_dt=float(model_setup.max_dt),
        min_change=model_setup.min_change,
        output_filepath=model_setup.output_filepath,
        dump_filepath=model_setup.dump_filepath,
    )
    phase_two = PhaseConfig(
        start_time=float(model_setup.phase_two_start_time),
        stop_time=float(model_setup.phase_two_stop_time),
        initial_dt=float(model_setup.phase_two_initial_dt),
        cfl=model_setup.phase_two_cfl,
        max_change=model_setup.phase_two_max_change,
        max_dt=float(model_setup.phase_two_max_dt),
        min_change=model_setup.phase_two_min_change,
        output_filepath=model_setup.phase_two_output_filepath,
        dump_filepath=model_setup.phase_two_dump_filepath,
    )
    kelp = KelpConfig(
        per_side=int(model_setup.kelp_per_side),
        spacing=float(model_setup.kelp_spacing),
        area=float(model_setup.kelp_area),
        nitrogen=float(model_setup.kelp_nitrogen),
        carbon=float(model_setup.kelp_carbon),
        latitude=float(model_setup.kelp_latitude),
        scalefactor=float(model_setup.kelp_scalefactor),
        temperature=float(model_setup.kelp_temperature),
    )
    vars_to_save = model_setup.vars_to_save
    if vars_to_save is not None:
        vars_to_save = tuple(vars_to_save)
    depths = model_setup.initial_profile_depths
    if depths is not None:
        depths = tuple(np.asarray(depths, dtype=np.float64))
    return ExperimentConfig(
        grid=grid,
        background=background,
        phase_one=phase_one,
        phase_two=phase_two,
        kelp=kelp,
        run_phase_two=bool(model_setup.run_phase_two),
        carbonates=bool(model_setup.carbonates),
        open_bottom=bool(model_setup.open_bottom),
        organic_redfield=float(model_setup.organic_redfield),
        surface_par=float(model_setup.surface_par),
        temperature=float(model_setup.temperature),
        salinity=float(model_setup.salinity),
        relaxation=tuple(
            (name, float(rate), target if callable(target) else float(target))
            for name, (rate, target) in model_setup.relaxation.items()
        ),
        reactions=tuple(model_setup.reactions.items()),
        scaled_tracers=tuple(model_setup.scaled_tracers),
        perturbation_amplitude=float(model_setup.perturbation_amplitude),
        random_seed=model_setup.random_seed,
        initial_profiles=tuple(
            (name, tuple(np.asarray(profile, dtype=np.float64)))
            for name, profile in model_setup.initial_profiles.items()
        ),
        initial_profile_depths=depths,
        steady_state_filepath=model_setup.steady_state_filepath,
        output_interval=float(model_setup.output_interval),
        vars_to_save=vars_to_save,
        save_output=bool(model_setup.save_output),
        overwrite_existing=bool(model_setup.overwrite_existing),
        particle_output_filepath=model_setup.particle_output_filepath,
        progress_interval=int(model_setup.progress_interval),
        dump_data=bool(model_setup.dump_data),
        dump_interval=float(model_setup.dump_interval),
        reload_from_dump=bool(model_setup.reload_from_dump),
        verbose_logging=bool(model_setup.verbose_logging),
    )
