"""
Model output. Fields are written periodically into a netCDF file with an
unlimited ``time`` dimension, so that each write appends one record. Each
record is labelled with the simulation time and iteration at which it was
written. Fields have dimensions (time, x, y, z).

Particle output is handled the same way, with dimensions (time, particle).
"""

import os

import numpy as np
from netCDF4 import Dataset  # pylint: disable=no-name-in-module

from eadybgc.core.callbacks import TimeInterval
from eadybgc.core.diagnostics import DIAGNOSTICS
from eadybgc.core.model_state import VELOCITY_NAMES

TIME_VARS = ("time", "iteration")


def default_vars_to_save(state):
    """Every tracer, the velocities and the diagnostics."""
    return tuple(state.tracer_names) + VELOCITY_NAMES + tuple(DIAGNOSTICS)


def create_output_folder(fname):
    folder_path = os.path.dirname(fname)
    if folder_path and not os.path.exists(folder_path):
        os.makedirs(folder_path)


def get_output_array(state, key):
    """Look up a field, or evaluate a diagnostic, by name."""
    if key in DIAGNOSTICS:
        return DIAGNOSTICS[key](state)
    return state.field(key)


def create_dimensions(data, grid):
    """
    Create the dimensions and coordinate variables of a field output file:

    - time: unlimited dimension, one entry per record
    - x, y, z: cell-centre coordinates of the grid
    """
    data.createDimension("time", None)
    data.createDimension("x", size=grid.Nx)
    data.createDimension("y", size=grid.Ny)
    data.createDimension("z", size=grid.Nz)
    for key, coords in (("x", grid.xc), ("y", grid.yc), ("z", grid.zc)):
        var_write = data.createVariable(key, "f8", (key,))
        var_write.units = "m"
        var_write[:] = coords
    time_write = data.createVariable("time", "f8", ("time",))
    time_write.units = "seconds"
    data.createVariable("iteration", "i8", ("time",))
    for key in ("Lx", "Ly", "Lz", "Nx", "Ny", "Nz"):
        data.setncattr(key, getattr(grid, key))


def check_dimensions(data, fname, grid):
    """Check that an existing output file was written on the same grid."""
    existing = tuple(len(data.dimensions[key]) for key in ("x", "y", "z"))
    if existing != grid.shape:
        raise ValueError(
            "eadybgc.core.model_output.check_dimensions: cannot append to"
            f" {fname}, which was written on a grid of shape {existing}, from"
            f" a model with grid shape {grid.shape}"
        )


def setup_output(fname, state, vars_to_save=None, overwrite_existing=True):
    """
    Set up the netCDF file for model output.

    Parameters
    ----------
    fname : str
        Filename for the output netCDF file.
    state : eadybgc.core.model_state.SimulationState
        Model state whose fields will be written.
    vars_to_save : sequence of str, optional
        Fields to write. Defaults to default_vars_to_save(state).
    overwrite_existing : bool, optional
        If True, any existing file is replaced. If False and the file
        exists, new records are appended to it.

    Returns
    -------
    None.
    """
    if vars_to_save is None:
        vars_to_save = default_vars_to_save(state)
    create_output_folder(fname)
    if not overwrite_existing and os.path.exists(fname):
        with Dataset(fname, mode="r") as data:
            check_dimensions(data, fname, state.grid)
            missing = [key for key in vars_to_save if key not in data.variables]
        if missing:
            raise ValueError(
                "eadybgc.core.model_output.setup_output: cannot append to"
                f" {fname}, which does not contain {missing}"
            )
        return
    with Dataset(fname, clobber=True, mode="w") as data:
        create_dimensions(data, state.grid)
        if state.biogeochemistry is not None:
            for key, value in state.biogeochemistry.attributes().items():
                data.setncattr(key, value)
        for key in vars_to_save:
            data.createVariable(key, "f8", ("time", "x", "y", "z"))


def update_model_output(fname, state, vars_to_save=None):
    """
    Append the current state of the model as a new record.

    Returns
    -------
    int
        Index of the record that was written.
    """
    if vars_to_save is None:
        vars_to_save = default_vars_to_save(state)
    with Dataset(fname, mode="a") as data:
        index = len(data.dimensions["time"])
        data.variables["time"][index] = state.clock.time
        data.variables["iteration"][index] = state.clock.iteration
        for key in vars_to_save:
            data.variables[key][index] = get_output_array(state, key)
    return index


def setup_particle_output(fname, particles, overwrite_existing=True):
    """Set up the netCDF file for particle output."""
    create_output_folder(fname)
    if not overwrite_existing and os.path.exists(fname):
        with Dataset(fname, mode="r") as data:
            if len(data.dimensions["particle"]) != len(particles):
                raise ValueError(
                    "eadybgc.core.model_output.setup_particle_output: cannot"
                    f" append to {fname}, which holds"
                    f" {len(data.dimensions['particle'])} particles, not"
                    f" {len(particles)}"
                )
        return
    with Dataset(fname, clobber=True, mode="w") as data:
        data.createDimension("time", None)
        data.createDimension("particle", size=len(particles))
        time_write = data.createVariable("time", "f8", ("time",))
        time_write.units = "seconds"
        data.createVariable("iteration", "i8", ("time",))
        data.setncattr("latitude", particles.latitude)
        data.setncattr("scalefactor", particles.scalefactor)
        for key in particles.variables():
            data.createVariable(key, "f8", ("time", "particle"))


def update_particle_output(fname, state):
    """Append the current particle positions and state as a new record."""
    particles = state.particles
    with Dataset(fname, mode="a") as data:
        index = len(data.dimensions["time"])
        data.variables["time"][index] = state.clock.time
        data.variables["iteration"][index] = state.clock.iteration
        for key in particles.variables():
            data.variables[key][index] = getattr(particles, key)
    return index


class OutputWriter:
    """
    Writes fields to ``fname`` whenever ``schedule`` fires.

    Parameters
    ----------
    fname : str
        Output filename (.nc).
    schedule : callable, optional
        Schedule, e.g. TimeInterval(hour). Default every hour of
        simulated time.
    vars_to_save : sequence of str, optional
        Fields to write. Defaults to every tracer, the velocities, and the
        vorticity and divergence diagnostics.
    overwrite_existing : bool, optional
        Replace (True) or append to (False) an existing file.
    """

    def __init__(
        self, fname, schedule=None, vars_to_save=None, overwrite_existing=True
    ):
        self.fname = fname
        self.schedule = schedule if schedule is not None else TimeInterval(3600)
        self.vars_to_save = vars_to_save
        self.overwrite_existing = overwrite_existing

    def initialise(self, state, write=True):
        """
        Create (or open for appending) the output file, and consume the
        first actuation of the schedule. The state at that actuation is
        written unless ``write`` is False.
        """
        if self.vars_to_save is None:
            self.vars_to_save = default_vars_to_save(state)
        setup_output(
            self.fname,
            state,
            vars_to_save=self.vars_to_save,
            overwrite_existing=self.overwrite_existing,
        )
        self.schedule.initialise(state.clock)
        if self.schedule(state.clock) and write:
            self.write(state)

    def write(self, state):
        return update_model_output(self.fname, state, self.vars_to_save)

    def __call__(self, state):
        if self.schedule(state.clock):
            self.write(state)


class ParticleOutputWriter(OutputWriter):
    """Writes the particle set of a state whenever ``schedule`` fires."""

    def initialise(self, state, write=True):
        if state.particles is None:
            raise ValueError(
                "eadybgc.core.model_output.ParticleOutputWriter: the model"
                " has no particles to write"
            )
        setup_particle_output(
            self.fname,
            state.particles,
            overwrite_existing=self.overwrite_existing,
        )
        self.schedule.initialise(state.clock)
        if self.schedule(state.clock) and write:
            self.write(state)

    def write(self, state):
        return update_particle_output(self.fname, state)


def read_record_count(fname):
    """Number of records written to an output file."""
    with Dataset(fname, mode="r") as data:
        return len(data.dimensions["time"])


def read_times(fname):
    """Simulation times [s] of every record in an output file."""
    with Dataset(fname, mode="r") as data:
        data.set_auto_mask(False)
        return np.array(data.variables["time"][:])
