"""
Functions to handle dumping of model state, so that runs can be restarted
upon failure.
Separate from model_output, which handles the periodic output of the fields
that are useful scientifically, and from checkpoint_bridge, which seeds a
new simulation from that output.
"""

import os

import numpy as np
from netCDF4 import Dataset  # pylint: disable=no-name-in-module

from eadybgc.core.errors import CheckpointKeyError, ShapeMismatchError
from eadybgc.core.model_output import create_output_folder

SCALARS = ("time", "iteration", "dt")


def dump_state(fname, state):
    """
    Save every velocity and tracer field, the clock, the current time step
    and (if present) the particles of ``state`` into ``fname``, overwriting
    any previous dump.

    Parameters
    ----------
    fname : str
        Filename we wish to save our data into.
    state : eadybgc.core.model_state.SimulationState
        Model state to save.

    Returns
    -------
    None

    Yields
    ------
    netCDF file with filename <fname>.
    """
    create_output_folder(fname)
    grid = state.grid
    with Dataset(fname, clobber=True, mode="w") as data:
        data.createDimension("x", size=grid.Nx)
        data.createDimension("y", size=grid.Ny)
        data.createDimension("z", size=grid.Nz)
        for key, field in state.fields().items():
            var_write = data.createVariable(key, "f8", ("x", "y", "z"))
            var_write[:] = field
        if state.particles is not None:
            data.createDimension("particle", size=len(state.particles))
            for key in state.particles.variables():
                var_write = data.createVariable(
                    f"particle_{key}", "f8", ("particle",)
                )
                var_write[:] = getattr(state.particles, key)
        time_write = data.createVariable("time", "f8")
        iteration_write = data.createVariable("iteration", "i8")
        dt_write = data.createVariable("dt", "f8")
        time_write[:] = state.clock.time
        iteration_write[:] = state.clock.iteration
        dt_write[:] = state.dt


def reload_from_dump(fname, state):
    """
    Load a dump written by dump_state into ``state``.

    Parameters
    ----------
    fname : str
        Filename to load data from.
    state : eadybgc.core.model_state.SimulationState
        State to load into. It must carry the same fields, on the same grid,
        as the state that was dumped.

    Returns
    -------
    state : eadybgc.core.model_state.SimulationState
        The state, with fields, clock and time step restored.
    """
    with Dataset(fname, mode="r") as data:
        data.set_auto_mask(False)
        for key, field in state.fields().items():
            if key not in data.variables:
                raise CheckpointKeyError(
                    "eadybgc.core.dump_model_state.reload_from_dump: no"
                    f" variable <{key}> in dump file {fname}"
                )
            variable = data.variables[key]
            if variable.shape != field.shape:
                raise ShapeMismatchError(key, variable.shape, field.shape)
            field[...] = variable[:, :, :]
        if state.particles is not None and "particle" in data.dimensions:
            num_particles = len(data.dimensions["particle"])
            if num_particles != len(state.particles):
                raise ShapeMismatchError(
                    "particles", (num_particles,), (len(state.particles),)
                )
            for key in state.particles.variables():
                setattr(
                    state.particles,
                    key,
                    np.array(data.variables[f"particle_{key}"][:]),
                )
        state.clock.time = float(data.variables["time"][...])
        state.clock.iteration = int(data.variables["iteration"][...])
        state.dt = float(data.variables["dt"][...])
    return state


def dump_exists(fname):
    return bool(fname) and os.path.exists(fname)
