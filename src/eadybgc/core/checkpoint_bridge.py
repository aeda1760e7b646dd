"""
Seed a simulation from the output archive of a previous one.

The last record written to the archive is read, and each field listed in the
variable map is copied into the target state, optionally scaled by a
conversion factor (for example the C:N ratio used to turn a nitrogen pool
into a carbon pool). Shapes are checked exactly: an archive written on a
different grid raises ShapeMismatchError rather than being truncated or
broadcast.
"""

import os
from collections import namedtuple

import numpy as np
from netCDF4 import Dataset  # pylint: disable=no-name-in-module

from eadybgc.core.errors import (
    CheckpointError,
    CheckpointKeyError,
    ShapeMismatchError,
)
from eadybgc.core.model_state import VELOCITY_NAMES
from eadybgc.physics.biogeochemistry import (
    BASE_TRACERS,
    CARBON_TRACERS,
    CARBONATE_TRACERS,
    NITROGEN_TRACERS,
    ORGANIC_TRACERS,
)


class FieldTransfer(namedtuple("FieldTransfer", ["source", "target", "factor"])):
    """Copy archive variable ``source`` into field ``target``, times ``factor``."""

    __slots__ = ()

    def __new__(cls, source, target=None, factor=1.0):
        return super().__new__(cls, source, target or source, factor)


def default_variable_map(source_tracers, target_biogeochemistry):
    """
    Build the variable map used to seed a model from one with a different
    biogeochemical tracer set.

    Velocities, buoyancy, and tracers carried by both models are copied
    one-to-one. If the target has variable Redfield ratios and the source
    does not, each organic matter pool (sPOM, bPOM, DOM) seeds both the
    nitrogen pool and, scaled by ``organic_redfield``, the carbon pool.

    Parameters
    ----------
    source_tracers : sequence of str
        Tracers stored in the source archive.
    target_biogeochemistry : eadybgc.physics.biogeochemistry.Biogeochemistry
        Biogeochemical model of the target state.

    Returns
    -------
    list of FieldTransfer
    """
    target_tracers = set(target_biogeochemistry.tracer_names)
    transfers = [FieldTransfer(name) for name in VELOCITY_NAMES]
    if "b" in source_tracers:
        transfers.append(FieldTransfer("b"))
    for name in BASE_TRACERS + CARBONATE_TRACERS:
        if name in source_tracers and name in target_tracers:
            transfers.append(FieldTransfer(name))
    for organic, nitrogen, carbon in zip(
        ORGANIC_TRACERS, NITROGEN_TRACERS, CARBON_TRACERS
    ):
        if organic in source_tracers and organic in target_tracers:
            transfers.append(FieldTransfer(organic))
        elif organic in source_tracers and nitrogen in target_tracers:
            transfers.append(FieldTransfer(organic, nitrogen))
            transfers.append(
                FieldTransfer(
                    organic, carbon, target_biogeochemistry.organic_redfield
                )
            )
        else:
            for name in (nitrogen, carbon):
                if name in source_tracers and name in target_tracers:
                    transfers.append(FieldTransfer(name))
    return transfers


def find_last_record(data, fname):
    """
    Index and label (iteration) of the last record written to an archive.
    """
    num_records = len(data.dimensions["time"])
    if num_records == 0:
        raise CheckpointError(
            "eadybgc.core.checkpoint_bridge.find_last_record: the archive"
            f" {fname} contains no records"
        )
    index = num_records - 1
    label = int(data.variables["iteration"][index])
    return index, label


def transfer_field(data, transfer, index, target_state):
    """
    Copy one variable of the archive record ``index`` into the target state.

    Raises
    ------
    CheckpointKeyError
        If the archive has no such variable.
    ShapeMismatchError
        If the stored array and the target field have different shapes.
    """
    if transfer.source not in data.variables:
        raise CheckpointKeyError(
            "eadybgc.core.checkpoint_bridge.transfer_field: variable"
            f" <{transfer.source}> not found in the archive"
        )
    target = target_state.field(transfer.target)
    variable = data.variables[transfer.source]
    if variable.shape[1:] != target.shape:
        raise ShapeMismatchError(transfer.source, variable.shape[1:], target.shape)
    array = np.asarray(variable[index], dtype=np.float64)
    target[...] = array * transfer.factor


def bridge(source_path, target_state, variable_map, clock_time=None):
    """
    Populate ``target_state`` from the last record of the archive at
    ``source_path``.

    Parameters
    ----------
    source_path : str
        Path to the output archive written by the previous simulation.
    target_state : eadybgc.core.model_state.SimulationState
        State to populate. Modified in place.
    variable_map : sequence of FieldTransfer
        Which archive variables go into which fields, and any conversion
        factor.
    clock_time : float, optional
        If given, the target clock is set to this time [s], independently of
        the time at which the archive record was written. This allows slow
        processes (e.g. kelp growth, which depends on the season) to be
        fast-forwarded.

    Returns
    -------
    target_state : eadybgc.core.model_state.SimulationState
        The populated state.
    label : int
        Iteration label of the archive record that was read.
    """
    if not os.path.exists(source_path):
        raise FileNotFoundError(
            "eadybgc.core.checkpoint_bridge.bridge: archive"
            f" {source_path} does not exist. The phase that writes it must run"
            " to completion first."
        )
    with Dataset(source_path, mode="r") as data:
        data.set_auto_mask(False)
        index, label = find_last_record(data, source_path)
        for transfer in variable_map:
            transfer_field(data, transfer, index, target_state)
    if clock_time is not None:
        target_state.clock.time = float(clock_time)
    return target_state, label


def read_archive_variables(source_path):
    """Names of the field variables (time, x, y, z) stored in an archive."""
    with Dataset(source_path, mode="r") as data:
        return tuple(
            key
            for key, variable in data.variables.items()
            if variable.dimensions == ("time", "x", "y", "z")
        )
