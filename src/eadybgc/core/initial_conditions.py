"""
Functions used to set the initial conditions of the model: random velocity
perturbations on top of the thermal wind, and horizontally uniform
biogeochemical tracer profiles (typically a steady state obtained from a
previous 1D run).
"""

import numpy as np
from netCDF4 import Dataset  # pylint: disable=no-name-in-module
from scipy.interpolate import interp1d


def eady_noise(grid, amplitude, rng):
    """
    Random velocity perturbation ``amplitude * Xi(z)``, with

        Xi(z) = randn * z / Lz * (z / Lz + 1),

    which vanishes at the surface and at the bottom.

    Parameters
    ----------
    grid : eadybgc.core.model_grid.Grid
        Model grid.
    amplitude : float
        Perturbation velocity scale [m s^-1].
    rng : numpy.random.Generator
        Random number generator.

    Returns
    -------
    np.ndarray
        Perturbation with shape ``grid.shape``.
    """
    _, _, z = grid.nodes()
    envelope = z / grid.Lz * (z / grid.Lz + 1)
    return amplitude * rng.standard_normal(grid.shape) * envelope


def set_eady_perturbation(state, amplitude, seed=None):
    """Set u and v to independent random Eady perturbations."""
    rng = np.random.default_rng(seed)
    state.velocities["u"][...] = eady_noise(state.grid, amplitude, rng)
    state.velocities["v"][...] = eady_noise(state.grid, amplitude, rng)


def set_tracer_profiles(state, profiles, depths=None):
    """
    Set tracers to horizontally uniform vertical profiles.

    Parameters
    ----------
    state : eadybgc.core.model_state.SimulationState
        Model state to initialise.
    profiles : dict
        Tracer name -> 1D profile. Without ``depths``, each profile must
        have one value per vertical level, ordered from the bottom up.
    depths : array_like, optional
        z coordinates [m] of the profile values. If given, the profiles are
        linearly interpolated onto the cell centres of the grid, with
        constant extrapolation beyond the end points.
    """
    grid = state.grid
    for name, profile in profiles.items():
        if name not in state.tracers:
            raise KeyError(
                "eadybgc.core.initial_conditions.set_tracer_profiles: model"
                f" has no tracer <{name}>"
            )
        profile = np.asarray(profile, dtype=np.float64)
        if depths is not None:
            interpolator = interp1d(
                np.asarray(depths, dtype=np.float64),
                profile,
                bounds_error=False,
                fill_value=(profile[np.argmin(depths)], profile[np.argmax(depths)]),
            )
            profile = interpolator(grid.zc)
        elif len(profile) != grid.Nz:
            raise ValueError(
                "eadybgc.core.initial_conditions.set_tracer_profiles: profile"
                f" for <{name}> has {len(profile)} levels but the grid has"
                f" {grid.Nz}. Pass depths to interpolate it."
            )
        state.tracers[name][...] = profile[np.newaxis, np.newaxis, :]


def load_steady_state(fname, tracers=None):
    """
    Load vertical tracer profiles from a netCDF file with a ``z`` dimension.

    Parameters
    ----------
    fname : str
        Path to the netCDF file.
    tracers : sequence of str, optional
        Tracers to load. Defaults to every variable defined on ``z``,
        except the ``z`` coordinate itself.

    Returns
    -------
    profiles : dict
        Tracer name -> 1D profile.
    depths : np.ndarray or None
        z coordinate of the profiles, if the file has one.
    """
    with Dataset(fname, mode="r") as data:
        data.set_auto_mask(False)
        if tracers is None:
            tracers = [
                key
                for key, variable in data.variables.items()
                if variable.dimensions == ("z",) and key != "z"
            ]
        profiles = {key: np.array(data.variables[key][:]) for key in tracers}
        depths = np.array(data.variables["z"][:]) if "z" in data.variables else None
    return profiles, depths
