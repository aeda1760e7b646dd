"""
Functions that guard the model state against non-physical values.

Biogeochemical concentrations are physically non-negative, but the numerical
scheme can produce small negative overshoots, and a single unstable cell can
produce non-finite tendencies. Three passes are provided:

- remove_nan_tendencies: run at the tendency callsite. Any non-finite value
  in a tendency buffer is replaced with zero.
- ScaleNegativeTracers: run at the update-state callsite. For a subset of
  tracers, the field is rescaled so that its minimum becomes zero while its
  total is conserved.
- zero_negative_tracers: run at the update-state callsite after the rescale.
  Every tracer is clamped to be >= 0, as a last-resort safety net.

The array kernels (functions starting with an underscore) are written so that
they can be compiled with ``numba.jit``; see
eadybgc.core.configuration.jit_modules.
"""

import warnings

import numpy as np


def _zero_non_finite(array):
    flat = array.reshape(-1)
    mask = ~np.isfinite(flat)
    count = np.count_nonzero(mask)
    flat[mask] = 0.0
    return count


def _clamp_negative(array):
    flat = array.reshape(-1)
    # NaN fails ">= 0" as well, so it is caught by the same mask
    mask = ~(flat >= 0.0)
    count = np.count_nonzero(mask)
    flat[mask] = 0.0
    return count


def remove_nan_tendencies(state):
    """
    Replace NaN or infinite values in every tendency buffer with zero,
    element-wise and in place.

    Returns
    -------
    int
        Number of values that were replaced.
    """
    replaced = 0
    for tendency in state.tendencies.values():
        replaced += _zero_non_finite(tendency)
    return replaced


def zero_negative_tracers(state):
    """
    Clamp every tracer field to be >= 0 element-wise, in place. Non-finite
    values are also set to zero so that the field is finite afterwards.

    Returns
    -------
    int
        Number of values that were clamped.
    """
    clamped = 0
    for tracer in state.tracers.values():
        clamped += _clamp_negative(tracer)
    return clamped


def scale_negative_field(field):
    """
    Rescale ``field`` in place so that its minimum becomes zero while its sum
    is unchanged, i.e.

        c -> (c - min(c)) * sum(c) / sum(c - min(c))

    This is a no-op when the minimum is already >= 0. If the sum is not
    positive, no non-negative field with the same sum exists; in that case the
    field is set to zero.

    Returns
    -------
    bool
        True if the field was modified.
    """
    if not np.all(np.isfinite(field)):
        # leave non-finite fields to the hard clamp
        return False
    minimum = field.min()
    if minimum >= 0:
        return False
    total = field.sum()
    shifted = field - minimum
    shifted_total = shifted.sum()
    if total <= 0 or shifted_total <= 0:
        field[...] = 0.0
        warnings.warn(
            "eadybgc.physics.sanitise.scale_negative_field: field has a"
            f" non-positive total ({total}), so its negative values cannot be"
            " removed while conserving mass. Setting the field to zero."
        )
        return True
    field[...] = shifted * (total / shifted_total)
    return True


class ScaleNegativeTracers:
    """
    Mass-conserving negativity removal for a named subset of tracers.

    Parameters
    ----------
    tracers : sequence of str
        Names of the tracers to rescale. Names that are not carried by the
        model are ignored, so the same instance can be reused across phases
        with different tracer sets.
    verbose : bool, optional
        Print the tracers that were rescaled.
    """

    def __init__(self, tracers, verbose=False):
        self.tracers = tuple(tracers)
        self.verbose = verbose

    def __call__(self, state):
        scaled = []
        for name in self.tracers:
            if name not in state.tracers:
                continue
            if scale_negative_field(state.tracers[name]):
                scaled.append(name)
        if self.verbose and scaled:
            print(
                "eadybgc.physics.sanitise.ScaleNegativeTracers: rescaled"
                f" {', '.join(scaled)} at iteration {state.clock.iteration}"
            )
        return scaled

    def __repr__(self):
        return f"ScaleNegativeTracers({self.tracers})"
