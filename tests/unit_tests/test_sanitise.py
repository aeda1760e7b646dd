import numpy as np
import pytest
from numpy import testing as npt

from eadybgc.physics.sanitise import (
    ScaleNegativeTracers,
    remove_nan_tendencies,
    scale_negative_field,
    zero_negative_tracers,
)
from setup_test_state import setup_state


def test_remove_nan_tendencies():
    state = setup_state()
    tendency = state.tendencies["NO3"]
    tendency[...] = 1.5
    tendency[0, 0, 0] = np.nan
    tendency[1, 2, 3] = np.inf
    tendency[3, 3, 3] = -np.inf

    replaced = remove_nan_tendencies(state)

    assert replaced == 3
    assert np.all(np.isfinite(tendency))
    assert tendency[0, 0, 0] == 0.0
    assert tendency[1, 2, 3] == 0.0
    # finite values are untouched
    assert tendency[2, 2, 2] == 1.5


def test_scale_negative_conserves_mass():
    rng = np.random.default_rng(42)
    field = rng.uniform(-0.1, 1.0, size=(4, 4, 4))
    field[0, 0, 0] = -0.5
    total = field.sum()

    assert scale_negative_field(field)

    npt.assert_almost_equal(field.min(), 0.0)
    npt.assert_allclose(field.sum(), total, rtol=1e-12)
    assert np.all(field >= 0)


def test_scale_negative_noop_when_non_negative():
    field = np.linspace(0.0, 1.0, 64).reshape(4, 4, 4)
    before = field.copy()
    assert not scale_negative_field(field)
    npt.assert_array_equal(field, before)


def test_scale_negative_with_non_positive_total():
    field = -np.ones((4, 4, 4))
    field[0, 0, 0] = 2.0
    with pytest.warns(UserWarning):
        assert scale_negative_field(field)
    npt.assert_array_equal(field, 0.0)


def test_scale_negative_tracers_ignores_unknown_tracers():
    state = setup_state()
    state.tracers["NO3"][...] = 1.0
    state.tracers["NO3"][0, 0, 0] = -1.0
    state.tracers["b"][...] = -1.0

    scaled = ScaleNegativeTracers(["NO3", "DON"])(state)

    assert scaled == ["NO3"]
    assert state.tracers["NO3"].min() >= 0
    # tracers not in the list are left for the hard clamp
    assert state.tracers["b"].min() == -1.0


def test_zero_negative_tracers():
    state = setup_state()
    state.tracers["NO3"][...] = 2.0
    state.tracers["NO3"][0, 1, 2] = -1e-3
    state.tracers["b"][3, 3, 3] = np.nan

    clamped = zero_negative_tracers(state)

    assert clamped == 2
    for tracer in state.tracers.values():
        assert np.all(np.isfinite(tracer))
        assert np.all(tracer >= 0)
    assert state.tracers["NO3"][0, 0, 0] == 2.0
