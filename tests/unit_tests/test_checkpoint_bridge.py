import numpy as np
import pytest
from numpy import testing as npt

from eadybgc.core.checkpoint_bridge import (
    FieldTransfer,
    bridge,
    default_variable_map,
    read_archive_variables,
)
from eadybgc.core.errors import (
    CheckpointError,
    CheckpointKeyError,
    ShapeMismatchError,
)
from eadybgc.core.model_output import setup_output, update_model_output
from eadybgc.core.utils import days
from setup_test_state import setup_bgc_state, setup_grid


def write_archive(fname, state, records=1):
    setup_output(fname, state)
    for _ in range(records):
        update_model_output(fname, state)
        state.clock.iteration += 1
        state.clock.time += 900.0


def test_bridge_applies_conversion_factor(tmp_path):
    fname = str(tmp_path / "source.nc")
    source = setup_bgc_state()
    source.tracers["sPOM"][...] = 7.0
    write_archive(fname, source)

    target = setup_bgc_state(variable_redfield=True)
    variable_map = [
        FieldTransfer("sPOM", "sPON"),
        FieldTransfer("sPOM", "sPOC", 106 / 16),
    ]
    target, label = bridge(fname, target, variable_map)

    assert label == 0
    npt.assert_array_equal(target.tracers["sPON"], 7.0)
    npt.assert_allclose(target.tracers["sPOC"], 7.0 * 106 / 16)


def test_bridge_reads_last_record(tmp_path):
    fname = str(tmp_path / "source.nc")
    source = setup_bgc_state()
    setup_output(fname, source)
    for value in [1.0, 2.0, 3.0]:
        source.tracers["NO3"][...] = value
        update_model_output(fname, source)
        source.clock.iteration += 10

    target = setup_bgc_state()
    target, label = bridge(fname, target, [FieldTransfer("NO3")])
    assert label == 20
    npt.assert_array_equal(target.tracers["NO3"], 3.0)


def test_bridge_fast_forwards_clock(tmp_path):
    fname = str(tmp_path / "source.nc")
    write_archive(fname, setup_bgc_state(), records=3)

    target = setup_bgc_state(variable_redfield=True)
    target, _ = bridge(fname, target, [FieldTransfer("u")], clock_time=50 * days)
    assert target.clock.time == 50 * days

    # without an offset the clock is left alone
    target = setup_bgc_state(variable_redfield=True)
    target, _ = bridge(fname, target, [FieldTransfer("u")])
    assert target.clock.time == 0.0


def test_bridge_shape_mismatch(tmp_path):
    fname = str(tmp_path / "source.nc")
    write_archive(fname, setup_bgc_state())

    target = setup_bgc_state(grid=setup_grid(Nz=5))
    with pytest.raises(ShapeMismatchError) as error:
        bridge(fname, target, [FieldTransfer("NO3")])
    assert error.value.source_shape == (4, 4, 4)
    assert error.value.target_shape == (4, 4, 5)
    # nothing was truncated or broadcast into the target
    npt.assert_array_equal(target.tracers["NO3"], 0.0)


def test_bridge_missing_variable(tmp_path):
    fname = str(tmp_path / "source.nc")
    write_archive(fname, setup_bgc_state(carbonates=False))

    target = setup_bgc_state()
    with pytest.raises(CheckpointKeyError):
        bridge(fname, target, [FieldTransfer("DIC")])


def test_bridge_empty_archive(tmp_path):
    fname = str(tmp_path / "source.nc")
    setup_output(fname, setup_bgc_state())
    with pytest.raises(CheckpointError):
        bridge(fname, setup_bgc_state(), [FieldTransfer("NO3")])


def test_bridge_missing_archive(tmp_path):
    with pytest.raises(FileNotFoundError):
        bridge(str(tmp_path / "missing.nc"), setup_bgc_state(), [])


def test_default_variable_map(tmp_path):
    fname = str(tmp_path / "source.nc")
    write_archive(fname, setup_bgc_state())
    target = setup_bgc_state(variable_redfield=True)

    variable_map = default_variable_map(
        read_archive_variables(fname), target.biogeochemistry
    )
    pairs = {(t.source, t.target): t.factor for t in variable_map}

    for name in ["u", "v", "w", "b", "NO3", "NH4", "P", "Z", "DIC", "Alk"]:
        assert pairs[(name, name)] == 1.0
    assert pairs[("sPOM", "sPON")] == 1.0
    assert pairs[("bPOM", "bPON")] == 1.0
    assert pairs[("DOM", "DON")] == 1.0
    npt.assert_almost_equal(pairs[("sPOM", "sPOC")], 106 / 16)
    npt.assert_almost_equal(pairs[("DOM", "DOC")], 106 / 16)
    # diagnostics are not prognostic fields
    assert ("zeta", "zeta") not in pairs


def test_default_variable_map_without_carbonates():
    source_tracers = ("u", "v", "w", "b", "NO3", "NH4", "P", "Z", "sPOM", "bPOM", "DOM", "DIC", "Alk")
    target = setup_bgc_state(variable_redfield=True, carbonates=False)
    variable_map = default_variable_map(source_tracers, target.biogeochemistry)
    targets = [transfer.target for transfer in variable_map]
    assert "DIC" not in targets
    assert "Alk" not in targets
