import numpy as np
import pytest
from netCDF4 import Dataset
from numpy import testing as npt

from eadybgc.core.callbacks import IterationInterval, TimeInterval
from eadybgc.core.diagnostics import total_buoyancy, vertical_vorticity
from eadybgc.core.model_output import (
    OutputWriter,
    ParticleOutputWriter,
    read_record_count,
    read_times,
)
from eadybgc.physics.background import BackgroundParameters, EadyBuoyancy
from eadybgc.physics.particles import KelpParticles, square_array
from setup_test_state import setup_bgc_state, setup_grid, setup_state


def step(state, dt=900.0):
    state.clock.time += dt
    state.clock.iteration += 1


def test_records_grow_by_one_per_actuation(tmp_path):
    fname = str(tmp_path / "output.nc")
    state = setup_bgc_state()
    writer = OutputWriter(fname, schedule=IterationInterval(2))
    writer.initialise(state)
    assert read_record_count(fname) == 1
    for _ in range(4):
        step(state)
        writer(state)
    assert read_record_count(fname) == 3
    npt.assert_array_equal(read_times(fname), [0.0, 1800.0, 3600.0])
    with Dataset(fname, mode="r") as data:
        npt.assert_array_equal(data.variables["iteration"][:], [0, 2, 4])
        assert data.variables["NO3"].dimensions == ("time", "x", "y", "z")
        assert "zeta" in data.variables
        assert data.getncattr("carbonates") == 1


def test_time_interval_output(tmp_path):
    fname = str(tmp_path / "output.nc")
    state = setup_state()
    writer = OutputWriter(fname, schedule=TimeInterval(3600.0))
    writer.initialise(state)
    # a step of 2.5 hours passes two actuation times but writes once, and the
    # next actuation is at 3 hours
    step(state, 9000.0)
    writer(state)
    step(state, 1800.0)
    writer(state)
    step(state, 900.0)
    writer(state)
    npt.assert_array_equal(read_times(fname), [0.0, 9000.0, 10800.0])


def test_append_to_existing_output(tmp_path):
    fname = str(tmp_path / "output.nc")
    state = setup_state()
    OutputWriter(fname, schedule=IterationInterval(1)).initialise(state)

    step(state)
    writer = OutputWriter(
        fname, schedule=IterationInterval(1), overwrite_existing=False
    )
    writer.initialise(state, write=False)
    assert read_record_count(fname) == 1
    writer.write(state)
    assert read_record_count(fname) == 2


def test_append_rejects_different_grid(tmp_path):
    fname = str(tmp_path / "output.nc")
    OutputWriter(fname).initialise(setup_state())
    writer = OutputWriter(fname, overwrite_existing=False)
    with pytest.raises(ValueError):
        writer.initialise(setup_state(grid=setup_grid(Nx=8)))


def test_particle_output(tmp_path):
    fname = str(tmp_path / "particles.nc")
    x, y, z = square_array(500.0, 500.0, per_side=3)
    n = len(x)
    particles = KelpParticles(x, y, z, np.ones(n), np.ones(n), np.ones(n))
    state = setup_state(particles=particles)
    writer = ParticleOutputWriter(fname, schedule=IterationInterval(1))
    writer.initialise(state)
    particles.y += 10.0
    step(state)
    writer(state)
    with Dataset(fname, mode="r") as data:
        assert data.variables["y"].shape == (2, 9)
        npt.assert_allclose(data.variables["y"][1] - data.variables["y"][0], 10.0)


def test_particle_output_requires_particles(tmp_path):
    with pytest.raises(ValueError):
        ParticleOutputWriter(str(tmp_path / "particles.nc")).initialise(
            setup_state()
        )


def test_vertical_vorticity():
    state = setup_state(grid=setup_grid(Nx=16))
    grid = state.grid
    x, _, _ = grid.nodes()
    k = 2 * np.pi / grid.Lx
    state.velocities["v"][...] = np.sin(k * x)
    expected = np.cos(k * x) * np.sin(k * grid.dx) / grid.dx
    npt.assert_allclose(vertical_vorticity(state), expected, atol=1e-12)


def test_total_buoyancy():
    state = setup_state()
    state.tracers["b"][...] = 1e-3
    # without a background, total buoyancy is the perturbation
    npt.assert_array_equal(total_buoyancy(state), 1e-3)

    parameters = BackgroundParameters(M2=1e-8, f=1e-4, N=1e-4, Lz=100.0)
    state.background_fields["b"] = EadyBuoyancy(parameters)
    x, _, z = state.grid.nodes()
    expected = 1e-3 + 1e-8 * x + 1e-8 * (z - 50.0)
    npt.assert_allclose(total_buoyancy(state), expected)
