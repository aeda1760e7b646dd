import numpy as np
import pytest
from numpy import testing as npt

from eadybgc.physics.background import BackgroundParameters, EadyBuoyancy, EadyVelocity
from eadybgc.physics.particles import KelpParticles, ThermalWindDrift, square_array
from setup_test_state import setup_state


def make_particles(**kwargs):
    x, y, z = square_array(500.0, 500.0, spacing=100.0, per_side=5)
    n = len(x)
    return KelpParticles(
        x, y, z, 5 * np.ones(n), 0.01 * np.ones(n), 0.18 * np.ones(n), **kwargs
    )


def test_square_array():
    x, y, z = square_array(500.0, 250.0, spacing=100.0, per_side=5)
    assert len(x) == len(y) == len(z) == 25
    npt.assert_almost_equal(x.mean(), 500.0)
    npt.assert_almost_equal(y.mean(), 250.0)
    npt.assert_array_equal(np.unique(x), [300.0, 400.0, 500.0, 600.0, 700.0])
    npt.assert_array_equal(z, 0.0)


def test_particle_lengths_must_match():
    with pytest.raises(ValueError):
        KelpParticles([0.0, 1.0], [0.0, 1.0], [0.0, 1.0], [1.0], [1.0, 1.0], [1.0, 1.0])


def test_thermal_wind_drift():
    background = BackgroundParameters(M2=1e-8, f=1e-4, N=1e-4, Lz=100.0)
    velocity = EadyVelocity(background)
    particles = make_particles(custom_dynamics=ThermalWindDrift(velocity))
    state = setup_state(particles=particles)
    y_before = particles.y.copy()
    x_before = particles.x.copy()

    particles.advance(state, 100.0)

    # V(z=0) = M2 / f * (0 - Lz / 2) = -5e-3 m/s
    npt.assert_allclose(particles.y - y_before, -0.5)
    npt.assert_array_equal(particles.x, x_before)


def test_growth_model_runs_before_custom_dynamics():
    calls = []

    def growth_model(particles, state, dt):
        calls.append("growth")
        particles.A *= 1.01

    def custom_dynamics(particles, state, biogeochemistry, dt):
        calls.append("dynamics")

    particles = make_particles(
        growth_model=growth_model, custom_dynamics=custom_dynamics
    )
    particles.advance(setup_state(particles=particles), 60.0)
    assert calls == ["growth", "dynamics"]
    npt.assert_allclose(particles.A, 5.05)


def test_background_fields():
    background = BackgroundParameters(M2=1e-8, f=1e-4, N=1e-3, Lz=100.0)
    npt.assert_almost_equal(EadyVelocity(background)(0.0, 0.0, -50.0, 0.0), -1e-2)
    npt.assert_almost_equal(
        EadyBuoyancy(background)(1000.0, 0.0, 0.0, 0.0), 1e-5 + 1e-6 * -50.0
    )
