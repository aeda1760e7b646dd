"""
Run script for the EADYBGC reference experiment: a 1 km x 1 km x 100 m Eady
problem with LOBSTER biogeochemistry, spun up for 10 days, followed by a kelp
phase with variable Redfield ratios whose clock runs from day 50 to day 70.

Run with

    eadybgc -i model_setup.py

All parameters that have default values will use these defaults if they are
not specified here.
"""

import numpy as np

from eadybgc.core.utils import day, days, hour, minutes

"""
Grid. x and y are periodic; z runs from -Lz at the bottom to 0 at the
surface.
"""
Lx, Ly, Lz = 1000.0, 1000.0, 100.0
Nx, Ny, Nz = 64, 64, 16

"""
Background state: Coriolis parameter f [s^-1], horizontal buoyancy gradient
M2 [s^-2] and buoyancy frequency N [s^-1]. The thermal wind is
V = M2 / f * (z - Lz / 2).
"""
coriolis_f = 1e-4
M2 = 1e-8
N = 1e-4

"""
Phase one: Eady + biogeochemistry.
"""
duration = 10 * days
max_dt = 15 * minutes
cfl = 0.85
max_change = 1.1
output_filepath = "output/eady_turbulence_bgc.nc"
output_interval = 1 * hour

"""
Initial conditions. Velocity perturbations of 1 mm/s, and tracer profiles
linearly interpolated from a handful of depths.
"""
perturbation_amplitude = 1e-3
random_seed = 1234
initial_profile_depths = np.array([-100.0, -50.0, -20.0, 0.0])
initial_profiles = {
    "NO3": np.array([11.0, 8.0, 4.0, 2.0]),
    "NH4": np.array([0.05, 0.1, 0.2, 0.2]),
    "P": np.array([0.01, 0.05, 0.1, 0.1]),
    "Z": np.array([0.01, 0.03, 0.05, 0.05]),
    "DIC": np.array([2200.0, 2150.0, 2100.0, 2100.0]),
    "Alk": np.array([2409.0, 2409.0, 2409.0, 2409.0]),
}

"""
Biogeochemistry. Relaxation is given as tracer -> (rate [s^-1], target).
"""
carbonates = True
open_bottom = True
surface_par = 100.0
temperature = 12.0
salinity = 35.0
relaxation = {
    "NO3": (1 / (10 * days), 4.0),
    "Alk": (1 / day, 2409.0),
}

"""
Phase two: kelp. The clock is set to phase_two_start_time when the phase is
seeded, regardless of how long phase one ran for.
"""
run_phase_two = True
phase_two_start_time = 50 * days
phase_two_stop_time = 70 * days
phase_two_initial_dt = 5 * minutes
phase_two_cfl = 0.8
phase_two_max_change = 1.5
phase_two_output_filepath = "output/eady_turbulence_bgc_with_particles_dense.nc"
particle_output_filepath = (
    "output/eady_turbulence_bgc_with_particles_dense_particles.nc"
)
kelp_per_side = 5
kelp_spacing = 100.0
kelp_area = 5.0
kelp_nitrogen = 0.01
kelp_carbon = 0.18
kelp_latitude = 57.5
kelp_scalefactor = 1e5

"""
Dumping and reloading. Each phase dumps to its own file.
"""
dump_data = True
dump_filepath = "output/eady_turbulence_bgc_dump.nc"
phase_two_dump_filepath = "output/eady_turbulence_bgc_with_particles_dump.nc"
dump_interval = 1 * day
reload_from_dump = False

use_numba = False
verbose_logging = False
progress_interval = 10
