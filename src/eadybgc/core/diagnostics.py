"""
Diagnostic fields derived from the velocity, written alongside the
prognostic fields in the model output.
"""

import numpy as np


def ddx(field, spacing, axis):
    """Centred difference of ``field`` along a periodic ``axis``."""
    return (np.roll(field, -1, axis=axis) - np.roll(field, 1, axis=axis)) / (
        2 * spacing
    )


def vertical_vorticity(state):
    """zeta = dv/dx - du/dy [s^-1]"""
    grid = state.grid
    u = state.velocities["u"]
    v = state.velocities["v"]
    return ddx(v, grid.dx, 0) - ddx(u, grid.dy, 1)


def horizontal_divergence(state):
    """delta = du/dx + dv/dy [s^-1]"""
    grid = state.grid
    u = state.velocities["u"]
    v = state.velocities["v"]
    return ddx(u, grid.dx, 0) + ddx(v, grid.dy, 1)


def total_buoyancy(state):
    """
    Buoyancy perturbation plus the background buoyancy, b + B(x, y, z, t), if
    the state has a background for b.
    """
    grid = state.grid
    b = state.tracers["b"] if "b" in state.tracers else grid.zeros()
    background = state.background_fields.get("b")
    if background is None:
        return b.copy()
    x, y, z = grid.nodes()
    return b + background(x, y, z, state.clock.time)


DIAGNOSTICS = {
    "zeta": vertical_vorticity,
    "delta": horizontal_divergence,
    "total_b": total_buoyancy,
}
