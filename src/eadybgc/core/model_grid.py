"""
Define the model grid. This is an immutable description of a uniform,
three-dimensional rectilinear grid, with x and y spanning (0, Lx) and (0, Ly),
and z spanning (-Lz, 0) (i.e. z = 0 is the sea surface).
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Grid:
    """
    Uniform rectilinear grid.

    Parameters
    ----------
    Nx, Ny, Nz : int
        Number of cells in each direction.
    Lx, Ly, Lz : float
        Domain extent in each direction [m].
    """

    Nx: int
    Ny: int
    Nz: int
    Lx: float
    Ly: float
    Lz: float

    def __post_init__(self):
        for name in ("Nx", "Ny", "Nz"):
            if int(getattr(self, name)) < 1:
                raise ValueError(
                    f"eadybgc.core.model_grid.Grid: {name} must be a positive"
                    f" integer, not {getattr(self, name)}"
                )
        for name in ("Lx", "Ly", "Lz"):
            if not getattr(self, name) > 0:
                raise ValueError(
                    f"eadybgc.core.model_grid.Grid: {name} must be positive,"
                    f" not {getattr(self, name)}"
                )

    @property
    def shape(self):
        return (self.Nx, self.Ny, self.Nz)

    @property
    def dx(self):
        return self.Lx / self.Nx

    @property
    def dy(self):
        return self.Ly / self.Ny

    @property
    def dz(self):
        return self.Lz / self.Nz

    @property
    def xc(self):
        """Cell-centre x coordinates."""
        return (np.arange(self.Nx) + 0.5) * self.dx

    @property
    def yc(self):
        """Cell-centre y coordinates."""
        return (np.arange(self.Ny) + 0.5) * self.dy

    @property
    def zc(self):
        """Cell-centre z coordinates, from the bottom (-Lz) to the surface."""
        return -self.Lz + (np.arange(self.Nz) + 0.5) * self.dz

    @property
    def x_bounds(self):
        return (0.0, self.Lx)

    @property
    def y_bounds(self):
        return (0.0, self.Ly)

    @property
    def z_bounds(self):
        return (-self.Lz, 0.0)

    def nodes(self):
        """
        Return 3D arrays of the cell-centre coordinates, each with shape
        ``self.shape``.
        """
        return np.meshgrid(self.xc, self.yc, self.zc, indexing="ij")

    def zeros(self):
        """Return a new field of zeros defined on this grid."""
        return np.zeros(self.shape, dtype=np.float64)
