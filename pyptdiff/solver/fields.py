#!/usr/bin/env python
# -*- coding: utf-8 -*-

# This file is part of pyPTDiff.
# Copyright (C) 2026 The pyPTDiff Project and contributors.
#
# pyPTDiff is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# pyPTDiff is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with pyPTDiff. If not, see <https://www.gnu.org/licenses/>.


"""
Grid and field storage of the pseudo-transient solvers.

All fields are allocated once, on construction, and never resized.
Extents follow the staggered-grid convention:

    H, Hold, Hsnap (B, S, M, Mask)    : full grid        (nx,)   / (nx, ny)
    qH (1D)                           : faces             (nx-1,)
    qHx, qHy (2D)                     : faces             (nx-1, ny-2), (nx-2, ny-1)
    D, Vx, Vy (2D)                    : cell corners      (nx-1, ny-1)
    ResH, dHdt, dtau                  : interior          (nx-2,) / (nx-2, ny-2)

`commit()` performs `Hold := H` and is called exactly once per physical time
step, after the pseudo-time loop has finished.
"""

import math
import numpy as np

from pyptdiff.config.global_runtime import ptd_real
from pyptdiff.solver.exceptions import CInvalidConfiguration


def _check_spacing(name, value):
    if not (math.isfinite(value) and value > 0.0):
        raise CInvalidConfiguration(f"{name} needs to be positive, got {value}")


class FieldStore1D:
    def __init__(self, nx, initial_H, dx):
        """
        Args:
            nx (int): Number of grid cells.
            initial_H (np.ndarray): Initial condition of shape (nx,). Its end
                values are the fixed boundary values.
            dx (float): Grid spacing.
        """
        nx = int(nx)
        if nx < 3:
            raise CInvalidConfiguration(f"nx must be >= 3, got {nx}")
        _check_spacing("dx", dx)
        initial_H = np.asarray(initial_H)
        if initial_H.shape != (nx,):
            raise CInvalidConfiguration(
                f"initial field has shape {initial_H.shape}, expected ({nx},)"
            )
        self.nx = nx
        self.dx = dx
        self.H = np.ascontiguousarray(initial_H, dtype=ptd_real).copy()
        self.Hold = self.H.copy()
        self.Hsnap = self.H.copy()
        self.qH = np.zeros(nx - 1, dtype=ptd_real)
        self.ResH = np.zeros(nx - 2, dtype=ptd_real)
        self.dHdt = np.zeros(nx - 2, dtype=ptd_real)

    def commit(self):
        self.Hold[:] = self.H

    def reset_rate(self):
        self.dHdt[:] = 0.0

    def restore(self, initial_H):
        """Puts the store back to its initial condition with a zero damped rate."""
        self.H[:] = initial_H
        self.Hold[:] = initial_H
        self.Hsnap[:] = initial_H
        self.qH[:] = 0.0
        self.ResH[:] = 0.0
        self.reset_rate()


class FieldStore2D:
    def __init__(self, dx, dy, Zbed, Hice, Mask):
        """
        Args:
            dx (float): Grid spacing along the first axis.
            dy (float): Grid spacing along the second axis.
            Zbed (np.ndarray): Bed elevation, shape (nx, ny).
            Hice (np.ndarray): Initial thickness, shape (nx, ny).
            Mask (np.ndarray): Active-domain indicator with values in {0, 1}.

        Cells with Mask == 0 are zeroed in the initial thickness so that the
        masked state already holds on the (never updated) boundary ring.
        Non-finite bed or thickness values are rejected.
        """
        _check_spacing("dx", dx)
        _check_spacing("dy", dy)
        Zbed = np.asarray(Zbed)
        Hice = np.asarray(Hice)
        Mask = np.asarray(Mask)
        if Zbed.ndim != 2:
            raise CInvalidConfiguration(f"Zbed must be 2D, got {Zbed.ndim} dimensions")
        if not (Zbed.shape == Hice.shape == Mask.shape):
            raise CInvalidConfiguration(
                f"Sizes don't match: Zbed {Zbed.shape}, Hice {Hice.shape}, Mask {Mask.shape}"
            )
        nx, ny = Zbed.shape
        if nx < 3 or ny < 3:
            raise CInvalidConfiguration(f"grid must be at least 3x3, got {nx}x{ny}")
        if not np.all((Mask == 0) | (Mask == 1)):
            raise CInvalidConfiguration("Mask values must be 0 or 1")
        # Masking would erase a NaN under Mask == 0 before any error check.
        for name, values in (("Zbed", Zbed), ("Hice", Hice)):
            bad = np.count_nonzero(~np.isfinite(values))
            if bad:
                raise CInvalidConfiguration(f"{name} has {bad} non-finite value(s)")

        self.nx, self.ny = nx, ny
        self.dx, self.dy = dx, dy
        self.Mask = np.ascontiguousarray(Mask, dtype=np.uint8)
        self.Mask.setflags(write=False)

        self.B = np.ascontiguousarray(Zbed, dtype=ptd_real).copy()
        self.H = np.ascontiguousarray(Hice, dtype=ptd_real).copy()
        self.H[self.Mask == 0] = 0.0
        self.S = self.B + self.H
        self.Hold = self.H.copy()
        self.Hsnap = self.H.copy()
        self.M = np.zeros((nx, ny), dtype=ptd_real)

        self.D = np.zeros((nx - 1, ny - 1), dtype=ptd_real)
        self.qHx = np.zeros((nx - 1, ny - 2), dtype=ptd_real)
        self.qHy = np.zeros((nx - 2, ny - 1), dtype=ptd_real)
        self.dtau = np.zeros((nx - 2, ny - 2), dtype=ptd_real)
        self.ResH = np.zeros((nx - 2, ny - 2), dtype=ptd_real)
        self.dHdt = np.zeros((nx - 2, ny - 2), dtype=ptd_real)
        self.Vx = np.zeros((nx - 1, ny - 1), dtype=ptd_real)
        self.Vy = np.zeros((nx - 1, ny - 1), dtype=ptd_real)

    @property
    def shape(self):
        return (self.nx, self.ny)

    def commit(self):
        self.Hold[:] = self.H

    def reset_rate(self):
        self.dHdt[:] = 0.0

    def restore(self, initial_H):
        """Puts the store back to its initial condition with a zero damped rate."""
        self.H[:] = initial_H
        self.H[self.Mask == 0] = 0.0
        self.S[:] = self.B + self.H
        self.Hold[:] = self.H
        self.Hsnap[:] = self.H
        for name in ("M", "D", "qHx", "qHy", "dtau", "ResH", "Vx", "Vy"):
            getattr(self, name)[:] = 0.0
        self.reset_rate()
