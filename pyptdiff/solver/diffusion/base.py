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
Stencil kernels of the 1D pseudo-transient diffusion solvers.

Three data-parallel passes make up one pseudo-time iteration, each with a
CPU (Numba `prange`) and a CUDA implementation:

    flux    qH[i]   = -D (H[i+1] - H[i]) / dx                       i in [0, nx-1)
    rate    ResH[i] = -(H[i+1] - Hold[i+1]) / dt - (qH[i+1] - qH[i]) / dx
            dHdt[i] = ResH[i] + damp * dHdt[i]                      i in [0, nx-2)
    update  H[i+1] += dtau * dHdt[i]                                i in [0, nx-2)

Every worker writes only its own output element and reads only inputs that
the running pass does not write, so no locking is needed within a pass. The
passes must run in the order flux -> rate -> update with a full barrier in
between: on CPU every `prange` loop returns only after all of its
iterations are done, on CUDA the caller issues `cuda.synchronize()`.

The transient term is weighted by `inv_dt = 1/dt`. Passing `inv_dt = 0`
together with `damp = 0` and `dtau = dt` turns one iteration into a plain
forward Euler step.
"""

import numpy as np

from numba import njit, prange, cuda

from pyptdiff.config.global_runtime import ptd_real


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_flux_1d(
    diffusion_coeff: ptd_real,
    dx: ptd_real,
    H: np.ndarray,
    qH: np.ndarray,
):
    """
    Face fluxes from the current state.

    Args:
        diffusion_coeff (ptd_real): Diffusion coefficient D.
        dx (ptd_real): Grid spacing.
        H (np.ndarray[ptd_real]): State field, shape (nx,). Read only.
        qH (np.ndarray[ptd_real]): Flux field, shape (nx-1,). Overwritten.
    """
    for ix in prange(qH.shape[0]):
        qH[ix] = -diffusion_coeff * (H[ix + 1] - H[ix]) / dx


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_rate_1d(
    inv_dt: ptd_real,
    damp: ptd_real,
    dx: ptd_real,
    H: np.ndarray,
    Hold: np.ndarray,
    qH: np.ndarray,
    ResH: np.ndarray,
    dHdt: np.ndarray,
):
    """
    Residual of the implicit step and its damped accumulation.

    Args:
        inv_dt (ptd_real): 1 / physical time step (0 drops the transient term).
        damp (ptd_real): Damping factor in [0, 1).
        dx (ptd_real): Grid spacing.
        H (np.ndarray[ptd_real]): State field, shape (nx,).
        Hold (np.ndarray[ptd_real]): State at the start of the physical step.
        qH (np.ndarray[ptd_real]): Flux field, shape (nx-1,).
        ResH (np.ndarray[ptd_real]): Residual, shape (nx-2,). Overwritten.
        dHdt (np.ndarray[ptd_real]): Damped rate, shape (nx-2,). Updated in place.
    """
    for ix in prange(ResH.shape[0]):
        residual = -(H[ix + 1] - Hold[ix + 1]) * inv_dt - (qH[ix + 1] - qH[ix]) / dx
        ResH[ix] = residual
        dHdt[ix] = residual + damp * dHdt[ix]


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_update_1d(
    dtau: ptd_real,
    H: np.ndarray,
    dHdt: np.ndarray,
):
    """Pseudo-time step of the interior cells; H[0] and H[nx-1] are never written."""
    for ix in prange(dHdt.shape[0]):
        H[ix + 1] = H[ix + 1] + dtau * dHdt[ix]


@cuda.jit(cache=True)
def _cuda_compute_flux_1d(diffusion_coeff, dx, H, qH):
    ix = cuda.grid(1)
    if ix < qH.shape[0]:
        qH[ix] = -diffusion_coeff * (H[ix + 1] - H[ix]) / dx


@cuda.jit(cache=True)
def _cuda_compute_rate_1d(inv_dt, damp, dx, H, Hold, qH, ResH, dHdt):
    ix = cuda.grid(1)
    if ix < ResH.shape[0]:
        residual = -(H[ix + 1] - Hold[ix + 1]) * inv_dt - (qH[ix + 1] - qH[ix]) / dx
        ResH[ix] = residual
        dHdt[ix] = residual + damp * dHdt[ix]


@cuda.jit(cache=True)
def _cuda_compute_update_1d(dtau, H, dHdt):
    ix = cuda.grid(1)
    if ix < dHdt.shape[0]:
        H[ix + 1] = H[ix + 1] + dtau * dHdt[ix]


@cuda.jit(cache=True)
def _cuda_fill_1d(values_1d, value):
    ix = cuda.grid(1)
    if ix < values_1d.shape[0]:
        values_1d[ix] = value
