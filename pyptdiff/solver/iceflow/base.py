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
Stencil kernels of the 2D shallow-ice (SIA) pseudo-transient solver.

One pseudo-time iteration is a pipeline of five data-parallel passes, each
followed by a barrier. Every pass exists as a CPU (Numba `prange` over the
first axis) and a CUDA (one thread per output element) kernel:

    source       M    = min(grad_b (S - z_ELA), b_max)                   (nx,   ny)
    diffusivity  D    = a av(H)^(n+2) |grad S|^(n-1)                     (nx-1, ny-1)
    flux         qHx  = -av_y(D) dS/dx,  qHy = -av_x(D) dS/dy            (nx-1, ny-2), (nx-2, ny-1)
    residual     dtau = local pseudo step from av(D)
                 ResH = -(H - Hold)/dt - div(qH) + M
                 dHdt = damp dHdt + ResH                                 (nx-2, ny-2)
    update       H    = max(0, H + dtau dHdt), H = 0 where Mask == 0
                 S    = B + H                                            interior only

Averages: av() is the 4-point average onto cell corners, av_x()/av_y() the
2-point averages along the first/second axis. The flux is driven by the
surface S = B + H. The outer ring of H is never written by the update pass.

Clamps are written as comparisons (`if h < 0.0`) rather than min/max so
that NaN values survive and reach the error-norm check.
"""

import math
import numpy as np

from numba import njit, prange, cuda


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_mass_balance_2d(
    grad_b: float,
    z_ela: float,
    b_max: float,
    S: np.ndarray,
    M: np.ndarray,
):
    """
    Surface mass balance, linear in elevation above the ELA and capped.

    Args:
        grad_b (float): Mass balance gradient (1/yr).
        z_ela (float): Equilibrium line altitude (m).
        b_max (float): Maximum accumulation rate (m/yr).
        S (np.ndarray): Surface elevation (nx, ny).
        M (np.ndarray): Mass balance (nx, ny). Overwritten.
    """
    nx, ny = S.shape
    for i in prange(nx):
        for j in range(ny):
            m = grad_b * (S[i, j] - z_ela)
            if m > b_max:
                m = b_max
            M[i, j] = m


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_diffusivity_2d(
    a: float,
    npow: float,
    dx: float,
    dy: float,
    H: np.ndarray,
    S: np.ndarray,
    D: np.ndarray,
):
    """
    Nonlinear SIA diffusivity on cell corners.

    The surface gradient at a corner averages the two adjacent x-differences
    and the two adjacent y-differences of S.

    Args:
        a (float): Glen's law factor 2 a0 / (n+2) (rho g)^n per year.
        npow (float): Glen's exponent n.
        dx (float): Spacing along the first axis.
        dy (float): Spacing along the second axis.
        H (np.ndarray): Thickness (nx, ny).
        S (np.ndarray): Surface elevation (nx, ny).
        D (np.ndarray): Diffusivity (nx-1, ny-1). Overwritten.
    """
    nxm, nym = D.shape
    for i in prange(nxm):
        for j in range(nym):
            dSdx = 0.5 * ((S[i + 1, j] - S[i, j]) + (S[i + 1, j + 1] - S[i, j + 1])) / dx
            dSdy = 0.5 * ((S[i, j + 1] - S[i, j]) + (S[i + 1, j + 1] - S[i + 1, j])) / dy
            grad_s = math.sqrt(dSdx * dSdx + dSdy * dSdy)
            h_av = 0.25 * (H[i, j] + H[i + 1, j] + H[i, j + 1] + H[i + 1, j + 1])
            D[i, j] = a * h_av ** (npow + 2.0) * grad_s ** (npow - 1.0)


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_flux_2d(
    dx: float,
    dy: float,
    D: np.ndarray,
    S: np.ndarray,
    qHx: np.ndarray,
    qHy: np.ndarray,
):
    """
    Face fluxes in both directions, over the (nx-1, ny-1) index space.

    Args:
        dx (float): Spacing along the first axis.
        dy (float): Spacing along the second axis.
        D (np.ndarray): Corner diffusivity (nx-1, ny-1).
        S (np.ndarray): Surface elevation (nx, ny).
        qHx (np.ndarray): x-faces flux (nx-1, ny-2). Overwritten.
        qHy (np.ndarray): y-faces flux (nx-2, ny-1). Overwritten.
    """
    nxm, nym = D.shape
    for i in prange(nxm):
        for j in range(nym):
            if j < nym - 1:
                qHx[i, j] = (
                    -0.5 * (D[i, j] + D[i, j + 1]) * (S[i + 1, j + 1] - S[i, j + 1]) / dx
                )
            if i < nxm - 1:
                qHy[i, j] = (
                    -0.5 * (D[i, j] + D[i + 1, j]) * (S[i + 1, j + 1] - S[i + 1, j]) / dy
                )


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_residual_2d(
    inv_dt: float,
    damp: float,
    dx: float,
    dy: float,
    cfl: float,
    epsi: float,
    dtau_scale: float,
    dtau_cap: float,
    H: np.ndarray,
    Hold: np.ndarray,
    M: np.ndarray,
    D: np.ndarray,
    qHx: np.ndarray,
    qHy: np.ndarray,
    dtau: np.ndarray,
    ResH: np.ndarray,
    dHdt: np.ndarray,
):
    """
    Local pseudo step, residual and damped rate of the interior cells.

    Args:
        inv_dt (float): 1 / physical time step; 0 for a steady-state solve.
        damp (float): Damping factor in [0, 1).
        dx (float): Spacing along the first axis.
        dy (float): Spacing along the second axis.
        cfl (float): max(dx^2, dy^2) / cfl_safety.
        epsi (float): Regularisation of the diffusivity average.
        dtau_scale (float): Scaling of the local pseudo step.
        dtau_cap (float): Cap of the unscaled local pseudo step.
        H, Hold, M (np.ndarray): Full-grid fields (nx, ny).
        D (np.ndarray): Corner diffusivity (nx-1, ny-1).
        qHx, qHy (np.ndarray): Face fluxes.
        dtau, ResH (np.ndarray): Interior fields (nx-2, ny-2). Overwritten.
        dHdt (np.ndarray): Damped rate (nx-2, ny-2). Updated in place.
    """
    nxi, nyi = ResH.shape
    for i in prange(nxi):
        for j in range(nyi):
            d_av = 0.25 * (D[i, j] + D[i + 1, j] + D[i, j + 1] + D[i + 1, j + 1])
            local_dtau = cfl / (epsi + d_av)
            if local_dtau > dtau_cap:
                local_dtau = dtau_cap
            local_dtau *= dtau_scale
            if inv_dt > 0.0:
                local_dtau = 1.0 / (1.0 / local_dtau + inv_dt)
            dtau[i, j] = local_dtau

            residual = (
                -(H[i + 1, j + 1] - Hold[i + 1, j + 1]) * inv_dt
                - (
                    (qHx[i + 1, j] - qHx[i, j]) / dx
                    + (qHy[i, j + 1] - qHy[i, j]) / dy
                )
                + M[i + 1, j + 1]
            )
            ResH[i, j] = residual
            dHdt[i, j] = dHdt[i, j] * damp + residual


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_update_2d(
    H: np.ndarray,
    B: np.ndarray,
    S: np.ndarray,
    Mask: np.ndarray,
    dtau: np.ndarray,
    dHdt: np.ndarray,
):
    """
    Pseudo-time update of the interior thickness, floored at zero and masked.

    The surface S = B + H is refreshed for the updated cells.
    """
    nxi, nyi = dHdt.shape
    for i in prange(nxi):
        for j in range(nyi):
            h = H[i + 1, j + 1] + dtau[i, j] * dHdt[i, j]
            if h < 0.0:
                h = 0.0
            if Mask[i + 1, j + 1] == 0:
                h = 0.0
            H[i + 1, j + 1] = h
            S[i + 1, j + 1] = B[i + 1, j + 1] + h


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_compute_velocity_2d(
    epsi: float,
    dx: float,
    dy: float,
    H: np.ndarray,
    S: np.ndarray,
    D: np.ndarray,
    Vx: np.ndarray,
    Vy: np.ndarray,
):
    """Depth-averaged velocity components on cell corners, -D / av(H) * grad S."""
    nxm, nym = D.shape
    for i in prange(nxm):
        for j in range(nym):
            dSdx = 0.5 * ((S[i + 1, j] - S[i, j]) + (S[i + 1, j + 1] - S[i, j + 1])) / dx
            dSdy = 0.5 * ((S[i, j + 1] - S[i, j]) + (S[i + 1, j + 1] - S[i + 1, j])) / dy
            h_av = 0.25 * (H[i, j] + H[i + 1, j] + H[i, j + 1] + H[i + 1, j + 1])
            factor = -D[i, j] / (h_av + epsi)
            Vx[i, j] = factor * dSdx
            Vy[i, j] = factor * dSdy


# --- CUDA kernels ---


@cuda.jit(cache=True)
def _cuda_compute_mass_balance_2d(grad_b, z_ela, b_max, S, M):
    i, j = cuda.grid(2)
    if i < S.shape[0] and j < S.shape[1]:
        m = grad_b * (S[i, j] - z_ela)
        if m > b_max:
            m = b_max
        M[i, j] = m


@cuda.jit(cache=True)
def _cuda_compute_diffusivity_2d(a, npow, dx, dy, H, S, D):
    i, j = cuda.grid(2)
    if i < D.shape[0] and j < D.shape[1]:
        dSdx = 0.5 * ((S[i + 1, j] - S[i, j]) + (S[i + 1, j + 1] - S[i, j + 1])) / dx
        dSdy = 0.5 * ((S[i, j + 1] - S[i, j]) + (S[i + 1, j + 1] - S[i + 1, j])) / dy
        grad_s = math.sqrt(dSdx * dSdx + dSdy * dSdy)
        h_av = 0.25 * (H[i, j] + H[i + 1, j] + H[i, j + 1] + H[i + 1, j + 1])
        D[i, j] = a * h_av ** (npow + 2.0) * grad_s ** (npow - 1.0)


@cuda.jit(cache=True)
def _cuda_compute_flux_2d(dx, dy, D, S, qHx, qHy):
    i, j = cuda.grid(2)
    if i < qHx.shape[0] and j < qHx.shape[1]:
        qHx[i, j] = -0.5 * (D[i, j] + D[i, j + 1]) * (S[i + 1, j + 1] - S[i, j + 1]) / dx
    if i < qHy.shape[0] and j < qHy.shape[1]:
        qHy[i, j] = -0.5 * (D[i, j] + D[i + 1, j]) * (S[i + 1, j + 1] - S[i + 1, j]) / dy


@cuda.jit(cache=True)
def _cuda_compute_residual_2d(
    inv_dt,
    damp,
    dx,
    dy,
    cfl,
    epsi,
    dtau_scale,
    dtau_cap,
    H,
    Hold,
    M,
    D,
    qHx,
    qHy,
    dtau,
    ResH,
    dHdt,
):
    i, j = cuda.grid(2)
    if i < ResH.shape[0] and j < ResH.shape[1]:
        d_av = 0.25 * (D[i, j] + D[i + 1, j] + D[i, j + 1] + D[i + 1, j + 1])
        local_dtau = cfl / (epsi + d_av)
        if local_dtau > dtau_cap:
            local_dtau = dtau_cap
        local_dtau *= dtau_scale
        if inv_dt > 0.0:
            local_dtau = 1.0 / (1.0 / local_dtau + inv_dt)
        dtau[i, j] = local_dtau

        residual = (
            -(H[i + 1, j + 1] - Hold[i + 1, j + 1]) * inv_dt
            - ((qHx[i + 1, j] - qHx[i, j]) / dx + (qHy[i, j + 1] - qHy[i, j]) / dy)
            + M[i + 1, j + 1]
        )
        ResH[i, j] = residual
        dHdt[i, j] = dHdt[i, j] * damp + residual


@cuda.jit(cache=True)
def _cuda_compute_update_2d(H, B, S, Mask, dtau, dHdt):
    i, j = cuda.grid(2)
    if i < dHdt.shape[0] and j < dHdt.shape[1]:
        h = H[i + 1, j + 1] + dtau[i, j] * dHdt[i, j]
        if h < 0.0:
            h = 0.0
        if Mask[i + 1, j + 1] == 0:
            h = 0.0
        H[i + 1, j + 1] = h
        S[i + 1, j + 1] = B[i + 1, j + 1] + h


@cuda.jit(cache=True)
def _cuda_compute_velocity_2d(epsi, dx, dy, H, S, D, Vx, Vy):
    i, j = cuda.grid(2)
    if i < D.shape[0] and j < D.shape[1]:
        dSdx = 0.5 * ((S[i + 1, j] - S[i, j]) + (S[i + 1, j + 1] - S[i, j + 1])) / dx
        dSdy = 0.5 * ((S[i, j + 1] - S[i, j]) + (S[i + 1, j + 1] - S[i + 1, j])) / dy
        h_av = 0.25 * (H[i, j] + H[i + 1, j] + H[i, j + 1] + H[i + 1, j + 1])
        factor = -D[i, j] / (h_av + epsi)
        Vx[i, j] = factor * dSdx
        Vy[i, j] = factor * dSdy


@cuda.jit(cache=True)
def _cuda_fill_2d(values_2d, value):
    i, j = cuda.grid(2)
    if i < values_2d.shape[0] and j < values_2d.shape[1]:
        values_2d[i, j] = value
