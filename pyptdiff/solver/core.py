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
Reductions and iteration control shared by all pseudo-transient solvers.

The error norm is the L2 norm of a field divided by its element count,
`sqrt(sum(x^2)) / n`. Squares are accumulated in float64 regardless of the
field precision. No kernel here is compiled with fastmath: a NaN or Inf
anywhere in the field must survive the reduction so that the iteration
control can report FATAL.

Functions:
- `_cpu_sum_of_squares_1d` / `_cpu_sum_of_squares_2d`: parallel reductions
  of a residual field.
- `_cpu_sum_of_squared_difference_1d` / `_2d`: parallel reductions of the
  change between a snapshot and the current field.
- `_cuda_reset_accumulator`, `_cuda_sum_of_squares_1d`,
  `_cuda_sum_of_squared_difference_1d`, `_cuda_sum_of_squares_2d`,
  `_cuda_sum_of_squared_difference_2d`: device
  counterparts using atomic accumulation into a one-element array.
- `_error_norm`: turns a sum of squares into the normalised error.
- `_iteration_control_check`: the CONVERGED / MAXED_OUT / FATAL decision.
- `_is_check_iteration`: the error-check schedule (every `nout` iterations
  and at the iteration cap).
"""

import math
import numpy as np

from numba import njit, prange, cuda, float64

from pyptdiff.foundation.enums import ConvergenceStatus

STATUS_ITERATE = ConvergenceStatus.ITERATE.int_value
STATUS_CONVERGED = ConvergenceStatus.CONVERGED.int_value
STATUS_MAXED_OUT = ConvergenceStatus.MAXED_OUT.int_value
STATUS_FATAL = ConvergenceStatus.FATAL.int_value


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_sum_of_squares_1d(values_1d: np.ndarray) -> float:
    total = 0.0
    for i in prange(values_1d.shape[0]):
        v = float64(values_1d[i])
        total += v * v
    return total


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_sum_of_squares_2d(values_2d: np.ndarray) -> float:
    nx, ny = values_2d.shape
    total = 0.0
    for i in prange(nx):
        for j in range(ny):
            v = float64(values_2d[i, j])
            total += v * v
    return total


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_sum_of_squared_difference_1d(
    snapshot_1d: np.ndarray, current_1d: np.ndarray
) -> float:
    total = 0.0
    for i in prange(current_1d.shape[0]):
        v = float64(snapshot_1d[i]) - float64(current_1d[i])
        total += v * v
    return total


@njit(nogil=True, boundscheck=False, parallel=True, cache=True)
def _cpu_sum_of_squared_difference_2d(
    snapshot_2d: np.ndarray, current_2d: np.ndarray
) -> float:
    nx, ny = current_2d.shape
    total = 0.0
    for i in prange(nx):
        for j in range(ny):
            v = float64(snapshot_2d[i, j]) - float64(current_2d[i, j])
            total += v * v
    return total


@cuda.jit(cache=True)
def _cuda_reset_accumulator(sum_sq_out):
    """
    Zero the device accumulator before an atomic reduction.

    Launched single-threaded as `_cuda_reset_accumulator[1, 1](...)`.
    """
    if cuda.threadIdx.x == 0:
        sum_sq_out[0] = 0.0


@cuda.jit(cache=True)
def _cuda_sum_of_squares_1d(values_1d, sum_sq_out):
    tid = cuda.grid(1)
    stride = cuda.gridsize(1)
    local_sum = 0.0
    for i in range(tid, values_1d.shape[0], stride):
        v = float64(values_1d[i])
        local_sum += v * v
    cuda.atomic.add(sum_sq_out, 0, local_sum)


@cuda.jit(cache=True)
def _cuda_sum_of_squared_difference_1d(snapshot_1d, current_1d, sum_sq_out):
    tid = cuda.grid(1)
    stride = cuda.gridsize(1)
    local_sum = 0.0
    for i in range(tid, current_1d.shape[0], stride):
        v = float64(snapshot_1d[i]) - float64(current_1d[i])
        local_sum += v * v
    cuda.atomic.add(sum_sq_out, 0, local_sum)


@cuda.jit(cache=True)
def _cuda_sum_of_squares_2d(values_2d, sum_sq_out):
    i, j = cuda.grid(2)
    if i < values_2d.shape[0] and j < values_2d.shape[1]:
        v = float64(values_2d[i, j])
        cuda.atomic.add(sum_sq_out, 0, v * v)


@cuda.jit(cache=True)
def _cuda_sum_of_squared_difference_2d(snapshot_2d, current_2d, sum_sq_out):
    i, j = cuda.grid(2)
    if i < current_2d.shape[0] and j < current_2d.shape[1]:
        v = float64(snapshot_2d[i, j]) - float64(current_2d[i, j])
        cuda.atomic.add(sum_sq_out, 0, v * v)


def _error_norm(sum_of_squares: float, num_elements: int) -> float:
    """L2 norm divided by the element count."""
    return math.sqrt(sum_of_squares) / num_elements


@njit(nogil=True, boundscheck=False, cache=True)
def _iteration_control_check(
    err: float,
    tol: float,
    max_iters: int,
    iteration: int,
):
    """
    Iteration control of the pseudo-time convergence loop.

    Args:
        err (float): Error norm evaluated at this check.
        tol (float): Convergence tolerance.
        max_iters (int): Iteration cap.
        iteration (int): Number of pseudo-time iterations done so far.

    Returns:
        (stop, status):
            stop (bool): True if the loop should exit.
            status (int):
                0 = keep iterating
                1 = converged (err <= tol)
                2 = iteration cap reached (non-fatal)
                3 = non-finite error norm (fatal)
    """
    # --- Divergence / NaN safety ---
    if not math.isfinite(err):
        return True, STATUS_FATAL

    # --- Primary convergence check ---
    if err <= tol:
        return True, STATUS_CONVERGED

    # --- Max iteration fallback ---
    if iteration >= max_iters:
        return True, STATUS_MAXED_OUT

    return False, STATUS_ITERATE


def _is_check_iteration(iteration: int, check_interval: int, max_iters: int) -> bool:
    """Whether the error norm is evaluated after pseudo-time iteration `iteration`."""
    return iteration % check_interval == 0 or iteration >= max_iters
