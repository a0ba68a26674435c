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
Reference profiles for the 1D diffusion benchmarks.

The Gaussian `exp(-(x - lx/2)^2)` is the self-similar solution of
`dH/dt = d2H/dx2` (D = 1) at t = 1/4, so its evolution is known exactly:

    H(x, t) = 1 / sqrt(4 (t + 1/4)) * exp(-(x - lx/2)^2 / (4 (t + 1/4)))
"""

import numpy as np


def gaussian_initial_condition(xc, lx):
    xc = np.asarray(xc)
    return np.exp(-((xc - lx / 2.0) ** 2))


def gaussian_analytic_solution(xc, lx, t, diffusion_coeff=1.0):
    """
    Exact solution evolved from `gaussian_initial_condition` after time `t`.

    Args:
        xc (np.ndarray): Cell centres.
        lx (float): Domain length; the Gaussian is centred at lx / 2.
        t (float): Elapsed time.
        diffusion_coeff (float): Diffusion coefficient D; time scales as D t.

    Returns:
        np.ndarray: H(xc, t).
    """
    xc = np.asarray(xc)
    tau = diffusion_coeff * t + 0.25
    return 1.0 / np.sqrt(4.0 * tau) * np.exp(-((xc - lx / 2.0) ** 2) / (4.0 * tau))


def mass_integral(H, dx):
    """Total mass sum(H) * dx."""
    return float(np.sum(np.asarray(H, dtype=np.float64)) * dx)


def l2_error(values, reference):
    """Unscaled L2 norm of the difference."""
    return float(
        np.linalg.norm(
            np.asarray(values, dtype=np.float64) - np.asarray(reference, dtype=np.float64)
        )
    )
