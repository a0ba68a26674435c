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
Serial explicit solver for 1D linear diffusion.

Forward Euler at the stability limit `dt = dx^2 / D / cfl_safety`. It
reuses the pseudo-transient stencil kernels: with the transient weight set
to zero, no damping, `Hold` aliased to `H` and `dtau = dt`, a single
flux -> rate -> update pass is exactly one explicit time step. It runs on
the CPU with one Numba thread unless told otherwise.
"""

import math
import time

from numba import set_num_threads

from pyptdiff.foundation.enums import ConvergenceStatus
from pyptdiff.foundation.platform import Platform
from pyptdiff.config.global_runtime import vprint
from pyptdiff.config.logging_config import ERROR, INFO, get_effective_verbosity

_MODULE_NAME = __name__
_VERBOSITY = get_effective_verbosity(_MODULE_NAME)

from pyptdiff.config.solver_config import ExplicitDiffusion1DConfig
from pyptdiff.solver.core import _cpu_sum_of_squares_1d, _error_norm
from pyptdiff.solver.diffusion.base import (
    _cpu_compute_flux_1d,
    _cpu_compute_rate_1d,
    _cpu_compute_update_1d,
)
from pyptdiff.solver.diagnostics import (
    Diffusion1DResult,
    SolveDiagnostics,
    StepReport,
)
from pyptdiff.solver.exceptions import CInvalidConfiguration, CNumericalDivergence
from pyptdiff.solver.fields import FieldStore1D
from pyptdiff.utils.analytic import gaussian_initial_condition


class ExplicitDiffusion1DSolver:
    def __init__(self, config=None, platform=None, initial_H=None, verbosity=None):
        self.config = config if config is not None else ExplicitDiffusion1DConfig()
        self.platform = (
            platform if platform is not None else Platform("cpu", num_cpu_threads=1)
        )
        if self.platform.active != "cpu":
            raise CInvalidConfiguration("the explicit 1D solver runs on the CPU only")
        self.verbosity = _VERBOSITY if verbosity is None else verbosity
        self.timings = {}

        if initial_H is None:
            initial_H = gaussian_initial_condition(self.config.xc, self.config.lx)
        self.fields = FieldStore1D(self.config.nx, initial_H, self.config.dx)
        self.H0 = self.fields.H.copy()
        self.diagnostics = SolveDiagnostics()
        self.time = 0.0

    def run(self):
        """
        Advances the field until the clock reaches `ttot`.

        Every explicit step is recorded as a one-iteration, CONVERGED step
        whose error is the norm of the rate of change.

        Raises:
            CNumericalDivergence: If the rate norm becomes non-finite.
        """
        cfg = self.config
        f = self.fields
        f.restore(self.H0)
        self.diagnostics = SolveDiagnostics()
        self.time = 0.0

        set_num_threads(self.platform.names["cpu"]["num_threads"])
        D, dx, dt = cfg.diffusion_coeff, cfg.dx, cfg.dt
        vprint(
            INFO,
            self.verbosity,
            f"    PTD> 1D explicit diffusion: nx = {cfg.nx}, dt = {dt:.4e}, steps = {cfg.num_steps}",
        )

        tic_run = time.perf_counter()
        for step in range(cfg.num_steps):
            _cpu_compute_flux_1d(D, dx, f.H, f.qH)
            _cpu_compute_rate_1d(0.0, 0.0, dx, f.H, f.H, f.qH, f.ResH, f.dHdt)
            _cpu_compute_update_1d(dt, f.H, f.dHdt)
            self.time += dt

            err = _error_norm(_cpu_sum_of_squares_1d(f.ResH), f.ResH.shape[0])
            if not math.isfinite(err):
                vprint(
                    ERROR,
                    self.verbosity,
                    f"    PTD> Divergence detected (non-finite rate) at step {step}",
                )
                raise CNumericalDivergence(1, err, step)
            self.diagnostics.steps.append(
                StepReport(step, self.time, 1, err, ConvergenceStatus.CONVERGED)
            )
        f.commit()
        toc_run = time.perf_counter()

        self.timings["expl1d| time loop"] = "{:0.3f}".format(toc_run - tic_run)
        vprint(
            INFO,
            self.verbosity,
            f"    PTD> Total time = {self.time:.2f}, it tot = {self.diagnostics.num_steps}",
        )
        return Diffusion1DResult(
            H=f.H.copy(),
            H0=self.H0.copy(),
            xc=cfg.xc,
            time=self.time,
            diagnostics=self.diagnostics,
        )
