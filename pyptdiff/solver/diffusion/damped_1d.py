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
Accelerated pseudo-transient solver for 1D linear diffusion.

Each physical time step of size dt is solved implicitly: a damped explicit
pseudo-time iteration drives the residual of

    (H - Hold) / dt = -d(qH)/dx,    qH = -D dH/dx

below the tolerance. The damped rate `dHdt := damp * dHdt + ResH` carries
momentum between pseudo-iterations so that the explicit relaxation
converges in O(nx) instead of O(nx^2) iterations. The two end values of H
are fixed (Dirichlet) and never written.

The kernels run on CPU (Numba, multi-threaded) or on a CUDA device,
depending on `platform.active`.

Classes:
    PTDiffusion1DSolver: Field ownership, physical time loop and
        pseudo-time convergence loop.
"""

import time
import numpy as np

from numba import set_num_threads, cuda

from pyptdiff.foundation.enums import ConvergenceStatus, ErrorMeasure
from pyptdiff.foundation.platform import Platform
from pyptdiff.config.global_runtime import vprint

from pyptdiff.config.logging_config import (
    ERROR,
    WARNING,
    INFO,
    DEBUG,
    get_effective_verbosity,
)

_MODULE_NAME = __name__
_VERBOSITY = get_effective_verbosity(_MODULE_NAME)

from pyptdiff.config.solver_config import Diffusion1DConfig
from pyptdiff.solver.core import (
    STATUS_ITERATE,
    STATUS_FATAL,
    _cpu_sum_of_squares_1d,
    _cpu_sum_of_squared_difference_1d,
    _cuda_reset_accumulator,
    _cuda_sum_of_squares_1d,
    _cuda_sum_of_squared_difference_1d,
    _error_norm,
    _is_check_iteration,
    _iteration_control_check,
)
from pyptdiff.solver.diffusion.base import (
    _cpu_compute_flux_1d,
    _cpu_compute_rate_1d,
    _cpu_compute_update_1d,
    _cuda_compute_flux_1d,
    _cuda_compute_rate_1d,
    _cuda_compute_update_1d,
    _cuda_fill_1d,
)
from pyptdiff.solver.diagnostics import (
    Diffusion1DResult,
    SolveDiagnostics,
    StepReport,
)
from pyptdiff.solver.exceptions import CNumericalDivergence
from pyptdiff.solver.fields import FieldStore1D
from pyptdiff.utils.analytic import gaussian_initial_condition


class PTDiffusion1DSolver:
    """
    Damped pseudo-transient 1D diffusion solver.

    The damped rate is zeroed at the start of every physical step when
    `config.reset_rate_each_step` is True (the default); otherwise it keeps
    the momentum of the previous step.
    """

    def __init__(self, config=None, platform=None, initial_H=None, verbosity=None):
        """
        Args:
            config (Diffusion1DConfig): Physics and numerics; defaults to the
                Gaussian benchmark (lx = 10, D = 1, nx = 256, dt = 0.1, ttot = 0.6).
            platform (Platform): Where the kernels run; defaults to CPU.
            initial_H (np.ndarray): Initial condition of shape (nx,); defaults
                to `exp(-(x - lx/2)^2)`.
            verbosity (int): Logging threshold; defaults to the module setting.
        """
        self.config = config if config is not None else Diffusion1DConfig()
        self.platform = platform if platform is not None else Platform("cpu")
        self.verbosity = _VERBOSITY if verbosity is None else verbosity
        self.timings = {}

        if initial_H is None:
            initial_H = gaussian_initial_condition(self.config.xc, self.config.lx)
        self.fields = FieldStore1D(self.config.nx, initial_H, self.config.dx)
        self.H0 = self.fields.H.copy()
        self.diagnostics = SolveDiagnostics()
        self.time = 0.0

        self._device = None
        self._n_blocks = 0
        self._n_threads = 0

    # ------------------------------------------------------------------
    # platform specific passes
    # ------------------------------------------------------------------

    def _to_device(self):
        f = self.fields
        self._n_threads = self.platform.names["cuda"]["num_threads"]
        self._n_blocks = (f.nx + self._n_threads - 1) // self._n_threads
        self._device = {
            "H": cuda.to_device(f.H),
            "Hold": cuda.to_device(f.Hold),
            "Hsnap": cuda.to_device(f.Hsnap),
            "qH": cuda.to_device(f.qH),
            "ResH": cuda.to_device(f.ResH),
            "dHdt": cuda.to_device(f.dHdt),
            "sum_sq": cuda.to_device(np.zeros(1, dtype=np.float64)),
        }

    def _from_device(self):
        f = self.fields
        d = self._device
        d["H"].copy_to_host(f.H)
        d["Hold"].copy_to_host(f.Hold)
        d["qH"].copy_to_host(f.qH)
        d["ResH"].copy_to_host(f.ResH)
        d["dHdt"].copy_to_host(f.dHdt)
        self._device = None

    def _iterate_once(self):
        """Flux -> rate -> update, with a barrier after each pass."""
        cfg = self.config
        f = self.fields
        D, dx = cfg.diffusion_coeff, cfg.dx
        inv_dt, damp, dtau = 1.0 / cfg.dt, cfg.damping, cfg.dtau

        if self.platform.active == "cpu":
            _cpu_compute_flux_1d(D, dx, f.H, f.qH)
            _cpu_compute_rate_1d(inv_dt, damp, dx, f.H, f.Hold, f.qH, f.ResH, f.dHdt)
            _cpu_compute_update_1d(dtau, f.H, f.dHdt)
        elif self.platform.active == "cuda":
            d = self._device
            launch = (self._n_blocks, self._n_threads)
            _cuda_compute_flux_1d[launch](D, dx, d["H"], d["qH"])
            cuda.synchronize()
            _cuda_compute_rate_1d[launch](
                inv_dt, damp, dx, d["H"], d["Hold"], d["qH"], d["ResH"], d["dHdt"]
            )
            cuda.synchronize()
            _cuda_compute_update_1d[launch](dtau, d["H"], d["dHdt"])
            cuda.synchronize()

    def _snapshot(self):
        if self.platform.active == "cpu":
            self.fields.Hsnap[:] = self.fields.H
        else:
            self._device["Hsnap"].copy_to_device(self._device["H"])

    def _evaluate_error(self, increment):
        f = self.fields
        num_elements = f.nx if increment else f.ResH.shape[0]
        if self.platform.active == "cpu":
            if increment:
                sum_sq = _cpu_sum_of_squared_difference_1d(f.Hsnap, f.H)
            else:
                sum_sq = _cpu_sum_of_squares_1d(f.ResH)
        else:
            d = self._device
            launch = (self._n_blocks, self._n_threads)
            _cuda_reset_accumulator[1, 1](d["sum_sq"])
            if increment:
                _cuda_sum_of_squared_difference_1d[launch](
                    d["Hsnap"], d["H"], d["sum_sq"]
                )
            else:
                _cuda_sum_of_squares_1d[launch](d["ResH"], d["sum_sq"])
            cuda.synchronize()
            sum_sq = d["sum_sq"].copy_to_host()[0]
        return _error_norm(sum_sq, num_elements)

    def _commit(self):
        if self.platform.active == "cpu":
            self.fields.commit()
        else:
            self._device["Hold"].copy_to_device(self._device["H"])

    def _reset_rate(self):
        if self.platform.active == "cpu":
            self.fields.reset_rate()
        else:
            _cuda_fill_1d[self._n_blocks, self._n_threads](self._device["dHdt"], 0.0)
            cuda.synchronize()

    # ------------------------------------------------------------------
    # loops
    # ------------------------------------------------------------------

    def _solve_pseudo_transient(self, step):
        """
        Pseudo-time convergence loop of one physical step.

        Returns:
            (iterations, err, status): iteration count, last error norm and
            the terminal ConvergenceStatus (CONVERGED or MAXED_OUT).

        Raises:
            CNumericalDivergence: If an error norm evaluation is non-finite.
        """
        cfg = self.config
        tol, max_iters, check_interval = cfg.tol, int(cfg.itmax), int(cfg.nout)
        increment = cfg.error_measure is ErrorMeasure.INCREMENT

        iteration = 0
        err = 2.0 * tol
        status = STATUS_ITERATE
        history = []

        vprint(
            DEBUG,
            self.verbosity,
            "    PTD> | #Iteration |   Error    | Time (seconds) |",
        )
        tic_block = time.perf_counter()
        while True:
            check_now = _is_check_iteration(iteration + 1, check_interval, max_iters)
            if increment and check_now:
                self._snapshot()
            self._iterate_once()
            iteration += 1

            if check_now:
                err = self._evaluate_error(increment)
                history.append((iteration, err))
                toc_block = time.perf_counter()
                vprint(
                    DEBUG,
                    self.verbosity,
                    f"    PTD> | {iteration:10d} | {err:10.4e} | {toc_block - tic_block:14.6f} |",
                )
                tic_block = toc_block

                stop, status = _iteration_control_check(err, tol, max_iters, iteration)
                if stop:
                    break

        self.diagnostics.err_history = history
        if status == STATUS_FATAL:
            vprint(
                ERROR,
                self.verbosity,
                f"    PTD> Divergence detected (non-finite error) at step {step}, iteration {iteration}",
            )
            raise CNumericalDivergence(iteration, err, step)
        return iteration, err, ConvergenceStatus.from_int(status)

    def run(self):
        """
        Runs the physical time loop from the initial condition to `ttot`.

        Returns:
            Diffusion1DResult: Final field, initial field, cell centres, final
            time and diagnostics.

        Raises:
            CNumericalDivergence: If any pseudo-time loop hits a non-finite
                error norm. The fields left in `self.fields` must not be trusted.
        """
        cfg = self.config
        self.fields.restore(self.H0)
        self.diagnostics = SolveDiagnostics()
        self.time = 0.0

        if self.platform.active == "cuda":
            cuda.select_device(self.platform.names["cuda"]["selected_id"])
            self._to_device()
        else:
            set_num_threads(self.platform.names["cpu"]["num_threads"])

        vprint(
            INFO,
            self.verbosity,
            f"    PTD> 1D damped diffusion on {self.platform.active}: nx = {cfg.nx}, "
            f"dt = {cfg.dt:.4e}, dtau = {cfg.dtau:.4e}, damp = {cfg.damping:.4f}, "
            f"steps = {cfg.num_steps}",
        )

        tic_run = time.perf_counter()
        try:
            for step in range(cfg.num_steps):
                if cfg.reset_rate_each_step:
                    self._reset_rate()
                iterations, err, status = self._solve_pseudo_transient(step)
                self.time += cfg.dt
                self._commit()

                report = StepReport(step, self.time, iterations, err, status)
                self.diagnostics.steps.append(report)
                if status is ConvergenceStatus.MAXED_OUT:
                    vprint(
                        WARNING,
                        self.verbosity,
                        f"    PTD> Step {step + 1}: iteration cap ({cfg.itmax}) reached, "
                        f"error = {err:.4e} > tol = {cfg.tol:.1e}; continuing unconverged",
                    )
                vprint(
                    INFO,
                    self.verbosity,
                    f"    PTD> step {step + 1:5d}/{cfg.num_steps} | t = {self.time:10.4f} | "
                    f"iterations = {iterations:7d} | error = {err:10.4e} | {status.label}",
                )
        finally:
            if self._device is not None:
                self._from_device()
        toc_run = time.perf_counter()

        self.timings["ptd1d| physical time loop"] = "{:0.3f}".format(toc_run - tic_run)
        vprint(
            INFO,
            self.verbosity,
            f"    PTD> Total time = {self.time:.2f}, time steps = {self.diagnostics.num_steps}, "
            f"iterations tot = {self.diagnostics.total_iterations}",
        )
        return Diffusion1DResult(
            H=self.fields.H.copy(),
            H0=self.H0.copy(),
            xc=cfg.xc,
            time=self.time,
            diagnostics=self.diagnostics,
        )
