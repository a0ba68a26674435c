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
Accelerated pseudo-transient solver for 2D shallow-ice (SIA) flow.

The ice thickness H over a bed B evolves by nonlinear diffusion of the
surface S = B + H with a surface mass balance source M:

    dH/dt = -div(qH) + M,    qH = -D grad S,    D = a av(H)^(n+2) |grad S|^(n-1)

subject to H >= 0 and H = 0 outside the active domain (Mask == 0). Without
`dt` the steady state is solved in one pseudo-transient solve; with `dt` and
`ttot` every physical step is solved implicitly.

Velocities Vx, Vy are computed once, after the last solve, from the final
thickness and surface.

Classes:
    IceFlow2DSolver: Field ownership, physical time loop, pseudo-time
        convergence loop and output assembly.
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
    get_effective_verbosity,
)

_MODULE_NAME = __name__
_VERBOSITY = get_effective_verbosity(_MODULE_NAME)

from pyptdiff.config.param_definitions.parameters import validate_values
from pyptdiff.config.param_definitions.pseudotransient_params import (
    get_param_definitions,
)
from pyptdiff.config.solver_config import IceFlow2DConfig
from pyptdiff.solver.core import (
    STATUS_ITERATE,
    STATUS_FATAL,
    _cpu_sum_of_squares_2d,
    _cpu_sum_of_squared_difference_2d,
    _cuda_reset_accumulator,
    _cuda_sum_of_squares_2d,
    _cuda_sum_of_squared_difference_2d,
    _error_norm,
    _is_check_iteration,
    _iteration_control_check,
)
from pyptdiff.solver.iceflow.base import (
    _cpu_compute_mass_balance_2d,
    _cpu_compute_diffusivity_2d,
    _cpu_compute_flux_2d,
    _cpu_compute_residual_2d,
    _cpu_compute_update_2d,
    _cpu_compute_velocity_2d,
    _cuda_compute_mass_balance_2d,
    _cuda_compute_diffusivity_2d,
    _cuda_compute_flux_2d,
    _cuda_compute_residual_2d,
    _cuda_compute_update_2d,
    _cuda_compute_velocity_2d,
    _cuda_fill_2d,
)
from pyptdiff.solver.diagnostics import (
    IceFlow2DResult,
    SolveDiagnostics,
    StepReport,
)
from pyptdiff.solver.exceptions import CNumericalDivergence
from pyptdiff.solver.fields import FieldStore2D

_DEVICE_FIELDS = (
    "B",
    "H",
    "S",
    "Hold",
    "Hsnap",
    "M",
    "D",
    "qHx",
    "qHy",
    "dtau",
    "ResH",
    "dHdt",
    "Vx",
    "Vy",
)


class IceFlow2DSolver:
    """
    Damped pseudo-transient SIA ice-flow solver.

    Attributes:
        config (IceFlow2DConfig): Physics and numerics.
        platform (Platform): Where the kernels run.
        fields (FieldStore2D): Grid fields; holds the latest state after `run()`.
        diagnostics (SolveDiagnostics): Per-step reports of the latest run.
        timings (dict): Wall-clock seconds of the run phases.
    """

    def __init__(
        self,
        dx,
        dy,
        Zbed,
        Hice,
        Mask,
        grad_b,
        z_ela,
        b_max,
        config=None,
        platform=None,
        verbosity=None,
    ):
        """
        Args:
            dx (float): Grid spacing along the first axis (m).
            dy (float): Grid spacing along the second axis (m).
            Zbed (np.ndarray): Bed elevation (nx, ny).
            Hice (np.ndarray): Initial ice thickness (nx, ny).
            Mask (np.ndarray): 1 where ice may exist, 0 elsewhere.
            grad_b (float): Mass balance gradient (1/yr).
            z_ela (float): Equilibrium line altitude (m).
            b_max (float): Maximum accumulation (m/yr).
            config (IceFlow2DConfig): Defaults to a steady-state solve.
            platform (Platform): Defaults to CPU.
            verbosity (int): Logging threshold; defaults to the module setting.
        """
        validate_values(
            get_param_definitions(),
            {"grad_b": grad_b, "z_ela": z_ela, "b_max": b_max},
        )
        self.config = config if config is not None else IceFlow2DConfig()
        self.platform = platform if platform is not None else Platform("cpu")
        self.verbosity = _VERBOSITY if verbosity is None else verbosity
        self.grad_b = float(grad_b)
        self.z_ela = float(z_ela)
        self.b_max = float(b_max)
        self.timings = {}

        self.fields = FieldStore2D(dx, dy, Zbed, Hice, Mask)
        self.H0 = self.fields.H.copy()
        self.diagnostics = SolveDiagnostics()
        self.time = 0.0

        self._device = None
        self._threads = (0, 0)
        self._blocks = (0, 0)

    # ------------------------------------------------------------------
    # platform specific passes
    # ------------------------------------------------------------------

    def _to_device(self):
        f = self.fields
        self._threads = tuple(self.platform.names["cuda"]["num_threads_2d"])
        self._blocks = (
            (f.nx + self._threads[0] - 1) // self._threads[0],
            (f.ny + self._threads[1] - 1) // self._threads[1],
        )
        self._device = {name: cuda.to_device(getattr(f, name)) for name in _DEVICE_FIELDS}
        self._device["Mask"] = cuda.to_device(f.Mask)
        self._device["sum_sq"] = cuda.to_device(np.zeros(1, dtype=np.float64))

    def _from_device(self):
        f = self.fields
        d = self._device
        for name in _DEVICE_FIELDS:
            d[name].copy_to_host(getattr(f, name))
        self._device = None

    def _iterate_once(self, inv_dt):
        """Source -> diffusivity -> flux -> residual -> update, with a barrier after each pass."""
        cfg = self.config
        f = self.fields
        a, npow = cfg.rate_factor, cfg.npow
        dx, dy = f.dx, f.dy
        damp, cfl = cfg.damping, cfg.cfl(dx, dy)

        if self.platform.active == "cpu":
            _cpu_compute_mass_balance_2d(self.grad_b, self.z_ela, self.b_max, f.S, f.M)
            _cpu_compute_diffusivity_2d(a, npow, dx, dy, f.H, f.S, f.D)
            _cpu_compute_flux_2d(dx, dy, f.D, f.S, f.qHx, f.qHy)
            _cpu_compute_residual_2d(
                inv_dt,
                damp,
                dx,
                dy,
                cfl,
                cfg.epsi,
                cfg.dtau_scale,
                cfg.dtau_cap,
                f.H,
                f.Hold,
                f.M,
                f.D,
                f.qHx,
                f.qHy,
                f.dtau,
                f.ResH,
                f.dHdt,
            )
            _cpu_compute_update_2d(f.H, f.B, f.S, f.Mask, f.dtau, f.dHdt)
        elif self.platform.active == "cuda":
            d = self._device
            blocks, threads = self._blocks, self._threads
            _cuda_compute_mass_balance_2d[blocks, threads](
                self.grad_b, self.z_ela, self.b_max, d["S"], d["M"]
            )
            cuda.synchronize()
            _cuda_compute_diffusivity_2d[blocks, threads](
                a, npow, dx, dy, d["H"], d["S"], d["D"]
            )
            cuda.synchronize()
            _cuda_compute_flux_2d[blocks, threads](
                dx, dy, d["D"], d["S"], d["qHx"], d["qHy"]
            )
            cuda.synchronize()
            _cuda_compute_residual_2d[blocks, threads](
                inv_dt,
                damp,
                dx,
                dy,
                cfl,
                cfg.epsi,
                cfg.dtau_scale,
                cfg.dtau_cap,
                d["H"],
                d["Hold"],
                d["M"],
                d["D"],
                d["qHx"],
                d["qHy"],
                d["dtau"],
                d["ResH"],
                d["dHdt"],
            )
            cuda.synchronize()
            _cuda_compute_update_2d[blocks, threads](
                d["H"], d["B"], d["S"], d["Mask"], d["dtau"], d["dHdt"]
            )
            cuda.synchronize()

    def _compute_velocities(self):
        cfg = self.config
        f = self.fields
        a, npow, epsi = cfg.rate_factor, cfg.npow, cfg.epsi
        if self.platform.active == "cpu":
            _cpu_compute_diffusivity_2d(a, npow, f.dx, f.dy, f.H, f.S, f.D)
            _cpu_compute_velocity_2d(epsi, f.dx, f.dy, f.H, f.S, f.D, f.Vx, f.Vy)
        else:
            d = self._device
            blocks, threads = self._blocks, self._threads
            _cuda_compute_diffusivity_2d[blocks, threads](
                a, npow, f.dx, f.dy, d["H"], d["S"], d["D"]
            )
            cuda.synchronize()
            _cuda_compute_velocity_2d[blocks, threads](
                epsi, f.dx, f.dy, d["H"], d["S"], d["D"], d["Vx"], d["Vy"]
            )
            cuda.synchronize()

    def _snapshot(self):
        if self.platform.active == "cpu":
            self.fields.Hsnap[:] = self.fields.H
        else:
            self._device["Hsnap"].copy_to_device(self._device["H"])

    def _evaluate_error(self, increment):
        f = self.fields
        num_elements = f.H.size if increment else f.ResH.size
        if self.platform.active == "cpu":
            if increment:
                sum_sq = _cpu_sum_of_squared_difference_2d(f.Hsnap, f.H)
            else:
                sum_sq = _cpu_sum_of_squares_2d(f.ResH)
        else:
            d = self._device
            blocks, threads = self._blocks, self._threads
            _cuda_reset_accumulator[1, 1](d["sum_sq"])
            if increment:
                _cuda_sum_of_squared_difference_2d[blocks, threads](
                    d["Hsnap"], d["H"], d["sum_sq"]
                )
            else:
                _cuda_sum_of_squares_2d[blocks, threads](d["ResH"], d["sum_sq"])
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
            _cuda_fill_2d[self._blocks, self._threads](self._device["dHdt"], 0.0)
            cuda.synchronize()

    # ------------------------------------------------------------------
    # loops
    # ------------------------------------------------------------------

    def _solve_pseudo_transient(self, step, inv_dt):
        """
        Pseudo-time convergence loop of one solve.

        Args:
            step (int): Physical step index, for reporting.
            inv_dt (float): Transient weight; 0 for the steady equation.

        Returns:
            (iterations, err, status)

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
            INFO,
            self.verbosity,
            "    SIA> | #Iteration |   Error    | Time (seconds) |",
        )
        tic_block = time.perf_counter()
        while True:
            check_now = _is_check_iteration(iteration + 1, check_interval, max_iters)
            if increment and check_now:
                self._snapshot()
            self._iterate_once(inv_dt)
            iteration += 1

            if check_now:
                err = self._evaluate_error(increment)
                history.append((iteration, err))
                toc_block = time.perf_counter()
                vprint(
                    INFO,
                    self.verbosity,
                    f"    SIA> | {iteration:10d} | {err:10.4e} | {toc_block - tic_block:14.6f} |",
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
                f"    SIA> Divergence detected (non-finite error) at step {step}, iteration {iteration}",
            )
            raise CNumericalDivergence(iteration, err, step)
        return iteration, err, ConvergenceStatus.from_int(status)

    def run(self):
        """
        Solves the steady state, or runs the physical time loop to `ttot`.

        Every call starts from the initial thickness given on construction.

        Returns:
            IceFlow2DResult: Thickness, surface, mass balance, velocities,
            final time and diagnostics.

        Raises:
            CNumericalDivergence: If any pseudo-time loop hits a non-finite
                error norm.
        """
        cfg = self.config
        f = self.fields
        f.restore(self.H0)
        self.diagnostics = SolveDiagnostics()
        self.time = 0.0

        if self.platform.active == "cuda":
            cuda.select_device(self.platform.names["cuda"]["selected_id"])
            self._to_device()
        else:
            set_num_threads(self.platform.names["cpu"]["num_threads"])

        mode = "steady state" if cfg.steady else f"transient, dt = {cfg.dt:.4e}"
        vprint(
            INFO,
            self.verbosity,
            f"    SIA> 2D ice flow on {self.platform.active}: nx = {f.nx}, ny = {f.ny}, "
            f"{mode}, damp = {cfg.damping:.4f}, steps = {cfg.num_steps}",
        )

        tic_run = time.perf_counter()
        try:
            for step in range(cfg.num_steps):
                if cfg.reset_rate_each_step:
                    self._reset_rate()
                iterations, err, status = self._solve_pseudo_transient(step, cfg.inv_dt)
                if not cfg.steady:
                    self.time += cfg.dt
                self._commit()

                report = StepReport(step, self.time, iterations, err, status)
                self.diagnostics.steps.append(report)
                if status is ConvergenceStatus.MAXED_OUT:
                    vprint(
                        WARNING,
                        self.verbosity,
                        f"    SIA> Step {step + 1}: iteration cap ({cfg.itmax}) reached, "
                        f"error = {err:.4e} > tol = {cfg.tol:.1e}; continuing unconverged",
                    )
                vprint(
                    INFO,
                    self.verbosity,
                    f"    SIA> step {step + 1:5d}/{cfg.num_steps} | t = {self.time:10.4f} | "
                    f"iterations = {iterations:7d} | error = {err:10.4e} | {status.label}",
                )
            tic_vel = time.perf_counter()
            self._compute_velocities()
            self.timings["sia2d| velocities"] = "{:0.3f}".format(
                time.perf_counter() - tic_vel
            )
        finally:
            if self._device is not None:
                self._from_device()
        toc_run = time.perf_counter()

        self.timings["sia2d| physical time loop"] = "{:0.3f}".format(toc_run - tic_run)
        vprint(
            INFO,
            self.verbosity,
            f"    SIA> Total time = {self.time:.2f}, time steps = {self.diagnostics.num_steps}, "
            f"iterations tot = {self.diagnostics.total_iterations}",
        )
        return IceFlow2DResult(
            H=f.H.copy(),
            S=f.S.copy(),
            M=f.M.copy(),
            Vx=f.Vx.copy(),
            Vy=f.Vy.copy(),
            time=self.time,
            diagnostics=self.diagnostics,
        )
