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
Diagnostics and result containers returned by the solvers.

Results only carry finished host arrays; nothing in here references the
inner loop state.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from pyptdiff.foundation.enums import ConvergenceStatus


@dataclass
class StepReport:
    """Outcome of the pseudo-time loop for one physical time step."""

    step: int
    time: float
    iterations: int
    error: float
    status: ConvergenceStatus

    @property
    def converged(self) -> bool:
        return self.status is ConvergenceStatus.CONVERGED


@dataclass
class SolveDiagnostics:
    steps: List[StepReport] = field(default_factory=list)
    # (iteration, error) pairs of the most recent pseudo-time loop
    err_history: List[Tuple[int, float]] = field(default_factory=list)

    @property
    def num_steps(self) -> int:
        return len(self.steps)

    @property
    def total_iterations(self) -> int:
        return sum(report.iterations for report in self.steps)

    @property
    def final_error(self) -> Optional[float]:
        return self.steps[-1].error if self.steps else None

    @property
    def final_time(self) -> float:
        return self.steps[-1].time if self.steps else 0.0

    @property
    def all_converged(self) -> bool:
        return all(report.converged for report in self.steps)

    @property
    def num_maxed_out(self) -> int:
        return sum(
            1 for report in self.steps if report.status is ConvergenceStatus.MAXED_OUT
        )


@dataclass
class Diffusion1DResult:
    H: np.ndarray
    H0: np.ndarray
    xc: np.ndarray
    time: float
    diagnostics: SolveDiagnostics


@dataclass
class IceFlow2DResult:
    H: np.ndarray
    S: np.ndarray
    M: np.ndarray
    Vx: np.ndarray
    Vy: np.ndarray
    time: float
    diagnostics: SolveDiagnostics
