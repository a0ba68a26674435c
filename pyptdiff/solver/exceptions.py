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
Exception taxonomy of the pseudo-transient solvers.

- CInvalidConfiguration: rejected parameters or grids, raised before any
  kernel runs.
- CNumericalDivergence: a non-finite error norm was observed; the run is
  aborted and the fields left behind must not be trusted.

Reaching the iteration cap is not an exception; it is reported as
`ConvergenceStatus.MAXED_OUT` in the solve diagnostics.
"""


class CException(Exception):
    pass


class CWarning(Warning):
    pass


class CInvalidConfiguration(CException, ValueError):
    def __init__(self, message):
        super().__init__(f"INVALID CONFIGURATION: {message}")


class CNumericalDivergence(CException, FloatingPointError):
    def __init__(self, iteration, error, step=None):
        self.iteration = iteration
        self.error = error
        self.step = step
        where = f"physical step {step}, " if step is not None else ""
        super().__init__(
            f"NON-FINITE ERROR NORM ({error}) AT {where}iteration {iteration} (ABORTING...)"
        )


class CCudaUnavailable(CInvalidConfiguration):
    def __init__(self):
        super().__init__("CUDA PLATFORM REQUESTED BUT NO CUDA DEVICE IS AVAILABLE")
