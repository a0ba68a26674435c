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
Description of the compute platform a solver runs on.

Solvers only look at `platform.active` ("cpu" or "cuda") and at the
per-platform settings in `platform.names`, e.g.
`platform.names["cpu"]["num_threads"]` or
`platform.names["cuda"]["selected_id"]`.
"""

import numba

from pyptdiff.foundation.enums import PlatformName
from pyptdiff.config.global_runtime import CUDA_AVAILABLE
from pyptdiff.solver.exceptions import CInvalidConfiguration, CCudaUnavailable

DEFAULT_CUDA_THREADS_1D = 256
DEFAULT_CUDA_THREADS_2D = (16, 16)


class Platform:
    def __init__(
        self,
        active="cpu",
        num_cpu_threads=None,
        cuda_device_id=0,
        num_cuda_threads=DEFAULT_CUDA_THREADS_1D,
        num_cuda_threads_2d=DEFAULT_CUDA_THREADS_2D,
    ):
        """
        Args:
            active (str | PlatformName): "cpu" or "cuda".
            num_cpu_threads (int): Numba threads for CPU kernels; defaults to
                `numba.config.NUMBA_NUM_THREADS`.
            cuda_device_id (int): Device selected before CUDA solves.
            num_cuda_threads (int): Threads per block for 1D launches.
            num_cuda_threads_2d (tuple): Threads per block for 2D launches.
        """
        if isinstance(active, PlatformName):
            active = active.label
        try:
            active = PlatformName.from_label(active).label
        except ValueError as exc:
            raise CInvalidConfiguration(f"unknown platform {active!r}") from exc
        if active == PlatformName.CUDA.label and not CUDA_AVAILABLE:
            raise CCudaUnavailable()

        if num_cpu_threads is None:
            num_cpu_threads = numba.config.NUMBA_NUM_THREADS
        if num_cpu_threads < 1:
            raise CInvalidConfiguration("num_cpu_threads must be >= 1")
        if num_cuda_threads < 1 or min(num_cuda_threads_2d) < 1:
            raise CInvalidConfiguration("CUDA threads per block must be >= 1")

        self.active = active
        self.names = {
            "cpu": {"num_threads": min(num_cpu_threads, numba.config.NUMBA_NUM_THREADS)}
        }
        if CUDA_AVAILABLE:
            self.names["cuda"] = {
                "selected_id": cuda_device_id,
                "num_threads": num_cuda_threads,
                "num_threads_2d": tuple(num_cuda_threads_2d),
            }

    @classmethod
    def detect(cls, prefer_cuda=True, **kwargs):
        """Returns a CUDA platform when a device is present (and preferred), else CPU."""
        active = "cuda" if (prefer_cuda and CUDA_AVAILABLE) else "cpu"
        return cls(active=active, **kwargs)

    def __repr__(self):
        return f"Platform(active={self.active!r}, names={self.names!r})"
