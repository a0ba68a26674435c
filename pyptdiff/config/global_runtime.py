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
Process-wide, read-only runtime settings.

The floating point precision is fixed once at import time from the
`PYPTDIFF_PRECISION` environment variable ("single" or "double", default
"double"); all fields allocated by the solvers use `ptd_real`.
"""

import os

import numpy as np

from pyptdiff.foundation.enums import Precision
from pyptdiff.config.logging_config import setup_logging

try:
    from numba import cuda

    # Check if a CUDA device is actually detected at runtime
    CUDA_AVAILABLE = cuda.is_available()
except Exception:
    # numba.cuda missing or a misconfigured driver/toolkit
    CUDA_AVAILABLE = False

PRECISION = Precision.from_label(os.environ.get("PYPTDIFF_PRECISION", "double"))

if PRECISION.value == Precision.SINGLE.value:
    ptd_real = np.float32
else:
    ptd_real = np.float64

ptd_int = np.int64
ptd_bool = np.bool_

_LOGGER = setup_logging()


def vprint(level: int, verbosity: int, *args, sep: str = " "):
    """
    Verbosity-gated print routed through the package logger.

    Args:
        level (int): Level of this message (ERROR, WARNING, INFO, DEBUG, TRACE).
        verbosity (int): Threshold of the calling module; the message is
            emitted only if `level >= verbosity`.
        *args: Objects joined with `sep` into the message.
    """
    if level >= verbosity:
        _LOGGER.log(level, sep.join(str(arg) for arg in args))
