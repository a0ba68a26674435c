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
Enumerations shared across the pyPTDiff package.

Every enum member carries an integer code (`int_value`) so that it can be
passed into Numba-compiled kernels, which do not accept Python enums.
"""

from enum import Enum


class _IntCodedEnum(Enum):
    """Enum whose values are `(int_code, label)` tuples."""

    @property
    def int_value(self) -> int:
        return self.value[0]

    @property
    def label(self) -> str:
        return self.value[1]

    @classmethod
    def from_label(cls, label: str):
        key = label.strip().lower()
        for member in cls:
            if member.label == key:
                return member
        raise ValueError(f"Unknown {cls.__name__} label: {label!r}")


class Precision(_IntCodedEnum):
    SINGLE = (0, "single")
    DOUBLE = (1, "double")


class PlatformName(_IntCodedEnum):
    CPU = (0, "cpu")
    CUDA = (1, "cuda")


class ErrorMeasure(_IntCodedEnum):
    """
    Quantity whose norm decides convergence of the pseudo-time loop.

    RESIDUAL: ||ResH|| / len(ResH), the instantaneous discretized PDE residual.
    INCREMENT: ||H_prev - H|| / len(H), the change of H over one iteration.
    """

    RESIDUAL = (0, "residual")
    INCREMENT = (1, "increment")


class ConvergenceStatus(_IntCodedEnum):
    """
    States of the pseudo-time convergence loop.

    The integer codes are the ones returned by the compiled iteration
    control check.
    """

    ITERATE = (0, "iterate")
    CONVERGED = (1, "converged")
    MAXED_OUT = (2, "maxed_out")
    FATAL = (3, "fatal")

    @classmethod
    def from_int(cls, code: int):
        for member in cls:
            if member.int_value == code:
                return member
        raise ValueError(f"Unknown ConvergenceStatus code: {code}")
