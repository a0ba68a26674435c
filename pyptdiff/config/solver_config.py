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
Immutable solver configurations.

Each configuration is a frozen dataclass validated on construction against
the pseudo-transient parameter definitions, so an invalid value is rejected
before any field is allocated. Derived numerics (grid spacing, pseudo step,
default damping, number of physical steps) are exposed as properties.
"""

import math
from dataclasses import dataclass, fields
from typing import Optional

import numpy as np

from pyptdiff.foundation.enums import ErrorMeasure
from pyptdiff.config.param_definitions.parameters import validate_values
from pyptdiff.config.param_definitions.pseudotransient_params import (
    get_param_definitions,
)
from pyptdiff.solver.exceptions import CInvalidConfiguration

_PARAM_DEFINITIONS = get_param_definitions()


def number_of_steps(ttot: float, dt: float) -> int:
    """Number of physical steps of size `dt` needed for the clock to reach `ttot`."""
    # Guard against ttot/dt landing a rounding error above an integer.
    return max(1, math.ceil(ttot / dt * (1.0 - 1e-12)))


def _validate(config, min_cfl_safety):
    values = {f.name: getattr(config, f.name) for f in fields(config)}
    validate_values(_PARAM_DEFINITIONS, values)
    error_measure = getattr(config, "error_measure", ErrorMeasure.RESIDUAL)
    if not isinstance(error_measure, ErrorMeasure):
        raise CInvalidConfiguration(
            f"error_measure must be an ErrorMeasure, got {error_measure!r}"
        )
    if config.cfl_safety <= min_cfl_safety:
        raise CInvalidConfiguration(
            f"cfl_safety must be > {min_cfl_safety} for this dimensionality, "
            f"got {config.cfl_safety}"
        )


@dataclass(frozen=True)
class Diffusion1DConfig:
    """Linear 1D diffusion solved implicitly by damped pseudo-transient iteration."""

    lx: float = 10.0
    diffusion_coeff: float = 1.0
    ttot: float = 0.6
    dt: float = 0.1
    nx: int = 256
    tol: float = 1e-6
    itmax: int = 10000
    nout: int = 1
    damp: Optional[float] = None
    cfl_safety: float = 2.1
    reset_rate_each_step: bool = True
    error_measure: ErrorMeasure = ErrorMeasure.RESIDUAL

    def __post_init__(self):
        _validate(self, 2.0)
        if self.ttot is None or self.dt is None:
            raise CInvalidConfiguration("ttot and dt are required for 1D diffusion")

    @property
    def dx(self) -> float:
        return self.lx / self.nx

    @property
    def damping(self) -> float:
        """Configured damping, or `1 - 41/nx` (resolution dependent tuning)."""
        if self.damp is not None:
            return self.damp
        return max(0.0, 1.0 - 41.0 / self.nx)

    @property
    def dtau(self) -> float:
        """Pseudo step: harmonic combination of the explicit limit and `dt`."""
        return 1.0 / (self.diffusion_coeff * self.cfl_safety / self.dx**2 + 1.0 / self.dt)

    @property
    def xc(self) -> np.ndarray:
        return np.linspace(self.dx / 2.0, self.lx - self.dx / 2.0, self.nx)

    @property
    def num_steps(self) -> int:
        return number_of_steps(self.ttot, self.dt)


@dataclass(frozen=True)
class ExplicitDiffusion1DConfig:
    """Linear 1D diffusion advanced by forward Euler at the stability limit."""

    lx: float = 10.0
    diffusion_coeff: float = 1.0
    ttot: float = 0.6
    nx: int = 128
    cfl_safety: float = 2.1

    def __post_init__(self):
        _validate(self, 2.0)
        if self.ttot is None:
            raise CInvalidConfiguration("ttot is required for explicit diffusion")
        if not (math.isfinite(self.diffusion_coeff) and self.diffusion_coeff > 0.0):
            raise CInvalidConfiguration(
                "explicit diffusion needs a finite diffusion_coeff > 0, "
                f"got {self.diffusion_coeff}"
            )

    @property
    def dx(self) -> float:
        return self.lx / self.nx

    @property
    def dt(self) -> float:
        return self.dx**2 / self.diffusion_coeff / self.cfl_safety

    @property
    def xc(self) -> np.ndarray:
        return np.linspace(self.dx / 2.0, self.lx - self.dx / 2.0, self.nx)

    @property
    def num_steps(self) -> int:
        return number_of_steps(self.ttot, self.dt)


@dataclass(frozen=True)
class IceFlow2DConfig:
    """
    Shallow-ice approximation flow on a 2D grid.

    With `dt`/`ttot` left as None the steady state is solved in a single
    pseudo-transient solve. Times are in years, lengths in metres.
    """

    # physics
    s2y: float = 3600 * 24 * 365.25
    rho_i: float = 910.0
    g: float = 9.81
    npow: float = 3.0
    a0: float = 1.5e-24
    # numerics
    itmax: int = 100000
    nout: int = 200
    tol: float = 1e-6
    epsi: float = 1e-4
    damp: Optional[float] = 0.85
    dtau_scale: float = 1.0 / 3.0
    dtau_cap: float = 10.0
    cfl_safety: float = 4.1
    # physical time loop
    dt: Optional[float] = None
    ttot: Optional[float] = None
    reset_rate_each_step: bool = False
    error_measure: ErrorMeasure = ErrorMeasure.INCREMENT

    def __post_init__(self):
        _validate(self, 4.0)
        if (self.dt is None) != (self.ttot is None):
            raise CInvalidConfiguration("dt and ttot must be given together")

    @property
    def damping(self) -> float:
        return 0.85 if self.damp is None else self.damp

    @property
    def rate_factor(self) -> float:
        """Glen's law factor a = 2 a0 / (n + 2) (rho_i g)^n, per year."""
        return (
            2.0
            * self.a0
            / (self.npow + 2.0)
            * (self.rho_i * self.g) ** self.npow
            * self.s2y
        )

    @property
    def steady(self) -> bool:
        return self.dt is None

    @property
    def inv_dt(self) -> float:
        return 0.0 if self.steady else 1.0 / self.dt

    @property
    def num_steps(self) -> int:
        return 1 if self.steady else number_of_steps(self.ttot, self.dt)

    def cfl(self, dx: float, dy: float) -> float:
        return max(dx**2, dy**2) / self.cfl_safety
