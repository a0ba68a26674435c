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
Declarative parameter definitions.

A `ParamStatement` describes one tunable value (names, units, type, default,
allowed range) and validates candidate values against it. Statements are
collected in dictionaries keyed by `(full_name, long_name, short_name)` and
belong to a `ParameterGroup`.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from pyptdiff.solver.exceptions import CInvalidConfiguration


@dataclass(frozen=True)
class ParameterGroup:
    name: str
    desc_short: str
    desc_long: str


@dataclass(frozen=True)
class ParamStatement:
    full_name: str
    long_name: str
    short_name: str
    units: Optional[str]
    dtype: type
    default: Any
    min_value: Any = None
    max_value: Any = None
    override: bool = True
    desc_short: str = ""
    desc_long: str = ""
    required: bool = False
    # Exclusive bounds reject the bound value itself (e.g. tol > 0).
    min_exclusive: bool = False
    max_exclusive: bool = False
    allow_none: bool = False
    # NaN/Inf pass through unchecked and are caught later by the error norm.
    allow_nonfinite: bool = False

    def check(self, value):
        """
        Validates `value` against type and range.

        Non-finite floats are rejected unless `allow_nonfinite` is set.

        Raises:
            CInvalidConfiguration: If the value has the wrong type or is out of range.
        """
        if value is None:
            if self.allow_none:
                return value
            raise CInvalidConfiguration(f"{self.full_name} is required")

        if self.dtype is bool:
            if not isinstance(value, bool):
                raise CInvalidConfiguration(
                    f"{self.full_name} must be a bool, got {type(value).__name__}"
                )
            return value
        if self.dtype is int:
            try:
                integral = not isinstance(value, bool) and int(value) == value
            except (TypeError, ValueError, OverflowError) as exc:
                raise CInvalidConfiguration(
                    f"{self.full_name} must be an integer, got {value!r}"
                ) from exc
            if not integral:
                raise CInvalidConfiguration(
                    f"{self.full_name} must be an integer, got {value!r}"
                )
        elif self.dtype is float:
            try:
                value = float(value)
            except (TypeError, ValueError) as exc:
                raise CInvalidConfiguration(
                    f"{self.full_name} must be a number, got {value!r}"
                ) from exc
            if not math.isfinite(value):
                if self.allow_nonfinite:
                    return value
                raise CInvalidConfiguration(
                    f"{self.full_name} must be finite, got {value}"
                )

        if self.min_value is not None:
            too_small = (
                value <= self.min_value if self.min_exclusive else value < self.min_value
            )
            if too_small:
                bound = ">" if self.min_exclusive else ">="
                raise CInvalidConfiguration(
                    f"{self.full_name} must be {bound} {self.min_value}, got {value}"
                )
        if self.max_value is not None:
            too_large = (
                value >= self.max_value if self.max_exclusive else value > self.max_value
            )
            if too_large:
                bound = "<" if self.max_exclusive else "<="
                raise CInvalidConfiguration(
                    f"{self.full_name} must be {bound} {self.max_value}, got {value}"
                )
        return value


def by_full_name(param_definitions: dict) -> dict:
    return {key[0]: statement for key, statement in param_definitions.items()}


def validate_values(param_definitions: dict, values: dict):
    """Checks every `values[name]` that has a statement in `param_definitions`."""
    statements = by_full_name(param_definitions)
    for name, value in values.items():
        statement = statements.get(name)
        if statement is not None:
            statement.check(value)
