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
Logging levels and per-module verbosity resolution.

Levels are the standard `logging` levels plus TRACE (5). The default
threshold comes from `PYPTDIFF_LOG_LEVEL`; individual modules can be made
more or less chatty with `PYPTDIFF_LOG_MODULES`, a comma separated list of
`dotted.module.prefix=LEVEL` entries. The longest matching prefix wins.

Example:
    PYPTDIFF_LOG_MODULES="pyptdiff.solver.iceflow=DEBUG,pyptdiff.solver.diffusion=WARNING"
"""

import logging
import os
import sys

ERROR = logging.ERROR
WARNING = logging.WARNING
INFO = logging.INFO
DEBUG = logging.DEBUG
TRACE = 5

logging.addLevelName(TRACE, "TRACE")

LOGGER_NAME = "pyptdiff"
ENV_LOG_LEVEL = "PYPTDIFF_LOG_LEVEL"
ENV_LOG_MODULES = "PYPTDIFF_LOG_MODULES"

_LEVELS_BY_NAME = {
    "ERROR": ERROR,
    "WARNING": WARNING,
    "INFO": INFO,
    "DEBUG": DEBUG,
    "TRACE": TRACE,
}


def parse_level(value, default=INFO) -> int:
    """Accepts a level name or an integer (also as string)."""
    if value is None:
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return default
    if text.lstrip("-").isdigit():
        return int(text)
    return _LEVELS_BY_NAME.get(text.upper(), default)


def _parse_module_levels(text: str) -> dict:
    module_levels = {}
    for entry in text.split(","):
        entry = entry.strip()
        if not entry or "=" not in entry:
            continue
        module, level = entry.split("=", 1)
        module_levels[module.strip()] = parse_level(level)
    return module_levels


def get_default_verbosity() -> int:
    return parse_level(os.environ.get(ENV_LOG_LEVEL), INFO)


def get_effective_verbosity(module_name: str) -> int:
    """
    Resolves the verbosity threshold for a module.

    Args:
        module_name (str): Dotted module name, usually `__name__`.

    Returns:
        int: Logging level; messages below it are dropped by `vprint`.
    """
    module_levels = _parse_module_levels(os.environ.get(ENV_LOG_MODULES, ""))
    best_match = ""
    for prefix in module_levels:
        if (module_name == prefix or module_name.startswith(prefix + ".")) and len(
            prefix
        ) > len(best_match):
            best_match = prefix
    if best_match:
        return module_levels[best_match]
    return get_default_verbosity()


def setup_logging(stream=None) -> logging.Logger:
    """Installs the package stream handler once and returns the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(TRACE)
    return logger
