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


from pyptdiff.config.param_definitions.parameters import (
    ParameterGroup,
    ParamStatement,
)


def get_group_definition():
    """Defines and returns the 'pseudotransient' ParameterGroup."""
    return ParameterGroup(
        "pseudotransient",
        "Physics and numerics of the accelerated pseudo-transient diffusion solvers.",
        "The set of parameters for the physical time loop, the damped pseudo-time "
        "iteration (tolerance, iteration cap, error check interval, damping, "
        "pseudo-step bounds) and the nonlinear diffusivity law.",
    )


def get_param_definitions():
    """Defines and returns pseudo-transient ParamStatement objects."""
    params = {}

    params[("tol", "tolerance", "tol")] = ParamStatement(
        full_name="tol",
        long_name="tolerance",
        short_name="tol",
        units=None,
        dtype=float,
        default=1e-6,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Convergence tolerance of the pseudo-time loop.",
        desc_long="The pseudo-time loop stops once the error norm is <= tol.",
    )

    params[("itmax", "maxiteration", "itmax")] = ParamStatement(
        full_name="itmax",
        long_name="maxiteration",
        short_name="itmax",
        units=None,
        dtype=int,
        default=10000,
        min_value=1,
        max_value=10**9,
        desc_short="Maximum number of pseudo-time iterations per physical step.",
        desc_long=(
            "Reaching the cap is not fatal: the physical step proceeds with the "
            "unconverged field and the step is reported as MAXED_OUT."
        ),
    )

    params[("nout", "errorcheckinterval", "nout")] = ParamStatement(
        full_name="nout",
        long_name="errorcheckinterval",
        short_name="nout",
        units=None,
        dtype=int,
        default=1,
        min_value=1,
        max_value=10**6,
        desc_short="Number of pseudo-time iterations between error norm evaluations.",
        desc_long="Number of pseudo-time iterations between error norm evaluations.",
    )

    params[("damp", "damping", "damp")] = ParamStatement(
        full_name="damp",
        long_name="damping",
        short_name="damp",
        units=None,
        dtype=float,
        default=None,
        min_value=0.0,
        max_value=1.0,
        max_exclusive=True,
        allow_none=True,
        desc_short="Damping (momentum) factor of the rate accumulation.",
        desc_long=(
            "dHdt := damp * dHdt + ResH. damp = 0 gives plain explicit relaxation, "
            "values close to 1 keep more momentum. Valid range: [0, 1). "
            "None selects the solver specific default."
        ),
    )

    params[("cfl_safety", "cflsafety", "cfls")] = ParamStatement(
        full_name="cfl_safety",
        long_name="cflsafety",
        short_name="cfls",
        units=None,
        dtype=float,
        default=2.1,
        min_value=2.0,
        min_exclusive=True,
        desc_short="Safety divisor of the explicit diffusion stability limit.",
        desc_long=(
            "The pseudo step is bounded by spacing^2 / (diffusivity * cfl_safety). "
            "Must exceed 2 per spatial dimension."
        ),
    )

    params[("dtau_scale", "dtauscale", "dtausc")] = ParamStatement(
        full_name="dtau_scale",
        long_name="dtauscale",
        short_name="dtausc",
        units=None,
        dtype=float,
        default=1.0 / 3.0,
        min_value=0.0,
        max_value=1.0,
        min_exclusive=True,
        desc_short="Scaling of the local pseudo step (2D).",
        desc_long="Scaling of the local pseudo step (2D).",
    )

    params[("dtau_cap", "dtaucap", "dtaucap")] = ParamStatement(
        full_name="dtau_cap",
        long_name="dtaucap",
        short_name="dtaucap",
        units=None,
        dtype=float,
        default=10.0,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Upper bound of the unscaled local pseudo step (2D).",
        desc_long="Upper bound of the unscaled local pseudo step (2D).",
    )

    params[("epsi", "epsilon", "epsi")] = ParamStatement(
        full_name="epsi",
        long_name="epsilon",
        short_name="epsi",
        units=None,
        dtype=float,
        default=1e-4,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Small regularisation number.",
        desc_long="Added to diffusivity and thickness averages to avoid division by zero.",
    )

    params[("diffusion_coeff", "diffusioncoefficient", "D")] = ParamStatement(
        full_name="diffusion_coeff",
        long_name="diffusioncoefficient",
        short_name="D",
        units=None,
        dtype=float,
        default=1.0,
        min_value=0.0,
        allow_nonfinite=True,
        desc_short="Constant diffusion coefficient (1D).",
        desc_long="Constant diffusion coefficient (1D).",
    )

    params[("lx", "domainlength", "lx")] = ParamStatement(
        full_name="lx",
        long_name="domainlength",
        short_name="lx",
        units=None,
        dtype=float,
        default=10.0,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Domain length (1D).",
        desc_long="Domain length (1D).",
    )

    params[("nx", "gridpoints", "nx")] = ParamStatement(
        full_name="nx",
        long_name="gridpoints",
        short_name="nx",
        units=None,
        dtype=int,
        default=256,
        min_value=3,
        desc_short="Number of grid cells (1D).",
        desc_long="Number of grid cells; at least one interior cell is required.",
    )

    params[("ttot", "totaltime", "ttot")] = ParamStatement(
        full_name="ttot",
        long_name="totaltime",
        short_name="ttot",
        units=None,
        dtype=float,
        default=0.6,
        min_value=0.0,
        min_exclusive=True,
        allow_none=True,
        desc_short="Total simulated physical time.",
        desc_long="Total simulated physical time.",
    )

    params[("dt", "timestep", "dt")] = ParamStatement(
        full_name="dt",
        long_name="timestep",
        short_name="dt",
        units=None,
        dtype=float,
        default=0.1,
        min_value=0.0,
        min_exclusive=True,
        allow_none=True,
        desc_short="Physical time step.",
        desc_long="Physical time step.",
    )

    params[("reset_rate_each_step", "resetrate", "rstrate")] = ParamStatement(
        full_name="reset_rate_each_step",
        long_name="resetrate",
        short_name="rstrate",
        units=None,
        dtype=bool,
        default=True,
        desc_short="Zero the damped rate dHdt at the start of every physical step.",
        desc_long=(
            "When False the damped rate carries its momentum from one physical "
            "step into the next."
        ),
    )

    params[("npow", "glenexponent", "n")] = ParamStatement(
        full_name="npow",
        long_name="glenexponent",
        short_name="n",
        units=None,
        dtype=float,
        default=3.0,
        min_value=1.0,
        desc_short="Glen's flow law exponent.",
        desc_long="Glen's flow law exponent.",
    )

    params[("a0", "glenenhancement", "a0")] = ParamStatement(
        full_name="a0",
        long_name="glenenhancement",
        short_name="a0",
        units="Pa^-n s^-1",
        dtype=float,
        default=1.5e-24,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Glen's flow law rate factor.",
        desc_long="Glen's flow law rate factor.",
    )

    params[("rho_i", "icedensity", "rhoi")] = ParamStatement(
        full_name="rho_i",
        long_name="icedensity",
        short_name="rhoi",
        units="kg m^-3",
        dtype=float,
        default=910.0,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Ice density.",
        desc_long="Ice density.",
    )

    params[("g", "gravity", "g")] = ParamStatement(
        full_name="g",
        long_name="gravity",
        short_name="g",
        units="m s^-2",
        dtype=float,
        default=9.81,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Gravity acceleration.",
        desc_long="Gravity acceleration.",
    )

    params[("s2y", "secondsperyear", "s2y")] = ParamStatement(
        full_name="s2y",
        long_name="secondsperyear",
        short_name="s2y",
        units="s yr^-1",
        dtype=float,
        default=3600 * 24 * 365.25,
        min_value=0.0,
        min_exclusive=True,
        desc_short="Seconds per year.",
        desc_long="Seconds per year.",
    )

    params[("grad_b", "massbalancegradient", "gradb")] = ParamStatement(
        full_name="grad_b",
        long_name="massbalancegradient",
        short_name="gradb",
        units="yr^-1",
        dtype=float,
        default=0.01,
        desc_short="Vertical gradient of the surface mass balance.",
        desc_long="Mass balance is grad_b * (S - z_ela), capped at b_max.",
    )

    params[("z_ela", "equilibriumlinealtitude", "zela")] = ParamStatement(
        full_name="z_ela",
        long_name="equilibriumlinealtitude",
        short_name="zela",
        units="m",
        dtype=float,
        default=0.0,
        desc_short="Equilibrium line altitude.",
        desc_long="Surface elevation at which the mass balance vanishes.",
    )

    params[("b_max", "maxaccumulation", "bmax")] = ParamStatement(
        full_name="b_max",
        long_name="maxaccumulation",
        short_name="bmax",
        units="m yr^-1",
        dtype=float,
        default=0.0,
        desc_short="Maximum accumulation rate.",
        desc_long="Upper cap of the surface mass balance.",
    )

    return params
