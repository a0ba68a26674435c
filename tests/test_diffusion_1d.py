"""Damped pseudo-transient and explicit 1D diffusion on the Gaussian benchmark.

The Gaussian exp(-(x - lx/2)^2) on lx = 10 has an exact solution, so the
solvers are checked against it together with mass conservation and the
behaviour of the pseudo-time loop (convergence, error history, cap, NaN).
"""

import numpy as np
import pytest

from pyptdiff.config.global_runtime import CUDA_AVAILABLE
from pyptdiff.config.logging_config import ERROR
from pyptdiff.config.solver_config import Diffusion1DConfig, ExplicitDiffusion1DConfig
from pyptdiff.foundation.enums import ConvergenceStatus, ErrorMeasure
from pyptdiff.foundation.platform import Platform
from pyptdiff.solver.diffusion.damped_1d import PTDiffusion1DSolver
from pyptdiff.solver.diffusion.explicit_1d import ExplicitDiffusion1DSolver
from pyptdiff.solver.exceptions import CNumericalDivergence
from pyptdiff.utils.analytic import (
    gaussian_analytic_solution,
    gaussian_initial_condition,
    l2_error,
    mass_integral,
)


def _run_pt(**overrides):
    solver = PTDiffusion1DSolver(Diffusion1DConfig(**overrides), verbosity=ERROR)
    return solver, solver.run()


# --- damped pseudo-transient ---


def test_gaussian_converges_every_step():
    solver, result = _run_pt()
    cfg = solver.config
    diag = result.diagnostics
    assert diag.num_steps == 6
    assert diag.all_converged
    assert all(report.iterations < cfg.itmax for report in diag.steps)
    assert diag.final_error <= cfg.tol
    assert result.time == pytest.approx(cfg.ttot)
    assert diag.final_time == pytest.approx(result.time)


def test_gaussian_matches_analytic_solution():
    solver, result = _run_pt()
    cfg = solver.config
    reference = gaussian_analytic_solution(result.xc, cfg.lx, result.time)
    assert np.max(np.abs(result.H - reference)) < 5e-2
    # diffusion lowered and widened the peak
    assert result.H.max() < result.H0.max()


def test_gaussian_conserves_mass():
    solver, result = _run_pt()
    dx = solver.config.dx
    assert mass_integral(result.H, dx) == pytest.approx(
        mass_integral(result.H0, dx), rel=2e-3
    )


def test_stability_limited_time_step_benchmark():
    nx, lx = 128, 10.0
    dt = (lx / nx) ** 2 / 2.1
    solver, result = _run_pt(nx=nx, lx=lx, dt=dt, ttot=0.6)
    diag = result.diagnostics
    assert diag.all_converged
    assert diag.num_steps == solver.config.num_steps
    dx = solver.config.dx
    assert mass_integral(result.H, dx) == pytest.approx(
        mass_integral(result.H0, dx), rel=2e-3
    )
    reference = gaussian_analytic_solution(result.xc, lx, result.time)
    assert l2_error(result.H, reference) < 1e-2
    assert np.max(np.abs(result.H - reference)) < 1e-2


def test_boundary_values_are_fixed():
    _, result = _run_pt(ttot=0.2)
    assert result.H[0] == result.H0[0]
    assert result.H[-1] == result.H0[-1]


def test_error_history_decreases():
    solver, result = _run_pt(ttot=0.1)
    history = result.diagnostics.err_history
    iterations = [it for it, _ in history]
    errors = [err for _, err in history]
    assert iterations == sorted(iterations)
    assert errors[-1] <= solver.config.tol
    assert errors[-1] < errors[0]
    half = len(errors) // 2
    assert np.mean(errors[half:]) < np.mean(errors[:half])


def test_undamped_iteration_still_converges():
    _, result = _run_pt(nx=64, ttot=0.2, damp=0.0, itmax=100000)
    assert result.diagnostics.all_converged


def test_increment_error_measure_converges():
    _, result = _run_pt(nx=64, ttot=0.2, error_measure=ErrorMeasure.INCREMENT)
    assert result.diagnostics.all_converged


def test_flat_field_is_an_equilibrium():
    cfg = Diffusion1DConfig(nx=32, ttot=0.3)
    initial = np.full(cfg.nx, 3.0)
    result = PTDiffusion1DSolver(cfg, initial_H=initial, verbosity=ERROR).run()
    np.testing.assert_array_equal(result.H, initial)
    assert [r.iterations for r in result.diagnostics.steps] == [1, 1, 1]
    assert result.diagnostics.all_converged


def test_iteration_cap_is_reported_not_raised():
    _, result = _run_pt(nx=64, ttot=0.3, itmax=5, nout=3)
    diag = result.diagnostics
    assert diag.num_maxed_out == diag.num_steps == 3
    assert not diag.all_converged
    assert [r.iterations for r in diag.steps] == [5, 5, 5]
    assert all(r.status is ConvergenceStatus.MAXED_OUT for r in diag.steps)
    assert [it for it, _ in diag.err_history] == [3, 5]


def test_rate_reset_policy(monkeypatch):
    for reset, expected_calls in ((True, 3), (False, 0)):
        cfg = Diffusion1DConfig(nx=64, ttot=0.3, reset_rate_each_step=reset)
        solver = PTDiffusion1DSolver(cfg, verbosity=ERROR)
        calls = []
        plain_reset = solver._reset_rate

        def counting_reset():
            calls.append(1)
            plain_reset()

        monkeypatch.setattr(solver, "_reset_rate", counting_reset)
        result = solver.run()
        assert len(calls) == expected_calls
        assert result.diagnostics.all_converged


def _record_rate_at_solve_start(monkeypatch, solver):
    seen = []
    plain_solve = solver._solve_pseudo_transient

    def recording_solve(*args):
        seen.append(solver.fields.dHdt.copy())
        return plain_solve(*args)

    monkeypatch.setattr(solver, "_solve_pseudo_transient", recording_solve)
    return seen


@pytest.mark.parametrize("reset", [True, False])
def test_rate_at_start_of_each_step(monkeypatch, reset):
    cfg = Diffusion1DConfig(nx=64, ttot=0.3, reset_rate_each_step=reset)
    solver = PTDiffusion1DSolver(cfg, verbosity=ERROR)
    seen = _record_rate_at_solve_start(monkeypatch, solver)
    solver.run()
    assert len(seen) == 3
    assert np.all(seen[0] == 0.0)
    for rate in seen[1:]:
        if reset:
            assert np.all(rate == 0.0)
        else:
            # momentum from the previous step is carried over
            assert np.any(rate != 0.0)


def test_edges_hold_after_every_iteration():
    solver = PTDiffusion1DSolver(Diffusion1DConfig(nx=64), verbosity=ERROR)
    H = solver.fields.H
    for _ in range(500):
        solver._iterate_once()
        assert H[0] == solver.H0[0]
        assert H[-1] == solver.H0[-1]
        assert np.all(np.isfinite(H))


def test_run_restarts_from_initial_condition():
    solver = PTDiffusion1DSolver(Diffusion1DConfig(nx=64, ttot=0.2), verbosity=ERROR)
    first = solver.run()
    second = solver.run()
    np.testing.assert_array_equal(first.H, second.H)
    assert second.diagnostics.num_steps == first.diagnostics.num_steps


def test_nan_in_initial_field_raises():
    cfg = Diffusion1DConfig(nx=32, ttot=0.2)
    initial = gaussian_initial_condition(cfg.xc, cfg.lx)
    initial[10] = np.nan
    solver = PTDiffusion1DSolver(cfg, initial_H=initial, verbosity=ERROR)
    with pytest.raises(CNumericalDivergence) as excinfo:
        solver.run()
    assert excinfo.value.iteration == 1
    assert excinfo.value.step == 0


def test_nan_diffusion_coefficient_raises():
    solver = PTDiffusion1DSolver(
        Diffusion1DConfig(nx=32, ttot=0.2, diffusion_coeff=float("nan")),
        verbosity=ERROR,
    )
    with pytest.raises(CNumericalDivergence):
        solver.run()


def test_timings_recorded():
    solver, _ = _run_pt(nx=32, ttot=0.1)
    assert "ptd1d| physical time loop" in solver.timings


@pytest.mark.skipif(not CUDA_AVAILABLE, reason="no CUDA device")
def test_cuda_matches_cpu():
    cfg = Diffusion1DConfig(nx=128, ttot=0.2)
    cpu = PTDiffusion1DSolver(cfg, verbosity=ERROR).run()
    gpu = PTDiffusion1DSolver(cfg, platform=Platform("cuda"), verbosity=ERROR).run()
    np.testing.assert_allclose(gpu.H, cpu.H, atol=1e-8)


# --- explicit ---


def test_explicit_matches_analytic_solution():
    solver = ExplicitDiffusion1DSolver(verbosity=ERROR)
    result = solver.run()
    cfg = solver.config
    assert result.time >= cfg.ttot
    assert result.diagnostics.num_steps == cfg.num_steps
    reference = gaussian_analytic_solution(result.xc, cfg.lx, result.time)
    assert np.max(np.abs(result.H - reference)) < 5e-3
    assert l2_error(result.H, reference) < 1e-2


def test_explicit_conserves_mass():
    solver = ExplicitDiffusion1DSolver(verbosity=ERROR)
    result = solver.run()
    dx = solver.config.dx
    assert mass_integral(result.H, dx) == pytest.approx(
        mass_integral(result.H0, dx), rel=2e-3
    )


def test_explicit_time_step_is_stability_limited():
    cfg = ExplicitDiffusion1DConfig(nx=100, lx=10.0, diffusion_coeff=2.0)
    assert cfg.dt == pytest.approx(0.1**2 / 2.0 / 2.1)


def test_explicit_flat_field_is_an_equilibrium():
    cfg = ExplicitDiffusion1DConfig(nx=16, ttot=0.05)
    initial = np.full(cfg.nx, -2.0)
    result = ExplicitDiffusion1DSolver(cfg, initial_H=initial, verbosity=ERROR).run()
    np.testing.assert_array_equal(result.H, initial)


def test_explicit_nan_raises():
    cfg = ExplicitDiffusion1DConfig(nx=16, ttot=0.05)
    initial = np.zeros(cfg.nx)
    initial[5] = np.nan
    with pytest.raises(CNumericalDivergence):
        ExplicitDiffusion1DSolver(cfg, initial_H=initial, verbosity=ERROR).run()
