"""Shallow-ice 2D solver on small synthetic glaciers.

A Gaussian bed dome with an equilibrium line half way up gives both an
accumulation area (thickening) and an ablation area (thinning to zero),
which exercises the floor at zero and the mask. Iteration caps are kept
low: the properties checked here hold at every pseudo-iteration, not only
at convergence.
"""

import numpy as np
import pytest

from pyptdiff.config.global_runtime import CUDA_AVAILABLE
from pyptdiff.config.logging_config import ERROR
from pyptdiff.config.solver_config import IceFlow2DConfig
from pyptdiff.foundation.enums import ConvergenceStatus, ErrorMeasure
from pyptdiff.foundation.platform import Platform
from pyptdiff.solver.exceptions import CInvalidConfiguration, CNumericalDivergence
from pyptdiff.solver.iceflow.sia_2d import IceFlow2DSolver

GRAD_B = 0.01
Z_ELA = 1500.0
B_MAX = 0.5


def _dome(nx=30, ny=28, spacing=10e3):
    x = (np.arange(nx) - (nx - 1) / 2.0) * spacing
    y = (np.arange(ny) - (ny - 1) / 2.0) * spacing
    X, Y = np.meshgrid(x, y, indexing="ij")
    Zbed = 2000.0 * np.exp(-(X**2 + Y**2) / (2.0 * 60e3**2))
    Hice = np.full((nx, ny), 100.0)
    Mask = np.ones((nx, ny), dtype=np.int64)
    Mask[12:16, 3:8] = 0
    return spacing, spacing, Zbed, Hice, Mask


def _dome_solver(config=None, **kwargs):
    dx, dy, Zbed, Hice, Mask = _dome(**kwargs)
    if config is None:
        config = IceFlow2DConfig(itmax=1000, nout=100)
    return IceFlow2DSolver(
        dx, dy, Zbed, Hice, Mask, GRAD_B, Z_ELA, B_MAX, config=config, verbosity=ERROR
    )


def _ring(shape):
    ring = np.ones(shape, dtype=bool)
    ring[1:-1, 1:-1] = False
    return ring


def test_outputs_have_staggered_shapes():
    solver = _dome_solver()
    result = solver.run()
    nx, ny = solver.fields.shape
    assert result.H.shape == (nx, ny)
    assert result.S.shape == (nx, ny)
    assert result.M.shape == (nx, ny)
    assert result.Vx.shape == (nx - 1, ny - 1)
    assert result.Vy.shape == (nx - 1, ny - 1)
    for values in (result.H, result.S, result.M, result.Vx, result.Vy):
        assert np.all(np.isfinite(values))


def test_surface_is_bed_plus_thickness():
    solver = _dome_solver()
    result = solver.run()
    np.testing.assert_allclose(result.S, solver.fields.B + result.H)


def test_masked_cells_hold_no_ice():
    solver = _dome_solver()
    result = solver.run()
    assert np.all(result.H[solver.fields.Mask == 0] == 0.0)


def test_thickness_is_never_negative():
    solver = _dome_solver()
    result = solver.run()
    assert np.all(result.H >= 0.0)
    # the ablation area melted down to the floor
    active = solver.fields.Mask == 1
    active[_ring(active.shape)] = False
    assert np.any(result.H[active] == 0.0)


def test_boundary_ring_is_never_updated():
    solver = _dome_solver()
    result = solver.run()
    ring = _ring(result.H.shape)
    np.testing.assert_array_equal(result.H[ring], solver.H0[ring])
    np.testing.assert_array_equal(result.H[ring], 100.0)


def test_accumulation_area_thickens():
    solver = _dome_solver()
    result = solver.run()
    summit = tuple(np.array(result.H.shape) // 2)
    assert result.M[summit] == pytest.approx(B_MAX)
    assert result.H[summit] > 100.0


def test_mass_balance_follows_surface():
    solver = _dome_solver()
    result = solver.run()
    assert np.all(result.M <= B_MAX)
    # M lags S by one update; keep clear of the equilibrium line
    low = result.S < Z_ELA - 100.0
    assert np.all(result.M[low] < 0.0)


def test_flat_ice_without_source_is_an_equilibrium():
    nx, ny = 12, 10
    Zbed = np.zeros((nx, ny))
    Hice = np.full((nx, ny), 50.0)
    Mask = np.ones((nx, ny))
    solver = IceFlow2DSolver(
        1e3, 1e3, Zbed, Hice, Mask, 0.0, 0.0, 0.0,
        config=IceFlow2DConfig(nout=10), verbosity=ERROR,
    )
    result = solver.run()
    np.testing.assert_array_equal(result.H, Hice)
    np.testing.assert_array_equal(result.S, Hice)
    np.testing.assert_array_equal(result.M, 0.0)
    np.testing.assert_allclose(result.Vx, 0.0)
    np.testing.assert_allclose(result.Vy, 0.0)
    report = result.diagnostics.steps[0]
    assert report.status is ConvergenceStatus.CONVERGED
    assert report.iterations == 10
    assert report.error == 0.0


def test_flat_ice_converges_on_residual_measure():
    nx, ny = 8, 8
    Hice = np.full((nx, ny), 20.0)
    solver = IceFlow2DSolver(
        1e3, 1e3, np.zeros((nx, ny)), Hice, np.ones((nx, ny)), 0.0, 0.0, 0.0,
        config=IceFlow2DConfig(nout=1, error_measure=ErrorMeasure.RESIDUAL),
        verbosity=ERROR,
    )
    result = solver.run()
    assert result.diagnostics.steps[0].iterations == 1
    assert result.diagnostics.all_converged


def test_mask_zeroes_initial_thickness():
    nx, ny = 6, 6
    Mask = np.ones((nx, ny))
    Mask[0, :] = 0
    Mask[3, 3] = 0
    solver = IceFlow2DSolver(
        1e3, 1e3, np.zeros((nx, ny)), np.full((nx, ny), 5.0), Mask, 0.0, 0.0, 0.0,
        config=IceFlow2DConfig(nout=5), verbosity=ERROR,
    )
    result = solver.run()
    assert np.all(result.H[0, :] == 0.0)
    assert result.H[3, 3] == 0.0


def test_steady_mode_runs_a_single_solve():
    solver = _dome_solver()
    result = solver.run()
    assert result.diagnostics.num_steps == 1
    assert result.time == 0.0


def test_transient_mode_runs_physical_steps():
    config = IceFlow2DConfig(itmax=500, nout=50, dt=10.0, ttot=30.0)
    solver = _dome_solver(config)
    result = solver.run()
    assert result.diagnostics.num_steps == 3
    assert result.time == pytest.approx(30.0)
    assert [r.step for r in result.diagnostics.steps] == [0, 1, 2]
    assert np.all(result.H >= 0.0)


def test_short_time_step_barely_changes_thickness():
    config = IceFlow2DConfig(itmax=2000, nout=50, dt=1e-3, ttot=1e-3)
    solver = _dome_solver(config)
    result = solver.run()
    assert np.max(np.abs(result.H - solver.H0)) < 1.0


def _record_rate_at_solve_start(monkeypatch, solver):
    """Wraps the pseudo-time loop to keep a copy of dHdt as each solve begins."""
    seen = []
    plain_solve = solver._solve_pseudo_transient

    def recording_solve(*args):
        seen.append(solver.fields.dHdt.copy())
        return plain_solve(*args)

    monkeypatch.setattr(solver, "_solve_pseudo_transient", recording_solve)
    return seen


def test_rate_reset_policy(monkeypatch):
    for reset, expected_calls in ((True, 2), (False, 0)):
        config = IceFlow2DConfig(
            itmax=200, nout=50, dt=10.0, ttot=20.0, reset_rate_each_step=reset
        )
        solver = _dome_solver(config)
        calls = []
        plain_reset = solver._reset_rate

        def counting_reset():
            calls.append(1)
            plain_reset()

        monkeypatch.setattr(solver, "_reset_rate", counting_reset)
        solver.run()
        assert len(calls) == expected_calls


def test_rate_momentum_carries_across_steps(monkeypatch):
    config = IceFlow2DConfig(itmax=200, nout=50, dt=10.0, ttot=20.0)
    solver = _dome_solver(config)
    seen = _record_rate_at_solve_start(monkeypatch, solver)
    solver.run()
    assert len(seen) == 2
    assert np.all(seen[0] == 0.0)
    assert np.any(seen[1] != 0.0)


def test_rate_reset_starts_each_step_at_rest(monkeypatch):
    config = IceFlow2DConfig(
        itmax=200, nout=50, dt=10.0, ttot=20.0, reset_rate_each_step=True
    )
    solver = _dome_solver(config)
    seen = _record_rate_at_solve_start(monkeypatch, solver)
    solver.run()
    assert len(seen) == 2
    assert all(np.all(rate == 0.0) for rate in seen)


@pytest.mark.parametrize("inv_dt", [0.0, 0.1])
def test_mask_and_boundary_hold_after_every_iteration(inv_dt):
    solver = _dome_solver()
    f = solver.fields
    masked = f.Mask == 0
    ring = _ring(f.shape)
    H0 = solver.H0.copy()
    for _ in range(300):
        solver._iterate_once(inv_dt)
        assert np.all(f.H[masked] == 0.0)
        np.testing.assert_array_equal(f.H[ring], H0[ring])
        assert np.all(f.H >= 0.0)


def test_overflowing_thickness_raises_divergence():
    nx, ny = 10, 10
    Hice = np.zeros((nx, ny))
    Hice[5, 5] = 1e60
    solver = IceFlow2DSolver(
        1e3, 1e3, np.zeros((nx, ny)), Hice, np.ones((nx, ny)), 0.0, 0.0, 0.0,
        config=IceFlow2DConfig(nout=1), verbosity=ERROR,
    )
    with pytest.raises(CNumericalDivergence) as excinfo:
        solver.run()
    assert excinfo.value.iteration == 1
    assert excinfo.value.step == 0


def test_nan_in_state_reaches_fatal_within_one_check():
    nx, ny = 10, 10
    solver = IceFlow2DSolver(
        1e3, 1e3, np.zeros((nx, ny)), np.full((nx, ny), 50.0), np.ones((nx, ny)),
        0.0, 0.0, 0.0, config=IceFlow2DConfig(nout=7), verbosity=ERROR,
    )
    solver.H0[5, 5] = np.nan
    with pytest.raises(CNumericalDivergence) as excinfo:
        solver.run()
    assert excinfo.value.iteration == 7


@pytest.mark.parametrize(
    "field, cell, masked",
    [
        ("Hice", (5, 5), False),
        ("Hice", (5, 5), True),
        ("Hice", (0, 3), True),
        ("Zbed", (5, 5), True),
        ("Zbed", (0, 0), False),
    ],
)
@pytest.mark.parametrize("bad_value", [np.nan, np.inf])
def test_non_finite_inputs_are_rejected(field, cell, masked, bad_value):
    nx, ny = 10, 10
    arrays = {"Zbed": np.zeros((nx, ny)), "Hice": np.full((nx, ny), 50.0)}
    arrays[field][cell] = bad_value
    Mask = np.ones((nx, ny))
    if masked:
        Mask[3:8, 3:8] = 0
        Mask[cell] = 0
    with pytest.raises(CInvalidConfiguration):
        IceFlow2DSolver(
            1e3, 1e3, arrays["Zbed"], arrays["Hice"], Mask, 0.0, 0.0, 0.0,
            verbosity=ERROR,
        )


@pytest.mark.parametrize(
    "change",
    [
        {"Hice": np.zeros((5, 6))},
        {"Mask": np.full((6, 6), 2)},
        {"Zbed": np.zeros((2, 6)), "Hice": np.zeros((2, 6)), "Mask": np.ones((2, 6))},
        {"dx": 0.0},
        {"dy": -1.0},
        {"grad_b": float("nan")},
    ],
)
def test_invalid_inputs_are_rejected(change):
    args = {
        "dx": 1e3,
        "dy": 1e3,
        "Zbed": np.zeros((6, 6)),
        "Hice": np.zeros((6, 6)),
        "Mask": np.ones((6, 6)),
        "grad_b": 0.01,
        "z_ela": 0.0,
        "b_max": 1.0,
    }
    args.update(change)
    with pytest.raises(CInvalidConfiguration):
        IceFlow2DSolver(**args, verbosity=ERROR)


@pytest.mark.skipif(not CUDA_AVAILABLE, reason="no CUDA device")
def test_cuda_matches_cpu():
    config = IceFlow2DConfig(itmax=300, nout=100)
    dx, dy, Zbed, Hice, Mask = _dome()
    cpu = IceFlow2DSolver(
        dx, dy, Zbed, Hice, Mask, GRAD_B, Z_ELA, B_MAX, config=config, verbosity=ERROR
    ).run()
    gpu = IceFlow2DSolver(
        dx, dy, Zbed, Hice, Mask, GRAD_B, Z_ELA, B_MAX,
        config=config, platform=Platform("cuda"), verbosity=ERROR,
    ).run()
    np.testing.assert_allclose(gpu.H, cpu.H, rtol=1e-8, atol=1e-6)
