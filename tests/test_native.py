"""
Tests for the native solver interface: presets, input validation, the matvec
budget and output ordering.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from eigbridge import native
from eigbridge.native import Preset, Target, status
from eigbridge.internals.matrix_test_util import dense_eigenvalues_above, diagonal, random_symmetric


def counting_matvec(m, calls):
    """A python matvec callback over a scipy matrix, recording block sizes."""
    def matvec(x, ldx, y, ldy, block_size, context, ierr):
        n, k = m.shape[0], block_size[0]
        calls.append(k)
        for j in range(k):
            col = np.ctypeslib.as_array(x, shape=(ldx[0] * k,))[j * ldx[0]:j * ldx[0] + n]
            out = m @ col
            for i in range(n):
                y[j * ldy[0] + i] = out[i]
        ierr[0] = 0
    return native.MATVEC_FUNCTYPE(matvec)


def make_params(m, nev, target=Target.CLOSEST_GEQ, shifts=(1e-6,), preset=Preset.DEFAULT_MIN_TIME, calls=None):
    params = native.initialize()
    params.n = m.shape[0]
    params.num_evals = nev
    params.target = target
    params.target_shifts = shifts
    params.matrix_matvec = counting_matvec(m, [] if calls is None else calls)
    params.eps = 1e-10
    assert native.set_method(preset, params) == status.SUCCESS
    return params


def run(params, evecs=False):
    nev, n = params.num_evals, params.n
    evals = np.zeros(nev)
    res = np.zeros(nev)
    vecs = np.zeros(n * nev) if evecs else None
    code = native.eigensolve(evals, vecs, res, params)
    return code, evals, res, vecs


class TestSetMethod:
    """Preset application."""

    @pytest.mark.parametrize('preset', [p for p in Preset if p is not Preset.LOBPCG_ORTHOBASIS])
    def test_locking_presets_accept_closest_geq(self, preset):
        params = native.initialize()
        params.n, params.num_evals, params.target = 1000, 5, Target.CLOSEST_GEQ
        assert native.set_method(preset, params) == status.SUCCESS
        assert params.locking
        assert params.method is preset
        assert 1 <= params.max_block_size <= params.max_basis_size <= 1000
        assert params.min_restart_size + params.max_prev_retain < params.max_basis_size

    @pytest.mark.parametrize('preset', [p for p in Preset if p is not Preset.LOBPCG_ORTHOBASIS])
    def test_basis_covers_moderate_problems(self, preset):
        params = native.initialize()
        params.n, params.num_evals, params.target = 1000, 1, Target.CLOSEST_GEQ
        assert native.set_method(preset, params) == status.SUCCESS
        assert params.max_basis_size == 1000
        assert params.check_growth >= 0

    def test_basis_is_bounded_for_huge_problems(self):
        params = native.initialize()
        params.n, params.num_evals, params.target = 10 ** 6, 1, Target.CLOSEST_GEQ
        assert native.set_method(Preset.DEFAULT_MIN_TIME, params) == status.SUCCESS
        assert params.max_basis_size < 1000

    def test_lobpcg_rejects_closest_geq(self):
        params = native.initialize()
        params.n, params.num_evals, params.target = 100, 3, Target.CLOSEST_GEQ
        assert native.set_method(Preset.LOBPCG_ORTHOBASIS, params) == status.PRESET_TARGET_MISMATCH
        # left untouched
        assert params.method is None

    def test_lobpcg_accepts_smallest(self):
        params = native.initialize()
        params.n, params.num_evals, params.target = 100, 3, Target.SMALLEST
        assert native.set_method('lobpcg_orthobasis', params) == status.SUCCESS
        assert not params.locking
        assert params.max_block_size == 3

    def test_unknown_preset(self):
        params = native.initialize()
        params.n, params.num_evals = 10, 1
        assert native.set_method('jacobi_davidson', params) == status.UNKNOWN_PRESET

    def test_needs_sizes(self):
        assert native.set_method(Preset.GD, native.initialize()) == status.PRESET_NEEDS_SIZES

    @pytest.mark.parametrize('n', [1, 2, 3, 7])
    def test_sizes_clamped_to_tiny_problems(self, n):
        params = native.initialize()
        params.n, params.num_evals, params.target = n, 1, Target.CLOSEST_GEQ
        assert native.set_method(Preset.DEFAULT_MIN_TIME, params) == status.SUCCESS
        assert params.max_basis_size == n
        assert params.max_block_size <= n

    def test_preset_spelling(self):
        assert Preset.parse('Default-Min-Time') is Preset.DEFAULT_MIN_TIME
        with pytest.raises(ValueError):
            Preset.parse('fastest')


class TestCheckInput:
    """Validation happens before any matvec."""

    def test_missing_params(self):
        assert native.eigensolve(np.zeros(1), None, np.zeros(1), None) == status.PARAMS_MISSING

    def test_missing_matvec(self):
        params = make_params(diagonal([1.0, 2.0]), 1)
        params.matrix_matvec = None
        assert run(params)[0] == status.MATVEC_MISSING

    def test_too_many_evals(self):
        calls = []
        params = make_params(diagonal([1.0, 2.0]), 2, calls=calls)
        params.num_evals = 3
        assert native.check_input(np.zeros(3), None, np.zeros(3), params) == status.TOO_MANY_EVALS
        assert calls == []

    def test_missing_shift(self):
        params = make_params(diagonal([1.0, 2.0]), 1)
        params.target_shifts = ()
        assert run(params)[0] == status.MISSING_SHIFTS

    def test_negative_eps(self):
        params = make_params(diagonal([1.0, 2.0]), 1)
        params.eps = -1.0
        assert run(params)[0] == status.BAD_EPS

    def test_output_size(self):
        params = make_params(diagonal([1.0, 2.0]), 1)
        code = native.eigensolve(np.zeros(2), None, np.zeros(1), params)
        assert code == status.OUTPUT_SIZE_MISMATCH

    def test_locking_required(self):
        calls = []
        params = make_params(diagonal([1.0, 2.0, 3.0]), 1, calls=calls)
        params.locking = False
        assert run(params)[0] == status.LOCKING_REQUIRED
        assert calls == []

    def test_negative_check_growth(self):
        calls = []
        params = make_params(diagonal([1.0, 2.0, 3.0]), 1, calls=calls)
        params.check_growth = -0.5
        assert run(params)[0] == status.BAD_CHECK_GROWTH
        assert calls == []


class TestEigensolve:
    """End-to-end runs of the solver with a python callback."""

    def test_diagonal_closest_geq(self):
        m = diagonal([-3.0, -1.0, 0.0, 0.5, 2.0, 4.0])
        params = make_params(m, 2, shifts=(0.1,))
        code, evals, res, _ = run(params)

        assert code == status.SUCCESS
        assert_allclose(evals, [0.5, 2.0], atol=1e-10)
        assert (res <= 1e-9).all()

    def test_smallest(self):
        m = random_symmetric(60, 0.05, seed=7)
        params = make_params(m, 3, target=Target.SMALLEST, shifts=())
        code, evals, _, _ = run(params)

        assert code == status.SUCCESS
        assert_allclose(evals, np.linalg.eigvalsh(m.toarray())[:3], atol=1e-8)

    def test_largest_with_lobpcg(self):
        m = random_symmetric(60, 0.05, seed=7)
        params = make_params(m, 2, target=Target.LARGEST, shifts=(), preset=Preset.LOBPCG_ORTHOBASIS)
        params.eps = 1e-8
        code, evals, _, _ = run(params)

        assert code == status.SUCCESS
        assert_allclose(evals, np.linalg.eigvalsh(m.toarray())[::-1][:2], atol=1e-6)

    def test_eigenvectors(self):
        m = random_symmetric(40, 0.1, seed=8)
        params = make_params(m, 2, shifts=(0.05,))
        code, evals, res, vecs = run(params, evecs=True)

        assert code == status.SUCCESS
        for (val, vec) in zip(evals, vecs.reshape(2, 40)):
            assert_allclose(np.linalg.norm(vec), 1.0, atol=1e-10)
            assert np.linalg.norm(m @ vec - val * vec) <= 1e-8

    def test_block_sizes_and_stats(self):
        calls = []
        m = random_symmetric(50, 0.05, seed=9)
        params = make_params(m, 1, calls=calls)
        assert run(params)[0] == status.SUCCESS

        assert all(1 <= k <= params.max_block_size for k in calls)
        assert params.stats.num_matvecs == sum(calls)
        assert params.stats.num_outer_iterations >= 1
        assert not params.frozen

    def test_budget_is_never_exceeded(self):
        calls = []
        m = diagonal(np.linspace(1.0, 100.0, 200))
        params = make_params(m, 3, shifts=(0.5,), preset=Preset.GD, calls=calls)
        params.max_matvecs = 25

        assert run(params)[0] == status.MAX_ITERATIONS_REACHED
        assert sum(calls) <= 25
        assert params.stats.num_matvecs == sum(calls)

    @pytest.mark.slow
    def test_nearest_interior_eigenvalue(self):
        # small components of the graph converge long before the eigenvalue
        # nearest the shift is resolved
        m = random_symmetric(500, 0.01, seed=42)
        params = make_params(m, 1, shifts=(1e-4,))
        code, evals, _, _ = run(params)

        assert code == status.SUCCESS
        assert_allclose(evals, dense_eigenvalues_above(m, 1e-4)[:1], rtol=1e-6, atol=1e-10)

    @pytest.mark.slow
    def test_restarts_when_the_basis_is_small(self):
        m = diagonal(np.linspace(1.0, 100.0, 200))
        params = make_params(m, 3, shifts=(0.5,), preset=Preset.GD)
        params.eps = 5e-5
        params.max_basis_size = 24
        params.min_restart_size = 6
        params.max_prev_retain = 0
        params.max_matvecs = 20000
        code, evals, res, _ = run(params)

        assert code == status.SUCCESS
        assert_allclose(evals, m.diagonal()[:3], rtol=1e-6)
        assert (res <= 5e-5).all()
        assert params.stats.num_restarts > 0

    def test_checks_are_spaced_by_growth(self):
        m = random_symmetric(80, 0.05, seed=3)
        params = make_params(m, 1, target=Target.SMALLEST, shifts=())
        params.check_growth = 0.0
        assert run(params)[0] == status.SUCCESS
        eager = params.stats.num_outer_iterations

        params = make_params(m, 1, target=Target.SMALLEST, shifts=())
        params.check_growth = 1.0
        assert run(params)[0] == status.SUCCESS
        assert params.stats.num_outer_iterations < eager

    def test_callback_error(self):
        def failing(x, ldx, y, ldy, block_size, context, ierr):
            ierr[0] = 7

        params = make_params(diagonal([1.0, 2.0, 3.0]), 1)
        params.matrix_matvec = native.MATVEC_FUNCTYPE(failing)
        assert run(params)[0] == status.MATVEC_FAILURE

    def test_callback_must_write_status(self):
        def silent(x, ldx, y, ldy, block_size, context, ierr):
            pass

        params = make_params(diagonal([1.0, 2.0, 3.0]), 1)
        params.matrix_matvec = native.MATVEC_FUNCTYPE(silent)
        assert run(params)[0] == status.MATVEC_FAILURE

    def test_frozen_during_solve(self):
        seen = []
        params = make_params(diagonal([1.0, 2.0]), 1)

        def sneaky(x, ldx, y, ldy, block_size, context, ierr):
            try:
                params.num_evals = 2
            except AttributeError:
                seen.append(True)
            ierr[0] = 0

        params.matrix_matvec = native.MATVEC_FUNCTYPE(sneaky)
        params.max_matvecs = 10
        run(params)
        assert seen
        assert params.num_evals == 1

    def test_free(self):
        params = make_params(diagonal([1.0, 2.0]), 1)
        params.matrix = 42
        native.free(params)
        assert params.matrix_matvec is None
        assert params.matrix == 0


class TestTargetOrder:
    """Ordering of ritz values by the target."""

    def order(self, theta, target, shift=0.0):
        params = native.initialize()
        params.target = target
        params.target_shifts = (shift,)
        return [theta[i] for i in native.target_order(np.array(theta), params, 0, 0.0)]

    def test_closest_geq(self):
        theta = [-0.1, 0.5, 3.0, 1.0, -2.0]
        assert self.order(theta, Target.CLOSEST_GEQ, 0.2) == [0.5, 1.0, 3.0, -0.1, -2.0]

    def test_closest_leq(self):
        theta = [-0.1, 0.5, 3.0, 1.0, -2.0]
        assert self.order(theta, Target.CLOSEST_LEQ, 0.2) == [-0.1, -2.0, 0.5, 1.0, 3.0]

    def test_closest_abs(self):
        assert self.order([3.0, -0.5, 1.0], Target.CLOSEST_ABS, 0.0) == [-0.5, 1.0, 3.0]

    def test_smallest_and_largest(self):
        assert self.order([2.0, -1.0, 0.0], Target.SMALLEST) == [-1.0, 0.0, 2.0]
        assert self.order([2.0, -1.0, 0.0], Target.LARGEST) == [2.0, 0.0, -1.0]

    def test_shift_per_eigenvalue(self):
        params = native.initialize()
        params.target_shifts = (0.0, 5.0)
        assert params.shift_for(0) == 0.0
        assert params.shift_for(1) == 5.0
        assert params.shift_for(7) == 5.0


class TestHarmonicRitz:
    """Harmonic extraction about an interior shift."""

    def test_nearest_the_shift_first(self):
        evals = np.array([-1.0, 0.5, 2.0, 4.0])
        V = np.eye(4)
        theta, S = native.harmonic_ritz(V, np.diag(evals), 0.4)

        assert_allclose(theta, [0.5, -1.0, 2.0, 4.0], atol=1e-12)
        assert_allclose(np.abs(S), np.eye(4)[:, [1, 0, 2, 3]], atol=1e-12)

    def test_subspace_of_a_larger_matrix(self):
        m = diagonal(np.linspace(-5.0, 5.0, 21)).toarray()
        rng = np.random.default_rng(1)
        V = np.linalg.qr(rng.standard_normal((21, 8)))[0].T
        theta, S = native.harmonic_ritz(V, V @ m, 0.3)

        assert_allclose(np.linalg.norm(S, axis=0), 1.0)
        # each theta is the rayleigh quotient of its vector
        X = S.T @ V
        assert_allclose(theta, np.einsum('ij,ij->i', X @ m, X), atol=1e-12)

    def test_shift_on_an_eigenvalue(self):
        evals = np.array([-1.0, 0.5, 2.0, 4.0])
        assert native.harmonic_ritz(np.eye(4), np.diag(evals), 0.5) is None
