###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
Block generalized Davidson with thick restart.

The matrix is never seen directly; every product goes through
``params.matrix_matvec`` using buffers owned by the per-call workspace.
The basis is kept as rows of ``V`` along with ``AV = A V``, so restarts and
locking never cost extra matvecs.

Between convergence checks the basis grows as a block Krylov space (each
new block is ``A`` applied to the previous one).  At a check, the
Rayleigh-Ritz pairs are walked from the one nearest the target outwards,
and pairs are only locked while every pair before them has converged.

A Ritz pair can only be trusted to be the eigenpair nearest an interior
shift once the basis spans everything that is not locked, because an
eigenvector that is barely represented in the basis has no Ritz value at
all.  So whenever the basis may grow that large, interior targets are
checked only then.  Otherwise restarts keep the harmonic Ritz vectors
nearest the shift, which unlike ordinary Ritz vectors are not polluted by
spurious interior values.
"""

import ctypes
import math
import time
import typing as tp

import numpy as np
import scipy.linalg

from eigbridge.internals import info
from . import status
from .params import MATVEC_FUNCTYPE, SolverParams, SolverStats, Target

# Converged residual norms may not be smaller than this many ulps of ||A||.
TOL_FLOOR_ULPS = 100

# A new direction is dropped if orthogonalization shrinks it by this factor.
BREAKDOWN = 1e-10

RANDOM_ATTEMPTS = 3

# A factor R of (A - shift) V with diagonal entries this small (relative to
# the largest) is treated as singular, and harmonic extraction is skipped.
HARMONIC_RCOND = 1e-12

class _Stop(Exception):
    def __init__(self, code):
        super().__init__(code)
        self.code = code

def eigensolve(evals, evecs, res_norms, params: SolverParams) -> int:
    """
    Compute ``params.num_evals`` eigenpairs chosen by ``params.target``.

    :param evals: float array of length ``num_evals``; receives eigenvalues.
    :param evecs: float array of length ``n * num_evals`` (or ``None``);
    receives one eigenvector per consecutive run of ``n`` entries.
    :param res_norms: float array of length ``num_evals``; receives residual
    norms.
    :param params: the parameter block.  It is frozen for the duration of
    the call; statistics are written to ``params.stats``.
    :return: 0 on success, otherwise a negative code from ``status``.
    The output arrays are only meaningful on success.
    """
    code = check_input(evals, evecs, res_norms, params)
    if code != status.SUCCESS:
        return code

    params.stats = SolverStats()
    stamp = time.time()
    params._frozen = True
    try:
        params._workspace = ws = _Workspace(params)
        _iterate(params, ws)
        _emit(params, ws, evals, evecs, res_norms)
        return status.SUCCESS
    except _Stop as e:
        if params.print_level >= 1:
            info(f'trace: eigensolve stopped: {status.describe(e.code)}')
        return e.code
    finally:
        params._frozen = False
        params.stats.elapsed_time = time.time() - stamp
        if params.print_level >= 1:
            s = params.stats
            info(
                f'trace: eigensolve: {s.num_matvecs} matvecs, '
                f'{s.num_outer_iterations} iterations, {s.num_restarts} restarts, '
                f'{s.elapsed_time:.3g}s'
            )

def free(params: SolverParams):
    """ Release the workspace and the references to the callback and context. """
    params._workspace = None
    params.matrix_matvec = None
    params.matrix = 0

def check_input(evals, evecs, res_norms, params: tp.Optional[SolverParams]) -> int:
    if params is None:
        return status.PARAMS_MISSING
    n, nev = params.n, params.num_evals
    if n < 1:
        return status.BAD_N
    if params.matrix_matvec is None:
        return status.MATVEC_MISSING
    if nev < 1:
        return status.BAD_NUM_EVALS
    if nev > n:
        return status.TOO_MANY_EVALS
    if not isinstance(params.target, Target):
        return status.BAD_TARGET
    if params.target.needs_shift() and not params.target_shifts:
        return status.MISSING_SHIFTS
    if not (np.isfinite(params.eps) and params.eps >= 0):
        return status.BAD_EPS
    if params.max_matvecs < 1:
        return status.BAD_MAX_MATVECS

    basis = params.max_basis_size
    if not min(2, n) <= basis <= n:
        return status.BAD_BASIS_SIZE
    if not 1 <= params.min_restart_size <= max(1, basis - 1):
        return status.BAD_RESTART_SIZE
    if not 1 <= params.max_block_size <= basis:
        return status.BAD_BLOCK_SIZE
    if not (np.isfinite(params.check_growth) and params.check_growth >= 0):
        return status.BAD_CHECK_GROWTH
    if params.max_prev_retain < 0:
        return status.BAD_PREV_RETAIN
    if basis > 1 and params.min_restart_size + params.max_prev_retain >= basis:
        return status.RESTART_TOO_LARGE
    if not params.locking and params.target in (Target.CLOSEST_GEQ, Target.CLOSEST_LEQ):
        return status.LOCKING_REQUIRED

    if np.shape(evals) != (nev,) or np.shape(res_norms) != (nev,):
        return status.OUTPUT_SIZE_MISMATCH
    if evecs is not None and np.shape(evecs) != (n * nev,):
        return status.OUTPUT_SIZE_MISMATCH
    return status.SUCCESS


class _Workspace:
    def __init__(self, params: SolverParams):
        n, block = params.n, params.max_block_size

        self.V = np.zeros((params.max_basis_size, n))
        self.AV = np.zeros((params.max_basis_size, n))
        self.m = 0
        # rows added by the latest expansion, and the size at which the
        # next convergence check happens
        self.last = 0
        self.next_check = 0

        self.locked_vals = []
        self.locked_res = []
        self.locked_vecs = np.zeros((params.num_evals, n))

        # coefficients (in the basis as of the last check) of the wanted
        # ritz vectors, for GD+k restarts
        self.prev = None

        self.rng = np.random.default_rng(params.seed)

        # Callback buffers.  They live exactly as long as the workspace, and
        # the callee only ever sees them for the duration of one call.
        self.x = np.zeros(block * n)
        self.y = np.zeros(block * n)
        self.x_ptr = self.x.ctypes.data_as(ctypes.POINTER(ctypes.c_double))
        self.y_ptr = self.y.ctypes.data_as(ctypes.POINTER(ctypes.c_double))
        self.ld = ctypes.c_int64(n)
        self.ierr = ctypes.c_int(0)

        matvec = params.matrix_matvec
        if not isinstance(matvec, MATVEC_FUNCTYPE):
            matvec = MATVEC_FUNCTYPE(matvec)
        self.matvec = matvec

    @property
    def num_locked(self):
        return len(self.locked_vals)

    def basis(self):
        return self.V[:self.m]

    def locked(self):
        return self.locked_vecs[:self.num_locked]

def _matvec(params: SolverParams, ws: _Workspace, X):
    """ Apply the matrix to the rows of ``X``, a block at a time. """
    n = params.n
    out = np.empty_like(X)
    for start in range(0, len(X), params.max_block_size):
        chunk = X[start:start + params.max_block_size]
        k = len(chunk)
        if params.stats.num_matvecs + k > params.max_matvecs:
            raise _Stop(status.MAX_ITERATIONS_REACHED)

        ws.x[:k * n] = chunk.ravel()
        # the callee must overwrite this
        ws.ierr.value = -1
        block_size = ctypes.c_int(k)
        ws.matvec(
            ws.x_ptr, ctypes.byref(ws.ld),
            ws.y_ptr, ctypes.byref(ws.ld),
            ctypes.byref(block_size), params.matrix,
            ctypes.byref(ws.ierr),
        )
        params.stats.num_matvecs += k
        if ws.ierr.value != 0:
            raise _Stop(status.MATVEC_FAILURE)

        out[start:start + k] = ws.y[:k * n].reshape(k, n)
    return out

def _project_out(v, against):
    for _ in range(2):
        for B in against:
            if len(B):
                v = v - B.T @ (B @ v)
    return v

def _orthonormalize(vecs, against):
    """
    Orthonormalize the rows of ``vecs`` against the rows of each array in
    ``against`` and against each other.  Two full passes of classical
    Gram-Schmidt ("twice is enough"), the first part done a block at a time.
    Rows that collapse are dropped.
    """
    vecs = np.array(vecs, dtype=float).reshape(len(vecs), -1)
    original = np.linalg.norm(vecs, axis=1)
    against = [B for B in against if len(B)]
    for _ in range(2):
        for B in against:
            vecs -= (vecs @ B.T) @ B

    out = []
    for (v, norm0) in zip(vecs, original):
        if norm0 == 0.0:
            continue
        before = np.linalg.norm(v)
        v = _project_out(v, [np.array(out)])
        # heavy cancellation within the block brings back components
        # along ``against``
        if np.linalg.norm(v) < 1e-3 * before:
            v = _project_out(v, against + [np.array(out)])
        norm = np.linalg.norm(v)
        if norm <= BREAKDOWN * norm0:
            continue
        out.append(v / norm)
    return np.array(out).reshape(len(out), vecs.shape[1])

def _expand(params: SolverParams, ws: _Workspace, dirs):
    """ Add up to ``len(dirs)`` new basis vectors built from ``dirs``. """
    n = params.n
    want = max(1, len(dirs))
    new = _orthonormalize(dirs, [ws.locked(), ws.basis()])

    # Breakdown (the basis is nearly invariant): fill up with random vectors.
    attempts = 0
    while len(new) < want and attempts < RANDOM_ATTEMPTS:
        attempts += 1
        extra = ws.rng.standard_normal((want - len(new), n))
        extra = _orthonormalize(extra, [ws.locked(), ws.basis(), new])
        new = np.vstack([new, extra])

    if not len(new):
        # the basis and the locked vectors already span the whole space
        raise _Stop(status.UNEXPECTED_FAILURE)

    k = len(new)
    ws.V[ws.m:ws.m + k] = new
    ws.AV[ws.m:ws.m + k] = _matvec(params, ws, new)
    ws.m += k
    ws.last = k

def _rayleigh_ritz(ws: _Workspace):
    V, AV = ws.basis(), ws.AV[:ws.m]
    H = V @ AV.T
    H = (H + H.T) / 2
    try:
        theta, S = scipy.linalg.eigh(H)
    except (np.linalg.LinAlgError, ValueError):
        raise _Stop(status.LAPACK_FAILURE)
    return theta, S

def harmonic_ritz(V, AV, shift: float):
    """
    Harmonic ritz pairs of the basis ``V`` (orthonormal rows) about ``shift``.

    These satisfy ``(A - shift) x - (theta - shift) x`` orthogonal to
    ``(A - shift) V``.  Returns ``(theta, S)`` with the columns of ``S``
    giving unit coefficient vectors, ordered from the value nearest the shift
    outwards; ``theta`` holds the Rayleigh quotients of those vectors.
    Returns ``None`` when ``(A - shift) V`` is numerically rank deficient.
    """
    m = len(V)
    if m == 0:
        return None
    W = AV - shift * V
    R = np.linalg.qr(W.T, mode='r')
    d = np.abs(np.diag(R))
    if len(d) < m or d.min() <= HARMONIC_RCOND * d.max():
        return None

    H = V @ AV.T
    H = (H + H.T) / 2
    G = H - shift * np.eye(m)
    Rinv = scipy.linalg.solve_triangular(R, np.eye(m))
    M = Rinv.T @ G @ Rinv
    try:
        mu, T = scipy.linalg.eigh((M + M.T) / 2)
    except (np.linalg.LinAlgError, ValueError):
        return None

    # mu = 1 / (theta - shift)
    S = Rinv @ T[:, np.argsort(-np.abs(mu), kind='stable')]
    S /= np.linalg.norm(S, axis=0)
    theta = np.einsum('ij,ij->j', S, H @ S)
    return theta, S

def target_order(theta, params: SolverParams, num_locked: int, tol: float):
    """
    Indices of ``theta`` from most to least wanted.

    For ``CLOSEST_GEQ`` the values at or above the shift come first, nearest
    first, followed by the values below it.  ``CLOSEST_LEQ`` mirrors this.
    """
    theta = np.asarray(theta)
    target = params.target
    if target is Target.SMALLEST:
        return np.argsort(theta, kind='stable')
    if target is Target.LARGEST:
        return np.argsort(-theta, kind='stable')

    shift = params.shift_for(num_locked)
    dist = np.abs(theta - shift)
    if target is Target.CLOSEST_ABS:
        return np.argsort(dist, kind='stable')
    if target is Target.CLOSEST_GEQ:
        return np.lexsort((dist, theta < shift - tol))
    if target is Target.CLOSEST_LEQ:
        return np.lexsort((dist, theta > shift + tol))
    raise _Stop(status.BAD_TARGET)

def _closeness_order(theta, params: SolverParams, num_locked: int, tol: float):
    # Pairs on the wrong side of the shift still count, since an unconverged
    # one may be an eigenvalue on the right side that isn't resolved yet.
    if params.target.needs_shift():
        return np.argsort(np.abs(theta - params.shift_for(num_locked)), kind='stable')
    return target_order(theta, params, num_locked, tol)

def _acceptable(theta, params: SolverParams, num_locked: int, tol: float):
    if params.target is Target.CLOSEST_GEQ:
        return theta >= params.shift_for(num_locked) - tol
    if params.target is Target.CLOSEST_LEQ:
        return theta <= params.shift_for(num_locked) + tol
    return np.ones(len(theta), dtype=bool)

def _tolerance(params: SolverParams):
    floor = TOL_FLOOR_ULPS * np.finfo(float).eps * max(params.stats.estimate_norm, 1e-300)
    return max(params.eps, floor)

def _residuals(ws: _Workspace, S, theta, idx):
    C = S[:, idx]
    X = C.T @ ws.basis()
    R = C.T @ ws.AV[:ws.m] - theta[idx, None] * X
    return X, R, np.linalg.norm(R, axis=1)

def _select_locking(params: SolverParams, ws: _Workspace, theta, S, order, tol, exact):
    """
    Walk the ritz pairs from the one nearest the target outwards.

    Converged, acceptable pairs are locked only until the first unconverged
    pair is met; after that, unconverged pairs only contribute residuals.
    Returns ``(lock, pending)``, with ``lock`` a list of
    ``(index, vector, residual_norm)``.
    """
    wanted = params.num_evals - ws.num_locked
    accept = _acceptable(theta, params, ws.num_locked, tol)
    chunk = max(16, 2 * wanted)

    lock, pending = [], []
    for start in range(0, len(order), chunk):
        idx = order[start:start + chunk]
        X, R, rnorm = _residuals(ws, S, theta, idx)
        for (j, i) in enumerate(idx):
            if exact or rnorm[j] <= tol:
                if accept[i] and not pending:
                    lock.append((i, X[j], float(rnorm[j])))
            else:
                pending.append(R[j])
            if len(lock) == wanted or len(pending) == params.max_block_size:
                return lock, pending
    return lock, pending

def _capacity(params: SolverParams, ws: _Workspace):
    return min(params.max_basis_size, params.n - ws.num_locked)

def _next_check(params: SolverParams, ws: _Workspace, step: int):
    capacity = _capacity(params, ws)
    if params.target.needs_shift() and capacity == params.n - ws.num_locked:
        return capacity
    step = max(step, 1, math.ceil(ws.m * params.check_growth))
    return min(capacity, ws.m + step)

def _restart(params: SolverParams, ws: _Workspace, theta, S, order):
    m = ws.m
    keep = None
    if params.target.needs_shift():
        harmonic = harmonic_ritz(ws.basis(), ws.AV[:m], params.shift_for(ws.num_locked))
        if harmonic is not None:
            keep = harmonic[1][:, :params.min_restart_size]
    if keep is None:
        keep = S[:, order[:params.min_restart_size]]
    Q, _ = np.linalg.qr(keep)

    if params.max_prev_retain and ws.prev is not None:
        P = np.zeros((m, ws.prev.shape[1]))
        P[:len(ws.prev)] = ws.prev
        P = P[:, :params.max_prev_retain]
        # the basis is orthonormal, so the retained vectors only need
        # orthogonalizing in coefficient space
        P = _orthonormalize(P.T, [Q.T])
        if len(P):
            Q = np.hstack([Q, P.T])

    k = Q.shape[1]
    ws.V[:k] = Q.T @ ws.V[:m]
    ws.AV[:k] = Q.T @ ws.AV[:m]
    ws.m = k
    ws.prev = None
    params.stats.num_restarts += 1

def _shrink_to(ws: _Workspace, S, keep):
    m = ws.m
    C = S[:, keep]
    k = len(keep)
    ws.V[:k] = C.T @ ws.V[:m]
    ws.AV[:k] = C.T @ ws.AV[:m]
    ws.m = k
    ws.prev = None

def _checkpoint(params: SolverParams, ws: _Workspace):
    """
    Rayleigh-Ritz on the current basis.  Records what converged and returns
    the directions to expand with, or ``None`` once every wanted pair is
    known.
    """
    nev = params.num_evals
    stats = params.stats

    if stats.num_outer_iterations >= params.max_outer_iterations:
        raise _Stop(status.MAX_ITERATIONS_REACHED)
    stats.num_outer_iterations += 1

    theta, S = _rayleigh_ritz(ws)
    stats.estimate_norm = max(stats.estimate_norm, float(np.abs(theta).max()))
    tol = _tolerance(params)
    # the basis spans everything not locked, so the ritz pairs are exact
    exact = ws.m + ws.num_locked >= params.n
    wanted = nev - ws.num_locked

    if params.locking:
        order = _closeness_order(theta, params, ws.num_locked, tol)
        lock, pending = _select_locking(params, ws, theta, S, order, tol, exact)
        for (i, x, rnorm) in lock:
            ws.locked_vecs[ws.num_locked] = x
            ws.locked_vals.append(float(theta[i]))
            ws.locked_res.append(rnorm)
        num_pending = len(pending)
        pending = np.array(pending).reshape(num_pending, params.n)
    else:
        order = target_order(theta, params, ws.num_locked, tol)
        sel = order[:wanted]
        X, R, rnorm = _residuals(ws, S, theta, sel)
        ok = ((rnorm <= tol) | exact) & _acceptable(theta[sel], params, ws.num_locked, tol)
        lock = []
        if len(sel) == wanted and ok.all():
            ws.locked_vecs[:] = X
            ws.locked_vals = theta[sel].tolist()
            ws.locked_res = rnorm.tolist()
        pending = R[~ok][:params.max_block_size]

    if params.print_level >= 2:
        info(
            f'trace: iter {stats.num_outer_iterations} basis {ws.m} '
            f'locked {ws.num_locked} matvecs {stats.num_matvecs} '
            f'unconverged {len(pending)} tol {tol:.3e}'
        )

    if ws.num_locked == nev:
        return None
    if exact:
        # nothing is left to find; there are fewer acceptable eigenvalues
        # than requested
        raise _Stop(status.UNEXPECTED_FAILURE)

    if lock:
        locked_now = {i for (i, _, _) in lock}
        _shrink_to(ws, S, [i for i in order if i not in locked_now])
    elif ws.m >= _capacity(params, ws):
        _restart(params, ws, theta, S, order)
    else:
        ws.prev = S[:, target_order(theta, params, ws.num_locked, tol)[:wanted]]
    return pending

def _iterate(params: SolverParams, ws: _Workspace):
    seeds = np.zeros((params.max_block_size, params.n))
    ws.next_check = _next_check(params, ws, len(seeds))
    while True:
        _expand(params, ws, seeds[:ws.next_check - ws.m])
        if ws.m < ws.next_check:
            # continue the block Krylov sequence
            seeds = ws.AV[ws.m - ws.last:ws.m]
            continue

        seeds = _checkpoint(params, ws)
        if seeds is None:
            return
        if not len(seeds):
            seeds = np.zeros((1, params.n))
        ws.next_check = _next_check(params, ws, len(seeds))

def _emit(params: SolverParams, ws: _Workspace, evals, evecs, res_norms):
    n = params.n
    vals = np.array(ws.locked_vals)
    perm = target_order(vals, params, 0, _tolerance(params))
    evals[:] = vals[perm]
    res_norms[:] = np.array(ws.locked_res)[perm]
    if evecs is not None:
        evecs[:] = ws.locked_vecs[perm].reshape(n * params.num_evals)
