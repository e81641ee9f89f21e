###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
One eigenvalue computation, start to finish.

A session binds a borrowed matrix view to a fresh solver parameter block,
runs the solver once, and releases everything it acquired on every way
out.  Sessions are single-use and belong to the thread that created them.

    UNCONFIGURED -> CONFIGURED -> RUNNING -> SUCCEEDED/FAILED -> RELEASED

A configuration rejected by the method preset goes straight from
UNCONFIGURED to FAILED, and is then RELEASED.
"""

import enum
import math
import threading
import typing as tp
from dataclasses import replace

import numpy as np

from eigbridge import native
from eigbridge.errors import ConfigurationRejected, SessionStateError
from eigbridge.handles import ARENA, MatrixArena
from eigbridge.native import Preset, Target
from eigbridge.result import EigenResult, extract_result
from eigbridge.trampoline import make_trampoline, matvec_trampoline
from eigbridge.view import CsrView

# Relative to |shift|; see SolverSession.configure.
DEFAULT_TOLERANCE = 1e-4
DEFAULT_PRESET = Preset.DEFAULT_MIN_TIME

class SessionState(enum.Enum):
    UNCONFIGURED = 'unconfigured'
    CONFIGURED = 'configured'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    RELEASED = 'released'

class SolverSession:
    def __init__(self, view: CsrView, *, arena: MatrixArena = ARENA):
        if not isinstance(view, CsrView):
            raise TypeError(f'expected a CsrView, got {type(view).__name__}')
        self.view = view
        self.state = SessionState.UNCONFIGURED
        self._arena = arena
        self._trampoline = matvec_trampoline if arena is ARENA else make_trampoline(arena)
        self._thread = threading.get_ident()
        self._params = None
        self._binding = None
        self._evals = None
        self._res_norms = None
        self._evecs = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()

    @property
    def params(self) -> tp.Optional[native.SolverParams]:
        return self._params

    @property
    def binding(self):
        return self._binding

    def configure(
            self,
            nev: int,
            shift: float,
            tolerance: float = DEFAULT_TOLERANCE,
            *,
            preset: tp.Union[Preset, str] = DEFAULT_PRESET,
            max_matvecs: tp.Optional[int] = None,
            keep_eigenvectors: bool = False,
            seed: tp.Optional[int] = None,
            print_level: int = 0,
    ) -> 'SolverSession':
        """
        Prepare a search for the ``nev`` eigenvalues closest to ``shift``
        from above.

        ``tolerance`` is relative to the magnitude of the shift: pairs are
        accepted once their residual norm is below ``|shift| * tolerance``
        (or a few ulps of ``||A||``, whichever is larger).  ``max_matvecs``
        defaults to ``n**2``.

        Raises ``ConfigurationRejected`` if the preset cannot serve this
        target; the session is then already released.
        """
        self._check_thread()
        self._expect(SessionState.UNCONFIGURED, 'configure')

        if int(nev) != nev or nev < 1:
            raise ValueError(f'nev must be a positive integer, got {nev!r}')
        if not math.isfinite(shift):
            raise ValueError(f'shift must be finite, got {shift!r}')
        if not (math.isfinite(tolerance) and tolerance > 0):
            raise ValueError(f'tolerance must be positive, got {tolerance!r}')
        if max_matvecs is not None and max_matvecs < 1:
            raise ValueError(f'max_matvecs must be positive, got {max_matvecs!r}')

        n, nev = self.view.n, int(nev)
        self._evals = np.zeros(nev)
        self._res_norms = np.zeros(nev)
        self._evecs = np.zeros(n * nev) if keep_eigenvectors else None

        params = self._params = native.initialize()
        try:
            params.n = n
            params.num_evals = nev
            params.target = Target.CLOSEST_GEQ
            params.target_shifts = (float(shift),)
            params.matrix_matvec = self._trampoline
            params.max_matvecs = n * n if max_matvecs is None else int(max_matvecs)
            params.eps = abs(shift) * tolerance
            params.seed = seed
            params.print_level = print_level

            self._binding = self._arena.bind(self.view)
            params.matrix = self._binding.handle

            code = native.set_method(preset, params)
            if code != native.status.SUCCESS:
                raise ConfigurationRejected(code, preset, params.target)
        except BaseException:
            self.state = SessionState.FAILED
            self.release()
            raise

        self.state = SessionState.CONFIGURED
        return self

    def run(self) -> EigenResult:
        """
        Run the solver to completion.  Raises ``SolverFailed`` on a nonzero
        solver status.  The session is released afterwards either way.
        """
        self._check_thread()
        self._expect(SessionState.CONFIGURED, 'run')

        self.state = SessionState.RUNNING
        try:
            params = self._params
            code = native.eigensolve(self._evals, self._evecs, self._res_norms, params)
            result = extract_result(
                code, self._evals, self._res_norms, self._evecs,
                n=self.view.n,
                stats=replace(params.stats),
            )
        except BaseException:
            self.state = SessionState.FAILED
            raise
        else:
            self.state = SessionState.SUCCEEDED
            return result
        finally:
            self.release()

    def release(self):
        """ Free the solver state and unbind the matrix.  Idempotent. """
        if self.state is SessionState.RELEASED:
            return
        if self.state is SessionState.RUNNING:
            raise SessionStateError('cannot release a running session')

        if self._params is not None:
            native.free(self._params)
            self._params = None
        if self._binding is not None:
            self._arena.release(self._binding)
            self._binding = None
        self._evals = self._res_norms = self._evecs = None
        self.state = SessionState.RELEASED

    def _expect(self, state, action):
        if self.state is not state:
            raise SessionStateError(f'cannot {action} a session that is {self.state.value}')

    def _check_thread(self):
        if threading.get_ident() != self._thread:
            raise SessionStateError('a solver session must stay on the thread that created it')

def solve(
        view: CsrView,
        nev: int,
        shift: float,
        tolerance: float = DEFAULT_TOLERANCE,
        **kw,
) -> EigenResult:
    """
    Find the ``nev`` eigenvalues of a sparse symmetric matrix that are
    closest to ``shift`` without being below it.

    Keyword arguments are forwarded to ``SolverSession.configure``.
    """
    with SolverSession(view) as session:
        return session.configure(nev, shift, tolerance, **kw).run()

def smallest_eigenvalues_above(matrix, nev: int, above: float, tolerance: float = DEFAULT_TOLERANCE):
    """
    Eigenvalues only, for a scipy sparse matrix, a dense array or a
    ``CsrView``.  Order is as emitted by the solver.
    """
    view = matrix if isinstance(matrix, CsrView) else CsrView.from_matrix(matrix)
    return solve(view, nev, above, tolerance).eigenvalues
