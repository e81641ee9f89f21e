###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import typing as tp
from dataclasses import dataclass, replace

import numpy as np

from eigbridge.errors import NonConvergence, SolverFailed
from eigbridge.native import SolverStats, status

@dataclass(frozen=True)
class EigenResult:
    """
    Output of a successful solve.

    ``eigenvalues`` are in the order the solver emitted them, which is not
    guaranteed to be ascending; use ``sorted()`` when order matters.
    ``eigenvectors``, when kept, has one eigenvector per ROW.
    """
    eigenvalues: np.ndarray
    residual_norms: np.ndarray
    eigenvectors: tp.Optional[np.ndarray] = None
    stats: tp.Optional[SolverStats] = None

    def __len__(self):
        return len(self.eigenvalues)

    def sorted(self) -> 'EigenResult':
        perm = np.argsort(self.eigenvalues, kind='stable')
        return replace(
            self,
            eigenvalues=self.eigenvalues[perm],
            residual_norms=self.residual_norms[perm],
            eigenvectors=None if self.eigenvectors is None else self.eigenvectors[perm],
        )

def raise_for_status(code):
    if code == status.SUCCESS:
        return
    if status.is_budget_exhausted(code):
        raise NonConvergence(code)
    raise SolverFailed(code)

def extract_result(code, evals, res_norms, evecs, n, stats=None) -> EigenResult:
    """
    Turn the solver's output buffers into an ``EigenResult``.

    A nonzero ``code`` raises; nothing computed by a failed solve escapes.
    ``evecs`` may be ``None`` when eigenvectors are not wanted.
    """
    raise_for_status(code)

    nev = len(evals)
    evals = np.array(evals, dtype=float)
    res_norms = np.array(res_norms, dtype=float)
    if len(res_norms) != nev:
        raise SolverFailed(
            status.UNEXPECTED_FAILURE,
            f'{nev} eigenvalues but {len(res_norms)} residual norms',
        )
    if not (np.all(np.isfinite(evals)) and np.all(np.isfinite(res_norms))):
        raise SolverFailed(status.UNEXPECTED_FAILURE, 'solver produced non-finite output')
    if np.any(res_norms < 0):
        raise SolverFailed(status.UNEXPECTED_FAILURE, 'solver produced negative residual norms')

    if evecs is not None:
        if len(evecs) != n * nev:
            raise SolverFailed(
                status.UNEXPECTED_FAILURE,
                f'eigenvector buffer has length {len(evecs)}, expected {n * nev}',
            )
        evecs = np.array(evecs, dtype=float).reshape(nev, n)

    return EigenResult(
        eigenvalues=evals,
        residual_norms=res_norms,
        eigenvectors=evecs,
        stats=stats,
    )
