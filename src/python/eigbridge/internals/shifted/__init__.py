###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import numpy as np
import scipy.sparse

from eigbridge.errors import SolverFailed
from eigbridge.internals import info
from eigbridge.native import status
from eigbridge.result import EigenResult

def dense_smallest_above(m, nev, shift, keep_eigenvectors=False):
    """
    Reference solution using a dense symmetric eigensolver.

    Returns the ``nev`` smallest eigenvalues strictly above ``shift``, in
    ascending order.
    """
    info('trace: using dense eigensolver')

    A = m.toarray() if scipy.sparse.issparse(m) else np.asarray(m, dtype=float)
    # note: raises LinAlgError if the eigenvalue computation does not converge
    evals, evecs = np.linalg.eigh(A)
    above = evals > shift
    evals, evecs = evals[above][:nev], evecs.T[above][:nev]
    if len(evals) < nev:
        raise SolverFailed(
            status.TOO_MANY_EVALS,
            f'only {len(evals)} eigenvalues lie above {shift}',
        )

    return EigenResult(
        eigenvalues=evals,
        residual_norms=residual_norms(A, evals, evecs),
        eigenvectors=evecs if keep_eigenvectors else None,
    )

def residual_norms(m, evals, evecs):
    """ ``||A v - lambda v||`` for each eigenpair (eigenvectors as ROWS). """
    evecs = np.asarray(evecs)
    return np.linalg.norm((m @ evecs.T).T - np.asarray(evals)[:, None] * evecs, axis=1)

def normalize(v):
    return v / np.sqrt(np.vdot(v, v))

def is_good_esol(m, eval, evec, tol):
    evec = normalize(evec)
    return lazy_all([
        lambda: abs(abs(np.vdot(normalize(m @ evec), evec)) - 1.0) < 1e-2,
        lambda: np.linalg.norm(m @ evec - eval * evec) <= tol,
    ])

def lazy_all(it): return all(pred() for pred in it)
