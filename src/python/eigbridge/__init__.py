###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
Smallest eigenvalues above a shift for large sparse symmetric matrices,
computed by a matrix-free solver that only sees the matrix through a
matrix-vector product callback.

>>> import scipy.sparse
>>> from eigbridge import CsrView, solve
>>> view = CsrView.from_matrix(scipy.sparse.diags([2.0, 3.0]).tocsr())
>>> solve(view, nev=2, shift=1e-6).sorted().eigenvalues.round(8).tolist()
[2.0, 3.0]
"""

from eigbridge.errors import (
    BufferLengthError,
    CallbackError,
    ConfigurationRejected,
    EigbridgeError,
    NonConvergence,
    SessionStateError,
    SolverFailed,
    StaleHandleError,
)
from eigbridge.native import Preset, Target
from eigbridge.result import EigenResult
from eigbridge.session import (
    DEFAULT_PRESET,
    DEFAULT_TOLERANCE,
    SessionState,
    SolverSession,
    smallest_eigenvalues_above,
    solve,
)
from eigbridge.view import CsrView

__version__ = '0.1.0'
