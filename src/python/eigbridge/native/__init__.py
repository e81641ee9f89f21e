###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
A matrix-free symmetric eigensolver driven through a C-style callback.

Usage follows a fixed protocol::

    params = initialize()
    params.n = n
    params.num_evals = nev
    params.target = Target.CLOSEST_GEQ
    params.target_shifts = (shift,)
    params.matrix_matvec = MATVEC_FUNCTYPE(my_matvec)
    params.matrix = context_value
    if set_method(Preset.DEFAULT_MIN_TIME, params) != 0:
        ...
    try:
        ret = eigensolve(evals, evecs, res_norms, params)
    finally:
        free(params)
"""

from .params import (
    MATVEC_FUNCTYPE,
    UNLIMITED,
    Preset,
    SolverParams,
    SolverStats,
    Target,
    initialize,
)
from .methods import set_method
from .davidson import eigensolve, free, check_input, harmonic_ritz, target_order
from . import status

__all__ = [
    'MATVEC_FUNCTYPE',
    'UNLIMITED',
    'Preset',
    'SolverParams',
    'SolverStats',
    'Target',
    'initialize',
    'set_method',
    'eigensolve',
    'free',
    'check_input',
    'harmonic_ritz',
    'target_order',
    'status',
]
