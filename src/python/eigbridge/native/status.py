###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

# Status codes returned by ``eigensolve`` and ``set_method``.
#
# Zero is success.  Codes from ``eigensolve`` that are reported by input
# validation are always returned before the first matrix-vector product.

SUCCESS = 0

# eigensolve
UNEXPECTED_FAILURE = -1
MAX_ITERATIONS_REACHED = -3
PARAMS_MISSING = -4
BAD_N = -5
MATVEC_MISSING = -7
TOO_MANY_EVALS = -10
BAD_NUM_EVALS = -11
BAD_EPS = -12
BAD_TARGET = -13
MISSING_SHIFTS = -14
BAD_BASIS_SIZE = -17
BAD_RESTART_SIZE = -18
BAD_BLOCK_SIZE = -19
BAD_PREV_RETAIN = -20
BAD_CHECK_GROWTH = -21
RESTART_TOO_LARGE = -25
OUTPUT_SIZE_MISMATCH = -30
LOCKING_REQUIRED = -38
LAPACK_FAILURE = -40
MATVEC_FAILURE = -41
BAD_MAX_MATVECS = -42

# set_method
UNKNOWN_PRESET = -101
PRESET_TARGET_MISMATCH = -102
PRESET_NEEDS_SIZES = -103

_MESSAGES = {
    SUCCESS: 'success',
    UNEXPECTED_FAILURE: 'unexpected internal failure',
    MAX_ITERATIONS_REACHED: 'matvec budget or iteration limit reached before convergence',
    PARAMS_MISSING: 'no parameter block given',
    BAD_N: 'problem size n must be at least 1',
    MATVEC_MISSING: 'matrix_matvec is not set',
    TOO_MANY_EVALS: 'num_evals exceeds n',
    BAD_NUM_EVALS: 'num_evals must be at least 1',
    BAD_EPS: 'eps must be a finite non-negative number',
    BAD_TARGET: 'target is not a Target',
    MISSING_SHIFTS: 'target requires at least one target shift',
    BAD_BASIS_SIZE: 'max_basis_size is too small',
    BAD_RESTART_SIZE: 'min_restart_size must be in [1, max_basis_size)',
    BAD_BLOCK_SIZE: 'max_block_size must be in [1, max_basis_size)',
    BAD_PREV_RETAIN: 'max_prev_retain must be non-negative',
    BAD_CHECK_GROWTH: 'check_growth must be a finite non-negative number',
    RESTART_TOO_LARGE: 'min_restart_size + max_prev_retain must be below max_basis_size',
    OUTPUT_SIZE_MISMATCH: 'output buffers do not match n and num_evals',
    LOCKING_REQUIRED: 'closest_geq and closest_leq targets require locking',
    LAPACK_FAILURE: 'projected eigenproblem failed to converge',
    MATVEC_FAILURE: 'matrix_matvec reported an error',
    BAD_MAX_MATVECS: 'max_matvecs must be at least 1',
    UNKNOWN_PRESET: 'unknown method preset',
    PRESET_TARGET_MISMATCH: 'method preset does not support the requested target',
    PRESET_NEEDS_SIZES: 'n and num_evals must be set before choosing a method preset',
}

def describe(code):
    return _MESSAGES.get(code, 'unknown status')

def is_budget_exhausted(code):
    return code == MAX_ITERATIONS_REACHED
