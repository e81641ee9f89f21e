###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import ctypes
import enum
import sys
import typing as tp
from dataclasses import dataclass, field

# Signature of the matrix-vector product callback.
#
#   matvec(x, ldx, y, ldy, block_size, context, ierr)
#
# ``x`` and ``y`` hold ``block_size`` column vectors, column ``j`` starting
# at offset ``j * ldx`` (resp. ``j * ldy``).  ``context`` is the value of
# ``SolverParams.matrix``.  The callee writes 0 to ``*ierr`` on success.
MATVEC_FUNCTYPE = ctypes.CFUNCTYPE(
    None,
    ctypes.POINTER(ctypes.c_double),
    ctypes.POINTER(ctypes.c_int64),
    ctypes.POINTER(ctypes.c_double),
    ctypes.POINTER(ctypes.c_int64),
    ctypes.POINTER(ctypes.c_int),
    ctypes.c_uint64,
    ctypes.POINTER(ctypes.c_int),
)

UNLIMITED = sys.maxsize

class Target(enum.Enum):
    SMALLEST = 'smallest'
    LARGEST = 'largest'
    # closest to the shift, but not below it
    CLOSEST_GEQ = 'closest_geq'
    # closest to the shift, but not above it
    CLOSEST_LEQ = 'closest_leq'
    CLOSEST_ABS = 'closest_abs'

    def needs_shift(self):
        return self in (Target.CLOSEST_GEQ, Target.CLOSEST_LEQ, Target.CLOSEST_ABS)

class Preset(enum.Enum):
    DEFAULT_MIN_TIME = 'default_min_time'
    DEFAULT_MIN_MATVECS = 'default_min_matvecs'
    DYNAMIC = 'dynamic'
    GD = 'gd'
    GD_PLUSK = 'gd_plusk'
    LOBPCG_ORTHOBASIS = 'lobpcg_orthobasis'

    @classmethod
    def parse(cls, s: tp.Union[str, 'Preset']) -> 'Preset':
        if isinstance(s, cls):
            return s
        try:
            return cls(s.lower().replace('-', '_'))
        except ValueError:
            choices = ', '.join(p.value for p in cls)
            raise ValueError(f'unknown method preset {s!r} (choose from {choices})') from None

@dataclass
class SolverStats:
    num_matvecs: int = 0
    num_outer_iterations: int = 0
    num_restarts: int = 0
    elapsed_time: float = 0.0
    # largest |ritz value| seen; used as an estimate of ||A||
    estimate_norm: float = 0.0

@dataclass
class SolverParams:
    """
    Parameter block for one call to ``eigensolve``.

    Create with ``initialize()``, fill in the problem fields, call
    ``set_method`` to fill in the method fields, then hand it to
    ``eigensolve``.  While ``eigensolve`` runs the block is frozen and
    assigning to any public field raises ``AttributeError``.
    """
    n: int = 0
    num_evals: int = 1
    target: Target = Target.SMALLEST
    target_shifts: tp.Tuple[float, ...] = ()
    # absolute tolerance on the residual norm ||A x - lambda x||
    eps: float = 0.0
    max_matvecs: int = UNLIMITED
    max_outer_iterations: int = UNLIMITED

    # method fields, normally filled by set_method
    method: tp.Optional[Preset] = None
    max_basis_size: int = 0
    min_restart_size: int = 0
    max_block_size: int = 1
    max_prev_retain: int = 0
    locking: bool = True
    # fractional basis growth between convergence checks (0: check after
    # every expansion).  Interior targets are checked once the basis spans
    # everything not yet locked, whenever it is allowed to.
    check_growth: float = 0.0

    # opaque value passed back to matrix_matvec
    matrix: int = 0
    matrix_matvec: tp.Optional[tp.Any] = None

    seed: tp.Optional[int] = None
    # 0: silent, 1: summary, 2: per-iteration trace
    print_level: int = 0

    stats: SolverStats = field(default_factory=SolverStats)

    def __setattr__(self, name: str, value: tp.Any) -> None:
        if self.__dict__.get('_frozen', False) and not name.startswith('_'):
            raise AttributeError(f'cannot set {name!r} while the solver is running')
        super().__setattr__(name, value)

    @property
    def frozen(self) -> bool:
        return self.__dict__.get('_frozen', False)

    def shift_for(self, num_locked: int) -> float:
        # the i-th wanted eigenvalue uses the i-th shift; the last shift repeats
        return self.target_shifts[min(num_locked, len(self.target_shifts) - 1)]

def initialize() -> SolverParams:
    return SolverParams()
