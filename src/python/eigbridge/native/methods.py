###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import typing as tp
from dataclasses import dataclass

from . import status
from .params import Preset, SolverParams, Target

# Upper bound on the elements of one basis array (V or A V).  Below it the
# basis is allowed to grow to the whole space.
BASIS_ELEMENTS = 1 << 23

@dataclass(frozen=True)
class _Bundle:
    # vectors added to the basis per outer iteration
    block: int
    # max_basis_size = max(basis_floor, basis_per_eval * nev + block), clipped
    # to n; memory_sized bundles also raise the floor to BASIS_ELEMENTS // n
    basis_floor: int
    basis_per_eval: int
    # vectors kept on restart: max(restart_floor, restart_per_eval * nev)
    restart_floor: int
    restart_per_eval: int
    # previous-iteration ritz vectors kept on restart (the "+k" of GD+k)
    prev_retain: int
    locking: bool
    check_growth: float
    memory_sized: bool = True

_BUNDLES = {
    Preset.DEFAULT_MIN_TIME: _Bundle(
        block=4, basis_floor=128, basis_per_eval=4,
        restart_floor=8, restart_per_eval=2, prev_retain=4, locking=True,
        check_growth=0.5,
    ),
    Preset.DEFAULT_MIN_MATVECS: _Bundle(
        block=1, basis_floor=256, basis_per_eval=6,
        restart_floor=8, restart_per_eval=3, prev_retain=2, locking=True,
        check_growth=0.125,
    ),
    Preset.GD: _Bundle(
        block=1, basis_floor=64, basis_per_eval=3,
        restart_floor=4, restart_per_eval=2, prev_retain=0, locking=True,
        check_growth=0.0,
    ),
    Preset.GD_PLUSK: _Bundle(
        block=1, basis_floor=64, basis_per_eval=3,
        restart_floor=4, restart_per_eval=2, prev_retain=1, locking=True,
        check_growth=0.0,
    ),
}
_BUNDLES[Preset.DYNAMIC] = _BUNDLES[Preset.DEFAULT_MIN_TIME]

def _lobpcg_bundle(nev):
    return _Bundle(
        block=nev, basis_floor=0, basis_per_eval=3,
        restart_floor=0, restart_per_eval=1, prev_retain=nev, locking=False,
        check_growth=0.0, memory_sized=False,
    )

def bundle_for(preset: Preset, nev: int) -> _Bundle:
    if preset is Preset.LOBPCG_ORTHOBASIS:
        return _lobpcg_bundle(nev)
    return _BUNDLES[preset]

def set_method(preset: tp.Union[Preset, str], params: SolverParams) -> int:
    """
    Fill in the method fields of ``params`` from a named preset.

    ``n``, ``num_evals`` and ``target`` must already be set, because the
    basis sizes depend on them and because some presets cannot serve some
    targets.  Returns 0 on success and a negative status otherwise, in which
    case ``params`` is left untouched.
    """
    try:
        preset = Preset.parse(preset)
    except (ValueError, AttributeError):
        return status.UNKNOWN_PRESET

    n, nev = params.n, params.num_evals
    if n < 1 or nev < 1:
        return status.PRESET_NEEDS_SIZES

    b = bundle_for(preset, nev)

    # Without locking, converged pairs stay in the basis and keep competing
    # with the unconverged ones, so an interior target can lose eigenvalues
    # that lie between the shift and the ones already found.
    if not b.locking and params.target in (Target.CLOSEST_GEQ, Target.CLOSEST_LEQ):
        return status.PRESET_TARGET_MISMATCH

    block = max(1, min(b.block, n))
    floor = max(b.basis_floor, BASIS_ELEMENTS // n) if b.memory_sized else b.basis_floor
    max_basis = min(n, max(floor, b.basis_per_eval * nev + block))
    max_basis = max(max_basis, min(2, n))
    block = min(block, max_basis)
    min_restart = max(1, min(max(b.restart_floor, b.restart_per_eval * nev), max_basis - 1))
    prev_retain = max(0, min(b.prev_retain, max_basis - 1 - min_restart))

    params.method = preset
    params.max_block_size = block
    params.max_basis_size = max_basis
    params.min_restart_size = min_restart
    params.max_prev_retain = prev_retain
    params.locking = b.locking
    params.check_growth = b.check_growth
    return status.SUCCESS
