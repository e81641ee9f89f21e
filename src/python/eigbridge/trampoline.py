###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
The matrix-vector product callback handed to the native solver.

``make_trampoline`` builds the only place where raw pointers and the ``ierr``
out-parameter appear.  Everything behind it works on bounded numpy arrays
and reports problems by raising ``CallbackError``.
"""

import traceback

import numpy as np

from eigbridge.errors import BufferLengthError, CallbackError
from eigbridge.handles import ARENA, MatrixArena
from eigbridge.internals import info
from eigbridge.native import MATVEC_FUNCTYPE
from eigbridge.view import CsrView

def span(ld, block_size, n):
    """ Number of elements covered by ``block_size`` columns of length ``n``. """
    return ld * (block_size - 1) + n

def check_layout(name, ld, block_size, n):
    if block_size < 1:
        raise BufferLengthError(f'{name}: block size must be positive, got {block_size}')
    if ld < n:
        raise BufferLengthError(f'{name}: leading dimension {ld} is smaller than n = {n}')

def multiply_block(view: CsrView, x, ldx, y, ldy, block_size):
    """
    ``y[:, j] = A @ x[:, j]`` for ``block_size`` columns, where column ``j``
    of ``x`` is ``x[j*ldx : j*ldx + n]`` (likewise for ``y``).

    Reads exactly ``n`` elements of each input column and writes exactly
    ``n`` elements of each output column; the gaps between columns are left
    alone.
    """
    n = view.n
    check_layout('x', ldx, block_size, n)
    check_layout('y', ldy, block_size, n)
    if len(x) < span(ldx, block_size, n):
        raise BufferLengthError(f'x: buffer of length {len(x)} too short for {block_size} columns of {n}')
    if len(y) < span(ldy, block_size, n):
        raise BufferLengthError(f'y: buffer of length {len(y)} too short for {block_size} columns of {n}')

    X = np.empty((n, block_size))
    for j in range(block_size):
        X[:, j] = x[j * ldx:j * ldx + n]

    Y = view.multiply(X)

    for j in range(block_size):
        y[j * ldy:j * ldy + n] = Y[:, j]

def _wrap(name, ptr, ld, block_size, n):
    if not ptr:
        raise BufferLengthError(f'{name}: null buffer')
    check_layout(name, ld, block_size, n)
    return np.ctypeslib.as_array(ptr, shape=(span(ld, block_size, n),))

def apply(arena: MatrixArena, context, x_ptr, ldx, y_ptr, ldy, block_size):
    """ Resolve the context and perform the product on raw buffers. """
    view = arena.resolve(context)
    n = view.n
    x = _wrap('x', x_ptr, ldx, block_size, n)
    y = _wrap('y', y_ptr, ldy, block_size, n)
    multiply_block(view, x, ldx, y, ldy, block_size)

def make_trampoline(arena: MatrixArena):
    """ A native matvec callback that resolves its context in ``arena``. """
    def _matvec(x, ldx, y, ldy, block_size, context, ierr):
        if not ierr:
            info('trace: matvec called without a status slot')
            return

        try:
            if not (ldx and ldy and block_size):
                raise BufferLengthError('null size argument')
            apply(arena, context, x, ldx[0], y, ldy[0], block_size[0])
        except CallbackError as e:
            info(f'trace: matvec failed: {e}')
            ierr[0] = e.ierr
            return
        # an exception cannot unwind through the native caller
        except Exception:
            info('trace: unexpected error in matvec:\n' + traceback.format_exc())
            ierr[0] = CallbackError.ierr
            return

        ierr[0] = 0

    return MATVEC_FUNCTYPE(_matvec)

matvec_trampoline = make_trampoline(ARENA)
