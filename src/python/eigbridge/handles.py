###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
Handles standing in for the matrix across the callback boundary.

The solver only ever holds an integer.  The arena maps that integer back to
the view, and refuses to do so once the binding has been released, so a
stale handle is reported instead of silently reaching a dead matrix.
"""

import threading
import typing as tp
from dataclasses import dataclass

from eigbridge.errors import StaleHandleError
from eigbridge.view import CsrView

# handle = (generation << _SLOT_BITS) | slot; zero is never a valid handle
_SLOT_BITS = 20

@dataclass(frozen=True)
class Binding:
    handle: int
    n: int

class MatrixArena:
    def __init__(self):
        self._lock = threading.Lock()
        self._slots: tp.List[tp.Optional[CsrView]] = []
        self._generations: tp.List[int] = []
        self._free: tp.List[int] = []

    def bind(self, view: CsrView) -> Binding:
        """ Register ``view`` and return a fresh handle for it. """
        with self._lock:
            if self._free:
                slot = self._free.pop()
            else:
                slot = len(self._slots)
                if slot >= 1 << _SLOT_BITS:
                    raise RuntimeError('too many live matrix bindings')
                self._slots.append(None)
                self._generations.append(0)
            self._generations[slot] += 1
            self._slots[slot] = view
            handle = (self._generations[slot] << _SLOT_BITS) | slot
        return Binding(handle=handle, n=view.n)

    def resolve(self, handle: int) -> CsrView:
        slot = handle & ((1 << _SLOT_BITS) - 1)
        generation = handle >> _SLOT_BITS
        with self._lock:
            if (slot >= len(self._slots)
                    or self._generations[slot] != generation
                    or self._slots[slot] is None):
                raise StaleHandleError(f'matrix handle {handle:#x} is not bound')
            return self._slots[slot]

    def release(self, binding: Binding):
        """ Unbind a handle.  Releasing an already released handle is a no-op. """
        handle = binding.handle
        slot = handle & ((1 << _SLOT_BITS) - 1)
        with self._lock:
            if (slot < len(self._slots)
                    and self._generations[slot] == handle >> _SLOT_BITS
                    and self._slots[slot] is not None):
                self._slots[slot] = None
                self._free.append(slot)

    def __len__(self):
        """ Number of live bindings. """
        with self._lock:
            return sum(1 for x in self._slots if x is not None)

# process-wide arena used by the trampoline
ARENA = MatrixArena()
