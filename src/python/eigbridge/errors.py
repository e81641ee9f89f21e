###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
Exceptions raised by eigbridge.

Solver status codes are signed integers. They reach the caller through two
distinct exception types, depending on where they originated:

* ``ConfigurationRejected`` -- the method preset could not be applied to the
  requested configuration.  No matrix-vector product was performed.
* ``SolverFailed`` -- the solver ran (or validated its input) and returned
  a nonzero status.  ``NonConvergence`` is the special case where the
  matvec budget or iteration limit ran out.
"""

class EigbridgeError(Exception):
    pass

class ConfigurationRejected(EigbridgeError):
    def __init__(self, code, preset=None, target=None):
        from eigbridge.native import status

        self.code = code
        self.preset = preset
        self.target = target
        super().__init__(
            f'method preset {_name(preset)} rejected for target {_name(target)} '
            f'(status {code}: {status.describe(code)})'
        )

class SolverFailed(EigbridgeError):
    def __init__(self, code, message=None):
        from eigbridge.native import status

        self.code = code
        if message is None:
            message = status.describe(code)
        super().__init__(f'eigensolver returned status {code}: {message}')

class NonConvergence(SolverFailed):
    pass

class SessionStateError(EigbridgeError, RuntimeError):
    pass

# Raised inside the matvec trampoline.  These never cross the ctypes edge;
# they are translated into the ``ierr`` out-parameter there.
class CallbackError(EigbridgeError):
    # value written to ``ierr``
    ierr = 1

class StaleHandleError(CallbackError, LookupError):
    ierr = 2

class BufferLengthError(CallbackError, ValueError):
    ierr = 3

def _name(x):
    return getattr(x, 'name', repr(x))
