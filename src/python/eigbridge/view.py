###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import numpy as np
import scipy.sparse

def _borrow(array, dtype):
    """
    A read-only view of ``array``.  The caller's array is never copied
    (unless it has the wrong dtype) and its own flags are left alone.
    """
    view = np.asarray(array, dtype=dtype).view()
    view.flags.writeable = False
    return view

class CsrView:
    """
    Read-only view of a square compressed-row sparse matrix.

    The index and value arrays are borrowed from the caller, who must keep
    them alive and unmodified for as long as the view is in use by a solver
    session.
    """

    def __init__(self, indptr, indices, data, n):
        n = int(n)
        if n < 1:
            raise ValueError(f'matrix dimension must be positive, got {n}')

        indptr = _borrow(indptr, None)
        indices = _borrow(indices, None)
        data = _borrow(data, np.float64)
        if indptr.ndim != 1 or indptr.shape[0] != n + 1:
            raise ValueError(f'indptr: expected length {n + 1}, got {list(indptr.shape)}')
        if indices.shape != data.shape or indices.ndim != 1:
            raise ValueError(
                f'indices and data must be 1D with equal length '
                f'(got {list(indices.shape)} and {list(data.shape)})'
            )
        if indptr[0] != 0 or indptr[-1] != len(data) or np.any(np.diff(indptr) < 0):
            raise ValueError('indptr is not a valid row pointer for the given data')
        if len(indices) and (indices.min() < 0 or indices.max() >= n):
            raise ValueError(f'column index out of range for dimension {n}')

        self._n = n
        self._csr = scipy.sparse.csr_matrix((data, indices, indptr), shape=(n, n), copy=False)

    @classmethod
    def from_matrix(cls, m):
        """
        View of a scipy sparse matrix or a dense 2D array.

        A CSR matrix with float64 data is borrowed as-is.  Anything else is
        converted once, and the view then owns the converted copy.
        """
        if not scipy.sparse.issparse(m):
            m = np.asarray(m)
            if m.ndim != 2:
                raise ValueError(f'expected a 2D matrix, got shape {list(m.shape)}')
        if m.shape[0] != m.shape[1]:
            raise ValueError(f'matrix must be square, got shape {list(m.shape)}')
        m = scipy.sparse.csr_matrix(m, dtype=np.float64)
        return cls(m.indptr, m.indices, m.data, m.shape[0])

    @property
    def n(self):
        return self._n

    @property
    def shape(self):
        return (self._n, self._n)

    @property
    def nnz(self):
        return self._csr.nnz

    @property
    def indptr(self):
        return self._csr.indptr

    @property
    def indices(self):
        return self._csr.indices

    @property
    def data(self):
        return self._csr.data

    def multiply(self, x):
        """
        ``A @ x`` for a vector of length ``n`` or an ``(n, k)`` block.
        Rows without stored entries give 0.
        """
        x = np.asarray(x, dtype=np.float64)
        if x.ndim not in (1, 2) or x.shape[0] != self._n:
            raise ValueError(f'expected {self._n} rows, got shape {list(x.shape)}')
        return np.asarray(self._csr @ x)

    __matmul__ = multiply

    def diagonal(self):
        return self._csr.diagonal()

    def is_symmetric(self, atol=1e-12):
        diff = self._csr - self._csr.T
        return diff.nnz == 0 or bool(np.all(np.abs(diff.data) <= atol))

    def to_scipy(self):
        """ A scipy CSR matrix sharing this view's (read-only) arrays. """
        return self._csr

    def __repr__(self):
        return f'CsrView(n={self._n}, nnz={self.nnz})'
