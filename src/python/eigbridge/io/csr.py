###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import numpy as np
import scipy.sparse

from . import dwim

# Square sparse matrix in compressed-row form.
#
# Multiple formats are accepted:
#
# * a `.npz` file written by `scipy.sparse.save_npz`.
# * any general serialization format (via the `dwim` module),
#   where the serialized object is a dict with:
#
#   - 'dim' is the dimension N
#   - 'row-ptr' is a list of N + 1 integers
#   - 'col' is a list of NNZ integers
#   - 'values' is a list of NNZ floats
#
# The NPZ format is preferred wherever possible due to its compact size, but
# the text formats are easy to produce from any language.

def from_path(path, file=None):
    return dwim.from_path_impl(
        path, file=file,
        from_dict=from_dict,
        from_ext={'.npz': _from_npz},
    )

def to_path(path, m, file=None):
    dwim.to_path_impl(
        path, m, file=file,
        to_dict=to_dict,
        to_ext={'.npz': _to_npz},
    )

def to_dict(m, **_kw):
    m = _as_csr(m)
    return {
        'dim': m.shape[0],
        'row-ptr': m.indptr.tolist(),
        'col': m.indices.tolist(),
        'values': m.data.tolist(),
    }

def from_dict(d, path=None, **_kw):
    d = dict(d)
    try:
        n = int(d.pop('dim'))
        indptr = np.array(d.pop('row-ptr'), dtype=np.int64)
        indices = np.array(d.pop('col'), dtype=np.int64)
        data = np.array(d.pop('values'), dtype=np.float64)
    except KeyError as e:
        raise ValueError(f'{path or "matrix"}: missing key {e}') from None
    if d:
        raise ValueError(f'{path or "matrix"}: unexpected keys {sorted(d)}')

    return scipy.sparse.csr_matrix((data, indices, indptr), shape=(n, n))

def equal(a, b):
    a, b = _as_csr(a), _as_csr(b)
    return a.shape == b.shape and (a != b).nnz == 0

def _as_csr(m):
    from eigbridge.view import CsrView

    if isinstance(m, CsrView):
        m = m.to_scipy()
    if not scipy.sparse.issparse(m):
        raise TypeError(f'expected a sparse matrix, got {type(m).__name__}')
    if m.shape[0] != m.shape[1]:
        raise ValueError(f'matrix must be square, got shape {list(m.shape)}')
    return scipy.sparse.csr_matrix(m)

def _from_npz(file, **_kw):
    return scipy.sparse.csr_matrix(scipy.sparse.load_npz(file))

def _to_npz(file, m, **_kw):
    from io import BytesIO

    # save_npz goes through zipfile, which wants to seek; compressed
    # streams can't, so build the archive in memory first
    buf = BytesIO()
    scipy.sparse.save_npz(buf, _as_csr(m), compressed=True)
    file.write(buf.getvalue())
