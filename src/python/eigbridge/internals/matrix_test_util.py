###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import numpy as np
import scipy.sparse

# Random sparse symmetric matrix, as used by the tests and the benchmark.
#
# Each entry on or above the diagonal is stored with probability `density`,
# with a value uniform in [0, 1); entries below the diagonal mirror them.
# Most rows of a matrix this sparse are empty, so it has a large null space
# and eigenvalues on both sides of zero.
def random_symmetric(n, density, seed=42):
    rng = np.random.default_rng(seed)
    rows, cols = np.triu_indices(n)
    keep = rng.random(len(rows)) < density
    rows, cols = rows[keep], cols[keep]
    vals = rng.random(len(rows))

    off = rows != cols
    coo = scipy.sparse.coo_matrix(
        (
            np.concatenate([vals, vals[off]]),
            (np.concatenate([rows, cols[off]]), np.concatenate([cols, rows[off]])),
        ),
        shape=(n, n),
    )
    return coo.tocsr()

def diagonal(values):
    return scipy.sparse.diags(np.asarray(values, dtype=float)).tocsr()

def dense_eigenvalues_above(m, shift):
    """ All eigenvalues strictly above ``shift``, ascending. """
    evals = np.linalg.eigvalsh(m.toarray() if scipy.sparse.issparse(m) else np.asarray(m))
    return evals[evals > shift]
