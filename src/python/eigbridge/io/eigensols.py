###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import numpy as np

from . import dwim
from eigbridge.result import EigenResult

def to_path(path, result, file=None):
    """
    :param path: filepath
    :param result: an ``EigenResult``.  Eigenvectors, if present, are
    written with one eigenvector per row.
    """
    return dwim.to_path_impl(
        path, result, file=file,
        to_dict=to_cereal,
        to_ext={'.npz': to_npz},
    )

def from_path(path, file=None):
    """
    :param path: filepath
    :return: an ``EigenResult`` (without solver statistics)
    """
    return dwim.from_path_impl(
        path, file=file,
        from_dict=from_cereal,
        from_ext={'.npz': from_npz},
    )

# Text (JSON/YAML) format, also used on stdout by the JSON entry point.
def to_cereal(result, **_kw):
    evals = np.asarray(result.eigenvalues)
    res_norms = np.asarray(result.residual_norms)
    if len(evals) != len(res_norms):
        raise ValueError(f'length mismatch: {len(evals)} evals, {len(res_norms)} residual norms')

    out = {
        'eigenvalues': evals.tolist(),
        'residual-norms': res_norms.tolist(),
    }
    if result.eigenvectors is not None:
        out['eigenvectors'] = np.asarray(result.eigenvectors).tolist()
    if result.stats is not None:
        out['matvecs'] = result.stats.num_matvecs
    return out

def from_cereal(cereal, **_kw):
    evals = np.array(cereal['eigenvalues'], dtype=float)
    res_norms = np.array(cereal['residual-norms'], dtype=float)
    if len(evals) != len(res_norms):
        raise ValueError(f'length mismatch: {len(evals)} evals, {len(res_norms)} residual norms')

    evecs = cereal.get('eigenvectors')
    if evecs is not None:
        evecs = np.array(evecs, dtype=float).reshape(len(evals), -1)
    return EigenResult(eigenvalues=evals, residual_norms=res_norms, eigenvectors=evecs)

# Binary format
def from_npz(file, **_kw):
    with np.load(file) as npz:
        evecs = npz['eigenvectors'] if 'eigenvectors' in npz.files else None
        return EigenResult(
            eigenvalues=npz['eigenvalues'],
            residual_norms=npz['residual_norms'],
            eigenvectors=evecs,
        )

def to_npz(file, result, **_kw):
    arrays = {
        'eigenvalues': np.asarray(result.eigenvalues),
        'residual_norms': np.asarray(result.residual_norms),
    }
    if result.eigenvectors is not None:
        arrays['eigenvectors'] = np.asarray(result.eigenvectors)
    np.savez_compressed(file, **arrays)
