#!/usr/bin/env python3

###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import json
import sys
import typing as tp

import numpy as np

from . import dense_smallest_above, is_good_esol
from eigbridge import CsrView, solve
from eigbridge.config import SolveConfig
from eigbridge.errors import ConfigurationRejected, SolverFailed
from eigbridge.internals import info
from eigbridge.io import csr, eigensols
from eigbridge.native import Preset

EXIT_REJECTED = 2
EXIT_FAILED = 3

# A recomputed residual may exceed the reported one by this factor.
VERIFY_SLACK = 10
VERIFY_FLOOR_ULPS = 1000

def main_from_json():
    """
    Entry point for callers in other languages.

    Communicates through JSON over the standard IO streams.  The input is an
    object with a 'matrix' (see ``eigbridge.io.csr``) and any keys accepted
    by ``SolveConfig``; the output is an eigensolution cereal.
    """
    info('trace: reading matrix from stdin')
    d = json.load(sys.stdin)
    m = csr.from_dict(d.pop('matrix'))
    config = SolveConfig.from_dict(d)

    out = _run_or_exit(m, config)

    info('trace: writing eigensolutions to stdout')
    json.dump(eigensols.to_cereal(out), sys.stdout)
    print(file=sys.stdout) # newline

def main_from_cli(argv=None):
    """
    Entry point for the standalone CLI wrapper.
    """
    import argparse
    p = argparse.ArgumentParser(
        description='Find the eigenvalues of a sparse symmetric matrix '
                    'closest to a shift from above.',
    )
    p.add_argument('MATRIX', help='matrix file (.npz, .json, .yaml, .json.gz, ...)')
    p.add_argument('--output', '-o', type=str, required=True,
                   help='eigensolution file (.npz, .json, .yaml, ...)')
    p.add_argument('--config', help='file with default settings (.json, .yaml, ...)')
    p.add_argument('--nev', '-k', type=int, help='number of eigenvalues. Default 1.')
    p.add_argument('--shift', type=float, help='lower bound for the eigenvalues. Default 1e-6.')
    p.add_argument(
        '--tolerance', type=float,
        help="residual tolerance relative to |shift|. Default 1e-4.",
    )
    p.add_argument('--preset', choices=[x.value for x in Preset], help='solver method preset')
    p.add_argument(
        '--max-matvecs', type=int,
        help='budget of matrix-vector products. Default is n**2.',
    )
    p.add_argument('--eigenvectors', action='store_true', default=None,
                   help='also write the eigenvectors')
    p.add_argument(
        '--dense', action='store_true', default=None,
        help="Use a dense eigenvalue solver. Only sensible for small matrices.",
    )
    p.add_argument('--seed', type=int, help='seed for the random initial basis')
    p.add_argument('--verbose', '-v', action='count', default=0)
    args = p.parse_args(argv)

    try:
        config = SolveConfig.from_path(args.config) if args.config else SolveConfig()
        config = config.updated(
            nev=args.nev,
            shift=args.shift,
            tolerance=args.tolerance,
            preset=args.preset,
            max_matvecs=args.max_matvecs,
            eigenvectors=args.eigenvectors,
            dense=args.dense,
            seed=args.seed,
            print_level=args.verbose or None,
        )
    except ValueError as e:
        p.error(str(e))

    out = _run_or_exit(csr.from_path(args.MATRIX), config)
    eigensols.to_path(args.output, out)

def run(m, config: SolveConfig):
    """
    A suitable entry point from pure python code.
    """
    view = m if isinstance(m, CsrView) else CsrView.from_matrix(m)
    if config.dense:
        return dense_smallest_above(view.to_scipy(), config.nev, config.shift, config.eigenvectors)

    info(f'trace: n = {view.n}, nnz = {view.nnz}, nev = {config.nev}, shift = {config.shift}')
    result = solve(view, **config.solve_kwargs())
    info(f'trace: converged after {result.stats.num_matvecs} matvecs')

    for eval in unverified_eigenvalues(view, result):
        info(f'warning: eigenpair for {eval} fails verification')
    return result

def unverified_eigenvalues(view, result):
    """
    Eigenvalues whose vectors do not reproduce the residual norm the solver
    reported for them.  Empty when the eigenvectors were not kept.
    """
    if result.eigenvectors is None:
        return []

    norm = float(np.abs(result.eigenvalues).max(initial=0.0))
    if result.stats is not None:
        norm = max(norm, result.stats.estimate_norm)
    # the solver never converges below a few hundred ulps of the norm
    floor = VERIFY_FLOOR_ULPS * np.finfo(float).eps * norm

    bad = []
    for (eval, evec, res) in zip(result.eigenvalues, result.eigenvectors, result.residual_norms):
        if not is_good_esol(view, eval, evec, max(VERIFY_SLACK * res, floor)):
            bad.append(eval)
    return bad

def _run_or_exit(m, config: SolveConfig) -> tp.Any:
    try:
        return run(m, config)
    except ConfigurationRejected as e:
        info(f'error: {e}')
        sys.exit(EXIT_REJECTED)
    except SolverFailed as e:
        info(f'error: {e}')
        sys.exit(EXIT_FAILED)

if __name__ == '__main__':
    main_from_json()
