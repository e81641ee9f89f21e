#!/usr/bin/env python3

# Times `eigbridge.solve` on random sparse symmetric matrices.
#
# NOTE: Not part of the package; run it from a checkout with eigbridge
#       installed (or src/python on your PYTHONPATH).

import argparse
import sys
import time

import numpy as np

try:
    import eigbridge
except ImportError:
    info = lambda s: print(s, file=sys.stderr)
    info('Please add the following to your PYTHONPATH:')
    info('  (eigbridge source root)/src/python')
    info("Or more preferably, 'pip install -e .' from the source root")
    sys.exit(1)

from eigbridge import CsrView, EigbridgeError, solve
from eigbridge.internals.matrix_test_util import random_symmetric

def main():
    p = argparse.ArgumentParser()
    p.add_argument('--sizes', type=int, nargs='+', default=[100, 500, 1000])
    p.add_argument('--density', type=float, default=0.01)
    p.add_argument('--nev', type=int, default=1)
    p.add_argument('--shift', type=float, default=1e-4)
    p.add_argument('--samples', type=int, default=10)
    p.add_argument('--preset', default=eigbridge.DEFAULT_PRESET.value)
    args = p.parse_args()

    print(f"{'n':>6} {'density':>8} {'median (s)':>11} {'min (s)':>9} {'matvecs':>8}")
    for n in args.sizes:
        times = []
        matvecs = []
        for sample in range(args.samples):
            # a fresh matrix every sample, like a batched benchmark setup
            view = CsrView.from_matrix(random_symmetric(n, args.density, seed=42))
            start = time.perf_counter()
            try:
                result = solve(view, args.nev, args.shift, preset=args.preset, seed=sample)
            except EigbridgeError as e:
                print(f'Error in computing eigenvalues: {e}', file=sys.stderr)
                continue
            times.append(time.perf_counter() - start)
            matvecs.append(result.stats.num_matvecs)

        if not times:
            print(f'{n:>6} {args.density:>8} {"failed":>11}')
            continue
        print(
            f'{n:>6} {args.density:>8} {np.median(times):>11.4f} '
            f'{min(times):>9.4f} {int(np.median(matvecs)):>8}'
        )

if __name__ == '__main__':
    main()
