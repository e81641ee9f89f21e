#!/usr/bin/env python3

# Standalone executable for the part of `eigbridge` that finds the smallest
# eigenvalues above a shift.

if __name__ == '__main__':
    from eigbridge.internals.shifted.above import main_from_cli as main
    main()
else:
    raise ImportError('This script is not meant to be imported!')
