###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

"""
Solve settings shared by the CLI and the JSON entry point.

A config file is any mapping readable by ``eigbridge.io.dwim`` (``.json``,
``.yaml``, optionally compressed) with kebab-case keys, e.g.::

    nev: 5
    shift: 1.0e-6
    tolerance: 1.0e-4
    preset: default_min_time
    max-matvecs: 100000
"""

import math
import typing as tp
from dataclasses import asdict, dataclass, fields, replace

from eigbridge.io import dwim
from eigbridge.native import Preset
from eigbridge.session import DEFAULT_PRESET, DEFAULT_TOLERANCE

# "strictly above zero", for matrices with a null space
DEFAULT_SHIFT = 1e-6
DEFAULT_NEV = 1

def _to_int(name, value):
    if isinstance(value, bool):
        raise ValueError(f'{name} must be an integer, got {value!r}')
    try:
        number = float(value) if isinstance(value, str) else value
        out = int(number)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f'{name} must be an integer, got {value!r}') from None
    if out != number:
        raise ValueError(f'{name} must be an integer, got {value!r}')
    return out

def _to_float(name, value):
    # YAML 1.1 reads "1e-6" (no dot in the mantissa) as a string
    if isinstance(value, bool):
        raise ValueError(f'{name} must be a number, got {value!r}')
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be a number, got {value!r}') from None
    if not math.isfinite(out):
        raise ValueError(f'{name} must be finite, got {value!r}')
    return out

def _to_bool(name, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValueError(f'{name} must be true or false, got {value!r}')

_COERCE = {
    'nev': _to_int,
    'shift': _to_float,
    'tolerance': _to_float,
    'max_matvecs': _to_int,
    'eigenvectors': _to_bool,
    'dense': _to_bool,
    'seed': _to_int,
    'print_level': _to_int,
}
_OPTIONAL = ('max_matvecs', 'seed')

@dataclass(frozen=True)
class SolveConfig:
    nev: int = DEFAULT_NEV
    shift: float = DEFAULT_SHIFT
    tolerance: float = DEFAULT_TOLERANCE
    preset: str = DEFAULT_PRESET.value
    max_matvecs: tp.Optional[int] = None
    eigenvectors: bool = False
    # use a dense eigensolver instead (small matrices, debugging)
    dense: bool = False
    seed: tp.Optional[int] = None
    print_level: int = 0

    def __post_init__(self):
        for (name, coerce) in _COERCE.items():
            value = getattr(self, name)
            if value is None and name in _OPTIONAL:
                continue
            object.__setattr__(self, name, coerce(name.replace('_', '-'), value))
        if self.nev < 1:
            raise ValueError(f'nev must be positive, got {self.nev}')
        if not self.tolerance > 0:
            raise ValueError(f'tolerance must be positive, got {self.tolerance}')
        if self.max_matvecs is not None and self.max_matvecs < 1:
            raise ValueError(f'max-matvecs must be positive, got {self.max_matvecs}')
        # normalizes spelling and rejects unknown names early
        try:
            preset = Preset.parse(self.preset)
        except AttributeError:
            raise ValueError(f'preset must be a name, got {self.preset!r}') from None
        object.__setattr__(self, 'preset', preset.value)

    @classmethod
    def from_dict(cls, d, path=None):
        d = dict(d)
        kw = {}
        for f in fields(cls):
            key = f.name.replace('_', '-')
            if key in d:
                kw[f.name] = d.pop(key)
        if d:
            raise ValueError(f'{path or "config"}: unknown keys {sorted(d)}')
        return cls(**kw)

    @classmethod
    def from_path(cls, path):
        return cls.from_dict(dwim.from_path(path), path=path)

    def to_dict(self):
        return {k.replace('_', '-'): v for (k, v) in asdict(self).items()}

    def updated(self, **kw):
        """ Copy with the given fields replaced; ``None`` values are ignored. """
        return replace(self, **{k: v for (k, v) in kw.items() if v is not None})

    def solve_kwargs(self):
        """ Keyword arguments for ``eigbridge.solve``. """
        return dict(
            nev=self.nev,
            shift=self.shift,
            tolerance=self.tolerance,
            preset=self.preset,
            max_matvecs=self.max_matvecs,
            keep_eigenvectors=self.eigenvectors,
            seed=self.seed,
            print_level=self.print_level,
        )
