"""
Tests for solve settings.
"""

import pytest

from eigbridge.config import DEFAULT_SHIFT, SolveConfig
from eigbridge.io import dwim


def test_defaults():
    config = SolveConfig()
    assert config.nev == 1
    assert config.shift == DEFAULT_SHIFT
    assert config.tolerance == 1e-4
    assert config.preset == 'default_min_time'
    assert config.max_matvecs is None


def test_from_dict_kebab_case():
    config = SolveConfig.from_dict({'nev': 4, 'max-matvecs': 500, 'preset': 'GD-PLUSK'})
    assert config.nev == 4
    assert config.max_matvecs == 500
    assert config.preset == 'gd_plusk'


def test_unknown_key():
    with pytest.raises(ValueError):
        SolveConfig.from_dict({'nev': 4, 'max_matvecs': 500})


@pytest.mark.parametrize('kw', [
    dict(nev=0),
    dict(tolerance=-1.0),
    dict(max_matvecs=0),
    dict(preset='arnoldi'),
])
def test_validation(kw):
    with pytest.raises(ValueError):
        SolveConfig(**kw)


def test_updated_ignores_none():
    config = SolveConfig(nev=3).updated(nev=None, shift=0.5)
    assert config.nev == 3
    assert config.shift == 0.5


def test_dict_roundtrip():
    config = SolveConfig(nev=2, shift=0.1, eigenvectors=True, seed=7)
    assert SolveConfig.from_dict(config.to_dict()) == config


def test_from_path(tmp_path):
    path = tmp_path / 'config.yaml'
    dwim.to_path(path, {'nev': 6, 'shift': 0.01, 'dense': True})
    config = SolveConfig.from_path(path)
    assert (config.nev, config.shift, config.dense) == (6, 0.01, True)


def test_solve_kwargs():
    kw = SolveConfig(eigenvectors=True).solve_kwargs()
    assert kw['keep_eigenvectors'] is True
    assert 'dense' not in kw


def test_yaml_exponent_spelling(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('nev: 2\nshift: 1e-6\n')
    config = SolveConfig.from_path(path)
    assert config.nev == 2
    assert isinstance(config.shift, float)
    assert config.shift == 1e-6


def test_numeric_strings_are_converted():
    config = SolveConfig(nev='3', tolerance='1e-5', max_matvecs='100', seed=2.0)
    assert (config.nev, config.tolerance, config.max_matvecs, config.seed) == (3, 1e-5, 100, 2)
    assert isinstance(config.nev, int)


@pytest.mark.parametrize('kw', [
    dict(shift='tiny'),
    dict(shift=float('inf')),
    dict(nev='2.5'),
    dict(nev=True),
    dict(tolerance=None),
    dict(max_matvecs=[10]),
    dict(eigenvectors='yes'),
    dict(preset=3),
])
def test_bad_types(kw):
    with pytest.raises(ValueError):
        SolveConfig(**kw)
