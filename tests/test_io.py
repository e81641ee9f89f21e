"""
Tests for matrix, eigensolution and plain-data files.
"""

import io

import numpy as np
import pytest
from numpy.testing import assert_allclose

from eigbridge import CsrView, EigenResult
from eigbridge.internals.matrix_test_util import random_symmetric
from eigbridge.io import csr, dwim, eigensols
from eigbridge.native import SolverStats


@pytest.fixture
def matrix():
    return random_symmetric(30, 0.1, seed=11)


@pytest.fixture
def result():
    return EigenResult(
        eigenvalues=np.array([0.5, 1.5]),
        residual_norms=np.array([1e-9, 2e-9]),
        eigenvectors=np.eye(2, 4),
        stats=SolverStats(num_matvecs=12),
    )


class TestCsr:
    """Matrix files."""

    @pytest.mark.parametrize('name', ['m.npz', 'm.json', 'm.yaml', 'm.json.gz', 'm.yaml.xz'])
    def test_formats(self, tmp_path, matrix, name):
        path = tmp_path / name
        csr.to_path(path, matrix)
        assert csr.equal(csr.from_path(path), matrix)

    def test_from_view(self, tmp_path, matrix):
        path = str(tmp_path / 'm.json')
        csr.to_path(path, CsrView.from_matrix(matrix))
        assert csr.equal(csr.from_path(path), matrix)

    def test_dict_keys(self, matrix):
        d = csr.to_dict(matrix)
        assert sorted(d) == ['col', 'dim', 'row-ptr', 'values']
        assert d['dim'] == 30
        assert len(d['row-ptr']) == 31

    def test_missing_key(self):
        with pytest.raises(ValueError):
            csr.from_dict({'dim': 1, 'row-ptr': [0, 0], 'col': []})

    def test_unexpected_key(self):
        with pytest.raises(ValueError):
            csr.from_dict({'dim': 1, 'row-ptr': [0, 0], 'col': [], 'values': [], 'extra': 1})

    def test_unknown_extension(self, tmp_path, matrix):
        with pytest.raises(ValueError):
            csr.to_path(tmp_path / 'm.txt', matrix)

    def test_dense_is_rejected(self, tmp_path):
        with pytest.raises(TypeError):
            csr.to_path(tmp_path / 'm.json', np.eye(2))


class TestEigensols:
    """Eigensolution files."""

    @pytest.mark.parametrize('name', ['e.npz', 'e.json', 'e.yaml.gz'])
    def test_formats(self, tmp_path, result, name):
        path = tmp_path / name
        eigensols.to_path(path, result)
        back = eigensols.from_path(path)

        assert_allclose(back.eigenvalues, result.eigenvalues)
        assert_allclose(back.residual_norms, result.residual_norms)
        assert_allclose(back.eigenvectors, result.eigenvectors)

    def test_cereal(self, result):
        cereal = eigensols.to_cereal(result)
        assert cereal['eigenvalues'] == [0.5, 1.5]
        assert cereal['matvecs'] == 12
        assert len(cereal['eigenvectors']) == 2

    def test_without_eigenvectors(self, tmp_path):
        path = tmp_path / 'e.json'
        eigensols.to_path(path, EigenResult(np.array([1.0]), np.array([0.0])))
        assert eigensols.from_path(path).eigenvectors is None

    def test_mismatched_cereal(self):
        with pytest.raises(ValueError):
            eigensols.from_cereal({'eigenvalues': [1.0, 2.0], 'residual-norms': [0.0]})


class TestDwim:
    """Extension dispatch for plain data."""

    @pytest.mark.parametrize('name', ['c.json', 'c.yaml', 'c.yml', 'c.JSON', 'c.json.xz', 'c.yaml.gz'])
    def test_roundtrip(self, tmp_path, name):
        obj = {'nev': 3, 'shift': 0.25, 'preset': 'gd'}
        dwim.to_path(tmp_path / name, obj)
        assert dwim.from_path(tmp_path / name) == obj

    def test_unknown_extension(self, tmp_path):
        path = tmp_path / 'c.toml'
        path.write_text('nev = 3')
        with pytest.raises(ValueError):
            dwim.from_path(path)

    def test_does_not_close_callers_file(self):
        buf = io.BytesIO()
        dwim.to_path_impl('out.json', {'a': 1}, file=buf, to_dict=lambda x, path: x)
        assert not buf.closed
        assert buf.getvalue().decode('utf-8').strip() == '{"a": 1}'
