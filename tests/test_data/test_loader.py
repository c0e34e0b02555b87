#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the template library, extinction table and luminosity function
loaders.
"""

import h5py
import numpy as np
import pytest

from stellarpdf.data import (
    load_extinction_model,
    load_luminosity_function,
    load_stellar_library,
    save_stellar_library,
)
from stellarpdf.priors.stellar import LuminosityFunction


class TestStellarLibraryIO:
    """HDF5 template libraries."""

    def test_round_trip(self, stellar_library_with_gaps, tmp_path):
        fname = str(tmp_path / "library.h5")
        save_stellar_library(stellar_library_with_gaps, fname, verbose=False)

        lib = load_stellar_library(fname, verbose=False)

        np.testing.assert_array_equal(lib.mr_grid, stellar_library_with_gaps.mr_grid)
        np.testing.assert_array_equal(lib.feh_grid, stellar_library_with_gaps.feh_grid)
        np.testing.assert_array_equal(lib.valid, stellar_library_with_gaps.valid)
        np.testing.assert_allclose(
            lib.absmag[lib.valid], stellar_library_with_gaps.absmag[lib.valid]
        )
        assert lib.get_sed(0, 0) is None
        assert isinstance(lib.luminosity_function, LuminosityFunction)
        assert lib.log_lf(2.0) == pytest.approx(-1.5)

    def test_filters(self, stellar_library, tmp_path):
        fname = str(tmp_path / "library.h5")
        save_stellar_library(stellar_library, fname, verbose=False)
        lib = load_stellar_library(fname, verbose=False)
        assert lib.filters == ["g", "r", "i", "z"]
        assert lib.luminosity_function is None

    def test_override_luminosity_function(self, stellar_library_with_gaps, tmp_path):
        fname = str(tmp_path / "library.h5")
        save_stellar_library(stellar_library_with_gaps, fname, verbose=False)
        lf = LuminosityFunction([0.0, 10.0], [0.0, -10.0])
        lib = load_stellar_library(fname, luminosity_function=lf, verbose=False)
        assert lib.luminosity_function is lf

    def test_missing_dataset(self, tmp_path):
        fname = str(tmp_path / "broken.h5")
        with h5py.File(fname, "w") as f:
            f.create_dataset("Mr", data=np.arange(3.0))
        with pytest.raises(KeyError):
            load_stellar_library(fname, verbose=False)


class TestExtinctionIO:
    """Text extinction tables."""

    def test_load_sorted(self, tmp_path):
        fname = tmp_path / "ext.dat"
        fname.write_text(
            "# RV A_g A_r\n"
            "4.1 3.4 2.5\n"
            "2.1 3.9 2.8\n"
            "3.1 3.6 2.6\n"
        )
        ext = load_extinction_model(str(fname), filters=["g", "r"], verbose=False)
        np.testing.assert_array_equal(ext.rv_grid, [2.1, 3.1, 4.1])
        np.testing.assert_allclose(ext.coefficients(3.1), [3.6, 2.6])
        np.testing.assert_allclose(ext.coefficients(3.6), [3.5, 2.55])
        assert ext.filters == ["g", "r"]

    def test_single_row(self, tmp_path):
        fname = tmp_path / "ext.dat"
        fname.write_text("3.1 3.6 2.6 1.9\n")
        ext = load_extinction_model(str(fname), verbose=False)
        assert ext.nbands == 3
        np.testing.assert_allclose(ext.coefficients(2.0), [3.6, 2.6, 1.9])

    def test_needs_bands(self, tmp_path):
        fname = tmp_path / "ext.dat"
        fname.write_text("3.1\n3.3\n")
        with pytest.raises(ValueError):
            load_extinction_model(str(fname), verbose=False)


class TestLuminosityFunctionIO:
    """Text luminosity functions."""

    def test_load(self, tmp_path):
        fname = tmp_path / "lf.dat"
        fname.write_text("0.0 0.0\n10.0 -10.0\n")
        lf = load_luminosity_function(str(fname))
        assert lf(5.0) == pytest.approx(-5.0)
