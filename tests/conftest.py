#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Test configuration and fixtures for the stellarpdf test suite.

This module provides synthetic template libraries, extinction models and
photometry shared by the tests. The synthetic library is built so that the
colors of neighboring templates differ along a direction orthogonal to both
a distance shift and a reddening shift, which makes the true template the
only good fit to photometry generated from it.
"""

import os
import tempfile

import numpy as np
import pytest

# Use a writable cache directory for numba-compiled functions.
os.environ.setdefault("NUMBA_CACHE_DIR", os.path.join(tempfile.gettempdir(), "numba_cache"))

from stellarpdf.core.extinction import ExtinctionModel
from stellarpdf.core.library import StellarLibrary
from stellarpdf.data.photometry import PhotometryRecord, StellarData
from stellarpdf.priors.stellar import LuminosityFunction

# Extinction per unit reddening of the synthetic four-band system at R_V = 3.3.
A_SYNTH = np.array([3.2, 2.4, 1.8, 1.3])

# Color term orthogonal to (1, 1, 1, 1) and A_SYNTH.
C_SYNTH = np.array([1.0, -2.0, 0.6, 0.4])

BASE_SYNTH = np.array([0.6, 0.2, 0.0, -0.1])

MR_SYNTH = np.array([3.0, 4.0, 5.0, 6.0, 7.0])
FEH_SYNTH = np.array([-1.0, -0.5, 0.0])

# True parameters of the synthetic star.
MU_TRUE = 10.1
E_TRUE = 0.52
MR_IDX_TRUE = 2
FEH_IDX_TRUE = 2


def make_absmag(mr_grid=MR_SYNTH, feh_grid=FEH_SYNTH):
    """Absolute magnitudes of the synthetic library, shape (N_Mr, N_FeH, 4)."""
    mr = np.asarray(mr_grid)[:, None, None]
    feh = np.asarray(feh_grid)[None, :, None]
    return mr + BASE_SYNTH + C_SYNTH * (0.5 * (mr - 5.0) + 0.8 * feh)


@pytest.fixture
def ext_model():
    """Extinction model tabulated at three values of R_V."""
    rv_grid = [2.3, 3.3, 4.3]
    coeffs = [A_SYNTH * 1.1, A_SYNTH, A_SYNTH * 0.9]
    return ExtinctionModel(rv_grid, coeffs, filters=["g", "r", "i", "z"])


@pytest.fixture
def luminosity_function():
    """Simple luminosity function peaking at Mr = 5."""
    return LuminosityFunction([-1.0, 5.0, 15.0], [-3.0, 0.0, -2.0])


@pytest.fixture
def stellar_library():
    """Complete synthetic library without a luminosity function."""
    return StellarLibrary(MR_SYNTH, FEH_SYNTH, make_absmag(), filters=["g", "r", "i", "z"])


@pytest.fixture
def stellar_library_with_gaps(luminosity_function):
    """Synthetic library with two missing templates."""
    absmag = make_absmag()
    absmag[0, 0] = np.nan
    absmag[4, 1, 2] = np.nan
    return StellarLibrary(MR_SYNTH, FEH_SYNTH, absmag,
                          luminosity_function=luminosity_function)


@pytest.fixture
def true_template():
    """Absolute magnitudes of the template the synthetic star is drawn from."""
    return make_absmag()[MR_IDX_TRUE, FEH_IDX_TRUE]


@pytest.fixture
def synthetic_record(true_template):
    """Noise-free photometry of the true template at (MU_TRUE, E_TRUE)."""
    mag = true_template + MU_TRUE + E_TRUE * A_SYNTH
    err = np.full(4, 0.02)
    return PhotometryRecord(mag, err, obj_id=42, l=90.0, b=30.0,
                            pi=np.nan, pi_err=np.nan, EBV=0.5)


@pytest.fixture
def missing_record():
    """Photometry with every band missing."""
    return PhotometryRecord(np.zeros(4), np.full(4, 1.0e10), obj_id=7)


@pytest.fixture
def stellar_data(synthetic_record, missing_record, true_template):
    """Pixel with a good star, a star without data and a poorly fit star."""
    bad_mag = true_template + MU_TRUE + E_TRUE * A_SYNTH + np.array([0.5, -0.5, 0.5, -0.5])
    bad_record = PhotometryRecord(bad_mag, np.full(4, 0.02), obj_id=99, l=90.0, b=30.0)
    return StellarData(
        pix_name="pixel 64-1234", healpix_index=1234, nside=64, nested=True,
        l=90.0, b=30.0, EBV=0.5,
        stars=[synthetic_record, missing_record, bad_record],
    )


@pytest.fixture
def two_band_problem():
    """Two-band problem with the analytic solution mu = 10.1, E = 2.8."""
    absmag = np.array([1.0, 2.0])
    A = np.array([1.5, 1.0])
    mag = np.array([15.3, 14.9])
    err = np.array([0.05, 0.05])
    return absmag, mag, err, A

