#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Photometric utility functions for stellarpdf.

This module contains the conventions used to flag missing bands, the
Gaussian likelihood normalization over valid bands, and conversions between
distance modulus, distance and parallax.
"""

from math import isfinite

import numpy as np
from numba import jit

__all__ = [
    "MISSING_ERR",
    "MISSING_ERR_THRESHOLD",
    "valid_band_mask",
    "count_passbands",
    "lnl_norm",
    "dm_to_distance",
    "distance_to_dm",
    "dm_to_parallax",
]

# Uncertainty written for a band without a usable measurement.
MISSING_ERR = 1.0e10

# Bands with an uncertainty above this value are treated as missing.
MISSING_ERR_THRESHOLD = 1.0e9

# 0.5 * ln(2 pi)
_HALF_LN_2PI = 0.9189385332


@jit(nopython=True, cache=True)
def _band_is_valid(err):
    """Whether a single band uncertainty marks a usable measurement."""
    return isfinite(err) and err <= MISSING_ERR_THRESHOLD and err > 0.0


def valid_band_mask(err):
    """
    Mask of bands with a usable uncertainty.

    Parameters
    ----------
    err : `~numpy.ndarray` with shape (..., Nbands)
        Magnitude uncertainties.

    Returns
    -------
    mask : `~numpy.ndarray` of bool with the same shape as `err`
        `True` where the uncertainty is finite, positive and not above
        `MISSING_ERR_THRESHOLD`.
    """
    err = np.asarray(err, dtype=float)
    with np.errstate(invalid="ignore"):
        return np.isfinite(err) & (err <= MISSING_ERR_THRESHOLD) & (err > 0.0)


def count_passbands(err):
    """Number of usable bands along the last axis of `err`."""
    return np.sum(valid_band_mask(err), axis=-1)


def lnl_norm(err):
    """
    Gaussian log-likelihood normalization over the valid bands.

    Parameters
    ----------
    err : `~numpy.ndarray` with shape (Nbands,)
        Magnitude uncertainties.

    Returns
    -------
    norm : float
        Sum of `0.5 * ln(2 pi) + ln(err)` over the valid bands.
    """
    err = np.asarray(err, dtype=float)
    mask = valid_band_mask(err)
    return float(np.sum(_HALF_LN_2PI + np.log(err[mask])))


def dm_to_distance(dm):
    """Convert distance modulus to distance in parsecs."""
    return 10.0 ** (0.2 * np.asarray(dm) + 1.0)


def distance_to_dm(dist):
    """Convert distance in parsecs to distance modulus."""
    return 5.0 * np.log10(np.asarray(dist)) - 5.0


def dm_to_parallax(dm):
    """
    Convert distance modulus to parallax.

    Parameters
    ----------
    dm : float or `~numpy.ndarray`
        Distance modulus.

    Returns
    -------
    parallax : float or `~numpy.ndarray`
        Parallax in arcseconds, `10**(-(dm + 5) / 5)`.
    """
    return 10.0 ** (-(np.asarray(dm) + 5.0) / 5.0)
