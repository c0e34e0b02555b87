#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Parallax constraint on distance modulus.

Functions
---------
parallax_is_usable : Measurement check
    Whether a parallax measurement can constrain the distance.
logp_parallax : Gaussian parallax term
    Unnormalized log-likelihood of a model parallax.
logp_parallax_dm : Gaussian parallax term
    Same as `logp_parallax`, evaluated at a distance modulus.

Notes
-----
Parallaxes are in arcseconds, matching the conversion
`parallax = 10**(-(DM + 5) / 5)` used for model distances. The terms are
not normalized because they only enter through differences between
templates of the same star.
"""

import numpy as np

from ..utils.photometry import dm_to_parallax

__all__ = ["parallax_is_usable", "logp_parallax", "logp_parallax_dm"]


def parallax_is_usable(p_meas, p_err):
    """Whether `p_meas` and `p_err` are finite and `p_err` is positive."""
    return bool(np.isfinite(p_meas) and np.isfinite(p_err) and p_err > 0)


def logp_parallax(parallaxes, p_meas, p_err):
    """
    Gaussian log-likelihood of model parallaxes given a measurement.

    Parameters
    ----------
    parallaxes : array_like
        Model parallaxes in arcseconds.
    p_meas : float
        Measured parallax in arcseconds.
    p_err : float
        Parallax uncertainty in arcseconds.

    Returns
    -------
    logp : array_like
        `-0.5 * (parallax - p_meas)**2 / p_err**2`, or zero when the
        measurement is not usable.
    """
    parallaxes = np.asarray(parallaxes, dtype=float)

    if parallax_is_usable(p_meas, p_err):
        logp = -0.5 * (parallaxes - p_meas) ** 2 / p_err**2
    else:
        logp = np.zeros_like(parallaxes)

    if logp.ndim == 0:
        return float(logp)
    return logp


def logp_parallax_dm(DM, p_meas, p_err):
    """`logp_parallax` evaluated at the parallax of distance modulus `DM`."""
    return logp_parallax(dm_to_parallax(DM), p_meas, p_err)
