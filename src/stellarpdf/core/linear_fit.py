#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Closed-form maximum-likelihood distance and reddening for a single template.

For a fixed SED template with absolute magnitudes `M_i`, observed magnitudes
`m_i` with uncertainties `sigma_i`, and extinction coefficients `A_i`, the
chi-square

.. math::
    \\chi^2(\\mu, E) = \\sum_i \\left(\\frac{m_i - M_i - \\mu - E A_i}{\\sigma_i}\\right)^2

is quadratic in the distance modulus `mu` and the reddening `E`. Its minimum
follows from the 2x2 normal equations built from five inverse-variance
weighted sums over the valid bands. The normal-equation matrix is also the
precision (inverse covariance) of the estimate.

Classes
-------
LinearFitResult : Fit output
    Mean `(mu, E)`, precision matrix and chi-square at the optimum.

Functions
---------
star_covariance : Template-independent precision matrix
star_max_likelihood : Maximum-likelihood `(mu, E)` for one template
star_max_likelihood_batch : Maximum-likelihood `(mu, E)` for many templates
calc_star_chi2 : Chi-square of an arbitrary `(mu, E)`

Notes
-----
Bands flagged as missing (see `stellarpdf.utils.photometry`) contribute to
none of the sums. When the normal equations are singular (no valid bands, a
single band, or identical coefficients in every valid band) the fit is
marked invalid with an infinite chi-square.

Examples
--------
>>> import numpy as np
>>> from stellarpdf.core.linear_fit import star_max_likelihood
>>> absmag = np.array([1.0, 2.0])
>>> A = np.array([1.5, 1.0])
>>> mag = np.array([15.3, 14.9])
>>> err = np.array([0.05, 0.05])
>>> fit = star_max_likelihood(absmag, mag, err, A)
>>> fit.mu, fit.E
(10.1, 2.8)
"""

from math import inf, nan

import numpy as np
from numba import jit

from ..utils.photometry import _band_is_valid

__all__ = [
    "LinearFitResult",
    "star_covariance",
    "star_max_likelihood",
    "star_max_likelihood_batch",
    "calc_star_chi2",
]

# Relative tolerance below which the normal equations are treated as singular.
_SINGULAR_RTOL = 1.0e-12


class LinearFitResult(object):
    """
    Maximum-likelihood `(mu, E)` for one star and one template.

    Parameters
    ----------
    mean : array_like with shape (2,)
        Best-fit `(mu, E)`.

    inv_cov : array_like with shape (2, 2)
        Precision matrix of the estimate, ordered `(mu, E)`.

    chi2 : float
        Chi-square at the optimum. `inf` for an invalid fit.
    """

    __slots__ = ("mean", "inv_cov", "chi2")

    def __init__(self, mean, inv_cov, chi2):
        mean = np.array(mean, dtype=float)
        inv_cov = np.array(inv_cov, dtype=float)
        mean.setflags(write=False)
        inv_cov.setflags(write=False)
        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "inv_cov", inv_cov)
        object.__setattr__(self, "chi2", float(chi2))

    def __setattr__(self, name, value):
        raise AttributeError("LinearFitResult is immutable")

    @property
    def mu(self):
        """Best-fit distance modulus."""
        return float(self.mean[0])

    @property
    def E(self):
        """Best-fit reddening."""
        return float(self.mean[1])

    @property
    def is_valid(self):
        """Whether the fit produced a finite chi-square."""
        return bool(np.isfinite(self.chi2))

    def __repr__(self):
        return f"LinearFitResult(mu={self.mu:.4f}, E={self.E:.4f}, chi2={self.chi2:.4g})"


@jit(nopython=True, cache=True)
def _covariance_sums(err, A):
    """Sums of 1/sigma^2, A/sigma^2 and A^2/sigma^2 over valid bands."""
    inv_sigma2 = 0.0
    A_over_sigma2 = 0.0
    A2_over_sigma2 = 0.0

    for i in range(len(err)):
        if not _band_is_valid(err[i]):
            continue
        ivar = 1.0 / (err[i] * err[i])
        inv_sigma2 += ivar
        A_over_sigma2 += A[i] * ivar
        A2_over_sigma2 += A[i] * A[i] * ivar

    return inv_sigma2, A_over_sigma2, A2_over_sigma2


@jit(nopython=True, cache=True)
def _chi2(absmag, mag, err, A, mu, E):
    chi2 = 0.0
    for i in range(len(err)):
        if not _band_is_valid(err[i]):
            continue
        ivar = 1.0 / (err[i] * err[i])
        delta = mag[i] - absmag[i] - E * A[i] - mu
        chi2 += delta * delta * ivar
    return chi2


@jit(nopython=True, cache=True)
def _max_likelihood(absmag, mag, err, A):
    """
    Compiled solver. Returns `(mu, E, chi2, inv_cov_00, inv_cov_01,
    inv_cov_11)`; an invalid fit has `chi2 = inf` and NaN `(mu, E)`.
    """
    inv_sigma2 = 0.0       # 1 / sigma_i^2
    A_over_sigma2 = 0.0    # A_i / sigma_i^2
    A2_over_sigma2 = 0.0   # A_i^2 / sigma_i^2
    dm_over_sigma2 = 0.0   # (m_i - M_i) / sigma_i^2
    dm_A_over_sigma2 = 0.0  # (m_i - M_i) A_i / sigma_i^2

    for i in range(len(err)):
        if not _band_is_valid(err[i]):
            continue
        ivar = 1.0 / (err[i] * err[i])
        dm = mag[i] - absmag[i]

        inv_sigma2 += ivar
        A_over_sigma2 += A[i] * ivar
        A2_over_sigma2 += A[i] * A[i] * ivar
        dm_over_sigma2 += dm * ivar
        dm_A_over_sigma2 += dm * A[i] * ivar

    det = inv_sigma2 * A2_over_sigma2 - A_over_sigma2 * A_over_sigma2
    if not (det > _SINGULAR_RTOL * inv_sigma2 * A2_over_sigma2):
        return nan, nan, inf, inv_sigma2, A_over_sigma2, A2_over_sigma2

    mu = (A2_over_sigma2 * dm_over_sigma2 - A_over_sigma2 * dm_A_over_sigma2) / det
    E = (inv_sigma2 * dm_A_over_sigma2 - A_over_sigma2 * dm_over_sigma2) / det

    chi2 = _chi2(absmag, mag, err, A, mu, E)

    return mu, E, chi2, inv_sigma2, A_over_sigma2, A2_over_sigma2


@jit(nopython=True, cache=True)
def _max_likelihood_batch(absmag, mag, err, A):
    n = absmag.shape[0]
    mu = np.empty(n)
    E = np.empty(n)
    chi2 = np.empty(n)
    for k in range(n):
        mu_k, E_k, chi2_k, _, _, _ = _max_likelihood(absmag[k], mag, err, A)
        mu[k] = mu_k
        E[k] = E_k
        chi2[k] = chi2_k
    return mu, E, chi2


def _as_band_arrays(*arrays):
    out = tuple(np.ascontiguousarray(a, dtype=float) for a in arrays)
    nbands = len(out[0])
    for a in out:
        if a.shape != (nbands,):
            raise ValueError(
                "Per-band inputs must be one-dimensional arrays of equal length"
            )
    return out


def star_covariance(err, A):
    """
    Precision matrix of the `(mu, E)` estimate, independent of the template.

    Parameters
    ----------
    err : `~numpy.ndarray` with shape (Nbands,)
        Observed magnitude uncertainties.

    A : `~numpy.ndarray` with shape (Nbands,)
        Extinction per unit reddening in each band.

    Returns
    -------
    inv_cov_00, inv_cov_01, inv_cov_11 : float
        `sum(1/sigma^2)`, `sum(A/sigma^2)` and `sum(A^2/sigma^2)` over the
        valid bands, i.e. the `(mu, mu)`, `(mu, E)` and `(E, E)` elements.
    """
    err, A = _as_band_arrays(err, A)
    return _covariance_sums(err, A)


def star_max_likelihood(absmag, mag, err, A):
    """
    Maximum-likelihood distance modulus and reddening for one template.

    Parameters
    ----------
    absmag : `~numpy.ndarray` with shape (Nbands,)
        Template absolute magnitudes.

    mag : `~numpy.ndarray` with shape (Nbands,)
        Observed magnitudes.

    err : `~numpy.ndarray` with shape (Nbands,)
        Observed magnitude uncertainties.

    A : `~numpy.ndarray` with shape (Nbands,)
        Extinction per unit reddening in each band.

    Returns
    -------
    result : `LinearFitResult`
        Best fit, its precision matrix and the chi-square at the optimum.
    """
    absmag, mag, err, A = _as_band_arrays(absmag, mag, err, A)
    mu, E, chi2, c00, c01, c11 = _max_likelihood(absmag, mag, err, A)
    return LinearFitResult((mu, E), ((c00, c01), (c01, c11)), chi2)


def star_max_likelihood_batch(absmag, mag, err, A):
    """
    Maximum-likelihood `(mu, E)` for many templates of the same star.

    Parameters
    ----------
    absmag : `~numpy.ndarray` with shape (Ntemplates, Nbands)
        Template absolute magnitudes.

    mag, err, A : `~numpy.ndarray` with shape (Nbands,)
        As in `star_max_likelihood`.

    Returns
    -------
    mu, E, chi2 : `~numpy.ndarray` with shape (Ntemplates,)
        Best fit and chi-square of each template. Invalid fits carry NaN
        `(mu, E)` and an infinite chi-square.
    """
    mag, err, A = _as_band_arrays(mag, err, A)
    absmag = np.ascontiguousarray(absmag, dtype=float)
    if absmag.ndim != 2 or absmag.shape[1] != len(mag):
        raise ValueError(
            f"Template array shape {absmag.shape} does not match {len(mag)} bands"
        )
    return _max_likelihood_batch(absmag, mag, err, A)


def calc_star_chi2(absmag, mag, err, A, mu, E):
    """
    Chi-square of a template placed at distance modulus `mu` and reddening
    `E`. Parameters are as in `star_max_likelihood`.
    """
    absmag, mag, err, A = _as_band_arrays(absmag, mag, err, A)
    return _chi2(absmag, mag, err, A, float(mu), float(E))
