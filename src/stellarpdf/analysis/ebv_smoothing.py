#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Reddening-dependent smoothing widths along the E axis.

The fractional smoothing applied to each reddening bin grows linearly with
reddening, with a slope and intercept that depend on the angular size of the
HEALPix pixel. Larger pixels average over more dust structure, so their
surfaces are smoothed more.
"""

import healpy as hp
import numpy as np

__all__ = ["EBVSmoothing"]


class EBVSmoothing(object):
    """
    Fractional smoothing of probability surfaces as a function of reddening.

    The fractional width at reddening `E` is

    .. math::
        p(E) = \\mathrm{clip}(\\alpha + \\beta E, p_{\\min}, p_{\\max})

    with :math:`\\alpha = a_0 + a_1 s` and :math:`\\beta = b_0 + b_1 s`,
    where `s` is the pixel scale in arcminutes.

    Parameters
    ----------
    alpha_coeff : tuple of float
        `(a_0, a_1)`.

    beta_coeff : tuple of float
        `(b_0, b_1)`.

    pct_smoothing_min : float
        Lower clip of the fractional width.

    pct_smoothing_max : float
        Upper clip of the fractional width. A non-positive value disables
        the smoothing.

    Raises
    ------
    ValueError
        If the coefficients do not have two entries each or the clip range
        is inverted.

    Examples
    --------
    >>> smoothing = EBVSmoothing((0.1, 0.0), (0.05, 0.0), 0.0, 0.25)
    >>> pct = smoothing.calc_pct_smoothing(512, 0.0, 7.0, 700)
    >>> sigma_pix = pct * np.arange(700)
    """

    def __init__(self, alpha_coeff, beta_coeff, pct_smoothing_min, pct_smoothing_max):
        self.alpha_coeff = tuple(float(c) for c in alpha_coeff)
        self.beta_coeff = tuple(float(c) for c in beta_coeff)
        if len(self.alpha_coeff) != 2 or len(self.beta_coeff) != 2:
            raise ValueError("alpha_coeff and beta_coeff must each have two entries")
        self.pct_smoothing_min = float(pct_smoothing_min)
        self.pct_smoothing_max = float(pct_smoothing_max)
        if self.pct_smoothing_max > 0 and self.pct_smoothing_min > self.pct_smoothing_max:
            raise ValueError("pct_smoothing_min must not exceed pct_smoothing_max")

    @property
    def enabled(self):
        """Whether any smoothing is applied."""
        return self.pct_smoothing_max > 0.0

    def get_pct_smoothing_max(self):
        return self.pct_smoothing_max

    def slope_intercept(self, nside):
        """`(alpha, beta)` for a pixel of resolution `nside`."""
        pix_scale = hp.nside2resol(nside, arcmin=True)
        alpha = self.alpha_coeff[0] + self.alpha_coeff[1] * pix_scale
        beta = self.beta_coeff[0] + self.beta_coeff[1] * pix_scale
        return alpha, beta

    def calc_pct_smoothing(self, nside, E_min, E_max, n_bins):
        """
        Fractional smoothing width at each reddening bin.

        Parameters
        ----------
        nside : int
            HEALPix resolution of the pixel.

        E_min, E_max : float
            Reddening range of the grid.

        n_bins : int
            Number of reddening bins.

        Returns
        -------
        pct : `~numpy.ndarray` with shape (n_bins,)
            Fractional width at reddening `E_min + i (E_max - E_min) /
            (n_bins - 1)`.
        """
        n_bins = int(n_bins)
        alpha, beta = self.slope_intercept(nside)
        E = np.linspace(E_min, E_max, n_bins) if n_bins > 1 else np.array([E_min])
        pct = alpha + beta * E
        return np.clip(pct, self.pct_smoothing_min, self.pct_smoothing_max)

    def calc_sigma_pix(self, nside, E_min, E_max, n_bins):
        """
        Smoothing width in bins for each output row, `pct[i] * i`.

        The width of row `i` is its fractional width times its distance in
        bins from the first row.
        """
        pct = self.calc_pct_smoothing(nside, E_min, E_max, n_bins)
        return pct * np.arange(len(pct))

    def __repr__(self):
        return (
            f"EBVSmoothing(alpha_coeff={self.alpha_coeff}, beta_coeff={self.beta_coeff}, "
            f"pct=[{self.pct_smoothing_min:g}, {self.pct_smoothing_max:g}])"
        )
