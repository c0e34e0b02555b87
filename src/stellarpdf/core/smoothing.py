#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Anisotropic Gaussian smoothing of probability surfaces.

The maximum-likelihood `(mu, E)` of every template carries the same
template-independent uncertainty, described by the precision matrix of the
linear fit. Rather than depositing a full Gaussian for each template, the
weighted point estimates are deposited first and the whole surface is
convolved once with a kernel built from that precision matrix.

Functions
---------
kernel_widths : Kernel extent
    Marginal standard deviations and half-widths in bins.
covariance_kernel : Kernel construction
    Sub-sampled, area-averaged 2-D Gaussian normalized to a unit center.
apply_kernel : Surface smoothing
    Correlate a surface with a kernel using mirrored borders.
smooth_surface : Convenience wrapper
    Build the kernel for a precision matrix and apply it in place.

Notes
-----
All precision matrices passed to this module must already be in grid-axis
order, i.e. `(E, mu)`. The linear fit reports them in `(mu, E)` order, so
callers swap the diagonal elements before building a kernel.
"""

import sys
from math import ceil, sqrt

import numpy as np
from scipy.ndimage import correlate

from ..utils.math import DET_EPSILON, add_diagonal2, det2

__all__ = ["kernel_widths", "covariance_kernel", "apply_kernel", "smooth_surface"]


def kernel_widths(inv_cov, rect, n_sigma, min_width):
    """
    Standard deviations and half-widths (in bins) of the smoothing kernel.

    Parameters
    ----------
    inv_cov : tuple of float
        Unique elements `(P00, P01, P11)` of the precision matrix in
        grid-axis order.

    rect : `~stellarpdf.core.rect.Rect`
        Geometry of the surface the kernel will be applied to.

    n_sigma : float
        Number of standard deviations covered by each half-width.

    min_width : int
        Smallest allowed half-width.

    Returns
    -------
    sigma : tuple of float
        Marginal standard deviation along each axis.

    width : tuple of int
        Half-width along each axis.
    """
    p00, p01, p11 = inv_cov
    det = det2(p00, p01, p11) + DET_EPSILON
    sigma = (sqrt(p11 / det), sqrt(p00 / det))
    width = tuple(
        max(int(min_width), int(ceil(n_sigma * sigma[k] / rect.dx[k])))
        for k in range(2)
    )
    return sigma, width


def covariance_kernel(inv_cov, rect, n_sigma, min_width, add_diagonal=-1.0,
                      subsample=5, verbose=False):
    """
    Build a 2-D Gaussian kernel from a precision matrix.

    Parameters
    ----------
    inv_cov : array_like
        Precision matrix in grid-axis order, either as a `(2, 2)` array or
        as its unique elements `(P00, P01, P11)`.

    rect : `~stellarpdf.core.rect.Rect`
        Geometry of the surface the kernel will be applied to.

    n_sigma : float
        Number of standard deviations covered by each half-width.

    min_width : int
        Smallest allowed half-width in bins.

    add_diagonal : float, optional
        If positive, extra standard deviation (in units of bins) added in
        quadrature along each axis before the kernel is built. Default is
        `-1.` (no extra smoothing).

    subsample : int, optional
        Oversampling factor along each axis. The Gaussian is evaluated on a
        grid `subsample` times finer than `rect` and area-averaged back down.
        Default is `5`.

    verbose : bool, optional
        Whether to print the kernel dimensions to `stderr`. Default is
        `False`.

    Returns
    -------
    kernel : `~numpy.ndarray` with shape (2*w0+1, 2*w1+1)
        Kernel normalized so that its center element is exactly `1`.

    Raises
    ------
    ValueError
        If `subsample` is not a positive integer.
    """
    inv_cov = np.asarray(inv_cov, dtype=float)
    if inv_cov.shape == (2, 2):
        p00, p01, p11 = inv_cov[0, 0], inv_cov[0, 1], inv_cov[1, 1]
    else:
        p00, p01, p11 = inv_cov
    subsample = int(subsample)
    if subsample < 1:
        raise ValueError(f"subsample must be a positive integer, got {subsample}")

    if add_diagonal > 0.0:
        d0 = add_diagonal * rect.dx[0]
        d1 = add_diagonal * rect.dx[1]
        p00, p01, p11 = add_diagonal2(p00, p01, p11, d0 * d0, d1 * d1)

    sigma, (w0, w1) = kernel_widths((p00, p01, p11), rect, n_sigma, min_width)
    if verbose:
        sys.stderr.write(
            f"sigma -> ({sigma[0]:.4g}, {sigma[1]:.4g}), "
            f"width = ({w0}, {w1})\n"
        )

    n0, n1 = 2 * w0 + 1, 2 * w1 + 1
    n0_sub, n1_sub = subsample * n0, subsample * n1

    # Offsets of the sub-sampled cell centers from the kernel center.
    x0 = (np.arange(n0_sub) - 0.5 * (n0_sub - 1)) * rect.dx[0] / subsample
    x1 = (np.arange(n1_sub) - 0.5 * (n1_sub - 1)) * rect.dx[1] / subsample
    x0, x1 = x0[:, None], x1[None, :]
    img_sub = np.exp(-0.5 * (p00 * x0 * x0 + 2.0 * p01 * x0 * x1 + p11 * x1 * x1))

    # Area-average each subsample x subsample block.
    kernel = img_sub.reshape(n0, subsample, n1, subsample).mean(axis=(1, 3))
    kernel /= kernel[w0, w1]

    return kernel


def apply_kernel(surface, kernel):
    """
    Smooth a surface with a kernel.

    The kernel is correlated with the surface (not flipped) and the border
    is handled by reflecting about the edge pixels without repeating them.

    Parameters
    ----------
    surface : `~numpy.ndarray` with shape (N0, N1)
        Surface to smooth. Overwritten with the result.

    kernel : `~numpy.ndarray` with shape (K0, K1)
        Smoothing kernel.

    Returns
    -------
    surface : `~numpy.ndarray`
        The same array as the input, now smoothed.
    """
    surface[...] = correlate(surface, kernel, mode="mirror")
    return surface


def smooth_surface(surface, inv_cov, rect, n_sigma=5.0, min_width=2,
                   add_diagonal=-1.0, subsample=5, verbose=False):
    """
    Build a covariance kernel and apply it to `surface` in place.

    See `covariance_kernel` for the parameters. Returns the kernel used.
    """
    kernel = covariance_kernel(
        inv_cov, rect, n_sigma, min_width,
        add_diagonal=add_diagonal, subsample=subsample, verbose=verbose,
    )
    apply_kernel(surface, kernel)
    return kernel
