#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Two-dimensional grid geometry for (reddening, distance modulus) surfaces.

A `Rect` fixes the bounds and number of bins along exactly two axes. By
convention axis 0 is reddening `E` and axis 1 is distance modulus `mu`.
Continuous positions are mapped onto the grid either to the enclosing bin
(`get_index`) or to the four surrounding bin centers with bilinear weights
(`get_interpolant`).

Classes
-------
Rect : Grid geometry
    Bounds, bin counts and bin sizes along two axes.

Functions
---------
deposit_bilinear : Bilinear accumulation
    Add a batch of weighted points into a surface, dropping points that
    fall outside the interpolation domain.
"""

import copy
from math import floor

import numpy as np
from numba import jit

__all__ = ["Rect", "deposit_bilinear"]


class Rect(object):
    """
    Bounds and binning of a two-dimensional grid.

    Parameters
    ----------
    rmin : array_like with shape (2,)
        Lower bound along each axis.

    rmax : array_like with shape (2,)
        Upper bound along each axis.

    N_bins : array_like with shape (2,)
        Number of bins along each axis.

    Attributes
    ----------
    min, max : `~numpy.ndarray` of shape (2,)
        Grid bounds.

    N_bins : `~numpy.ndarray` of int with shape (2,)
        Bin counts.

    dx : `~numpy.ndarray` of shape (2,)
        Bin size along each axis, `(max - min) / N_bins`.

    Raises
    ------
    ValueError
        If the inputs do not describe exactly two axes, if any bin count is
        not positive, or if an upper bound does not exceed its lower bound.

    Examples
    --------
    >>> rect = Rect((0.0, 4.0), (7.0, 19.0), (700, 120))
    >>> rect.dx
    array([0.01 , 0.125])
    """

    def __init__(self, rmin, rmax, N_bins):
        rmin = np.array(rmin, dtype=float)
        rmax = np.array(rmax, dtype=float)
        N_bins = np.array(N_bins, dtype=int)

        if rmin.shape != (2,) or rmax.shape != (2,) or N_bins.shape != (2,):
            raise ValueError("Rect requires bounds and bin counts for exactly two axes")
        if np.any(N_bins <= 0):
            raise ValueError(f"Bin counts must be positive, got {tuple(N_bins)}")
        if np.any(rmax <= rmin):
            raise ValueError(
                f"Upper bounds {tuple(rmax)} must exceed lower bounds {tuple(rmin)}"
            )

        self.min = rmin
        self.max = rmax
        self.N_bins = N_bins
        self.dx = (rmax - rmin) / N_bins

    @property
    def shape(self):
        """Shape of a surface defined on this grid."""
        return (int(self.N_bins[0]), int(self.N_bins[1]))

    def edges(self, axis):
        """Bin edges along `axis`, with `N_bins[axis] + 1` entries."""
        return np.linspace(self.min[axis], self.max[axis], self.N_bins[axis] + 1)

    def centers(self, axis):
        """Bin centers along `axis`."""
        return self.min[axis] + (np.arange(self.N_bins[axis]) + 0.5) * self.dx[axis]

    def contains(self, x0, x1):
        """Whether `(x0, x1)` lies inside the grid bounds."""
        return bool(
            (self.min[0] <= x0 < self.max[0]) and (self.min[1] <= x1 < self.max[1])
        )

    def get_index(self, x0, x1):
        """
        Locate the bin enclosing a point.

        Parameters
        ----------
        x0, x1 : float
            Position along axis 0 and axis 1.

        Returns
        -------
        i0, i1 : int
            Bin indices.

        in_bounds : bool
            Whether the point falls inside the grid. The indices are only
            meaningful when this is `True`.
        """
        if not (np.isfinite(x0) and np.isfinite(x1)):
            return -1, -1, False
        i0 = int(floor((x0 - self.min[0]) / self.dx[0]))
        i1 = int(floor((x1 - self.min[1]) / self.dx[1]))
        in_bounds = (0 <= i0 < self.N_bins[0]) and (0 <= i1 < self.N_bins[1])
        return i0, i1, in_bounds

    def get_interpolant(self, x0, x1):
        """
        Locate the four bin centers surrounding a point.

        Fractional indices are measured from the bin centers, so a point can
        only be interpolated when it lies between the first and last bin
        centers along both axes.

        Parameters
        ----------
        x0, x1 : float
            Position along axis 0 and axis 1.

        Returns
        -------
        i0, i1 : int
            Indices of the lower-left bin of the 2x2 block.

        a0, a1 : float
            Fractional offsets in `[0, 1)` from the lower-left bin center
            along each axis. The block weights are `(1-a0)(1-a1)`,
            `a0(1-a1)`, `(1-a0)a1` and `a0 a1`.

        in_bounds : bool
            Whether the point can be interpolated.
        """
        return _interpolant(
            x0, x1, self.min[0], self.min[1], self.dx[0], self.dx[1],
            self.N_bins[0], self.N_bins[1],
        )

    def copy(self):
        """Return an independent copy of the geometry."""
        return copy.deepcopy(self)

    def __eq__(self, other):
        if not isinstance(other, Rect):
            return NotImplemented
        return (
            np.array_equal(self.min, other.min)
            and np.array_equal(self.max, other.max)
            and np.array_equal(self.N_bins, other.N_bins)
        )

    def __repr__(self):
        return (
            f"Rect(min=({self.min[0]:g}, {self.min[1]:g}), "
            f"max=({self.max[0]:g}, {self.max[1]:g}), "
            f"N_bins=({self.N_bins[0]}, {self.N_bins[1]}))"
        )


@jit(nopython=True, cache=True)
def _interpolant(x0, x1, min0, min1, dx0, dx1, N0, N1):
    """Compiled core of `Rect.get_interpolant`."""
    f0 = (x0 - min0) / dx0 - 0.5
    f1 = (x1 - min1) / dx1 - 0.5

    # Written so that NaN positions fall out of bounds.
    if not (f0 >= 0.0 and f0 < N0 - 1 and f1 >= 0.0 and f1 < N1 - 1):
        return -1, -1, 0.0, 0.0, False

    i0 = int(floor(f0))
    i1 = int(floor(f1))
    return i0, i1, f0 - i0, f1 - i1, True


@jit(nopython=True, cache=True)
def _deposit(img, x0, x1, weights, min0, min1, dx0, dx1):
    N0, N1 = img.shape
    n_in = 0

    for k in range(len(weights)):
        i0, i1, a0, a1, in_bounds = _interpolant(
            x0[k], x1[k], min0, min1, dx0, dx1, N0, N1
        )
        if not in_bounds:
            continue

        p = weights[k]
        img[i0, i1] += (1.0 - a0) * (1.0 - a1) * p
        img[i0 + 1, i1] += a0 * (1.0 - a1) * p
        img[i0, i1 + 1] += (1.0 - a0) * a1 * p
        img[i0 + 1, i1 + 1] += a0 * a1 * p
        n_in += 1

    return n_in


def deposit_bilinear(img, rect, x0, x1, weights):
    """
    Add weighted points into a surface using bilinear interpolation.

    Points that cannot be interpolated (see `Rect.get_interpolant`) are
    dropped without error.

    Parameters
    ----------
    img : `~numpy.ndarray` with shape `rect.shape`
        Surface to accumulate into. Modified in place.

    rect : `Rect`
        Geometry of `img`.

    x0, x1 : `~numpy.ndarray` with shape (Npoints,)
        Point positions along axis 0 and axis 1.

    weights : `~numpy.ndarray` with shape (Npoints,)
        Non-negative weight of each point.

    Returns
    -------
    n_deposited : int
        Number of points that landed inside the grid.

    Raises
    ------
    ValueError
        If `img` does not match the geometry or the point arrays disagree
        in length.
    """
    if img.shape != rect.shape:
        raise ValueError(f"Surface shape {img.shape} does not match {rect}")

    x0 = np.ascontiguousarray(x0, dtype=float)
    x1 = np.ascontiguousarray(x1, dtype=float)
    weights = np.ascontiguousarray(weights, dtype=float)
    if not (len(x0) == len(x1) == len(weights)):
        raise ValueError("Point positions and weights must have the same length")

    return _deposit(
        img, x0, x1, weights,
        rect.min[0], rect.min[1], rect.dx[0], rect.dx[1],
    )
