#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Reddening-to-extinction coefficients.

The extinction in band `i` is modeled as `A_i = E * R_i(R_V)`, where `E` is
the reddening and `R_i` depends on the total-to-selective extinction ratio
`R_V`. The coefficients are tabulated on a grid of `R_V` and linearly
interpolated between grid points.
"""

import numpy as np

__all__ = ["ExtinctionModel"]


class ExtinctionModel(object):
    """
    Tabulated extinction coefficients as a function of `R_V`.

    Parameters
    ----------
    rv_grid : array_like with shape (N_RV,)
        Values of `R_V` at which the coefficients are tabulated. Must be
        strictly increasing.

    coeffs : array_like with shape (N_RV, Nbands) or (Nbands,)
        Extinction per unit reddening in each band. A one-dimensional array
        defines coefficients that do not depend on `R_V`.

    filters : iterable of str, optional
        Band names, for bookkeeping only.

    Raises
    ------
    ValueError
        If the grid is not strictly increasing or the coefficient table does
        not match it.

    Notes
    -----
    Outside the tabulated range the coefficients are clamped to the nearest
    grid point.

    Examples
    --------
    >>> ext = ExtinctionModel([2.1, 3.1, 4.1], [[3.9, 2.8, 2.1],
    ...                                         [3.6, 2.6, 1.9],
    ...                                         [3.4, 2.5, 1.8]])
    >>> A = ext.coefficients(3.3)
    """

    def __init__(self, rv_grid, coeffs, filters=None):
        coeffs = np.array(coeffs, dtype=float)
        if coeffs.ndim == 1:
            rv_grid = [3.1] if rv_grid is None else rv_grid
            coeffs = coeffs[None, :]
        rv_grid = np.atleast_1d(np.array(rv_grid, dtype=float))

        if coeffs.ndim != 2 or coeffs.shape[0] != len(rv_grid):
            raise ValueError(
                f"Coefficient table shape {coeffs.shape} does not match "
                f"{len(rv_grid)} R_V grid points"
            )
        if len(rv_grid) > 1 and np.any(np.diff(rv_grid) <= 0):
            raise ValueError("R_V grid must be strictly increasing")

        self.rv_grid = rv_grid
        self.coeffs = coeffs
        self.filters = list(filters) if filters is not None else None
        self._cache = {}

    @classmethod
    def constant(cls, coeffs, filters=None):
        """Build a model whose coefficients do not depend on `R_V`."""
        return cls(None, np.asarray(coeffs, dtype=float), filters=filters)

    @property
    def nbands(self):
        """Number of bands."""
        return self.coeffs.shape[1]

    def coefficients(self, RV):
        """
        Extinction per unit reddening in every band.

        Parameters
        ----------
        RV : float
            Total-to-selective extinction ratio.

        Returns
        -------
        A : `~numpy.ndarray` with shape (Nbands,)
            Coefficients at `RV`. The returned array is read-only.
        """
        key = float(RV)
        A = self._cache.get(key)
        if A is None:
            if len(self.rv_grid) == 1:
                A = self.coeffs[0].copy()
            else:
                A = np.array(
                    [np.interp(key, self.rv_grid, self.coeffs[:, i])
                     for i in range(self.nbands)]
                )
            A.setflags(write=False)
            self._cache[key] = A
        return A

    def get_A(self, RV, band):
        """Extinction per unit reddening in a single band."""
        return float(self.coefficients(RV)[band])

    def __repr__(self):
        return (
            f"ExtinctionModel(nbands={self.nbands}, "
            f"R_V=[{self.rv_grid[0]:g}, {self.rv_grid[-1]:g}])"
        )
