#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Luminosity function prior on absolute magnitude.

Classes
-------
LuminosityFunction : Tabulated `ln p(Mr)`
    Linear interpolation with linear extrapolation beyond the table.

Examples
--------
>>> import numpy as np
>>> from stellarpdf.priors.stellar import LuminosityFunction
>>> lf = LuminosityFunction([-1.0, 5.0, 15.0], [-3.0, 0.0, -1.0])
>>> lnp = lf(np.array([4.5, 5.0]))
"""

import numpy as np
from scipy.interpolate import interp1d

__all__ = ["LuminosityFunction"]


class LuminosityFunction(object):
    """
    Tabulated log luminosity function.

    Parameters
    ----------
    Mr : array_like with shape (N,)
        Absolute magnitudes of the table. Sorted internally.

    lnp : array_like with shape (N,)
        Log-probability at each `Mr`.

    Raises
    ------
    ValueError
        If fewer than two points are given or the arrays disagree in length.
    """

    def __init__(self, Mr, lnp):
        Mr = np.asarray(Mr, dtype=float)
        lnp = np.asarray(lnp, dtype=float)
        if Mr.ndim != 1 or Mr.shape != lnp.shape:
            raise ValueError("Luminosity function table must be two 1-D arrays of equal length")
        if len(Mr) < 2:
            raise ValueError("Luminosity function table needs at least two points")

        order = np.argsort(Mr)
        self.Mr = Mr[order]
        self.lnp = lnp[order]
        self._interpolator = interp1d(
            self.Mr, self.lnp, fill_value="extrapolate", kind="linear"
        )

    @classmethod
    def from_file(cls, fname):
        """
        Read a two-column text file of `Mr` and `ln p(Mr)`.

        Lines starting with `#` are ignored.
        """
        grid_Mr, grid_lnp = np.loadtxt(fname, ndmin=2).T
        return cls(grid_Mr, grid_lnp)

    def __call__(self, Mr):
        lnp = self._interpolator(Mr)
        if np.ndim(lnp) == 0:
            return float(lnp)
        return lnp

    def __repr__(self):
        return f"LuminosityFunction(Mr=[{self.Mr[0]:g}, {self.Mr[-1]:g}], N={len(self.Mr)})"
