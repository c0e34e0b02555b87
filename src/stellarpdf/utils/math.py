#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Mathematical utility functions for stellarpdf.

This module contains small numerical helpers shared by the grid evaluation
code: a pickleable function wrapper for worker pools and allocation-free
2x2 symmetric matrix algebra. The matrix helpers are JIT-compiled with numba
so they can be called from inside other compiled loops.

Functions
---------
_function_wrapper : Callable wrapper
    Make functions pickleable with args/kwargs
det2 : Matrix determinant
    Determinant of a symmetric 2x2 matrix
invert2 : Matrix inversion
    Inverse of a symmetric 2x2 matrix with an additive determinant guard
add_diagonal2 : Covariance inflation
    Inflate a 2x2 precision matrix by extra variance along each axis

Notes
-----
Symmetric 2x2 matrices are passed around as their three unique elements
`(m00, m01, m11)` rather than as arrays. This keeps the hot per-template loop
free of allocations and avoids a general linear-algebra call.

Examples
--------
>>> from stellarpdf.utils.math import invert2
>>> c00, c01, c11 = invert2(4.0, 1.0, 2.0)
"""

import traceback

import numpy as np
from numba import jit

__all__ = [
    "_function_wrapper",
    "DET_EPSILON",
    "det2",
    "invert2",
    "add_diagonal2",
    "as_symmetric2",
]

# Additive guard applied to 2x2 determinants before inversion.
DET_EPSILON = 1.0e-5


class _function_wrapper(object):
    """
    A hack to make functions pickleable when `args` or `kwargs` are
    also included. Based on the implementation in
    `emcee <http://dan.iel.fm/emcee/>`_.

    Parameters
    ----------
    func : callable
        The function to wrap.
    args : tuple
        Additional positional arguments to pass to the function.
    kwargs : dict
        Additional keyword arguments to pass to the function.
    name : str, optional
        Name for the function (used in error messages).
    """

    def __init__(self, func, args, kwargs, name="input"):
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self.name = name

    def __call__(self, x):
        """Call the wrapped function with stored arguments."""
        try:
            return self.func(x, *self.args, **self.kwargs)
        except Exception:
            print("Exception while calling {0} function:".format(self.name))
            print("  params:", x)
            print("  exception:")
            traceback.print_exc()
            raise


@jit(nopython=True, cache=True)
def det2(m00, m01, m11):
    """Determinant of the symmetric matrix [[m00, m01], [m01, m11]]."""
    return m00 * m11 - m01 * m01


@jit(nopython=True, cache=True)
def invert2(m00, m01, m11, eps=0.0):
    """
    Invert a symmetric 2x2 matrix using the explicit adjugate formula.

    Parameters
    ----------
    m00, m01, m11 : float
        Unique elements of the symmetric matrix.

    eps : float, optional
        Value added to the determinant before dividing. Default is `0.`.

    Returns
    -------
    i00, i01, i11 : float
        Unique elements of the inverse.
    """
    det = m00 * m11 - m01 * m01 + eps
    return m11 / det, -m01 / det, m00 / det


@jit(nopython=True, cache=True)
def add_diagonal2(p00, p01, p11, var0, var1, eps=DET_EPSILON):
    """
    Add extra variance along each axis of a Gaussian given its precision.

    The precision matrix is converted to a covariance matrix, `var0` and
    `var1` are added to the diagonal, and the result is converted back.

    Parameters
    ----------
    p00, p01, p11 : float
        Unique elements of the precision (inverse covariance) matrix.

    var0, var1 : float
        Variance added along axis 0 and axis 1.

    eps : float, optional
        Added to a determinant only when it is not positive, in either
        conversion. Default is `DET_EPSILON`.

    Returns
    -------
    q00, q01, q11 : float
        Unique elements of the inflated precision matrix.
    """
    det = p00 * p11 - p01 * p01
    c00, c01, c11 = invert2(p00, p01, p11, eps if det <= 0.0 else 0.0)
    c00 += var0
    c11 += var1
    det = c00 * c11 - c01 * c01
    return invert2(c00, c01, c11, eps if det <= 0.0 else 0.0)


def as_symmetric2(m00, m01, m11):
    """Return the full `(2, 2)` array for the given unique elements."""
    return np.array([[m00, m01], [m01, m11]], dtype=float)
