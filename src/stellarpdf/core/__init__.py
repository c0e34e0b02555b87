#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
stellarpdf core module: Grid geometry, templates and per-template fitting.

This module contains the building blocks of the grid evaluation: the
`(E, mu)` grid geometry, the SED template library, the extinction model,
the closed-form linear fit, the covariance smoothing kernel and the image
stack that holds one probability surface per star.
"""

from .extinction import ExtinctionModel
from .image_stack import ImageStack, ImageWriteBuffer, write_surfaces
from .library import StellarLibrary
from .linear_fit import (
    LinearFitResult,
    calc_star_chi2,
    star_covariance,
    star_max_likelihood,
    star_max_likelihood_batch,
)
from .rect import Rect, deposit_bilinear
from .smoothing import apply_kernel, covariance_kernel, smooth_surface

__all__ = [
    "Rect",
    "deposit_bilinear",
    "StellarLibrary",
    "ExtinctionModel",
    "LinearFitResult",
    "star_covariance",
    "star_max_likelihood",
    "star_max_likelihood_batch",
    "calc_star_chi2",
    "covariance_kernel",
    "apply_kernel",
    "smooth_surface",
    "ImageStack",
    "ImageWriteBuffer",
    "write_surfaces",
]
