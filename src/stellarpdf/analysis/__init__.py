#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
stellarpdf analysis module: Per-star grid evaluation and pixel processing.

This module turns the photometry of every star in a HEALPix pixel into a
probability surface over reddening and distance modulus, and runs that
evaluation over whole input catalogs.
"""

from .config import GridEvalConfig
from .ebv_smoothing import EBVSmoothing
from .grid_eval import (
    GridAccumulator,
    grid_eval_stars,
    integrate_ml_solution,
    smooth_along_ebv,
)
from .pipeline import (
    OUTPUT_DATASETS,
    STATUS_FAILED,
    STATUS_SAVED,
    STATUS_SKIPPED,
    PixelResult,
    pixel_is_complete,
    process_file,
    process_pixel,
    star_keep_mask,
)

__all__ = [
    # Configuration
    "GridEvalConfig",
    "EBVSmoothing",
    # Grid evaluation
    "GridAccumulator",
    "integrate_ml_solution",
    "grid_eval_stars",
    "smooth_along_ebv",
    # Pixel pipeline
    "OUTPUT_DATASETS",
    "STATUS_SAVED",
    "STATUS_SKIPPED",
    "STATUS_FAILED",
    "PixelResult",
    "pixel_is_complete",
    "star_keep_mask",
    "process_pixel",
    "process_file",
]
