#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
stellarpdf data module: Catalog, template library and extinction I/O.

This module provides the containers for per-pixel photometry and the
functions for loading the stellar template library, extinction tables and
luminosity functions used by the grid evaluation.
"""

# Import data loading functions
from .loader import (
    load_extinction_model,
    load_luminosity_function,
    load_stellar_library,
    save_stellar_library,
)

# Import photometry containers
from .photometry import (
    PhotometryRecord,
    StellarData,
    get_input_pixels,
    photometry_dtype,
)

__all__ = [
    # Photometry containers
    "PhotometryRecord",
    "StellarData",
    "get_input_pixels",
    "photometry_dtype",
    # Data loading
    "load_stellar_library",
    "save_stellar_library",
    "load_extinction_model",
    "load_luminosity_function",
]
