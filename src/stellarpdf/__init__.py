#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
stellarpdf: Per-star probability surfaces in reddening and distance

A Python package that fits every star in a HEALPix pixel against a library
of empirical SED templates and turns the fits into a probability surface
over reddening `E` and distance modulus `mu`. The surfaces are the input
to 3D dust mapping.

The package is organized into modules for:
- Grid geometry, templates and closed-form template fits (`core`)
- Galactic, luminosity function and parallax priors (`priors`)
- Catalog, library and extinction I/O (`data`)
- Per-pixel evaluation and catalog processing (`analysis`)

Usage
-----
Evaluating one pixel::

    from stellarpdf import (GridEvalConfig, StellarData, load_extinction_model,
                            load_stellar_library, process_pixel)
    library = load_stellar_library('./data/templates.h5')
    ext_model = load_extinction_model('./data/extinction.dat')
    pixel = StellarData.load('./input.h5', 'photometry', 'pixel 512-1234')
    result = process_pixel(pixel, library, ext_model, './output.h5',
                           config=GridEvalConfig(RV=3.3))

Processing a whole catalog::

    from stellarpdf import process_file
    results = process_file('./input.h5', './output.h5', library, ext_model)
"""

# Version management
__version__ = "0.1.0"

# Core classes
from .core import ExtinctionModel, ImageStack, Rect, StellarLibrary

# Data management
from .data import (
    StellarData,
    load_extinction_model,
    load_luminosity_function,
    load_stellar_library,
)

# Priors
from .priors import GalacticLOSModel, LuminosityFunction

# Analysis
from .analysis import (
    EBVSmoothing,
    GridEvalConfig,
    grid_eval_stars,
    integrate_ml_solution,
    process_file,
    process_pixel,
)

__all__ = [
    # Version
    "__version__",
    # Core classes
    "Rect",
    "StellarLibrary",
    "ExtinctionModel",
    "ImageStack",
    # Data utilities
    "StellarData",
    "load_stellar_library",
    "load_extinction_model",
    "load_luminosity_function",
    # Priors
    "GalacticLOSModel",
    "LuminosityFunction",
    # Analysis
    "GridEvalConfig",
    "EBVSmoothing",
    "integrate_ml_solution",
    "grid_eval_stars",
    "process_pixel",
    "process_file",
]
