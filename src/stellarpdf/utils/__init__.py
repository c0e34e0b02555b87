#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
stellarpdf utilities module: Mathematical and photometric utilities.

This module contains the small helpers shared by the core fitting code and
the pixel pipeline, organized by functionality.
"""

# Mathematical functions
from .math import (
    DET_EPSILON,
    _function_wrapper,
    add_diagonal2,
    as_symmetric2,
    det2,
    invert2,
)

# Photometry functions
from .photometry import (
    MISSING_ERR,
    MISSING_ERR_THRESHOLD,
    count_passbands,
    distance_to_dm,
    dm_to_distance,
    dm_to_parallax,
    lnl_norm,
    valid_band_mask,
)

__all__ = [
    # Photometry functions
    "MISSING_ERR",
    "MISSING_ERR_THRESHOLD",
    "valid_band_mask",
    "count_passbands",
    "lnl_norm",
    "dm_to_distance",
    "distance_to_dm",
    "dm_to_parallax",
    # Mathematical functions
    "_function_wrapper",
    "DET_EPSILON",
    "det2",
    "invert2",
    "add_diagonal2",
    "as_symmetric2",
]
