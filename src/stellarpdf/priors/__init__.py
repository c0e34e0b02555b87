#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Prior probability distributions used when weighting template fits.

This module provides the Galactic line-of-sight prior on distance and
metallicity, the luminosity function prior on absolute magnitude and the
parallax constraint. Functions follow the naming convention logp_* for
log-probability densities and logn_* for log-number densities.
"""

# Astrometric priors
from .astrometric import logp_parallax, logp_parallax_dm, parallax_is_usable

# Galactic structure priors
from .galactic import GalacticLOSModel, logn_disk, logn_halo, logp_feh

# Stellar priors
from .stellar import LuminosityFunction

__all__ = [
    # Stellar priors
    "LuminosityFunction",
    # Astrometric priors
    "logp_parallax",
    "logp_parallax_dm",
    "parallax_is_usable",
    # Galactic structure priors
    "GalacticLOSModel",
    "logn_disk",
    "logn_halo",
    "logp_feh",
]
