#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Configuration of the per-pixel grid evaluation.

Classes
-------
GridEvalConfig : Evaluation settings
    Grid geometry, prior switches, smoothing parameters and output options.
"""

import copy
from typing import Optional, Sequence, Tuple

from ..core.rect import Rect

__all__ = ["GridEvalConfig"]


class GridEvalConfig:
    """
    Configuration class for the grid evaluation of a pixel.

    Parameters
    ----------
    rect_min : tuple of float, optional
        Lower `(E, mu)` bounds of the evaluation grid. Default is
        `(-0.2, 3.75)`.

    rect_max : tuple of float, optional
        Upper `(E, mu)` bounds of the evaluation grid. Default is
        `(7.2, 19.25)`.

    rect_bins : tuple of int, optional
        Number of `(E, mu)` bins of the evaluation grid. Default is
        `(740, 124)`.

    crop : tuple of float or None, optional
        `(E_min, E_max, mu_min, mu_max)` to which the surfaces are cropped
        after evaluation. `None` disables cropping. Default is
        `(0., 7., 4., 19.)`.

    RV : float, optional
        Total-to-selective extinction ratio. Default is `3.3`.

    use_priors : bool, optional
        Whether to weight templates by the Galactic prior and luminosity
        function. Default is `True`.

    use_parallax : bool, optional
        Whether to include the parallax term. Default is `False`.

    n_sigma : float, optional
        Half-width of the covariance smoothing kernel in standard
        deviations. Default is `5`.

    min_width : int, optional
        Smallest half-width of the covariance smoothing kernel in bins.
        Default is `2`.

    add_diagonal : float, optional
        Extra kernel width, in bins, added in quadrature along each axis.
        Default is `1.`.

    subsample : int, optional
        Kernel oversampling factor. Default is `5`.

    ebv_smoothing : `~stellarpdf.analysis.ebv_smoothing.EBVSmoothing`, optional
        Reddening-dependent smoothing along the E axis. `None` disables it.

    ebv_n_sigma : float, optional
        Truncation radius of the reddening-axis smoothing. Default is `5`.

    chi2_max : float, optional
        Stars whose chi-square per passband exceeds this value are dropped
        before smoothing and saving. Default is `inf` (keep every star).

    keep_failed : bool, optional
        Whether stars with an infinite chi-square per passband are kept.
        Default is `True`.

    compression : int, optional
        Gzip level of the output datasets. Default is `9`.

    verbose : bool, optional
        Whether to print progress and timing to `stderr`. Default is
        `False`.

    Examples
    --------
    >>> config = GridEvalConfig(RV=3.1, use_parallax=True)
    >>> coarse = config.copy(rect_bins=(74, 31))
    """

    def __init__(
        self,
        rect_min: Tuple[float, float] = (-0.2, 3.75),
        rect_max: Tuple[float, float] = (7.2, 19.25),
        rect_bins: Tuple[int, int] = (740, 124),
        crop: Optional[Sequence[float]] = (0.0, 7.0, 4.0, 19.0),
        RV: float = 3.3,
        use_priors: bool = True,
        use_parallax: bool = False,
        n_sigma: float = 5.0,
        min_width: int = 2,
        add_diagonal: float = 1.0,
        subsample: int = 5,
        ebv_smoothing=None,
        ebv_n_sigma: float = 5.0,
        chi2_max: float = float("inf"),
        keep_failed: bool = True,
        compression: int = 9,
        verbose: bool = False,
    ):
        self.rect_min = tuple(rect_min)
        self.rect_max = tuple(rect_max)
        self.rect_bins = tuple(int(n) for n in rect_bins)
        self.crop = tuple(crop) if crop is not None else None
        self.RV = RV
        self.use_priors = use_priors
        self.use_parallax = use_parallax
        self.n_sigma = n_sigma
        self.min_width = min_width
        self.add_diagonal = add_diagonal
        self.subsample = subsample
        self.ebv_smoothing = ebv_smoothing
        self.ebv_n_sigma = ebv_n_sigma
        self.chi2_max = chi2_max
        self.keep_failed = keep_failed
        self.compression = compression
        self.verbose = verbose

        # Validate configuration
        self._validate_config()

    def _validate_config(self):
        """Validate configuration parameters."""
        if len(self.rect_min) != 2 or len(self.rect_max) != 2 or len(self.rect_bins) != 2:
            raise ValueError("rect_min, rect_max and rect_bins must have two entries")
        if any(hi <= lo for lo, hi in zip(self.rect_min, self.rect_max)):
            raise ValueError("rect_max must exceed rect_min along both axes")
        if any(n <= 0 for n in self.rect_bins):
            raise ValueError("rect_bins must be positive")
        if self.crop is not None and len(self.crop) != 4:
            raise ValueError("crop must be (E_min, E_max, mu_min, mu_max) or None")
        if self.n_sigma <= 0:
            raise ValueError("n_sigma must be > 0")
        if self.min_width < 0:
            raise ValueError("min_width must be >= 0")
        if int(self.subsample) < 1:
            raise ValueError("subsample must be >= 1")
        if not (0 <= self.compression <= 9):
            raise ValueError("compression must be between 0 and 9")

    def make_rect(self):
        """Evaluation grid as a `~stellarpdf.core.rect.Rect`."""
        return Rect(self.rect_min, self.rect_max, self.rect_bins)

    def copy(self, **overrides):
        """
        Return a copy of the configuration with some values replaced.

        Raises
        ------
        TypeError
            If an override does not name a configuration parameter.
        """
        new = copy.copy(self)
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown configuration parameter '{key}'")
            setattr(new, key, value)
        new.rect_min = tuple(new.rect_min)
        new.rect_max = tuple(new.rect_max)
        new.rect_bins = tuple(int(n) for n in new.rect_bins)
        new.crop = tuple(new.crop) if new.crop is not None else None
        new._validate_config()
        return new

    def __repr__(self):
        return (
            f"GridEvalConfig(rect=({self.rect_min}, {self.rect_max}, {self.rect_bins}), "
            f"RV={self.RV}, use_priors={self.use_priors}, "
            f"use_parallax={self.use_parallax})"
        )
