#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the grid evaluation configuration and the reddening-dependent
smoothing widths.
"""

import healpy as hp
import numpy as np
import pytest

from stellarpdf.analysis import EBVSmoothing, GridEvalConfig
from stellarpdf.core.rect import Rect


class TestGridEvalConfig:
    """Defaults, validation and copies."""

    def test_defaults(self):
        config = GridEvalConfig()
        assert config.make_rect() == Rect((-0.2, 3.75), (7.2, 19.25), (740, 124))
        assert config.crop == (0.0, 7.0, 4.0, 19.0)
        assert config.RV == 3.3
        assert config.use_priors
        assert not config.use_parallax
        assert config.n_sigma == 5.0
        assert config.min_width == 2
        assert config.add_diagonal == 1.0
        assert config.subsample == 5
        assert config.ebv_smoothing is None
        assert config.chi2_max == np.inf

    def test_default_grid_resolution(self):
        rect = GridEvalConfig().make_rect()
        np.testing.assert_allclose(rect.dx, [0.01, 0.125])

    def test_copy_with_overrides(self):
        config = GridEvalConfig(RV=3.1)
        coarse = config.copy(rect_bins=[74, 31], use_parallax=True)
        assert coarse.rect_bins == (74, 31)
        assert coarse.use_parallax
        assert coarse.RV == 3.1
        assert config.rect_bins == (740, 124)
        assert not config.use_parallax

    def test_copy_unknown_key(self):
        with pytest.raises(TypeError):
            GridEvalConfig().copy(not_a_parameter=1)

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(rect_min=(1.0, 20.0)),
            dict(rect_bins=(0, 10)),
            dict(crop=(0.0, 1.0)),
            dict(n_sigma=0.0),
            dict(min_width=-1),
            dict(subsample=0),
            dict(compression=10),
        ],
    )
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            GridEvalConfig(**kwargs)

    def test_copy_is_validated(self):
        with pytest.raises(ValueError):
            GridEvalConfig().copy(subsample=0)

    def test_no_crop(self):
        assert GridEvalConfig(crop=None).crop is None


class TestEBVSmoothing:
    """Fractional smoothing widths along the reddening axis."""

    def test_pct_smoothing(self):
        smoothing = EBVSmoothing((0.1, 0.0), (0.05, 0.0), 0.0, 0.25)
        pct = smoothing.calc_pct_smoothing(64, 0.0, 7.0, 8)
        np.testing.assert_allclose(pct, np.clip(0.1 + 0.05 * np.arange(8), 0.0, 0.25))

    def test_pixel_scale_dependence(self):
        smoothing = EBVSmoothing((0.0, 0.01), (0.0, 0.0), 0.0, 10.0)
        for nside in (32, 128):
            s = hp.nside2resol(nside, arcmin=True)
            alpha, beta = smoothing.slope_intercept(nside)
            assert alpha == pytest.approx(0.01 * s)
            assert beta == 0.0
            np.testing.assert_allclose(smoothing.calc_pct_smoothing(nside, 0.0, 1.0, 5), 0.01 * s)

    def test_sigma_pix(self):
        smoothing = EBVSmoothing((0.1, 0.0), (0.0, 0.0), 0.0, 0.25)
        sigma = smoothing.calc_sigma_pix(64, 0.0, 7.0, 5)
        np.testing.assert_allclose(sigma, 0.1 * np.arange(5))
        assert sigma[0] == 0.0

    def test_enabled(self):
        assert EBVSmoothing((0.1, 0.0), (0.0, 0.0), 0.0, 0.25).enabled
        disabled = EBVSmoothing((0.1, 0.0), (0.0, 0.0), 0.0, 0.0)
        assert not disabled.enabled
        assert disabled.get_pct_smoothing_max() == 0.0

    def test_validation(self):
        with pytest.raises(ValueError):
            EBVSmoothing((0.1,), (0.0, 0.0), 0.0, 0.25)
        with pytest.raises(ValueError):
            EBVSmoothing((0.1, 0.0), (0.0, 0.0), 0.5, 0.25)
