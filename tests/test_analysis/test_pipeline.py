#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for per-pixel processing and output files.
"""

import h5py
import numpy as np
import pytest

from stellarpdf.analysis import (
    STATUS_FAILED,
    STATUS_SAVED,
    STATUS_SKIPPED,
    GridEvalConfig,
    pixel_is_complete,
    process_file,
    process_pixel,
    star_keep_mask,
)
from stellarpdf.data.photometry import StellarData


@pytest.fixture
def config():
    return GridEvalConfig(
        rect_min=(0.0, 5.0), rect_max=(2.0, 15.0), rect_bins=(40, 40),
        crop=(0.0, 1.5, 6.0, 14.0), use_priors=False,
    )


class TestStarKeepMask:
    """Goodness-of-fit selection."""

    def test_default_keeps_everything(self):
        chi2 = np.array([0.5, np.inf, 300.0, np.nan])
        np.testing.assert_array_equal(star_keep_mask(chi2), [True, True, True, True])

    def test_chi2_cut(self):
        chi2 = np.array([0.5, np.inf, 300.0, 10.0])
        np.testing.assert_array_equal(
            star_keep_mask(chi2, chi2_max=10.0), [True, True, False, True]
        )

    def test_drop_failed(self):
        chi2 = np.array([0.5, np.inf, np.nan])
        np.testing.assert_array_equal(
            star_keep_mask(chi2, keep_failed=False), [True, False, False]
        )

    def test_evidence_cut(self):
        chi2 = np.array([0.5, 0.6, 0.7])
        keep = star_keep_mask(chi2, evidence=[-1.0, -20.0, np.nan], evidence_min=-10.0)
        np.testing.assert_array_equal(keep, [True, False, False])
        # Ignored without a threshold.
        assert star_keep_mask(chi2, evidence=[-1.0, -20.0, 0.0]).all()

    def test_evidence_shape(self):
        with pytest.raises(ValueError):
            star_keep_mask([0.5, 0.6], evidence=[0.0], evidence_min=-1.0)


class TestProcessPixel:
    """Evaluate, cull, smooth and save one pixel."""

    def test_output_layout(self, stellar_data, stellar_library, ext_model, config,
                           tmp_path):
        fname = str(tmp_path / "out.h5")
        assert not pixel_is_complete(fname, stellar_data.pix_name)

        result = process_pixel(stellar_data, stellar_library, ext_model, fname,
                               config=config)

        assert result.status == STATUS_SAVED
        assert result.pix_name == "pixel 64-1234"
        assert result.chi2.shape == (3,)
        assert result.keep.all()
        assert pixel_is_complete(fname, stellar_data.pix_name)

        with h5py.File(fname, "r") as f:
            grp = f["pixel 64-1234"]
            pdfs = grp["stellar pdfs"]
            assert pdfs.shape == (3, 30, 32)
            assert pdfs.dtype == np.float32
            np.testing.assert_array_equal(pdfs.attrs["N_bins"], [30, 32])
            np.testing.assert_array_equal(grp["obj_id"][:], [42, 7, 99])
            assert grp["star chi2"].shape == (3,)
            assert grp["star chi2"][1] == np.inf
            assert np.all(pdfs[1] == 0)
            assert grp.attrs["healpix_index"] == 1234
            assert grp.attrs["nside"] == 64
            assert grp.attrs["nested"]
            assert grp.attrs["l"] == pytest.approx(90.0)
            assert grp.attrs["EBV"] == pytest.approx(0.5)

    def test_rerun_is_skipped(self, stellar_data, stellar_library, ext_model, config,
                              tmp_path):
        fname = str(tmp_path / "out.h5")
        process_pixel(stellar_data, stellar_library, ext_model, fname, config=config)
        with h5py.File(fname, "r") as f:
            before = f["pixel 64-1234/stellar pdfs"][:]

        result = process_pixel(stellar_data, stellar_library, ext_model, fname,
                               config=config)
        assert result.status == STATUS_SKIPPED
        assert result.chi2 is None
        with h5py.File(fname, "r") as f:
            np.testing.assert_array_equal(f["pixel 64-1234/stellar pdfs"][:], before)

    def test_chi2_cut_culls(self, stellar_data, stellar_library, ext_model, config,
                            tmp_path):
        fname = str(tmp_path / "out.h5")
        result = process_pixel(stellar_data, stellar_library, ext_model, fname,
                               config=config.copy(chi2_max=10.0))
        np.testing.assert_array_equal(result.keep, [True, True, False])

        with h5py.File(fname, "r") as f:
            grp = f["pixel 64-1234"]
            assert grp["stellar pdfs"].shape == (2, 30, 32)
            np.testing.assert_array_equal(grp["obj_id"][:], [42, 7])
            np.testing.assert_allclose(grp["star chi2"][:], result.chi2[:2])

    def test_drop_failed_stars(self, stellar_data, stellar_library, ext_model, config,
                               tmp_path):
        fname = str(tmp_path / "out.h5")
        result = process_pixel(stellar_data, stellar_library, ext_model, fname,
                               config=config.copy(chi2_max=10.0, keep_failed=False))
        np.testing.assert_array_equal(result.keep, [True, False, False])
        with h5py.File(fname, "r") as f:
            np.testing.assert_array_equal(f["pixel 64-1234/obj_id"][:], [42])

    def test_with_galactic_prior(self, stellar_data, stellar_library_with_gaps,
                                 ext_model, config, tmp_path):
        fname = str(tmp_path / "out.h5")
        with pytest.warns(UserWarning):
            result = process_pixel(stellar_data, stellar_library_with_gaps, ext_model,
                                   fname, config=config.copy(use_priors=True))
        assert result.status == STATUS_SAVED
        assert np.isfinite(result.chi2[0])

    def test_empty_pixel(self, stellar_library, ext_model, config, tmp_path):
        fname = str(tmp_path / "out.h5")
        data = StellarData(nside=64, healpix_index=5, l=10.0, b=-5.0)
        result = process_pixel(data, stellar_library, ext_model, fname, config=config)
        assert result.status == STATUS_SAVED
        with h5py.File(fname, "r") as f:
            assert f["pixel 64-5/stellar pdfs"].shape == (0, 30, 32)
            assert f["pixel 64-5/star chi2"].shape == (0,)


class TestProcessFile:
    """Whole-catalog runs."""

    @pytest.fixture
    def input_file(self, stellar_data, tmp_path):
        fname = str(tmp_path / "input.h5")
        stellar_data.save(fname, "photometry", stellar_data.pix_name)
        other = StellarData(nside=64, healpix_index=77, l=91.0, b=31.0,
                            stars=[stellar_data[0]])
        other.save(fname, "photometry", other.pix_name)
        return fname

    def test_all_pixels(self, input_file, stellar_library, ext_model, config, tmp_path):
        out_fname = str(tmp_path / "out.h5")
        results = process_file(input_file, out_fname, stellar_library, ext_model,
                               config=config, err_floor=0.0)

        assert sorted(r.pix_name for r in results) == ["pixel 64-1234", "pixel 64-77"]
        assert all(r.status == STATUS_SAVED for r in results)
        with h5py.File(out_fname, "r") as f:
            assert f["pixel 64-77/stellar pdfs"].shape == (1, 30, 32)

        again = process_file(input_file, out_fname, stellar_library, ext_model,
                             config=config, err_floor=0.0)
        assert all(r.status == STATUS_SKIPPED for r in again)

    def test_failed_pixel_is_reported(self, input_file, stellar_library, ext_model,
                                      config, tmp_path):
        out_fname = str(tmp_path / "out.h5")
        with pytest.warns(UserWarning, match="missing"):
            results = process_file(input_file, out_fname, stellar_library, ext_model,
                                   config=config, pixels=["pixel 64-1234", "missing"])

        assert [r.status for r in results] == [STATUS_SAVED, STATUS_FAILED]
        assert pixel_is_complete(out_fname, "pixel 64-1234")
        assert not pixel_is_complete(out_fname, "missing")
