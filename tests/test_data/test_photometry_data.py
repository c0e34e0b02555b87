#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for per-star photometry records and per-pixel catalogs.
"""

import h5py
import healpy as hp
import numpy as np
import pytest

from stellarpdf.data.photometry import (
    DEFAULT_MAGLIMIT,
    DEFAULT_MAGLIM_WIDTH,
    PhotometryRecord,
    StellarData,
    get_input_pixels,
    photometry_dtype,
)
from stellarpdf.utils.photometry import MISSING_ERR


def _row(mag, err, N_det=None, EBV=0.3, obj_id=5):
    nbands = len(mag)
    row = np.zeros(1, dtype=photometry_dtype(nbands))[0]
    row["obj_id"] = obj_id
    row["l"] = 120.0
    row["b"] = -15.0
    row["pi"] = 0.001
    row["pi_err"] = 0.0002
    row["mag"] = mag
    row["err"] = err
    row["maglimit"] = np.full(nbands, 22.0)
    row["N_det"] = np.ones(nbands) if N_det is None else N_det
    row["EBV"] = EBV
    return row


class TestPhotometryRecord:
    """Construction and missing-band bookkeeping."""

    def test_defaults(self):
        rec = PhotometryRecord([15.0, 14.5, 14.0], [0.02, 1.0e10, 0.03])
        np.testing.assert_array_equal(rec.valid, [True, False, True])
        assert rec.n_passbands == 2
        np.testing.assert_array_equal(rec.N_det, [1, 0, 1])
        np.testing.assert_array_equal(rec.maglimit, DEFAULT_MAGLIMIT)
        assert np.isnan(rec.pi)

    def test_lnl_norm(self):
        rec = PhotometryRecord([15.0, 14.5, 14.0], [0.02, np.nan, 0.03])
        expected = 2 * 0.9189385332 + np.log(0.02) + np.log(0.03)
        assert rec.lnL_norm == pytest.approx(expected)

    def test_read_only(self):
        rec = PhotometryRecord([15.0, 14.5], [0.02, 0.02])
        with pytest.raises(ValueError):
            rec.mag[0] = 1.0
        with pytest.raises(ValueError):
            rec.err[0] = 1.0

    def test_length_check(self):
        with pytest.raises(ValueError):
            PhotometryRecord([15.0, 14.5], [0.02, 0.02], maglimit=[22.0])

    def test_from_row_error_floor(self):
        row = _row([15.0, 14.5, 14.0], [0.01, 0.05, 0.0])
        rec = PhotometryRecord.from_row(row, err_floor=0.02)

        raw = np.array([0.01, 0.05], dtype=np.float32).astype(float)
        np.testing.assert_allclose(rec.err[:2], np.sqrt(raw**2 + 0.02**2))
        assert rec.err[2] == MISSING_ERR
        assert rec.mag[2] == 0.0
        assert rec.n_passbands == 2
        assert rec.obj_id == 5
        assert rec.l == 120.0
        assert rec.pi == pytest.approx(0.001)

    def test_from_row_missing_bands(self):
        row = _row([15.0, np.nan, 14.0, 13.5], [0.02, 0.02, np.inf, 0.02],
                   N_det=[1, 1, 1, 0])
        rec = PhotometryRecord.from_row(row)
        np.testing.assert_array_equal(rec.valid, [True, False, False, False])
        np.testing.assert_array_equal(rec.mag[1:], 0.0)

    def test_from_row_default_ebv(self):
        for EBV in (np.nan, 0.0, -1.0):
            rec = PhotometryRecord.from_row(_row([15.0, 14.0], [0.02, 0.02], EBV=EBV),
                                            default_EBV=5.0)
            assert rec.EBV == 5.0
        rec = PhotometryRecord.from_row(_row([15.0, 14.0], [0.02, 0.02], EBV=0.25))
        assert rec.EBV == pytest.approx(0.25)

    def test_to_row_round_trip(self):
        rec = PhotometryRecord([15.0, 14.5], [0.02, 1.0e10], obj_id=3, l=10.0, b=20.0)
        back = PhotometryRecord.from_row(rec.to_row(), err_floor=0.0)
        np.testing.assert_array_equal(back.valid, rec.valid)
        np.testing.assert_allclose(back.mag[0], 15.0)
        np.testing.assert_allclose(back.err[0], 0.02, rtol=1e-6)
        assert back.obj_id == 3

    def test_maglim_width_round_trip(self):
        rec = PhotometryRecord([15.0, 14.5], [0.02, 0.02], maglim_width=[0.15, 0.35])
        back = PhotometryRecord.from_row(rec.to_row(), err_floor=0.0)
        np.testing.assert_allclose(back.maglim_width, [0.15, 0.35], rtol=1e-6)

    def test_from_row_maglim_width_default(self):
        row = _row([15.0, 14.0], [0.02, 0.02])
        row["maglim_width"] = [0.3, np.nan]
        rec = PhotometryRecord.from_row(row)
        np.testing.assert_allclose(rec.maglim_width, [0.3, DEFAULT_MAGLIM_WIDTH], rtol=1e-6)

        legacy = np.zeros(1, dtype=[("mag", "f4", (2,)), ("err", "f4", (2,))])[0]
        legacy["mag"] = [15.0, 14.0]
        legacy["err"] = [0.02, 0.02]
        rec = PhotometryRecord.from_row(legacy)
        np.testing.assert_array_equal(rec.maglim_width, DEFAULT_MAGLIM_WIDTH)


class TestStellarData:
    """Pixel container."""

    def test_default_name(self):
        data = StellarData(healpix_index=17, nside=8)
        assert data.pix_name == "pixel 8-17"
        assert len(data) == 0
        assert data.nbands == 0

    def test_from_coords(self):
        data = StellarData.from_coords(90.0, 30.0, 64)
        assert data.healpix_index == hp.ang2pix(64, 90.0, 30.0, nest=True, lonlat=True)
        assert data.pix_name == f"pixel 64-{data.healpix_index}"

    def test_append_and_index(self, synthetic_record, missing_record):
        data = StellarData(nside=4)
        data.append(synthetic_record)
        data.append(missing_record)
        assert len(data) == 2
        assert data[1] is missing_record
        assert [s.obj_id for s in data] == [42, 7]
        data.clear()
        assert len(data) == 0

    def test_append_checks(self, synthetic_record):
        data = StellarData(stars=[synthetic_record])
        with pytest.raises(ValueError):
            data.append(PhotometryRecord([15.0], [0.02]))
        with pytest.raises(TypeError):
            data.append("not a record")

    def test_pixel_scale(self):
        data = StellarData(nside=64)
        assert data.pixel_scale == pytest.approx(hp.nside2resol(64, arcmin=True))

    def test_save_load_round_trip(self, stellar_data, tmp_path):
        fname = str(tmp_path / "input.h5")
        stellar_data.save(fname, "photometry", stellar_data.pix_name)

        loaded = StellarData.load(fname, "photometry", stellar_data.pix_name,
                                  err_floor=0.0)

        assert loaded.pix_name == stellar_data.pix_name
        assert loaded.healpix_index == 1234
        assert loaded.nside == 64
        assert loaded.nested
        assert loaded.l == pytest.approx(90.0)
        assert loaded.b == pytest.approx(30.0)
        assert loaded.EBV == pytest.approx(0.5)
        assert len(loaded) == len(stellar_data)
        for a, b in zip(loaded, stellar_data):
            assert a.obj_id == b.obj_id
            np.testing.assert_array_equal(a.valid, b.valid)
            np.testing.assert_allclose(a.mag[a.valid], b.mag[b.valid], rtol=1e-6)
            np.testing.assert_allclose(a.err[a.valid], b.err[b.valid], rtol=1e-6)

    def test_save_load_keeps_maglim_width(self, tmp_path):
        data = StellarData(nside=4, healpix_index=9, stars=[
            PhotometryRecord([15.0, 14.5], [0.02, 0.03], obj_id=1,
                             maglim_width=[0.12, 0.4]),
        ])
        fname = str(tmp_path / "input.h5")
        data.save(fname, "photometry", data.pix_name)
        loaded = StellarData.load(fname, "photometry", data.pix_name)
        np.testing.assert_allclose(loaded[0].maglim_width, [0.12, 0.4], rtol=1e-6)

    def test_save_empty(self, tmp_path):
        fname = str(tmp_path / "input.h5")
        StellarData(nside=2, healpix_index=3).save(fname, "photometry", "pixel 2-3")
        loaded = StellarData.load(fname, "photometry", "pixel 2-3")
        assert len(loaded) == 0
        assert loaded.nside == 2

    def test_load_missing(self, tmp_path):
        fname = str(tmp_path / "input.h5")
        StellarData(nside=2).save(fname, "photometry", "pixel 2-0")
        with pytest.raises(KeyError):
            StellarData.load(fname, "photometry", "pixel 2-1")


class TestInputPixels:
    """Listing of pixel datasets."""

    def test_listing(self, tmp_path):
        fname = str(tmp_path / "input.h5")
        for idx in (3, 1, 2):
            StellarData(nside=2, healpix_index=idx).save(fname, "photometry", f"pixel 2-{idx}")
        with h5py.File(fname, "a") as f:
            f["photometry"].create_group("not a pixel")

        pixels = get_input_pixels(fname)
        assert sorted(pixels) == ["pixel 2-1", "pixel 2-2", "pixel 2-3"]
        assert StellarData.get_input_pixels(fname) == pixels

    def test_missing_group(self, tmp_path):
        fname = str(tmp_path / "input.h5")
        StellarData(nside=2).save(fname, "photometry", "pixel 2-0")
        with pytest.raises(KeyError):
            get_input_pixels(fname, group="other")
