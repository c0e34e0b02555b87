#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Per-star photometry and per-pixel stellar catalogs.

Input catalogs are HDF5 files with one structured dataset per HEALPix pixel,
usually stored under the `photometry` group as `pixel <nside>-<index>`.
Each row holds a star's identifier, position, parallax and per-band
magnitudes, uncertainties, limiting magnitudes and detection counts. The
pixel's metadata is stored as attributes of the dataset.

Classes
-------
PhotometryRecord : One star
    Observed magnitudes and uncertainties with missing bands flagged.
StellarData : One pixel
    Pixel metadata and an ordered list of `PhotometryRecord`.

Functions
---------
photometry_dtype : File row layout
    Structured dtype of a catalog row for a given number of bands.
get_input_pixels : Catalog listing
    Names of the pixel datasets in an input file.

Notes
-----
A band is missing when its uncertainty is non-finite, not positive or above
`MISSING_ERR_THRESHOLD`. Rows read from disk are converted with
`PhotometryRecord.from_row`, which adds an error floor in quadrature and
writes `MISSING_ERR` into bands that cannot be used.
"""

import sys

import h5py
import healpy as hp
import numpy as np

from ..utils.photometry import (
    MISSING_ERR,
    MISSING_ERR_THRESHOLD,
    lnl_norm,
    valid_band_mask,
)

__all__ = [
    "DEFAULT_MAGLIMIT",
    "DEFAULT_MAGLIM_WIDTH",
    "photometry_dtype",
    "PhotometryRecord",
    "StellarData",
    "get_input_pixels",
]

DEFAULT_MAGLIMIT = 23.0
DEFAULT_MAGLIM_WIDTH = 0.20


def photometry_dtype(nbands):
    """
    Structured dtype of one catalog row.

    Parameters
    ----------
    nbands : int
        Number of photometric bands.

    Returns
    -------
    dtype : `~numpy.dtype`
        Fields `obj_id`, `l`, `b`, `pi`, `pi_err`, `mag`, `err`, `maglimit`,
        `maglim_width`, `N_det` and `EBV`.
    """
    return np.dtype(
        [
            ("obj_id", "u8"),
            ("l", "f8"),
            ("b", "f8"),
            ("pi", "f8"),
            ("pi_err", "f8"),
            ("mag", "f4", (nbands,)),
            ("err", "f4", (nbands,)),
            ("maglimit", "f4", (nbands,)),
            ("maglim_width", "f4", (nbands,)),
            ("N_det", "u4", (nbands,)),
            ("EBV", "f4"),
        ]
    )


def _read_only(a, dtype=float):
    a = np.array(a, dtype=dtype)
    a.setflags(write=False)
    return a


class PhotometryRecord(object):
    """
    Photometry of a single star.

    Parameters
    ----------
    mag : array_like with shape (Nbands,)
        Observed magnitudes.

    err : array_like with shape (Nbands,)
        Magnitude uncertainties. Missing bands carry a non-finite value or a
        value above `MISSING_ERR_THRESHOLD`.

    obj_id : int, optional
        Object identifier. Default is `0`.

    l, b : float, optional
        Galactic coordinates in degrees. Default is NaN.

    pi, pi_err : float, optional
        Parallax and its uncertainty in arcseconds. Default is NaN, which
        disables the parallax term.

    maglimit : array_like with shape (Nbands,), optional
        Limiting magnitude in each band. Default is `23.`.

    maglim_width : array_like with shape (Nbands,), optional
        Width of the completeness roll-off. Default is `0.2`.

    N_det : array_like with shape (Nbands,), optional
        Number of detections per band. Default is one per valid band.

    EBV : float, optional
        Prior estimate of the reddening. Default is NaN.

    Attributes
    ----------
    lnL_norm : float
        Gaussian normalization `sum(0.5 ln(2 pi) + ln(err))` over the valid
        bands.

    Raises
    ------
    ValueError
        If the per-band arrays disagree in length.
    """

    def __init__(self, mag, err, obj_id=0, l=np.nan, b=np.nan, pi=np.nan,
                 pi_err=np.nan, maglimit=None, maglim_width=None, N_det=None,
                 EBV=np.nan):
        self.mag = _read_only(mag)
        self.err = _read_only(err)
        nbands = len(self.mag)

        if maglimit is None:
            maglimit = np.full(nbands, DEFAULT_MAGLIMIT)
        if maglim_width is None:
            maglim_width = np.full(nbands, DEFAULT_MAGLIM_WIDTH)
        if N_det is None:
            N_det = valid_band_mask(self.err).astype(int)

        self.maglimit = _read_only(maglimit)
        self.maglim_width = _read_only(maglim_width)
        self.N_det = _read_only(N_det, dtype=int)

        for name in ("mag", "err", "maglimit", "maglim_width", "N_det"):
            if getattr(self, name).shape != (nbands,):
                raise ValueError(
                    f"'{name}' has shape {getattr(self, name).shape}, "
                    f"expected ({nbands},)"
                )

        self.obj_id = int(obj_id)
        self.l = float(l)
        self.b = float(b)
        self.pi = float(pi)
        self.pi_err = float(pi_err)
        self.EBV = float(EBV)
        self.lnL_norm = lnl_norm(self.err)

    @classmethod
    def from_row(cls, row, err_floor=0.02, default_EBV=5.0):
        """
        Build a record from one row of an input catalog.

        Parameters
        ----------
        row : `~numpy.void`
            Row with the fields of `photometry_dtype`. `maglimit`,
            `maglim_width` and `N_det` are optional.

        err_floor : float, optional
            Uncertainty added in quadrature to every valid band. Default is
            `0.02` mag.

        default_EBV : float, optional
            Reddening estimate used when the row's `EBV` is not finite or not
            positive. Default is `5.`.

        Returns
        -------
        record : `PhotometryRecord`
        """
        names = row.dtype.names
        mag = np.array(row["mag"], dtype=float)
        err = np.array(row["err"], dtype=float)
        nbands = len(mag)

        if "N_det" in names:
            N_det = np.array(row["N_det"], dtype=int)
        else:
            N_det = np.ones(nbands, dtype=int)

        with np.errstate(invalid="ignore"):
            valid = (
                np.isfinite(mag)
                & np.isfinite(err)
                & (err > 0.0)
                & (err <= MISSING_ERR_THRESHOLD)
                & (N_det > 0)
            )
        err = np.where(valid, np.sqrt(np.where(valid, err, 0.0) ** 2 + err_floor**2),
                       MISSING_ERR)
        mag = np.where(valid, mag, 0.0)

        maglimit = np.full(nbands, DEFAULT_MAGLIMIT)
        if "maglimit" in names:
            raw = np.array(row["maglimit"], dtype=float)
            maglimit = np.where(np.isfinite(raw) & (raw > 0.0), raw, DEFAULT_MAGLIMIT)

        maglim_width = np.full(nbands, DEFAULT_MAGLIM_WIDTH)
        if "maglim_width" in names:
            raw = np.array(row["maglim_width"], dtype=float)
            maglim_width = np.where(np.isfinite(raw) & (raw > 0.0), raw,
                                    DEFAULT_MAGLIM_WIDTH)

        EBV = float(row["EBV"]) if "EBV" in names else np.nan
        if not (np.isfinite(EBV) and EBV > 0.0):
            EBV = default_EBV

        def _field(name):
            return float(row[name]) if name in names else np.nan

        return cls(
            mag,
            err,
            obj_id=int(row["obj_id"]) if "obj_id" in names else 0,
            l=_field("l"),
            b=_field("b"),
            pi=_field("pi"),
            pi_err=_field("pi_err"),
            maglimit=maglimit,
            maglim_width=maglim_width,
            N_det=N_det,
            EBV=EBV,
        )

    @property
    def nbands(self):
        """Number of bands."""
        return len(self.mag)

    @property
    def valid(self):
        """Mask of usable bands."""
        return valid_band_mask(self.err)

    @property
    def n_passbands(self):
        """Number of usable bands."""
        return int(np.sum(self.valid))

    def to_row(self, dtype=None):
        """Return the record as one row of `photometry_dtype(nbands)`."""
        if dtype is None:
            dtype = photometry_dtype(self.nbands)
        row = np.zeros(1, dtype=dtype)[0]
        row["obj_id"] = self.obj_id
        row["l"] = self.l
        row["b"] = self.b
        row["pi"] = self.pi
        row["pi_err"] = self.pi_err
        row["mag"] = self.mag
        row["err"] = self.err
        row["maglimit"] = self.maglimit
        row["maglim_width"] = self.maglim_width
        row["N_det"] = self.N_det
        row["EBV"] = self.EBV
        return row

    def __repr__(self):
        return (
            f"PhotometryRecord(obj_id={self.obj_id}, nbands={self.nbands}, "
            f"n_passbands={self.n_passbands})"
        )


class StellarData(object):
    """
    Stars observed in one HEALPix pixel.

    Parameters
    ----------
    pix_name : str, optional
        Name of the pixel, used as the output group. Defaults to
        `'pixel <nside>-<healpix_index>'`.

    healpix_index : int, optional
        HEALPix index of the pixel. Default is `0`.

    nside : int, optional
        HEALPix resolution. Default is `1`.

    nested : bool, optional
        Whether `healpix_index` uses the nested ordering. Default is `True`.

    l, b : float, optional
        Galactic coordinates of the pixel center in degrees.

    EBV : float, optional
        Pixel-level reddening estimate.

    stars : iterable of `PhotometryRecord`, optional
        Initial list of stars.

    Examples
    --------
    >>> pixels = get_input_pixels("input.h5")
    >>> data = StellarData.load("input.h5", "photometry", pixels[0])
    >>> len(data), data.nside
    """

    def __init__(self, pix_name=None, healpix_index=0, nside=1, nested=True,
                 l=np.nan, b=np.nan, EBV=np.nan, stars=None):
        self.healpix_index = int(healpix_index)
        self.nside = int(nside)
        self.nested = bool(nested)
        self.l = float(l)
        self.b = float(b)
        self.EBV = float(EBV)
        if pix_name is None:
            pix_name = f"pixel {self.nside}-{self.healpix_index}"
        self.pix_name = str(pix_name)
        self.star = list(stars) if stars is not None else []

    @classmethod
    def from_coords(cls, l, b, nside, nested=True, **kwargs):
        """
        Create an empty pixel containing the Galactic position `(l, b)`.

        The HEALPix index is computed with `healpy.ang2pix`.
        """
        healpix_index = int(hp.ang2pix(nside, l, b, nest=nested, lonlat=True))
        return cls(healpix_index=healpix_index, nside=nside, nested=nested,
                   l=l, b=b, **kwargs)

    def __len__(self):
        return len(self.star)

    def __getitem__(self, idx):
        return self.star[idx]

    def __iter__(self):
        return iter(self.star)

    def append(self, record):
        """Add a star to the pixel."""
        if not isinstance(record, PhotometryRecord):
            raise TypeError(f"Expected a PhotometryRecord, got {type(record).__name__}")
        if self.star and record.nbands != self.star[0].nbands:
            raise ValueError(
                f"Record has {record.nbands} bands, pixel has {self.star[0].nbands}"
            )
        self.star.append(record)

    def clear(self):
        """Remove every star."""
        self.star.clear()

    @property
    def nbands(self):
        """Number of bands, or `0` for an empty pixel."""
        return self.star[0].nbands if self.star else 0

    @property
    def pixel_scale(self):
        """Approximate pixel size in arcminutes."""
        return float(hp.nside2resol(self.nside, arcmin=True))

    @classmethod
    def load(cls, fname, group, dset, err_floor=0.02, default_EBV=5.0,
             verbose=False):
        """
        Read one pixel from an input catalog.

        Parameters
        ----------
        fname : str
            Input HDF5 file.

        group : str
            Group containing the pixel datasets.

        dset : str
            Pixel dataset name. Also used as `pix_name`.

        err_floor : float, optional
            Uncertainty added in quadrature to every valid band. Default is
            `0.02`.

        default_EBV : float, optional
            Replacement for unusable per-star reddening estimates. Default is
            `5.`.

        verbose : bool, optional
            Whether to print a summary to `stderr`. Default is `False`.

        Returns
        -------
        data : `StellarData`

        Raises
        ------
        KeyError
            If the dataset does not exist.
        """
        with h5py.File(fname, "r") as f:
            path = f"{group}/{dset}"
            if path not in f:
                raise KeyError(f"Dataset '{path}' not found in {fname}")
            ds = f[path]
            rows = ds[:]
            attrs = dict(ds.attrs)

        data = cls(
            pix_name=dset,
            healpix_index=attrs.get("healpix_index", 0),
            nside=attrs.get("nside", 1),
            nested=attrs.get("nested", True),
            l=attrs.get("l", np.nan),
            b=attrs.get("b", np.nan),
            EBV=attrs.get("EBV", np.nan),
        )
        for row in rows:
            data.star.append(
                PhotometryRecord.from_row(row, err_floor=err_floor, default_EBV=default_EBV)
            )

        if verbose:
            sys.stderr.write(
                f"Loaded {len(data)} stars from {fname}:{path} "
                f"(nside={data.nside}, l={data.l:.3f}, b={data.b:.3f})\n"
            )

        return data

    def to_array(self):
        """Stack the stars into a structured array of `photometry_dtype`."""
        dtype = photometry_dtype(self.nbands)
        return np.array([s.to_row(dtype) for s in self.star], dtype=dtype)

    def save(self, fname, group, dset, compression=9):
        """
        Write the pixel to an HDF5 file, replacing an existing dataset.

        The stars are written as a structured dataset `group/dset` and the
        pixel metadata as its attributes.
        """
        arr = self.to_array() if self.star else np.zeros(0, dtype=photometry_dtype(1))

        with h5py.File(fname, "a") as f:
            grp = f.require_group(group)
            if dset in grp:
                del grp[dset]
            kwargs = {}
            if len(arr) > 0:
                kwargs = dict(compression="gzip", compression_opts=compression,
                              chunks=True)
            ds = grp.create_dataset(dset, data=arr, **kwargs)
            ds.attrs["healpix_index"] = self.healpix_index
            ds.attrs["nside"] = self.nside
            ds.attrs["nested"] = self.nested
            ds.attrs["l"] = self.l
            ds.attrs["b"] = self.b
            ds.attrs["EBV"] = self.EBV

    @staticmethod
    def get_input_pixels(fname, group="photometry"):
        """List the pixel datasets of an input catalog. See `get_input_pixels`."""
        return get_input_pixels(fname, group=group)

    def __repr__(self):
        return (
            f"StellarData(pix_name='{self.pix_name}', nside={self.nside}, "
            f"n_stars={len(self)})"
        )


def get_input_pixels(fname, group="photometry"):
    """
    List the pixel datasets of an input catalog.

    Parameters
    ----------
    fname : str
        Input HDF5 file.

    group : str, optional
        Group holding the pixel datasets. Default is `'photometry'`.

    Returns
    -------
    pixels : list of str
        Dataset names, in file order.

    Raises
    ------
    KeyError
        If the group does not exist.
    """
    with h5py.File(fname, "r") as f:
        if group not in f:
            raise KeyError(f"Group '{group}' not found in {fname}")
        return [k for k, v in f[group].items() if isinstance(v, h5py.Dataset)]
