#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Per-pixel processing of stellar catalogs.

A pixel goes through the stages load, grid evaluation, filtering, culling,
reddening-axis smoothing and saving. Pixels whose output already exists are
skipped, so an interrupted run can be restarted on the same output file.

Functions
---------
pixel_is_complete : Output check
    Whether every expected dataset of a pixel already exists.
star_keep_mask : Star selection
    Which stars survive the goodness-of-fit cut.
process_pixel : One pixel
    Evaluate, filter, cull, smooth and save one `StellarData`.
process_file : One catalog
    Run `process_pixel` over every pixel of an input file.

Output layout
-------------
Each processed pixel becomes the group `/<pix_name>` with the datasets

- `stellar pdfs`: `float32` array `(N_kept, N_E, N_mu)` with the grid
  geometry in the attributes `min`, `max` and `N_bins`,
- `star chi2`: chi-square per passband of the kept stars,
- `obj_id`: identifiers of the kept stars,

and the pixel metadata `l`, `b`, `healpix_index`, `nside`, `nested` and
`EBV` as group attributes.
"""

import sys
import time
import warnings
from collections import namedtuple

import h5py
import numpy as np

from ..core.image_stack import ImageStack, write_surfaces
from ..data.photometry import StellarData, get_input_pixels
from ..priors.galactic import GalacticLOSModel
from .config import GridEvalConfig
from .grid_eval import grid_eval_stars, smooth_along_ebv

__all__ = [
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

# Datasets that must exist for a pixel to count as processed.
OUTPUT_DATASETS = ("stellar pdfs", "star chi2")

STATUS_SAVED = "SAVED"
STATUS_SKIPPED = "SKIPPED"
STATUS_FAILED = "FAILED"

PixelResult = namedtuple("PixelResult", ["pix_name", "status", "chi2", "keep"])
PixelResult.__doc__ = """\
Outcome of processing one pixel.

Attributes
----------
pix_name : str
    Pixel name.
status : str
    One of `STATUS_SAVED`, `STATUS_SKIPPED` or `STATUS_FAILED`.
chi2 : `~numpy.ndarray` or None
    Chi-square per passband of every star, before culling.
keep : `~numpy.ndarray` of bool or None
    Which stars were kept.
"""


def pixel_is_complete(out_fname, pix_name, dsets=OUTPUT_DATASETS):
    """
    Check whether a pixel's output already exists.

    Parameters
    ----------
    out_fname : str
        Output HDF5 file. A file that does not exist yet holds no pixels.

    pix_name : str
        Pixel name.

    dsets : iterable of str, optional
        Datasets that must exist under `/<pix_name>`. Default is
        `OUTPUT_DATASETS`.

    Returns
    -------
    complete : bool
    """
    try:
        f = h5py.File(out_fname, "r")
    except (OSError, FileNotFoundError):
        return False

    with f:
        group = f"/{pix_name}"
        if group not in f:
            return False
        return all(d in f[group] for d in dsets)


def star_keep_mask(chi2, chi2_max=np.inf, evidence=None, evidence_min=None,
                   keep_failed=True):
    """
    Select the stars that survive the goodness-of-fit cuts.

    Parameters
    ----------
    chi2 : array_like with shape (Nstars,)
        Chi-square per passband of each star.

    chi2_max : float, optional
        Stars with a finite `chi2` above this value are dropped. Default is
        `inf`.

    evidence : array_like with shape (Nstars,), optional
        Log-evidence of each star.

    evidence_min : float, optional
        Stars whose `evidence` is below this value are dropped. Only used
        when `evidence` is also given.

    keep_failed : bool, optional
        Whether stars with a non-finite `chi2` (no usable bands or no
        successful fit) are kept. Default is `True`.

    Returns
    -------
    keep : `~numpy.ndarray` of bool with shape (Nstars,)
    """
    chi2 = np.asarray(chi2, dtype=float)
    failed = ~np.isfinite(chi2)

    with np.errstate(invalid="ignore"):
        keep = ~failed & (chi2 <= chi2_max)
    if keep_failed:
        keep |= failed

    if evidence is not None and evidence_min is not None:
        evidence = np.asarray(evidence, dtype=float)
        if evidence.shape != chi2.shape:
            raise ValueError("evidence and chi2 must have the same shape")
        with np.errstate(invalid="ignore"):
            keep &= evidence >= evidence_min

    return keep


def _write_pixel(out_fname, stellar_data, img_stack, chi2, obj_id, compression):
    """Write every output dataset of one pixel in a single file session."""
    group = f"/{stellar_data.pix_name}"
    with h5py.File(out_fname, "a") as f:
        write_surfaces(f, group, "stellar pdfs", img_stack.img, img_stack.rect,
                       compression=compression)
        grp = f[group]
        for name, data in (("star chi2", chi2.astype(np.float32)),
                           ("obj_id", obj_id.astype(np.uint64))):
            if name in grp:
                del grp[name]
            grp.create_dataset(name, data=data)
        grp.attrs["l"] = stellar_data.l
        grp.attrs["b"] = stellar_data.b
        grp.attrs["healpix_index"] = stellar_data.healpix_index
        grp.attrs["nside"] = stellar_data.nside
        grp.attrs["nested"] = stellar_data.nested
        grp.attrs["EBV"] = stellar_data.EBV


def process_pixel(stellar_data, stellar_library, ext_model, out_fname,
                  config=None, los_model=None, pool=None):
    """
    Evaluate, filter, cull, smooth and save the stars of one pixel.

    Parameters
    ----------
    stellar_data : `~stellarpdf.data.photometry.StellarData`
        Stars of the pixel.

    stellar_library : `~stellarpdf.core.library.StellarLibrary`
        SED templates.

    ext_model : `~stellarpdf.core.extinction.ExtinctionModel`
        Extinction coefficients.

    out_fname : str
        Output HDF5 file.

    config : `~stellarpdf.analysis.config.GridEvalConfig`, optional
        Evaluation settings. Defaults to `GridEvalConfig()`.

    los_model : `~stellarpdf.priors.galactic.GalacticLOSModel`, optional
        Galactic prior. Built for the pixel's `(l, b)` when priors are
        enabled and no model is given.

    pool : user-provided pool, optional
        Any object with a `map` method used to evaluate stars in parallel.

    Returns
    -------
    result : `PixelResult`
    """
    if config is None:
        config = GridEvalConfig()
    pix_name = stellar_data.pix_name

    if pixel_is_complete(out_fname, pix_name):
        if config.verbose:
            sys.stderr.write(f"{pix_name} already processed, skipping.\n")
        return PixelResult(pix_name, STATUS_SKIPPED, None, None)

    t_start = time.perf_counter()

    if los_model is None and config.use_priors:
        los_model = GalacticLOSModel(stellar_data.l, stellar_data.b)

    n_stars = len(stellar_data)
    img_stack = ImageStack(n_stars)
    chi2 = grid_eval_stars(
        los_model, ext_model, stellar_library, stellar_data, img_stack,
        config=config, pool=pool, smooth_ebv=False,
    )

    keep = star_keep_mask(chi2, chi2_max=config.chi2_max, keep_failed=config.keep_failed)
    obj_id = np.array([s.obj_id for s in stellar_data], dtype=np.uint64)
    chi2_kept, obj_id_kept = img_stack.cull_arrays(keep, chi2, obj_id)
    img_stack.cull(keep)

    smooth_along_ebv(
        img_stack, config.ebv_smoothing, stellar_data.nside,
        n_sigma=config.ebv_n_sigma, verbose=config.verbose,
    )

    _write_pixel(out_fname, stellar_data, img_stack, chi2_kept, obj_id_kept,
                 config.compression)

    if config.verbose:
        sys.stderr.write(
            f"{pix_name}: kept {int(np.sum(keep))} of {n_stars} stars "
            f"({time.perf_counter() - t_start:.2f} s)\n"
        )

    return PixelResult(pix_name, STATUS_SAVED, chi2, keep)


def process_file(in_fname, out_fname, stellar_library, ext_model, config=None,
                 group="photometry", pixels=None, pool=None, err_floor=0.02,
                 default_EBV=5.0):
    """
    Process every pixel of an input catalog.

    A pixel that raises is reported with `warnings.warn` and recorded as
    `STATUS_FAILED`; the remaining pixels are still processed.

    Parameters
    ----------
    in_fname : str
        Input HDF5 catalog.

    out_fname : str
        Output HDF5 file.

    stellar_library : `~stellarpdf.core.library.StellarLibrary`
        SED templates.

    ext_model : `~stellarpdf.core.extinction.ExtinctionModel`
        Extinction coefficients.

    config : `~stellarpdf.analysis.config.GridEvalConfig`, optional
        Evaluation settings.

    group : str, optional
        Input group holding the pixel datasets. Default is `'photometry'`.

    pixels : iterable of str, optional
        Subset of pixel datasets to process. Defaults to every pixel in
        the file.

    pool : user-provided pool, optional
        Passed to `process_pixel`.

    err_floor, default_EBV : float, optional
        Passed to `~stellarpdf.data.photometry.StellarData.load`.

    Returns
    -------
    results : list of `PixelResult`
    """
    if config is None:
        config = GridEvalConfig()
    if pixels is None:
        pixels = get_input_pixels(in_fname, group=group)

    results = []
    for n, pix_name in enumerate(pixels):
        if config.verbose:
            sys.stderr.write(f"Pixel {n + 1} of {len(pixels)}: {pix_name}\n")
        try:
            if pixel_is_complete(out_fname, pix_name):
                results.append(PixelResult(pix_name, STATUS_SKIPPED, None, None))
                continue
            stellar_data = StellarData.load(
                in_fname, group, pix_name,
                err_floor=err_floor, default_EBV=default_EBV,
                verbose=config.verbose,
            )
            results.append(
                process_pixel(stellar_data, stellar_library, ext_model, out_fname,
                              config=config, pool=pool)
            )
        except Exception as e:
            warnings.warn(f"Processing of {pix_name} failed: {type(e).__name__}: {e}")
            results.append(PixelResult(pix_name, STATUS_FAILED, None, None))

    return results
