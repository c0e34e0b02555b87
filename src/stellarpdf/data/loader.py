#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Data loading utilities for stellarpdf.

This module contains functions for reading and writing the SED template
library, the extinction coefficient table and the luminosity function.
"""

import sys

import h5py
import numpy as np

from ..core.extinction import ExtinctionModel
from ..core.library import StellarLibrary
from ..priors.stellar import LuminosityFunction

__all__ = [
    "load_stellar_library",
    "save_stellar_library",
    "load_extinction_model",
    "load_luminosity_function",
]


def _decode(names):
    return [n.decode("ascii") if isinstance(n, bytes) else str(n) for n in names]


def load_stellar_library(filepath, luminosity_function=None, verbose=True):
    """
    Load an SED template library from HDF5.

    Parameters
    ----------
    filepath : str
        The filepath of the library file. It must contain the datasets `Mr`
        with shape `(N_Mr,)`, `FeH` with shape `(N_FeH,)` and `absmag` with
        shape `(N_Mr, N_FeH, Nbands)`. Missing templates are stored as NaN.
        An optional `lf` group with datasets `Mr` and `lnp` holds the
        luminosity function, and an optional `filters` attribute names the
        bands.

    luminosity_function : `~stellarpdf.priors.stellar.LuminosityFunction`, optional
        Overrides the luminosity function stored in the file.

    verbose : bool, optional
        Whether to print a summary of the library. Default is `True`.

    Returns
    -------
    library : `~stellarpdf.core.library.StellarLibrary`

    Raises
    ------
    KeyError
        If a required dataset is missing.

    Examples
    --------
    >>> from stellarpdf.data import load_stellar_library
    >>> lib = load_stellar_library('./data/PScolors.h5')
    >>> print(f"Loaded {lib.ntemplates} templates in {lib.nbands} bands")
    """
    with h5py.File(filepath, "r") as f:
        for key in ("Mr", "FeH", "absmag"):
            if key not in f:
                raise KeyError(f"Required dataset '{key}' not found in {filepath}")
        mr_grid = f["Mr"][:]
        feh_grid = f["FeH"][:]
        absmag = f["absmag"][:]
        filters = _decode(f.attrs["filters"]) if "filters" in f.attrs else None

        if luminosity_function is None and "lf" in f:
            luminosity_function = LuminosityFunction(f["lf/Mr"][:], f["lf/lnp"][:])

    library = StellarLibrary(
        mr_grid, feh_grid, absmag,
        luminosity_function=luminosity_function, filters=filters,
    )

    if verbose:
        sys.stderr.write(
            f"Loaded {library.ntemplates:,} templates "
            f"({library.N_Mr} Mr x {library.N_FeH} [Fe/H], {library.nbands} bands)\n"
        )

    return library


def save_stellar_library(library, filepath, compression=4, verbose=True):
    """
    Write an SED template library in the layout read by
    `load_stellar_library`. The luminosity function is stored only if it
    is a `LuminosityFunction`.
    """
    with h5py.File(filepath, "w") as f:
        f.create_dataset("Mr", data=library.mr_grid)
        f.create_dataset("FeH", data=library.feh_grid)
        f.create_dataset(
            "absmag", data=library.absmag,
            compression="gzip", compression_opts=compression,
        )
        if isinstance(library.luminosity_function, LuminosityFunction):
            grp = f.create_group("lf")
            grp.create_dataset("Mr", data=library.luminosity_function.Mr)
            grp.create_dataset("lnp", data=library.luminosity_function.lnp)
        if library.filters is not None:
            f.attrs["filters"] = [filt.encode("ascii") for filt in library.filters]

    if verbose:
        sys.stderr.write(f"Saved {library.ntemplates:,} templates to {filepath}\n")


def load_extinction_model(filepath, filters=None, verbose=True):
    """
    Load tabulated extinction coefficients.

    Parameters
    ----------
    filepath : str
        The filepath of a whitespace-separated text file. Each row holds
        `R_V` followed by the extinction per unit reddening in every band,
        `RV A_1 ... A_n`. Lines starting with `#` are ignored.

    filters : iterable of str, optional
        Band names, for bookkeeping only.

    verbose : bool, optional
        Whether to print a summary of the table. Default is `True`.

    Returns
    -------
    ext_model : `~stellarpdf.core.extinction.ExtinctionModel`

    Raises
    ------
    ValueError
        If the table has fewer than two columns or `R_V` is not strictly
        increasing.
    """
    table = np.loadtxt(filepath, ndmin=2)
    if table.shape[1] < 2:
        raise ValueError(
            f"Extinction table {filepath} needs an R_V column and at least one band"
        )

    order = np.argsort(table[:, 0])
    table = table[order]
    ext_model = ExtinctionModel(table[:, 0], table[:, 1:], filters=filters)

    if verbose:
        sys.stderr.write(
            f"Loaded extinction coefficients for {ext_model.nbands} bands at "
            f"{len(ext_model.rv_grid)} R_V values\n"
        )

    return ext_model


def load_luminosity_function(filepath):
    """Load a two-column `Mr ln p(Mr)` text file."""
    return LuminosityFunction.from_file(filepath)
