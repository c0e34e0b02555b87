#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Empirical stellar SED template library.

The library holds the absolute magnitudes of model stars in every band on a
regular two-dimensional grid of absolute magnitude `Mr` and metallicity
`[Fe/H]`. Grid cells without a template are stored as NaN and reported as
missing by `get_sed`. The library also carries the luminosity function used
as a prior on `Mr`.

Classes
-------
StellarLibrary : SED template grid
    Templates indexed by `(Mr index, [Fe/H] index)`.

See Also
--------
stellarpdf.data.loader.load_stellar_library : Read a library from HDF5
stellarpdf.priors.stellar.LuminosityFunction : Prior on `Mr`
"""

import numpy as np

__all__ = ["StellarLibrary"]


class StellarLibrary(object):
    """
    Grid of stellar SED templates indexed by absolute magnitude and
    metallicity.

    Parameters
    ----------
    mr_grid : array_like with shape (N_Mr,)
        Absolute magnitude of each grid row.

    feh_grid : array_like with shape (N_FeH,)
        Metallicity of each grid column.

    absmag : array_like with shape (N_Mr, N_FeH, Nbands)
        Absolute magnitudes of each template. Cells where any band is NaN
        are treated as missing.

    luminosity_function : callable, optional
        Function returning `ln p(Mr)`. If not provided, a flat luminosity
        function is used.

    filters : iterable of str, optional
        Band names, for bookkeeping only.

    Attributes
    ----------
    valid : `~numpy.ndarray` of bool with shape (N_Mr, N_FeH)
        Which grid cells hold a template.

    Raises
    ------
    ValueError
        If the template array does not match the grid dimensions.

    Examples
    --------
    >>> mr = np.array([4.0, 5.0])
    >>> feh = np.array([-0.5, 0.0])
    >>> absmag = np.zeros((2, 2, 3))
    >>> lib = StellarLibrary(mr, feh, absmag)
    >>> sed, Mr, FeH = lib.get_sed(1, 0)
    """

    def __init__(self, mr_grid, feh_grid, absmag, luminosity_function=None,
                 filters=None):
        self.mr_grid = np.array(mr_grid, dtype=float)
        self.feh_grid = np.array(feh_grid, dtype=float)
        self.absmag = np.array(absmag, dtype=float)

        expected = (len(self.mr_grid), len(self.feh_grid))
        if self.absmag.ndim != 3 or self.absmag.shape[:2] != expected:
            raise ValueError(
                f"Template array shape {self.absmag.shape} does not match "
                f"grid dimensions {expected} + (Nbands,)"
            )

        self.valid = np.all(np.isfinite(self.absmag), axis=2)
        self.luminosity_function = luminosity_function
        self.filters = list(filters) if filters is not None else None

        self.absmag.setflags(write=False)

    @property
    def N_Mr(self):
        """Number of absolute magnitude grid points."""
        return len(self.mr_grid)

    @property
    def N_FeH(self):
        """Number of metallicity grid points."""
        return len(self.feh_grid)

    @property
    def nbands(self):
        """Number of bands per template."""
        return self.absmag.shape[2]

    @property
    def ntemplates(self):
        """Number of grid cells holding a template."""
        return int(np.sum(self.valid))

    def get_sed(self, mr_idx, feh_idx):
        """
        Look up one template.

        Parameters
        ----------
        mr_idx : int
            Absolute magnitude grid index.

        feh_idx : int
            Metallicity grid index.

        Returns
        -------
        result : tuple or None
            `(absmag, Mr, FeH)` where `absmag` has shape `(Nbands,)`, or
            `None` if the cell is outside the grid or holds no template.
        """
        if not (0 <= mr_idx < self.N_Mr and 0 <= feh_idx < self.N_FeH):
            return None
        if not self.valid[mr_idx, feh_idx]:
            return None
        return (
            self.absmag[mr_idx, feh_idx],
            self.mr_grid[mr_idx],
            self.feh_grid[feh_idx],
        )

    @property
    def nmissing(self):
        """Number of grid cells without a template."""
        return self.N_Mr * self.N_FeH - self.ntemplates

    def row_templates(self, mr_idx):
        """
        Every template in one absolute magnitude row.

        Parameters
        ----------
        mr_idx : int
            Absolute magnitude grid index.

        Returns
        -------
        absmag : `~numpy.ndarray` with shape (K, Nbands)
            Templates of the row's valid cells, in metallicity order.

        Mr : float
            Absolute magnitude of the row.

        FeH : `~numpy.ndarray` with shape (K,)
            Metallicity of each returned template.
        """
        sel = self.valid[mr_idx]
        return self.absmag[mr_idx, sel], self.mr_grid[mr_idx], self.feh_grid[sel]

    def log_lf(self, Mr):
        """
        Log of the luminosity function at absolute magnitude `Mr`.

        Returns `0` when the library has no luminosity function.
        """
        if self.luminosity_function is None:
            return 0.0 * np.asarray(Mr, dtype=float)
        return self.luminosity_function(Mr)

    def __repr__(self):
        return (
            f"StellarLibrary(N_Mr={self.N_Mr}, N_FeH={self.N_FeH}, "
            f"nbands={self.nbands}, ntemplates={self.ntemplates:,})"
        )
