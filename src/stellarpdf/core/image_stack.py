#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Stacks of probability surfaces sharing one grid geometry.

Classes
-------
ImageStack : Per-pixel surface container
    One `(E, mu)` surface per star. Cropping, culling and smoothing always
    act on every surface at once, so the stack never holds surfaces on
    different grids.
ImageWriteBuffer : Batched HDF5 writer
    Collects surfaces and writes them as a single compressed dataset.

Functions
---------
row_smoothing_matrix : Reddening-axis blur
    Row-stochastic weights for a Gaussian with a per-row width.
write_surfaces : HDF5 output
    Write a block of surfaces with the grid geometry as attributes.

Notes
-----
Surfaces are stored as `float32` arrays with shape
`(N_images, N_bins[0], N_bins[1])`.
"""

import sys
from math import ceil, floor

import h5py
import numpy as np

from .rect import Rect

__all__ = ["ImageStack", "ImageWriteBuffer", "row_smoothing_matrix", "write_surfaces"]

# Tolerance used when snapping crop bounds to bin edges.
_EDGE_TOL = 1.0e-8


class ImageStack(object):
    """
    Fixed-length stack of two-dimensional surfaces on a common grid.

    Parameters
    ----------
    N_images : int
        Number of surfaces in the stack.

    Attributes
    ----------
    rect : `~stellarpdf.core.rect.Rect` or None
        Shared geometry. `None` until `set_rect` is called.

    img : `~numpy.ndarray` with shape (N_images, N_bins[0], N_bins[1]) or None
        Surface data.

    Examples
    --------
    >>> stack = ImageStack(3)
    >>> stack.set_rect(Rect((0., 4.), (7., 19.), (700, 120)))
    >>> stack.img.shape
    (3, 700, 120)
    """

    def __init__(self, N_images):
        N_images = int(N_images)
        if N_images < 0:
            raise ValueError(f"N_images must be non-negative, got {N_images}")
        self.N_images = N_images
        self.rect = None
        self.img = None

    def __len__(self):
        return self.N_images

    def __getitem__(self, idx):
        self._check_rect()
        return self.img[idx]

    def _check_rect(self):
        if self.rect is None:
            raise RuntimeError("ImageStack geometry has not been set; call set_rect first")

    def _check_index(self, idx):
        if not (0 <= idx < self.N_images):
            raise IndexError(f"Image index {idx} out of range for {self.N_images} images")

    def set_rect(self, rect):
        """
        Set the shared geometry and allocate zeroed surfaces for every slot.

        Parameters
        ----------
        rect : `~stellarpdf.core.rect.Rect`
            Grid geometry. A copy is stored.
        """
        if not isinstance(rect, Rect):
            raise TypeError(f"Expected a Rect, got {type(rect).__name__}")
        self.rect = rect.copy()
        self.img = np.zeros((self.N_images,) + self.rect.shape, dtype=np.float32)

    def initialize_to_zero(self, idx):
        """Reset surface `idx` to zero."""
        self._check_rect()
        self._check_index(idx)
        self.img[idx] = 0.0

    def set_image(self, idx, surface):
        """
        Store a surface in slot `idx`.

        Raises
        ------
        ValueError
            If the surface does not match the stack geometry.
        """
        self._check_rect()
        self._check_index(idx)
        surface = np.asarray(surface)
        if surface.shape != self.rect.shape:
            raise ValueError(
                f"Surface shape {surface.shape} does not match stack shape "
                f"{self.rect.shape}"
            )
        self.img[idx] = surface

    def crop(self, x_min, x_max, y_min, y_max):
        """
        Restrict every surface to a sub-rectangle of the grid.

        The requested bounds are snapped outward to the nearest existing bin
        edges and clipped to the current grid, so no bin is ever split.

        Parameters
        ----------
        x_min, x_max : float
            Bounds along axis 0.

        y_min, y_max : float
            Bounds along axis 1.

        Raises
        ------
        ValueError
            If the requested region does not overlap the grid.
        """
        self._check_rect()
        rect = self.rect

        lo, hi = [], []
        for axis, (vmin, vmax) in enumerate(((x_min, x_max), (y_min, y_max))):
            i_lo = floor((vmin - rect.min[axis]) / rect.dx[axis] + _EDGE_TOL)
            i_hi = ceil((vmax - rect.min[axis]) / rect.dx[axis] - _EDGE_TOL)
            i_lo = max(0, i_lo)
            i_hi = min(int(rect.N_bins[axis]), i_hi)
            if i_hi <= i_lo:
                raise ValueError(
                    f"Crop range [{vmin}, {vmax}] does not overlap axis {axis} "
                    f"of {rect}"
                )
            lo.append(i_lo)
            hi.append(i_hi)

        new_min = rect.min + np.array(lo) * rect.dx
        new_max = rect.min + np.array(hi) * rect.dx
        self.img = np.ascontiguousarray(self.img[:, lo[0]:hi[0], lo[1]:hi[1]])
        self.rect = Rect(new_min, new_max, (hi[0] - lo[0], hi[1] - lo[1]))

    def cull(self, keep):
        """
        Remove surfaces, keeping those flagged in `keep` in their original
        order.

        Parameters
        ----------
        keep : array_like of bool with shape (N_images,)
            Which surfaces to keep.

        Raises
        ------
        ValueError
            If the mask length does not match the number of images.
        """
        keep = self._as_mask(keep)
        if self.img is not None:
            self.img = np.ascontiguousarray(self.img[keep])
        self.N_images = int(np.sum(keep))

    def cull_arrays(self, keep, *arrays):
        """
        Filter per-star arrays with the same mask passed to `cull`.

        Can be called before or after `cull`; the mask is checked against
        the length of each array.

        Returns
        -------
        culled : list of `~numpy.ndarray`
            One filtered array per input.
        """
        out = []
        for a in arrays:
            a = np.asarray(a)
            out.append(a[self._as_mask(keep, len(a))])
        return out

    def _as_mask(self, keep, n=None):
        n = self.N_images if n is None else n
        keep = np.asarray(keep)
        if keep.dtype != bool:
            raise TypeError(f"Keep mask must be boolean, got dtype {keep.dtype}")
        if keep.shape != (n,):
            raise ValueError(
                f"Keep mask has shape {keep.shape}, expected ({n},)"
            )
        return keep

    def smooth(self, sigma, n_sigma=5.0):
        """
        Blur every surface along axis 0 with a row-dependent Gaussian.

        Output row `i` is a Gaussian-weighted average of the input rows
        within `n_sigma * sigma[i]` of it. The weights of each output row
        are normalized to unit sum over the rows that lie inside the grid.

        Parameters
        ----------
        sigma : array_like with shape (N_bins[0],)
            Standard deviation in bins for each output row. Rows with
            `sigma <= 0` are copied unchanged.

        n_sigma : float, optional
            Truncation radius in units of `sigma`. Default is `5`.

        Raises
        ------
        ValueError
            If `sigma` does not have one entry per row.
        """
        self._check_rect()
        N0 = self.rect.shape[0]
        sigma = np.asarray(sigma, dtype=float)
        if sigma.shape != (N0,):
            raise ValueError(f"Expected {N0} smoothing widths, got shape {sigma.shape}")

        weights = row_smoothing_matrix(sigma, n_sigma=n_sigma)
        if self.N_images > 0:
            self.img = np.matmul(weights, self.img.astype(float)).astype(np.float32)

    def write(self, fname, group, dset, compression=9):
        """Write every surface as one dataset. See `write_surfaces`."""
        self._check_rect()
        write_surfaces(fname, group, dset, self.img, self.rect, compression=compression)

    def __repr__(self):
        return f"ImageStack(N_images={self.N_images}, rect={self.rect})"


def row_smoothing_matrix(sigma, n_sigma=5.0):
    """
    Matrix `W` such that `W @ img` blurs `img` along its first axis.

    Parameters
    ----------
    sigma : `~numpy.ndarray` with shape (N,)
        Standard deviation in rows for each output row.

    n_sigma : float, optional
        Truncation radius in units of `sigma`. Default is `5`.

    Returns
    -------
    W : `~numpy.ndarray` with shape (N, N)
        Row-stochastic weight matrix.
    """
    N = len(sigma)
    W = np.zeros((N, N))
    j = np.arange(N)

    for i in range(N):
        s = sigma[i]
        if not (s > 0.0):
            W[i, i] = 1.0
            continue
        half_width = int(ceil(n_sigma * s))
        sel = np.abs(j - i) <= half_width
        w = np.exp(-0.5 * ((j[sel] - i) / s) ** 2)
        W[i, sel] = w / np.sum(w)

    return W


def write_surfaces(fname, group, dset, surfaces, rect, compression=9, mode="a"):
    """
    Write a block of surfaces to an HDF5 file.

    Parameters
    ----------
    fname : str or `h5py.Group`
        Output HDF5 file, or an already open file or group.

    group : str
        Group that holds the dataset, relative to `fname`. Created if
        needed.

    dset : str
        Dataset name. An existing dataset of the same name is replaced.

    surfaces : `~numpy.ndarray` with shape (N, N_bins[0], N_bins[1])
        Surfaces to write. Stored as `float32`.

    rect : `~stellarpdf.core.rect.Rect`
        Shared geometry, stored as the `min`, `max` and `N_bins` attributes.

    compression : int, optional
        Gzip compression level. Default is `9`.

    mode : str, optional
        File mode passed to `h5py.File`. Default is `'a'`.
    """
    surfaces = np.asarray(surfaces, dtype=np.float32)
    if surfaces.shape[1:] != rect.shape:
        raise ValueError(
            f"Surface block shape {surfaces.shape} does not match {rect}"
        )

    if isinstance(fname, h5py.Group):
        _write_block(fname.require_group(group), dset, surfaces, rect, compression)
    else:
        with h5py.File(fname, mode) as f:
            _write_block(f.require_group(group), dset, surfaces, rect, compression)


def _write_block(grp, dset, surfaces, rect, compression):
    if dset in grp:
        del grp[dset]

    # Chunking requires a non-empty block.
    kwargs = {}
    if surfaces.shape[0] > 0:
        kwargs = dict(
            chunks=(1,) + rect.shape,
            compression="gzip",
            compression_opts=compression,
        )
    ds = grp.create_dataset(dset, data=surfaces, **kwargs)
    ds.attrs["min"] = rect.min
    ds.attrs["max"] = rect.max
    ds.attrs["N_bins"] = rect.N_bins


class ImageWriteBuffer(object):
    """
    Buffer of surfaces written to disk in one batch.

    Parameters
    ----------
    rect : `~stellarpdf.core.rect.Rect`
        Geometry shared by every buffered surface.

    n_images : int
        Capacity of the buffer.

    Examples
    --------
    >>> buf = ImageWriteBuffer(stack.rect, len(stack))
    >>> for surface in stack.img:
    ...     buf.add(surface)
    >>> buf.write("out.h5", "/pixel 512-1234", "stellar pdfs")
    """

    def __init__(self, rect, n_images):
        self.rect = rect.copy()
        self.n_images = int(n_images)
        self.buf = np.zeros((self.n_images,) + self.rect.shape, dtype=np.float32)
        self.n_filled = 0

    def __len__(self):
        return self.n_filled

    def add(self, surface):
        """
        Append one surface.

        Raises
        ------
        ValueError
            If the buffer is full or the surface does not match the buffer
            geometry.
        """
        if self.n_filled >= self.n_images:
            raise ValueError(f"Write buffer is full ({self.n_images} images)")
        surface = np.asarray(surface)
        if surface.shape != self.rect.shape:
            raise ValueError(
                f"Surface shape {surface.shape} does not match buffer shape "
                f"{self.rect.shape}"
            )
        self.buf[self.n_filled] = surface
        self.n_filled += 1

    def write(self, fname, group, dset, compression=9, verbose=False):
        """
        Write the buffered surfaces as a single dataset `group/dset`.

        Only the filled part of the buffer is written. See
        `write_surfaces` for the layout.
        """
        write_surfaces(
            fname, group, dset, self.buf[: self.n_filled], self.rect,
            compression=compression,
        )
        if verbose:
            sys.stderr.write(
                f"Wrote {self.n_filled} surfaces to {fname}:{group}/{dset}\n"
            )
