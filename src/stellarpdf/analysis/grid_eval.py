#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Grid evaluation of stellar probability surfaces in (reddening, distance).

For every star, each SED template in the library is fit in closed form for
the maximum-likelihood distance modulus and reddening. Each solution is
weighted by its likelihood relative to the best template and by its prior,
deposited bilinearly into an `(E, mu)` raster, and the raster is smoothed
with a Gaussian describing the template-independent fit uncertainty.

Classes
-------
GridAccumulator : Two-pass template accumulator
    Collects template solutions while tracking the minimum chi-square and
    maximum prior, then turns them into relative weights.

Functions
---------
integrate_ml_solution : Probability surface of one star
grid_eval_stars : Probability surfaces of every star in a pixel
smooth_along_ebv : Reddening-dependent smoothing of an image stack

Notes
-----
Per-star evaluations share no mutable state. `grid_eval_stars` therefore
accepts any `pool` with a `map` method, such as `multiprocessing.Pool`.

Examples
--------
>>> config = GridEvalConfig()
>>> stack = ImageStack(len(stellar_data))
>>> chi2 = grid_eval_stars(los_model, ext_model, library, stellar_data,
...                        stack, config=config)
"""

import sys
import time
import warnings

import numpy as np

from ..core.image_stack import ImageWriteBuffer
from ..core.linear_fit import star_covariance, star_max_likelihood_batch
from ..core.rect import deposit_bilinear
from ..core.smoothing import smooth_surface
from ..priors.astrometric import logp_parallax_dm, parallax_is_usable
from ..utils.math import _function_wrapper
from .config import GridEvalConfig

__all__ = [
    "GridAccumulator",
    "integrate_ml_solution",
    "grid_eval_stars",
    "smooth_along_ebv",
]


class GridAccumulator(object):
    """
    Running collection of per-template solutions for one star.

    Solutions are added in batches. Invalid fits (non-finite chi-square) are
    discarded on entry. The minimum chi-square and the maximum finite prior
    are updated as each batch arrives.

    Attributes
    ----------
    chi2_min : float
        Smallest chi-square seen so far, `inf` when empty.

    prior_max : float
        Largest finite log-prior seen so far, `-inf` when empty.
    """

    def __init__(self):
        self._E = []
        self._mu = []
        self._chi2 = []
        self._prior = []
        self.chi2_min = np.inf
        self.prior_max = -np.inf
        self.n_solutions = 0

    def __len__(self):
        return self.n_solutions

    def add(self, E, mu, chi2, prior):
        """
        Add a batch of solutions.

        Parameters
        ----------
        E, mu, chi2, prior : array_like with shape (K,)
            Reddening, distance modulus, chi-square and log-prior of each
            template.
        """
        E = np.atleast_1d(np.asarray(E, dtype=float))
        mu = np.atleast_1d(np.asarray(mu, dtype=float))
        chi2 = np.atleast_1d(np.asarray(chi2, dtype=float))
        prior = np.broadcast_to(np.asarray(prior, dtype=float), chi2.shape)

        sel = np.isfinite(chi2) & np.isfinite(E) & np.isfinite(mu)
        if not np.any(sel):
            return

        E, mu, chi2, prior = E[sel], mu[sel], chi2[sel], prior[sel]
        self._E.append(E)
        self._mu.append(mu)
        self._chi2.append(chi2)
        self._prior.append(prior)
        self.n_solutions += len(chi2)

        self.chi2_min = min(self.chi2_min, float(np.min(chi2)))
        finite_prior = prior[np.isfinite(prior)]
        if len(finite_prior) > 0:
            self.prior_max = max(self.prior_max, float(np.max(finite_prior)))

    def solutions(self):
        """Concatenated `(E, mu, chi2, prior)` arrays."""
        if self.n_solutions == 0:
            empty = np.zeros(0)
            return empty, empty, empty, empty
        return (
            np.concatenate(self._E),
            np.concatenate(self._mu),
            np.concatenate(self._chi2),
            np.concatenate(self._prior),
        )

    def weights(self):
        """
        Relative weight of each solution,
        `exp(-0.5 (chi2 - chi2_min) + (prior - prior_max))`.

        Solutions with a non-finite prior get zero weight.
        """
        _, _, chi2, prior = self.solutions()
        if self.n_solutions == 0 or not np.isfinite(self.prior_max):
            return np.zeros(self.n_solutions)

        with np.errstate(invalid="ignore", over="ignore"):
            log_p = -0.5 * (chi2 - self.chi2_min) + (prior - self.prior_max)
        w = np.exp(np.where(np.isfinite(log_p), log_p, -np.inf))
        return w

    def deposit(self, img, rect):
        """
        Add the weighted solutions into `img` at their `(E, mu)` positions.

        Returns the number of solutions that fell inside the grid.
        """
        E, mu, _, _ = self.solutions()
        return deposit_bilinear(img, rect, E, mu, self.weights())


def _template_log_prior(los_model, stellar_library, record, mu, Mr, FeH,
                        use_priors, use_parallax):
    """Log-prior of each template solution of one library row."""
    prior = np.zeros(len(mu))
    if use_priors:
        prior += los_model.log_prior(mu, Mr, FeH) + stellar_library.log_lf(Mr)
    if use_parallax and parallax_is_usable(record.pi, record.pi_err):
        prior += logp_parallax_dm(mu, record.pi, record.pi_err)
    return prior


def integrate_ml_solution(stellar_library, los_model, record, ext_model, rect,
                          use_priors=True, use_parallax=False, RV=3.3,
                          n_sigma=5.0, min_width=2, add_diagonal=1.0,
                          subsample=5, verbose=False):
    """
    Compute the probability surface of one star.

    Parameters
    ----------
    stellar_library : `~stellarpdf.core.library.StellarLibrary`
        SED templates and luminosity function.

    los_model : `~stellarpdf.priors.galactic.GalacticLOSModel`
        Galactic prior for the star's line of sight. Only used when
        `use_priors` is set.

    record : `~stellarpdf.data.photometry.PhotometryRecord`
        Observed photometry.

    ext_model : `~stellarpdf.core.extinction.ExtinctionModel`
        Extinction coefficients.

    rect : `~stellarpdf.core.rect.Rect`
        Output grid, axis 0 reddening and axis 1 distance modulus.

    use_priors : bool, optional
        Whether to apply the Galactic prior and luminosity function.
        Default is `True`.

    use_parallax : bool, optional
        Whether to apply the parallax term. Default is `False`.

    RV : float, optional
        Total-to-selective extinction ratio. Default is `3.3`.

    n_sigma, min_width, add_diagonal, subsample : optional
        Parameters of the covariance smoothing kernel (see
        `~stellarpdf.core.smoothing.covariance_kernel`). Defaults are `5`,
        `2`, `1.` and `5`.

    verbose : bool, optional
        Whether to print diagnostics to `stderr`. Default is `False`.

    Returns
    -------
    surface : `~numpy.ndarray` with shape `rect.shape`
        Unnormalized, non-negative probability surface.

    chi2_per_passband : float
        Minimum chi-square over the templates divided by the number of
        usable bands. `inf` if no band is usable or no fit succeeded.

    Raises
    ------
    ValueError
        If the photometry, templates and extinction coefficients disagree on
        the number of bands.
    """
    A = np.asarray(ext_model.coefficients(RV), dtype=float)
    nbands = record.nbands
    if len(A) != nbands or stellar_library.nbands != nbands:
        raise ValueError(
            f"Band mismatch: photometry has {nbands}, library "
            f"{stellar_library.nbands}, extinction model {len(A)}"
        )

    surface = np.zeros(rect.shape)
    n_passbands = record.n_passbands
    if n_passbands == 0:
        return surface, np.inf

    # Template-independent precision of (mu, E).
    inv_cov_00, inv_cov_01, inv_cov_11 = star_covariance(record.err, A)

    if stellar_library.nmissing > 0:
        warnings.warn(
            f"{stellar_library.nmissing} of {stellar_library.N_Mr * stellar_library.N_FeH} "
            "SED grid cells are not in the library and were skipped"
        )

    # Pass 1: solve every template and track the best fit and prior.
    acc = GridAccumulator()
    for mr_idx in range(stellar_library.N_Mr):
        absmag, Mr, FeH = stellar_library.row_templates(mr_idx)
        if len(absmag) == 0:
            continue
        mu, E, chi2 = star_max_likelihood_batch(absmag, record.mag, record.err, A)
        ok = np.isfinite(chi2)
        if not np.any(ok):
            continue
        mu, E, chi2 = mu[ok], E[ok], chi2[ok]
        prior = _template_log_prior(
            los_model, stellar_library, record, mu, np.full(len(mu), Mr), FeH[ok],
            use_priors, use_parallax,
        )
        acc.add(E, mu, chi2, prior)

    if verbose:
        sys.stderr.write(
            f"prior_max = {acc.prior_max:.4g}\nchi2_min = {acc.chi2_min:.4g}\n"
        )

    # A singular precision matrix would give an unbounded kernel.
    if len(acc) == 0:
        return surface, np.inf

    # Pass 2: deposit relative weights.
    acc.deposit(surface, rect)

    # Kernel precision in grid-axis order (E, mu).
    smooth_surface(
        surface, (inv_cov_11, inv_cov_01, inv_cov_00), rect,
        n_sigma=n_sigma, min_width=min_width, add_diagonal=add_diagonal,
        subsample=subsample, verbose=verbose,
    )

    chi2_per_passband = acc.chi2_min / n_passbands
    if verbose:
        sys.stderr.write(
            f"# of passbands: {n_passbands}\nchi^2 / passband: {chi2_per_passband:.4g}\n"
        )

    return surface, chi2_per_passband


def _evaluate_star(record, stellar_library, los_model, ext_model, rect, config):
    """
    Evaluate one star, returning `(surface, chi2, error_message)`.

    Exceptions are caught so that a single bad star does not stop the pixel.
    """
    try:
        surface, chi2 = integrate_ml_solution(
            stellar_library, los_model, record, ext_model, rect,
            use_priors=config.use_priors,
            use_parallax=config.use_parallax,
            RV=config.RV,
            n_sigma=config.n_sigma,
            min_width=config.min_width,
            add_diagonal=config.add_diagonal,
            subsample=config.subsample,
        )
        return surface, chi2, None
    except Exception as e:
        return np.zeros(rect.shape), np.inf, f"{type(e).__name__}: {e}"


def smooth_along_ebv(img_stack, ebv_smoothing, nside, n_sigma=5.0, verbose=False):
    """
    Smooth every surface of `img_stack` along the reddening axis.

    The width of output row `i` is `pct[i] * i` bins, where `pct` comes
    from `ebv_smoothing.calc_pct_smoothing`. Nothing is done when the
    smoothing is disabled.

    Returns
    -------
    applied : bool
        Whether any smoothing was applied.
    """
    if ebv_smoothing is None or not ebv_smoothing.enabled:
        return False

    if verbose:
        sys.stderr.write("Smoothing images along reddening axis.\n")

    rect = img_stack.rect
    sigma_pix = ebv_smoothing.calc_sigma_pix(
        nside, rect.min[0], rect.max[0], rect.N_bins[0]
    )
    img_stack.smooth(sigma_pix, n_sigma=n_sigma)
    return True


def grid_eval_stars(los_model, ext_model, stellar_library, stellar_data,
                    img_stack, config=None, pool=None, smooth_ebv=True,
                    out_fname=None):
    """
    Compute probability surfaces for every star in a pixel.

    Parameters
    ----------
    los_model : `~stellarpdf.priors.galactic.GalacticLOSModel`
        Galactic prior for the pixel.

    ext_model : `~stellarpdf.core.extinction.ExtinctionModel`
        Extinction coefficients.

    stellar_library : `~stellarpdf.core.library.StellarLibrary`
        SED templates.

    stellar_data : `~stellarpdf.data.photometry.StellarData`
        Stars of the pixel.

    img_stack : `~stellarpdf.core.image_stack.ImageStack`
        Stack that receives one surface per star. Must have one slot per
        star. Its geometry is reset to the evaluation grid and then
        cropped.

    config : `~stellarpdf.analysis.config.GridEvalConfig`, optional
        Evaluation settings. Defaults to `GridEvalConfig()`.

    pool : user-provided pool, optional
        Any object with a `map` method used to evaluate stars in parallel.
        By default the built-in `map` is used.

    smooth_ebv : bool, optional
        Whether to apply `config.ebv_smoothing` after cropping. Default is
        `True`.

    out_fname : str, optional
        If provided, the surfaces are written to the dataset
        `/<pix_name>/stellar pdfs` of this file.

    Returns
    -------
    chi2 : `~numpy.ndarray` with shape (Nstars,)
        Minimum chi-square per passband of each star.

    Raises
    ------
    ValueError
        If `img_stack` does not have one slot per star.
    """
    if config is None:
        config = GridEvalConfig()
    n_stars = len(stellar_data)
    if len(img_stack) != n_stars:
        raise ValueError(
            f"Image stack has {len(img_stack)} slots for {n_stars} stars"
        )

    t_start = time.perf_counter()

    rect = config.make_rect()
    img_stack.set_rect(rect)

    # Define the mapping function.
    if pool is None:
        M = map
    else:
        M = pool.map

    evaluate = _function_wrapper(
        _evaluate_star,
        (stellar_library, los_model, ext_model, rect, config),
        {},
        name="star evaluation",
    )

    chi2 = np.full(n_stars, np.inf)
    for i, (surface, chi2_i, error) in enumerate(M(evaluate, stellar_data.star)):
        if config.verbose:
            sys.stderr.write(f"\rStar {i + 1} of {n_stars}")
            sys.stderr.flush()
        if error is not None:
            warnings.warn(
                f"Evaluation of star {i} (obj_id={stellar_data[i].obj_id}) in "
                f"{stellar_data.pix_name} failed and was given an empty surface: {error}"
            )
        img_stack.set_image(i, surface)
        chi2[i] = chi2_i
    if config.verbose and n_stars > 0:
        sys.stderr.write("\n")

    if config.crop is not None:
        img_stack.crop(*config.crop)

    t_smooth = time.perf_counter()
    if smooth_ebv:
        smooth_along_ebv(
            img_stack, config.ebv_smoothing, stellar_data.nside,
            n_sigma=config.ebv_n_sigma, verbose=config.verbose,
        )

    t_write = time.perf_counter()
    if out_fname is not None:
        img_buffer = ImageWriteBuffer(img_stack.rect, n_stars)
        for n in range(n_stars):
            img_buffer.add(img_stack[n])
        img_buffer.write(
            out_fname, f"/{stellar_data.pix_name}", "stellar pdfs",
            compression=config.compression,
        )

    t_end = time.perf_counter()

    if config.verbose and n_stars > 0:
        ms = 1000.0 / n_stars
        sys.stderr.write(
            "Done with grid evaluation for all stars.\n\n"
            "Time elapsed / star:\n"
            f"  * sample: {(t_smooth - t_start) * ms:.3f} ms\n"
            f"  * smooth: {(t_write - t_smooth) * ms:.3f} ms\n"
            f"  *  write: {(t_end - t_write) * ms:.3f} ms\n"
            f"  *  total: {(t_end - t_start) * ms:.3f} ms\n\n"
        )

    return chi2
