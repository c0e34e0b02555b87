#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Galactic structure priors along a single line of sight.

This module provides the log-number density of the thin disk, thick disk
and halo together with the component-weighted metallicity prior, and wraps
them in `GalacticLOSModel`, which tabulates the densities once per sky
position on a distance-modulus grid.

Classes
-------
GalacticLOSModel : Line-of-sight prior
    `ln p(DM, Mr, [Fe/H])` for a fixed `(l, b)`.

Functions
---------
logn_disk : Exponential disk number density
logn_halo : Flattened power-law halo number density
logp_feh : Gaussian metallicity prior of one component
"""

import numpy as np
from astropy import units
from astropy.coordinates import SkyCoord
from astropy.coordinates import CylindricalRepresentation as CylRep
from scipy.special import logsumexp

__all__ = ["logn_disk", "logn_halo", "logp_feh", "GalacticLOSModel"]

# ln(ln(10) / 5), Jacobian of d(distance)/d(DM) in log space.
_LN_DDIST_DDM = np.log(np.log(10.0) / 5.0)


def logn_disk(R, Z, R_solar=8.2, Z_solar=0.025, R_scale=2.6, Z_scale=0.3, R_smooth=2.0):
    """
    Log-number density of an exponential disk, normalized to the Solar
    neighborhood.

    Parameters
    ----------
    R : array_like
        Galactocentric cylindrical radius in kpc.
    Z : array_like
        Height above the Galactic midplane in kpc.
    R_solar : float, optional
        Solar Galactocentric radius in kpc. Default is 8.2.
    Z_solar : float, optional
        Solar height above midplane in kpc. Default is 0.025.
    R_scale : float, optional
        Radial scale length in kpc. Default is 2.6.
    Z_scale : float, optional
        Vertical scale height in kpc. Default is 0.3.
    R_smooth : float, optional
        Smoothing radius near the Galactic center in kpc. Default is 2.0.

    Returns
    -------
    logn : array_like
        Log-number density.
    """
    R = np.asarray(R)
    Z = np.asarray(Z)

    R_eff = np.sqrt(R**2 + R_smooth**2)
    radial_term = (R_eff - R_solar) / R_scale
    vertical_term = (np.abs(Z) - np.abs(Z_solar)) / Z_scale

    return -(radial_term + vertical_term)


def logn_halo(R, Z, R_solar=8.2, Z_solar=0.025, R_smooth=2.0, eta=4.2,
              q_ctr=0.2, q_inf=0.8, r_q=6.0):
    """
    Log-number density of a flattened power-law halo whose oblateness
    varies with radius, normalized to the Solar neighborhood.

    Parameters
    ----------
    R : array_like
        Galactocentric cylindrical radius in kpc.
    Z : array_like
        Height above the Galactic midplane in kpc.
    R_solar, Z_solar : float, optional
        Solar position in kpc. Defaults are 8.2 and 0.025.
    R_smooth : float, optional
        Smoothing radius near the Galactic center in kpc. Default is 2.0.
    eta : float, optional
        Power-law index. Default is 4.2.
    q_ctr, q_inf : float, optional
        Oblateness at the center and at large radii. Defaults are 0.2 and 0.8.
    r_q : float, optional
        Oblateness transition radius in kpc. Default is 6.0.

    Returns
    -------
    logn : array_like
        Log-number density.
    """
    R = np.asarray(R)
    Z = np.asarray(Z)

    def _r_eff(R, Z):
        r = np.sqrt(R**2 + Z**2)
        r_prime = np.sqrt(r**2 + r_q**2)
        q = q_inf - (q_inf - q_ctr) * np.exp(1.0 - r_prime / r_q)
        return np.sqrt(R**2 + (Z / q) ** 2 + R_smooth**2)

    return -eta * np.log(_r_eff(R, Z) / _r_eff(R_solar, Z_solar))


def logp_feh(feh, feh_mean=-0.2, feh_sigma=0.3):
    """
    Normalized Gaussian log-prior on metallicity.

    Typical values are `(-0.2, 0.3)` for the thin disk, `(-0.7, 0.4)` for
    the thick disk and `(-1.6, 0.5)` for the halo.
    """
    feh = np.asarray(feh)
    chi2 = (feh - feh_mean) ** 2 / feh_sigma**2
    log_norm = np.log(2.0 * np.pi * feh_sigma**2)
    return -0.5 * (chi2 + log_norm)


class GalacticLOSModel(object):
    """
    Three-component Galactic prior along one line of sight.

    The log-number density of each component per unit distance modulus,
    including the volume element, is computed once on a regular
    distance-modulus grid and linearly interpolated afterwards. The
    metallicity prior is the mixture of the per-component Gaussians weighted
    by each component's share of the density at the requested distance.

    Parameters
    ----------
    l, b : float
        Galactic longitude and latitude in degrees.

    DM_min, DM_max : float, optional
        Range of the tabulation grid. Defaults are `-5.` and `25.`.

    N_DM : int, optional
        Number of grid points. Default is `601`.

    R_solar, Z_solar : float, optional
        Solar position in kpc. Defaults are `8.2` and `0.025`.

    R_thin, Z_thin, Rs_thin : float, optional
        Thin disk scale length, scale height and smoothing radius in kpc.

    R_thick, Z_thick, Rs_thick : float, optional
        Thick disk scale length, scale height and smoothing radius in kpc.

    f_thick : float, optional
        Thick disk normalization relative to the thin disk. Default is
        `0.04`.

    Rs_halo, q_halo_ctr, q_halo_inf, r_q_halo, eta_halo : float, optional
        Halo shape parameters (see `logn_halo`).

    f_halo : float, optional
        Halo normalization relative to the thin disk. Default is `0.005`.

    feh_thin, feh_thin_sigma, feh_thick, feh_thick_sigma, feh_halo, \
feh_halo_sigma : float, optional
        Mean and dispersion of each component's metallicity distribution.

    Examples
    --------
    >>> los = GalacticLOSModel(90.0, 30.0)
    >>> lnp = los.log_prior(10.0, 5.0, -0.3)
    """

    def __init__(self, l, b, DM_min=-5.0, DM_max=25.0, N_DM=601,
                 R_solar=8.2, Z_solar=0.025,
                 R_thin=2.6, Z_thin=0.3, Rs_thin=2.0,
                 R_thick=2.0, Z_thick=0.9, Rs_thick=2.0, f_thick=0.04,
                 Rs_halo=2.0, q_halo_ctr=0.2, q_halo_inf=0.8, r_q_halo=6.0,
                 eta_halo=4.2, f_halo=0.005,
                 feh_thin=-0.2, feh_thin_sigma=0.3,
                 feh_thick=-0.7, feh_thick_sigma=0.4,
                 feh_halo=-1.6, feh_halo_sigma=0.5):

        if not (DM_max > DM_min) or N_DM < 2:
            raise ValueError("Distance-modulus grid needs DM_max > DM_min and N_DM >= 2")

        self.l = float(l)
        self.b = float(b)
        self.feh_params = (
            (feh_thin, feh_thin_sigma),
            (feh_thick, feh_thick_sigma),
            (feh_halo, feh_halo_sigma),
        )

        self.DM_grid = np.linspace(DM_min, DM_max, int(N_DM))
        dists = 10.0 ** (self.DM_grid / 5.0 - 2.0)  # kpc

        coords = SkyCoord(
            l=np.full_like(dists, self.l) * units.deg,
            b=np.full_like(dists, self.b) * units.deg,
            distance=dists * units.kpc,
            frame="galactic",
        )
        coords_cyl = coords.galactocentric.cartesian.represent_as(CylRep)
        R, Z = coords_cyl.rho.to_value(units.kpc), coords_cyl.z.to_value(units.kpc)

        # dV ∝ d^2 dd and dd/dDM = d ln(10) / 5
        vol_factor = 3.0 * np.log(dists) + _LN_DDIST_DDM

        logn_thin = logn_disk(
            R, Z, R_solar=R_solar, Z_solar=Z_solar,
            R_scale=R_thin, Z_scale=Z_thin, R_smooth=Rs_thin,
        )
        logn_thick = logn_disk(
            R, Z, R_solar=R_solar, Z_solar=Z_solar,
            R_scale=R_thick, Z_scale=Z_thick, R_smooth=Rs_thick,
        ) + np.log(f_thick)
        logn_halo_ = logn_halo(
            R, Z, R_solar=R_solar, Z_solar=Z_solar, R_smooth=Rs_halo,
            eta=eta_halo, q_ctr=q_halo_ctr, q_inf=q_halo_inf, r_q=r_q_halo,
        ) + np.log(f_halo)

        # Shape (3, N_DM): thin disk, thick disk, halo.
        self.log_dn_components = np.array([logn_thin, logn_thick, logn_halo_]) + vol_factor
        self.log_dn = logsumexp(self.log_dn_components, axis=0)

    def _interp(self, DM, table):
        return np.interp(DM, self.DM_grid, table)

    def log_dn_dmu(self, DM):
        """
        Log of the total stellar number density per unit distance modulus.

        Values outside the tabulated range are clamped to the nearest end.
        """
        return self._interp(DM, self.log_dn)

    def log_component_weights(self, DM):
        """
        Log of each component's share of the density at `DM`.

        Returns
        -------
        lnw : `~numpy.ndarray` with shape (3,) + shape(DM)
            Thin disk, thick disk and halo log-fractions.
        """
        lnw = np.array([self._interp(DM, comp) for comp in self.log_dn_components])
        return lnw - self.log_dn_dmu(DM)

    def log_p_feh(self, DM, FeH):
        """Component-weighted metallicity log-prior at distance modulus `DM`."""
        lnw = self.log_component_weights(DM)
        terms = [
            lnw[k] + logp_feh(FeH, feh_mean=mean, feh_sigma=sigma)
            for k, (mean, sigma) in enumerate(self.feh_params)
        ]
        return logsumexp(terms, axis=0)

    def log_prior(self, DM, Mr, FeH):
        """
        Log-prior of a star at distance modulus `DM` with metallicity `FeH`.

        Parameters
        ----------
        DM : float or `~numpy.ndarray`
            Distance modulus.

        Mr : float or `~numpy.ndarray`
            Absolute magnitude. The luminosity function is applied
            separately by the stellar library, so this argument does not
            enter the Galactic prior.

        FeH : float or `~numpy.ndarray`
            Metallicity.

        Returns
        -------
        lnp : float or `~numpy.ndarray`
            `ln(dn/dDM) + ln p([Fe/H] | DM)`.
        """
        lnp = self.log_dn_dmu(DM) + self.log_p_feh(DM, FeH)
        if np.ndim(lnp) == 0:
            return float(lnp)
        return lnp

    def __repr__(self):
        return f"GalacticLOSModel(l={self.l:.3f}, b={self.b:.3f})"
