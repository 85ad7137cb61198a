#!/usr/bin/env python3
"""
pairwise.py

Real-space part of the Harasima axial pressure:
    - Lennard-Jones and damped (Ewald real-space) Coulomb dU/dr kernels
    - fluid-fluid sweep over unordered water pairs (3x3 site loop)
    - fluid-wall sweep between water oxygens and nanotube sites

Each site pair contributes 0.5 * dU/dr * dz_mol * dz_site / (r_site * (zhi - zlo))
to the accumulator, once at each partner's radial position.
"""

import numpy as np
from scipy.special import erfc

from aux import EETOK, SQRT_PI, minimum_image_disp, minimum_image_1d, radial_distance
from harasima import Category, Channel


def lj_dudr(r, sigma, epsilon):
    """dU/dr of the 12-6 potential 4 eps [(s/r)^12 - (s/r)^6]; epsilon in K -> [K/A]."""
    sr6 = (sigma / r) ** 6
    return 24.0 * epsilon / r * (sr6 - 2.0 * sr6 * sr6)


def coulomb_dudr(r, qq, alpha):
    """dU/dr of the screened pair term qq erfc(alpha r)/r [K/A]."""
    return -qq * (2.0 * alpha * np.exp(-(alpha * r) ** 2) / (SQRT_PI * r)
                  + erfc(alpha * r) / r ** 2) * EETOK


class ForceField:
    """
    Rigid three-site water (O, H, H) plus an uncharged LJ wall.

    Usage:
        ff = ForceField(q_o=-0.8476, q_h=0.4238, sigma_oo=3.166,
                        epsilon_oo=78.177560234, sigma_ow=3.19,
                        epsilon_ow=47.1470064248, r_ljcut=10.0,
                        r_coulcut=10.0, alpha=0.3077)
    """

    def __init__(
        self,
        q_o,
        q_h,
        sigma_oo,
        epsilon_oo,
        sigma_ow,
        epsilon_ow,
        r_ljcut,
        r_coulcut,
        alpha,
        margin=2.0,
    ):
        if r_ljcut > r_coulcut:
            raise ValueError(
                f"LJ cutoff ({r_ljcut}) must not exceed the Coulomb cutoff ({r_coulcut})"
            )
        self.q_o = q_o
        self.q_h = q_h
        self.sigma_oo = sigma_oo
        self.epsilon_oo = epsilon_oo
        self.sigma_ow = sigma_ow
        self.epsilon_ow = epsilon_ow
        self.r_ljcut = r_ljcut
        self.r_coulcut = r_coulcut
        self.alpha = alpha
        self.margin = margin

        self.site_charges = np.array([q_o, q_h, q_h])
        # O-O, O-H and H-H charge products; LJ on O-O only
        self.qq = np.outer(self.site_charges, self.site_charges)
        self.lj_pair = np.zeros((3, 3), dtype=bool)
        self.lj_pair[0, 0] = True

    @property
    def molecule_cutoff(self):
        """Center-of-mass separation beyond which no site pair can interact."""
        return self.r_coulcut + self.margin


def _window_pruned(zi, zj, zlo, zhi):
    """True where both molecules lie on the same side outside the window, or straddle it."""
    below_i, above_i = zi < zlo, zi > zhi
    below_j, above_j = zj < zlo, zj > zhi
    return (
        (below_i & below_j)
        | (above_i & above_j)
        | (above_i & below_j)
        | (below_i & above_j)
    )


def fluid_fluid(frame, ff, grid, acc, zlo, zhi):
    """
    Accumulate the real-space electrostatic and LJ fluid-fluid channels of one frame.

    Molecule-level pruning (radial cutoff, axial window, center-of-mass distance)
    precedes the site loop; the contour test uses the molecules' center radii.
    """
    box = frame.box
    com = frame.com
    sites = frame.sites
    clr = radial_distance(com)
    z = com[:, 2]
    height = zhi - zlo
    rcsq = ff.molecule_cutoff ** 2
    rden_cut = grid.rden_cut

    n = frame.n_molecules
    for i in range(n - 1):
        j = np.arange(i + 1, n)
        keep = ~((clr[i] > rden_cut) & (clr[j] > rden_cut))
        keep &= ~_window_pruned(z[i], z[j], zlo, zhi)
        j = j[keep]
        if len(j) == 0:
            continue

        dmol = minimum_image_disp(com[j] - com[i], box)
        near = np.einsum("ij,ij->i", dmol, dmol) <= rcsq
        j = j[near]
        if len(j) == 0:
            continue
        zij = dmol[near, 2]

        # (pair, isite, jsite, xyz)
        ds = minimum_image_disp(sites[j][:, None, :, :] - sites[i][None, :, None, :], box)
        r = np.linalg.norm(ds, axis=-1)
        within = r <= ff.r_coulcut
        r_safe = np.where(within, r, 1.0)

        dudr_elec = np.where(within, coulomb_dudr(r_safe, ff.qq[None], ff.alpha), 0.0)
        lj_on = within & ff.lj_pair[None] & (r <= ff.r_ljcut)
        dudr_lj = np.where(lj_on, lj_dudr(r_safe, ff.sigma_oo, ff.epsilon_oo), 0.0)

        # == Harasima definition ==
        lever = 0.5 * zij[:, None, None] * ds[..., 2] / (r_safe * height)
        p_elec = np.sum(dudr_elec * lever, axis=(1, 2))
        p_lj = np.sum(dudr_lj * lever, axis=(1, 2))

        # molecule i: every partner's full pair value at clr[i]
        acc.deposit(Category.FLUID_FLUID, Channel.ELEC_REAL, clr[i], z[i], p_elec.sum(), zlo, zhi)
        acc.deposit(Category.FLUID_FLUID, Channel.LJ, clr[i], z[i], p_lj.sum(), zlo, zhi)
        # molecule j
        acc.deposit(Category.FLUID_FLUID, Channel.ELEC_REAL, clr[j], z[j], p_elec, zlo, zhi)
        acc.deposit(Category.FLUID_FLUID, Channel.LJ, clr[j], z[j], p_lj, zlo, zhi)


def fluid_wall(frame, ff, grid, acc, zlo, zhi, wall_radius, wall_half_length, buffer=1.0):
    """
    Accumulate the fluid-wall LJ channel: each water oxygen against every
    nanotube site. The tube axis is the z axis and its center is z = 0.
    """
    if len(frame.wall) == 0:
        return

    box = frame.box
    rlj = ff.r_ljcut
    height = zhi - zlo

    oxy = frame.sites[:, 0, :]
    clr_o = radial_distance(oxy)
    z_o = oxy[:, 2]
    clr = radial_distance(frame.com)
    z = frame.com[:, 2]

    wall = frame.wall
    clr_w = radial_distance(wall)
    z_w = wall[:, 2]

    near_wall = (
        (clr_o >= wall_radius - rlj)
        & (clr_o <= wall_radius + rlj + buffer)
        & (z_o <= zhi + rlj)
        & (z_o >= zlo - rlj)
        & (np.abs(z_o) <= wall_half_length + rlj + buffer)
    )

    for i in np.flatnonzero(near_wall):
        m = (z_w <= z_o[i] + rlj) & (z_w >= z_o[i] - rlj)
        m &= ~((z[i] > zhi) & (z_w > zhi))
        m &= ~((z[i] < zlo) & (z_w < zlo))
        if not m.any():
            continue

        ds = minimum_image_disp(wall[m] - oxy[i], box)
        r = np.linalg.norm(ds, axis=1)
        within = r <= rlj
        if not within.any():
            continue
        r = r[within]
        zs = ds[within, 2]

        dudr = lj_dudr(r, ff.sigma_ow, ff.epsilon_ow)
        zij = minimum_image_1d(z_w[m][within] - z[i], box[2])

        # == Harasima definition ==
        p_lj = 0.5 * dudr * zij * zs / (r * height)

        acc.deposit(Category.FLUID_WALL, Channel.LJ, clr[i], z[i], p_lj.sum(), zlo, zhi)
        acc.deposit(Category.FLUID_WALL, Channel.LJ, clr_w[m][within], z_w[m][within], p_lj, zlo, zhi)
