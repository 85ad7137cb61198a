#!/usr/bin/env python3
"""
harasima.py

Radial bin grid, Harasima contour binning and the run-long accumulators.

A contribution located at radius clr lands, with full weight, in every bin i
satisfying the unit-step pair

    (posr_i - clr + dr/2 > 0) and (clr + dr/2 - posr_i > 0),   posr_i = (i - 0.5) dr

which selects exactly one bin for equal-width shells.
"""

from enum import IntEnum

import numpy as np

from aux import NA, PCOEFF, TWO_PI, block_average


class Category(IntEnum):
    FLUID_WALL = 0
    FLUID_FLUID = 1


class Channel(IntEnum):
    ELEC_REAL = 0
    RECIPROCAL = 1
    LJ = 2


class RadialGrid:
    """Concentric cylindrical shells of width dr = rden_cut / nbins."""

    def __init__(self, rden_cut, nbins):
        if rden_cut <= 0.0 or nbins < 1:
            raise ValueError("rden_cut must be positive and nbins at least 1")
        self.rden_cut = float(rden_cut)
        self.nbins = int(nbins)
        self.dr = self.rden_cut / self.nbins
        self.delrr = 0.5 * self.dr
        self.centers = (np.arange(1, self.nbins + 1) - 0.5) * self.dr

    def contour_bins(self, clr):
        """
        0-based bin index selected by the unit-step test for each radius,
        or -1 when no bin passes (beyond rden_cut, or an exact edge tie).
        """
        clr = np.atleast_1d(np.asarray(clr, dtype=float))
        guess = np.floor(clr / self.dr).astype(int)
        out = np.full(clr.shape, -1, dtype=int)
        for shift in (-1, 0, 1):
            k = guess + shift
            valid = (k >= 0) & (k < self.nbins)
            posr = (k + 0.5) * self.dr
            hit = valid & (posr - clr + self.delrr > 0.0) & (clr + self.delrr - posr > 0.0)
            out = np.where(hit & (out < 0), k, out)
        return out

    def density_bins(self, clr):
        """floor(clr/dr) for radii inside rden_cut, -1 otherwise."""
        clr = np.atleast_1d(np.asarray(clr, dtype=float))
        k = np.floor(clr / self.dr).astype(int)
        return np.where((clr < self.rden_cut) & (k < self.nbins), k, -1)

    def shell_volumes(self, height):
        """pi (2i - 1) H dr^2 for i = 1..nbins."""
        i = np.arange(1, self.nbins + 1)
        return np.pi * (2 * i - 1) * height * self.dr ** 2


class PressureAccumulator:
    """
    Run-long sums: axial pressure tensor cells (category x channel x bin) and
    per-bin number density, plus the per-frame density blocks.

    Usage:
        acc = PressureAccumulator(RadialGrid(24.5, 800))
        acc.sample_density(clr, z, zlo, zhi)
        acc.deposit(Category.FLUID_FLUID, Channel.LJ, clr, z, values, zlo, zhi)
        acc.end_frame()
        profile = acc.finalize(temperature=300.0, mol_mass=18.01528)
    """

    def __init__(self, grid, n_mol_types=1):
        self.grid = grid
        self.n_mol_types = n_mol_types
        self.tensor = np.zeros((len(Category), len(Channel), grid.nbins))
        self.density = np.zeros((grid.nbins, n_mol_types))
        self.density_frames = []
        self.n_frames = 0

    def deposit(self, category, channel, clr, z, value, zlo, zhi):
        """Add contributions located at (clr, z) to the single contour bin of each."""
        clr = np.atleast_1d(np.asarray(clr, dtype=float))
        z = np.broadcast_to(np.asarray(z, dtype=float), clr.shape)
        value = np.broadcast_to(np.asarray(value, dtype=float), clr.shape)

        bins = self.grid.contour_bins(clr)
        ok = (bins >= 0) & (z >= zlo) & (z <= zhi)
        if np.any(ok):
            np.add.at(self.tensor[category, channel], bins[ok], value[ok])

    def sample_density(self, clr, z, zlo, zhi, mol_types=None):
        """Bin molecules inside the axial window; adds this frame's number density [1/A^3]."""
        clr = np.atleast_1d(np.asarray(clr, dtype=float))
        z = np.asarray(z, dtype=float)
        if mol_types is None:
            mol_types = np.zeros(len(clr), dtype=int)

        bins = self.grid.density_bins(clr)
        ok = (bins >= 0) & (z >= zlo) & (z <= zhi)
        counts = np.zeros((self.grid.nbins, self.n_mol_types))
        np.add.at(counts, (bins[ok], np.asarray(mol_types)[ok]), 1.0)

        rho = counts / self.grid.shell_volumes(zhi - zlo)[:, None]
        self.density += rho
        self.density_frames.append(rho)
        return rho

    def end_frame(self):
        self.n_frames += 1

    def finalize(self, temperature, mol_mass, nblocks=5):
        """
        Average over frames and convert to the radial profiles.

        The kinetic term is the ideal-gas estimate rho(r) k_B T from the sampled
        number density. Every configurational channel is
        -1/(2 pi r dr) * <sum of axial contributions>. Pressures in bar.
        """
        if self.n_frames == 0:
            raise ValueError("No frames were accumulated")

        grid = self.grid
        posr = grid.centers
        rho_number = self.density / self.n_frames
        rho_mass = mol_mass / (NA * 1.0e-24) * rho_number

        rho_total = rho_number.sum(axis=1)
        p_kin = rho_total * temperature

        avg = self.tensor / self.n_frames
        conf = -1.0 / (TWO_PI * posr * grid.dr) * avg

        p_ff_real = conf[Category.FLUID_FLUID, Channel.ELEC_REAL]
        p_ff_recip = conf[Category.FLUID_FLUID, Channel.RECIPROCAL]
        p_ff_lj = conf[Category.FLUID_FLUID, Channel.LJ]
        p_fw_lj = conf[Category.FLUID_WALL, Channel.LJ]
        p_total = p_kin + p_ff_real + p_ff_recip + p_ff_lj + p_fw_lj

        if len(self.density_frames) >= 2 * nblocks:
            blocks = np.array([rho.sum(axis=1) for rho in self.density_frames])
            _, rho_err = block_average(blocks, nblocks=nblocks)
        else:
            rho_err = np.full(grid.nbins, np.nan)

        return {
            "r": posr,
            "rho_mass": rho_mass,
            "rho_number": rho_number,
            "rho_number_err": rho_err,
            "p_kin": p_kin * PCOEFF,
            "p_ff_real": p_ff_real * PCOEFF,
            "p_ff_recip": p_ff_recip * PCOEFF,
            "p_ff_lj": p_ff_lj * PCOEFF,
            "p_fw_lj": p_fw_lj * PCOEFF,
            "p_total": p_total * PCOEFF,
        }
