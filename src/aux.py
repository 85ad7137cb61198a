#!/usr/bin/env python3
"""
aux.py

Shared helper functions for the cylindrical pressure project:
- physical constants / unit conversions
- box / PBC utilities
- cylindrical geometry and water center-of-mass reconstruction
- frame record and trajectory I/O (.gro text, LAMMPS .dcd)
- statistics (block averaging), figure saving
"""

import os
from typing import Tuple

import numpy as np
import matplotlib.pyplot as plt
from scipy import constants as cst
from MDAnalysis.coordinates.DCD import DCDReader

#############################
# Constants & unit factors  #
#############################

NA = cst.Avogadro

# e^2 / (4 pi eps0 k_B) in [K * Angstrom] per e^2
EETOK = cst.e ** 2 / (4.0 * np.pi * cst.epsilon_0 * cst.k * 1.0e-10)

# [K / A^3] -> [bar]
PCOEFF = cst.k * 1.0e30 / cst.bar

SQRT_PI = np.sqrt(np.pi)
TWO_PI = 2.0 * np.pi

#############################
# Box & minimum-image tools #
#############################

def _as_box(L):
    """Return (Lx, Ly, Lz) given scalar or iterable L."""
    try:
        Lx, Ly, Lz = L  # iterable
        return float(Lx), float(Ly), float(Lz)
    except TypeError:
        return float(L), float(L), float(L)


def minimum_image_disp(drij, L):
    """
    Apply minimum image to displacement vectors, componentwise in x,y,z.
    Every wrapped component lies in [-L/2, L/2).
    drij: (...,3)
    L: side length or (Lx,Ly,Lz)
    """
    box = np.asarray(_as_box(L))
    d = np.array(drij, dtype=float, copy=True)
    d -= box * np.floor(d / box + 0.5)
    return d


def minimum_image_1d(d, L):
    """Minimum image of a single Cartesian component (scalar or array)."""
    return d - L * np.floor(d / L + 0.5)


def radial_distance(pos):
    """Distance from the cylinder (z) axis for positions of shape (...,3)."""
    pos = np.asarray(pos, dtype=float)
    return np.sqrt(pos[..., 0] ** 2 + pos[..., 1] ** 2)

#############################
# Molecules & frames        #
#############################

def molecule_com(sites, box, masses):
    """
    Center of mass of rigid molecules under periodic wrapping.

    Every non-first site is first brought to the minimum image of the
    molecule's first site (oxygen for water), then the mass-weighted
    average is folded back into the primary cell centered on the origin.

    Parameters
    ----------
    sites : (N, n_sites, 3)
        Site coordinates, not required to lie in the primary cell.
    box : (Lx, Ly, Lz)
    masses : (n_sites,)

    Returns
    -------
    com : (N, 3)
    """
    sites = np.asarray(sites, dtype=float)
    masses = np.asarray(masses, dtype=float)
    anchor = sites[:, :1, :]
    unwrapped = anchor + minimum_image_disp(sites - anchor, box)
    com = np.einsum("s,nsk->nk", masses, unwrapped) / masses.sum()
    return minimum_image_disp(com, box)


class Frame:
    """
    One sampled configuration.

    Attributes
    ----------
    box : (3,) orthogonal box lengths [A]
    volume : float [A^3]
    sites : (N, n_sites, 3) water site coordinates; site 0 is O, 1..2 are H
    com : (N, 3) molecular centers of mass, folded into the primary cell
    wall : (M, 3) nanotube site coordinates (M may be 0)
    """

    def __init__(self, box, sites, com=None, wall=None, masses=None):
        self.box = np.array(_as_box(box), dtype=float)
        self.volume = float(np.prod(self.box))
        self.sites = np.asarray(sites, dtype=float)
        if com is None:
            if masses is None:
                raise ValueError("masses are required to reconstruct the center of mass")
            com = molecule_com(self.sites, self.box, masses)
        self.com = np.asarray(com, dtype=float)
        if wall is None:
            wall = np.zeros((0, 3))
        self.wall = np.asarray(wall, dtype=float).reshape(-1, 3)

    @property
    def n_molecules(self):
        return self.sites.shape[0]


def _split_atoms(pos, n_water_sites, n_wall_sites, n_mol_sites):
    """Split a flat (natom,3) array into (wall, water sites). Wall atoms come first."""
    expected = n_water_sites + n_wall_sites
    if len(pos) != expected:
        raise ValueError(
            f"Trajectory holds {len(pos)} atoms per frame, but the configuration "
            f"expects {expected} ({n_water_sites} water sites + {n_wall_sites} wall sites)"
        )
    wall = pos[:n_wall_sites]
    water = pos[n_wall_sites:].reshape(-1, n_mol_sites, 3)
    return wall, water

#############################
# Trajectory I/O            #
#############################

def read_dcd_frames(path, n_water_sites, n_wall_sites, masses, first=1, last=None,
                    n_mol_sites=3):
    """
    Generator of Frame objects from a LAMMPS DCD file.

    first/last are 1-based and inclusive; last=None reads to the end.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"DCD trajectory not found: {path}")

    reader = DCDReader(str(path))
    try:
        expected = n_water_sites + n_wall_sites
        if reader.n_atoms != expected:
            raise ValueError(
                f"DCD header declares {reader.n_atoms} atoms, but the configuration "
                f"expects {expected} ({n_water_sites} water sites + {n_wall_sites} wall sites)"
            )
        stop = reader.n_frames if last is None else min(last, reader.n_frames)
        for ts in reader[first - 1:stop]:
            box = ts.dimensions[:3].astype(float)
            pos = ts.positions.astype(float)
            wall, water = _split_atoms(pos, n_water_sites, n_wall_sites, n_mol_sites)
            yield Frame(box, water, wall=wall, masses=masses)
    finally:
        reader.close()


def read_traj_gro(path, n_water_sites, n_wall_sites, masses, first=1, last=None,
                  n_mol_sites=3):
    """
    Generator that yields Frame objects for every frame in a .gro trajectory.
    Coordinates in the file are in nm and are converted to Angstrom.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"GRO trajectory not found: {path}")

    with open(path, "r") as f:
        iframe = 0
        while True:
            line = f.readline()  # Title
            if not line:
                break
            try:
                natoms = int(f.readline().strip())
            except ValueError:
                break

            pos = np.zeros((natoms, 3), float)
            for i in range(natoms):
                line = f.readline()
                pos[i] = [float(line[20:28]), float(line[28:36]), float(line[36:44])]
            box_line = f.readline().split()
            if len(box_line) < 3:
                raise ValueError(".gro box line malformed")
            box = np.array([float(b) for b in box_line[:3]])

            iframe += 1
            if iframe < first:
                continue
            if last is not None and iframe > last:
                break

            wall, water = _split_atoms(10.0 * pos, n_water_sites, n_wall_sites, n_mol_sites)
            yield Frame(10.0 * box, water, wall=wall, masses=masses)


def write_gro_frame(f, frame, title="frame"):
    """Write a single Frame (wall first, then water O,H,H) to an open .gro file."""
    Lx, Ly, Lz = frame.box / 10.0
    water = frame.sites.reshape(-1, 3)
    natoms = len(frame.wall) + len(water)
    f.write(f"{title}\n")
    f.write(f"{natoms:5d}\n")
    i = 0
    for x, y, z in frame.wall / 10.0:
        i += 1
        f.write(f"{1:5d}{'CNT':>5s}{'C':>5s}{i % 100000:5d}{x:8.3f}{y:8.3f}{z:8.3f}\n")
    names = ["OW", "HW1", "HW2"]
    for imol, mol in enumerate(frame.sites / 10.0, start=2):
        for isite, (x, y, z) in enumerate(mol):
            i += 1
            f.write(
                f"{imol % 100000:5d}{'SOL':>5s}{names[isite % 3]:>5s}"
                f"{i % 100000:5d}{x:8.3f}{y:8.3f}{z:8.3f}\n"
            )
    f.write(f"   {Lx:8.5f} {Ly:8.5f} {Lz:8.5f}\n")

#############################
# Statistics & I/O helpers  #
#############################

def block_average(tseries, nblocks=5) -> Tuple[np.ndarray, np.ndarray]:
    """
    calculate the block average of a time series
    """
    tseries = np.asarray(tseries)
    if tseries.ndim == 1:
        tseries = tseries[:, None]
    Tn, M = tseries.shape
    blocklen = int(Tn / nblocks)
    if blocklen < 1:
        raise ValueError("Not enough samples for the requested number of blocks")
    means = np.zeros((nblocks, M))
    for i in range(nblocks - 1):
        means[i, :] = tseries[i * blocklen : (i + 1) * blocklen, :].mean(axis=0)
    means[nblocks - 1, :] = tseries[(nblocks - 1) * blocklen :, :].mean(axis=0)
    mean = means.mean(axis=0)
    err = means.std(axis=0, ddof=1) / np.sqrt(nblocks)
    return mean, err


def savefig(out_dir: str, stem: str):
    os.makedirs(out_dir, exist_ok=True)
    png = os.path.join(out_dir, f"{stem}.png")
    svg = os.path.join(out_dir, f"{stem}.svg")
    plt.savefig(png, bbox_inches="tight", dpi=200)
    plt.savefig(svg, bbox_inches="tight")
    print(f"[save] {png}\n[save] {svg}")
