#!/usr/bin/env python3
"""
press.py

Harasima/Ewald axial pressure profile of water confined in a nanotube.

Public API:
    - class CylinderPressure
"""

import os
import time
from pathlib import Path

import numpy as np

from aux import (
    EETOK,
    PCOEFF,
    radial_distance,
    read_dcd_frames,
    read_traj_gro,
)
from ewald import EwaldSetup, MAX_KINDEX, MAX_KVECTORS, reciprocal_space
from harasima import PressureAccumulator, RadialGrid
from pairwise import ForceField, fluid_fluid, fluid_wall


class CylinderPressure:
    """
    Post-processing driver: one pass over the sampled frames, accumulating the
    radial density and the axial (zz) pressure tensor inside a cylinder
    centered on the z axis.

    Usage:
        calc = CylinderPressure(traj_path="water_cnt.dcd", first_frame=1,
                                last_frame=500, n_mol=7500, wall=True,
                                data_dir=Path("data"))
        result = calc.run()
    """

    def __init__(
        self,
        traj_path=None,
        traj_format="dcd",
        first_frame=1,
        last_frame=None,
        temperature=300.0,
        n_mol=7500,
        n_mol_sites=3,
        wall=True,
        n_wall_sites=2000,
        wall_radius=13.565,
        wall_half_length=30.129,
        sigma_ow=3.19,
        epsilon_ow=47.1470064248,
        sigma_oo=3.166,
        epsilon_oo=78.177560234,
        r_ljcut=10.0,
        alpha=0.3077,
        r_coulcut=10.0,
        ewald_precision=1.0e-5,
        mol_mass=18.01528,
        mass_o=15.9994,
        mass_h=1.00794,
        q_o=-0.8476,
        q_h=0.4238,
        rden_cut=24.5,
        rden_bins=800,
        kavg=0.2,
        cylrz=0.0,
        max_kvectors=MAX_KVECTORS,
        max_kindex=MAX_KINDEX,
        progress_every=10,
        data_dir=Path(__file__).resolve().parent.parent / "data",
    ):
        if n_mol_sites != 3:
            raise ValueError("Only rigid three-site water (O, H, H) is supported")
        if first_frame < 1 or (last_frame is not None and last_frame < first_frame):
            raise ValueError("Frame range must satisfy 1 <= first_frame <= last_frame")
        if not 0.0 < kavg <= 1.0:
            raise ValueError("kavg must lie in (0, 1]")
        if traj_format not in ("dcd", "gro"):
            raise ValueError("traj_format must be 'dcd' or 'gro'")

        self.traj_path = traj_path
        self.traj_format = traj_format
        self.first_frame = first_frame
        self.last_frame = last_frame
        self.temperature = temperature
        self.n_mol = n_mol
        self.n_mol_sites = n_mol_sites
        self.wall = wall
        self.n_wall_sites = n_wall_sites
        self.wall_radius = wall_radius
        self.wall_half_length = wall_half_length
        self.ewald_precision = ewald_precision
        self.mol_mass = mol_mass
        self.masses = np.array([mass_o, mass_h, mass_h])
        self.kavg = kavg
        self.cylrz = cylrz
        self.max_kvectors = max_kvectors
        self.max_kindex = max_kindex
        self.progress_every = progress_every
        self.data_dir = os.path.abspath(str(data_dir))

        # raises when r_ljcut > r_coulcut
        self.ff = ForceField(
            q_o=q_o,
            q_h=q_h,
            sigma_oo=sigma_oo,
            epsilon_oo=epsilon_oo,
            sigma_ow=sigma_ow,
            epsilon_ow=epsilon_ow,
            r_ljcut=r_ljcut,
            r_coulcut=r_coulcut,
            alpha=alpha,
        )
        self.grid = RadialGrid(rden_cut, rden_bins)

    @property
    def n_water_sites(self):
        return self.n_mol * self.n_mol_sites

    # --------------------------------------------------
    # INPUT
    # --------------------------------------------------

    def load_frames(self):
        """Read the sampled frames from traj_path."""
        if self.traj_path is None:
            raise ValueError("traj_path must be provided when no frames are passed to run()")
        reader = read_dcd_frames if self.traj_format == "dcd" else read_traj_gro
        n_wall = self.n_wall_sites if self.wall else 0
        frames = list(
            reader(
                self.traj_path,
                self.n_water_sites,
                n_wall,
                self.masses,
                first=self.first_frame,
                last=self.last_frame,
            )
        )
        print(f"[info] Read {len(frames)} frames from {self.traj_path}")
        return frames

    def averaging_window(self, frame):
        """[zlo, zhi] of half-height 0.5 * kavg * Lz around cylrz."""
        half = 0.5 * frame.box[2] * self.kavg
        return self.cylrz - half, self.cylrz + half

    def check_frame(self, frame):
        if frame.n_molecules != self.n_mol:
            raise ValueError(
                f"Frame holds {frame.n_molecules} molecules, configuration expects {self.n_mol}"
            )
        if self.ff.molecule_cutoff > min(frame.box[0], frame.box[1]) / 2.0:
            raise ValueError(
                f"Cutoff {self.ff.molecule_cutoff:.3f} A is too large for box "
                f"({frame.box[0]:.3f}, {frame.box[1]:.3f}, {frame.box[2]:.3f})"
            )

    def preflight(self, frames):
        """
        Validate every frame and the reciprocal capacity before any sampling.

        The k-vector count grows with the longest box edge, so the largest
        frame bounds the Ewald tables of the whole run.
        """
        for frame in frames:
            self.check_frame(frame)
        largest = max(frames, key=lambda fr: fr.box.max())
        setup = EwaldSetup(
            largest.box,
            self.ff.alpha,
            self.ewald_precision,
            max_kvectors=self.max_kvectors,
            max_kindex=self.max_kindex,
        )
        print(
            f"[info] Reciprocal set: kmax={setup.kmax}  {setup.n_kvectors} k-vectors "
            f"(capacity {self.max_kvectors})"
        )

    # --------------------------------------------------
    # PER-FRAME SAMPLING
    # --------------------------------------------------

    def process_frame(self, frame, acc):
        """Fold one frame's density and pressure contributions into acc; returns the EwaldSetup."""
        self.check_frame(frame)
        zlo, zhi = self.averaging_window(frame)

        acc.sample_density(radial_distance(frame.com), frame.com[:, 2], zlo, zhi)

        # box may fluctuate, so the Ewald set is rebuilt every frame
        setup = EwaldSetup(
            frame.box,
            self.ff.alpha,
            self.ewald_precision,
            max_kvectors=self.max_kvectors,
            max_kindex=self.max_kindex,
        )
        setup.build_tables(frame.sites.reshape(-1, 3))

        fluid_fluid(frame, self.ff, self.grid, acc, zlo, zhi)
        if self.wall:
            fluid_wall(
                frame, self.ff, self.grid, acc, zlo, zhi,
                self.wall_radius, self.wall_half_length,
            )
        reciprocal_space(frame, setup, self.ff.site_charges, self.grid, acc, zlo, zhi)

        acc.end_frame()
        return setup

    # --------------------------------------------------
    # MAIN EXECUTION
    # --------------------------------------------------

    def run(self, frames=None, write=True):
        """
        Process every frame and write:
            - r-density.txt
            - press_cylinH.txt
        into self.data_dir.

        Returns a dict summarizing outputs and holding the profiles.
        """
        if frames is None:
            frames = self.load_frames()
        if len(frames) == 0:
            raise ValueError("No frames to process")
        self.preflight(frames)

        print(
            f"[info] N_mol={self.n_mol}  wall={self.wall}  bins={self.grid.nbins}  "
            f"dr={self.grid.dr:.4f}  alpha={self.ff.alpha}  K_e={EETOK:.2f} K*A"
        )
        if self.wall and len(frames[0].wall):
            com_nt = frames[0].wall.mean(axis=0)
            print(
                f"[info] COM position of nanotube: "
                f"({com_nt[0]:.4f}, {com_nt[1]:.4f}, {com_nt[2]:.4f})"
            )

        acc = PressureAccumulator(self.grid)
        n_frames = len(frames)
        t0 = time.time()

        for iframe, frame in enumerate(frames, start=1):
            setup = self.process_frame(frame, acc)

            if self.progress_every and iframe % self.progress_every == 0:
                elapsed = time.time() - t0
                left = elapsed / iframe * (n_frames - iframe) / 3600.0
                print(
                    f"[progress] frame #{self.first_frame + iframe - 1} "
                    f"kmax=({setup.kxmax}, {setup.kymax}, {setup.kzmax})  "
                    f"{100.0 * iframe / n_frames:6.2f}%  "
                    f"time left {left:7.3f} hours {left / 24.0:7.3f} days"
                )

        profile = acc.finalize(self.temperature, self.mol_mass)
        print(f"[info] Sampling complete: {n_frames} frames in {time.time() - t0:.1f}s")

        result = {
            "n_frames": n_frames,
            "nbins": self.grid.nbins,
            "profile": profile,
        }
        if write:
            result.update(self.write_reports(profile))

        occupied = profile["rho_number"].sum(axis=1) > 0.0
        if np.any(occupied):
            print(
                f"[summary] <P_zz> over {int(occupied.sum())} occupied bins = "
                f"{np.mean(profile['p_total'][occupied]):.4f} bar"
            )
        return result

    # --------------------------------------------------
    # OUTPUT
    # --------------------------------------------------

    def write_reports(self, profile):
        os.makedirs(self.data_dir, exist_ok=True)
        den_path = os.path.join(self.data_dir, "r-density.txt")
        press_path = os.path.join(self.data_dir, "press_cylinH.txt")

        with open(den_path, "w") as f:
            f.write(
                " R             R-rho [g/ml]           R-rho [1/A^3]"
                "          err(R-rho) [1/A^3]\n"
            )
            # err column is nan until 2 * nblocks frames are sampled
            for r, rho_m, rho_n, err in zip(
                profile["r"],
                profile["rho_mass"].sum(axis=1),
                profile["rho_number"].sum(axis=1),
                profile["rho_number_err"],
            ):
                f.write(f"{r:8.4f}       {rho_m:15.7E}        {rho_n:15.7E}        {err:15.7E}\n")
        print(f"[save] Wrote {den_path}")

        columns = ["p_kin", "p_ff_real", "p_ff_recip", "p_ff_lj", "p_fw_lj", "p_total"]
        with open(press_path, "w") as f:
            f.write(" Cylindrical pressure tensor from virial route using the Harasima definition\n")
            f.write(" Unit: pressure in [bar] and length in [Angstrom]\n")
            f.write(
                "  R              Pkin        Ptz(ff_real)        Ptz(ff_Fourier)"
                "        Ptz(ff_LJ)        Ptz(fw_LJ)       Ptz(tot)\n"
            )
            for i, r in enumerate(profile["r"]):
                row = "".join(f"{profile[c][i]:19.6f}" for c in columns)
                f.write(f"{r:8.4f}{row}\n")
        print(f"[save] Wrote {press_path}")

        return {"density_path": den_path, "pressure_path": press_path, "pcoeff": PCOEFF}
