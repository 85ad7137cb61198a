#!/usr/bin/env python3
"""
analyze.py

Post-run analysis of the radial reports written by CylinderPressure:
density profile, per-channel axial pressure profile and the area-weighted
mean axial pressure inside a radius.
"""

import os
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from aux import savefig

PRESSURE_COLUMNS = {
    "R": "r",
    "Pkin": "p_kin",
    "Ptz(ff_real)": "p_ff_real",
    "Ptz(ff_Fourier)": "p_ff_recip",
    "Ptz(ff_LJ)": "p_ff_lj",
    "Ptz(fw_LJ)": "p_fw_lj",
    "Ptz(tot)": "p_total",
}


def read_density_report(path):
    """r-density.txt -> DataFrame(r, rho_mass, rho_number, rho_number_err)."""
    return pd.read_csv(
        path,
        sep=r"\s+",
        skiprows=1,
        header=None,
        names=["r", "rho_mass", "rho_number", "rho_number_err"],
        na_values=["NAN"],
    )


def read_pressure_report(path):
    """press_cylinH.txt -> DataFrame(r, p_kin, p_ff_real, p_ff_recip, p_ff_lj, p_fw_lj, p_total)."""
    df = pd.read_csv(path, sep=r"\s+", skiprows=2)
    return df.rename(columns=PRESSURE_COLUMNS)


def area_weighted_mean(r, values, r_max):
    """Mean of values over the disk r < r_max, each shell weighted by its area (~ r)."""
    r = np.asarray(r, dtype=float)
    values = np.asarray(values, dtype=float)
    mask = r < r_max
    if not np.any(mask):
        raise ValueError(f"No bins inside r_max = {r_max}")
    return float(np.sum(values[mask] * r[mask]) / np.sum(r[mask]))


class ProfileAnalysis:
    """
    High-level analysis class for the radial density/pressure reports.
    """

    def __init__(
        self,
        data_dir="data",
        fig_dir=None,
        *,
        core_radius=None,
    ):
        self.data_dir = Path(data_dir).resolve()
        if fig_dir is None:
            self.fig_dir = (self.data_dir / "figures").resolve()
        else:
            self.fig_dir = Path(fig_dir).resolve()
        self.core_radius = core_radius

        os.makedirs(self.fig_dir, exist_ok=True)

        self._density = None
        self._pressure = None

    # --------------------------------------------------
    # MAIN EXECUTION
    # --------------------------------------------------

    def run_all(self):
        self._load()
        self.plot_density()
        self.plot_pressure()
        return self.write_mean_pressure()

    def plot_density(self):
        self._load()
        df = self._density
        plt.figure()
        plt.plot(df["r"], df["rho_mass"], color="tab:blue")
        occupied = df["rho_number"] > 0.0
        if df["rho_number_err"].notna().any() and occupied.any():
            # same conversion factor in every bin
            to_mass = (df["rho_mass"][occupied] / df["rho_number"][occupied]).iloc[0]
            err = to_mass * df["rho_number_err"].fillna(0.0)
            plt.fill_between(
                df["r"], df["rho_mass"] - err, df["rho_mass"] + err,
                color="tab:blue", alpha=0.3, lw=0,
            )
        plt.xlabel("r (Angstrom)")
        plt.ylabel("rho(r) (g/ml)")
        plt.grid(alpha=0.3)
        savefig(str(self.fig_dir), "density_profile")
        plt.close()

    def plot_pressure(self):
        self._load()
        df = self._pressure
        labels = [
            ("p_kin", "kinetic"),
            ("p_ff_real", "ff real (Coulomb)"),
            ("p_ff_recip", "ff Fourier"),
            ("p_ff_lj", "ff LJ"),
            ("p_fw_lj", "fw LJ"),
            ("p_total", "total"),
        ]
        plt.figure()
        for col, label in labels:
            style = "k-" if col == "p_total" else "-"
            plt.plot(df["r"], df[col], style, label=label)
        plt.axhline(0.0, color="k", ls="--", alpha=0.4)
        plt.xlabel("r (Angstrom)")
        plt.ylabel("P_zz (bar)")
        plt.legend()
        plt.grid(alpha=0.3)
        savefig(str(self.fig_dir), "pressure_profile_zz")
        plt.close()

    def mean_axial_pressure(self, r_max=None):
        """Area-weighted mean of every pressure column inside r_max (default: core_radius or all bins)."""
        self._load()
        df = self._pressure
        if r_max is None:
            r_max = self.core_radius if self.core_radius is not None else df["r"].max() + 1.0
        return {
            col: area_weighted_mean(df["r"], df[col], r_max)
            for col in PRESSURE_COLUMNS.values()
            if col != "r"
        }

    def write_mean_pressure(self, r_max=None):
        means = self.mean_axial_pressure(r_max)
        txt_path = self.fig_dir / "mean_axial_pressure.txt"
        with open(txt_path, "w") as f:
            f.write("# Area-weighted mean axial pressure [bar]\n")
            for col, value in means.items():
                f.write(f"{col:<12s} = {value:.6f}\n")
        print(f"[save] Wrote {txt_path}")
        return means

    # --------------------------------------------------
    # UTILS / LOADING
    # --------------------------------------------------

    def _load(self):
        if self._density is None:
            self._density = read_density_report(self.data_dir / "r-density.txt")
        if self._pressure is None:
            self._pressure = read_pressure_report(self.data_dir / "press_cylinH.txt")
