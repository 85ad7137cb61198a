"""
main.py

Compute the Harasima/Ewald axial pressure profile of water in a carbon
nanotube from a LAMMPS DCD trajectory, then plot the profiles.

Usage:
    python3 main.py [trajectory.dcd]
"""

import os
import sys
from pathlib import Path

from press import CylinderPressure
from analyze import ProfileAnalysis


# =============================
# Run parameters
# =============================

TRAJ_PATH   = "/xxx/xxx/xxx/xxx.dcd"
TRAJ_FORMAT = "dcd"
FIRST_FRAME = 1
LAST_FRAME  = 1

# --- System ---
TEMP        = 300.0      # [K]
N_MOL       = 7500       # water molecules
N_MOL_SITES = 3          # O, H, H

# --- Nanotube (single-wall carbon nanotube, axis along z through the origin) ---
WALL             = True
N_WALL_SITES     = 2000
WALL_RADIUS      = 13.565    # [A]
WALL_HALF_LENGTH = 30.129    # [A]

# --- LJ parameters (epsilon in K) ---
SIGMA_OW   = 3.1900
EPSILON_OW = 47.1470064248
SIGMA_OO   = 3.166
EPSILON_OO = 78.177560234
R_LJCUT    = 10.0

# --- Ewald ---
ALPHA           = 0.3077     # [1/A]
R_COULCUT       = 10.0       # [A]
EWALD_PRECISION = 1.0e-5

# --- Masses [g/mol] and charges [e] ---
MOL_MASS = 18.01528
MASS_O   = 15.9994
MASS_H   = 1.00794
Q_O      = -0.8476
Q_H      = 0.4238

# --- Sampling cylinder ---
RDEN_CUT  = 24.5     # [A]
RDEN_BINS = 800
KAVG      = 0.2      # window height = KAVG * Lz
CYLRZ     = 0.0      # window center [A]


def main():
    BASE_DIR = Path(__file__).resolve().parent.parent
    DATA_DIR = BASE_DIR / "data"
    FIG_DIR  = BASE_DIR / "figures"

    os.makedirs(DATA_DIR, exist_ok=True)
    os.makedirs(FIG_DIR, exist_ok=True)

    traj = sys.argv[1] if len(sys.argv) > 1 else TRAJ_PATH

    # 1) Pressure profile
    calc = CylinderPressure(
        traj_path=traj,
        traj_format=TRAJ_FORMAT,
        first_frame=FIRST_FRAME,
        last_frame=LAST_FRAME,
        temperature=TEMP,
        n_mol=N_MOL,
        n_mol_sites=N_MOL_SITES,
        wall=WALL,
        n_wall_sites=N_WALL_SITES,
        wall_radius=WALL_RADIUS,
        wall_half_length=WALL_HALF_LENGTH,
        sigma_ow=SIGMA_OW,
        epsilon_ow=EPSILON_OW,
        sigma_oo=SIGMA_OO,
        epsilon_oo=EPSILON_OO,
        r_ljcut=R_LJCUT,
        alpha=ALPHA,
        r_coulcut=R_COULCUT,
        ewald_precision=EWALD_PRECISION,
        mol_mass=MOL_MASS,
        mass_o=MASS_O,
        mass_h=MASS_H,
        q_o=Q_O,
        q_h=Q_H,
        rden_cut=RDEN_CUT,
        rden_bins=RDEN_BINS,
        kavg=KAVG,
        cylrz=CYLRZ,
        data_dir=DATA_DIR,
    )
    calc.run()

    # 2) Plots + mean pressure inside the tube
    analyzer = ProfileAnalysis(
        data_dir=DATA_DIR,
        fig_dir=FIG_DIR,
        core_radius=WALL_RADIUS if WALL else None,
    )
    analyzer.run_all()


if __name__ == "__main__":
    main()
