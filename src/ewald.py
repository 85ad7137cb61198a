#!/usr/bin/env python3
"""
ewald.py

Reciprocal-space half of the Ewald sum for rigid point-charge molecules.

    - class EwaldSetup        # k-vector set + per-site phase tables for one frame
    - structure_factor(...)   # S(k) = sum_s q_s exp(i k.r_s)
    - reciprocal_axial_virial(...)   # per-molecule zz virial proxy
    - real_space_energy / reciprocal_energy / self_energy   # Ewald energy check

Wave vectors are enumerated over a half space (k and -k are equivalent for
every quantity used here), so each admissible vector carries weight 2.
"""

import numpy as np
from scipy.special import erfc

from aux import _as_box, minimum_image_disp, radial_distance, EETOK, SQRT_PI, TWO_PI
from harasima import Category, Channel

# Default static provisioning of the reciprocal-space tables
MAX_KINDEX = 40
MAX_KVECTORS = 8 * MAX_KINDEX ** 3

# Upper bound on complex entries held in one phase chunk
_CHUNK_ENTRIES = 2_000_000


def reciprocal_kmax(alpha, box, precision):
    """kmax = alpha * max(L) / pi * sqrt(-ln(precision)), at least 1."""
    Lmax = max(_as_box(box))
    kmax = int(alpha * Lmax / np.pi * np.sqrt(-np.log(precision)))
    return max(kmax, 1)


def phase_tables(pos, box, nmax):
    """
    Per-site tables exp(i * 2 pi n x / Lx) for n in [-nmax, nmax], built by
    repeated multiplication of the n=1 factor.

    Parameters
    ----------
    pos : (n_sites, 3)
    box : (Lx, Ly, Lz)
    nmax : (3,) per-axis maxima

    Returns
    -------
    list of three (n_sites, 2*nmax_a + 1) complex arrays; column nmax_a is n=0.
    """
    box = np.asarray(_as_box(box))
    pos = np.asarray(pos, dtype=float)
    tables = []
    for axis in range(3):
        n = int(nmax[axis])
        table = np.empty((len(pos), 2 * n + 1), dtype=complex)
        table[:, n] = 1.0
        if n > 0:
            base = np.exp(1j * TWO_PI * pos[:, axis] / box[axis])
            table[:, n + 1] = base
            for m in range(2, n + 1):
                table[:, n + m] = table[:, n + m - 1] * base
            table[:, :n] = np.conj(table[:, n + 1:][:, ::-1])
        tables.append(table)
    return tables


class EwaldSetup:
    """
    Frame-scoped Ewald working set.

    Usage:
        setup = EwaldSetup(box, alpha=0.3077, precision=1e-5)
        setup.build_tables(site_positions)
        S = structure_factor(setup, charges)
    """

    def __init__(self, box, alpha, precision, max_kvectors=MAX_KVECTORS,
                 max_kindex=MAX_KINDEX):
        self.box = np.array(_as_box(box), dtype=float)
        self.volume = float(np.prod(self.box))
        self.alpha = float(alpha)
        self.precision = float(precision)

        Lmax = self.box.max()
        self.kmax = reciprocal_kmax(alpha, self.box, precision)
        self.nmax = np.floor(self.kmax * self.box / Lmax + 1e-12).astype(int)
        self.kxmax, self.kymax, self.kzmax = (int(n) for n in self.nmax)

        if np.any(self.nmax > max_kindex):
            raise ValueError(
                f"Reciprocal cutoff needs wave numbers up to {tuple(self.nmax)}, "
                f"above the provisioned per-axis maximum {max_kindex}; "
                f"lower alpha or the Ewald precision"
            )

        self.ksq_cut = (TWO_PI * self.kmax / Lmax) ** 2
        self._enumerate_kvectors()

        if len(self.n_vec) > max_kvectors:
            raise ValueError(
                f"Reciprocal cutoff admits {len(self.n_vec)} wave vectors, "
                f"above the provisioned capacity of {max_kvectors}"
            )

        self.tables = None
        self.n_sites = None

    def _enumerate_kvectors(self):
        nx = np.arange(0, self.kxmax + 1)
        ny = np.arange(-self.kymax, self.kymax + 1)
        nz = np.arange(-self.kzmax, self.kzmax + 1)
        grid = np.stack(np.meshgrid(nx, ny, nz, indexing="ij"), axis=-1).reshape(-1, 3)

        # half space: nx > 0, or nx == 0 and ny > 0, or nx == ny == 0 and nz > 0
        half = (
            (grid[:, 0] > 0)
            | ((grid[:, 0] == 0) & (grid[:, 1] > 0))
            | ((grid[:, 0] == 0) & (grid[:, 1] == 0) & (grid[:, 2] > 0))
        )
        grid = grid[half]

        k = TWO_PI * grid / self.box
        ksq = np.einsum("ij,ij->i", k, k)
        keep = ksq <= self.ksq_cut

        self.n_vec = grid[keep]
        self.k_vec = k[keep]
        self.ksq = ksq[keep]
        # symmetry weight 2 for the omitted -k partner
        self.coeff = 2.0 * np.exp(-self.ksq / (4.0 * self.alpha ** 2)) / self.ksq

    @property
    def n_kvectors(self):
        return len(self.n_vec)

    def build_tables(self, pos):
        """Precompute per-site phase tables for flat site positions (n_sites, 3)."""
        self.tables = phase_tables(pos, self.box, self.nmax)
        self.n_sites = len(pos)
        return self.tables

    def phases(self, kslice, sites=None):
        """exp(i k.r) for the given sites (default all) and the k-vectors in kslice: (n, nk)."""
        if self.tables is None:
            raise RuntimeError("build_tables() must be called before phases()")
        eikx, eiky, eikz = self.tables
        if sites is not None:
            eikx, eiky, eikz = eikx[sites], eiky[sites], eikz[sites]
        n = self.n_vec[kslice]
        return (
            eikx[:, n[:, 0] + self.kxmax]
            * eiky[:, n[:, 1] + self.kymax]
            * eikz[:, n[:, 2] + self.kzmax]
        )

    def kchunks(self, rows=None):
        """Yield slices over the k-vector list sized to bound memory."""
        if self.tables is None:
            raise RuntimeError("build_tables() must be called before kchunks()")
        rows = self.n_sites if rows is None else max(rows, 1)
        step = max(1, _CHUNK_ENTRIES // rows)
        for start in range(0, self.n_kvectors, step):
            yield slice(start, min(start + step, self.n_kvectors))


def structure_factor(setup, charges):
    """S(k) = sum over sites q_s exp(i k.r_s), for every admissible k."""
    charges = np.asarray(charges, dtype=float)
    S = np.empty(setup.n_kvectors, dtype=complex)
    for ks in setup.kchunks():
        S[ks] = charges @ setup.phases(ks)
    return S


def reciprocal_axial_virial(setup, frame, site_charges, molecules):
    """
    Reciprocal-space zz virial proxy of the selected molecules.

    For molecule i with own structure factor s_i(k) and the structure factor
    of every other site S'(k) = S(k) - s_i(k):

        W_i = sum_k A(k) [1 - 2 kz^2/k^2 - kz^2/(2 alpha^2)] Re[S'* s_i]
              - sum_a d_az * 2 q_a sum_k kz A(k) Im[S'* exp(i k.r_a)]

    with A(k) = exp(-k^2/4alpha^2)/k^2 and d_a the minimum-image offset of
    site a from the molecule's center of mass. The second term is the axial
    force on each site times its lever arm (molecular virial correction).
    Returns -W_i; multiplied by 2 pi K_e / V it is the molecule's share of the
    intermolecular reciprocal virial with the same sign convention as the
    real-space pair terms.

    Parameters
    ----------
    setup : EwaldSetup with tables built from frame.sites.reshape(-1, 3)
    frame : Frame
    site_charges : (n_mol_sites,) charges of one molecule's sites
    molecules : (n_sel,) indices of molecules to evaluate
    """
    molecules = np.asarray(molecules, dtype=int)
    q = np.asarray(site_charges, dtype=float)
    n_mol, n_site = frame.sites.shape[:2]
    out = np.zeros(len(molecules))
    if len(molecules) == 0:
        return out

    charges = np.tile(q, n_mol)
    S = structure_factor(setup, charges)

    d = minimum_image_disp(frame.sites[molecules] - frame.com[molecules, None, :], frame.box)
    dz = d[..., 2]

    kz = setup.k_vec[:, 2]
    geom = 1.0 - 2.0 * kz ** 2 / setup.ksq - kz ** 2 / (2.0 * setup.alpha ** 2)

    site_idx = (molecules[:, None] * n_site + np.arange(n_site)[None, :]).ravel()
    for ks in setup.kchunks(rows=len(site_idx)):
        eik = setup.phases(ks, site_idx).reshape(len(molecules), n_site, -1)
        qeik = q[None, :, None] * eik
        s_mol = qeik.sum(axis=1)
        S_rest = np.conj(S[ks][None, :] - s_mol)

        A = setup.coeff[ks]
        atomic = np.real(S_rest * s_mol) @ (A * geom[ks])
        force_z = 2.0 * np.imag(S_rest[:, None, :] * qeik) @ (kz[ks] * A)
        out -= atomic - np.sum(dz * force_z, axis=1)
    return out

###################################
# Energies (Ewald correctness)    #
###################################

def real_space_energy(pos, charges, box, alpha, rc):
    """Damped pair energy sum q_i q_j erfc(alpha r)/r over minimum-image pairs within rc [e^2/A]."""
    pos = np.asarray(pos, dtype=float)
    charges = np.asarray(charges, dtype=float)
    energy = 0.0
    for i in range(len(pos) - 1):
        d = minimum_image_disp(pos[i + 1:] - pos[i], box)
        r = np.linalg.norm(d, axis=1)
        m = r <= rc
        energy += np.sum(charges[i] * charges[i + 1:][m] * erfc(alpha * r[m]) / r[m])
    return energy


def reciprocal_energy(setup, charges):
    """(2 pi / V) sum_k A(k) |S(k)|^2 over the admissible set [e^2/A]."""
    S = structure_factor(setup, charges)
    return TWO_PI / setup.volume * np.sum(setup.coeff * np.abs(S) ** 2)


def self_energy(charges, alpha):
    """Gaussian self-interaction correction -alpha/sqrt(pi) sum q^2 [e^2/A]."""
    charges = np.asarray(charges, dtype=float)
    return -alpha / SQRT_PI * np.sum(charges ** 2)

###################################
# Reciprocal-space pressure        #
###################################

def reciprocal_space(frame, setup, site_charges, grid, acc, zlo, zhi):
    """
    Accumulate the reciprocal-space fluid-fluid channel of one frame.
    Molecules outside the radial cutoff or the axial window are skipped
    before the k-space sum; each remaining molecule is binned once at its
    center radius.
    """
    clr = radial_distance(frame.com)
    z = frame.com[:, 2]
    sel = np.flatnonzero((clr < grid.rden_cut) & (z >= zlo) & (z <= zhi))
    if len(sel) == 0:
        return

    proxy = reciprocal_axial_virial(setup, frame, site_charges, sel)
    ptzf = 0.5 * proxy * 2.0 * TWO_PI / (setup.volume * (zhi - zlo)) * EETOK

    acc.deposit(Category.FLUID_FLUID, Channel.RECIPROCAL, clr[sel], z[sel], ptzf, zlo, zhi)
