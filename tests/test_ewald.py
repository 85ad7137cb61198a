import numpy as np
import pytest

from aux import EETOK, TWO_PI, Frame
from ewald import (
    EwaldSetup,
    phase_tables,
    real_space_energy,
    reciprocal_axial_virial,
    reciprocal_energy,
    reciprocal_kmax,
    self_energy,
    structure_factor,
)
from conftest import build_water

Q_WATER = np.array([-0.8476, 0.4238, 0.4238])


def test_kmax_formula():
    box = (30.0, 30.0, 40.0)
    expected = int(0.3077 * 40.0 / np.pi * np.sqrt(-np.log(1e-5)))
    assert reciprocal_kmax(0.3077, box, 1e-5) == expected


def test_admissible_vectors():
    setup = EwaldSetup((30.0, 25.0, 40.0), alpha=0.3077, precision=1e-5)
    n = setup.n_vec
    assert setup.n_kvectors > 0
    # no zero vector, and never both k and -k
    assert not np.any(np.all(n == 0, axis=1))
    as_set = {tuple(v) for v in n}
    assert not any(tuple(-v) in as_set for v in n)
    assert np.all(setup.ksq <= setup.ksq_cut)
    assert np.all(np.abs(n) <= setup.nmax)
    assert setup.kzmax == setup.kmax


def test_phase_tables_match_direct_exponentials(rng):
    box = np.array([20.0, 22.0, 31.0])
    pos = rng.uniform(-40.0, 40.0, size=(7, 3))
    nmax = (5, 3, 8)
    tables = phase_tables(pos, box, nmax)
    for axis, table in enumerate(tables):
        n = np.arange(-nmax[axis], nmax[axis] + 1)
        direct = np.exp(1j * TWO_PI * np.outer(pos[:, axis], n) / box[axis])
        assert np.allclose(table, direct, atol=1e-12)


def test_capacity_ceiling_is_fatal():
    with pytest.raises(ValueError, match="capacity"):
        EwaldSetup((30.0, 30.0, 30.0), alpha=0.3077, precision=1e-5, max_kvectors=10)
    with pytest.raises(ValueError, match="per-axis"):
        EwaldSetup((30.0, 30.0, 30.0), alpha=0.3077, precision=1e-5, max_kindex=3)


def test_structure_factor_needs_tables():
    setup = EwaldSetup((15.0, 15.0, 15.0), alpha=0.4, precision=1e-4)
    assert setup.n_sites is None
    with pytest.raises(RuntimeError, match="build_tables"):
        structure_factor(setup, np.ones(3))


def test_structure_factor_direct(rng):
    box = (15.0, 15.0, 15.0)
    pos = rng.uniform(0.0, 15.0, size=(9, 3))
    q = rng.normal(size=9)
    setup = EwaldSetup(box, alpha=0.4, precision=1e-4)
    setup.build_tables(pos)
    S = structure_factor(setup, q)
    direct = np.exp(1j * pos @ setup.k_vec.T).T @ q
    assert np.allclose(S, direct)


def test_ewald_sum_matches_direct_coulomb():
    # +1/-1 pair, 1 A apart, in a large box: images and the tin-foil term are ~1e-5
    box = (40.0, 40.0, 40.0)
    pos = np.array([[0.3, -0.2, 0.1], [0.3, -0.2, 1.1]])
    q = np.array([1.0, -1.0])
    alpha = 0.5

    setup = EwaldSetup(box, alpha=alpha, precision=1e-8)
    setup.build_tables(pos)
    total = (
        real_space_energy(pos, q, box, alpha, rc=10.0)
        + reciprocal_energy(setup, q)
        + self_energy(q, alpha)
    )
    direct = q[0] * q[1] / 1.0
    assert total * EETOK == pytest.approx(direct * EETOK, rel=1e-3)


def test_reciprocal_energy_independent_of_alpha_split():
    box = (40.0, 40.0, 40.0)
    pos = np.array([[0.0, 0.0, 0.0], [1.5, 0.5, -0.3], [-0.7, 1.2, 0.4]])
    q = np.array([0.8, -0.5, -0.3])
    totals = []
    for alpha in (0.35, 0.5):
        setup = EwaldSetup(box, alpha=alpha, precision=1e-8)
        setup.build_tables(pos)
        totals.append(
            real_space_energy(pos, q, box, alpha, rc=15.0)
            + reciprocal_energy(setup, q)
            + self_energy(q, alpha)
        )
    assert totals[0] == pytest.approx(totals[1], rel=1e-6)


def water_system(rng, box, n=4):
    com = rng.uniform(-0.4, 0.4, size=(n, 3)) * np.asarray(box)
    sites = build_water(com, rng)
    return com, sites


def test_isolated_molecule_has_no_reciprocal_term(rng):
    box = (20.0, 20.0, 20.0)
    com, sites = water_system(rng, box, n=1)
    frame = Frame(box, sites, com=com)
    setup = EwaldSetup(box, alpha=0.4, precision=1e-4)
    setup.build_tables(frame.sites.reshape(-1, 3))
    out = reciprocal_axial_virial(setup, frame, Q_WATER, [0])
    assert out == pytest.approx([0.0], abs=1e-12)


def test_reciprocal_term_translation_invariant(rng):
    box = np.array([18.0, 18.0, 24.0])
    com, sites = water_system(rng, box)
    shift = np.array([1.3, -2.1, 0.7])

    values = []
    for offset in (np.zeros(3), shift):
        frame = Frame(box, sites + offset, com=com + offset)
        setup = EwaldSetup(box, alpha=0.45, precision=1e-4)
        setup.build_tables(frame.sites.reshape(-1, 3))
        values.append(reciprocal_axial_virial(setup, frame, Q_WATER, np.arange(len(com))))
    assert np.allclose(values[0], values[1], rtol=1e-9, atol=1e-12)


def test_reciprocal_term_is_axial_strain_derivative(rng):
    """
    The per-molecule terms must add up to dU/d(eps) (times V / 2 pi), where U is
    the intermolecular reciprocal energy and eps a uniform axial strain that
    moves molecular centers but keeps molecules rigid.
    """
    box = np.array([16.0, 16.0, 20.0])
    com, sites = water_system(rng, box, n=5)
    offsets = sites - com[:, None, :]
    alpha = 0.5

    frame = Frame(box, sites, com=com)
    setup = EwaldSetup(box, alpha=alpha, precision=1e-3)
    setup.build_tables(frame.sites.reshape(-1, 3))
    total = reciprocal_axial_virial(setup, frame, Q_WATER, np.arange(len(com))).sum()

    def inter_energy(eps):
        scale = np.array([1.0, 1.0, 1.0 + eps])
        L = box * scale
        pos = (com * scale)[:, None, :] + offsets
        k = TWO_PI * setup.n_vec / L
        ksq = np.einsum("ij,ij->i", k, k)
        coeff = 2.0 * np.exp(-ksq / (4.0 * alpha ** 2)) / ksq
        phase = np.exp(1j * np.einsum("mak,qk->maq", pos, k))
        s_mol = np.einsum("a,maq->mq", Q_WATER, phase)
        S = s_mol.sum(axis=0)
        X = np.abs(S) ** 2 - np.sum(np.abs(s_mol) ** 2, axis=0)
        return TWO_PI / np.prod(L) * np.sum(coeff * X)

    h = 1e-5
    dU = (inter_energy(h) - inter_energy(-h)) / (2.0 * h)
    assert total * TWO_PI / setup.volume == pytest.approx(dU, rel=1e-5, abs=1e-9)


def test_reciprocal_atomic_term_for_point_molecules(rng):
    """With all sites of a molecule on its center only the Re[S'* s_i] term survives."""
    box = np.array([15.0, 15.0, 15.0])
    com = rng.uniform(-7.0, 7.0, size=(6, 3))
    sites = np.repeat(com[:, None, :], 3, axis=1)
    q = np.array([0.3, 0.1, 0.1])
    frame = Frame(box, sites, com=com)
    setup = EwaldSetup(box, alpha=0.4, precision=1e-4)
    setup.build_tables(frame.sites.reshape(-1, 3))

    out = reciprocal_axial_virial(setup, frame, q, np.arange(6))

    S = structure_factor(setup, np.tile(q, 6))
    s_i = q.sum() * np.exp(1j * com @ setup.k_vec.T)
    kz = setup.k_vec[:, 2]
    geom = 1.0 - 2.0 * kz ** 2 / setup.ksq - kz ** 2 / (2.0 * setup.alpha ** 2)
    X = np.abs(S) ** 2 - np.sum(np.abs(s_i) ** 2, axis=0)
    assert out.sum() == pytest.approx(-np.sum(setup.coeff * geom * X), rel=1e-9)
