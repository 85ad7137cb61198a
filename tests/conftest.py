import matplotlib
import numpy as np
import pytest

matplotlib.use("Agg")

from aux import Frame  # noqa: E402

MASSES = np.array([15.9994, 1.00794, 1.00794])

# O-H 1 A, H-O-H 109.47 deg, in the molecule's own frame
WATER_OFFSETS = np.array(
    [
        [0.0, 0.0, 0.0],
        [0.8165, 0.5774, 0.0],
        [-0.8165, 0.5774, 0.0],
    ]
)


def random_rotation(rng):
    q = rng.normal(size=4)
    q /= np.linalg.norm(q)
    a, b, c, d = q
    return np.array(
        [
            [a * a + b * b - c * c - d * d, 2 * (b * c - a * d), 2 * (b * d + a * c)],
            [2 * (b * c + a * d), a * a - b * b + c * c - d * d, 2 * (c * d - a * b)],
            [2 * (b * d - a * c), 2 * (c * d + a * b), a * a - b * b - c * c + d * d],
        ]
    )


def build_water(oxygens, rng=None):
    """Sites (N,3,3) with each oxygen at the given position and random orientation."""
    oxygens = np.asarray(oxygens, dtype=float)
    sites = np.empty((len(oxygens), 3, 3))
    for i, o in enumerate(oxygens):
        rot = np.eye(3) if rng is None else random_rotation(rng)
        sites[i] = o + WATER_OFFSETS @ rot.T
    return sites


def ring_wall(radius, z_values, n_phi=12):
    phi = np.linspace(0.0, 2.0 * np.pi, n_phi, endpoint=False)
    return np.array(
        [[radius * np.cos(p), radius * np.sin(p), z] for z in z_values for p in phi]
    )


@pytest.fixture
def rng():
    return np.random.default_rng(20191104)


@pytest.fixture
def masses():
    return MASSES


@pytest.fixture
def small_frame(rng):
    """Twelve waters around the z axis in a 30 A cube, with a ring-shaped wall at r = 7.1 A."""
    oxygens = [
        (x, y, z)
        for z in (-4.0, 0.0, 4.0)
        for x, y in ((3.0, 0.0), (-3.0, 0.0), (0.0, 3.0), (0.0, -3.0))
    ]
    sites = build_water(oxygens, rng)
    wall = ring_wall(7.1, np.linspace(-10.0, 10.0, 11))
    return Frame((30.0, 30.0, 30.0), sites, wall=wall, masses=MASSES)
