"""
Unit surface normals.

Normals are stored as (..., 3) float arrays with z as the outward component,
so the same helpers work on a single texel or a whole grid backing array.
"""

from typing import NamedTuple

import numpy as np

# Vectors shorter than this carry no usable direction
MIN_VECTOR_LENGTH = 0.001


class Normal(NamedTuple):
    x: float
    y: float
    z: float

    @classmethod
    def from_vector(cls, x, y, z):
        return cls(*(float(v) for v in normalize_vectors((x, y, z))))


FLAT = Normal(0.0, 0.0, 1.0)


def normalize_vectors(vectors):
    """
    Turn arbitrary 3-vectors into unit normals facing outward (z >= 0).

    Vectors pointing into the surface are flipped, and vectors too short to
    have a direction become the flat normal (0, 0, 1).
    """
    v = np.array(vectors, dtype=np.float64)
    v = np.where(v[..., 2:3] < 0.0, -v, v)

    length = np.linalg.norm(v, axis=-1, keepdims=True)
    degenerate = length < MIN_VECTOR_LENGTH
    safe_length = np.where(degenerate, 1.0, length)
    return np.where(degenerate, np.asarray(FLAT), v / safe_length)


def normals_from_xy(x, y):
    """
    Complete normals from their X and Y components.

    Two-channel normal maps drop z; it is recovered as sqrt(1 - x^2 - y^2).
    When X/Y already lie outside the unit circle they are rescaled onto it
    and z becomes 0.

    Args:
        x, y: Arrays (or scalars) of the X and Y components in [-1, 1].

    Returns:
        (..., 3) array of unit normals.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    xy_sq = x * x + y * y
    z_sq = 1.0 - xy_sq

    inside = z_sq >= 0.0
    scale = np.where(inside, 1.0, 1.0 / np.sqrt(np.where(inside, 1.0, xy_sq)))
    z = np.sqrt(np.where(inside, z_sq, 0.0))
    return np.stack([x * scale, y * scale, z], axis=-1)
