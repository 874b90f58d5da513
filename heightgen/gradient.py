import logging
from typing import NamedTuple

import numpy as np

from heightgen.grid import Grid
from heightgen.normals import Normal, normalize_vectors

logger = logging.getLogger(__name__)

# Lower bound for the outward (z) component when dividing by it.
# Changing it changes the reconstructed geometry.
Z_EPSILON = 0.001


class Slope(NamedTuple):
    dx: float
    dy: float

    @classmethod
    def from_normal(cls, normal):
        dx, dy = slope_from_normal(normal)
        return cls(float(dx), float(dy))

    def to_normal(self):
        return Normal(*(float(v) for v in normal_from_slope(self)))


def slope_from_normal(normals):
    """
    Partial derivatives (dx, dy) of the height surface implied by unit normals.

    Works on a single normal or any (..., 3) array. Near-grazing normals are
    clamped to z = Z_EPSILON, which bounds the slope instead of producing inf.
    """
    n = np.asarray(normals, dtype=np.float64)
    f = -1.0 / np.maximum(n[..., 2], Z_EPSILON)
    return np.stack([-n[..., 0] * f, n[..., 1] * f], axis=-1)


def normal_from_slope(slopes):
    """
    Approximate inverse of slope_from_normal.

    The surface tangents along x and y are (1, 0, -dx) and (0, 1, dy) (the
    forward map mirrors x), and the normal is their normalized cross product.
    Exact for small slopes; steep slopes come back bounded by the z clamp.
    """
    s = np.asarray(slopes, dtype=np.float64)
    dx, dy = s[..., 0], s[..., 1]
    tangent_x = np.stack([np.ones_like(dx), np.zeros_like(dx), -dx], axis=-1)
    tangent_y = np.stack([np.zeros_like(dy), np.ones_like(dy), dy], axis=-1)
    return normalize_vectors(np.cross(tangent_x, tangent_y))


def compute_slopes(normals):
    # Per-texel slope field of a normal grid, same dimensions
    slopes = normals.convert(slope_from_normal)

    dx, dy = slopes.data[:, 0], slopes.data[:, 1]
    logger.debug(
        f"Slope field {slopes.width}x{slopes.height}: "
        f"dx in [{dx.min():.4f}, {dx.max():.4f}], dy in [{dy.min():.4f}, {dy.max():.4f}]"
    )
    return slopes


def compute_normals(slopes):
    return slopes.convert(normal_from_slope)


def combine_normals(base, detail, strength=1.0, base_strength=1.0):
    """
    Overlay a detail normal map onto a base normal map.

    Both maps are turned into slopes, added with their strengths as weights,
    and the summed slope field is turned back into normals.

    Args:
        base: Grid of base normals.
        detail: Grid of detail normals, same size as ``base``.
        strength: Weight of the detail slopes.
        base_strength: Weight of the base slopes.

    Returns:
        New Grid of unit normals.
    """
    base.check_same_size(detail)
    summed = (
        slope_from_normal(base.data) * base_strength
        + slope_from_normal(detail.data) * strength
    )
    return Grid(normal_from_slope(summed), base.width, base.height)
