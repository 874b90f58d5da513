import logging

import numpy as np
from scipy.signal import lfilter

from heightgen.config import ReconstructionConfig
from heightgen.errors import InvalidInput, NumericalFailure
from heightgen.gradient import compute_slopes
from heightgen.grid import Grid
from heightgen.linalg import DEFAULT_RCOND
from heightgen.polynomial import Poly2

logger = logging.getLogger(__name__)


def fit_height_map(slopes, c00=0.0, solver="normal", rcond=DEFAULT_RCOND):
    """
    Height map from a global polynomial least-squares fit of the slope field.

    Cubic in the number of texels (see Poly2.from_slopes); meant for tiles.
    Raises NumericalFailure when the fit cannot be solved.
    """
    polynomial = Poly2.from_slopes(slopes, c00=c00, solver=solver, rcond=rcond)
    heights = polynomial.evaluate_grid(slopes.width, slopes.height)
    heights.normalize()

    logger.info(f"Surface fitted. Heightmap shape: {heights.height}x{heights.width}")
    return heights


def _scan_quadrant(dx, dy):
    # Top-left anchored integration of (H, W) slope components, heights[0, 0] = 0.
    h, w = dx.shape
    heights = np.zeros((h, w))

    # Trapezoidal steps: step_x[y, x - 1] goes from x - 1 to x, step_y likewise
    step_x = (dx[:, :-1] + dx[:, 1:]) / 2.0
    step_y = (dy[:-1, :] + dy[1:, :]) / 2.0

    heights[0, 1:] = np.cumsum(step_x[0])
    heights[1:, 0] = np.cumsum(step_y[:, 0])
    if w == 1:
        return heights

    # Interior: heights[y, x] is the mean of the estimate coming from the left
    # (heights[y, x - 1] + step_x) and the one coming from above
    # (heights[y - 1, x] + step_y). Along a row that is the first-order
    # recurrence heights[y, x] = 0.5 * heights[y, x - 1] + drive[x], which
    # lfilter runs seeded with the already known heights[y, 0].
    for y in range(1, h):
        drive = 0.5 * (step_x[y] + heights[y - 1, 1:] + step_y[y - 1, 1:])
        heights[y, 1:], _ = lfilter([1.0], [1.0, -0.5], drive, zi=[0.5 * heights[y, 0]])
    return heights


def cross_scan_height_map(slopes, anchor=(0, 0)):
    """
    Height map by integrating the slope field outward from an anchor texel.

    The anchor row and column are integrated first (trapezoidal rule), then
    every other texel takes the mean of its horizontal and vertical path
    estimates. Each of the four quadrants around the anchor is mirrored into
    top-left orientation, filled, and mirrored back; mirroring an axis flips
    the sign of that axis' slope. With the default anchor (0, 0) this is the
    plain top-left scan.

    Runs in O(width * height).

    Args:
        slopes: 2-channel Grid of (dx, dy).
        anchor: (x, y) texel whose height is fixed to 0 before normalization.

    Returns:
        Normalized height Grid of the same size.
    """
    if slopes.channels != 2:
        raise InvalidInput(f"Expected a 2-channel slope grid, got {slopes!r}")
    ax, ay = anchor
    if not (0 <= ax < slopes.width and 0 <= ay < slopes.height):
        raise InvalidInput(f"Anchor {anchor} lies outside the {slopes.width}x{slopes.height} grid")

    field = slopes.to_array()
    dx, dy = field[..., 0], field[..., 1]

    heights = np.zeros((slopes.height, slopes.width))
    for sx in (1, -1):
        for sy in (1, -1):
            rows = slice(ay, None, sy)
            cols = slice(ax, None, sx)
            heights[rows, cols] = _scan_quadrant(sx * dx[rows, cols], sy * dy[rows, cols])

    result = Grid.from_array(heights)
    result.normalize()

    logger.info(f"Surface integrated from anchor {tuple(anchor)}. Heightmap shape: {heights.shape}")
    return result


def reconstruct_height(normals, config=None):
    """
    Reconstruct a normalized height map from a grid of unit normals.

    Args:
        normals: 3-channel Grid of unit normals (z outward).
        config: ReconstructionConfig; defaults to the cross scan.

    Returns:
        Grid of heights in [0, 1] (all zero for a flat input).

    Raises:
        InvalidInput: For malformed input or a fit request on a too large map.
        NumericalFailure: If the fit fails and fallback is disabled.
    """
    if config is None:
        config = ReconstructionConfig()
    if normals.channels != 3:
        raise InvalidInput(f"Expected a 3-channel normal grid, got {normals!r}")

    slopes = compute_slopes(normals)

    if config.method == "fit":
        if normals.count > config.max_fit_texels:
            raise InvalidInput(
                f"{normals.width}x{normals.height} is too large for the polynomial fit "
                f"(max {config.max_fit_texels} texels); use the cross scan instead"
            )
        try:
            return fit_height_map(slopes, c00=config.c00, solver=config.solver, rcond=config.rcond)
        except NumericalFailure as e:
            if not config.fallback:
                raise
            logger.warning(f"Polynomial fit failed ({e}); falling back to cross scan")

    return cross_scan_height_map(slopes, anchor=config.anchor)
