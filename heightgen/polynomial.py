import logging

import numpy as np

from heightgen.errors import InvalidInput
from heightgen.grid import Grid
from heightgen.linalg import DEFAULT_RCOND, solve

logger = logging.getLogger(__name__)


def sample_points(width, height):
    """
    Pixel-centre sample coordinates in [0, 1] for every texel.

    Returns two flat arrays (xs, ys) in grid order, index y * width + x.
    """
    xs = (np.arange(width) + 0.5) / width
    ys = (np.arange(height) + 0.5) / height
    px, py = np.meshgrid(xs, ys)
    return px.ravel(), py.ravel()


class Poly2:
    """
    Bivariate polynomial sum(c[j * (degree_x + 1) + i] * x^i * y^j).

    Coefficients are y-major: every run of degree_x + 1 entries belongs to one
    power of y. The coefficient array is read-only once constructed.
    """

    def __init__(self, degree_x, degree_y, coefficients=None):
        if degree_x < 0 or degree_y < 0:
            raise InvalidInput(f"Degrees must be non-negative, got ({degree_x}, {degree_y})")
        self.degree_x = degree_x
        self.degree_y = degree_y

        size = (degree_x + 1) * (degree_y + 1)
        if coefficients is None:
            coefficients = np.zeros(size)
        coefficients = np.array(coefficients, dtype=np.float64)
        if coefficients.shape != (size,):
            raise InvalidInput(
                f"Degree ({degree_x}, {degree_y}) needs {size} coefficients, got {coefficients.shape}"
            )
        coefficients.flags.writeable = False
        self.coefficients = coefficients

    def __repr__(self):
        return f"Poly2(degree_x={self.degree_x}, degree_y={self.degree_y})"

    def __call__(self, x, y):
        total = 0.0
        y_pow = 1.0
        for j in range(self.degree_y + 1):
            row = j * (self.degree_x + 1)
            x_pow = 1.0
            for i in range(self.degree_x + 1):
                total = total + self.coefficients[row + i] * x_pow * y_pow
                x_pow = x_pow * x
            y_pow = y_pow * y
        return total

    def gradient(self, x, y):
        """Analytic partial derivatives (dP/dx, dP/dy) at (x, y)."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        ddx = np.zeros(np.broadcast(x, y).shape)
        ddy = np.zeros_like(ddx)
        for j in range(self.degree_y + 1):
            for i in range(self.degree_x + 1):
                c = self.coefficients[j * (self.degree_x + 1) + i]
                if c == 0.0:
                    continue
                if i > 0:
                    ddx += c * i * x ** (i - 1) * y ** j
                if j > 0:
                    ddy += c * j * x ** i * y ** (j - 1)
        return ddx, ddy

    def evaluate_grid(self, width, height):
        # Heights at every texel centre
        px, py = sample_points(width, height)
        return Grid(np.asarray(self(px, py), dtype=np.float64), width, height)

    @classmethod
    def from_slopes(cls, slopes, c00=0.0, solver="normal", rcond=DEFAULT_RCOND):
        """
        Least-squares fit of a polynomial whose gradient matches a slope field.

        The degrees equal the grid size (degree_x = width, degree_y = height).
        Every texel contributes two equations, dP/dx = dx and dP/dy = dy, at its
        pixel centre ((x + .5) / width, (y + .5) / height). The constant term has
        no derivative, so it is not an unknown: it is pinned to ``c00``.

        Cost grows fast: the dense system takes O((width * height) ** 2) memory
        and the solve O((width * height) ** 3) time. Only use this on small
        tiles (tens of texels per side), never on full-resolution maps.

        Args:
            slopes: 2-channel Grid of (dx, dy).
            c00: Value of the constant term.
            solver: Name of the linalg solver to use.
            rcond: Relative singular value cutoff for the SVD based solvers.

        Returns:
            The fitted Poly2.

        Raises:
            NumericalFailure: If the system cannot be solved.
        """
        a, b = build_slope_system(slopes)
        logger.debug(f"Fitting {a.shape[1]} unknowns to {a.shape[0]} slope equations")
        solved = solve(a, b, method=solver, rcond=rcond)

        coefficients = np.empty(a.shape[1] + 1)
        coefficients[0] = c00
        coefficients[1:] = solved
        return cls(slopes.width, slopes.height, coefficients)


def build_slope_system(slopes):
    """
    Assemble the dense linear system of a polynomial slope fit.

    Rows 2k and 2k + 1 hold the x and y derivative equations of texel k.
    Columns enumerate the monomials x^i y^j in coefficient order (y-major),
    skipping the constant term.

    Returns:
        (A, b) with A of shape (2 * w * h, (w + 1) * (h + 1) - 1).
    """
    if slopes.channels != 2:
        raise InvalidInput(f"Expected a 2-channel slope grid, got {slopes!r}")
    w, h = slopes.width, slopes.height
    px, py = sample_points(w, h)

    rows = 2 * w * h
    columns = (w + 1) * (h + 1) - 1
    a = np.zeros((rows, columns))
    b = np.empty(rows)

    column = 0
    for j in range(h + 1):
        for i in range(w + 1):
            if i == 0 and j == 0:
                continue
            if i > 0:
                a[0::2, column] = i * px ** (i - 1) * py ** j
            if j > 0:
                a[1::2, column] = j * px ** i * py ** (j - 1)
            column += 1

    b[0::2] = slopes.data[:, 0]
    b[1::2] = slopes.data[:, 1]
    return a, b
