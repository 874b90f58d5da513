"""
Dense least-squares solvers behind one narrow interface: solve(A, b) -> c.

A is a dense (equations x unknowns) matrix and b the right-hand side. Each
solver returns the coefficient vector c minimising |A c - b| or raises
NumericalFailure. The polynomial fitter only ever talks to `solve`, so the
solver can be swapped through configuration.
"""

import logging

import numpy as np
import scipy.linalg

from heightgen.errors import InvalidInput, NumericalFailure

logger = logging.getLogger(__name__)

DEFAULT_RCOND = 1e-12


def _check_system(a, b):
    if a.ndim != 2 or b.ndim != 1 or a.shape[0] != b.shape[0]:
        raise InvalidInput(f"Incompatible system: A is {a.shape}, b is {b.shape}")


def _checked(c, name):
    if not np.all(np.isfinite(c)):
        raise NumericalFailure(f"{name} solver produced non-finite coefficients")
    return c


def solve_normal_equations(a, b, rcond=DEFAULT_RCOND):
    """
    Solve A^T A c = A^T b.

    The square system is solved by SVD with a relative cutoff, so rank
    deficient normal equations yield the minimum-norm solution instead of
    blowing up.
    """
    ata = a.T @ a
    atb = a.T @ b
    try:
        c, _, rank, _ = scipy.linalg.lstsq(ata, atb, cond=rcond)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise NumericalFailure(f"Normal equations could not be solved: {e}") from e

    logger.debug(f"Normal equations {ata.shape} solved with rank {rank}")
    return _checked(c, "normal-equations")


def solve_cholesky(a, b, rcond=None):
    """
    Solve the normal equations by Cholesky factorization.

    Fastest option, but it requires A^T A to be positive definite: singular
    systems raise NumericalFailure.
    """
    ata = a.T @ a
    atb = a.T @ b
    try:
        factor = scipy.linalg.cho_factor(ata)
        c = scipy.linalg.cho_solve(factor, atb)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise NumericalFailure(f"Normal equations are not positive definite: {e}") from e

    return _checked(c, "cholesky")


def solve_lstsq(a, b, rcond=DEFAULT_RCOND):
    # SVD directly on A; avoids squaring the condition number
    try:
        c, _, rank, _ = np.linalg.lstsq(a, b, rcond=rcond)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise NumericalFailure(f"Least-squares solve failed: {e}") from e

    logger.debug(f"Least-squares system {a.shape} solved with rank {rank}")
    return _checked(c, "lstsq")


SOLVERS = {
    "normal": solve_normal_equations,
    "cholesky": solve_cholesky,
    "lstsq": solve_lstsq,
}


def get_solver(name):
    try:
        return SOLVERS[name]
    except KeyError:
        raise InvalidInput(
            f"Unknown solver '{name}', expected one of {sorted(SOLVERS)}"
        ) from None


def solve(a, b, method="normal", rcond=DEFAULT_RCOND):
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    _check_system(a, b)
    return get_solver(method)(a, b, rcond=rcond)
