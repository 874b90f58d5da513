class HeightMapError(Exception):
    """Base class for failures of a single height-map reconstruction."""


class InvalidInput(HeightMapError, ValueError):
    """The input cannot be reconstructed (bad dimensions, mismatched grids, bad settings)."""


class NumericalFailure(HeightMapError, ArithmeticError):
    """The least-squares system could not be solved (singular or non-finite)."""
