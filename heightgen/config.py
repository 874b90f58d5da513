import logging
from dataclasses import dataclass, fields
from typing import Tuple

import yaml

from heightgen.errors import InvalidInput
from heightgen.linalg import DEFAULT_RCOND, SOLVERS

logger = logging.getLogger(__name__)

METHODS = ("fit", "cross")


@dataclass(frozen=True)
class ReconstructionConfig:
    """
    Algorithm choice and parameters for one or many reconstructions.

    Instances are immutable, so one config can be shared by any number of
    concurrent workers.
    """

    method: str = "cross"
    anchor: Tuple[int, int] = (0, 0)
    c00: float = 0.0
    solver: str = "normal"
    rcond: float = DEFAULT_RCOND
    fallback: bool = True
    max_fit_texels: int = 1024

    def __post_init__(self):
        if self.method not in METHODS:
            raise InvalidInput(f"Unknown method '{self.method}', expected one of {METHODS}")
        if self.solver not in SOLVERS:
            raise InvalidInput(f"Unknown solver '{self.solver}', expected one of {sorted(SOLVERS)}")
        if not isinstance(self.fallback, bool):
            raise InvalidInput(f"fallback must be true or false, got {self.fallback!r}")

        # YAML and form data hand us lists and strings
        try:
            x, y = self.anchor
            object.__setattr__(self, "anchor", (int(x), int(y)))
            object.__setattr__(self, "c00", float(self.c00))
            object.__setattr__(self, "rcond", float(self.rcond))
            object.__setattr__(self, "max_fit_texels", int(self.max_fit_texels))
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Invalid reconstruction setting: {e}") from e

        if self.max_fit_texels <= 0:
            raise InvalidInput(f"max_fit_texels must be positive, got {self.max_fit_texels}")
        if not self.rcond > 0:
            raise InvalidInput(f"rcond must be positive, got {self.rcond}")

    @classmethod
    def from_mapping(cls, values):
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise InvalidInput(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**values)


def load_config(path):
    """Read a ReconstructionConfig from a YAML file (optionally under a 'reconstruction' key)."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidInput(f"Configuration in {path} must be a mapping")
    data = data.get("reconstruction", data)

    config = ReconstructionConfig.from_mapping(data)
    logger.info(f"Loaded reconstruction config from {path}: {config}")
    return config
