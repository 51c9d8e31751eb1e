from __future__ import annotations

import numpy as np


class ConfigurationError(ValueError):
    """Invalid dimensions, hyperparameters or configuration input."""


class NumericalError(np.linalg.LinAlgError):
    """A factorization failed because a matrix is not positive-definite.

    Attributes
    ----------
    matrix:
        Name of the offending matrix, e.g. ``"posterior precision"`` or
        ``"state precision"``.
    """

    def __init__(self, message: str, *, matrix: str) -> None:
        super().__init__(message)
        self.matrix = matrix


class SamplingDegeneracy(NumericalError):
    """All mixture weights of an observation underflowed in the SV indicator step."""
