"""Errors and configuration shared across gammaeff.

The measurement data model lives in :mod:`gammaeff.core.measurement`.
"""

from gammaeff.core.errors import (
    GammaEffError,
    InvalidInput,
    MissingFitResult,
    ModelConstructionFailure,
    SolverNonConvergence,
    UnknownDetector,
    UnsetDate,
)
from gammaeff.core.config import FitSettings

__all__ = [
    "GammaEffError",
    "InvalidInput",
    "MissingFitResult",
    "ModelConstructionFailure",
    "SolverNonConvergence",
    "UnknownDetector",
    "UnsetDate",
    "FitSettings",
]
