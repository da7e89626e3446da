"""Exception taxonomy for efficiency calibration and fitting.

All errors are recoverable: callers catch :class:`GammaEffError` (or one of
its subclasses) and decide how to continue.
"""

from __future__ import annotations


class GammaEffError(Exception):
    """Base class for every error raised by gammaeff."""


class InvalidInput(GammaEffError, ValueError):
    """Input values that cannot be used (non-positive half-life, zero intensity,
    mismatched array lengths, too few observations, ...)."""


class ModelConstructionFailure(GammaEffError):
    """The exponential model cannot be built from the supplied order or guesses."""


class SolverNonConvergence(GammaEffError):
    """The least-squares solver hit its iteration cap or broke down numerically."""


class MissingFitResult(GammaEffError):
    """A fit quantity was requested before any successful fit."""


class UnsetDate(GammaEffError):
    """A source activity was requested before its dates were set."""


class UnknownDetector(GammaEffError, KeyError):
    """No registry entry exists for the requested detector identifier."""
