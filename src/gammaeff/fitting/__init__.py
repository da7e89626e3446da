"""Exponential efficiency models and the separable least-squares fitter."""

from gammaeff.fitting.models import (
    DoubleExponential,
    ExponentialModel,
    SingleExponential,
    exponential_basis,
    exponential_basis_derivative,
    model_for_order,
)
from gammaeff.fitting.varpro import SeparableSolution, solve_separable
from gammaeff.fitting.engine import (
    ExponentialFitEngine,
    ExponentialFitResult,
    FitCurve,
    FitObservationSet,
    t_critical,
)

__all__ = [
    "DoubleExponential",
    "ExponentialModel",
    "SingleExponential",
    "exponential_basis",
    "exponential_basis_derivative",
    "model_for_order",
    "SeparableSolution",
    "solve_separable",
    "ExponentialFitEngine",
    "ExponentialFitResult",
    "FitCurve",
    "FitObservationSet",
    "t_critical",
]
