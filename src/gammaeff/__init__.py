"""
GammaEff: gamma-ray detector efficiency calibration.

Source activities are decayed to the measurement date, line counts become
efficiencies, every detector gets an exponential efficiency fit, and the fits
combine into a summed efficiency curve.
"""

from importlib.metadata import PackageNotFoundError, version

from gammaeff.core.config import FitSettings
from gammaeff.data.sources import GammaLine, GammaSource
from gammaeff.fitting.engine import ExponentialFitEngine, FitObservationSet
from gammaeff.workflows.efficiency_calibration import EfficiencyCalibration

__all__ = [
    "__version__",
    "EfficiencyCalibration",
    "ExponentialFitEngine",
    "FitObservationSet",
    "FitSettings",
    "GammaLine",
    "GammaSource",
]

try:
    __version__ = version("gammaeff")
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.1.0"
