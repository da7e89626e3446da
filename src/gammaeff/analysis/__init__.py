"""Per-detector fit registry and summed efficiency."""

from gammaeff.analysis.registry import DetectorFit, DetectorFitRegistry
from gammaeff.analysis.summed import (
    SummedEfficiencyAggregator,
    SummedEfficiencyCurve,
    SummedEfficiencyPoint,
)

__all__ = [
    "DetectorFit",
    "DetectorFitRegistry",
    "SummedEfficiencyAggregator",
    "SummedEfficiencyCurve",
    "SummedEfficiencyPoint",
]
