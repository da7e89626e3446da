"""Calibration source data."""

from gammaeff.data.sources import (
    REFERENCE_SOURCES,
    GammaLine,
    GammaSource,
    SourceActivityRecord,
)

__all__ = [
    "REFERENCE_SOURCES",
    "GammaLine",
    "GammaSource",
    "SourceActivityRecord",
]
