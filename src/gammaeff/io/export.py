"""CSV text for detector lines, fitted curves and the summed efficiency."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, Union

from gammaeff.analysis.summed import SummedEfficiencyPoint
from gammaeff.core.measurement import Detector
from gammaeff.fitting.engine import FitCurve

DETECTOR_LINE_HEADER = [
    "Energy", "Counts", "Uncertainty", "Intensity", "Intensity Uncertainty",
    "Efficiency", "Efficiency Uncertainty",
]
SUMMED_HEADER = ["Energy", "Efficiency", "Uncertainty"]
FIT_CURVE_HEADER = ["Energy", "Efficiency", "Lower", "Upper"]


def _efficiency_fields(line):
    if line.is_stale:
        return ["", ""]
    return [line.efficiency, line.efficiency_uncertainty]


def _render(header, rows) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def detector_lines_csv(detector: Detector) -> str:
    """One row per detector line; stale efficiencies are left empty."""
    rows = (
        [
            line.energy,
            line.count,
            line.count_uncertainty,
            line.intensity,
            line.intensity_uncertainty,
            *_efficiency_fields(line),
        ]
        for line in detector.lines
    )
    return _render(DETECTOR_LINE_HEADER, rows)


def summed_curve_csv(points: Iterable[SummedEfficiencyPoint]) -> str:
    """``Energy,Efficiency,Uncertainty`` header followed by one row per sample."""
    return _render(SUMMED_HEADER, (tuple(point) for point in points))


def fit_curve_csv(curve: FitCurve) -> str:
    rows = zip(curve.energy, curve.efficiency, curve.lower, curve.upper)
    return _render(FIT_CURVE_HEADER, rows)


def write_text(text: str, filepath: Union[str, Path]) -> Path:
    path = Path(filepath)
    path.write_text(text, encoding="utf-8")
    return path
