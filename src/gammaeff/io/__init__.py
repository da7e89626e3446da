"""CSV export of calibration results."""

from gammaeff.io.export import (
    detector_lines_csv,
    fit_curve_csv,
    summed_curve_csv,
    write_text,
)

__all__ = [
    "detector_lines_csv",
    "fit_curve_csv",
    "summed_curve_csv",
    "write_text",
]
