"""
Full-energy peak efficiency from calibration source measurements.

    ε = N / (I · 0.01 · A · t) · 100        (percent)
    σε = ε · sqrt((σN/N)² + (σI/I)² + (σA/A)²)

with N the net peak counts, I the branching intensity in percent, A the
source activity at measurement time in Bq and t the run time in seconds.
"""

from __future__ import annotations

import math
from typing import NamedTuple

from gammaeff.core.errors import InvalidInput

SECONDS_PER_HOUR = 3600.0


class LineEfficiency(NamedTuple):
    """Efficiency (percent) and its absolute uncertainty for one gamma line."""

    efficiency: float
    uncertainty: float


def efficiency_from_counts(
    counts: float,
    count_uncertainty: float,
    intensity_pct: float,
    intensity_uncertainty_pct: float,
    source_activity_Bq: float,
    activity_uncertainty_Bq: float,
    measurement_time_hours: float,
) -> LineEfficiency:
    """
    Calculate detection efficiency from a calibration measurement.

    Parameters
    ----------
    counts : float
        Net counts in the peak
    count_uncertainty : float
        Absolute uncertainty of ``counts``
    intensity_pct : float
        Gamma emission probability in percent
    intensity_uncertainty_pct : float
        Absolute uncertainty of the intensity in percent
    source_activity_Bq : float
        Source activity at measurement time (Bq)
    activity_uncertainty_Bq : float
        Absolute activity uncertainty (Bq); 0 treats the activity as exact
    measurement_time_hours : float
        Run time in hours

    Returns
    -------
    LineEfficiency
        Efficiency in percent and its uncertainty

    Raises
    ------
    InvalidInput
        For zero counts (no measurement), zero intensity, non-positive
        activity or run time, or negative uncertainties
    """
    if counts <= 0:
        raise InvalidInput("Line has no counts; it carries no efficiency information.")
    if intensity_pct <= 0:
        raise InvalidInput("Gamma line intensity must be positive.")
    if source_activity_Bq <= 0:
        raise InvalidInput("Source activity must be positive.")
    if measurement_time_hours <= 0:
        raise InvalidInput("Measurement time must be positive.")
    if min(count_uncertainty, intensity_uncertainty_pct, activity_uncertainty_Bq) < 0:
        raise InvalidInput("Uncertainties must be non-negative.")

    run_time_s = measurement_time_hours * SECONDS_PER_HOUR
    efficiency = counts / (intensity_pct * 0.01 * source_activity_Bq * run_time_s) * 100.0

    rel_unc_squared = (
        (count_uncertainty / counts) ** 2
        + (intensity_uncertainty_pct / intensity_pct) ** 2
        + (activity_uncertainty_Bq / source_activity_Bq) ** 2
    )
    return LineEfficiency(efficiency, efficiency * math.sqrt(rel_unc_squared))


def compute_line_efficiency(
    line,
    source_activity_Bq: float,
    activity_uncertainty_Bq: float,
    measurement_time_hours: float,
) -> LineEfficiency:
    """Efficiency of a :class:`~gammaeff.core.measurement.DetectorLine`."""

    return efficiency_from_counts(
        line.count,
        line.count_uncertainty,
        line.intensity,
        line.intensity_uncertainty,
        source_activity_Bq,
        activity_uncertainty_Bq,
        measurement_time_hours,
    )
