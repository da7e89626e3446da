"""Source activity decay between calibration and measurement dates."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Optional

from gammaeff.core.errors import InvalidInput, UnsetDate

DAYS_PER_YEAR = 365.25


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def decay_constant_per_day(half_life_years: float) -> float:
    """Return the decay constant λ = ln 2 / T½ in inverse days."""

    if not half_life_years > 0:
        raise InvalidInput(f"Half-life must be positive, got {half_life_years}")
    return math.log(2.0) / (half_life_years * DAYS_PER_YEAR)


def elapsed_days(start: Optional[date], end: Optional[date]) -> int:
    """Signed number of whole days from ``start`` to ``end``."""

    if start is None or end is None:
        raise UnsetDate("Both calibration and measurement dates must be set.")
    return (_as_date(end) - _as_date(start)).days


def decayed_activity(
    calibration_activity_kBq: float,
    calibration_date: Optional[date],
    half_life_years: float,
    target_date: Optional[date],
) -> float:
    """
    Activity of a source at ``target_date`` in Bq.

    A(t) = A₀ · 1000 · exp(-λ·Δt), with λ in 1/day and Δt in whole days.
    Δt is signed; a target date before the calibration date is extrapolated
    with the same law.

    Parameters
    ----------
    calibration_activity_kBq : float
        Certified activity on the calibration date (kBq)
    calibration_date : date or None
        Date of the certified activity
    half_life_years : float
        Half-life (years)
    target_date : date or None
        Date at which the activity is wanted

    Returns
    -------
    float
        Activity in Bq

    Raises
    ------
    UnsetDate
        If either date is missing
    InvalidInput
        If the half-life is not positive or the activity is negative
    """
    if calibration_activity_kBq < 0:
        raise InvalidInput("Calibration activity must be non-negative.")
    days = elapsed_days(calibration_date, target_date)
    decay_const = decay_constant_per_day(half_life_years)
    return calibration_activity_kBq * 1000.0 * math.exp(-decay_const * days)
