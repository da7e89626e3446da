"""
Calibration gamma sources.

A :class:`GammaSource` carries the certified activity of a source, its
half-life, the measurement run time and the gamma lines it emits. Lines are
identified by a stable ``line_id`` so detector lines never have to be matched
back to source lines by energy.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from gammaeff.core.errors import InvalidInput, UnsetDate
from gammaeff.physics.activity import DAYS_PER_YEAR, decayed_activity


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class GammaLine:
    """
    A gamma line emitted by a calibration source.

    Attributes
    ----------
    energy : float
        Line energy in keV
    intensity : float
        Branching intensity in percent
    intensity_uncertainty : float
        Absolute intensity uncertainty in percent
    line_id : str
        Stable identifier used to reference this line
    """

    energy: float
    intensity: float
    intensity_uncertainty: float = 0.0
    line_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        if not self.energy > 0:
            raise InvalidInput(f"Gamma line energy must be positive, got {self.energy}")
        if not self.intensity > 0:
            raise InvalidInput(f"Gamma line intensity must be positive, got {self.intensity}")
        if self.intensity_uncertainty < 0:
            raise InvalidInput("Intensity uncertainty must be non-negative")


@dataclass
class SourceActivityRecord:
    """Activity (kBq) of a source on a given date."""

    activity: Optional[float] = None
    date: Optional[date] = None


@dataclass
class GammaSource:
    """
    Calibration source used in one measurement.

    The measurement record is derived: its activity is filled by
    :meth:`update_measurement_activity` once both dates are known.
    """

    name: str = ""
    half_life: float = 1.0  # years
    calibration: SourceActivityRecord = field(default_factory=SourceActivityRecord)
    measurement: SourceActivityRecord = field(default_factory=SourceActivityRecord)
    measurement_time: float = 0.0  # hours
    gamma_lines: List[GammaLine] = field(default_factory=list)

    def __post_init__(self):
        if not self.half_life > 0:
            raise InvalidInput(f"Half-life must be positive, got {self.half_life}")
        if self.measurement_time < 0:
            raise InvalidInput("Measurement time must be non-negative")

    def add_gamma_line(
        self,
        energy: float,
        intensity: float,
        intensity_uncertainty: float = 0.0,
    ) -> GammaLine:
        line = GammaLine(energy, intensity, intensity_uncertainty)
        self.gamma_lines.append(line)
        return line

    def remove_gamma_line(self, line_id: str) -> None:
        self.gamma_lines = [line for line in self.gamma_lines if line.line_id != line_id]

    def gamma_line(self, line_id: str) -> GammaLine:
        for line in self.gamma_lines:
            if line.line_id == line_id:
                return line
        raise InvalidInput(f"Source '{self.name}' has no gamma line {line_id}")

    def set_calibration(self, activity_kBq: float, on: date) -> None:
        self.calibration = SourceActivityRecord(activity_kBq, on)
        self.measurement.activity = None

    def set_measurement_date(self, on: date) -> None:
        self.measurement = SourceActivityRecord(None, on)

    def activity_state(self) -> tuple:
        """Inputs the measurement activity and line efficiencies derive from."""
        return (
            self.half_life,
            self.calibration.activity,
            self.calibration.date,
            self.measurement.date,
            self.measurement_time,
        )

    def update_measurement_activity(self) -> float:
        """Decay the calibration activity to the measurement date.

        Stores the result (kBq) in the measurement record and returns it in Bq.

        Raises
        ------
        InvalidInput
            If no calibration activity is set
        UnsetDate
            If the calibration or measurement date is missing
        """
        if self.calibration.activity is None:
            raise InvalidInput(f"Source '{self.name}' has no calibration activity.")
        activity_Bq = decayed_activity(
            self.calibration.activity,
            self.calibration.date,
            self.half_life,
            self.measurement.date,
        )
        self.measurement.activity = activity_Bq / 1000.0
        return activity_Bq

    @property
    def measurement_activity_Bq(self) -> float:
        if self.measurement.activity is None:
            raise UnsetDate(
                f"Measurement activity of source '{self.name}' has not been computed."
            )
        return self.measurement.activity * 1000.0

    @classmethod
    def from_reference(cls, name: str, **kwargs) -> 'GammaSource':
        """
        Build a source from :data:`REFERENCE_SOURCES`.

        Keyword arguments (``measurement_time``, ``measurement``) are passed
        through to the constructor.
        """
        try:
            ref = REFERENCE_SOURCES[name]
        except KeyError:
            raise InvalidInput(
                f"Unknown reference source '{name}'. Available: {sorted(REFERENCE_SOURCES)}"
            ) from None
        source = cls(
            name=name,
            half_life=ref['half_life_years'],
            calibration=SourceActivityRecord(ref['activity_kBq'], ref['calibration_date']),
            **kwargs,
        )
        for energy, intensity, unc in ref['lines']:
            source.add_gamma_line(energy, intensity, unc)
        return source


# ============================================================================
# Reference Calibration Sources
# ============================================================================

# Energies (keV), intensities and intensity uncertainties (percent)
REFERENCE_SOURCES: Dict[str, Dict] = {
    '152Eu': {
        'half_life_years': 13.517,
        'activity_kBq': 74.370,
        'calibration_date': date(2017, 3, 17),
        'lines': [
            (121.7817, 28.53, 0.16),
            (244.6974, 7.55, 0.04),
            (344.2785, 26.59, 0.20),
            (411.1164, 2.237, 0.013),
            (443.9650, 2.827, 0.014),
            (778.9045, 12.93, 0.08),
            (867.3800, 4.23, 0.03),
            (964.0570, 14.51, 0.07),
            (1085.837, 10.11, 0.05),
            (1112.076, 13.67, 0.08),
            (1408.0130, 20.87, 0.09),
        ],
    },
    '56Co': {
        'half_life_years': 77.236 / DAYS_PER_YEAR,
        'activity_kBq': 108.0,
        'calibration_date': date(2022, 4, 18),
        'lines': [
            (846.7638, 99.9399, 0.0023),
            (1037.8333, 14.03, 0.05),
            (1360.196, 4.283, 0.013),
            (2598.438, 16.96, 0.04),
            (3451.119, 0.942, 0.006),
        ],
    },
}
