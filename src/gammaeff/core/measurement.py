"""Detectors and measurements of calibration sources.

A :class:`Measurement` owns one :class:`~gammaeff.data.sources.GammaSource`
and the detectors that recorded it. Each :class:`DetectorLine` points at a
source line through its ``line_id`` and carries the derived efficiency once
:meth:`Measurement.refresh` has run.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from gammaeff.core.errors import GammaEffError, InvalidInput
from gammaeff.data.sources import GammaLine, GammaSource
from gammaeff.physics.efficiency import compute_line_efficiency

logger = logging.getLogger(__name__)


@dataclass
class DetectorLine:
    """
    Counts recorded by a detector in one gamma line of the source.

    ``energy``, ``intensity`` and ``intensity_uncertainty`` are copied from
    the matched :class:`GammaLine`. ``efficiency`` and
    ``efficiency_uncertainty`` are None until computed.

    A line filled by :meth:`Measurement.refresh` remembers the inputs it was
    computed from and turns stale as soon as any of them changes: its own
    counts or matched line, the source dates, activity, half-life or run
    time, or the measurement's activity uncertainty.
    """

    gamma_line_id: str
    energy: float
    intensity: float
    intensity_uncertainty: float
    count: float = 0.0
    count_uncertainty: float = 0.0
    efficiency: Optional[float] = None
    efficiency_uncertainty: Optional[float] = None
    _measurement: Optional['Measurement'] = field(
        default=None, init=False, repr=False, compare=False
    )
    _basis: Optional[tuple] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        self._check_counts(self.count, self.count_uncertainty)

    @staticmethod
    def _check_counts(count: float, count_uncertainty: float) -> None:
        if count < 0 or count_uncertainty < 0:
            raise InvalidInput("Counts and count uncertainty must be non-negative")

    @classmethod
    def from_gamma_line(
        cls,
        gamma_line: GammaLine,
        count: float = 0.0,
        count_uncertainty: float = 0.0,
    ) -> 'DetectorLine':
        return cls(
            gamma_line_id=gamma_line.line_id,
            energy=gamma_line.energy,
            intensity=gamma_line.intensity,
            intensity_uncertainty=gamma_line.intensity_uncertainty,
            count=count,
            count_uncertainty=count_uncertainty,
        )

    def _current_basis(self) -> tuple:
        own = (
            self.gamma_line_id, self.count, self.count_uncertainty,
            self.intensity, self.intensity_uncertainty,
        )
        return own + self._measurement.activity_state()

    @property
    def is_stale(self) -> bool:
        if self.efficiency is None or self.efficiency_uncertainty is None:
            return True
        # efficiencies assigned by hand carry no basis to compare against
        if self._measurement is None:
            return False
        return self._basis != self._current_basis()

    def invalidate(self) -> None:
        self.efficiency = None
        self.efficiency_uncertainty = None
        self._measurement = None
        self._basis = None

    def _store(self, measurement: 'Measurement', efficiency: float, uncertainty: float) -> None:
        self.efficiency = efficiency
        self.efficiency_uncertainty = uncertainty
        self._measurement = measurement
        self._basis = self._current_basis()

    def set_counts(self, count: float, count_uncertainty: float) -> None:
        self._check_counts(count, count_uncertainty)
        self.count = count
        self.count_uncertainty = count_uncertainty
        self.invalidate()

    def match(self, gamma_line: GammaLine) -> None:
        """Point this line at another gamma line of the source."""
        self.gamma_line_id = gamma_line.line_id
        self.energy = gamma_line.energy
        self.intensity = gamma_line.intensity
        self.intensity_uncertainty = gamma_line.intensity_uncertainty
        self.invalidate()


@dataclass
class Detector:
    """
    Lines recorded by one physical detector during a measurement.

    ``detector_id`` identifies the physical detector and is what fits are
    pooled on; ``name`` is only a display label. Use :meth:`same_device` to
    register the same detector in another measurement.
    """

    name: str = ""
    lines: List[DetectorLine] = field(default_factory=list)
    detector_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def same_device(self, name: Optional[str] = None) -> 'Detector':
        """Empty detector sharing this detector's identity."""
        return Detector(name=self.name if name is None else name, detector_id=self.detector_id)

    def add_line(
        self,
        gamma_line: GammaLine,
        count: float = 0.0,
        count_uncertainty: float = 0.0,
    ) -> DetectorLine:
        line = DetectorLine.from_gamma_line(gamma_line, count, count_uncertainty)
        self.lines.append(line)
        return line

    def remove_line(self, index: int) -> None:
        del self.lines[index]

    def observations(self) -> Iterator[Tuple[float, float, float]]:
        """Yield (energy, efficiency, weight) for every usable line.

        Weight is 1 / efficiency_uncertainty; stale lines and lines without
        a positive uncertainty are skipped.
        """
        for line in self.lines:
            if line.is_stale:
                continue
            if not line.efficiency_uncertainty > 0:
                logger.warning(
                    "Skipping %.1f keV line of detector '%s': zero efficiency uncertainty",
                    line.energy, self.name,
                )
                continue
            yield line.energy, line.efficiency, 1.0 / line.efficiency_uncertainty


@dataclass
class Measurement:
    """One calibration source measured by one or more detectors."""

    source: GammaSource = field(default_factory=GammaSource)
    detectors: List[Detector] = field(default_factory=list)
    activity_uncertainty_fraction: float = 0.0

    def __post_init__(self):
        if self.activity_uncertainty_fraction < 0:
            raise InvalidInput("activity_uncertainty_fraction must be non-negative")

    def add_detector(self, name: str = "", detector_id: Optional[str] = None) -> Detector:
        detector = Detector(name=name)
        if detector_id is not None:
            detector.detector_id = detector_id
        self.detectors.append(detector)
        return detector

    def remove_detector(self, detector_id: str) -> None:
        self.detectors = [d for d in self.detectors if d.detector_id != detector_id]

    def activity_state(self) -> tuple:
        """Everything besides the line itself that a line efficiency depends on."""
        return self.source.activity_state() + (self.activity_uncertainty_fraction,)

    def refresh(self) -> int:
        """
        Recompute the source activity and every line efficiency.

        Lines that cannot be evaluated (no counts, lines no longer present in
        the source, missing dates) are left stale and logged; they never abort
        the refresh.

        Returns
        -------
        int
            Number of lines with a valid efficiency
        """
        for detector in self.detectors:
            for line in detector.lines:
                line.invalidate()

        try:
            activity = self.source.update_measurement_activity()
        except GammaEffError as exc:
            logger.warning("Cannot evaluate measurement of '%s': %s", self.source.name, exc)
            return 0

        activity_unc = activity * self.activity_uncertainty_fraction
        known_lines = {line.line_id for line in self.source.gamma_lines}
        n_valid = 0
        for detector in self.detectors:
            for line in detector.lines:
                if line.gamma_line_id not in known_lines:
                    logger.warning(
                        "Detector '%s' references a line missing from source '%s'",
                        detector.name, self.source.name,
                    )
                    continue
                if line.count == 0:
                    continue
                try:
                    result = compute_line_efficiency(
                        line, activity, activity_unc, self.source.measurement_time
                    )
                except GammaEffError as exc:
                    logger.warning(
                        "Skipping %.1f keV line of detector '%s': %s",
                        line.energy, detector.name, exc,
                    )
                    continue
                line._store(self, *result)
                n_valid += 1
        return n_valid
