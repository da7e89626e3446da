"""Efficiency calibration session.

Orchestrates the complete chain

1. decay each source to its measurement date and compute line efficiencies
2. pool the points of every physical detector in the fit registry
3. fit exponential models per detector
4. combine the fits into a summed efficiency curve
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Union

from gammaeff.analysis.registry import DetectorFitRegistry
from gammaeff.analysis.summed import SummedEfficiencyAggregator, SummedEfficiencyCurve
from gammaeff.core.config import FitSettings
from gammaeff.core.errors import GammaEffError, InvalidInput
from gammaeff.core.measurement import Measurement
from gammaeff.data.sources import GammaSource
from gammaeff.fitting.engine import ExponentialFitResult

logger = logging.getLogger(__name__)


class EfficiencyCalibration:
    """
    Measurements of calibration sources and the detector fits built from them.

    Example
    -------
    >>> calib = EfficiencyCalibration()
    >>> m = calib.add_measurement(GammaSource.from_reference('152Eu', measurement_time=3.0))
    >>> m.source.set_measurement_date(date(2023, 4, 26))
    >>> hpge = m.add_detector("HPGe-1")
    >>> hpge.add_line(m.source.gamma_lines[0], 1.2e6, 2.1e3)
    >>> calib.fit_all(model_order=2)
    >>> curve = calib.summed_efficiency(energy_max=3000, num_points=301)
    """

    def __init__(self, settings: Optional[FitSettings] = None):
        self.settings = settings or FitSettings.default()
        self.measurements: List[Measurement] = []
        self.registry = DetectorFitRegistry(self.settings)
        self.aggregator = SummedEfficiencyAggregator(self.registry, self.settings.sigma_level)

    def add_measurement(self, source: Optional[GammaSource] = None) -> Measurement:
        measurement = Measurement(
            source=source if source is not None else GammaSource(),
            activity_uncertainty_fraction=self.settings.activity_uncertainty_fraction,
        )
        self.measurements.append(measurement)
        return measurement

    def remove_measurement(self, index: int) -> None:
        del self.measurements[index]

    def detector_names(self) -> Dict[str, str]:
        """Detector id → display name for every registered detector."""
        return {entry.detector_id: entry.name for entry in self.registry}

    def refresh(self) -> None:
        """Recompute all efficiencies and resynchronize the registry."""
        for measurement in self.measurements:
            measurement.refresh()
        self.registry.synchronize(self.measurements)

    def fit_detector(
        self,
        detector_id: str,
        model_order: int,
        initial_guess: Optional[Sequence[float]] = None,
    ) -> ExponentialFitResult:
        self.refresh()
        return self.registry.fit(detector_id, model_order, initial_guess)

    def fit_all(self, model_order: int) -> Dict[str, Union[ExponentialFitResult, GammaEffError]]:
        self.refresh()
        return self.registry.fit_all(model_order)

    def summed_efficiency(
        self,
        energy_max: Optional[float] = None,
        num_points: Optional[int] = None,
    ) -> SummedEfficiencyCurve:
        """
        Summed efficiency of all fitted detectors on [0, energy_max].

        ``energy_max`` defaults to the highest energy any current fit was
        built on plus ``settings.curve_padding_keV``.
        """
        self.refresh()
        if energy_max is None:
            energies = [entry.engine.result.energy_max for entry in self.registry.fitted()]
            if not energies:
                raise InvalidInput("No fitted detector data to derive an energy range from")
            energy_max = max(energies) + self.settings.curve_padding_keV
        if num_points is None:
            num_points = self.settings.curve_points + 1
        return self.aggregator.sample(energy_max, num_points)
