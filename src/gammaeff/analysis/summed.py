"""
Summed multi-detector efficiency.

At each energy the fitted efficiencies of all detectors are added and their
one-sigma confidence half-widths are combined in quadrature,

    ε_sum = Σ ε_i ,   σ_sum = sqrt(Σ σ_i²)

Quadrature assumes the detector fits are independent.
"""

from __future__ import annotations

import logging
import math
from typing import Iterator, List, NamedTuple, Optional, Tuple

import numpy as np

from gammaeff.analysis.registry import DetectorFitRegistry
from gammaeff.core.errors import GammaEffError, InvalidInput, MissingFitResult

logger = logging.getLogger(__name__)


class SummedEfficiencyPoint(NamedTuple):
    energy: float
    efficiency: float
    uncertainty: float


class SummedEfficiencyAggregator:
    """Combine the registry's successful fits into one efficiency curve."""

    def __init__(self, registry: DetectorFitRegistry, sigma_level: float = 1.0):
        if not sigma_level > 0:
            raise InvalidInput("sigma_level must be positive")
        self.registry = registry
        self.sigma_level = sigma_level

    def evaluate(self, energy: float) -> SummedEfficiencyPoint:
        """
        Summed efficiency and uncertainty at ``energy``.

        Detectors whose evaluation fails or is not finite are skipped.

        Raises
        ------
        MissingFitResult
            If no detector contributes
        """
        efficiency = 0.0
        variance = 0.0
        n_used = 0
        for entry in self.registry.fitted():
            try:
                value = entry.engine.evaluate(energy)
                half_width = entry.engine.confidence_half_width(energy, self.sigma_level)
            except GammaEffError as exc:
                logger.warning("Skipping detector '%s' at %.1f keV: %s", entry.name, energy, exc)
                continue
            if not (math.isfinite(value) and math.isfinite(half_width)):
                logger.warning("Skipping detector '%s' at %.1f keV: non-finite fit value",
                               entry.name, energy)
                continue
            efficiency += value
            variance += half_width**2
            n_used += 1

        if n_used == 0:
            raise MissingFitResult("No detector has a usable fit.")
        return SummedEfficiencyPoint(float(energy), efficiency, math.sqrt(variance))

    def sample(
        self,
        energy_max: float,
        num_points: int,
        energy_min: float = 0.0,
    ) -> 'SummedEfficiencyCurve':
        return SummedEfficiencyCurve(self, energy_max, num_points, energy_min)


class SummedEfficiencyCurve:
    """
    Lazy, restartable samples of the summed efficiency.

    Iterating evaluates the aggregator at ``num_points`` uniformly spaced
    energies on [energy_min, energy_max]; every iteration starts afresh and
    reflects the registry's current fits.
    """

    def __init__(
        self,
        aggregator: SummedEfficiencyAggregator,
        energy_max: float,
        num_points: int,
        energy_min: float = 0.0,
    ):
        if num_points < 2:
            raise InvalidInput("At least two sample points are required")
        if not energy_max > energy_min:
            raise InvalidInput("energy_max must exceed energy_min")
        self.aggregator = aggregator
        self.energy_min = float(energy_min)
        self.energy_max = float(energy_max)
        self.num_points = int(num_points)

    @property
    def energies(self) -> np.ndarray:
        return np.linspace(self.energy_min, self.energy_max, self.num_points)

    def __len__(self) -> int:
        return self.num_points

    def __iter__(self) -> Iterator[SummedEfficiencyPoint]:
        for energy in self.energies:
            yield self.aggregator.evaluate(float(energy))

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(energy, efficiency, uncertainty) arrays."""
        points: List[SummedEfficiencyPoint] = list(self)
        energy, efficiency, uncertainty = (np.array(col) for col in zip(*points))
        return energy, efficiency, uncertainty
