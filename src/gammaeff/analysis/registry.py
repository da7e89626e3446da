"""Per-detector fit registry.

Pools the efficiency points of every physical detector across all
measurements and keeps exactly one :class:`ExponentialFitEngine` per detector.
Entries are keyed by ``Detector.detector_id``; the display name is carried
along but never used for grouping.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from gammaeff.core.config import FitSettings
from gammaeff.core.errors import GammaEffError, InvalidInput, UnknownDetector
from gammaeff.core.measurement import Measurement
from gammaeff.fitting.engine import ExponentialFitEngine, ExponentialFitResult, FitObservationSet

logger = logging.getLogger(__name__)


@dataclass
class DetectorFit:
    """Registry entry: one physical detector, its pooled data and its fit engine."""

    detector_id: str
    name: str
    engine: ExponentialFitEngine
    initial_guess: Tuple[float, float]

    @property
    def observations(self) -> FitObservationSet:
        return self.engine.observations

    @property
    def has_result(self) -> bool:
        return self.engine.has_result


class DetectorFitRegistry:
    """
    Mapping detector id → :class:`DetectorFit`.

    :meth:`synchronize` rebuilds all observation sets from scratch; it is
    idempotent and must run before fits or summed curves reflect new data.
    """

    def __init__(self, settings: Optional[FitSettings] = None):
        self.settings = settings or FitSettings.default()
        self._entries: Dict[str, DetectorFit] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, detector_id: object) -> bool:
        return detector_id in self._entries

    def __iter__(self) -> Iterator[DetectorFit]:
        return iter(list(self._entries.values()))

    def keys(self) -> List[str]:
        return list(self._entries)

    def entry(self, detector_id: str) -> DetectorFit:
        try:
            return self._entries[detector_id]
        except KeyError:
            raise UnknownDetector(detector_id) from None

    def find(self, name: str) -> List[DetectorFit]:
        """Entries whose display name equals ``name``."""
        return [e for e in self._entries.values() if e.name == name]

    def fitted(self) -> List[DetectorFit]:
        return [e for e in self._entries.values() if e.has_result]

    def synchronize(self, measurements: Iterable[Measurement]) -> None:
        names: Dict[str, str] = {}
        triples: Dict[str, List[Tuple[float, float, float]]] = {}

        for measurement in measurements:
            for detector in measurement.detectors:
                key = detector.detector_id
                if key not in names:
                    names[key] = detector.name
                    triples[key] = []
                elif names[key] != detector.name:
                    logger.warning(
                        "Detector %s is labelled both '%s' and '%s'; using '%s'",
                        key, names[key], detector.name, names[key],
                    )
                triples[key].extend(detector.observations())

        for key, name in names.items():
            observations = FitObservationSet.from_triples(triples[key])
            entry = self._entries.get(key)
            if entry is None:
                engine = ExponentialFitEngine(observations, self.settings)
                self._entries[key] = DetectorFit(key, name, engine, self.settings.initial_guess)
                logger.debug("Registered detector '%s' (%s)", name, key)
            else:
                entry.name = name
                entry.engine.observations = observations

        for key in set(self._entries) - set(names):
            logger.debug("Dropping detector '%s' (%s)", self._entries[key].name, key)
            del self._entries[key]

    def set_initial_guess(self, detector_id: str, initial_guess: Sequence[float]) -> None:
        """Store starting decay scales (b[, d]) for one detector.

        A single value replaces b and keeps the stored d.
        """
        entry = self.entry(detector_id)
        initial_guess = tuple(initial_guess)
        if not 1 <= len(initial_guess) <= 2:
            raise InvalidInput(f"Expected one or two decay guesses, got {len(initial_guess)}")
        if not all(math.isfinite(g) and g > 0 for g in initial_guess):
            raise InvalidInput(f"Decay guesses must be positive, got {initial_guess}")
        b, d = (initial_guess + entry.initial_guess[len(initial_guess):])[:2]
        entry.initial_guess = (float(b), float(d))

    def fit(
        self,
        detector_id: str,
        model_order: int,
        initial_guess: Optional[Sequence[float]] = None,
    ) -> ExponentialFitResult:
        """Fit one detector with its current observations.

        Without ``initial_guess`` the entry's stored guesses are used.
        """
        entry = self.entry(detector_id)
        if initial_guess is None:
            initial_guess = entry.initial_guess[:model_order]
        return entry.engine.fit(model_order, initial_guess)

    def fit_all(
        self,
        model_order: int,
    ) -> Dict[str, Union[ExponentialFitResult, GammaEffError]]:
        """Fit every detector; a failing detector does not stop the others."""
        outcomes: Dict[str, Union[ExponentialFitResult, GammaEffError]] = {}
        for entry in self:
            try:
                outcomes[entry.detector_id] = self.fit(entry.detector_id, model_order)
            except GammaEffError as exc:
                logger.warning("Fit of detector '%s' failed: %s", entry.name, exc)
                outcomes[entry.detector_id] = exc
        return outcomes
