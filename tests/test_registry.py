"""
Tests for the per-detector fit registry.
"""

import random

import numpy as np
import pytest

from gammaeff.analysis.registry import DetectorFitRegistry
from gammaeff.core.errors import InvalidInput, UnknownDetector
from gammaeff.core.measurement import Detector, Measurement
from gammaeff.data.sources import GammaSource
from gammaeff.fitting.engine import ExponentialFitResult


def measurement_with(*detectors):
    return Measurement(source=GammaSource(name="synthetic"), detectors=list(detectors))


def distinct_ids(measurements):
    return {d.detector_id for m in measurements for d in m.detectors}


class TestSynchronize:

    def test_creates_one_entry_per_detector(self, fill_detector, energies):
        a = fill_detector(Detector("A"))
        b = fill_detector(Detector("B"))
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(a, b)])

        assert set(registry.keys()) == {a.detector_id, b.detector_id}
        assert len(registry.entry(a.detector_id).observations) == len(energies)
        assert not registry.entry(a.detector_id).has_result

    def test_pools_same_detector_across_measurements(self, fill_detector, energies):
        first = fill_detector(Detector("HPGe"), energies[:5])
        second = fill_detector(first.same_device(), energies[5:])
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(first), measurement_with(second)])

        assert len(registry) == 1
        obs = registry.entry(first.detector_id).observations
        np.testing.assert_allclose(obs.x, energies)
        np.testing.assert_allclose(
            obs.w, [1.0 / line.efficiency_uncertainty for line in first.lines + second.lines]
        )

    def test_stale_lines_are_not_observations(self, fill_detector, energies):
        detector = fill_detector(Detector("A"))
        detector.lines[0].invalidate()
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(detector)])
        assert len(registry.entry(detector.detector_id).observations) == len(energies) - 1

    def test_is_idempotent(self, fill_detector):
        m = measurement_with(fill_detector(Detector("A")), fill_detector(Detector("B")))
        registry = DetectorFitRegistry()
        registry.synchronize([m])
        before = {k: registry.entry(k).observations.x.copy() for k in registry.keys()}
        registry.synchronize([m])
        assert set(registry.keys()) == set(before)
        for key, x in before.items():
            np.testing.assert_array_equal(registry.entry(key).observations.x, x)

    def test_keys_track_add_and_remove_operations(self, fill_detector, energies):
        rnd = random.Random(3)
        measurements = []
        registry = DetectorFitRegistry()
        known = []
        for step in range(60):
            action = rnd.choice(["add_m", "del_m", "add_d", "del_d", "share"])
            if action == "add_m" or not measurements:
                measurements.append(measurement_with())
            elif action == "del_m":
                measurements.pop(rnd.randrange(len(measurements)))
            elif action == "add_d":
                detector = rnd.choice(measurements).add_detector(f"D{step}")
                fill_detector(detector, energies[:3])
                known.append(detector)
            elif action == "share" and known:
                rnd.choice(measurements).detectors.append(rnd.choice(known).same_device())
            else:
                m = rnd.choice(measurements)
                if m.detectors:
                    m.remove_detector(rnd.choice(m.detectors).detector_id)
            registry.synchronize(measurements)
            assert set(registry.keys()) == distinct_ids(measurements)

    def test_removed_detector_entry_is_dropped(self, fill_detector):
        a = fill_detector(Detector("A"))
        m = measurement_with(a, fill_detector(Detector("B")))
        registry = DetectorFitRegistry()
        registry.synchronize([m])
        m.remove_detector(a.detector_id)
        registry.synchronize([m])
        assert a.detector_id not in registry


class TestIdentity:
    """Grouping is by detector id, not by display name.

    Name-keyed grouping would turn a rename into a new empty entry and merge
    unrelated detectors that share a label; neither happens here.
    """

    def test_rename_keeps_entry_and_fit(self, fill_detector):
        detector = fill_detector(Detector("HPGe-1"))
        m = measurement_with(detector)
        registry = DetectorFitRegistry()
        registry.synchronize([m])
        registry.fit(detector.detector_id, 2, (300.0, 3000.0))

        detector.name = "HPGe-North"
        registry.synchronize([m])
        entry = registry.entry(detector.detector_id)
        assert len(registry) == 1
        assert entry.name == "HPGe-North"
        assert entry.has_result

    def test_shared_name_does_not_merge(self, fill_detector):
        one = fill_detector(Detector("HPGe"))
        two = fill_detector(Detector("HPGe"), scale=0.5)
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(one), measurement_with(two)])
        assert len(registry) == 2
        assert len(registry.find("HPGe")) == 2


class TestFit:

    def test_fit_uses_pooled_observations(self, fill_detector, energies):
        detector = fill_detector(Detector("A"))
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(detector)])
        result = registry.fit(detector.detector_id, 2, (300.0, 3000.0))
        assert result.degrees_of_freedom == len(energies) - 4
        assert registry.entry(detector.detector_id).engine.result is result

    def test_stored_initial_guess(self, fill_detector):
        detector = fill_detector(Detector("A"))
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(detector)])
        registry.set_initial_guess(detector.detector_id, (300.0,))
        assert registry.entry(detector.detector_id).initial_guess[0] == 300.0
        result = registry.fit(detector.detector_id, 1)
        assert result.model_order == 1

    def test_unknown_detector(self):
        registry = DetectorFitRegistry()
        with pytest.raises(UnknownDetector):
            registry.fit("missing", 1)
        with pytest.raises(KeyError):
            registry.entry("missing")

    def test_fit_all_isolates_bad_detector(self, fill_detector, energies):
        good = fill_detector(Detector("good"))
        bad = fill_detector(Detector("bad"), energies[:2])
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(good, bad)])
        registry.set_initial_guess(good.detector_id, (300.0, 3000.0))

        outcomes = registry.fit_all(2)
        assert isinstance(outcomes[good.detector_id], ExponentialFitResult)
        assert isinstance(outcomes[bad.detector_id], InvalidInput)
        assert [e.detector_id for e in registry.fitted()] == [good.detector_id]


class TestInitialGuess:

    @pytest.fixture
    def registry_and_id(self, fill_detector):
        detector = fill_detector(Detector("A"))
        registry = DetectorFitRegistry()
        registry.synchronize([measurement_with(detector)])
        return registry, detector.detector_id

    @pytest.mark.parametrize("guess", [(), (100.0, 200.0, 300.0)])
    def test_wrong_number_of_guesses(self, registry_and_id, guess):
        registry, key = registry_and_id
        with pytest.raises(InvalidInput):
            registry.set_initial_guess(key, guess)

    @pytest.mark.parametrize("guess", [(0.0,), (300.0, -1.0), (float("nan"),)])
    def test_non_positive_guesses(self, registry_and_id, guess):
        registry, key = registry_and_id
        before = registry.entry(key).initial_guess
        with pytest.raises(InvalidInput):
            registry.set_initial_guess(key, guess)
        assert registry.entry(key).initial_guess == before

    def test_single_guess_keeps_second_decay(self, registry_and_id):
        registry, key = registry_and_id
        registry.set_initial_guess(key, (350.0, 2500.0))
        registry.set_initial_guess(key, (300.0,))
        assert registry.entry(key).initial_guess == (300.0, 2500.0)
