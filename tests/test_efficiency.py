"""
Tests for line efficiency calculation and measurement refresh.
"""

import math
from datetime import date, timedelta

import pytest

from gammaeff.analysis.registry import DetectorFitRegistry
from gammaeff.core.errors import InvalidInput
from gammaeff.core.measurement import DetectorLine, Measurement
from gammaeff.data.sources import GammaLine, GammaSource
from gammaeff.physics.efficiency import compute_line_efficiency, efficiency_from_counts


def test_efficiency_reference_scenario():
    eff, unc = efficiency_from_counts(
        counts=324288,
        count_uncertainty=1342,
        intensity_pct=7.55,
        intensity_uncertainty_pct=0.04,
        source_activity_Bq=53911,
        activity_uncertainty_Bq=0.0,
        measurement_time_hours=3,
    )

    expected = 324288 / (7.55 * 0.01 * 53911 * 3 * 3600) * 100
    expected_unc = expected * math.sqrt((1342 / 324288) ** 2 + (0.04 / 7.55) ** 2)
    assert eff == pytest.approx(expected, rel=1e-12)
    assert unc == pytest.approx(expected_unc, rel=1e-12)
    assert eff == pytest.approx(0.7377, rel=1e-3)
    assert unc == pytest.approx(0.00496, rel=1e-2)


def test_activity_uncertainty_adds_in_quadrature():
    args = dict(counts=1e4, count_uncertainty=0.0, intensity_pct=50.0,
                intensity_uncertainty_pct=0.0, source_activity_Bq=1e3,
                measurement_time_hours=1.0)
    eff, unc = efficiency_from_counts(activity_uncertainty_Bq=50.0, **args)
    assert unc == pytest.approx(0.05 * eff)


def test_zero_counts_is_not_a_measurement():
    with pytest.raises(InvalidInput):
        efficiency_from_counts(0, 0, 7.55, 0.04, 53911, 0.0, 3)


def test_zero_intensity_is_rejected_at_entry():
    with pytest.raises(InvalidInput):
        GammaLine(244.7, 0.0, 0.0)
    with pytest.raises(InvalidInput):
        efficiency_from_counts(100, 10, 0.0, 0.0, 1000, 0.0, 1)


def test_compute_line_efficiency_uses_line_values():
    gamma = GammaLine(244.6974, 7.55, 0.04)
    line = DetectorLine.from_gamma_line(gamma, 324288, 1342)
    result = compute_line_efficiency(line, 53911, 0.0, 3)
    assert result.efficiency == pytest.approx(0.7377, rel=1e-3)


class TestMeasurementRefresh:
    """Measurement.refresh decays the source and fills line efficiencies."""

    @pytest.fixture
    def measurement(self):
        source = GammaSource.from_reference('152Eu', measurement_time=3.0)
        source.set_measurement_date(date(2017, 3, 17) + timedelta(days=2231))
        measurement = Measurement(source=source)
        detector = measurement.add_detector("HPGe")
        detector.add_line(source.gamma_lines[1], 324288, 1342)
        detector.add_line(source.gamma_lines[0], 0, 0)
        return measurement

    def test_refresh_computes_valid_lines(self, measurement):
        assert measurement.refresh() == 1
        counted, empty = measurement.detectors[0].lines
        assert not counted.is_stale
        assert counted.efficiency > 0
        assert empty.is_stale

    def test_set_counts_marks_line_stale(self, measurement):
        measurement.refresh()
        line = measurement.detectors[0].lines[0]
        line.set_counts(1000, 30)
        assert line.is_stale
        measurement.refresh()
        assert not line.is_stale

    def test_match_copies_gamma_line(self, measurement):
        line = measurement.detectors[0].lines[1]
        target = measurement.source.gamma_lines[5]
        line.match(target)
        assert line.gamma_line_id == target.line_id
        assert line.energy == target.energy
        assert line.intensity == target.intensity

    def test_missing_dates_leave_lines_stale(self, measurement):
        measurement.source.measurement.date = None
        assert measurement.refresh() == 0
        assert all(line.is_stale for line in measurement.detectors[0].lines)

    def test_line_removed_from_source_is_skipped(self, measurement):
        measurement.source.remove_gamma_line(measurement.source.gamma_lines[1].line_id)
        assert measurement.refresh() == 0

    def test_new_measurement_date_marks_lines_stale(self, measurement):
        measurement.refresh()
        line = measurement.detectors[0].lines[0]
        before = line.efficiency

        measurement.source.set_measurement_date(date(2017, 3, 27))
        assert line.is_stale
        assert list(measurement.detectors[0].observations()) == []

        measurement.refresh()
        assert not line.is_stale
        assert line.efficiency < before

    def test_new_calibration_marks_lines_stale(self, measurement):
        measurement.refresh()
        measurement.source.set_calibration(80.0, date(2017, 3, 17))
        assert measurement.detectors[0].lines[0].is_stale

    @pytest.mark.parametrize("attribute, value", [
        ("measurement_time", 2.0),
        ("half_life", 10.0),
    ])
    def test_changed_source_attribute_marks_lines_stale(self, measurement, attribute, value):
        measurement.refresh()
        setattr(measurement.source, attribute, value)
        assert measurement.detectors[0].lines[0].is_stale

    def test_changed_activity_uncertainty_marks_lines_stale(self, measurement):
        measurement.refresh()
        measurement.activity_uncertainty_fraction = 0.05
        assert measurement.detectors[0].lines[0].is_stale

    def test_direct_count_assignment_marks_line_stale(self, measurement):
        measurement.refresh()
        line = measurement.detectors[0].lines[0]
        line.count = 300000
        assert line.is_stale

    def test_registry_ignores_outdated_efficiencies(self, measurement):
        measurement.refresh()
        detector = measurement.detectors[0]
        registry = DetectorFitRegistry()
        registry.synchronize([measurement])
        assert len(registry.entry(detector.detector_id).observations) == 1

        measurement.source.set_measurement_date(date(2017, 3, 27))
        registry.synchronize([measurement])
        assert len(registry.entry(detector.detector_id).observations) == 0

        measurement.refresh()
        registry.synchronize([measurement])
        assert registry.entry(detector.detector_id).observations.y[0] == pytest.approx(
            detector.lines[0].efficiency
        )

    def test_activity_uncertainty_fraction(self, measurement):
        measurement.refresh()
        exact = measurement.detectors[0].lines[0].efficiency_uncertainty
        measurement.activity_uncertainty_fraction = 0.05
        measurement.refresh()
        assert measurement.detectors[0].lines[0].efficiency_uncertainty > exact


def test_negative_counts_rejected():
    gamma = GammaLine(100.0, 10.0)
    with pytest.raises(InvalidInput):
        DetectorLine.from_gamma_line(gamma, -1.0, 1.0)
