"""End-to-end efficiency calibration workflow."""

from gammaeff.workflows.efficiency_calibration import EfficiencyCalibration

__all__ = ["EfficiencyCalibration"]
