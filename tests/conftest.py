import numpy as np
import pytest

from gammaeff.data.sources import GammaLine

ENERGIES = [122.0, 245.0, 344.0, 444.0, 779.0, 964.0, 1112.0, 1408.0]


def true_efficiency(energy, scale=1.0):
    return scale * (1.5 * np.exp(-energy / 400.0) + 0.5 * np.exp(-energy / 2500.0))


@pytest.fixture
def energies():
    return list(ENERGIES)


@pytest.fixture
def fill_detector():
    """Attach lines with already-derived efficiencies (1% scatter) to a detector."""

    def fill(detector, energies=ENERGIES, scale=1.0, seed=0):
        rng = np.random.default_rng(seed)
        for energy in energies:
            line = detector.add_line(GammaLine(energy, 10.0, 0.05), 1000.0, 30.0)
            eff = true_efficiency(energy, scale)
            line.efficiency = eff * (1 + 0.01 * rng.normal())
            line.efficiency_uncertainty = 0.01 * eff
        return detector

    return fill
