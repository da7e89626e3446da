"""Configuration for exponential efficiency fitting."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from gammaeff.core.errors import InvalidInput


@dataclass
class FitSettings:
    """
    Settings shared by the fit engine, registry and summed aggregator.

    Attributes
    ----------
    max_nfev : int
        Iteration cap handed to the Levenberg-Marquardt solver
    ftol, xtol, gtol : float
        Solver convergence tolerances
    scale_covariance : bool
        Scale the parameter covariance by the reduced chi-squared
    sigma_level : float
        Default confidence level, in equivalent Gaussian sigmas
    initial_guess : tuple of float
        Default decay-scale guesses (b, d) in keV for new detectors
    curve_points : int
        Number of intervals used when sampling fitted curves
    curve_padding_keV : float
        Fitted curves are sampled up to max(energy) + padding
    activity_uncertainty_fraction : float
        Default relative uncertainty of source activities (0 = exact)
    """

    max_nfev: int = 1000
    ftol: float = 1e-12
    xtol: float = 1e-12
    gtol: float = 1e-12
    scale_covariance: bool = True
    sigma_level: float = 1.0
    initial_guess: Tuple[float, float] = (200.0, 2000.0)
    curve_points: int = 1000
    curve_padding_keV: float = 1000.0
    activity_uncertainty_fraction: float = 0.0

    def __post_init__(self):
        self.initial_guess = tuple(float(g) for g in self.initial_guess)
        if self.max_nfev <= 0:
            raise InvalidInput("max_nfev must be positive")
        if self.sigma_level <= 0:
            raise InvalidInput("sigma_level must be positive")
        if self.curve_points < 1:
            raise InvalidInput("curve_points must be at least 1")
        if self.activity_uncertainty_fraction < 0:
            raise InvalidInput("activity_uncertainty_fraction must be non-negative")
        if len(self.initial_guess) != 2 or min(self.initial_guess) <= 0:
            raise InvalidInput("initial_guess must hold two positive decay scales")

    @classmethod
    def default(cls) -> 'FitSettings':
        """Get default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data['initial_guess'] = list(self.initial_guess)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FitSettings':
        """Create settings from a dictionary; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidInput(f"Unknown fit settings: {', '.join(sorted(unknown))}")
        return cls(**data)

    def save(self, filepath: Union[str, Path]) -> None:
        """Save settings to a JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'FitSettings':
        """Load settings from a JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)
