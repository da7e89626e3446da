"""
Exponential efficiency fit engine.

:class:`ExponentialFitEngine` fits a 1- or 2-term exponential sum to weighted
(energy, efficiency) observations and exposes the fitted model, parameter
covariance and delta-method confidence intervals.

A failed fit raises and leaves the last successful result in place; only
:meth:`ExponentialFitEngine.reset` clears it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import special, stats

from gammaeff.core.config import FitSettings
from gammaeff.core.errors import (
    InvalidInput,
    MissingFitResult,
    ModelConstructionFailure,
    SolverNonConvergence,
)
from gammaeff.fitting.models import ArrayLike, ExponentialModel, model_for_order
from gammaeff.fitting.varpro import solve_separable

logger = logging.getLogger(__name__)


def _as_vector(values) -> np.ndarray:
    return np.atleast_1d(np.asarray(values, dtype=float)).ravel()


@dataclass
class FitObservationSet:
    """Parallel arrays of energies, efficiencies and weights (1/σ)."""

    x: np.ndarray = field(default_factory=lambda: np.array([]))
    y: np.ndarray = field(default_factory=lambda: np.array([]))
    w: np.ndarray = field(default_factory=lambda: np.array([]))

    def __post_init__(self):
        self.x = _as_vector(self.x)
        self.y = _as_vector(self.y)
        self.w = _as_vector(self.w)
        if not (self.x.size == self.y.size == self.w.size):
            raise InvalidInput(
                f"Mismatched observation lengths: x={self.x.size}, y={self.y.size}, w={self.w.size}"
            )

    def __len__(self) -> int:
        return int(self.x.size)

    @classmethod
    def from_triples(cls, triples: Iterable[Tuple[float, float, float]]) -> 'FitObservationSet':
        rows = list(triples)
        if not rows:
            return cls()
        x, y, w = zip(*rows)
        return cls(np.array(x), np.array(y), np.array(w))


def t_critical(sigma_level: float, dof: int) -> float:
    """
    Two-tailed Student's t critical value matching a Gaussian sigma level.

    α = 1 - erf(σ/√2) and the result is t_{1-α/2, dof}.
    """
    if not sigma_level > 0:
        raise InvalidInput(f"sigma_level must be positive, got {sigma_level}")
    if dof < 1:
        raise InvalidInput("At least one degree of freedom is required")
    alpha = special.erfc(sigma_level / np.sqrt(2.0))
    return float(stats.t.isf(alpha / 2.0, dof))


@dataclass
class ExponentialFitResult:
    """
    Result of a successful exponential fit.

    Attributes
    ----------
    model : ExponentialModel
        Fitted model
    covariance : np.ndarray
        Joint covariance, rows/columns ordered as ``model.parameter_names``
    degrees_of_freedom : int
        Observations minus fitted parameters
    chi_squared : float
        Weighted residual sum of squares
    nfev : int
        Solver function evaluations
    message : str
        Solver status message
    energy_max : float
        Highest energy among the fitted observations
    """

    model: ExponentialModel
    covariance: np.ndarray
    degrees_of_freedom: int
    chi_squared: float
    nfev: int = 0
    message: str = ""
    energy_max: float = 0.0

    @property
    def model_order(self) -> int:
        return self.model.order

    @property
    def reduced_chi_squared(self) -> float:
        return self.chi_squared / self.degrees_of_freedom

    @property
    def parameters(self) -> np.ndarray:
        return self.model.parameters

    @property
    def uncertainties(self) -> np.ndarray:
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    @property
    def linear_parameters(self) -> np.ndarray:
        return np.asarray(self.model.amplitudes)

    @property
    def nonlinear_parameters(self) -> np.ndarray:
        return np.asarray(self.model.decays)

    @property
    def linear_variances(self) -> np.ndarray:
        return np.diag(self.covariance)[list(self.model.linear_indices())]

    @property
    def nonlinear_variances(self) -> np.ndarray:
        return np.diag(self.covariance)[list(self.model.nonlinear_indices())]

    @property
    def equation(self) -> str:
        return self.model.equation(self.uncertainties)

    def evaluate(self, x: ArrayLike) -> Union[float, np.ndarray]:
        return self.model.evaluate(x)

    def confidence_half_width(
        self,
        x0: ArrayLike,
        sigma_level: float = 1.0,
    ) -> Union[float, np.ndarray]:
        """
        Delta-method confidence half-width of the fitted curve at x0.

        half_width = t_{1-α/2, dof} · sqrt(J(x0) · C · J(x0)ᵀ)
        """
        jac = np.atleast_2d(self.model.jacobian(np.atleast_1d(np.asarray(x0, dtype=float))))
        variance = np.einsum('ij,jk,ik->i', jac, self.covariance, jac)
        half_width = t_critical(sigma_level, self.degrees_of_freedom) * np.sqrt(
            np.clip(variance, 0.0, None)
        )
        return float(half_width[0]) if np.ndim(x0) == 0 else half_width


@dataclass
class FitCurve:
    """Fitted curve samples with its confidence band."""

    energy: np.ndarray
    efficiency: np.ndarray
    lower: np.ndarray
    upper: np.ndarray


class ExponentialFitEngine:
    """
    Weighted exponential fit of one detector's efficiency points.

    Parameters
    ----------
    observations : FitObservationSet, optional
        Data to fit; may be replaced later through :attr:`observations`
    settings : FitSettings, optional
        Solver and confidence settings

    Example
    -------
    >>> engine = ExponentialFitEngine(FitObservationSet(x, y, w))
    >>> result = engine.fit(2, initial_guess=(200.0, 2000.0))
    >>> engine.confidence_half_width(661.7)
    """

    def __init__(
        self,
        observations: Optional[FitObservationSet] = None,
        settings: Optional[FitSettings] = None,
    ):
        self.settings = settings or FitSettings.default()
        self._observations = observations if observations is not None else FitObservationSet()
        self._result: Optional[ExponentialFitResult] = None

    @property
    def observations(self) -> FitObservationSet:
        return self._observations

    @observations.setter
    def observations(self, observations: FitObservationSet) -> None:
        self._observations = observations

    @property
    def has_result(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> ExponentialFitResult:
        if self._result is None:
            raise MissingFitResult("No successful fit is available.")
        return self._result

    def reset(self) -> None:
        """Discard the current fit result."""
        self._result = None

    def _initial_decays(self, model_order: int, initial_guess) -> np.ndarray:
        if initial_guess is None:
            initial_guess = self.settings.initial_guess[:model_order]
        try:
            guess = _as_vector(initial_guess)
        except (TypeError, ValueError) as exc:
            raise ModelConstructionFailure(f"Invalid initial guess {initial_guess!r}") from exc
        if guess.size != model_order:
            raise ModelConstructionFailure(
                f"Order-{model_order} model needs {model_order} decay guess(es), got {guess.size}"
            )
        if not np.all(np.isfinite(guess)) or np.any(guess <= 0):
            raise ModelConstructionFailure(f"Decay guesses must be positive, got {guess.tolist()}")
        return guess

    def _check_observations(self, n_parameters: int) -> None:
        obs = self._observations
        if not (np.all(np.isfinite(obs.x)) and np.all(np.isfinite(obs.y))):
            raise InvalidInput("Observations contain non-finite values")
        if not np.all(np.isfinite(obs.w)) or np.any(obs.w < 0):
            raise InvalidInput("Weights must be finite and non-negative")
        n_used = int(np.count_nonzero(obs.w))
        if n_used == 0:
            raise InvalidInput("All weights are zero")
        if n_used <= n_parameters:
            raise InvalidInput(
                f"{n_used} weighted observation(s) for {n_parameters} parameters; "
                f"at least {n_parameters + 1} are required"
            )

    def fit(
        self,
        model_order: int,
        initial_guess: Optional[Union[float, Sequence[float]]] = None,
    ) -> ExponentialFitResult:
        """
        Fit the observations with a ``model_order``-term exponential sum.

        Parameters
        ----------
        model_order : int
            1 for a·exp(-x/b), 2 for a·exp(-x/b) + c·exp(-x/d)
        initial_guess : float or sequence of float, optional
            Starting decay scale(s) (b[, d]); defaults to the settings

        Returns
        -------
        ExponentialFitResult

        Raises
        ------
        ModelConstructionFailure, InvalidInput, SolverNonConvergence
            The previous result, if any, is kept.
        """
        model_cls = model_for_order(model_order)
        guess = self._initial_decays(model_order, initial_guess)
        n_parameters = model_cls.parameter_count()
        self._check_observations(n_parameters)

        obs = self._observations
        settings = self.settings
        solution = solve_separable(
            obs.x, obs.y, obs.w, guess,
            max_nfev=settings.max_nfev,
            ftol=settings.ftol,
            xtol=settings.xtol,
            gtol=settings.gtol,
        )
        model = model_cls.from_parameters(solution.amplitudes, solution.decays)

        dof = int(np.count_nonzero(obs.w)) - n_parameters
        chi_squared = solution.chi_squared
        weighted_jac = obs.w[:, None] * model.jacobian(obs.x)
        try:
            covariance = np.linalg.inv(weighted_jac.T @ weighted_jac)
        except np.linalg.LinAlgError as exc:
            raise SolverNonConvergence(f"Singular normal matrix at solution: {exc}") from exc
        if settings.scale_covariance:
            covariance = covariance * (chi_squared / dof)
        if not np.all(np.isfinite(covariance)):
            raise SolverNonConvergence("Covariance matrix is not finite")

        self._result = ExponentialFitResult(
            model=model,
            covariance=covariance,
            degrees_of_freedom=dof,
            chi_squared=chi_squared,
            nfev=solution.nfev,
            message=solution.message,
            energy_max=float(np.max(obs.x)),
        )
        logger.info(
            "%s; reduced chi-squared %.4g with %d dof",
            self._result.equation, self._result.reduced_chi_squared, dof,
        )
        return self._result

    # Accessors raising MissingFitResult before a successful fit

    @property
    def linear_parameters(self) -> np.ndarray:
        return self.result.linear_parameters

    @property
    def linear_variances(self) -> np.ndarray:
        return self.result.linear_variances

    @property
    def nonlinear_parameters(self) -> np.ndarray:
        return self.result.nonlinear_parameters

    @property
    def nonlinear_variances(self) -> np.ndarray:
        return self.result.nonlinear_variances

    @property
    def covariance_matrix(self) -> np.ndarray:
        return self.result.covariance

    @property
    def degrees_of_freedom(self) -> int:
        return self.result.degrees_of_freedom

    @property
    def reduced_chi_squared(self) -> float:
        return self.result.reduced_chi_squared

    def evaluate(self, x: ArrayLike) -> Union[float, np.ndarray]:
        return self.result.evaluate(x)

    def confidence_half_width(
        self,
        x0: ArrayLike,
        sigma_level: Optional[float] = None,
    ) -> Union[float, np.ndarray]:
        if sigma_level is None:
            sigma_level = self.settings.sigma_level
        return self.result.confidence_half_width(x0, sigma_level)

    def confidence_band(
        self,
        x: ArrayLike,
        sigma_level: Optional[float] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Lower and upper band edges at x."""
        y = np.asarray(self.evaluate(x))
        half_width = np.asarray(self.confidence_half_width(x, sigma_level))
        return y - half_width, y + half_width

    def sample_curve(
        self,
        num_points: Optional[int] = None,
        energy_max: Optional[float] = None,
        sigma_level: Optional[float] = None,
    ) -> FitCurve:
        """
        Sample the fitted curve and its band on [0, energy_max].

        ``energy_max`` defaults to the largest energy the current fit was
        built on plus ``settings.curve_padding_keV``.
        """
        result = self.result
        if num_points is None:
            num_points = self.settings.curve_points
        if energy_max is None:
            energy_max = result.energy_max + self.settings.curve_padding_keV
        energy = np.linspace(0.0, energy_max, num_points + 1)
        efficiency = result.evaluate(energy)
        lower, upper = self.confidence_band(energy, sigma_level)
        return FitCurve(energy=energy, efficiency=efficiency, lower=lower, upper=upper)
