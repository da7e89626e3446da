"""
Separable nonlinear least squares (variable projection) for exponential sums.

For fixed decay scales the optimal amplitudes follow from a weighted linear
least-squares solve, so the Levenberg-Marquardt search of
:func:`scipy.optimize.least_squares` only runs over the decay scales. The
search variable is ln(decay), which keeps every trial decay positive.

The Jacobian of the projected residual uses Kaufman's approximation

    J_k ≈ -P⊥ · W · ∂Φ/∂θ_k · c

where P⊥ projects onto the orthogonal complement of the weighted basis WΦ.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from scipy import optimize

from gammaeff.core.errors import SolverNonConvergence
from gammaeff.fitting.models import exponential_basis, exponential_basis_derivative

logger = logging.getLogger(__name__)


@dataclass
class SeparableSolution:
    """Converged amplitudes and decay scales with solver diagnostics."""

    amplitudes: np.ndarray
    decays: np.ndarray
    weighted_residuals: np.ndarray
    nfev: int
    message: str

    @property
    def chi_squared(self) -> float:
        return float(np.sum(self.weighted_residuals**2))


class ExponentialProjection:
    """Projected residual of y ≈ Σ c_k·exp(-x/decay_k) for weighted data."""

    def __init__(self, x: np.ndarray, y: np.ndarray, w: np.ndarray):
        self.x = np.asarray(x, dtype=float)
        self.w = np.asarray(w, dtype=float)
        self.wy = self.w * np.asarray(y, dtype=float)

    def solve_linear(self, decays: Sequence[float]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Optimal amplitudes for fixed decays.

        Returns (amplitudes, weighted basis, weighted residuals).
        """
        wphi = self.w[:, None] * exponential_basis(self.x, decays)
        amplitudes, *_ = np.linalg.lstsq(wphi, self.wy, rcond=None)
        return amplitudes, wphi, self.wy - wphi @ amplitudes

    def residuals(self, log_decays: np.ndarray) -> np.ndarray:
        _, _, resid = self.solve_linear(np.exp(log_decays))
        return resid

    def jacobian(self, log_decays: np.ndarray) -> np.ndarray:
        decays = np.exp(log_decays)
        amplitudes, wphi, _ = self.solve_linear(decays)
        q, _ = np.linalg.qr(wphi)
        # chain rule: ∂/∂ln(d) = d·∂/∂d
        dphi = self.w[:, None] * exponential_basis_derivative(self.x, decays) * amplitudes * decays
        return -(dphi - q @ (q.T @ dphi))


def solve_separable(
    x: np.ndarray,
    y: np.ndarray,
    w: np.ndarray,
    initial_decays: Sequence[float],
    max_nfev: int = 1000,
    ftol: float = 1e-12,
    xtol: float = 1e-12,
    gtol: float = 1e-12,
) -> SeparableSolution:
    """
    Fit amplitudes and decay scales of an exponential sum.

    Parameters
    ----------
    x, y, w : np.ndarray
        Observations and weights (1/σ)
    initial_decays : sequence of float
        Positive starting decay scales, one per term
    max_nfev : int
        Iteration cap for the solver
    ftol, xtol, gtol : float
        Solver tolerances

    Returns
    -------
    SeparableSolution

    Raises
    ------
    SolverNonConvergence
        If the solver stops without converging or produces non-finite values
    """
    projection = ExponentialProjection(x, y, w)
    theta0 = np.log(np.asarray(initial_decays, dtype=float))

    try:
        result = optimize.least_squares(
            projection.residuals,
            theta0,
            jac=projection.jacobian,
            method='lm',
            max_nfev=max_nfev,
            ftol=ftol,
            xtol=xtol,
            gtol=gtol,
        )
    except (ValueError, np.linalg.LinAlgError) as exc:
        raise SolverNonConvergence(f"Solver broke down: {exc}") from exc

    if not result.success:
        raise SolverNonConvergence(f"Solver did not converge: {result.message}")

    decays = np.exp(result.x)
    if not np.all(np.isfinite(decays)):
        raise SolverNonConvergence("Solver produced non-finite decay scales")
    try:
        amplitudes, _, resid = projection.solve_linear(decays)
    except np.linalg.LinAlgError as exc:
        raise SolverNonConvergence(f"Linear solve failed at solution: {exc}") from exc
    if not (np.all(np.isfinite(amplitudes)) and np.all(np.isfinite(resid))):
        raise SolverNonConvergence("Solver produced non-finite amplitudes")

    logger.debug("Separable solve finished after %d evaluations: %s", result.nfev, result.message)
    return SeparableSolution(
        amplitudes=amplitudes,
        decays=decays,
        weighted_residuals=resid,
        nfev=int(result.nfev),
        message=result.message,
    )
