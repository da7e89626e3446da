"""
Sum-of-exponentials efficiency models.

    order 1:  y(x) = a·exp(-x/b)
    order 2:  y(x) = a·exp(-x/b) + c·exp(-x/d)

Amplitudes (a, c) enter linearly, decay scales (b, d) nonlinearly. Parameters
are always ordered term by term, ``[a, b]`` or ``[a, b, c, d]``, for
parameter vectors, Jacobian columns and covariance matrices.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence, Tuple, Type, Union

import numpy as np

from gammaeff.core.errors import ModelConstructionFailure

ArrayLike = Union[float, Sequence[float], np.ndarray]


def exponential_basis(x: np.ndarray, decays: Sequence[float]) -> np.ndarray:
    """Basis matrix with columns exp(-x/decay), shape (len(x), len(decays))."""
    x = np.asarray(x, dtype=float)
    with np.errstate(divide='ignore', over='ignore', invalid='ignore'):
        return np.exp(-np.outer(x, 1.0 / np.asarray(decays, dtype=float)))


def exponential_basis_derivative(x: np.ndarray, decays: Sequence[float]) -> np.ndarray:
    """∂/∂decay of each basis column: (x/decay²)·exp(-x/decay)."""
    x = np.asarray(x, dtype=float)
    decays = np.asarray(decays, dtype=float)
    with np.errstate(divide='ignore', over='ignore', invalid='ignore'):
        return np.outer(x, 1.0 / decays**2) * exponential_basis(x, decays)


class ExponentialModel(ABC):
    """Interface shared by the exponential model variants."""

    order: ClassVar[int]
    parameter_names: ClassVar[Tuple[str, ...]]

    @property
    @abstractmethod
    def amplitudes(self) -> Tuple[float, ...]:
        """Linear parameters, one per term."""

    @property
    @abstractmethod
    def decays(self) -> Tuple[float, ...]:
        """Nonlinear decay scales, one per term."""

    @classmethod
    def parameter_count(cls) -> int:
        return 2 * cls.order

    @classmethod
    def linear_indices(cls) -> Tuple[int, ...]:
        return tuple(range(0, 2 * cls.order, 2))

    @classmethod
    def nonlinear_indices(cls) -> Tuple[int, ...]:
        return tuple(range(1, 2 * cls.order, 2))

    @classmethod
    def from_parameters(
        cls,
        amplitudes: Sequence[float],
        decays: Sequence[float],
    ) -> 'ExponentialModel':
        if len(amplitudes) != cls.order or len(decays) != cls.order:
            raise ModelConstructionFailure(
                f"{cls.__name__} needs {cls.order} amplitude(s) and decay(s)"
            )
        values = []
        for amp, decay in zip(amplitudes, decays):
            values.extend([float(amp), float(decay)])
        return cls(*values)

    @property
    def parameters(self) -> np.ndarray:
        """Parameter vector in model order, e.g. [a, b, c, d]."""
        return np.array([getattr(self, name) for name in self.parameter_names])

    def evaluate(self, x: ArrayLike) -> Union[float, np.ndarray]:
        """Evaluate the model at x (keV)."""
        x_arr = np.atleast_1d(np.asarray(x, dtype=float))
        y = exponential_basis(x_arr, self.decays) @ np.asarray(self.amplitudes)
        return float(y[0]) if np.ndim(x) == 0 else y

    def jacobian(self, x: ArrayLike) -> np.ndarray:
        """
        Partial derivatives of the model with respect to every parameter.

        Returns shape (len(x), parameter_count), or (parameter_count,) for a
        scalar x. Columns follow :attr:`parameter_names`.
        """
        x_arr = np.atleast_1d(np.asarray(x, dtype=float))
        jac = np.empty((x_arr.size, self.parameter_count()))
        jac[:, 0::2] = exponential_basis(x_arr, self.decays)
        jac[:, 1::2] = exponential_basis_derivative(x_arr, self.decays) * np.asarray(self.amplitudes)
        return jac[0] if np.ndim(x) == 0 else jac

    def equation(self, uncertainties: Optional[Sequence[float]] = None) -> str:
        """Human-readable fit equation, e.g. ``y = (a ± σa) * exp[-x / (b ± σb)]``."""
        if uncertainties is None:
            uncertainties = np.zeros(self.parameter_count())
        terms = []
        for k, (amp, decay) in enumerate(zip(self.amplitudes, self.decays)):
            ua, ub = uncertainties[2 * k], uncertainties[2 * k + 1]
            terms.append(f"({amp:.2f} ± {ua:.2f}) * exp[-x / ({decay:.2f} ± {ub:.2f})]")
        return "y = " + " + ".join(terms)


@dataclass(frozen=True)
class SingleExponential(ExponentialModel):
    """y = a·exp(-x/b)"""

    a: float
    b: float

    order: ClassVar[int] = 1
    parameter_names: ClassVar[Tuple[str, ...]] = ('a', 'b')

    @property
    def amplitudes(self) -> Tuple[float, ...]:
        return (self.a,)

    @property
    def decays(self) -> Tuple[float, ...]:
        return (self.b,)


@dataclass(frozen=True)
class DoubleExponential(ExponentialModel):
    """y = a·exp(-x/b) + c·exp(-x/d)"""

    a: float
    b: float
    c: float
    d: float

    order: ClassVar[int] = 2
    parameter_names: ClassVar[Tuple[str, ...]] = ('a', 'b', 'c', 'd')

    @property
    def amplitudes(self) -> Tuple[float, ...]:
        return (self.a, self.c)

    @property
    def decays(self) -> Tuple[float, ...]:
        return (self.b, self.d)


MODELS = {
    SingleExponential.order: SingleExponential,
    DoubleExponential.order: DoubleExponential,
}


def model_for_order(model_order: int) -> Type[ExponentialModel]:
    try:
        return MODELS[model_order]
    except (KeyError, TypeError):
        raise ModelConstructionFailure(
            f"Unsupported model order {model_order!r}; expected one of {sorted(MODELS)}"
        ) from None
