"""
types.py - Core Data Structures and Type Definitions for State-Space Lab

This module defines the data structures shared by the simulators:
- AR1Params: Parameters of the mean-reverting log-volatility recursion
- FactorModelSpec: Loading matrix and idiosyncratic covariance of a factor model
- CovarianceTransform: Discriminated union for covariance square roots
- ISVResult / FactorModelResult / FactorSVResult: Simulation outputs
- NoiseMode: Observation noise layout for the factor SV simulator

Design Principles:
-----------------
1. Immutability where practical (frozen dataclasses for value objects)
2. Validation at construction time (fail-fast)
3. Clear type discrimination (enums instead of flag combinations)
4. Numpy-style docstrings throughout

Example Usage:
-------------
    >>> import numpy as np
    >>> from statespace_lab.types import FactorModelSpec
    >>>
    >>> # 6 sensor series driven by 2 latent factors
    >>> beta = np.random.randn(6, 2)
    >>> sigma = np.diag(np.full(6, 0.1))
    >>>
    >>> spec = FactorModelSpec(beta=beta, sigma=sigma)
    >>> print(f"Model: {spec.k} factors, {spec.p} series")
    Model: 2 factors, 6 series
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from typing import Callable, Tuple, Union
from enum import Enum, auto


# =============================================================================
# ERRORS AND TYPE ALIASES
# =============================================================================

class InvalidArgumentError(ValueError):
    """A simulator precondition was violated (bad length, shape or scale)."""


# A sampler is a callable that takes a size (int or tuple) and returns samples.
SamplerCallable = Callable[[Union[int, Tuple[int, ...]]], np.ndarray]


def require_positive_length(n: int, name: str = "n") -> int:
    """Reject non-integer or non-positive lengths."""
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise InvalidArgumentError(f"{name} must be an integer, got {type(n).__name__}")
    if n < 1:
        raise InvalidArgumentError(f"{name} must be >= 1, got {n}")
    return int(n)


def require_non_negative(value: float, name: str) -> float:
    """Reject negative (or NaN) scale and variance parameters."""
    value = float(value)
    if not value >= 0.0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {value}")
    return value


# =============================================================================
# AR(1) PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class AR1Params:
    """
    Parameters of the mean-reverting AR(1) recursion.

    Parameters
    ----------
    phi : float
        Persistence (speed of mean reversion). 0 freezes the path at its
        first value, 1 jumps straight to `mu`.
    sigma : float
        Innovation scale. Must be non-negative.
    mu : float
        Mean-reversion level.
    """
    phi: float = 0.1
    sigma: float = 0.2
    mu: float = 0.0

    def __post_init__(self):
        require_non_negative(self.sigma, "sigma")


# =============================================================================
# COVARIANCE TRANSFORM TYPES
# =============================================================================

class TransformType(Enum):
    """
    Discriminator for covariance matrix square root representations.

    DIAGONAL: sqrt is stored as a 1D vector of standard deviations.
    DENSE: sqrt is stored as the lower triangular Cholesky factor.
    """
    DIAGONAL = auto()
    DENSE = auto()


@dataclass(frozen=True)
class CovarianceTransform:
    """
    Square root of a covariance matrix, used to colour standard normal draws.

    Parameters
    ----------
    matrix : np.ndarray
        Either a 1D array of standard deviations (DIAGONAL) or a 2D lower
        triangular Cholesky factor (DENSE).
    transform_type : TransformType
        Indicates how `matrix` should be interpreted and applied.
    """
    matrix: np.ndarray
    transform_type: TransformType

    @property
    def is_diagonal(self) -> bool:
        """Check if this is a diagonal (O(p)) transform."""
        return self.transform_type == TransformType.DIAGONAL

    def apply(self, z: np.ndarray) -> np.ndarray:
        """
        Apply this transform to standard normal draws of shape (n, dim).

        For DIAGONAL transforms: output = z * stds (element-wise)
        For DENSE transforms: output = z @ L.T
        """
        if self.is_diagonal:
            return z * self.matrix
        else:
            return z @ self.matrix.T


# =============================================================================
# FACTOR MODEL SPECIFICATION
# =============================================================================

@dataclass
class FactorModelSpec:
    """
    Loading matrix and idiosyncratic covariance of a factor-analysis model.

    Observations are generated as:
        y = beta @ f + eps

    where:
        - y: (p,) vector of observed series
        - beta: (p, k) loading matrix
        - f: (k,) latent factors, f ~ N(0, I_k)
        - eps: (p,) idiosyncratic noise, eps ~ N(0, sigma)

    The implied covariance of the observations is:
        Var(y) = beta @ beta.T + sigma

    Parameters
    ----------
    beta : np.ndarray
        Loading matrix with shape (p, k), rows are observed series and
        columns are latent factors.
    sigma : np.ndarray
        Idiosyncratic covariance with shape (p, p). A 1D vector of p
        variances is accepted and promoted to a diagonal matrix.

    Raises
    ------
    InvalidArgumentError
        If shapes are inconsistent or variances are negative.
    """
    beta: np.ndarray
    sigma: np.ndarray

    def __post_init__(self):
        self.beta = np.asarray(self.beta, dtype=float)
        self.sigma = np.asarray(self.sigma, dtype=float)
        if self.sigma.ndim == 1:
            self.sigma = np.diag(self.sigma)
        self.validate()

    @property
    def p(self) -> int:
        """Number of observed series."""
        return self.beta.shape[0]

    @property
    def k(self) -> int:
        """Number of latent factors."""
        return self.beta.shape[1]

    def validate(self) -> None:
        """
        Validate internal consistency of the specification.

        Checks performed:
        1. beta has shape (p, k) for some p > 0, k > 0
        2. sigma has shape (p, p)
        3. sigma is symmetric
        4. diagonal of sigma is non-negative
        """
        if self.beta.ndim != 2:
            raise InvalidArgumentError(f"beta must be 2D, got shape {self.beta.shape}")

        p, k = self.beta.shape

        if p == 0 or k == 0:
            raise InvalidArgumentError(
                f"beta must have positive dimensions, got ({p}, {k})"
            )

        if self.sigma.shape != (p, p):
            raise InvalidArgumentError(
                f"sigma shape mismatch: expected ({p}, {p}), got {self.sigma.shape}"
            )

        if not np.allclose(self.sigma, self.sigma.T, rtol=1e-10, atol=0.0):
            raise InvalidArgumentError("sigma must be symmetric")

        if np.any(np.diag(self.sigma) < 0):
            raise InvalidArgumentError("sigma has negative variances on its diagonal")

    def is_diagonal(self) -> bool:
        """True if sigma has no off-diagonal elements."""
        return bool(np.count_nonzero(self.sigma - np.diag(np.diag(self.sigma))) == 0)

    def implied_covariance(self) -> np.ndarray:
        """Compute Var(y) = beta @ beta.T + sigma with shape (p, p)."""
        return self.beta @ self.beta.T + self.sigma


# =============================================================================
# SIMULATION OUTPUTS
# =============================================================================

def time_index(n: int) -> np.ndarray:
    """Integer time steps 1..n."""
    return np.arange(1, n + 1)


@dataclass(frozen=True)
class ISVResult:
    """
    Output of the independent stochastic-volatility simulator.

    Parameters
    ----------
    time : np.ndarray
        Time steps 1..n.
    y : np.ndarray
        Observed series, y[i] = z_i * exp(alpha[i]).
    alpha : np.ndarray
        Log-volatility path that drove the simulation.
    """
    time: np.ndarray
    y: np.ndarray
    alpha: np.ndarray

    def to_frame(self):
        """Return a pandas DataFrame with columns time, y, alpha."""
        import pandas as pd

        return pd.DataFrame({"time": self.time, "y": self.y, "alpha": self.alpha})


@dataclass(frozen=True)
class FactorModelResult:
    """Observations y (n, p) bundled with the latent factors f (n, k)."""
    y: np.ndarray
    f: np.ndarray


class NoiseMode(str, Enum):
    """
    Layout of the observation noise in the factor SV simulator.

    SHARED: one scalar draw per time step, added to every series.
    INDEPENDENT: an independent draw per time step and series.
    """
    SHARED = "shared"
    INDEPENDENT = "independent"


@dataclass(frozen=True)
class FactorSVResult:
    """
    Output of the factor stochastic-volatility simulator.

    Parameters
    ----------
    time : np.ndarray
        Time steps 1..n.
    y : np.ndarray
        Observed series with shape (n, p).
    """
    time: np.ndarray
    y: np.ndarray

    @property
    def table(self) -> np.ndarray:
        """(n, p + 1) array with the time index as its first column."""
        return np.column_stack([self.time, self.y])

    def to_frame(self):
        """Return a pandas DataFrame with columns time, y1..yp."""
        import pandas as pd

        columns = [f"y{j + 1}" for j in range(self.y.shape[1])]
        frame = pd.DataFrame(self.y, columns=columns)
        frame.insert(0, "time", self.time)
        return frame


# =============================================================================
# VALIDATION RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class CovarianceValidationResult:
    """
    Results from comparing empirical vs model-implied covariance.

    Parameters
    ----------
    frobenius_error : float
        Frobenius norm of (empirical - model) covariance difference.
    mean_absolute_error : float
        Average absolute element-wise error.
    max_absolute_error : float
        Maximum absolute element-wise error.
    explained_variance_ratio : float
        Ratio of factor-explained variance to total variance.
    model_covariance : np.ndarray
        The implied covariance beta @ beta.T + sigma.
    empirical_covariance : np.ndarray
        Sample covariance of the simulated observations.
    """
    frobenius_error: float
    mean_absolute_error: float
    max_absolute_error: float
    explained_variance_ratio: float
    model_covariance: np.ndarray
    empirical_covariance: np.ndarray
