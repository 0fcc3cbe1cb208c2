"""
simulation.py - Forward Simulation of State-Space and Stochastic-Volatility Models

This module provides the generators used to illustrate the sensor models:
- generate_ar1: Mean-reverting AR(1) path (the log-volatility process)
- generate_isv: Independent stochastic volatility driven by a given path
- generate_factor_model: Static factor analysis with Gaussian factors
- generate_factor_sv: Factor stochastic volatility from given factor paths
- simulate_latent_factors: AR(1) + ISV composition for each factor
- FactorSVSimulator: End-to-end factor SV draws with an injected RNG
- CovarianceValidator: Compare empirical vs model-implied covariance

Mathematical Background:
-----------------------
The log-volatility of each latent series follows the recursion

    x[1] ~ N(0, 1)
    x[i] = x[i-1] + phi * (mu - x[i-1]) + sigma * z_i,   z_i ~ N(0, 1)

which adds the mean-reversion increment to the previous value rather than
drawing from the stationary AR(1) law. A stochastic-volatility series is

    y[i] = z_i * exp(alpha[i])

and the factor models mix k latent series into p observed ones:

    y[i,] = beta @ f[i,] + eps[i,]

Every generator takes an explicit ``np.random.Generator``; none of them
touches global random state or seeds itself.

Example Usage:
-------------
    >>> import numpy as np
    >>> from statespace_lab.simulation import generate_ar1, generate_isv
    >>>
    >>> rng = np.random.default_rng(42)
    >>> alpha = generate_ar1(500, phi=0.1, sigma=0.2, mu=0.0, rng=rng)
    >>> sv = generate_isv(500, alpha, rng=rng)
    >>> sv.to_frame().head()
"""

from __future__ import annotations

import numpy as np
import scipy.linalg
from typing import Dict, List, Optional, Sequence, Tuple, Union
from loguru import logger

from .types import (
    AR1Params,
    CovarianceTransform,
    CovarianceValidationResult,
    FactorModelResult,
    FactorModelSpec,
    FactorSVResult,
    ISVResult,
    InvalidArgumentError,
    NoiseMode,
    TransformType,
    require_non_negative,
    require_positive_length,
    time_index,
)

VolatilitySpec = Union[AR1Params, Sequence[AR1Params]]


# =============================================================================
# HELPERS
# =============================================================================

def _as_loading_matrix(beta) -> np.ndarray:
    """Coerce beta to a float (p, k) matrix with positive dimensions."""
    beta = np.asarray(beta, dtype=float)
    if beta.ndim != 2:
        raise InvalidArgumentError(f"beta must be 2D, got shape {beta.shape}")
    if beta.shape[0] == 0 or beta.shape[1] == 0:
        raise InvalidArgumentError(
            f"beta must have positive dimensions, got {beta.shape}"
        )
    return beta


def covariance_transform(cov: np.ndarray, force_dense: bool = False) -> CovarianceTransform:
    """
    Build the square root of a covariance matrix for colouring N(0, I) draws.

    Diagonal matrices keep a vector of standard deviations, so zero
    variances are allowed. Anything else goes through a Cholesky factor.

    Raises
    ------
    InvalidArgumentError
        If a dense matrix is not positive definite.
    """
    if not force_dense and np.count_nonzero(cov - np.diag(np.diag(cov))) == 0:
        logger.debug(f"Using diagonal covariance transform | dim: {cov.shape[0]}")
        return CovarianceTransform(
            matrix=np.sqrt(np.diag(cov)),
            transform_type=TransformType.DIAGONAL
        )

    logger.debug(f"Using Cholesky covariance transform | dim: {cov.shape[0]}")
    try:
        L = scipy.linalg.cholesky(cov, lower=True)
    except scipy.linalg.LinAlgError as e:
        raise InvalidArgumentError(
            "sigma is not positive definite and cannot be factorized"
        ) from e
    return CovarianceTransform(matrix=L, transform_type=TransformType.DENSE)


def _resolve_volatility(volatility: VolatilitySpec, k: Optional[int]) -> List[AR1Params]:
    """
    Resolve a volatility specification into one AR1Params per factor.

    A single AR1Params is broadcast to all k factors; a list must contain
    exactly k entries when k is given.
    """
    if isinstance(volatility, AR1Params):
        if k is None:
            raise InvalidArgumentError(
                "k is required when a single AR1Params is broadcast"
            )
        return [volatility] * require_positive_length(k, "k")

    params = list(volatility)
    if not params:
        raise InvalidArgumentError("volatility must contain at least one AR1Params")
    if k is not None and len(params) != k:
        raise InvalidArgumentError(
            f"Expected {k} volatility parameter sets, got {len(params)}"
        )
    for i, prm in enumerate(params):
        if not isinstance(prm, AR1Params):
            raise TypeError(f"volatility[{i}] is not AR1Params: {type(prm)}")
    return params


# =============================================================================
# AR(1) AND INDEPENDENT STOCHASTIC VOLATILITY
# =============================================================================

def generate_ar1(
    n: int,
    phi: float,
    sigma: float,
    mu: float,
    rng: np.random.Generator
) -> np.ndarray:
    """
    Generate a mean-reverting AR(1) path.

    Parameters
    ----------
    n : int
        Path length. Must be >= 1.
    phi : float
        Persistence; the fraction of the gap to `mu` closed each step.
    sigma : float
        Innovation scale. Must be non-negative.
    mu : float
        Mean-reversion level.
    rng : np.random.Generator
        Source of the n standard normal draws. The first draw is x[1],
        the rest are the innovations.

    Returns
    -------
    np.ndarray
        Path of shape (n,).

    Raises
    ------
    InvalidArgumentError
        If n < 1 or sigma < 0.

    Examples
    --------
    >>> rng = np.random.default_rng(0)
    >>> x = generate_ar1(5, phi=0.0, sigma=0.0, mu=2.0, rng=rng)
    >>> bool(np.all(x == x[0]))  # phi=0 freezes the path
    True
    """
    n = require_positive_length(n)
    sigma = require_non_negative(sigma, "sigma")

    if abs(1.0 - phi) > 1.0:
        logger.warning(f"phi={phi} makes the AR(1) recursion diverge")

    z = rng.standard_normal(n)

    x = np.empty(n, dtype=float)
    x[0] = z[0]
    for i in range(1, n):
        x[i] = x[i - 1] + phi * (mu - x[i - 1]) + sigma * z[i]

    return x


def generate_isv(n: int, alpha, rng: np.random.Generator) -> ISVResult:
    """
    Simulate an independent stochastic-volatility series.

    Each observation is y[i] = z_i * exp(alpha[i]) with fresh z_i ~ N(0, 1).
    The log-volatility path is an input; use `generate_ar1` to build one.

    Parameters
    ----------
    n : int
        Series length. Must be >= 1.
    alpha : array-like
        Log-volatility path of length n.
    rng : np.random.Generator
        Source of the observation noise.

    Returns
    -------
    ISVResult
        Time index, observations and the driving log-volatility path.
    """
    n = require_positive_length(n)
    alpha = np.asarray(alpha, dtype=float)

    if alpha.ndim != 1 or alpha.shape[0] != n:
        raise InvalidArgumentError(
            f"alpha must have shape ({n},), got {alpha.shape}"
        )

    z = rng.standard_normal(n)
    y = z * np.exp(alpha)

    return ISVResult(time=time_index(n), y=y, alpha=alpha)


# =============================================================================
# FACTOR ANALYSIS
# =============================================================================

def simulate_factor_model(
    spec: FactorModelSpec,
    n: int,
    rng: np.random.Generator,
    force_dense: bool = False
) -> FactorModelResult:
    """
    Draw n observations from a factor-analysis model.

    f[i,] ~ N(0, I_k), eps[i,] ~ N(0, sigma), y[i,] = beta @ f[i,] + eps[i,].

    Parameters
    ----------
    spec : FactorModelSpec
        Loading matrix and idiosyncratic covariance.
    n : int
        Number of observations.
    rng : np.random.Generator
        Random number generator.
    force_dense : bool, default=False
        Colour the idiosyncratic noise with a Cholesky factor even when
        sigma is diagonal.

    Returns
    -------
    FactorModelResult
        Observations (n, p) and latent factors (n, k).
    """
    n = require_positive_length(n)
    transform = covariance_transform(spec.sigma, force_dense=force_dense)

    f = rng.standard_normal((n, spec.k))
    eps = transform.apply(rng.standard_normal((n, spec.p)))

    # (n, k) @ (k, p) -> (n, p)
    y = f @ spec.beta.T + eps

    return FactorModelResult(y=y, f=f)


def generate_factor_model(
    n: int,
    p: int,
    k: int,
    beta,
    sigma,
    rng: np.random.Generator
) -> FactorModelResult:
    """
    Simulate the factor-analysis model for a requested shape.

    Parameters
    ----------
    n : int
        Number of observations.
    p : int
        Number of observed series; must equal the rows of `beta`.
    k : int
        Number of latent factors; must equal the columns of `beta`.
    beta : array-like
        Loading matrix (p, k).
    sigma : array-like
        Idiosyncratic covariance (p, p), or a vector of p variances.
    rng : np.random.Generator
        Random number generator.

    Returns
    -------
    FactorModelResult
        Observations (n, p) and latent factors (n, k).

    Raises
    ------
    InvalidArgumentError
        If any requested dimension disagrees with `beta` or `sigma`.

    Notes
    -----
    Var(y) = beta @ beta.T + sigma. This is not checked at runtime; see
    `CovarianceValidator`.
    """
    n = require_positive_length(n)
    p = require_positive_length(p, "p")
    k = require_positive_length(k, "k")
    beta = _as_loading_matrix(beta)

    if beta.shape[0] != p:
        raise InvalidArgumentError(
            f"beta has {beta.shape[0]} rows but p={p} series were requested"
        )
    if beta.shape[1] != k:
        raise InvalidArgumentError(
            f"beta has {beta.shape[1]} columns but k={k} factors were requested"
        )

    spec = FactorModelSpec(beta=beta, sigma=sigma)
    return simulate_factor_model(spec, n, rng)


# =============================================================================
# FACTOR STOCHASTIC VOLATILITY
# =============================================================================

def simulate_latent_factors(
    n: int,
    volatility: VolatilitySpec,
    rng: np.random.Generator,
    k: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build k latent stochastic-volatility factor paths.

    For each factor j an AR(1) log-volatility path is drawn with its own
    parameters and fed to `generate_isv`.

    Parameters
    ----------
    n : int
        Path length.
    volatility : AR1Params or Sequence[AR1Params]
        Log-volatility parameters, one set per factor or one set broadcast
        to all k factors.
    rng : np.random.Generator
        Random number generator.
    k : int, optional
        Number of factors. Required when `volatility` is a single AR1Params.

    Returns
    -------
    ft : np.ndarray
        Factor paths with shape (n, k).
    alpha : np.ndarray
        Log-volatility paths with shape (n, k).
    """
    n = require_positive_length(n)
    params = _resolve_volatility(volatility, k)

    ft = np.empty((n, len(params)), dtype=float)
    alpha = np.empty((n, len(params)), dtype=float)

    for j, prm in enumerate(params):
        alpha[:, j] = generate_ar1(n, prm.phi, prm.sigma, prm.mu, rng)
        ft[:, j] = generate_isv(n, alpha[:, j], rng).y

    return ft, alpha


def generate_factor_sv(
    n: int,
    v: float,
    beta,
    ft,
    rng: np.random.Generator,
    noise: NoiseMode = NoiseMode.SHARED
) -> FactorSVResult:
    """
    Mix latent factor paths into observed series.

    Row i of the output is beta @ ft[i,] + noise_i, where noise_i has
    standard deviation sqrt(v).

    Parameters
    ----------
    n : int
        Number of time steps.
    v : float
        Observation variance. Must be non-negative.
    beta : array-like
        Loading matrix (p, k).
    ft : array-like
        Latent factor paths (n, k), e.g. from `simulate_latent_factors`.
    rng : np.random.Generator
        Random number generator.
    noise : NoiseMode, default=NoiseMode.SHARED
        SHARED adds one scalar draw per time step to every series.
        INDEPENDENT draws separately for each series, i.e. V = v * I_p.

    Returns
    -------
    FactorSVResult
        Time index and observations (n, p).
    """
    n = require_positive_length(n)
    v = require_non_negative(v, "v")
    beta = _as_loading_matrix(beta)
    ft = np.asarray(ft, dtype=float)
    noise = NoiseMode(noise)

    p, k = beta.shape
    if ft.shape != (n, k):
        raise InvalidArgumentError(
            f"ft shape mismatch: expected ({n}, {k}), got {ft.shape}"
        )

    logger.debug(f"Factor SV observation noise: {noise.value} | n={n}, p={p}, k={k}")

    if noise is NoiseMode.SHARED:
        eps = np.sqrt(v) * rng.standard_normal((n, 1))  # broadcast over p
    else:
        eps = np.sqrt(v) * rng.standard_normal((n, p))

    y = ft @ beta.T + eps

    return FactorSVResult(time=time_index(n), y=y)


class FactorSVSimulator:
    """
    End-to-end simulator for the factor stochastic-volatility model.

    Each call to `simulate` draws fresh AR(1) log-volatility paths, turns
    them into latent SV factors and mixes those through the loading matrix.

    Parameters
    ----------
    beta : array-like
        Loading matrix (p, k).
    v : float
        Observation variance.
    volatility : AR1Params or Sequence[AR1Params]
        Log-volatility parameters per factor (or one set for all).
    rng : np.random.Generator, optional
        Random number generator. If None, creates a new default RNG.
    noise : NoiseMode, default=NoiseMode.SHARED
        Observation noise layout, see `generate_factor_sv`.

    Examples
    --------
    >>> rng = np.random.default_rng(7)
    >>> sim = FactorSVSimulator(beta, v=0.1, volatility=AR1Params(0.1, 0.2, 0.0), rng=rng)
    >>> results = sim.simulate(500)
    >>> results["observations"].shape
    (500, 6)
    """

    def __init__(
        self,
        beta,
        v: float,
        volatility: VolatilitySpec,
        rng: Optional[np.random.Generator] = None,
        noise: NoiseMode = NoiseMode.SHARED
    ):
        self.beta = _as_loading_matrix(beta)
        self.v = require_non_negative(v, "v")
        self.rng = rng if rng is not None else np.random.default_rng()
        self.noise = NoiseMode(noise)
        self._volatility = _resolve_volatility(volatility, self.k)

    @property
    def p(self) -> int:
        return self.beta.shape[0]

    @property
    def k(self) -> int:
        return self.beta.shape[1]

    @property
    def volatility(self) -> List[AR1Params]:
        """Per-factor log-volatility parameters."""
        return list(self._volatility)

    def simulate(self, n: int) -> Dict[str, np.ndarray]:
        """
        Draw one realisation of length n.

        Returns
        -------
        Dict[str, np.ndarray]
            - "time": (n,) time steps 1..n
            - "observations": (n, p) observed series
            - "factors": (n, k) latent SV factors
            - "log_volatility": (n, k) AR(1) log-volatility paths
        """
        logger.info(f"Simulating factor SV model: n={n}, p={self.p}, k={self.k}")

        ft, alpha = simulate_latent_factors(n, self._volatility, self.rng)
        result = generate_factor_sv(n, self.v, self.beta, ft, self.rng, noise=self.noise)

        logger.success(f"Factor SV simulation complete: {result.y.shape[0]} x {result.y.shape[1]}")

        return {
            "time": result.time,
            "observations": result.y,
            "factors": ft,
            "log_volatility": alpha,
        }


# =============================================================================
# COVARIANCE VALIDATOR
# =============================================================================

class CovarianceValidator:
    """
    Compare the empirical covariance of factor-model draws to
    Var(y) = beta @ beta.T + sigma.

    Parameters
    ----------
    spec : FactorModelSpec
        The reference factor model.

    Examples
    --------
    >>> result = simulate_factor_model(spec, 10000, rng)
    >>> validation = CovarianceValidator(spec).compare(result.y)
    >>> print(f"Frobenius error: {validation.frobenius_error:.4f}")
    """

    def __init__(self, spec: FactorModelSpec):
        self.spec = spec
        self._model_cov: Optional[np.ndarray] = None

    @property
    def model_covariance(self) -> np.ndarray:
        """The implied covariance, computed once and cached."""
        if self._model_cov is None:
            self._model_cov = self.spec.implied_covariance()
        return self._model_cov

    def compare(self, y: np.ndarray) -> CovarianceValidationResult:
        """
        Compare the sample covariance of y (n, p) to the implied covariance.

        Raises
        ------
        InvalidArgumentError
            If y is not 2D, has the wrong number of series or fewer than
            two rows.
        """
        y = np.asarray(y, dtype=float)
        if y.ndim != 2:
            raise InvalidArgumentError(f"y must be a 2D array, got shape {y.shape}")

        n, p = y.shape

        if p != self.spec.p:
            raise InvalidArgumentError(
                f"y has {p} series, model has {self.spec.p}. "
                "Did you transpose the observation matrix?"
            )
        if n < 2:
            raise InvalidArgumentError(f"Need at least 2 observations for covariance, got {n}")

        empirical_cov = np.cov(y, rowvar=False)
        model_cov = self.model_covariance
        diff = empirical_cov - model_cov

        factor_var = np.trace(self.spec.beta @ self.spec.beta.T)
        total_var = np.trace(model_cov)
        explained_ratio = factor_var / total_var if total_var > 0 else 0.0

        return CovarianceValidationResult(
            frobenius_error=float(np.linalg.norm(diff, ord="fro")),
            mean_absolute_error=float(np.mean(np.abs(diff))),
            max_absolute_error=float(np.max(np.abs(diff))),
            explained_variance_ratio=float(explained_ratio),
            model_covariance=model_cov,
            empirical_covariance=empirical_cov
        )
