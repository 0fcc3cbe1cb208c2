"""
conftest.py - Pytest Configuration and Shared Fixtures

Fixtures are organized by category:
- Random number generators (for reproducibility)
- Factor model specifications
- Samplers and factories
- Sensor readings files
"""

import pytest
import numpy as np

from statespace_lab import (
    AR1Params,
    DistributionFactory,
    FactorModelSpec,
)


# =============================================================================
# RANDOM NUMBER GENERATORS
# =============================================================================

class FixedNormalRNG:
    """
    Stand-in generator whose standard normal draws are scripted.

    Values are handed out in order; a call with `size` consumes
    prod(size) of them.
    """

    def __init__(self, values):
        self._values = np.asarray(values, dtype=float)
        self._pos = 0

    def standard_normal(self, size=None):
        count = 1 if size is None else int(np.prod(size))
        out = self._values[self._pos:self._pos + count]
        if out.shape[0] != count:
            raise RuntimeError("FixedNormalRNG ran out of scripted values")
        self._pos += count
        if size is None:
            return float(out[0])
        return out.reshape(size)


@pytest.fixture
def rng():
    """
    Provide a seeded random number generator for reproducible tests.
    """
    return np.random.default_rng(seed=42)


@pytest.fixture
def rng_alternate():
    """Alternate RNG with different seed for comparison tests."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def fixed_rng():
    """Factory for scripted generators."""
    return FixedNormalRNG


# =============================================================================
# FACTOR MODEL SPECIFICATIONS
# =============================================================================

@pytest.fixture
def simple_spec():
    """
    6 series, 2 factors, diagonal idiosyncratic covariance.

    Structure:
    - Factor 1 drives series 0-2 (loadings = 1.0)
    - Factor 2 drives series 3-5 (loadings = 1.0)
    - Idio variance: 0.1 for all series
    """
    p, k = 6, 2
    beta = np.zeros((p, k))
    beta[:3, 0] = 1.0
    beta[3:, 1] = 1.0
    sigma = np.diag(np.full(p, 0.1))
    return FactorModelSpec(beta=beta, sigma=sigma)


@pytest.fixture
def random_spec(rng):
    """8 series, 3 factors, random loadings and heterogeneous variances."""
    p, k = 8, 3
    beta = rng.standard_normal((p, k))
    sigma = np.diag(rng.uniform(0.05, 0.3, p))
    return FactorModelSpec(beta=beta, sigma=sigma)


@pytest.fixture
def correlated_spec():
    """3 series, 1 factor, non-diagonal idiosyncratic covariance."""
    beta = np.array([[1.0], [0.5], [-0.5]])
    sigma = np.array([
        [0.20, 0.05, 0.00],
        [0.05, 0.10, 0.02],
        [0.00, 0.02, 0.15],
    ])
    return FactorModelSpec(beta=beta, sigma=sigma)


@pytest.fixture
def slide_volatility():
    """Log-volatility parameters used for the factor SV slides."""
    return AR1Params(phi=0.1, sigma=0.2, mu=0.0)


# =============================================================================
# SAMPLERS AND FACTORIES
# =============================================================================

@pytest.fixture
def factory(rng):
    """A DistributionFactory using the seeded RNG."""
    return DistributionFactory(rng=rng)


# =============================================================================
# SENSOR READINGS
# =============================================================================

READINGS_CSV = """Timestamp,Variable,Units,Value
2023-06-01 00:10:00,Temperature,C,18.2
2023-06-01 00:00:00,Temperature,C,18.0
2023-06-01 00:00:00,Humidity,%,55
2023-06-01 00:10:00,Humidity,%,56
2023-06-01 00:10:00,Humidity,%,58
"""


@pytest.fixture
def readings_file(tmp_path):
    """Small long-format readings table with one duplicate timestamp."""
    path = tmp_path / "readings.csv"
    path.write_text(READINGS_CSV)
    return path


# =============================================================================
# HELPER FIXTURES
# =============================================================================

@pytest.fixture
def tolerance():
    """Tolerance for values that should match up to floating point noise."""
    return {"rtol": 1e-12, "atol": 1e-12}
