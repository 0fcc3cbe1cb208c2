"""
statespace_lab - Forward Simulation of State-Space and Stochastic-Volatility Models
"""

__version__ = "1.0.0"

# =============================================================================
# CORE TYPES
# =============================================================================
from .types import (
    AR1Params,
    FactorModelSpec,
    CovarianceTransform,
    TransformType,
    ISVResult,
    FactorModelResult,
    FactorSVResult,
    NoiseMode,
    CovarianceValidationResult,
    InvalidArgumentError,
    SamplerCallable,
)

# =============================================================================
# SIMULATION
# =============================================================================
from .simulation import (
    generate_ar1,
    generate_isv,
    generate_factor_model,
    generate_factor_sv,
    simulate_factor_model,
    simulate_latent_factors,
    covariance_transform,
    FactorSVSimulator,
    CovarianceValidator,
)

# =============================================================================
# SAMPLERS
# =============================================================================
from .samplers import (
    DistributionFactory,
    DistributionRegistry,
    DistributionInfo,
    SpecSampler,
)

# =============================================================================
# I/O
# =============================================================================
from .io import (
    load_readings,
    readings_to_wide,
    save_spec,
    load_spec,
    ModelFormat,
)

# PUBLIC API
# =============================================================================
__all__ = [
    "__version__",
    "AR1Params",
    "FactorModelSpec",
    "CovarianceTransform",
    "TransformType",
    "ISVResult",
    "FactorModelResult",
    "FactorSVResult",
    "NoiseMode",
    "CovarianceValidationResult",
    "InvalidArgumentError",
    "SamplerCallable",
    "generate_ar1",
    "generate_isv",
    "generate_factor_model",
    "generate_factor_sv",
    "simulate_factor_model",
    "simulate_latent_factors",
    "covariance_transform",
    "FactorSVSimulator",
    "CovarianceValidator",
    "DistributionFactory",
    "DistributionRegistry",
    "DistributionInfo",
    "SpecSampler",
    "load_readings",
    "readings_to_wide",
    "save_spec",
    "load_spec",
    "ModelFormat",
]
