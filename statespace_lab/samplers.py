"""
samplers.py - Named Distributions and Random Model Specifications

This module provides:
- DistributionRegistry: Repository of named sampling functions
- DistributionFactory: Creates sampler callables bound to an explicit RNG
- SpecSampler: Draws random FactorModelSpec instances (loadings + variances)

Example Usage:
-------------
    >>> import numpy as np
    >>> from statespace_lab.samplers import DistributionFactory, SpecSampler
    >>>
    >>> rng = np.random.default_rng(42)
    >>> factory = DistributionFactory(rng=rng)
    >>>
    >>> spec = SpecSampler(p=6, k=2).configure(
    ...     beta=factory.create("normal", mean=0.0, std=1.0),
    ...     idio_var=factory.create("uniform", low=0.05, high=0.2),
    ... ).generate()
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Union

from .types import FactorModelSpec, SamplerCallable


@dataclass
class DistributionInfo:
    """
    Metadata about a registered distribution.

    `func` has the signature f(rng, n, **params) -> array.
    """
    name: str
    func: Callable
    required_params: Set[str]
    description: str = ""
    optional_params: Dict[str, Any] = field(default_factory=dict)


class DistributionRegistry:
    """
    Repository of sampling functions addressed by (case-insensitive) name.

    Built-ins: normal, uniform, constant, student_t, lognormal.
    """

    def __init__(self):
        self._distributions: Dict[str, DistributionInfo] = {}

        self.register("normal", lambda rng, n, mean, std: rng.normal(mean, std, n),
                      {"std"}, "Gaussian with given std (mean defaults to 0)",
                      optional_params={"mean": 0.0})
        self.register("uniform", lambda rng, n, low, high: rng.uniform(low, high, n),
                      {"low", "high"}, "Uniform on [low, high)")
        self.register("constant", lambda rng, n, value: np.full(n, value, dtype=float),
                      {"value"}, "Degenerate distribution at value")
        self.register("student_t", lambda rng, n, df: rng.standard_t(df, size=n),
                      {"df"}, "Student's t with df degrees of freedom")
        self.register("lognormal", lambda rng, n, mean, sigma: rng.lognormal(mean, sigma, n),
                      {"mean", "sigma"}, "Log-normal (mean and sigma of the log)")

    def register(
        self,
        name: str,
        func: Callable,
        required_params: Set[str],
        description: str = "",
        optional_params: Optional[Dict[str, Any]] = None
    ) -> None:
        """Register (or replace) a distribution under `name`."""
        key = name.lower()
        self._distributions[key] = DistributionInfo(
            name=key,
            func=func,
            required_params=set(required_params),
            description=description,
            optional_params=optional_params or {},
        )

    def get(self, name: str) -> DistributionInfo:
        """
        Retrieve a registered distribution.

        Raises
        ------
        KeyError
            If the distribution is not registered.
        """
        key = name.lower()
        if key not in self._distributions:
            available = ", ".join(self.list_distributions())
            raise KeyError(f"Unknown distribution '{name}'. Available: {available}")
        return self._distributions[key]

    def list_distributions(self) -> List[str]:
        return sorted(self._distributions)


class DistributionFactory:
    """
    Creates sampler callables that all draw from one injected RNG.

    Parameters
    ----------
    rng : np.random.Generator, optional
        Random number generator. If None, creates a new default RNG.
    registry : DistributionRegistry, optional
        Registry to resolve names against. Defaults to the built-ins.

    Examples
    --------
    >>> factory = DistributionFactory(rng=np.random.default_rng(0))
    >>> draw = factory.create("student_t", df=4)
    >>> draw(100).shape
    (100,)
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        registry: Optional[DistributionRegistry] = None
    ):
        self._rng = rng if rng is not None else np.random.default_rng()
        self._registry = registry if registry is not None else DistributionRegistry()

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    @property
    def registry(self) -> DistributionRegistry:
        return self._registry

    def create(self, dist_name: str, **params) -> SamplerCallable:
        """
        Create a sampler for a registered distribution.

        Required parameters are checked here rather than at draw time.

        Raises
        ------
        KeyError
            If the distribution is not registered.
        ValueError
            If required parameters are missing.
        """
        info = self._registry.get(dist_name)

        missing = info.required_params - set(params)
        if missing:
            raise ValueError(
                f"Distribution '{info.name}' requires parameters: {sorted(missing)}. "
                f"Got: {sorted(params)}"
            )

        full_params = {**info.optional_params, **params}
        rng = self._rng
        func = info.func

        def sampler(n: Union[int, tuple]) -> np.ndarray:
            if isinstance(n, tuple):
                return func(rng, int(np.prod(n)), **full_params).reshape(n)
            return func(rng, n, **full_params)

        return sampler


class SpecSampler:
    """
    Generator for random factor model specifications.

    Loadings are drawn column by column (one sampler per factor) and the
    idiosyncratic variances one per series; sigma is diagonal.

    Parameters
    ----------
    p : int
        Number of observed series.
    k : int
        Number of latent factors.
    """

    def __init__(self, p: int, k: int):
        if p <= 0:
            raise ValueError(f"Number of series must be positive, got {p}")
        if k <= 0:
            raise ValueError(f"Number of factors must be positive, got {k}")

        self.p = p
        self.k = k
        self._beta_samplers: List[SamplerCallable] = []
        self._idio_samplers: List[SamplerCallable] = []
        self._configured = False

    def configure(
        self,
        beta: Union[SamplerCallable, List[SamplerCallable]],
        idio_var: Union[SamplerCallable, List[SamplerCallable]]
    ) -> "SpecSampler":
        """
        Set the loading and idiosyncratic variance samplers.

        A single sampler is broadcast; a list must have one entry per
        factor (beta) or per series (idio_var).
        """
        self._beta_samplers = self._resolve(beta, self.k, "beta")
        self._idio_samplers = self._resolve(idio_var, self.p, "idio_var")
        self._configured = True
        return self

    def generate(self) -> FactorModelSpec:
        """
        Draw a FactorModelSpec.

        Raises
        ------
        RuntimeError
            If configure() has not been called.
        """
        if not self._configured:
            raise RuntimeError("SpecSampler not configured. Call configure() first.")

        beta = np.column_stack([draw(self.p) for draw in self._beta_samplers])
        idio = np.array([draw(1)[0] for draw in self._idio_samplers], dtype=float)

        return FactorModelSpec(beta=beta, sigma=np.diag(idio))

    @staticmethod
    def _resolve(spec, target_len: int, name: str) -> List[SamplerCallable]:
        if isinstance(spec, list):
            if len(spec) != target_len:
                raise ValueError(
                    f"{name}: expected list of length {target_len}, got {len(spec)}"
                )
            for i, s in enumerate(spec):
                if not callable(s):
                    raise TypeError(f"{name}[{i}] is not callable: {type(s)}")
            return spec
        if callable(spec):
            return [spec] * target_len
        raise TypeError(f"{name} must be callable or list of callables, got {type(spec)}")
