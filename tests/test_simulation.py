"""
test_simulation.py - Tests for the Forward Simulators

Tests cover:
- AR(1) recursion, edge cases and argument checks
- Independent stochastic volatility
- Factor analysis (diagonal and dense idiosyncratic covariance)
- Factor stochastic volatility and its noise layouts
- Latent factor composition and FactorSVSimulator
- CovarianceValidator accuracy
"""

import pytest
import numpy as np

from statespace_lab import (
    AR1Params,
    CovarianceValidator,
    FactorSVSimulator,
    InvalidArgumentError,
    NoiseMode,
    TransformType,
    covariance_transform,
    generate_ar1,
    generate_factor_model,
    generate_factor_sv,
    generate_isv,
    simulate_factor_model,
    simulate_latent_factors,
)


class TestGenerateAR1:
    """Tests for the mean-reverting AR(1) path generator."""

    @pytest.mark.parametrize("n", [1, 2, 50, 1000])
    def test_length(self, rng, n):
        x = generate_ar1(n, phi=0.1, sigma=0.2, mu=0.0, rng=rng)
        assert x.shape == (n,)

    def test_first_value_is_first_draw(self, fixed_rng):
        x = generate_ar1(3, phi=0.5, sigma=1.0, mu=10.0, rng=fixed_rng([0.7, 0.0, 0.0]))
        assert x[0] == 0.7

    def test_zero_sigma_follows_recursion_exactly(self, rng):
        """With sigma=0 only the first value is random."""
        phi, mu = 0.3, 1.5
        x = generate_ar1(200, phi=phi, sigma=0.0, mu=mu, rng=rng)

        np.testing.assert_array_equal(x[1:], x[:-1] + phi * (mu - x[:-1]))

    def test_zero_phi_zero_sigma_is_constant(self, rng):
        x = generate_ar1(100, phi=0.0, sigma=0.0, mu=5.0, rng=rng)
        assert np.all(x == x[0])

    def test_zero_phi_ignores_mu(self, fixed_rng):
        x = generate_ar1(5, phi=0.0, sigma=0.0, mu=2.0,
                         rng=fixed_rng([1.0, 0.3, -0.2, 0.5, 0.9]))
        np.testing.assert_array_equal(x, [1.0, 1.0, 1.0, 1.0, 1.0])

    def test_unit_phi_jumps_to_mu(self, fixed_rng):
        x = generate_ar1(5, phi=1.0, sigma=0.0, mu=2.0,
                         rng=fixed_rng([1.0, 0.3, -0.2, 0.5, 0.9]))
        np.testing.assert_array_equal(x, [1.0, 2.0, 2.0, 2.0, 2.0])

    def test_increment_uses_previous_value(self, fixed_rng):
        """x[i] = x[i-1] + phi*(mu - x[i-1]) + sigma*z_i."""
        x = generate_ar1(3, phi=0.5, sigma=2.0, mu=4.0,
                         rng=fixed_rng([0.0, 1.0, -1.0]))
        # x2 = 0 + 0.5*4 + 2*1 = 4; x3 = 4 + 0.5*0 - 2 = 2
        np.testing.assert_allclose(x, [0.0, 4.0, 2.0])

    def test_mean_reversion(self, rng):
        x = generate_ar1(5000, phi=0.5, sigma=0.1, mu=3.0, rng=rng)
        assert abs(x[100:].mean() - 3.0) < 0.05

    def test_reproducible_with_seed(self):
        x1 = generate_ar1(100, 0.1, 0.2, 0.0, np.random.default_rng(7))
        x2 = generate_ar1(100, 0.1, 0.2, 0.0, np.random.default_rng(7))
        np.testing.assert_array_equal(x1, x2)

    def test_different_seeds_differ(self, rng, rng_alternate):
        x1 = generate_ar1(100, 0.1, 0.2, 0.0, rng)
        x2 = generate_ar1(100, 0.1, 0.2, 0.0, rng_alternate)
        assert not np.allclose(x1, x2)

    @pytest.mark.parametrize("n", [0, -3])
    def test_non_positive_length_rejected(self, rng, n):
        with pytest.raises(InvalidArgumentError, match="n must be >= 1"):
            generate_ar1(n, 0.1, 0.2, 0.0, rng)

    def test_non_integer_length_rejected(self, rng):
        with pytest.raises(InvalidArgumentError, match="integer"):
            generate_ar1(2.5, 0.1, 0.2, 0.0, rng)

    def test_negative_sigma_rejected(self, rng):
        with pytest.raises(InvalidArgumentError, match="sigma"):
            generate_ar1(10, 0.1, -0.2, 0.0, rng)

    def test_invalid_argument_is_value_error(self, rng):
        with pytest.raises(ValueError):
            generate_ar1(0, 0.1, 0.2, 0.0, rng)


class TestGenerateISV:
    """Tests for the independent stochastic-volatility simulator."""

    def test_result_fields(self, rng):
        alpha = generate_ar1(50, 0.1, 0.2, 0.0, rng)
        result = generate_isv(50, alpha, rng)

        np.testing.assert_array_equal(result.time, np.arange(1, 51))
        np.testing.assert_array_equal(result.alpha, alpha)
        assert result.y.shape == (50,)

    def test_scales_noise_by_exp_alpha(self, fixed_rng):
        z = np.array([0.5, -1.0, 2.0])
        alpha = np.array([0.0, np.log(2.0), -1.0])
        result = generate_isv(3, alpha, fixed_rng(z))

        np.testing.assert_allclose(result.y, z * np.exp(alpha))

    def test_zero_alpha_is_standard_normal(self, rng):
        result = generate_isv(20000, np.zeros(20000), rng)
        assert abs(result.y.var() - 1.0) < 0.05
        assert abs(result.y.mean()) < 0.05

    def test_constant_alpha_sets_volatility(self, rng):
        result = generate_isv(20000, np.full(20000, np.log(2.0)), rng)
        assert abs(result.y.std() - 2.0) < 0.1

    def test_alpha_length_mismatch(self, rng):
        with pytest.raises(InvalidArgumentError, match="alpha must have shape"):
            generate_isv(10, np.zeros(9), rng)

    def test_alpha_must_be_1d(self, rng):
        with pytest.raises(InvalidArgumentError, match="alpha"):
            generate_isv(4, np.zeros((2, 2)), rng)

    def test_to_frame(self, rng):
        frame = generate_isv(5, np.zeros(5), rng).to_frame()
        assert list(frame.columns) == ["time", "y", "alpha"]
        assert len(frame) == 5


class TestGenerateFactorModel:
    """Tests for the factor-analysis simulator."""

    def test_shapes(self, simple_spec, rng):
        result = generate_factor_model(100, 6, 2, simple_spec.beta, simple_spec.sigma, rng)
        assert result.y.shape == (100, 6)
        assert result.f.shape == (100, 2)

    def test_zero_noise_is_exact_mixture(self, simple_spec, rng, tolerance):
        result = generate_factor_model(200, 6, 2, simple_spec.beta, np.zeros((6, 6)), rng)
        np.testing.assert_allclose(result.y, result.f @ simple_spec.beta.T, **tolerance)

    def test_variance_vector_accepted(self, simple_spec, rng):
        result = generate_factor_model(10, 6, 2, simple_spec.beta, np.full(6, 0.1), rng)
        assert result.y.shape == (10, 6)

    def test_requested_k_mismatch(self, rng):
        """A 6x2 loading matrix cannot serve k=3 factors."""
        beta = np.ones((6, 2))
        with pytest.raises(InvalidArgumentError, match="k=3"):
            generate_factor_model(10, 6, 3, beta, np.eye(6), rng)

    def test_requested_p_mismatch(self, rng):
        beta = np.ones((6, 2))
        with pytest.raises(InvalidArgumentError, match="rows"):
            generate_factor_model(10, 5, 2, beta, np.eye(5), rng)

    def test_sigma_shape_mismatch(self, rng):
        with pytest.raises(InvalidArgumentError, match="sigma shape mismatch"):
            generate_factor_model(10, 6, 2, np.ones((6, 2)), np.eye(4), rng)

    def test_negative_variance_rejected(self, rng):
        sigma = np.diag([0.1, -0.1, 0.1])
        with pytest.raises(InvalidArgumentError, match="negative"):
            generate_factor_model(10, 3, 1, np.ones((3, 1)), sigma, rng)

    def test_non_positive_definite_sigma_rejected(self, rng):
        sigma = np.array([[1.0, 2.0], [2.0, 1.0]])
        with pytest.raises(InvalidArgumentError, match="positive definite"):
            generate_factor_model(10, 2, 1, np.ones((2, 1)), sigma, rng)

    def test_asymmetric_sigma_rejected(self, rng):
        """Only the lower triangle would reach the Cholesky factor."""
        sigma = np.array([[1.0, 0.9], [0.0, 1.0]])
        with pytest.raises(InvalidArgumentError, match="symmetric"):
            generate_factor_model(10, 2, 1, np.zeros((2, 1)), sigma, rng)

    def test_beta_must_be_2d(self, rng):
        with pytest.raises(InvalidArgumentError, match="beta must be 2D"):
            generate_factor_model(10, 6, 1, np.ones(6), np.eye(6), rng)

    def test_non_positive_dimensions(self, rng):
        with pytest.raises(InvalidArgumentError, match="p must be >= 1"):
            generate_factor_model(10, 0, 1, np.ones((1, 1)), np.eye(1), rng)

    def test_covariance_matches_model(self, random_spec, rng):
        result = simulate_factor_model(random_spec, 50000, rng)
        validation = CovarianceValidator(random_spec).compare(result.y)
        scale = np.max(np.abs(validation.model_covariance))
        assert validation.max_absolute_error < 0.05 * scale

    def test_dense_sigma_covariance(self, correlated_spec, rng):
        result = simulate_factor_model(correlated_spec, 50000, rng)
        validation = CovarianceValidator(correlated_spec).compare(result.y)
        assert validation.max_absolute_error < 0.05

    def test_force_dense_equivalent(self, simple_spec, tolerance):
        fast = simulate_factor_model(simple_spec, 100, np.random.default_rng(3))
        slow = simulate_factor_model(simple_spec, 100, np.random.default_rng(3), force_dense=True)
        np.testing.assert_allclose(fast.y, slow.y, **tolerance)


class TestCovarianceTransform:
    """Tests for diagonal vs dense transform selection."""

    def test_diagonal_detected(self):
        transform = covariance_transform(np.diag([0.04, 0.09]))
        assert transform.is_diagonal
        np.testing.assert_allclose(transform.matrix, [0.2, 0.3])

    def test_zero_variance_allowed(self):
        transform = covariance_transform(np.zeros((3, 3)))
        assert transform.is_diagonal
        np.testing.assert_array_equal(transform.matrix, np.zeros(3))

    def test_dense_detected(self, correlated_spec):
        transform = covariance_transform(correlated_spec.sigma)
        assert transform.transform_type == TransformType.DENSE
        L = transform.matrix
        np.testing.assert_allclose(L @ L.T, correlated_spec.sigma)

    def test_small_correlations_kept_dense(self):
        """Tiny variances with correlation 0.5 still need the Cholesky path."""
        cov = np.array([[1e-8, 5e-9], [5e-9, 1e-8]])
        transform = covariance_transform(cov)

        assert transform.transform_type == TransformType.DENSE
        L = transform.matrix
        np.testing.assert_allclose(L @ L.T, cov, rtol=1e-10, atol=0.0)


class TestGenerateFactorSV:
    """Tests for the factor stochastic-volatility simulator."""

    @pytest.fixture
    def beta(self, rng):
        return rng.standard_normal((6, 2))

    @pytest.fixture
    def ft(self, rng, slide_volatility):
        ft, _ = simulate_latent_factors(300, slide_volatility, rng, k=2)
        return ft

    def test_zero_variance_is_exact_mixture(self, beta, ft, rng, tolerance):
        result = generate_factor_sv(300, 0.0, beta, ft, rng)
        np.testing.assert_allclose(result.y, ft @ beta.T, **tolerance)

    def test_zero_variance_independent_noise(self, beta, ft, rng, tolerance):
        result = generate_factor_sv(300, 0.0, beta, ft, rng, noise=NoiseMode.INDEPENDENT)
        np.testing.assert_allclose(result.y, ft @ beta.T, **tolerance)

    def test_shared_noise_constant_across_row(self, beta, ft, rng):
        result = generate_factor_sv(300, 0.5, beta, ft, rng)
        residual = result.y - ft @ beta.T

        np.testing.assert_allclose(residual, np.repeat(residual[:, :1], 6, axis=1), atol=1e-10)
        assert np.std(residual[:, 0]) > 0

    def test_independent_noise_varies_across_row(self, beta, ft, rng):
        result = generate_factor_sv(300, 0.5, beta, ft, rng, noise="independent")
        residual = result.y - ft @ beta.T
        assert not np.allclose(residual[:, 0], residual[:, 1])

    @pytest.mark.parametrize("noise", [NoiseMode.SHARED, NoiseMode.INDEPENDENT])
    def test_noise_variance(self, noise, rng):
        n, v = 20000, 0.25
        beta = np.ones((3, 1))
        ft = np.zeros((n, 1))
        result = generate_factor_sv(n, v, beta, ft, rng, noise=noise)
        assert abs(result.y[:, 0].var() - v) < 0.02

    def test_table_has_time_column(self, beta, ft, rng):
        result = generate_factor_sv(300, 0.1, beta, ft, rng)
        table = result.table

        assert table.shape == (300, 7)
        np.testing.assert_array_equal(table[:, 0], np.arange(1, 301))
        np.testing.assert_array_equal(table[:, 1:], result.y)

    def test_to_frame(self, beta, ft, rng):
        frame = generate_factor_sv(300, 0.1, beta, ft, rng).to_frame()
        assert list(frame.columns) == ["time", "y1", "y2", "y3", "y4", "y5", "y6"]

    def test_ft_shape_mismatch(self, beta, rng):
        with pytest.raises(InvalidArgumentError, match="ft shape mismatch"):
            generate_factor_sv(10, 0.1, beta, np.zeros((10, 3)), rng)

    def test_ft_length_mismatch(self, beta, rng):
        with pytest.raises(InvalidArgumentError, match="ft shape mismatch"):
            generate_factor_sv(10, 0.1, beta, np.zeros((9, 2)), rng)

    def test_negative_variance(self, beta, ft, rng):
        with pytest.raises(InvalidArgumentError, match="v must be non-negative"):
            generate_factor_sv(300, -0.1, beta, ft, rng)

    def test_unknown_noise_mode(self, beta, ft, rng):
        with pytest.raises(ValueError):
            generate_factor_sv(300, 0.1, beta, ft, rng, noise="diagonal")


class TestLatentFactors:
    """Tests for the AR(1) + ISV composition."""

    def test_composes_ar1_and_isv(self):
        params = [AR1Params(0.1, 0.2, 0.0), AR1Params(0.3, 0.1, -1.0)]
        ft, alpha = simulate_latent_factors(50, params, np.random.default_rng(5))

        manual = np.random.default_rng(5)
        for j, prm in enumerate(params):
            expected_alpha = generate_ar1(50, prm.phi, prm.sigma, prm.mu, manual)
            expected_ft = generate_isv(50, expected_alpha, manual).y
            np.testing.assert_array_equal(alpha[:, j], expected_alpha)
            np.testing.assert_array_equal(ft[:, j], expected_ft)

    def test_broadcast_single_params(self, rng, slide_volatility):
        ft, alpha = simulate_latent_factors(40, slide_volatility, rng, k=3)
        assert ft.shape == (40, 3)
        assert alpha.shape == (40, 3)

    def test_broadcast_requires_k(self, rng, slide_volatility):
        with pytest.raises(InvalidArgumentError, match="k is required"):
            simulate_latent_factors(40, slide_volatility, rng)

    def test_list_length_mismatch(self, rng, slide_volatility):
        with pytest.raises(InvalidArgumentError, match="Expected 3"):
            simulate_latent_factors(40, [slide_volatility] * 2, rng, k=3)

    def test_non_params_entry(self, rng):
        with pytest.raises(TypeError, match="volatility\\[0\\]"):
            simulate_latent_factors(40, [(0.1, 0.2, 0.0)], rng)


class TestFactorSVSimulator:
    """Tests for the end-to-end factor SV simulator."""

    def test_result_shapes(self, simple_spec, slide_volatility, rng):
        sim = FactorSVSimulator(simple_spec.beta, v=0.1, volatility=slide_volatility, rng=rng)
        results = sim.simulate(250)

        assert set(results) == {"time", "observations", "factors", "log_volatility"}
        assert results["observations"].shape == (250, 6)
        assert results["factors"].shape == (250, 2)
        assert results["log_volatility"].shape == (250, 2)
        np.testing.assert_array_equal(results["time"], np.arange(1, 251))

    def test_zero_variance_observations(self, simple_spec, slide_volatility, rng, tolerance):
        sim = FactorSVSimulator(simple_spec.beta, v=0.0, volatility=slide_volatility, rng=rng)
        results = sim.simulate(100)
        np.testing.assert_allclose(
            results["observations"], results["factors"] @ simple_spec.beta.T, **tolerance
        )

    def test_reproducible(self, simple_spec, slide_volatility):
        a = FactorSVSimulator(simple_spec.beta, 0.1, slide_volatility, rng=np.random.default_rng(1))
        b = FactorSVSimulator(simple_spec.beta, 0.1, slide_volatility, rng=np.random.default_rng(1))
        np.testing.assert_array_equal(a.simulate(50)["observations"], b.simulate(50)["observations"])

    def test_per_factor_params(self, simple_spec):
        params = [AR1Params(0.1, 0.0, 0.0), AR1Params(0.1, 0.5, 1.0)]
        sim = FactorSVSimulator(simple_spec.beta, 0.1, params)
        assert sim.volatility == params

    def test_volatility_count_mismatch(self, simple_spec, slide_volatility):
        with pytest.raises(InvalidArgumentError, match="Expected 2"):
            FactorSVSimulator(simple_spec.beta, 0.1, [slide_volatility] * 3)

    def test_negative_variance(self, simple_spec, slide_volatility):
        with pytest.raises(InvalidArgumentError, match="v must be non-negative"):
            FactorSVSimulator(simple_spec.beta, -1.0, slide_volatility)


class TestCovarianceValidator:
    """Tests for CovarianceValidator."""

    def test_explained_variance_ratio(self, simple_spec, rng):
        result = simulate_factor_model(simple_spec, 500, rng)
        validation = CovarianceValidator(simple_spec).compare(result.y)
        # trace(beta beta^T) = 6, trace(sigma) = 0.6
        assert validation.explained_variance_ratio == pytest.approx(6.0 / 6.6)

    def test_model_covariance_cached(self, simple_spec):
        validator = CovarianceValidator(simple_spec)
        assert validator.model_covariance is validator.model_covariance

    def test_rejects_1d(self, simple_spec):
        with pytest.raises(InvalidArgumentError, match="2D"):
            CovarianceValidator(simple_spec).compare(np.zeros(6))

    def test_rejects_wrong_series_count(self, simple_spec):
        with pytest.raises(InvalidArgumentError, match="transpose"):
            CovarianceValidator(simple_spec).compare(np.zeros((100, 5)))

    def test_rejects_single_row(self, simple_spec):
        with pytest.raises(InvalidArgumentError, match="at least 2"):
            CovarianceValidator(simple_spec).compare(np.zeros((1, 6)))
