"""Unit tests for covariance estimation and the inversion policy."""

import numpy as np
import pytest

from portfolio_engine.core.covariance import CovarianceEstimator, invert_covariance
from portfolio_engine.core.exceptions import (
    DegenerateAssetError,
    InsufficientDataError,
    MisalignedPeriodsError,
    SingularCovarianceError,
)


class TestEstimate:
    """Tests for CovarianceEstimator.estimate."""

    def test_matches_numpy_sample_covariance(self, three_asset_returns):
        _, returns = three_asset_returns
        est = CovarianceEstimator().estimate(returns)

        expected = np.cov(np.array(returns), ddof=1)
        np.testing.assert_allclose(est.covariance, expected, rtol=1e-12, atol=1e-15)
        np.testing.assert_allclose(est.mean, np.mean(returns, axis=1))
        assert est.n_observations == 12
        assert est.n_assets == 3

    def test_covariance_is_symmetric_with_non_negative_diagonal(self, three_asset_returns):
        _, returns = three_asset_returns
        cov = CovarianceEstimator().estimate(returns).covariance

        np.testing.assert_array_equal(cov, cov.T)
        assert np.all(np.diag(cov) >= 0)

    def test_two_observations_is_enough(self):
        est = CovarianceEstimator().estimate([[0.01, 0.03], [0.02, 0.00]])
        # (0.01 - 0.02)(0.02 - 0.01) + (0.03 - 0.02)(0.00 - 0.01) over N - 1 = 1
        assert est.covariance[0, 1] == pytest.approx(-0.0002)

    def test_single_observation_raises(self):
        with pytest.raises(InsufficientDataError):
            CovarianceEstimator().estimate([[0.01], [0.02]])

    def test_ragged_series_raise(self):
        with pytest.raises(MisalignedPeriodsError):
            CovarianceEstimator().estimate([[0.01, 0.02, 0.03], [0.01, 0.02]])

    def test_zero_variance_asset_raises_with_index(self):
        series = [[0.01, 0.03, -0.02], [0.02, 0.02, 0.02]]
        with pytest.raises(DegenerateAssetError) as exc_info:
            CovarianceEstimator().estimate(series, asset_names=["A", "B"])

        assert exc_info.value.asset_index == 1
        assert exc_info.value.asset == "B"

    def test_estimates_are_read_only(self, three_asset_returns):
        _, returns = three_asset_returns
        est = CovarianceEstimator().estimate(returns)
        with pytest.raises(ValueError):
            est.covariance[0, 0] = 1.0


class TestCorrelation:
    """Tests for correlation matrices."""

    def test_diagonal_is_one(self, three_asset_returns):
        _, returns = three_asset_returns
        corr = CovarianceEstimator().correlation(returns)
        np.testing.assert_allclose(np.diag(corr), 1.0)

    def test_matches_numpy_corrcoef(self, three_asset_returns):
        _, returns = three_asset_returns
        corr = CovarianceEstimator().correlation(returns)
        np.testing.assert_allclose(corr, np.corrcoef(np.array(returns)), atol=1e-12)

    def test_zero_variance_is_not_treated_as_zero_correlation(self):
        with pytest.raises(DegenerateAssetError):
            CovarianceEstimator().correlation([[0.10, 0.10, 0.10], [0.02, 0.05, 0.01]])

    def test_raw_covariance_accepts_constant_series(self):
        cov = CovarianceEstimator().covariance([[0.10, 0.10, 0.10], [0.02, 0.05, 0.01]])
        assert cov[0, 0] == 0.0
        assert cov[0, 1] == 0.0


class TestInvertCovariance:
    """Tests for invert_covariance."""

    def test_well_conditioned_matrix_is_inverted_directly(self):
        cov = np.array([[0.04, 0.01], [0.01, 0.09]])
        np.testing.assert_allclose(invert_covariance(cov) @ cov, np.eye(2), atol=1e-12)

    def test_singular_matrix_falls_back_to_pseudo_inverse(self):
        cov = np.array([[0.04, 0.04], [0.04, 0.04]])
        with pytest.warns(UserWarning, match="pseudo-inverse"):
            inverse = invert_covariance(cov)

        np.testing.assert_allclose(inverse, np.linalg.pinv(cov), atol=1e-8)

    def test_asymmetric_matrix_is_symmetrized(self):
        cov = np.array([[0.04, 0.011], [0.01, 0.09]])
        with pytest.warns(UserWarning, match="not symmetric"):
            inverse = invert_covariance(cov)

        symmetric = (cov + cov.T) / 2
        np.testing.assert_allclose(inverse @ symmetric, np.eye(2), atol=1e-12)

    def test_non_finite_matrix_raises(self):
        cov = np.array([[np.inf, 0.0], [0.0, 0.04]])
        with pytest.raises(SingularCovarianceError):
            invert_covariance(cov)
