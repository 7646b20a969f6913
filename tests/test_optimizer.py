"""Tests for the tangency (maximum Sharpe ratio) optimizer."""

import logging

import numpy as np
import pytest
from scipy.optimize import minimize

from portfolio_engine import MeanVarianceConfig, MeanVarianceOptimizer, Portfolio
from portfolio_engine.core.exceptions import DegenerateAssetError, InvalidParameterError
from portfolio_engine.core.optimizer import _most_negative_index, tangency_weights
from conftest import equal_weights, orthogonal_returns


def slsqp_max_sharpe(mean, cov, rf):
    """Numerical reference: maximize the Sharpe ratio under sum(w) = 1."""
    n = len(mean)

    def neg_sharpe(w):
        return -(w @ mean - rf) / np.sqrt(w @ cov @ w)

    result = minimize(
        neg_sharpe,
        equal_weights(n),
        method="SLSQP",
        constraints=[{"type": "eq", "fun": lambda w: np.sum(w) - 1}],
        options={"ftol": 1e-12, "maxiter": 1000},
    )
    return result.x


class TestTangencyPortfolio:

    def test_uncorrelated_assets(self, diagonal_portfolio):
        allocation = MeanVarianceOptimizer().optimize(diagonal_portfolio)

        np.testing.assert_allclose(allocation.weights, [2 / 3, 1 / 3], atol=1e-9)
        assert allocation.expected_return == pytest.approx(0.04 / 3)

    def test_beats_equal_weight(self, diagonal_portfolio):
        allocation = MeanVarianceOptimizer().optimize(diagonal_portfolio)
        assert allocation.sharpe_ratio >= diagonal_portfolio.sharpe_ratio(equal_weights(2))

    @pytest.mark.parametrize("portfolio_fixture", ["three_asset_portfolio", "factor_portfolio"])
    def test_unconstrained_beats_equal_weight(self, portfolio_fixture, request):
        portfolio = request.getfixturevalue(portfolio_fixture)
        config = MeanVarianceConfig(long_only=False)
        allocation = MeanVarianceOptimizer(config).optimize(portfolio)

        n = portfolio.n_assets
        assert abs(allocation.weights.sum() - 1.0) < 1e-6
        assert allocation.sharpe_ratio >= portfolio.sharpe_ratio(equal_weights(n)) - 1e-12

    def test_matches_numerical_optimum(self, factor_portfolio):
        estimate = factor_portfolio.estimate()
        rf = factor_portfolio.risk_free_rate
        config = MeanVarianceConfig(long_only=False)
        allocation = MeanVarianceOptimizer(config).optimize(factor_portfolio)

        reference = slsqp_max_sharpe(estimate.mean, estimate.covariance, rf)
        reference_sharpe = factor_portfolio.sharpe_ratio(reference)

        assert allocation.sharpe_ratio >= reference_sharpe - 1e-9
        assert allocation.sharpe_ratio == pytest.approx(reference_sharpe, rel=1e-4)

    def test_single_asset(self):
        portfolio = Portfolio(["A"], [[0.01, 0.03, -0.02, 0.04]])
        allocation = MeanVarianceOptimizer().optimize(portfolio)

        np.testing.assert_array_equal(allocation.weights, [1.0])

    def test_identical_assets_use_pseudo_inverse(self):
        series = [0.01, 0.03, -0.02, 0.04, 0.00]
        portfolio = Portfolio(["A", "B"], [series, list(series)])

        with pytest.warns(UserWarning, match="pseudo-inverse"):
            allocation = MeanVarianceOptimizer().optimize(portfolio)

        np.testing.assert_allclose(allocation.weights, [0.5, 0.5], atol=1e-9)

    def test_zero_variance_asset_raises(self):
        portfolio = Portfolio(["A", "B"], [[0.01, 0.03, -0.02], [0.02, 0.02, 0.02]])
        with pytest.raises(DegenerateAssetError) as exc_info:
            MeanVarianceOptimizer().optimize(portfolio)
        assert exc_info.value.asset == "B"


class TestLongOnly:

    @pytest.fixture
    def shorting_portfolio(self):
        # Unconstrained tangency weights are [2, 1, -2]
        returns = orthogonal_returns([0.01, 0.02, -0.01], [0.02, 0.04, 0.02])
        return Portfolio(["A", "B", "C"], returns)

    def test_unconstrained_solution_shorts(self, shorting_portfolio):
        config = MeanVarianceConfig(long_only=False)
        allocation = MeanVarianceOptimizer(config).optimize(shorting_portfolio)

        np.testing.assert_allclose(allocation.weights, [2.0, 1.0, -2.0], atol=1e-9)

    def test_negative_asset_is_dropped(self, shorting_portfolio, caplog):
        caplog.set_level(logging.DEBUG, logger="portfolio_engine")
        allocation = MeanVarianceOptimizer().optimize(shorting_portfolio)

        np.testing.assert_allclose(allocation.weights, [2 / 3, 1 / 3, 0.0], atol=1e-9)
        assert np.all(allocation.weights >= 0)
        assert allocation.iterations == 2
        assert "Dropping asset 2 (C)" in caplog.text

    def test_ties_drop_lowest_index(self):
        assert _most_negative_index(np.array([0.5, -0.2, -0.2, 0.9])) == 1

    def test_portfolio_entry_point_is_long_only(self, shorting_portfolio):
        allocation = shorting_portfolio.optimize_portfolio()
        assert allocation.weights[2] == 0.0

    @pytest.mark.parametrize(
        "portfolio_fixture",
        [
            "diagonal_portfolio",
            "three_asset_portfolio",
            "factor_portfolio",
            "hedged_pair_portfolio",
            "mixed_excess_portfolio",
        ],
    )
    def test_beats_equal_weight(self, portfolio_fixture, request):
        portfolio = request.getfixturevalue(portfolio_fixture)
        allocation = portfolio.optimize_portfolio()

        assert np.all(allocation.weights >= 0)
        assert abs(allocation.weights.sum() - 1.0) < 1e-6
        equal = portfolio.sharpe_ratio(equal_weights(portfolio.n_assets))
        assert allocation.sharpe_ratio >= equal - 1e-12

    def test_asset_below_risk_free_rate_is_dropped(self, mixed_excess_portfolio, caplog):
        # Sigma^-1 (mu - rf) sums to a negative number here
        caplog.set_level(logging.DEBUG, logger="portfolio_engine")
        allocation = mixed_excess_portfolio.optimize_portfolio()

        np.testing.assert_array_equal(allocation.weights, [1.0, 0.0])
        assert allocation.sharpe_ratio > 0
        assert "Dropping asset 1 (Loser)" in caplog.text

    def test_all_assets_below_risk_free_rate(self):
        returns = orthogonal_returns([-0.01, -0.02], [0.02, 0.02])
        portfolio = Portfolio(["A", "B"], returns)
        allocation = portfolio.optimize_portfolio()

        np.testing.assert_array_equal(allocation.weights, [1.0, 0.0])

    def test_negative_correlation(self, hedged_pair_portfolio):
        allocation = hedged_pair_portfolio.optimize_portfolio()
        np.testing.assert_allclose(allocation.weights, [1 / 3, 2 / 3], atol=1e-9)


class TestMinimumVariance:

    def test_global_minimum_variance(self, diagonal_portfolio):
        allocation = MeanVarianceOptimizer().minimum_variance(diagonal_portfolio)

        np.testing.assert_allclose(allocation.weights, [0.8, 0.2], atol=1e-9)
        assert allocation.expected_return == pytest.approx(0.012)

    def test_no_portfolio_has_lower_risk(self, factor_portfolio):
        mvp = MeanVarianceOptimizer().minimum_variance(factor_portfolio)
        rng = np.random.RandomState(0)
        for _ in range(50):
            w = rng.dirichlet(np.ones(factor_portfolio.n_assets))
            assert factor_portfolio.portfolio_risk(w) >= mvp.risk - 1e-12


class TestTangencyWeights:

    def test_zero_normalizing_sum_raises(self):
        # Excess returns of opposite sign and equal size on identical variances
        mean = np.array([0.01, -0.01])
        cov = np.diag([0.04, 0.04])
        with pytest.raises(InvalidParameterError):
            tangency_weights(mean, cov, 0.0, 1e-12)

    def test_config_validation(self):
        with pytest.raises(InvalidParameterError):
            MeanVarianceConfig(singular_tolerance=0.0)
