"""Unit tests for portfolio metrics (pure functions)."""

import numpy as np
import pytest

from portfolio_engine.core.exceptions import (
    DimensionMismatchError,
    InvalidParameterError,
    ZeroRiskError,
)
from portfolio_engine.core.metrics import (
    PortfolioAllocation,
    build_allocation,
    portfolio_return,
    portfolio_risk,
    risk_contributions,
    sharpe_ratio,
)

MEAN = np.array([0.08, 0.12])
COV = np.array([[0.04, 0.01], [0.01, 0.09]])


class TestReturnAndRisk:

    def test_portfolio_return_is_dot_product(self):
        assert portfolio_return([0.5, 0.5], MEAN) == pytest.approx(0.10)

    def test_portfolio_risk(self):
        # 0.25 * 0.04 + 0.25 * 0.09 + 2 * 0.25 * 0.01 = 0.0375
        assert portfolio_risk([0.5, 0.5], COV) == pytest.approx(np.sqrt(0.0375))

    def test_wrong_weight_count_raises(self):
        with pytest.raises(DimensionMismatchError):
            portfolio_risk([1.0], COV)
        with pytest.raises(DimensionMismatchError):
            portfolio_return([0.2, 0.3, 0.5], MEAN)

    def test_negative_variance_noise_is_clamped_to_zero(self):
        cov = np.array([[1.0, 1.0000001], [1.0000001, 1.0]])
        assert portfolio_risk([1.0, -1.0], cov) == 0.0


class TestSharpeRatio:

    def test_sharpe_ratio(self):
        expected = (0.10 - 0.02) / np.sqrt(0.0375)
        assert sharpe_ratio([0.5, 0.5], MEAN, COV, 0.02) == pytest.approx(expected)

    def test_zero_risk_with_excess_return_raises(self):
        with pytest.raises(ZeroRiskError):
            sharpe_ratio([0.5, 0.5], MEAN, np.zeros((2, 2)), 0.02)

    def test_zero_risk_at_risk_free_rate_is_zero(self):
        rf = portfolio_return([0.5, 0.5], MEAN)
        assert sharpe_ratio([0.5, 0.5], MEAN, np.zeros((2, 2)), rf) == 0.0


class TestRiskContributions:

    def test_contributions_sum_to_risk(self):
        w = np.array([0.3, 0.7])
        rc = risk_contributions(w, COV)
        assert rc.sum() == pytest.approx(portfolio_risk(w, COV))

    def test_uncorrelated_contributions(self):
        cov = np.diag([0.04, 0.01])
        rc = risk_contributions([0.5, 0.5], cov)
        risk = np.sqrt(0.25 * 0.04 + 0.25 * 0.01)
        np.testing.assert_allclose(rc, [0.25 * 0.04 / risk, 0.25 * 0.01 / risk])

    def test_zero_risk_gives_zero_contributions(self):
        np.testing.assert_array_equal(risk_contributions([0.5, 0.5], np.zeros((2, 2))), [0.0, 0.0])


class TestPortfolioAllocation:

    def test_build_allocation_fills_statistics(self):
        allocation = build_allocation(["X", "Y"], [0.5, 0.5], MEAN, COV, 0.02)

        assert allocation.assets == ("X", "Y")
        assert allocation.expected_return == pytest.approx(0.10)
        assert allocation.risk == pytest.approx(np.sqrt(0.0375))
        assert allocation.variance == pytest.approx(0.0375)
        assert allocation.sharpe_ratio == pytest.approx(0.08 / np.sqrt(0.0375))
        assert allocation.risk_contributions.sum() == pytest.approx(allocation.risk)

    def test_weights_must_sum_to_one(self):
        with pytest.raises(InvalidParameterError):
            build_allocation(["X", "Y"], [0.5, 0.6], MEAN, COV, 0.02)

    def test_asset_count_must_match_weights(self):
        with pytest.raises(DimensionMismatchError):
            PortfolioAllocation(
                assets=("X",),
                weights=np.array([0.5, 0.5]),
                expected_return=0.1,
                risk=0.2,
                sharpe_ratio=0.4,
                risk_contributions=np.array([0.1, 0.1]),
            )

    def test_allocation_is_immutable(self):
        allocation = build_allocation(["X", "Y"], [0.5, 0.5], MEAN, COV, 0.02)
        with pytest.raises(ValueError):
            allocation.weights[0] = 1.0
        with pytest.raises(AttributeError):
            allocation.risk = 0.0

    def test_to_series_and_str(self):
        allocation = build_allocation(["X", "Y"], [0.25, 0.75], MEAN, COV, 0.02)

        series = allocation.to_series()
        assert list(series.index) == ["X", "Y"]
        assert series["Y"] == pytest.approx(0.75)
        assert "Y: 75.00%" in str(allocation)
