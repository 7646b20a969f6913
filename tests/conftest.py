"""Shared fixtures for portfolio engine tests."""

import numpy as np
import pytest
from scipy.linalg import hadamard

from portfolio_engine import Portfolio


def orthogonal_returns(means, scales):
    """
    Return series whose sample covariance matrix is diagonal.

    Each asset gets its own zero-sum row of an 8x8 Hadamard matrix, so the
    deviations are mutually orthogonal. Sample variance is 8 * scale**2 / 7.
    """
    patterns = hadamard(8)[1:len(means) + 1].astype(float)
    return [m + s * p for m, s, p in zip(means, scales, patterns)]


def correlated_pair(means, scales, correlation):
    """Two return series with an exact sample correlation."""
    first, second = hadamard(8)[1:3].astype(float)
    mixed = correlation * first + np.sqrt(1.0 - correlation ** 2) * second
    return [means[0] + scales[0] * first, means[1] + scales[1] * mixed]


@pytest.fixture
def diagonal_portfolio():
    """Two uncorrelated assets: tangency and risk parity are both [2/3, 1/3]."""
    returns = orthogonal_returns([0.01, 0.02], [0.02, 0.04])
    return Portfolio(["A", "B"], returns, risk_free_rate=0.0)


@pytest.fixture
def three_asset_returns():
    """Twelve monthly observations for two stocks and a bond fund."""
    stock_a = [0.05, -0.02, 0.03, 0.04, -0.01, 0.06, 0.02, -0.03, 0.04, 0.01, 0.03, 0.02]
    stock_b = [0.03, 0.01, 0.02, -0.01, 0.04, 0.02, 0.01, 0.03, -0.02, 0.02, 0.01, 0.03]
    bonds = [0.005, 0.004, 0.006, 0.003, 0.005, 0.004, 0.006, 0.005, 0.004, 0.005, 0.006, 0.004]
    return ["Stock A", "Stock B", "Bonds"], [stock_a, stock_b, bonds]


@pytest.fixture
def three_asset_portfolio(three_asset_returns):
    assets, returns = three_asset_returns
    return Portfolio(assets, returns, risk_free_rate=0.02 / 12)


@pytest.fixture
def factor_portfolio():
    """Four positively correlated assets, ten years of monthly returns."""
    from portfolio_engine import generate_sample_returns

    returns, names = generate_sample_returns(n_assets=4, n_periods=120, seed=7)
    return Portfolio(names, list(returns.T), risk_free_rate=0.001)


def equal_weights(n):
    return np.full(n, 1.0 / n)


@pytest.fixture
def hedged_pair_portfolio():
    """Stock and bond with correlation -0.75: the bond's RC is negative at 1/K."""
    returns = correlated_pair([0.01, 0.005], [0.02, 0.01], -0.75)
    return Portfolio(["Stock", "Bond"], returns, risk_free_rate=0.0)


@pytest.fixture
def mixed_excess_portfolio():
    """One asset above the risk-free rate and one below it."""
    returns = orthogonal_returns([0.01, -0.02], [0.02, 0.02])
    return Portfolio(["Winner", "Loser"], returns, risk_free_rate=0.0)
