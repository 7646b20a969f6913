"""
Portfolio Metrics
=================

Pure functions mapping a weight vector plus mean/covariance data to:

- Expected return:  mu_p = w^T * mu
- Variance:         sigma_p^2 = w^T * Sigma * w
- Risk:             sigma_p = sqrt(max(sigma_p^2, 0))
- Sharpe ratio:     (mu_p - rf) / sigma_p
- Risk contributions: RC_i = w_i * (Sigma * w)_i / sigma_p

Numerical stability policy: a near-singular covariance matrix can make
w^T * Sigma * w come out slightly negative. That value is clamped to 0
before the square root. This is the only place where the engine proceeds
past an edge condition instead of raising.

The PortfolioAllocation result type lives here too, together with
build_allocation(), the single factory every optimizer uses.
"""

from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from portfolio_engine.core.exceptions import (
    DimensionMismatchError,
    InvalidParameterError,
    ZeroRiskError,
)

WEIGHT_SUM_TOLERANCE = 1e-6


def _as_weights(weights: Sequence[float], n_assets: int) -> np.ndarray:
    w = np.asarray(weights, dtype=float)
    if w.ndim != 1 or w.shape[0] != n_assets:
        raise DimensionMismatchError(
            f"Expected {n_assets} weights, got shape {w.shape}"
        )
    return w


def portfolio_return(weights: Sequence[float], expected_returns: np.ndarray) -> float:
    """
    Expected portfolio return.

    Formula: mu_p = w^T * mu = sum(w_i * mu_i)
    """
    mu = np.asarray(expected_returns, dtype=float)
    w = _as_weights(weights, mu.shape[0])
    return float(np.dot(w, mu))


def portfolio_variance(weights: Sequence[float], cov_matrix: np.ndarray) -> float:
    """Portfolio variance w^T * Sigma * w (not clamped)."""
    cov = np.asarray(cov_matrix, dtype=float)
    w = _as_weights(weights, cov.shape[0])
    return float(np.dot(w, np.dot(cov, w)))


def portfolio_risk(weights: Sequence[float], cov_matrix: np.ndarray) -> float:
    """
    Portfolio standard deviation.

    Negative variance from numerical noise is clamped to 0 before taking
    the square root.

    Raises:
        DimensionMismatchError: If len(weights) != number of assets
    """
    return float(np.sqrt(max(portfolio_variance(weights, cov_matrix), 0.0)))


def sharpe_ratio(
    weights: Sequence[float],
    expected_returns: np.ndarray,
    cov_matrix: np.ndarray,
    risk_free_rate: float
) -> float:
    """
    Sharpe ratio (mu_p - rf) / sigma_p.

    Returns 0 when the portfolio has zero risk and earns exactly rf.

    Raises:
        ZeroRiskError: If risk is zero and the return differs from rf
    """
    ret = portfolio_return(weights, expected_returns)
    risk = portfolio_risk(weights, cov_matrix)
    if risk == 0.0:
        if ret == risk_free_rate:
            return 0.0
        raise ZeroRiskError(
            f"Sharpe ratio undefined: zero risk with return {ret:.6g} != rf {risk_free_rate:.6g}"
        )
    return (ret - risk_free_rate) / risk


def risk_contributions(weights: Sequence[float], cov_matrix: np.ndarray) -> np.ndarray:
    """
    Per-asset contribution to portfolio risk.

    RC_i = w_i * (Sigma * w)_i / sigma_p, so that sum(RC_i) = sigma_p.
    A zero-risk portfolio has all contributions equal to 0.
    """
    cov = np.asarray(cov_matrix, dtype=float)
    w = _as_weights(weights, cov.shape[0])
    risk = portfolio_risk(w, cov)
    if risk == 0.0:
        return np.zeros_like(w)
    return w * np.dot(cov, w) / risk


@dataclass(frozen=True, eq=False)
class PortfolioAllocation:
    """
    Result of an optimization: weights plus derived statistics.

    Created only by the optimizers via build_allocation(). Weights are in
    the same order as the portfolio's assets and sum to 1.

    Attributes:
        assets: Asset identifiers
        weights: Weight per asset (read-only)
        expected_return: w^T * mu
        risk: Portfolio standard deviation
        sharpe_ratio: (expected_return - rf) / risk
        risk_contributions: RC_i per asset (read-only)
        iterations: Iterations used by the producing optimizer
    """

    assets: Tuple[str, ...]
    weights: np.ndarray
    expected_return: float
    risk: float
    sharpe_ratio: float
    risk_contributions: np.ndarray = field(repr=False)
    iterations: int = 0

    def __post_init__(self):
        if len(self.assets) != self.weights.shape[0]:
            raise DimensionMismatchError(
                f"{len(self.assets)} assets but {self.weights.shape[0]} weights"
            )
        total = float(np.sum(self.weights))
        if abs(total - 1.0) >= WEIGHT_SUM_TOLERANCE:
            raise InvalidParameterError(f"Weights sum to {total:.9f}, expected 1")

    @property
    def variance(self) -> float:
        return self.risk ** 2

    def to_series(self) -> pd.Series:
        """Weights as a pandas Series indexed by asset."""
        return pd.Series(np.array(self.weights), index=list(self.assets), name="weight")

    def __str__(self) -> str:
        lines = ["Portfolio Allocation:"]
        lines.append(f"  Expected Return: {self.expected_return*100:.4f}%")
        lines.append(f"  Risk (Volatility): {self.risk*100:.4f}%")
        lines.append(f"  Sharpe Ratio: {self.sharpe_ratio:.6f}")
        lines.append("Weights:")
        for name, weight in zip(self.assets, self.weights):
            lines.append(f"  {name}: {weight*100:.2f}%")
        return "\n".join(lines)


def build_allocation(
    assets: Sequence[str],
    weights: Sequence[float],
    expected_returns: np.ndarray,
    cov_matrix: np.ndarray,
    risk_free_rate: float,
    iterations: int = 0
) -> PortfolioAllocation:
    """Compute all statistics for a weight vector and freeze them."""
    w = np.array(weights, dtype=float)
    contributions = risk_contributions(w, cov_matrix)
    w.setflags(write=False)
    contributions.setflags(write=False)

    return PortfolioAllocation(
        assets=tuple(assets),
        weights=w,
        expected_return=portfolio_return(w, expected_returns),
        risk=portfolio_risk(w, cov_matrix),
        sharpe_ratio=sharpe_ratio(w, expected_returns, cov_matrix, risk_free_rate),
        risk_contributions=contributions,
        iterations=iterations,
    )
