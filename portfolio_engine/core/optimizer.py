"""
Mean-Variance Optimizer - Modern Portfolio Theory Implementation
================================================================

This module finds the Tangent Portfolio (maximum Sharpe ratio) and the
Minimum Variance Portfolio (MVP) with closed-form solutions.

Theory Background:
------------------
Among all fully invested portfolios (sum(w) = 1), the one with the highest
Sharpe ratio is proportional to

    w_raw = Sigma^-1 * (mu - rf * 1)

normalized so the weights sum to one. The global MVP is proportional to
Sigma^-1 * 1. Both only need one matrix inverse, so no iterative solver is
involved.

Long-only portfolios:
---------------------
The closed form may short some assets. With long_only=True the optimizer
runs an active-set search: while any weight is negative, the single most
negative weight is fixed at zero (ties go to the lowest asset index), that
asset is removed and the closed form is solved again on the remaining
assets. Exactly one asset is dropped per iteration, so results are
deterministic.

If 1^T * Sigma^-1 * (mu - rf) is not positive, normalizing would flip the
sign of every weight and land on the minimum Sharpe portfolio instead. In
that case the asset with the most negative raw weight Sigma^-1 (mu - rf)
is dropped before normalizing. The search ends with the best single asset
if that has a higher Sharpe ratio than the active-set result.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from portfolio_engine.core.config import MeanVarianceConfig
from portfolio_engine.core.covariance import CovarianceEstimate, invert_covariance
from portfolio_engine.core.exceptions import InvalidParameterError
from portfolio_engine.core.metrics import (
    PortfolioAllocation,
    build_allocation,
    portfolio_return,
    portfolio_risk,
)

if TYPE_CHECKING:
    from portfolio_engine.core.portfolio import Portfolio

logger = logging.getLogger(__name__)

# Negative weights smaller than this in magnitude are rounding noise
_NEGATIVE_WEIGHT_TOLERANCE = 1e-12
# Relative size below which sum(w_raw) counts as zero
_ZERO_SUM_TOLERANCE = 1e-12
# Sharpe improvement below this is rounding noise
_SHARPE_TOLERANCE = 1e-12


class Optimizer(ABC):
    """Common interface of all allocation strategies."""

    @abstractmethod
    def optimize(
        self,
        portfolio: "Portfolio",
        estimate: Optional[CovarianceEstimate] = None
    ) -> PortfolioAllocation:
        """Compute an allocation for the portfolio."""


def _normalize(raw: np.ndarray, what: str) -> np.ndarray:
    total = raw.sum()
    scale = np.abs(raw).sum()
    if not np.isfinite(total) or abs(total) <= _ZERO_SUM_TOLERANCE * scale or scale == 0.0:
        raise InvalidParameterError(
            f"{what} is undefined: unnormalized weights sum to {total:.3e}"
        )
    return raw / total


def tangency_weights(
    expected_returns: np.ndarray,
    cov_matrix: np.ndarray,
    risk_free_rate: float,
    singular_tolerance: float
) -> np.ndarray:
    """
    Unconstrained tangency portfolio weights.

    Formula: w = Sigma^-1 (mu - rf) / 1^T Sigma^-1 (mu - rf)

    Raises:
        SingularCovarianceError: If Sigma cannot be inverted
        InvalidParameterError: If the normalizing sum is zero
    """
    if expected_returns.shape[0] == 1:
        return np.ones(1)
    inverse = invert_covariance(cov_matrix, singular_tolerance)
    raw = inverse @ (expected_returns - risk_free_rate)
    return _normalize(raw, "Tangency portfolio")


def minimum_variance_weights(cov_matrix: np.ndarray, singular_tolerance: float) -> np.ndarray:
    """Global minimum variance weights: Sigma^-1 * 1 / (1^T Sigma^-1 1)."""
    n_assets = cov_matrix.shape[0]
    if n_assets == 1:
        return np.ones(1)
    inverse = invert_covariance(cov_matrix, singular_tolerance)
    return _normalize(inverse @ np.ones(n_assets), "Minimum variance portfolio")


def _most_negative_index(weights: np.ndarray) -> int:
    """Position of the most negative weight; argmin picks the lowest index on ties."""
    return int(np.argmin(weights))


class MeanVarianceOptimizer(Optimizer):
    """
    Maximum Sharpe ratio optimizer using the closed-form tangency portfolio.

    Example:
        >>> optimizer = MeanVarianceOptimizer(MeanVarianceConfig(long_only=True))
        >>> allocation = optimizer.optimize(portfolio)
        >>> allocation.weights.sum()
        1.0
    """

    def __init__(self, config: Optional[MeanVarianceConfig] = None):
        self.config = config if config is not None else MeanVarianceConfig()

    def optimize(
        self,
        portfolio: "Portfolio",
        estimate: Optional[CovarianceEstimate] = None
    ) -> PortfolioAllocation:
        """
        Find the tangency portfolio.

        Args:
            portfolio: Assets and returns to allocate across
            estimate: Optional precomputed mean/covariance estimate

        Returns:
            PortfolioAllocation maximizing the Sharpe ratio

        Raises:
            DegenerateAssetError: If an asset has zero variance
            SingularCovarianceError: If the covariance cannot be inverted
            InvalidParameterError: If the tangency portfolio is undefined
        """
        if estimate is None:
            estimate = portfolio.estimate()
        mean, cov = estimate.mean, estimate.covariance
        rf = portfolio.risk_free_rate
        tol = self.config.singular_tolerance

        if self.config.long_only:
            weights, iterations = self._active_set(mean, cov, rf, portfolio.assets)
        else:
            weights = tangency_weights(mean, cov, rf, tol)
            iterations = 1

        allocation = build_allocation(portfolio.assets, weights, mean, cov, rf, iterations)
        logger.info(
            f"Tangency portfolio: return={allocation.expected_return:.6f} "
            f"risk={allocation.risk:.6f} sharpe={allocation.sharpe_ratio:.6f}"
        )
        return allocation

    def _active_set(
        self,
        mean: np.ndarray,
        cov: np.ndarray,
        rf: float,
        assets: List[str]
    ):
        n_assets = mean.shape[0]
        active = list(range(n_assets))
        iterations = 0

        while True:
            iterations += 1
            if len(active) == 1:
                sub_weights = np.ones(1)
                break

            idx = np.array(active)
            inverse = invert_covariance(cov[np.ix_(idx, idx)], self.config.singular_tolerance)
            raw = inverse @ (mean[idx] - rf)
            total = raw.sum()

            if total > _ZERO_SUM_TOLERANCE * np.abs(raw).sum():
                sub_weights = raw / total
                if not np.any(sub_weights < -_NEGATIVE_WEIGHT_TOLERANCE):
                    break
                position = _most_negative_index(sub_weights)
                value = sub_weights[position]
            else:
                # Normalizing a non-positive sum gives the minimum Sharpe portfolio
                position = _most_negative_index(raw)
                value = raw[position]

            dropped = active.pop(position)
            logger.debug(
                f"Dropping asset {dropped} ({assets[dropped]}) with weight {value:.6f}"
            )

        sub_weights = np.clip(sub_weights, 0.0, None)
        sub_weights = sub_weights / sub_weights.sum()

        weights = np.zeros(n_assets)
        weights[active] = sub_weights

        best = self._best_single_asset(mean, cov, rf)
        risk = portfolio_risk(weights, cov)
        single_sharpe = (mean[best] - rf) / np.sqrt(cov[best, best])
        sharpe = (portfolio_return(weights, mean) - rf) / risk if risk > 0.0 else -np.inf
        if single_sharpe > sharpe + _SHARPE_TOLERANCE:
            logger.debug(f"Single asset {best} ({assets[best]}) has the higher Sharpe ratio")
            weights = np.zeros(n_assets)
            weights[best] = 1.0
        return weights, iterations

    @staticmethod
    def _best_single_asset(mean: np.ndarray, cov: np.ndarray, rf: float) -> int:
        return int(np.argmax((mean - rf) / np.sqrt(np.diag(cov))))

    def minimum_variance(
        self,
        portfolio: "Portfolio",
        estimate: Optional[CovarianceEstimate] = None
    ) -> PortfolioAllocation:
        """
        Find the global Minimum Variance Portfolio (MVP).

        The MVP has the lowest possible risk among all fully invested
        portfolios. It is the leftmost point on the efficient frontier.
        Short selling is allowed.
        """
        if estimate is None:
            estimate = portfolio.estimate()
        weights = minimum_variance_weights(estimate.covariance, self.config.singular_tolerance)
        return build_allocation(
            portfolio.assets, weights, estimate.mean, estimate.covariance,
            portfolio.risk_free_rate
        )
