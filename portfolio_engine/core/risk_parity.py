"""
Risk Parity Allocation
======================

A risk parity portfolio gives every asset the same contribution to total
portfolio risk, regardless of expected returns:

    RC_i(w) = w_i * (Sigma * w)_i / sigma_p,    sum(RC_i) = sigma_p
    goal:     RC_i = sigma_p / K  for every i

The optimizer is a cyclical fixed-point iteration:

    INITIALIZING  w = 1/K
    ITERATING     for each i in turn, solve w_i * (Sigma * w)_i = sigma_p / K
                  for w_i with the other weights fixed, then w <- w / sum(w)
    CONVERGED     max_i |RC_i - target| < tolerance
    FAILED        max_iterations sweeps without convergence

With b_i = sum_{j != i} Sigma_ij w_j the coordinate equation is the
quadratic Sigma_ii w_i^2 + b_i w_i - sigma_p / K = 0, whose positive root

    w_i = (-b_i + sqrt(b_i^2 + 4 * Sigma_ii * sigma_p / K)) / (2 * Sigma_ii)

is the new weight. A weight is left unchanged exactly when RC_i = target,
so the fixed point is the equal risk contribution portfolio. Every weight
stays strictly positive, also when negative correlation makes some RC_i
negative at the equal-weight start, and the sweeps converge for any
positive definite Sigma.
"""

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from portfolio_engine.core.config import RiskParityConfig
from portfolio_engine.core.covariance import CovarianceEstimate
from portfolio_engine.core.exceptions import CancelledError, ConvergenceError
from portfolio_engine.core.metrics import (
    PortfolioAllocation,
    build_allocation,
    portfolio_risk,
    risk_contributions,
)
from portfolio_engine.core.optimizer import Optimizer

if TYPE_CHECKING:
    from portfolio_engine.core.portfolio import Portfolio, ReturnsInput

logger = logging.getLogger(__name__)


class RiskParityState(Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"
    FAILED = "failed"


class RiskParityOptimizer(Optimizer):
    """
    Equal risk contribution optimizer.

    Example:
        >>> optimizer = RiskParityOptimizer(RiskParityConfig(tolerance=1e-8))
        >>> allocation = optimizer.optimize(portfolio)
        >>> optimizer.calculate_risk_contributions(allocation)
        array([0.0112, 0.0112, 0.0112])
    """

    def __init__(self, config: Optional[RiskParityConfig] = None):
        self.config = config if config is not None else RiskParityConfig()

    def optimize(
        self,
        portfolio: "Portfolio",
        estimate: Optional[CovarianceEstimate] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> PortfolioAllocation:
        """
        Find the risk parity allocation.

        Args:
            portfolio: Assets and returns
            estimate: Optional precomputed mean/covariance estimate
            cancel_event: Optional event checked once per iteration

        Returns:
            PortfolioAllocation with equal risk contributions

        Raises:
            DegenerateAssetError: If an asset has zero variance
            ConvergenceError: If max_iterations updates do not converge
            CancelledError: If cancel_event is set before convergence
        """
        if estimate is None:
            estimate = portfolio.estimate()
        cov = estimate.covariance
        n_assets = cov.shape[0]

        state = RiskParityState.INITIALIZING
        weights = np.full(n_assets, 1.0 / n_assets)
        iteration = 0

        while True:
            risk = portfolio_risk(weights, cov)
            contributions = risk_contributions(weights, cov)
            target = risk / n_assets
            residual = float(np.max(np.abs(contributions - target)))

            if residual < self.config.tolerance:
                state = RiskParityState.CONVERGED
                break

            if iteration >= self.config.max_iterations:
                state = RiskParityState.FAILED
                logger.warning(
                    f"Risk parity {state.value} after {iteration} iterations "
                    f"(residual {residual:.3e})"
                )
                raise ConvergenceError(weights, residual, iteration)

            if cancel_event is not None and cancel_event.is_set():
                raise CancelledError(f"Risk parity cancelled at iteration {iteration}")

            state = RiskParityState.ITERATING
            weights = self._sweep(weights, cov)
            iteration += 1
            logger.debug(f"Iteration {iteration}: residual {residual:.3e}")

        logger.info(f"Risk parity {state.value} after {iteration} iterations")
        return build_allocation(
            portfolio.assets, weights, estimate.mean, cov, portfolio.risk_free_rate, iteration
        )

    @staticmethod
    def _sweep(weights: np.ndarray, cov: np.ndarray) -> np.ndarray:
        """One cyclical pass of the coordinate equations, renormalized."""
        n_assets = weights.shape[0]
        weights = weights.copy()
        sigma_w = cov @ weights

        for i in range(n_assets):
            budget = portfolio_risk(weights, cov) / n_assets
            diag = cov[i, i]
            b = sigma_w[i] - diag * weights[i]
            new = (-b + np.sqrt(b * b + 4.0 * diag * budget)) / (2.0 * diag)
            sigma_w += cov[:, i] * (new - weights[i])
            weights[i] = new

        return weights / weights.sum()

    def optimize_returns(
        self,
        assets: Sequence[str],
        returns: Sequence["ReturnsInput"],
        risk_free_rate: float = 0.0
    ) -> PortfolioAllocation:
        """Risk parity allocation straight from asset names and return series."""
        from portfolio_engine.core.portfolio import Portfolio

        return self.optimize(Portfolio(assets, returns, risk_free_rate))

    @staticmethod
    def calculate_risk_contributions(allocation: PortfolioAllocation) -> np.ndarray:
        """RC_i of each asset in the allocation; they sum to allocation.risk."""
        return np.array(allocation.risk_contributions)
