"""
Efficient Frontier Generation
=============================

For a target return t, the minimum variance portfolio subject to
sum(w) = 1 and w^T * mu = t has the closed-form Lagrangian solution

    w = Sigma^-1 * (lambda_1 * 1 + lambda_2 * mu)

    [ A  B ] [lambda_1]   [1]        A = 1^T  Sigma^-1 1
    [ B  C ] [lambda_2] = [t]        B = 1^T  Sigma^-1 mu
                                     C = mu^T Sigma^-1 mu

The frontier sweeps evenly spaced targets from the minimum variance
portfolio's return to the maximum single-asset expected return. With short
positions the MVP return can lie above that maximum, in which case the
targets run downward. Portfolio variance is a parabola in t with its vertex
at the MVP return, so either way the points come out in ascending order of
risk.

Points are independent of each other. EfficientFrontier computes them
lazily on iteration, or on a thread pool with collect(max_workers=...).

The Capital Market Line (combinations of the risk-free asset with the
tangent portfolio) is provided as well.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from portfolio_engine.core.config import FrontierConfig
from portfolio_engine.core.covariance import CovarianceEstimate, invert_covariance
from portfolio_engine.core.exceptions import (
    CancelledError,
    InvalidParameterError,
    SingularCovarianceError,
)
from portfolio_engine.core.metrics import PortfolioAllocation, build_allocation
from portfolio_engine.core.optimizer import tangency_weights

if TYPE_CHECKING:
    from portfolio_engine.core.portfolio import Portfolio

logger = logging.getLogger(__name__)


class _FrontierSolver:
    """Precomputed Sigma^-1 terms shared by every point of one frontier."""

    def __init__(self, portfolio: "Portfolio", estimate: CovarianceEstimate,
                 singular_tolerance: float):
        self.assets = portfolio.assets
        self.risk_free_rate = portfolio.risk_free_rate
        self.mean = estimate.mean
        self.cov = estimate.covariance
        self.singular_tolerance = singular_tolerance

        ones = np.ones(self.mean.shape[0])
        inverse = invert_covariance(self.cov, singular_tolerance)
        self.inv_ones = inverse @ ones
        self.inv_mu = inverse @ self.mean

        A = float(ones @ self.inv_ones)
        B = float(ones @ self.inv_mu)
        C = float(self.mean @ self.inv_mu)
        if not A > 0.0:
            raise SingularCovarianceError(
                f"Inverse covariance gives non-positive 1^T Sigma^-1 1 ({A:.3e})"
            )
        self.system = np.array([[A, B], [B, C]])

        # Vertex of the frontier parabola
        self.min_variance_return = B / A

    def weights_for(self, target: float) -> np.ndarray:
        rhs = np.array([1.0, target])
        if np.linalg.cond(self.system) > 1.0 / self.singular_tolerance:
            # All expected returns equal: the two constraints coincide
            lambdas = np.linalg.pinv(self.system) @ rhs
        else:
            lambdas = np.linalg.solve(self.system, rhs)
        return lambdas[0] * self.inv_ones + lambdas[1] * self.inv_mu

    def solve(self, target: float) -> PortfolioAllocation:
        weights = self.weights_for(target)
        return build_allocation(
            self.assets, weights, self.mean, self.cov, self.risk_free_rate
        )


class EfficientFrontier:
    """
    Lazy, finite, restartable sequence of frontier portfolios.

    Each iteration recomputes the points from the shared precomputed terms,
    in ascending order of risk, starting at the minimum variance portfolio.

    Attributes:
        target_returns (np.ndarray): Target return of each point
    """

    def __init__(self, solver: _FrontierSolver, target_returns: np.ndarray,
                 max_workers: Optional[int] = None,
                 cancel_event: Optional[threading.Event] = None):
        self._solver = solver
        self.target_returns = target_returns
        self.target_returns.setflags(write=False)
        self.max_workers = max_workers
        self.cancel_event = cancel_event

    def __len__(self) -> int:
        return self.target_returns.shape[0]

    def __iter__(self) -> Iterator[PortfolioAllocation]:
        for target in self.target_returns:
            self._check_cancelled()
            yield self._solver.solve(target)

    def __getitem__(
        self, index: Union[int, slice]
    ) -> Union[PortfolioAllocation, List[PortfolioAllocation]]:
        if isinstance(index, slice):
            return [self._solver.solve(t) for t in self.target_returns[index]]
        return self._solver.solve(self.target_returns[index])

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise CancelledError("Efficient frontier generation cancelled")

    def collect(self, max_workers: Optional[int] = None) -> List[PortfolioAllocation]:
        """
        Compute all points, optionally on a thread pool.

        Results are returned in target order regardless of completion
        order. A set cancel_event stops dispatching, cancels pending points
        and raises CancelledError.

        Args:
            max_workers: Thread count; defaults to the frontier's setting.
                None or 1 computes the points serially.
        """
        if max_workers is None:
            max_workers = self.max_workers
        if max_workers is None or max_workers <= 1 or len(self) == 1:
            return list(self)

        logger.debug(f"Computing {len(self)} frontier points on {max_workers} threads")
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = []
            try:
                for target in self.target_returns:
                    self._check_cancelled()
                    futures.append(executor.submit(self._solver.solve, target))

                results = []
                for future in futures:
                    self._check_cancelled()
                    results.append(future.result())
            except CancelledError:
                for future in futures:
                    future.cancel()
                raise
        return results

    @property
    def minimum_variance_portfolio(self) -> PortfolioAllocation:
        """Lowest-risk point on the frontier."""
        return min(self, key=lambda a: a.risk)

    @property
    def maximum_sharpe_portfolio(self) -> PortfolioAllocation:
        """Frontier point with the highest Sharpe ratio."""
        return max(self, key=lambda a: a.sharpe_ratio)

    def to_frame(self) -> pd.DataFrame:
        """
        Frontier as a DataFrame: one row per point with target, return,
        std, Sharpe ratio and one weight column per asset.
        """
        rows = []
        for target, allocation in zip(self.target_returns, self.collect()):
            row = {
                "target": target,
                "mean": allocation.expected_return,
                "std": allocation.risk,
                "sharpe": allocation.sharpe_ratio,
            }
            row.update(zip(allocation.assets, allocation.weights))
            rows.append(row)
        return pd.DataFrame(rows)


class EfficientFrontierGenerator:
    """
    Traces the efficient frontier with the closed-form Lagrangian solution.

    Example:
        >>> generator = EfficientFrontierGenerator()
        >>> frontier = generator.generate(portfolio, points=20)
        >>> risks = [p.risk for p in frontier]
    """

    def __init__(self, config: Optional[FrontierConfig] = None):
        self.config = config if config is not None else FrontierConfig()

    def generate(
        self,
        portfolio: "Portfolio",
        points: int,
        estimate: Optional[CovarianceEstimate] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> EfficientFrontier:
        """
        Build the frontier sequence.

        Inputs are validated and Sigma^-1 is computed eagerly; the points
        themselves are computed when the sequence is consumed.

        Args:
            portfolio: Assets and returns
            points: Number of frontier points, at least 2
            estimate: Optional precomputed mean/covariance estimate
            cancel_event: Optional event checked before each point

        Raises:
            InvalidParameterError: If points < 2
            DegenerateAssetError: If an asset has zero variance
            SingularCovarianceError: If the covariance cannot be inverted
        """
        if isinstance(points, bool) or not isinstance(points, (int, np.integer)) or points < 2:
            raise InvalidParameterError(f"points must be an integer >= 2, got {points!r}")

        if estimate is None:
            estimate = portfolio.estimate()
        solver = _FrontierSolver(portfolio, estimate, self.config.singular_tolerance)

        min_ret = solver.min_variance_return
        max_ret = float(np.max(estimate.mean))
        targets = np.linspace(min_ret, max_ret, int(points))
        logger.debug(
            f"Frontier targets from {min_ret:.6f} to {max_ret:.6f} ({points} points)"
        )
        return EfficientFrontier(solver, targets, self.config.max_workers, cancel_event)

    def minimum_variance_for_return(
        self,
        portfolio: "Portfolio",
        target_return: float,
        estimate: Optional[CovarianceEstimate] = None
    ) -> PortfolioAllocation:
        """
        Minimum variance portfolio for a single target return.

        This traces one point on the efficient frontier.
        """
        if estimate is None:
            estimate = portfolio.estimate()
        solver = _FrontierSolver(portfolio, estimate, self.config.singular_tolerance)
        return solver.solve(float(target_return))


def capital_market_line(
    portfolio: "Portfolio",
    n_points: int = 100,
    max_leverage: float = 2.0,
    estimate: Optional[CovarianceEstimate] = None,
    singular_tolerance: Optional[float] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute the Capital Market Line (CML).

    The CML combines the risk-free asset with the (unconstrained) tangent
    portfolio. For a weight w_t on the tangent portfolio:
    - mean = w_t * mu_t + (1 - w_t) * rf
    - std = w_t * sigma_t (rf has zero risk)

    Args:
        portfolio: Assets and returns
        n_points: Number of points on the CML
        max_leverage: Maximum weight on the tangent portfolio
        estimate: Optional precomputed mean/covariance estimate
        singular_tolerance: Defaults to FrontierConfig's value

    Returns:
        Tuple of (returns, stds)
    """
    if n_points < 2:
        raise InvalidParameterError(f"n_points must be >= 2, got {n_points}")
    if max_leverage <= 0:
        raise InvalidParameterError(f"max_leverage must be positive, got {max_leverage}")
    if singular_tolerance is None:
        singular_tolerance = FrontierConfig().singular_tolerance
    if estimate is None:
        estimate = portfolio.estimate()

    rf = portfolio.risk_free_rate
    weights = tangency_weights(estimate.mean, estimate.covariance, rf, singular_tolerance)
    tangent = build_allocation(portfolio.assets, weights, estimate.mean, estimate.covariance, rf)

    weights_tangent = np.linspace(0.0, max_leverage, n_points)
    cml_returns = weights_tangent * tangent.expected_return + (1 - weights_tangent) * rf
    cml_stds = weights_tangent * tangent.risk
    return cml_returns, cml_stds
