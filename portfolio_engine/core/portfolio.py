"""
Portfolio Container
===================

A Portfolio bundles asset identifiers, their aligned historical return
series and a per-period risk-free rate. It is the input to every
optimizer and exposes the library-level call surface:

    >>> portfolio = Portfolio(
    ...     assets=["Stock A", "Stock B", "Bonds"],
    ...     returns=[stock_a, stock_b, bonds],
    ...     risk_free_rate=0.02 / 12,
    ... )
    >>> optimal = portfolio.optimize_portfolio()
    >>> frontier = portfolio.efficient_frontier(points=20)

The portfolio owns read-only copies of its data. Statistics are recomputed
on each call; pass a precomputed CovarianceEstimate to the optimizers to
reuse one explicitly.
"""

from dataclasses import dataclass
from typing import Hashable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from portfolio_engine.core import metrics
from portfolio_engine.core.covariance import CovarianceEstimate, CovarianceEstimator
from portfolio_engine.core.exceptions import (
    DimensionMismatchError,
    InsufficientDataError,
    InvalidParameterError,
    MisalignedPeriodsError,
)


@dataclass(frozen=True, eq=False)
class AssetSeries:
    """
    Period-aligned return observations for one asset.

    Attributes:
        asset: Asset identifier
        values: Return per period (read-only)
        periods: Optional period labels, same length as values
    """

    asset: str
    values: np.ndarray
    periods: Optional[Tuple[Hashable, ...]] = None

    def __post_init__(self):
        values = np.array(self.values, dtype=float).flatten()
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

        if self.periods is not None:
            periods = tuple(self.periods)
            if len(periods) != values.shape[0]:
                raise MisalignedPeriodsError(
                    f"Asset '{self.asset}': {len(periods)} periods for {values.shape[0]} values"
                )
            object.__setattr__(self, "periods", periods)

    def __len__(self) -> int:
        return self.values.shape[0]

    @classmethod
    def from_series(cls, series: pd.Series, asset: Optional[str] = None) -> "AssetSeries":
        """Build from a pandas Series; its index becomes the period labels."""
        name = asset if asset is not None else series.name
        if name is None:
            raise InvalidParameterError("Series has no name and no asset was given")
        return cls(asset=str(name), values=series.to_numpy(dtype=float), periods=tuple(series.index))


ReturnsInput = Union[AssetSeries, pd.Series, Sequence[float], np.ndarray]


class Portfolio:
    """
    Assets, their historical returns and a risk-free rate.

    Attributes:
        assets (Tuple[str, ...]): Asset identifiers
        returns (Tuple[AssetSeries, ...]): One series per asset
        risk_free_rate (float): Per-period risk-free rate
        n_assets (int): K
        n_periods (int): N
    """

    def __init__(
        self,
        assets: Sequence[str],
        returns: Sequence[ReturnsInput],
        risk_free_rate: float = 0.0
    ):
        """
        Initialize the Portfolio.

        Args:
            assets: Asset identifiers
            returns: One return series per asset: AssetSeries, pandas
                Series or any numeric sequence
            risk_free_rate: Risk-free rate in the same period units as returns

        Raises:
            DimensionMismatchError: If len(assets) != len(returns)
            InsufficientDataError: If any series has fewer than 2 values
            MisalignedPeriodsError: If series lengths or periods differ
            InvalidParameterError: If there are no assets or values are not finite
        """
        assets = [str(a) for a in assets]
        returns = list(returns)

        if len(assets) != len(returns):
            raise DimensionMismatchError(
                f"{len(assets)} assets but {len(returns)} return series"
            )
        if not assets:
            raise InvalidParameterError("A portfolio needs at least one asset")
        if not np.isfinite(risk_free_rate):
            raise InvalidParameterError(f"risk_free_rate must be finite, got {risk_free_rate}")

        series = tuple(self._to_series(name, r) for name, r in zip(assets, returns))
        self._validate_alignment(series)

        self.assets = tuple(assets)
        self.returns = series
        self.risk_free_rate = float(risk_free_rate)
        self.n_assets = len(series)
        self.n_periods = len(series[0])

        matrix = np.vstack([s.values for s in series])
        matrix.setflags(write=False)
        self._matrix = matrix
        self._estimator = CovarianceEstimator()

    @staticmethod
    def _to_series(name: str, data: ReturnsInput) -> AssetSeries:
        if isinstance(data, AssetSeries):
            if data.asset != name:
                raise InvalidParameterError(
                    f"Series for '{data.asset}' supplied for asset '{name}'"
                )
            series = data
        elif isinstance(data, pd.Series):
            series = AssetSeries.from_series(data, asset=name)
        else:
            series = AssetSeries(asset=name, values=data)

        if not np.all(np.isfinite(series.values)):
            raise InvalidParameterError(f"Asset '{name}' has non-finite returns")
        return series

    @staticmethod
    def _validate_alignment(series: Tuple[AssetSeries, ...]) -> None:
        for s in series:
            if len(s) < 2:
                raise InsufficientDataError(
                    f"Asset '{s.asset}' has {len(s)} observations; at least 2 are required"
                )

        length = len(series[0])
        for s in series[1:]:
            if len(s) != length:
                raise MisalignedPeriodsError(
                    f"Asset '{s.asset}' has {len(s)} observations, expected {length}"
                )

        # Series without labels are positionally aligned with anything
        labelled = [s for s in series if s.periods is not None]
        for s in labelled[1:]:
            if s.periods != labelled[0].periods:
                raise MisalignedPeriodsError(
                    f"Periods of '{s.asset}' do not match those of '{labelled[0].asset}'"
                )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @property
    def periods(self) -> Optional[Tuple[Hashable, ...]]:
        for s in self.returns:
            if s.periods is not None:
                return s.periods
        return None

    @property
    def expected_returns(self) -> np.ndarray:
        """Arithmetic mean return of each asset."""
        mean = self._matrix.mean(axis=1)
        mean.setflags(write=False)
        return mean

    def estimate(self) -> CovarianceEstimate:
        """
        Mean and covariance estimate used by the optimizers.

        Raises:
            DegenerateAssetError: If any asset has zero variance
        """
        return self._estimator.estimate(self._matrix, list(self.assets))

    def covariance_matrix(self) -> np.ndarray:
        """Sample covariance matrix, (N - 1) denominator."""
        return np.array(self._estimator.covariance(self._matrix))

    def correlation_matrix(self) -> np.ndarray:
        """
        Correlation matrix.

        Raises:
            DegenerateAssetError: If any asset has zero variance
        """
        return self._estimator.correlation(self._matrix, list(self.assets))

    def portfolio_return(self, weights: Sequence[float]) -> float:
        return metrics.portfolio_return(weights, self.expected_returns)

    def portfolio_risk(self, weights: Sequence[float]) -> float:
        return metrics.portfolio_risk(weights, self.covariance_matrix())

    def sharpe_ratio(self, weights: Sequence[float]) -> float:
        return metrics.sharpe_ratio(
            weights, self.expected_returns, self.covariance_matrix(), self.risk_free_rate
        )

    def asset_statistics(self) -> pd.DataFrame:
        """
        Individual asset statistics.

        Returns:
            DataFrame indexed by asset with mean, std and variance columns
        """
        cov = self.covariance_matrix()
        variance = np.diag(cov)
        return pd.DataFrame(
            {
                "mean": self.expected_returns,
                "std": np.sqrt(np.clip(variance, 0.0, None)),
                "variance": variance,
            },
            index=list(self.assets),
        )

    def to_frame(self) -> pd.DataFrame:
        """Returns as a DataFrame, rows = periods, columns = assets."""
        index = list(self.periods) if self.periods is not None else None
        return pd.DataFrame(self._matrix.T, index=index, columns=list(self.assets))

    # ------------------------------------------------------------------
    # Optimization entry points
    # ------------------------------------------------------------------

    def optimize_portfolio(self, long_only: bool = True) -> metrics.PortfolioAllocation:
        """Maximum Sharpe ratio (tangency) allocation."""
        from portfolio_engine.core.config import MeanVarianceConfig
        from portfolio_engine.core.optimizer import MeanVarianceOptimizer

        return MeanVarianceOptimizer(MeanVarianceConfig(long_only=long_only)).optimize(self)

    def minimum_variance_portfolio(self) -> metrics.PortfolioAllocation:
        """Global minimum variance allocation (short selling allowed)."""
        from portfolio_engine.core.optimizer import MeanVarianceOptimizer

        return MeanVarianceOptimizer().minimum_variance(self)

    def efficient_frontier(
        self,
        points: int = 20,
        max_workers: Optional[int] = None
    ) -> List[metrics.PortfolioAllocation]:
        """Minimum-variance portfolios for evenly spaced target returns, by ascending risk."""
        from portfolio_engine.core.config import FrontierConfig
        from portfolio_engine.core.frontier import EfficientFrontierGenerator

        generator = EfficientFrontierGenerator(FrontierConfig(max_workers=max_workers))
        return generator.generate(self, points).collect()

    def risk_parity(self, config=None) -> metrics.PortfolioAllocation:
        """Equal risk contribution allocation."""
        from portfolio_engine.core.risk_parity import RiskParityOptimizer

        return RiskParityOptimizer(config).optimize(self)

    def __len__(self) -> int:
        return self.n_assets

    def __repr__(self) -> str:
        return (
            f"Portfolio(assets={list(self.assets)}, n_periods={self.n_periods}, "
            f"risk_free_rate={self.risk_free_rate})"
        )
