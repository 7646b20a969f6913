"""Core computational modules for portfolio optimization."""

from portfolio_engine.core.config import FrontierConfig, MeanVarianceConfig, RiskParityConfig
from portfolio_engine.core.covariance import (
    CovarianceEstimate,
    CovarianceEstimator,
    invert_covariance,
)
from portfolio_engine.core.exceptions import (
    CancelledError,
    ConvergenceError,
    DegenerateAssetError,
    DimensionMismatchError,
    InsufficientDataError,
    InvalidParameterError,
    MisalignedPeriodsError,
    PortfolioEngineError,
    SingularCovarianceError,
    ZeroRiskError,
)
from portfolio_engine.core.frontier import (
    EfficientFrontier,
    EfficientFrontierGenerator,
    capital_market_line,
)
from portfolio_engine.core.loader import DataLoader, generate_sample_returns, get_subset
from portfolio_engine.core.metrics import (
    PortfolioAllocation,
    build_allocation,
    portfolio_return,
    portfolio_risk,
    portfolio_variance,
    risk_contributions,
    sharpe_ratio,
)
from portfolio_engine.core.optimizer import MeanVarianceOptimizer, Optimizer
from portfolio_engine.core.portfolio import AssetSeries, Portfolio
from portfolio_engine.core.risk_parity import RiskParityOptimizer, RiskParityState

__all__ = [
    "AssetSeries",
    "CancelledError",
    "ConvergenceError",
    "CovarianceEstimate",
    "CovarianceEstimator",
    "DataLoader",
    "DegenerateAssetError",
    "DimensionMismatchError",
    "EfficientFrontier",
    "EfficientFrontierGenerator",
    "FrontierConfig",
    "InsufficientDataError",
    "InvalidParameterError",
    "MeanVarianceConfig",
    "MeanVarianceOptimizer",
    "MisalignedPeriodsError",
    "Optimizer",
    "Portfolio",
    "PortfolioAllocation",
    "PortfolioEngineError",
    "RiskParityConfig",
    "RiskParityOptimizer",
    "RiskParityState",
    "SingularCovarianceError",
    "ZeroRiskError",
    "build_allocation",
    "capital_market_line",
    "generate_sample_returns",
    "get_subset",
    "invert_covariance",
    "portfolio_return",
    "portfolio_risk",
    "portfolio_variance",
    "risk_contributions",
    "sharpe_ratio",
]
