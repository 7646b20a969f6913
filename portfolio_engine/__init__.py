"""
Portfolio Engine - Modern Portfolio Theory and Risk Parity
==========================================================

Closed-form portfolio optimization from historical return series.

Usage:
    from portfolio_engine import Portfolio, RiskParityOptimizer

    portfolio = Portfolio(["Stock A", "Stock B", "Bonds"], returns, 0.02 / 12)
    optimal = portfolio.optimize_portfolio()
    frontier = portfolio.efficient_frontier(points=20)
    parity = RiskParityOptimizer().optimize(portfolio)

Classes:
    Portfolio - Assets, aligned returns and risk-free rate
    CovarianceEstimator - Sample mean, covariance and correlation
    MeanVarianceOptimizer - Tangency (maximum Sharpe ratio) portfolio
    EfficientFrontierGenerator - Minimum variance portfolios per target return
    RiskParityOptimizer - Equal risk contribution portfolio
    DataLoader - Portfolios from DataFrames, arrays and mappings

Functions:
    capital_market_line - Risk-free asset mixed with the tangent portfolio
    generate_sample_returns - Create synthetic test data
    setup_logger - Console/file logging for the engine
"""

from portfolio_engine.core.config import FrontierConfig, MeanVarianceConfig, RiskParityConfig
from portfolio_engine.core.covariance import CovarianceEstimate, CovarianceEstimator
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
from portfolio_engine.core.frontier import EfficientFrontierGenerator, capital_market_line
from portfolio_engine.core.loader import DataLoader, generate_sample_returns
from portfolio_engine.core.metrics import PortfolioAllocation
from portfolio_engine.core.optimizer import MeanVarianceOptimizer
from portfolio_engine.core.portfolio import AssetSeries, Portfolio
from portfolio_engine.core.risk_parity import RiskParityOptimizer
from portfolio_engine.log import setup_logger

__version__ = "1.0.0"

__all__ = [
    "AssetSeries",
    "CancelledError",
    "ConvergenceError",
    "CovarianceEstimate",
    "CovarianceEstimator",
    "DataLoader",
    "DegenerateAssetError",
    "DimensionMismatchError",
    "EfficientFrontierGenerator",
    "FrontierConfig",
    "InsufficientDataError",
    "InvalidParameterError",
    "MeanVarianceConfig",
    "MeanVarianceOptimizer",
    "MisalignedPeriodsError",
    "Portfolio",
    "PortfolioAllocation",
    "PortfolioEngineError",
    "RiskParityConfig",
    "RiskParityOptimizer",
    "SingularCovarianceError",
    "ZeroRiskError",
    "capital_market_line",
    "generate_sample_returns",
    "setup_logger",
]
