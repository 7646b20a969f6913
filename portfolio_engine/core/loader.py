"""
Data Loader Module for Portfolio Optimization
=============================================

This module turns in-memory return data into Portfolio objects:

- pandas DataFrames (rows = periods, columns = assets)
- 2D numpy arrays with optional asset names
- Mappings of asset name to return sequence

Reading files is left to the caller; pass the resulting DataFrame to
DataLoader.from_frame(). Rows containing NaN are dropped, so assets with
different histories end up aligned on their common periods.

It also provides diagnostics on a portfolio's covariance matrix and a
synthetic return generator for demonstrations and tests.
"""

import logging
import warnings
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from portfolio_engine.core.exceptions import InvalidParameterError
from portfolio_engine.core.portfolio import Portfolio

logger = logging.getLogger(__name__)


class DataLoader:
    """
    Build portfolios from in-memory return data.

    Example:
        >>> loader = DataLoader(risk_free_rate=0.02 / 12)
        >>> portfolio = loader.from_frame(monthly_returns_df)
    """

    def __init__(self, risk_free_rate: float = 0.0):
        """
        Initialize the DataLoader.

        Args:
            risk_free_rate: Per-period risk-free rate given to every portfolio
        """
        self.rf_rate = risk_free_rate

    def from_frame(
        self,
        df: pd.DataFrame,
        exclude_columns: Optional[List[str]] = None
    ) -> Portfolio:
        """
        Load a DataFrame of returns.

        Args:
            df: Returns with one column per asset; the index holds periods
            exclude_columns: Columns to leave out (e.g. ['SPY'] for the market)

        Returns:
            Portfolio over the remaining columns
        """
        if exclude_columns:
            df = df.drop(columns=[c for c in exclude_columns if c in df.columns])

        # Coerce to numeric; anything unparseable becomes NaN and its row is dropped
        df = df.apply(pd.to_numeric, errors="coerce")
        n_rows = len(df)
        df = df.dropna(axis=0, how="any")
        if len(df) < n_rows:
            logger.info(f"Dropped {n_rows - len(df)} rows with missing returns")

        assets = [str(c) for c in df.columns]
        returns = [df[c] for c in df.columns]
        return Portfolio(assets, returns, self.rf_rate)

    def from_array(
        self,
        returns: np.ndarray,
        asset_names: Optional[List[str]] = None
    ) -> Portfolio:
        """
        Load a 2D array of returns (rows = time periods, cols = assets).

        Args:
            returns: Return data
            asset_names: Optional names (default: Asset_1, Asset_2, ...)
        """
        returns = np.array(returns, dtype=float)
        if returns.ndim == 1:
            returns = returns.reshape(-1, 1)

        n_assets = returns.shape[1]
        if asset_names is None:
            asset_names = [f"Asset_{i+1}" for i in range(n_assets)]

        frame = pd.DataFrame(returns, columns=list(asset_names))
        return self.from_frame(frame)

    def from_mapping(self, returns: Mapping[str, Sequence[float]]) -> Portfolio:
        """Load a mapping of asset name to return sequence, in mapping order."""
        return Portfolio(list(returns.keys()), list(returns.values()), self.rf_rate)

    def validate_data(self, portfolio: Portfolio) -> Dict[str, Any]:
        """
        Diagnose a portfolio's covariance matrix.

        Checks:
        - Zero-variance (degenerate) assets
        - Covariance matrix is positive semi-definite
        - Condition number (near-singular matrices fall back to the
          pseudo-inverse in the optimizers)

        Returns:
            Dictionary with validation results
        """
        cov = portfolio.covariance_matrix()
        results = {
            'is_valid': True,
            'warnings': [],
            'errors': [],
            'n_assets': portfolio.n_assets,
            'n_periods': portfolio.n_periods,
            'asset_names': list(portfolio.assets)
        }

        variances = np.diag(cov)
        for name, var in zip(portfolio.assets, variances):
            if var == 0.0:
                results['errors'].append(f"Asset '{name}' has zero variance")
                results['is_valid'] = False

        eigenvalues = np.linalg.eigvalsh(cov)
        if np.any(eigenvalues < -1e-10):
            results['warnings'].append(
                f"Covariance matrix has negative eigenvalues: "
                f"min = {eigenvalues.min():.6e}"
            )

        cond = np.linalg.cond(cov)
        if not np.isfinite(cond) or cond > 1e12:
            results['warnings'].append(
                f"Covariance matrix is near-singular (cond = {cond:.3e})"
            )

        mean = portfolio.expected_returns
        results['return_stats'] = {
            'min': float(mean.min()),
            'max': float(mean.max()),
            'mean': float(mean.mean())
        }

        stds = np.sqrt(np.clip(variances, 0.0, None))
        results['std_stats'] = {
            'min': float(stds.min()),
            'max': float(stds.max()),
            'mean': float(stds.mean())
        }

        return results


def get_subset(portfolio: Portfolio, selected_assets: List[str]) -> Portfolio:
    """
    Extract a subset of assets from a portfolio.

    Useful for analyzing different combinations of assets, or for dropping
    a degenerate asset reported by DegenerateAssetError.

    Args:
        portfolio: Full portfolio
        selected_assets: Names of assets to include, in the desired order

    Returns:
        New Portfolio with the same risk-free rate
    """
    series = []
    found_names = []
    for name in selected_assets:
        if name in portfolio.assets:
            series.append(portfolio.returns[portfolio.assets.index(name)])
            found_names.append(name)
        else:
            warnings.warn(f"Asset '{name}' not found in portfolio")

    if not found_names:
        raise InvalidParameterError("None of the selected assets are in the portfolio")
    return Portfolio(found_names, series, portfolio.risk_free_rate)


def generate_sample_returns(
    n_assets: int = 4,
    n_periods: int = 120,
    seed: int = 42
) -> Tuple[np.ndarray, List[str]]:
    """
    Generate sample monthly returns for testing.

    Returns share one market factor, so assets are positively correlated,
    with realistic monthly means between 0.5% and 1.5%.

    Args:
        n_assets: Number of assets (default: 4)
        n_periods: Number of periods (default: 120, ten years of months)
        seed: Random seed for reproducibility

    Returns:
        Tuple of (returns with rows = periods and cols = assets, asset_names)
    """
    rng = np.random.RandomState(seed)

    expected_returns = np.linspace(0.005, 0.015, n_assets)
    betas = np.linspace(0.6, 1.4, n_assets)
    idio_vol = np.linspace(0.02, 0.05, n_assets)

    market = rng.randn(n_periods) * 0.04
    noise = rng.randn(n_periods, n_assets) * idio_vol
    returns = expected_returns + np.outer(market, betas) + noise

    if n_assets == 4:
        asset_names = ['AAPL', 'AXP', 'BA', 'CAT']
    elif n_assets == 6:
        asset_names = ['AAPL', 'AXP', 'BA', 'CAT', 'CSCO', 'CVX']
    else:
        asset_names = [f'Stock_{i+1}' for i in range(n_assets)]

    return returns, asset_names
