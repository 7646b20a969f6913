"""
Error Taxonomy for Portfolio Optimization
=========================================

Every failure raised by the engine derives from PortfolioEngineError and
from the closest builtin exception, so code that already catches
ValueError around an optimizer keeps working.

Errors are raised eagerly at the boundary of the failing operation.
No optimizer ever returns a partial or best-effort allocation.
"""

from typing import Optional

import numpy as np


class PortfolioEngineError(Exception):
    """Base class for all portfolio engine errors."""


class InsufficientDataError(PortfolioEngineError, ValueError):
    """Too few observations (fewer than 2 periods) or no assets."""


class DimensionMismatchError(PortfolioEngineError, ValueError):
    """Weight vector or asset list does not match the number of assets."""


class MisalignedPeriodsError(PortfolioEngineError, ValueError):
    """Return series do not share the same length and period ordering."""


class DegenerateAssetError(PortfolioEngineError, ValueError):
    """An asset has zero sample variance, so its correlation is undefined."""

    def __init__(self, asset_index: int, asset: Optional[str] = None):
        self.asset_index = asset_index
        self.asset = asset
        label = f"'{asset}' (index {asset_index})" if asset else f"index {asset_index}"
        super().__init__(
            f"Asset {label} has zero sample variance; correlation is undefined"
        )


class SingularCovarianceError(PortfolioEngineError, ArithmeticError):
    """Covariance matrix cannot be inverted, even by pseudo-inverse."""


class InvalidParameterError(PortfolioEngineError, ValueError):
    """A configuration value or argument is outside its valid range."""


class ConvergenceError(PortfolioEngineError, RuntimeError):
    """
    An iterative optimizer exhausted its iteration budget.

    Attributes:
        weights: Last iterate (read-only copy)
        residual: max |RC_i - target| of the last iterate
        iterations: Number of updates performed
    """

    def __init__(self, weights: np.ndarray, residual: float, iterations: int):
        self.weights = np.array(weights, dtype=float)
        self.weights.setflags(write=False)
        self.residual = float(residual)
        self.iterations = int(iterations)
        super().__init__(
            f"Did not converge after {self.iterations} iterations "
            f"(residual {self.residual:.3e})"
        )


class ZeroRiskError(PortfolioEngineError, ZeroDivisionError):
    """Sharpe ratio is undefined: zero risk with non-zero excess return."""


class CancelledError(PortfolioEngineError):
    """A cooperative cancellation signal stopped the computation."""
