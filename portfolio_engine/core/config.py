"""Immutable configuration values for the optimizers."""

from dataclasses import dataclass
from typing import Optional

from portfolio_engine.core.exceptions import InvalidParameterError


# Condition numbers above 1/DEFAULT_SINGULAR_TOLERANCE switch to the pseudo-inverse
DEFAULT_SINGULAR_TOLERANCE = 1e-12


def _check_singular_tolerance(value: float) -> None:
    if not 0.0 < value < 1.0:
        raise InvalidParameterError(
            f"singular_tolerance must be in (0, 1), got {value}"
        )


@dataclass(frozen=True)
class MeanVarianceConfig:
    """
    Settings for the tangency (maximum Sharpe ratio) optimizer.

    Attributes:
        long_only: If True, no weight may be negative (active-set fallback)
        singular_tolerance: Reciprocal condition number below which the
            covariance matrix is treated as singular
    """

    long_only: bool = True
    singular_tolerance: float = DEFAULT_SINGULAR_TOLERANCE

    def __post_init__(self):
        _check_singular_tolerance(self.singular_tolerance)


@dataclass(frozen=True)
class FrontierConfig:
    """
    Settings for efficient frontier generation.

    Attributes:
        singular_tolerance: See MeanVarianceConfig
        max_workers: Thread pool size for collect(); None or 1 runs serially
    """

    singular_tolerance: float = DEFAULT_SINGULAR_TOLERANCE
    max_workers: Optional[int] = None

    def __post_init__(self):
        _check_singular_tolerance(self.singular_tolerance)
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidParameterError(
                f"max_workers must be a positive integer, got {self.max_workers}"
            )

@dataclass(frozen=True)
class RiskParityConfig:
    """
    Settings for the risk parity fixed-point iteration.

    Attributes:
        tolerance: Convergence threshold on max |RC_i - risk/K|
        max_iterations: Number of update sweeps allowed before ConvergenceError
    """

    tolerance: float = 1e-6
    max_iterations: int = 1000

    def __post_init__(self):
        if not self.tolerance > 0.0:
            raise InvalidParameterError(
                f"tolerance must be positive, got {self.tolerance}"
            )
        if self.max_iterations < 0:
            raise InvalidParameterError(
                f"max_iterations must be non-negative, got {self.max_iterations}"
            )
