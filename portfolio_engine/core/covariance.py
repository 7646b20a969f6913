"""
Covariance Estimation
=====================

This module turns aligned historical return series into the sample
statistics every optimizer needs:

- Arithmetic mean per asset (expected returns)
- Sample covariance matrix, (N - 1) denominator
- Correlation matrix

It also owns the matrix inversion policy shared by the mean-variance
optimizer and the efficient frontier generator:

1. Invert directly when the covariance matrix is well conditioned
2. Fall back to the Moore-Penrose pseudo-inverse when it is singular or
   nearly so (perfectly correlated assets, more assets than periods)
3. Raise SingularCovarianceError if even the pseudo-inverse is not finite
"""

import logging
import warnings
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
from scipy import linalg

from portfolio_engine.core.config import DEFAULT_SINGULAR_TOLERANCE
from portfolio_engine.core.exceptions import (
    DegenerateAssetError,
    InsufficientDataError,
    MisalignedPeriodsError,
    SingularCovarianceError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class CovarianceEstimate:
    """
    Sample statistics of K aligned return series.

    Attributes:
        mean: Expected return of each asset (K,)
        covariance: Symmetric sample covariance matrix (K, K)
        n_observations: Number of periods N used for the estimate
    """

    mean: np.ndarray
    covariance: np.ndarray
    n_observations: int

    @property
    def n_assets(self) -> int:
        return self.mean.shape[0]

    @property
    def std_devs(self) -> np.ndarray:
        """Per-asset standard deviation, sqrt of the covariance diagonal."""
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    def correlation(self) -> np.ndarray:
        """
        Correlation matrix: Cov(i, j) / (std_i * std_j).

        Raises:
            DegenerateAssetError: If any asset has zero variance
        """
        std = self.std_devs
        zero = np.flatnonzero(std == 0.0)
        if zero.size:
            raise DegenerateAssetError(int(zero[0]))
        corr = self.covariance / np.outer(std, std)
        np.fill_diagonal(corr, 1.0)
        return corr


class CovarianceEstimator:
    """
    Estimate means, covariances and correlations from return series.

    The input is a list of K sequences, one per asset, each holding the same
    N period-aligned observations. Nothing is cached between calls.

    Example:
        >>> estimator = CovarianceEstimator()
        >>> est = estimator.estimate([[0.01, 0.03, -0.02], [0.02, 0.01, 0.00]])
        >>> est.covariance.shape
        (2, 2)
    """

    def estimate(
        self,
        series: Sequence[Sequence[float]],
        asset_names: Optional[List[str]] = None
    ) -> CovarianceEstimate:
        """
        Compute mean vector and sample covariance matrix.

        Args:
            series: K aligned return sequences of length N
            asset_names: Optional names used in error messages

        Returns:
            CovarianceEstimate with read-only arrays

        Raises:
            InsufficientDataError: If N < 2
            DegenerateAssetError: If an asset's sample variance is exactly 0
        """
        data = self._as_matrix(series)
        self._check_degenerate(data, asset_names)
        return self._build(data)

    def covariance(self, series: Sequence[Sequence[float]]) -> np.ndarray:
        """
        Sample covariance matrix without the zero-variance check.

        Portfolio risk stays well defined for constant series, so metric
        functions use this instead of estimate().
        """
        return self._build(self._as_matrix(series)).covariance

    def correlation(
        self,
        series: Sequence[Sequence[float]],
        asset_names: Optional[List[str]] = None
    ) -> np.ndarray:
        """Correlation matrix; raises DegenerateAssetError on zero variance."""
        return self.estimate(series, asset_names).correlation()

    @staticmethod
    def _as_matrix(series: Sequence[Sequence[float]]) -> np.ndarray:
        try:
            data = np.array(series, dtype=float)
        except ValueError as exc:
            # Ragged input cannot form a (K, N) array
            raise MisalignedPeriodsError(
                "All return series must have the same number of observations"
            ) from exc

        if data.ndim == 1:
            data = data.reshape(1, -1)
        if data.ndim != 2:
            raise MisalignedPeriodsError(
                f"Expected K sequences of N returns, got array of shape {data.shape}"
            )
        if data.shape[1] < 2:
            raise InsufficientDataError(
                f"At least 2 observations are required, got {data.shape[1]}"
            )
        return data

    @staticmethod
    def _check_degenerate(data: np.ndarray, asset_names: Optional[List[str]]) -> None:
        # A constant series has exactly zero sample variance
        constant = np.flatnonzero(np.ptp(data, axis=1) == 0.0)
        if constant.size:
            index = int(constant[0])
            name = asset_names[index] if asset_names else None
            raise DegenerateAssetError(index, name)

    @staticmethod
    def _build(data: np.ndarray) -> CovarianceEstimate:
        n_obs = data.shape[1]
        mean = data.mean(axis=1)

        deviations = data - mean[:, None]
        # Constant rows contribute exactly zero, not rounding noise
        deviations[np.ptp(data, axis=1) == 0.0] = 0.0
        cov = deviations @ deviations.T / (n_obs - 1)
        cov = (cov + cov.T) / 2

        mean.setflags(write=False)
        cov.setflags(write=False)
        return CovarianceEstimate(mean=mean, covariance=cov, n_observations=n_obs)


def invert_covariance(
    cov_matrix: np.ndarray,
    singular_tolerance: float = DEFAULT_SINGULAR_TOLERANCE
) -> np.ndarray:
    """
    Invert a covariance matrix, falling back to the pseudo-inverse.

    A matrix is treated as singular when its condition number exceeds
    1 / singular_tolerance or when LAPACK reports it as singular.

    Args:
        cov_matrix: Square covariance matrix
        singular_tolerance: Reciprocal condition number threshold

    Returns:
        Inverse (or pseudo-inverse) of the matrix

    Raises:
        SingularCovarianceError: If the pseudo-inverse is not finite either
    """
    cov_matrix = np.asarray(cov_matrix, dtype=float)

    if not np.allclose(cov_matrix, cov_matrix.T):
        warnings.warn("Covariance matrix is not symmetric. Symmetrizing...")
        cov_matrix = (cov_matrix + cov_matrix.T) / 2

    if not np.all(np.isfinite(cov_matrix)):
        raise SingularCovarianceError("Covariance matrix contains non-finite entries")

    cond = np.linalg.cond(cov_matrix)
    if np.isfinite(cond) and cond <= 1.0 / singular_tolerance:
        try:
            return linalg.inv(cov_matrix)
        except linalg.LinAlgError:
            logger.debug("Direct inversion failed, using pseudo-inverse")

    warnings.warn(
        f"Covariance matrix is singular or ill-conditioned (cond={cond:.3e}). "
        "Using the Moore-Penrose pseudo-inverse."
    )
    try:
        inverse = linalg.pinv(cov_matrix)
    except (linalg.LinAlgError, ValueError) as exc:
        raise SingularCovarianceError(f"Pseudo-inverse failed: {exc}") from exc

    if not np.all(np.isfinite(inverse)):
        raise SingularCovarianceError("Pseudo-inverse of covariance matrix is not finite")
    return inverse
