"""
Rolling Fama–French factor regressions for a weighted stock portfolio.

This package contains reusable utilities for:
- Downloading and parsing the daily Fama–French factor files
- Building daily portfolio excess log-returns from adjusted close prices
- Fitting rolling OLS regressions of excess returns on the factors
- Charting per-window R² and factor loadings

The numerical core lives in `rolling_regression` and does not depend on
any of the download or plotting code.
"""

from .rolling_regression import (
    DatedObservation,
    InsufficientDataError,
    RegressionError,
    RegressionResult,
    RollingRegressionEngine,
    SingularDesignMatrixError,
    TimeSeriesPoint,
)

__all__ = [
    "DatedObservation",
    "InsufficientDataError",
    "RegressionError",
    "RegressionResult",
    "RollingRegressionEngine",
    "SingularDesignMatrixError",
    "TimeSeriesPoint",
]

__version__ = "0.1.0"
