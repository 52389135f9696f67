"""
Section-level workflow entry points for the rolling factor regression.

Design goal: keep notebooks and the CLI to descriptive function calls, with
data loading, joining and fitting delegated to reusable module code. Each
entry point returns a plain dict so results can be inspected, tabulated or
handed to `plot_rolling` without further wiring.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

from .config import CONDITION_NUMBER_THRESHOLD, DEFAULT_FACTOR_MODEL, DEFAULT_WINDOW
from .portfolio import PortfolioWeights, excess_returns, log_returns, portfolio_log_returns
from .process_french import load_factors_daily, select_factors
from .rolling_regression import (
    INTERCEPT,
    RollingRegressionEngine,
    coefficients_series,
    results_to_frame,
    series_to_points,
    summarize,
)
from .stock_data import load_prices_daily

logger = logging.getLogger(__name__)

EXCESS_COLUMN = "excess"


def build_regression_frame(
    portfolio_returns: pd.Series,
    factors: pd.DataFrame,
    rf: pd.Series,
) -> pd.DataFrame:
    """
    Join portfolio excess returns with the factors on date.

    Inner join: dates missing on either side are dropped. The factor files
    usually lag prices, so the most recent trading days fall out here.

    Returns
    -------
    DataFrame
        Column `excess` followed by the factor columns, ascending dates.
    """
    excess = excess_returns(portfolio_returns, rf)
    frame = pd.concat([excess, factors], axis=1, join="inner").dropna().sort_index()
    frame.index.name = "Date"

    dropped = len(excess) - len(frame)
    if dropped:
        logger.info("Inner join with factors dropped %d of %d portfolio dates", dropped, len(excess))
    return frame


def run_rolling_from_frames(
    frame: pd.DataFrame,
    factors: Sequence[str],
    window_size: int = DEFAULT_WINDOW,
    dependent: str = EXCESS_COLUMN,
    condition_threshold: float = CONDITION_NUMBER_THRESHOLD,
    max_workers: Optional[int] = None,
) -> dict[str, Any]:
    """
    Rolling OLS of `dependent` on `factors` over a date-indexed frame.

    Returns a dict with:
    - inputs: sample range, observation count, factor names, window size
    - results: list of RegressionResult (ascending end date)
    - tables: per-window results frame, R² series, coefficient frame
    - diagnostics: expected / fitted / skipped window counts and a status,
      "no_data" when there are fewer aligned rows than `window_size`,
      "error" when windows exist but every one was skipped

    Raises
    ------
    InsufficientDataError
        If `window_size` is too small for the number of factors.
    """
    engine = RollingRegressionEngine(
        factors,
        condition_threshold=condition_threshold,
        max_workers=max_workers,
    )
    observations = engine.align(
        series_to_points(frame[dependent]),
        {name: series_to_points(frame[name]) for name in engine.factor_names},
    )
    results = engine.fit(observations, window_size)

    n_obs = len(observations)
    n_expected = max(0, n_obs - window_size + 1)
    if n_expected == 0:
        status = "no_data"
    elif not results:
        status = "error"
        logger.error("All %d rolling windows were skipped; no estimates produced", n_expected)
    else:
        status = "ok"
    factor_names = list(engine.factor_names)

    r2 = summarize(results)
    r_squared = pd.Series(
        [v for _, v in r2],
        index=pd.DatetimeIndex([pd.Timestamp(d) for d, _ in r2], name="Date"),
        name="r_squared",
        dtype=float,
    )
    coefficients = pd.DataFrame(
        {name: [v for _, v in coefficients_series(results, name)] for name in [INTERCEPT] + factor_names},
        index=r_squared.index,
        dtype=float,
    )

    return {
        "inputs": {
            "start": observations[0].date if observations else None,
            "end": observations[-1].date if observations else None,
            "n_obs": n_obs,
            "factors": factor_names,
            "window_size": window_size,
        },
        "results": results,
        "tables": {
            "results": results_to_frame(results, factor_names),
            "r_squared": r_squared,
            "coefficients": coefficients,
        },
        "diagnostics": {
            "n_windows_expected": n_expected,
            "n_windows_fitted": len(results),
            "n_windows_skipped": n_expected - len(results),
            "status": status,
        },
    }


def run_rolling_factor_regression(
    weights: Mapping[str, float],
    start: str,
    end: str,
    model: str = DEFAULT_FACTOR_MODEL,
    factors: Optional[Sequence[str]] = None,
    window_size: int = DEFAULT_WINDOW,
    use_cache: bool = True,
    max_workers: Optional[int] = None,
) -> dict[str, Any]:
    """
    Full pipeline: prices -> portfolio log-returns -> excess returns ->
    join with daily factors -> rolling OLS.

    Factor files must already be processed (see `setup_french_data`).
    `factors` selects a subset of the model's factors.

    The returned dict is that of `run_rolling_from_frames`, with the
    validated weights and the factor model added under "inputs".
    """
    portfolio = PortfolioWeights.from_mapping(weights)
    selected = select_factors(model, factors)

    prices = load_prices_daily(portfolio.tickers, start=start, end=end, use_cache=use_cache)
    port_rets = portfolio_log_returns(log_returns(prices), portfolio)

    factor_df, rf = load_factors_daily(model, start=start, end=end, factors=selected)
    frame = build_regression_frame(port_rets, factor_df, rf)

    out = run_rolling_from_frames(frame, selected, window_size=window_size, max_workers=max_workers)
    out["inputs"].update({"weights": dict(portfolio.weights), "model": model})
    return out
