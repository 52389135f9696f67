"""
Plotting helpers for rolling regression workflows.

Each function accepts a workflow output dict (see
`workflows.run_rolling_from_frames`) and returns a matplotlib Figure so
notebooks and scripts stay concise. Data comes only from the engine's
projections (`summarize`, `coefficients_series`).
"""

from __future__ import annotations

from typing import Optional, Sequence

import matplotlib.pyplot as plt

from .plot_styles import ZERO_LINE_STYLE, style
from .rolling_regression import INTERCEPT, coefficients_series, summarize

NO_DATA_MESSAGE = "No overlapping observations for this window size"
ALL_SKIPPED_MESSAGE = "All windows singular or incomplete; no estimates"


def _title_suffix(result: dict) -> str:
    inputs = result.get("inputs", {})
    window = inputs.get("window_size")
    model = inputs.get("model")
    parts = []
    if model:
        parts.append(model.upper())
    if window:
        parts.append(f"{window}-day window")
    return f" ({', '.join(parts)})" if parts else ""


def _empty_message(result: dict) -> str:
    if result.get("diagnostics", {}).get("status") == "error":
        return ALL_SKIPPED_MESSAGE
    return NO_DATA_MESSAGE


def _no_data(ax, result: dict) -> None:
    ax.text(0.5, 0.5, _empty_message(result), ha="center", va="center", transform=ax.transAxes, color="gray")
    ax.set_xticks([])
    ax.set_yticks([])


def plot_rolling_r_squared(result: dict, ax=None):
    """
    Plot rolling R² over time.

    Returns
    -------
    matplotlib.figure.Figure
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(9, 4))
    else:
        fig = ax.figure

    points = summarize(result["results"])
    if not points:
        _no_data(ax, result)
    else:
        dates, values = zip(*points)
        ax.plot(dates, values, **style("r_squared", "r_squared"))
        ax.set_ylim(0.0, 1.0)
        ax.set_ylabel("R²")
        ax.grid(True, alpha=0.3)

    ax.set_title("Rolling R²" + _title_suffix(result))
    fig.autofmt_xdate()
    return fig


def plot_rolling_coefficients(
    result: dict,
    factors: Optional[Sequence[str]] = None,
    include_intercept: bool = False,
    ax=None,
):
    """
    Plot rolling factor loadings, one line per factor.

    Parameters
    ----------
    result : dict
        Workflow output.
    factors : sequence of str, optional
        Subset of factors to draw; defaults to all fitted factors.
    include_intercept : bool, default False
        Also draw the intercept (daily alpha).
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(9, 4.5))
    else:
        fig = ax.figure

    results = result["results"]
    names = list(factors) if factors is not None else list(result["inputs"]["factors"])
    if include_intercept:
        names = [INTERCEPT] + names

    if not results:
        _no_data(ax, result)
    else:
        for name in names:
            dates, values = zip(*coefficients_series(results, name))
            ax.plot(dates, values, **style("coefficient", name))
        ax.axhline(0.0, **ZERO_LINE_STYLE)
        ax.set_ylabel("Estimate")
        ax.grid(True, alpha=0.3)
        ax.legend(loc="best", fontsize=8)

    ax.set_title("Rolling factor loadings" + _title_suffix(result))
    fig.autofmt_xdate()
    return fig
