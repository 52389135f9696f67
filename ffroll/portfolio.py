"""
Portfolio return construction.

Tickers and weights are carried as an explicit ticker -> weight mapping and
validated once, up front, instead of being matched by position. From daily
adjusted close prices we compute log-returns per ticker, the weighted
portfolio log-return, and the excess return over the risk-free rate.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .config import WEIGHT_SUM_TOLERANCE


@dataclass(frozen=True)
class PortfolioWeights:
    """Validated ticker -> weight mapping. Build with `from_mapping`."""

    weights: Mapping[str, float]

    @classmethod
    def from_mapping(
        cls,
        weights: Mapping[str, float],
        tickers: Optional[Sequence[str]] = None,
        require_unit_sum: bool = True,
        tolerance: float = WEIGHT_SUM_TOLERANCE,
    ) -> "PortfolioWeights":
        """
        Validate and freeze a ticker -> weight mapping.

        Parameters
        ----------
        weights : mapping of str -> float
            One weight per ticker.
        tickers : sequence of str, optional
            If given, must contain exactly the mapping's tickers.
        require_unit_sum : bool, default True
            If True, weights must sum to 1 within `tolerance`. The sum must
            be strictly positive either way.
        tolerance : float
            Allowed |sum - 1|.

        Raises
        ------
        ValueError
            On an empty mapping, a negative or non-finite weight, a ticker
            mismatch, or a bad sum.
        """
        if not weights:
            raise ValueError("At least one ticker weight is required.")

        clean: Dict[str, float] = {}
        for ticker, weight in weights.items():
            weight = float(weight)
            if not math.isfinite(weight):
                raise ValueError(f"Weight for {ticker} is not finite: {weight}")
            if weight < 0:
                raise ValueError(f"Weight for {ticker} is negative: {weight}")
            clean[str(ticker)] = weight

        if tickers is not None:
            tickers = [str(t) for t in tickers]
            if len(set(tickers)) != len(tickers):
                raise ValueError(f"Duplicate tickers in {tickers}")
            missing = sorted(set(tickers) - set(clean))
            extra = sorted(set(clean) - set(tickers))
            if missing or extra:
                raise ValueError(f"Tickers and weights do not match (no weight: {missing}, not in tickers: {extra})")

        total = sum(clean.values())
        if total <= 0:
            raise ValueError("Weights must have a positive sum.")
        if require_unit_sum and abs(total - 1.0) > tolerance:
            raise ValueError(f"Weights sum to {total:.6g}; expected 1 (tolerance {tolerance:g}).")

        return cls(weights=MappingProxyType(clean))

    @property
    def tickers(self) -> list:
        return list(self.weights.keys())

    @property
    def total(self) -> float:
        return float(sum(self.weights.values()))

    def as_series(self) -> pd.Series:
        return pd.Series(dict(self.weights), dtype=float)


def parse_weight_specs(specs: Iterable[str]) -> Dict[str, float]:
    """
    Parse CLI-style "TICKER=WEIGHT" strings into a dict.

    >>> parse_weight_specs(["AAPL=0.6", "MSFT=0.4"])
    {'AAPL': 0.6, 'MSFT': 0.4}
    """
    out: Dict[str, float] = {}
    for spec in specs:
        ticker, sep, weight = spec.partition("=")
        ticker = ticker.strip()
        if not sep or not ticker:
            raise ValueError(f"Expected TICKER=WEIGHT, got {spec!r}")
        if ticker in out:
            raise ValueError(f"Ticker {ticker} given more than once")
        try:
            out[ticker] = float(weight)
        except ValueError:
            raise ValueError(f"Weight for {ticker} is not a number: {weight!r}") from None
    return out


def log_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Daily log-returns ln(p_t) - ln(p_{t-1}) per column.

    The first row (no previous price) is dropped. Missing prices propagate
    as NaN; non-positive prices raise `ValueError`.
    """
    prices = prices.sort_index().astype(float)
    if (prices <= 0).any().any():
        raise ValueError("Prices must be strictly positive to take logs.")
    return np.log(prices).diff().iloc[1:]


def portfolio_log_returns(returns: pd.DataFrame, weights: PortfolioWeights | Mapping[str, float]) -> pd.Series:
    """
    Weighted sum of per-ticker log-returns.

    Columns are selected by ticker name, so column order is irrelevant.
    Dates on which any weighted ticker has no return are dropped.
    """
    if not isinstance(weights, PortfolioWeights):
        weights = PortfolioWeights.from_mapping(weights)

    missing = [t for t in weights.tickers if t not in returns.columns]
    if missing:
        raise KeyError(f"No return series for tickers: {missing}")

    w = weights.as_series()
    aligned = returns[w.index].dropna(how="any")
    port = aligned.mul(w, axis=1).sum(axis=1)
    port.name = "portfolio"
    return port


def excess_returns(portfolio: pd.Series, rf: pd.Series) -> pd.Series:
    """Portfolio return minus RF on the dates both are available."""
    joined = pd.concat([portfolio.rename("portfolio"), rf.rename("RF")], axis=1, join="inner").dropna()
    excess = joined["portfolio"] - joined["RF"]
    excess.name = "excess"
    return excess
