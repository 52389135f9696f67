"""
Load daily adjusted close prices for the portfolio tickers.

Dependencies
-----------
- yfinance : pip install yfinance
  Used to fetch adjusted close prices; returns are computed in `portfolio`.

Design choices
--------------
- Prices (not returns) are cached so the same download serves any weighting.
- Cache key is based on the sorted ticker list and the start/end dates, so
  changing the weights never triggers a new download.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Sequence

import pandas as pd

from .config import PROCESSED_DIR

logger = logging.getLogger(__name__)


def _cache_path(tickers: Sequence[str], start: str, end: str, cache_dir: Path) -> Path:
    key = ",".join(sorted(tickers)) + f"|{start}|{end}"
    digest = hashlib.sha1(key.encode()).hexdigest()[:12]
    return cache_dir / f"prices_daily_{digest}.csv"


def _close_frame(data: pd.DataFrame, tickers: Sequence[str]) -> pd.DataFrame:
    """Pick the Close block out of a yfinance download, one column per ticker."""
    if isinstance(data.columns, pd.MultiIndex):
        close = data["Close"]
    elif "Close" in data.columns:
        close = data[["Close"]].rename(columns={"Close": tickers[0]})
    else:
        raise ValueError(f"Download for {list(tickers)} has no Close column: {list(data.columns)}")

    if isinstance(close, pd.Series):
        close = close.to_frame(name=tickers[0])
    return close


def load_prices_daily(
    tickers: Sequence[str],
    start: str,
    end: str,
    use_cache: bool = True,
    cache_dir: Path = PROCESSED_DIR,
) -> pd.DataFrame:
    """
    Load daily adjusted close prices.

    Parameters
    ----------
    tickers : sequence of str
        Yahoo Finance ticker symbols.
    start, end : str
        Date range 'YYYY-MM-DD' (end exclusive, as in yfinance).
    use_cache : bool, default True
        If True, read from or write to a CSV in `cache_dir` to avoid
        repeated API calls.

    Returns
    -------
    DataFrame
        Index: trading dates (DatetimeIndex named "Date").
        Columns: tickers, in the order given. Values: adjusted close prices.
        May contain NaN where a ticker did not trade.

    Raises
    ------
    ConnectionError
        If the download itself fails.
    ValueError
        If no data comes back or a ticker has no prices at all.
    """
    try:
        import yfinance as yf
    except ImportError:
        raise ImportError(
            "yfinance is required for price data. Install with: pip install yfinance"
        )

    tickers = list(tickers)
    if not tickers:
        raise ValueError("At least one ticker is required.")

    cache_path = _cache_path(tickers, start, end, cache_dir)
    if use_cache and cache_path.exists():
        logger.info("Loading cached prices from %s", cache_path)
        df = pd.read_csv(cache_path, index_col=0, parse_dates=True)
        df.index.name = "Date"
        return df[tickers]

    logger.info("Downloading daily prices for %s (%s -> %s)", tickers, start, end)
    try:
        data = yf.download(tickers, start=start, end=end, auto_adjust=True, progress=False)
    except Exception as exc:
        raise ConnectionError(f"Failed to download prices from Yahoo Finance: {exc}") from exc

    if data is None or data.empty:
        raise ValueError(
            f"No price data returned for {tickers} between {start} and {end}. "
            "Check that the tickers and date range are valid."
        )

    close = _close_frame(data, tickers).sort_index()
    empty = [t for t in tickers if t not in close.columns or close[t].dropna().empty]
    if empty:
        raise ValueError(f"No prices for {empty} between {start} and {end}.")

    close = close[tickers]
    close.index = pd.DatetimeIndex(close.index, name="Date").tz_localize(None)
    close = close.dropna(how="all")

    if use_cache:
        cache_dir.mkdir(parents=True, exist_ok=True)
        close.to_csv(cache_path)
        logger.info("Cached prices to %s", cache_path)

    return close
