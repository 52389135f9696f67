"""
Processing utilities for the daily Fama–French factor ZIP files.

This module:
- Reads the single CSV inside each downloaded ZIP under `ffroll_data/raw/`.
- Parses the Ken French daily CSV format strictly: a fixed number of
  description lines, a header row starting with a comma, 8-digit YYYYMMDD
  dates, values in percent, and a copyright footer.
- Saves tidy CSVs (decimal returns, DatetimeIndex) to `ffroll_data/processed/`.
- Provides loaders that return the factor table and RF series for a model.

Parsing fails loudly rather than guessing: a header that is not where the
source says it is, or a date that is not YYYYMMDD, raises `ValueError`
because either would silently misalign the regression inputs.
"""

from __future__ import annotations

import logging
import zipfile
from io import StringIO
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .config import PROCESSED_DIR, RAW_DIR
from .download_french import (
    FACTOR_SOURCES,
    AvailableFiles,
    FactorSource,
    find_file_by_keywords,
    model_factors,
    model_sources,
)

logger = logging.getLogger(__name__)

NA_VALUES = ["-99.99", "-999"]


def _data_lines(lines: List[str], start: int) -> List[str]:
    """Rows of the first table: everything up to a blank line or the copyright footer."""
    body: List[str] = []
    for line in lines[start:]:
        stripped = line.strip()
        if not stripped or stripped.lower().startswith("copyright"):
            break
        body.append(line)
    return body


def parse_french_csv(text: str, source: FactorSource) -> pd.DataFrame:
    """
    Parse the text of a daily Fama–French factor CSV.

    Parameters
    ----------
    text : str
        Full file contents.
    source : FactorSource
        Supplies the header offset (`skiprows`) and the expected columns.

    Returns
    -------
    DataFrame
        Index: DatetimeIndex named "Date", ascending.
        Columns: `source.columns`, as decimal returns (percent / 100).

    Raises
    ------
    ValueError
        If the header is not at `skiprows`, a column is missing, a date is
        not an 8-digit YYYYMMDD value, a date repeats, or a value is not numeric.
    """
    lines = text.splitlines()
    label = source.description
    if len(lines) <= source.skiprows:
        raise ValueError(
            f"{label}: file has {len(lines)} lines, expected a header after {source.skiprows} description lines"
        )

    header = lines[source.skiprows]
    if not header.strip().startswith(","):
        raise ValueError(
            f"{label}: line {source.skiprows + 1} is not the column header ({header.strip()!r}); "
            "has the description block length changed?"
        )

    body = _data_lines(lines, source.skiprows + 1)
    if not body:
        raise ValueError(f"{label}: no data rows after the header")

    df = pd.read_csv(
        StringIO("\n".join([header] + body)),
        header=0,
        dtype=str,
        skipinitialspace=True,
        na_values=NA_VALUES,
        keep_default_na=False,
    )
    df.columns = ["Date"] + [str(c).strip() for c in df.columns[1:]]

    missing = [c for c in source.columns if c not in df.columns]
    if missing:
        raise ValueError(f"{label}: missing expected columns {missing}; found {list(df.columns[1:])}")

    dates = df["Date"].fillna("").str.strip()
    bad = ~dates.str.fullmatch(r"\d{8}")
    if bad.any():
        examples = dates[bad].head(3).tolist()
        raise ValueError(f"{label}: {int(bad.sum())} rows without an 8-digit YYYYMMDD date, e.g. {examples}")

    index = pd.DatetimeIndex(pd.to_datetime(dates, format="%Y%m%d"), name="Date")
    if index.has_duplicates:
        raise ValueError(f"{label}: duplicate dates, e.g. {index[index.duplicated()][:3].tolist()}")

    values = df[list(source.columns)].apply(lambda col: pd.to_numeric(col.str.strip(), errors="raise"))
    # Files quote returns in percent.
    values = values / 100.0
    values.index = index
    return values.sort_index()


def read_factor_zip(zip_path: Path, source: FactorSource) -> pd.DataFrame:
    """Parse the CSV inside a factor ZIP without extracting it to disk."""
    with zipfile.ZipFile(zip_path, "r") as zf:
        members = [n for n in zf.namelist() if n.lower().endswith((".csv", ".txt"))]
        if not members:
            raise ValueError(f"No CSV or TXT file inside {zip_path}")
        if len(members) > 1:
            logger.warning("%s contains %d data files; using %s", zip_path.name, len(members), members[0])
        text = zf.read(members[0]).decode("utf-8", errors="ignore")

    return parse_french_csv(text, source)


def processed_path(source: FactorSource, processed_dir: Path = PROCESSED_DIR) -> Path:
    return processed_dir / f"{source.name}.csv"


def process_factor_zip(
    zip_path: Path,
    source: FactorSource,
    processed_dir: Path = PROCESSED_DIR,
) -> pd.DataFrame:
    """
    Parse one factor ZIP and write the tidy table to `processed_dir`.
    """
    logger.info("Processing %s as %s", zip_path.name, source.description)
    df = read_factor_zip(zip_path, source)

    processed_dir.mkdir(parents=True, exist_ok=True)
    out = processed_path(source, processed_dir)
    df.to_csv(out)
    logger.info(
        "Saved %s (%d rows, %s -> %s) to %s",
        source.name,
        len(df),
        df.index.min().date(),
        df.index.max().date(),
        out,
    )
    return df


def process_all_raw_zips(
    raw_dir: Path = RAW_DIR,
    processed_dir: Path = PROCESSED_DIR,
) -> Dict[str, pd.DataFrame]:
    """
    Process every registered factor source whose ZIP is present in `raw_dir`.

    Returns
    -------
    dict
        Mapping from source name -> parsed DataFrame.
    """
    if not raw_dir.exists():
        logger.warning("No raw directory at %s, nothing to process", raw_dir)
        return {}

    zip_names = sorted(p.name for p in raw_dir.glob("*.zip"))
    local = AvailableFiles(filenames=zip_names, url_map={})

    results: Dict[str, pd.DataFrame] = {}
    for name, source in FACTOR_SOURCES.items():
        filename = find_file_by_keywords(local, source.keywords, source.exclude_keywords)
        if filename is None:
            logger.info("No ZIP for %s in %s", source.description, raw_dir)
            continue
        results[name] = process_factor_zip(raw_dir / filename, source, processed_dir)

    return results


def load_factor_source(source: FactorSource, processed_dir: Path = PROCESSED_DIR) -> pd.DataFrame:
    """Load one processed factor table (decimal returns, DatetimeIndex)."""
    path = processed_path(source, processed_dir)
    if not path.exists():
        raise FileNotFoundError(
            f"No processed {source.description} file at {path}. "
            "Run `python -m ffroll.setup_french_data` first."
        )
    df = pd.read_csv(path, index_col=0, parse_dates=True)
    df.index.name = "Date"
    return df.sort_index()


def select_factors(model: str, factors: Optional[Sequence[str]] = None) -> Tuple[str, ...]:
    """
    Resolve the factor columns to regress on: the whole model, or a subset of it.
    """
    available = model_factors(model)
    if factors is None:
        return available
    factors = tuple(factors)
    if not factors:
        raise ValueError("At least one factor must be selected.")
    unknown = [f for f in factors if f not in available]
    if unknown:
        raise ValueError(f"Factors {unknown} are not part of model {model!r} ({list(available)})")
    return factors


def load_factors_daily(
    model: str = "ff3",
    start: Optional[str] = None,
    end: Optional[str] = None,
    factors: Optional[Sequence[str]] = None,
    processed_dir: Path = PROCESSED_DIR,
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Load daily factors for a model (decimal returns).

    When the model spans several files they are inner-joined on date.

    Returns
    -------
    (factors, rf)
        factors : DataFrame with the selected factor columns
        rf : Series with the daily risk-free rate (net, decimal)
    """
    columns = select_factors(model, factors)
    tables = [load_factor_source(source, processed_dir) for source in model_sources(model)]

    rf = tables[0]["RF"].rename("RF")
    joined = pd.concat([t.drop(columns=["RF"], errors="ignore") for t in tables] + [rf], axis=1, join="inner")
    joined = joined.sort_index().loc[start:end]

    return joined[list(columns)].copy(), joined["RF"].copy()
