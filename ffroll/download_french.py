"""
Tools for discovering and downloading the daily Fama–French factor files.

This module:
- Declares the factor files we use (`FACTOR_SOURCES`) and which factors
  each model draws from them (`FACTOR_MODELS`).
- Scrapes the Kenneth French data library page to discover available ZIP files.
- Selects the ZIPs for the requested sources:
  * Fama–French 3-Factor model (daily, includes RF)
  * Fama–French 5-Factor (2x3) model (daily, includes RF)
  * Momentum factor (daily)
- Downloads those ZIPs into `ffroll_data/raw/`, reusing files already there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from html.parser import HTMLParser
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import requests

from .config import RAW_DIR

logger = logging.getLogger(__name__)

BASE_URL = "https://mba.tuck.dartmouth.edu/pages/faculty/ken.french/"
DATA_LIBRARY_URL = BASE_URL + "data_library.html"


@dataclass(frozen=True)
class FactorSource:
    """
    One factor file in the data library.

    `skiprows` is the number of description lines before the CSV header row;
    it differs per file and is checked when parsing.
    """

    name: str
    description: str
    keywords: Tuple[str, ...]
    columns: Tuple[str, ...]
    skiprows: int
    exclude_keywords: Tuple[str, ...] = field(default_factory=tuple)


FACTOR_SOURCES: Dict[str, FactorSource] = {
    "ff3_daily": FactorSource(
        name="ff3_daily",
        description="Fama–French 3-Factor model (daily)",
        keywords=("F-F", "Research", "Data", "Factors", "daily"),
        exclude_keywords=("5_Factors", "2x3", "weekly"),
        columns=("Mkt-RF", "SMB", "HML", "RF"),
        skiprows=3,
    ),
    "ff5_daily": FactorSource(
        name="ff5_daily",
        description="Fama–French 5-Factor (2x3) model (daily)",
        keywords=("5", "Factors", "2x3", "daily"),
        columns=("Mkt-RF", "SMB", "HML", "RMW", "CMA", "RF"),
        skiprows=3,
    ),
    "mom_daily": FactorSource(
        name="mom_daily",
        description="Momentum factor (daily)",
        keywords=("Momentum", "Factor", "daily"),
        columns=("Mom",),
        skiprows=13,
    ),
}

# model -> (factor columns, sources that supply them). RF always comes from the first source.
FACTOR_MODELS: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "ff3": (("Mkt-RF", "SMB", "HML"), ("ff3_daily",)),
    "ff5": (("Mkt-RF", "SMB", "HML", "RMW", "CMA"), ("ff5_daily",)),
    "carhart": (("Mkt-RF", "SMB", "HML", "Mom"), ("ff3_daily", "mom_daily")),
}


def model_factors(model: str) -> Tuple[str, ...]:
    """Factor columns of a named model."""
    try:
        return FACTOR_MODELS[model][0]
    except KeyError:
        raise ValueError(f"Unknown factor model {model!r}; choose from {sorted(FACTOR_MODELS)}") from None


def model_sources(model: str) -> List[FactorSource]:
    """Factor sources needed by a named model, RF-bearing source first."""
    if model not in FACTOR_MODELS:
        raise ValueError(f"Unknown factor model {model!r}; choose from {sorted(FACTOR_MODELS)}")
    return [FACTOR_SOURCES[name] for name in FACTOR_MODELS[model][1]]


class _LinkParser(HTMLParser):
    """Internal helper: parse HTML to extract links to .zip files."""

    def __init__(self) -> None:
        super().__init__()
        self.file_links: List[str] = []

    def handle_starttag(self, tag, attrs) -> None:  # type: ignore[override]
        if tag != "a":
            return
        for attr, value in attrs:
            if attr == "href" and value and value.endswith(".zip"):
                self.file_links.append(value)


@dataclass
class AvailableFiles:
    """Container for discovered Fama–French ZIP files."""

    filenames: List[str]
    url_map: Dict[str, str]


def _absolute_url(link: str) -> str:
    if link.startswith("http"):
        return link
    if link.startswith("/"):
        return "https://mba.tuck.dartmouth.edu" + link
    if link.startswith("ftp/"):
        return BASE_URL + link
    return BASE_URL + "ftp/" + link


def parse_available_files(html: str) -> AvailableFiles:
    """Extract ZIP filenames and absolute URLs from the data library HTML."""
    parser = _LinkParser()
    parser.feed(html)

    url_map: Dict[str, str] = {}
    for link in parser.file_links:
        full_url = _absolute_url(link)
        url_map[full_url.split("/")[-1]] = full_url

    return AvailableFiles(filenames=sorted(url_map), url_map=url_map)


def discover_available_files() -> AvailableFiles:
    """
    Scrape the Fama–French data library page and return the list of
    available ZIP filenames and their fully-qualified URLs.
    """
    logger.info("Discovering Fama–French ZIP files from %s", DATA_LIBRARY_URL)

    response = requests.get(DATA_LIBRARY_URL, timeout=30)
    response.raise_for_status()

    available = parse_available_files(response.text)
    logger.info("Found %d ZIP files", len(available.filenames))
    return available


def find_file_by_keywords(
    available: AvailableFiles,
    keywords: Sequence[str],
    exclude_keywords: Optional[Sequence[str]] = None,
    prefer_csv: bool = True,
) -> Optional[str]:
    """
    Find a filename that contains all provided keywords (case-insensitive).

    Parameters
    ----------
    available : AvailableFiles
        Discovered filenames and URL map.
    keywords : sequence of str
        All keywords must appear in the filename.
    exclude_keywords : sequence of str, optional
        If provided, none of these keywords may appear in the filename.
    prefer_csv : bool, default True
        If True, prefer filenames that contain '_CSV'.
    """
    exclude_keywords = exclude_keywords or []
    matches: List[str] = []
    for filename in available.filenames:
        name_upper = filename.upper()
        if all(kw.upper() in name_upper for kw in keywords):
            if any(kw.upper() in name_upper for kw in exclude_keywords):
                continue
            matches.append(filename)

    if not matches:
        return None

    if prefer_csv:
        csv_matches = [m for m in matches if "_CSV" in m.upper()]
        if csv_matches:
            return csv_matches[0]

    return matches[0]


def _download_zip(url: str, dest: Path, description: str) -> Path:
    """
    Download a ZIP file from `url` to `dest`, unless it is already there.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)

    if dest.exists():
        logger.info("%s already downloaded at %s", description, dest)
        return dest

    logger.info("Downloading %s from %s", description, url)
    resp = requests.get(url, timeout=60)
    resp.raise_for_status()
    if not resp.content:
        raise RuntimeError(f"Empty response when downloading {description} from {url}")

    dest.write_bytes(resp.content)
    logger.info("Saved %s (%s bytes) to %s", description, f"{dest.stat().st_size:,}", dest)
    return dest


def download_factor_zip(
    source: FactorSource,
    available: Optional[AvailableFiles] = None,
    raw_dir: Path = RAW_DIR,
) -> Path:
    """
    Download the ZIP for one factor source.

    Returns
    -------
    Path
        Path to the downloaded ZIP file.
    """
    if available is None:
        available = discover_available_files()

    filename = find_file_by_keywords(
        available,
        keywords=source.keywords,
        exclude_keywords=source.exclude_keywords,
        prefer_csv=True,
    )
    if filename is None:
        raise RuntimeError(f"Could not find {source.description} ZIP on the data library page.")

    return _download_zip(available.url_map[filename], raw_dir / filename, source.description)


def download_model_zips(model: str, raw_dir: Path = RAW_DIR) -> Dict[str, Path]:
    """
    Download every ZIP a factor model needs.

    Returns
    -------
    dict
        Mapping from source name -> ZIP path.
    """
    sources = model_sources(model)
    available = discover_available_files()
    return {source.name: download_factor_zip(source, available, raw_dir=raw_dir) for source in sources}


def download_all_factor_zips(raw_dir: Path = RAW_DIR) -> Dict[str, Path]:
    """
    Convenience function: download every registered daily factor ZIP.
    """
    available = discover_available_files()
    return {
        name: download_factor_zip(source, available, raw_dir=raw_dir)
        for name, source in FACTOR_SOURCES.items()
    }
