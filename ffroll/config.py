"""
Configuration for the rolling factor regression utilities.

Centralises paths so that all downloaded and processed data lives under a
single `ffroll_data/` directory at the project root, plus the numeric
defaults shared by the scripts and workflows.
"""

from pathlib import Path

# Project root = parent of this `ffroll` package
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Root directory for all downloaded/processed data
DATA_ROOT = PROJECT_ROOT / "ffroll_data"
RAW_DIR = DATA_ROOT / "raw"          # Downloaded ZIP files
PROCESSED_DIR = DATA_ROOT / "processed"  # Parsed CSVs with clean structure

# Directories are created by the download/processing code, not at import time.

# Rolling window length in trading days (roughly one quarter).
DEFAULT_WINDOW = 60

DEFAULT_FACTOR_MODEL = "ff3"

# Design matrices with a 2-norm condition number above this are treated as singular.
CONDITION_NUMBER_THRESHOLD = 1e10

# Allowed |sum(weights) - 1| when a unit-sum portfolio is required.
WEIGHT_SUM_TOLERANCE = 1e-6

DEFAULT_START = "2018-01-01"
DEFAULT_END = "2023-12-31"

DEFAULT_WEIGHTS = {
    "AAPL": 0.25,
    "MSFT": 0.25,
    "JPM": 0.25,
    "XOM": 0.25,
}
