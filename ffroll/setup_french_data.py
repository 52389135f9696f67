"""
One-shot setup script for the daily Fama–French factor data.

Usage (from the project root):

    python -m ffroll.setup_french_data
    python -m ffroll.setup_french_data --model carhart

This will:
1. Discover and download the ZIP files the requested models need
   (default: every registered daily factor file).
2. Parse them into tidy CSVs under `ffroll_data/processed/`.
3. Print basic diagnostics so you can verify the date ranges and shapes.
"""

from __future__ import annotations

import argparse
import logging

from .config import DATA_ROOT, PROCESSED_DIR, RAW_DIR
from .download_french import FACTOR_MODELS, download_all_factor_zips, download_model_zips
from .process_french import load_factors_daily, process_all_raw_zips


def main(argv=None) -> None:
    """Run the full data-setup pipeline."""
    parser = argparse.ArgumentParser(description="Download and process daily Fama–French factor files.")
    parser.add_argument(
        "--model",
        choices=sorted(FACTOR_MODELS),
        action="append",
        help="Only fetch files for this factor model (repeatable). Default: all files.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    print(f"ffroll data root: {DATA_ROOT}")
    RAW_DIR.mkdir(parents=True, exist_ok=True)
    PROCESSED_DIR.mkdir(parents=True, exist_ok=True)

    print("\nStep 1: Downloading daily factor ZIPs ...")
    if args.model:
        zips = {}
        for model in args.model:
            zips.update(download_model_zips(model))
    else:
        zips = download_all_factor_zips()
    for name, path in zips.items():
        print(f"  {name:<10} {path}")

    print("\nStep 2: Processing raw ZIPs into tidy CSVs ...")
    processed = process_all_raw_zips()

    print("\nStep 3: Quick sanity checks on processed datasets ...")
    models = args.model or sorted(FACTOR_MODELS)
    for model in models:
        factors, rf = load_factors_daily(model)
        print(f"\n{model} daily factors (decimal) + RF:")
        print(f"  Factors shape: {factors.shape}, RF length: {len(rf)}")
        print(f"  Date range: {factors.index.min().date()} -> {factors.index.max().date()}")

    print(f"\n✓ Factor data setup complete ({len(processed)} files processed).")


if __name__ == "__main__":
    main()
