"""
Command-line entry point for a rolling factor regression run.

Usage (from the project root, after `python -m ffroll.setup_french_data`):

    python -m ffroll.run_rolling --weight AAPL=0.5 --weight MSFT=0.5 --window 60
    python -m ffroll.run_rolling --model ff5 --factor Mkt-RF --factor RMW --plot-dir figures/

Writes the per-window results to CSV and, optionally, the R² and loading charts.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import DEFAULT_END, DEFAULT_FACTOR_MODEL, DEFAULT_START, DEFAULT_WEIGHTS, DEFAULT_WINDOW, PROCESSED_DIR
from .download_french import FACTOR_MODELS
from .portfolio import parse_weight_specs
from .rolling_regression import RegressionError
from .workflows import run_rolling_factor_regression


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rolling Fama–French regressions of a weighted portfolio.")
    parser.add_argument(
        "--weight",
        action="append",
        metavar="TICKER=WEIGHT",
        help="Ticker and portfolio weight (repeatable). Default: the tickers in config.DEFAULT_WEIGHTS.",
    )
    parser.add_argument("--start", type=str, default=DEFAULT_START, help="Start date (YYYY-MM-DD).")
    parser.add_argument("--end", type=str, default=DEFAULT_END, help="End date (YYYY-MM-DD).")
    parser.add_argument("--model", choices=sorted(FACTOR_MODELS), default=DEFAULT_FACTOR_MODEL)
    parser.add_argument(
        "--factor",
        action="append",
        help="Regress on this factor of the model only (repeatable). Default: all model factors.",
    )
    parser.add_argument("--window", type=int, default=DEFAULT_WINDOW, help="Rolling window in trading days.")
    parser.add_argument("--workers", type=int, default=None, help="Fit windows on this many threads.")
    parser.add_argument("--no-cache", action="store_true", help="Re-download prices instead of using the cache.")
    parser.add_argument(
        "--out",
        type=Path,
        default=PROCESSED_DIR / "rolling_results.csv",
        help="Path to the per-window results CSV.",
    )
    parser.add_argument("--plot-dir", type=Path, default=None, help="Save R² and loading charts here.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    weights = parse_weight_specs(args.weight) if args.weight else dict(DEFAULT_WEIGHTS)
    print(
        "[ffroll] Config: "
        f"weights={weights}, model={args.model}, factors={args.factor or 'all'}, "
        f"window={args.window}, sample={args.start}..{args.end}",
        flush=True,
    )

    try:
        result = run_rolling_factor_regression(
            weights,
            start=args.start,
            end=args.end,
            model=args.model,
            factors=args.factor,
            window_size=args.window,
            use_cache=not args.no_cache,
            max_workers=args.workers,
        )
    except RegressionError as exc:
        print(f"[ffroll] Computation error: {exc}")
        return 2

    diag = result["diagnostics"]
    if diag["status"] == "no_data":
        print(
            f"[ffroll] No data: {result['inputs']['n_obs']} aligned observations, "
            f"fewer than the {args.window}-day window."
        )
        return 1
    if diag["status"] == "error":
        print(
            f"[ffroll] Computation error: all {diag['n_windows_expected']} windows were skipped "
            "(singular design matrix or gaps); no results written."
        )
        return 2

    args.out.parent.mkdir(parents=True, exist_ok=True)
    result["tables"]["results"].to_csv(args.out)

    print("[ffroll] Done.")
    print(f"  sample: {result['inputs']['start']} -> {result['inputs']['end']} ({result['inputs']['n_obs']} days)")
    print(
        f"  windows: {diag['n_windows_fitted']} fitted, {diag['n_windows_skipped']} skipped "
        f"of {diag['n_windows_expected']}"
    )
    print(f"  results_csv: {args.out}")

    if args.plot_dir is not None:
        from .plot_rolling import plot_rolling_coefficients, plot_rolling_r_squared

        args.plot_dir.mkdir(parents=True, exist_ok=True)
        r2_path = args.plot_dir / "rolling_r_squared.png"
        coef_path = args.plot_dir / "rolling_coefficients.png"
        plot_rolling_r_squared(result).savefig(r2_path, dpi=150, bbox_inches="tight")
        plot_rolling_coefficients(result).savefig(coef_path, dpi=150, bbox_inches="tight")
        print(f"  r_squared_chart: {r2_path}")
        print(f"  coefficients_chart: {coef_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
