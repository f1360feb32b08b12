"""
Console entry points. Each command is a standalone batch run:
read one workbook, compute, write one output.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from .config import DOCUMENTS_DIR, LONG_YEAR_SPANS, MetricsConfig, RISK_FREE_RATE_PERCENT, TRADING_DAYS_PER_YEAR, YEAR_SPANS
from .documents import generate_documents
from .errors import IndexMetricsError
from .excel import output_path_for
from .optimizer import DEFAULT_ASSETS, DEFAULT_TARGET, STRATEGIES, compare_to_max, optimize, recommendations, strategy_alpha
from .reports import daily_indicators_plan, run_workbook, trailing_returns_plan, yearly_metrics_plan, yearly_volatility_plan

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure the root logger's format and level once per process."""
    fmt = '%(asctime)s - %(levelname)s - %(message)s'
    logging.basicConfig(level=level, format=fmt)


def _spans(text: str) -> tuple:
    try:
        spans = tuple(int(part) for part in text.split(",") if part.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {text!r}")
    if not spans or any(n <= 0 for n in spans):
        raise argparse.ArgumentTypeError("year spans must be positive integers")
    return spans


def _workbook_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("input", type=Path, help="Workbook (.xlsx) with daily index data.")
    parser.add_argument("--output", type=Path, default=None, help="Output workbook (default: next to the input).")
    parser.add_argument("--verbose", action="store_true", help="Log per-row detail.")
    return parser


def _run(args, plan_function, suffix: str, config: MetricsConfig) -> int:
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    output = args.output or output_path_for(args.input, suffix)
    logger.debug("Settings: %s", config.to_dict())
    try:
        path, processed, skipped = run_workbook(args.input, output, plan_function, config)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:
        logger.exception("Run failed for %s", args.input)
        return 1
    logger.info("Done: %d sheets processed, %d skipped -> %s", len(processed), len(skipped), path)
    return 0


def yearly_metrics_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _workbook_parser("Per-year return, volatility and Sharpe ratio on each year's last trading day.")
    parser.add_argument("--risk-free", type=float, default=RISK_FREE_RATE_PERCENT, help="Risk-free rate in percent.")
    parser.add_argument("--trading-days", type=int, default=TRADING_DAYS_PER_YEAR, help="Trading days per year.")
    parser.add_argument("--sample-stdev", action="store_true",
                        help="Use the sample (n-1) deviation of the daily change column instead of the population one.")
    parser.add_argument("--show-all-rows", action="store_true", help="Do not hide non year-end rows.")
    args = parser.parse_args(argv)
    config = MetricsConfig(
        risk_free_rate=args.risk_free,
        trading_days=args.trading_days,
        change_percent_ddof=1 if args.sample_stdev else 0,
        hide_other_rows=not args.show_all_rows,
    )
    return _run(args, yearly_metrics_plan, "处理结果", config)


def yearly_volatility_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _workbook_parser("Per-year annualized volatility from daily log returns.")
    parser.add_argument("--trading-days", type=int, default=TRADING_DAYS_PER_YEAR, help="Trading days per year.")
    parser.add_argument("--fixed-columns", action="store_true", help="Read date from column A and close from column J.")
    args = parser.parse_args(argv)
    config = MetricsConfig(trading_days=args.trading_days, fixed_columns=args.fixed_columns)
    return _run(args, yearly_volatility_plan, f"波动率_固定使用{args.trading_days}天", config)


def trailing_returns_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _workbook_parser("N-year compound annualized returns measured back from the latest year.")
    parser.add_argument("--spans", type=_spans, default=YEAR_SPANS,
                        help="Comma-separated year spans (default 1,3,...,21).")
    parser.add_argument("--long-spans", action="store_true", help="Use 3,5,...,21 instead of the default spans.")
    parser.add_argument("--end-year", type=int, default=None,
                        help="Measure to this year's last trading day instead of the latest record.")
    parser.add_argument("--fixed-columns", action="store_true", help="Read date from column A and close from column J.")
    args = parser.parse_args(argv)
    config = MetricsConfig(
        year_spans=LONG_YEAR_SPANS if args.long_spans else args.spans,
        end_year=args.end_year,
        fixed_columns=args.fixed_columns,
    )
    return _run(args, trailing_returns_plan, "近几年年化收益率", config)


def daily_indicators_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _workbook_parser("Daily indicators, moving averages and whole-series risk statistics.")
    args = parser.parse_args(argv)
    return _run(args, daily_indicators_plan, "分析结果", MetricsConfig())


def documents_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="One Markdown document per index from the index-introduction workbook.")
    parser.add_argument("input", type=Path, help="Index-introduction workbook with two header rows.")
    parser.add_argument("--output-dir", type=Path, default=None, help=f"Folder for the documents (default: {DOCUMENTS_DIR}).")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    output_dir = args.output_dir or args.input.parent / DOCUMENTS_DIR
    try:
        generate_documents(args.input, output_dir)
    except (FileNotFoundError, IndexMetricsError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:
        logger.exception("Document generation failed for %s", args.input)
        return 1
    return 0


def _format_percent(x: float, decimals: int = 4) -> str:
    return f"{x * 100:.{decimals}f}%"


def optimize_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Preference-weighted allocation over four index Sharpe ratios.")
    parser.add_argument("scores", type=float, nargs=4, metavar="SHARPE",
                        help=f"Sharpe ratios of {', '.join(DEFAULT_ASSETS)}.")
    parser.add_argument("--strategy", choices=STRATEGIES, default="balanced", help="Preset for alpha.")
    parser.add_argument("--alpha", type=float, default=None, help="Override the strategy's alpha (0-1).")
    parser.add_argument("--target", type=float, nargs=4, default=list(DEFAULT_TARGET), metavar="W",
                        help="Target weights (normalized to sum 1).")
    parser.add_argument("--iterations", type=int, default=10000)
    parser.add_argument("--tolerance", type=float, default=1e-8)
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible search.")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    alpha = args.alpha if args.alpha is not None else strategy_alpha(args.strategy, args.scores)
    try:
        result = optimize(args.scores, args.target, alpha, args.iterations, args.tolerance,
                          rng=np.random.default_rng(args.seed))
    except IndexMetricsError as exc:
        logger.error("%s", exc)
        return 1

    comparison = compare_to_max(result, args.scores)
    print("=" * 60)
    print(f"Strategy: {args.strategy} (alpha={alpha:.3f}), {result.iterations_run} iterations")
    print(f"Portfolio Sharpe: {result.score:.6f}")
    for name, weight, target in zip(DEFAULT_ASSETS, result.weights, result.target_weights):
        print(f"  {name:<10} {_format_percent(weight)} (target {_format_percent(target, 2)})")
    print(f"Total deviation from target: {result.deviation:.6f}")
    print(f"Best single-index Sharpe: {comparison['max_possible_score']:.6f}")
    if comparison["sacrifice_for_balance"] is not None:
        print(f"Sharpe given up for balance: {_format_percent(comparison['sacrifice_for_balance'], 2)}")
    for note in recommendations(result):
        print(f"- {note}")
    print("=" * 60)
    return 0

