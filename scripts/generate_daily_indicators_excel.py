"""Daily indicators, moving averages, drawdown and Sharpe."""

import sys

from index_metrics.cli import daily_indicators_main

if __name__ == "__main__":
    sys.exit(daily_indicators_main())
