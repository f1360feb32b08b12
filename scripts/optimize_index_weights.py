"""Allocation search over four index Sharpe ratios."""

import sys

from index_metrics.cli import optimize_main

if __name__ == "__main__":
    sys.exit(optimize_main())
