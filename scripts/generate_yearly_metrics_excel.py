"""Per-year return, volatility and Sharpe ratio workbook."""

import sys

from index_metrics.cli import yearly_metrics_main

if __name__ == "__main__":
    sys.exit(yearly_metrics_main())
