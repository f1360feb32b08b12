"""Per-year log-return volatility workbook (252 trading days)."""

import sys

from index_metrics.cli import yearly_volatility_main

if __name__ == "__main__":
    sys.exit(yearly_volatility_main())
