"""N-year annualized return columns."""

import sys

from index_metrics.cli import trailing_returns_main

if __name__ == "__main__":
    sys.exit(trailing_returns_main())
