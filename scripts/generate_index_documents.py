"""Markdown introduction per index."""

import sys

from index_metrics.cli import documents_main

if __name__ == "__main__":
    sys.exit(documents_main())
