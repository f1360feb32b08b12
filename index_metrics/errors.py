"""Exceptions raised by index_metrics."""

from typing import Iterable


class IndexMetricsError(Exception):
    """Base class for errors that abort a run or a sheet."""


class EmptyInputError(IndexMetricsError):
    """No valid trading records remained after filtering."""


class MissingColumnError(IndexMetricsError):
    """One or more required columns could not be found in a header row."""

    def __init__(self, sheet: str, missing: Iterable[str]):
        self.sheet = sheet
        self.missing = list(missing)
        super().__init__(
            f"sheet {sheet!r} is missing required columns: {', '.join(self.missing)}"
        )


class InvalidWeightsError(IndexMetricsError, ValueError):
    """Optimizer inputs that cannot describe a portfolio allocation."""
