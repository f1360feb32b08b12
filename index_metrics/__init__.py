"""Yearly index statistics for spreadsheet data, and a small allocation search."""

from .errors import EmptyInputError, IndexMetricsError, InvalidWeightsError, MissingColumnError
from .metric import Metric
from .optimizer import OptimizationResult, optimize
from .records import TradingRecord
from .stats import (
    annual_return,
    annualized_volatility,
    compound_annual_return,
    max_drawdown,
    moving_average,
    sharpe_ratio,
)
from .yearly import YearBucket, YearMetrics, compute_year_metrics, partition_by_year, trailing_annual_returns

__version__ = "0.1.0"
