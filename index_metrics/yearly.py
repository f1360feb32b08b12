"""Calendar-year bucketing and the per-year statistics built on it."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .config import RISK_FREE_RATE_PERCENT, TRADING_DAYS_PER_YEAR, YEAR_SPANS
from .errors import EmptyInputError
from .records import TradingRecord, is_valid
from .stats import annual_return, annualized_volatility, compound_annual_return, log_returns, sharpe_ratio

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YearBucket:
    """All trading records of one calendar year, oldest first."""
    year: int
    records: Tuple[TradingRecord, ...]

    @property
    def first(self) -> TradingRecord:
        return self.records[0]

    @property
    def last(self) -> TradingRecord:
        """The year's last trading day."""
        return self.records[-1]

    @property
    def closes(self):
        return [r.close for r in self.records]


@dataclass(frozen=True)
class YearMetrics:
    year: int
    annual_return: Optional[float]   # percent
    volatility: Optional[float]      # percent, annualized
    sharpe: Optional[float]


def partition_by_year(records: Iterable[TradingRecord]) -> Dict[int, YearBucket]:
    """
    Group records by calendar year, ascending by date.

    Invalid records (no date, non-numeric or non-positive close) are
    dropped. The sort is stable, so among rows sharing a date the later
    source row ends up last.
    """
    valid = []
    for record in records:
        if is_valid(record):
            valid.append(record)
        else:
            logger.debug("Discarding invalid record %r", record)
    if not valid:
        raise EmptyInputError("no valid trading records")

    valid.sort(key=lambda r: r.date)
    grouped: Dict[int, list] = {}
    for record in valid:
        grouped.setdefault(record.date.year, []).append(record)
    return {year: YearBucket(year, tuple(rows)) for year, rows in sorted(grouped.items())}


def compute_year_metrics(
    buckets: Dict[int, YearBucket],
    risk_free: float = RISK_FREE_RATE_PERCENT,
    trading_days: int = TRADING_DAYS_PER_YEAR,
    ddof: int = 0,
) -> Dict[int, YearMetrics]:
    """
    Annual return against the previous calendar year's last close,
    volatility from the daily change-percent column and the Sharpe ratio
    of the two.
    """
    metrics = {}
    for year, bucket in buckets.items():
        prior = buckets.get(year - 1)
        ret = annual_return(bucket.last.close, prior.last.close) if prior else None
        vol = annualized_volatility([r.change_percent for r in bucket.records], trading_days, ddof)
        metrics[year] = YearMetrics(year, ret, vol, sharpe_ratio(ret, vol, risk_free))
    return metrics


def yearly_log_volatility(
    buckets: Dict[int, YearBucket],
    trading_days: int = TRADING_DAYS_PER_YEAR,
    ddof: int = 1,
) -> Dict[int, Optional[float]]:
    """Annualized volatility of each year's intra-year log returns, as a fraction."""
    return {
        year: annualized_volatility(log_returns(bucket.closes), trading_days, ddof)
        for year, bucket in buckets.items()
    }


def trailing_endpoints(
    buckets: Dict[int, YearBucket],
    spans: Sequence[int] = YEAR_SPANS,
    end_year: Optional[int] = None,
) -> Tuple[Optional[TradingRecord], Dict[int, Optional[TradingRecord]]]:
    """
    The record each N-year return is measured to, and the start records.

    Without ``end_year`` the end is the latest record overall; with it,
    that year's last trading day. Starts are the last trading day of
    ``end_year - N``.
    """
    if end_year is None:
        end = buckets[max(buckets)].last
    elif end_year in buckets:
        end = buckets[end_year].last
    else:
        return None, {n: None for n in spans}
    current = end.date.year
    starts = {}
    for n in spans:
        bucket = buckets.get(current - n)
        starts[n] = bucket.last if bucket else None
    return end, starts


def trailing_annual_returns(
    buckets: Dict[int, YearBucket],
    spans: Sequence[int] = YEAR_SPANS,
    end_year: Optional[int] = None,
) -> Dict[int, Optional[float]]:
    end, starts = trailing_endpoints(buckets, spans, end_year)
    return {
        n: compound_annual_return(
            end.close if end else None,
            start.close if start else None,
            n,
        )
        for n, start in starts.items()
    }
