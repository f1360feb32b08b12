"""
Scalar and series calculators shared by every report.

Percent conventions: :func:`annual_return` and :func:`sharpe_ratio` work
in percent (10.0 means 10%); :func:`compound_annual_return`,
:func:`max_drawdown` and the whole-series helpers return fractions.
Undefined results are ``None``, never 0.
"""

import math
from typing import Dict, Optional, Sequence

import numpy as np

from .config import RISK_FREE_RATE_PERCENT, SERIES_RISK_FREE_RATE, SERIES_TRADING_DAYS, TRADING_DAYS_PER_YEAR


def annual_return(current_close: Optional[float], prior_close: Optional[float]) -> Optional[float]:
    """(current / prior - 1) * 100, or None without a meaningful prior close."""
    if current_close is None or prior_close is None:
        return None
    if current_close <= 0 or prior_close <= 0:
        return None
    return (current_close / prior_close - 1) * 100


def annualized_volatility(
    daily_returns: Sequence[float],
    trading_days: int = TRADING_DAYS_PER_YEAR,
    ddof: int = 0,
) -> Optional[float]:
    """
    Standard deviation of per-period returns scaled by sqrt(trading_days).

    ``ddof=0`` is the population deviation (used for the supplied daily
    change-percent column), ``ddof=1`` the sample deviation (used for log
    and simple returns derived from closes). Output is in the units of
    the input: percent in, percent out.
    """
    r = np.asarray([x for x in daily_returns if x is not None], dtype=float)
    if r.size < 2:
        return None
    return float(np.std(r, ddof=ddof) * np.sqrt(trading_days))


def log_returns(closes: Sequence[float]) -> np.ndarray:
    """ln(c_t / c_{t-1}) for consecutive closes."""
    c = np.asarray(closes, dtype=float)
    if c.size < 2:
        return np.empty(0)
    return np.log(c[1:] / c[:-1])


def simple_returns(closes: Sequence[float]) -> np.ndarray:
    """(c_t - c_{t-1}) / c_{t-1} for consecutive closes."""
    c = np.asarray(closes, dtype=float)
    if c.size < 2:
        return np.empty(0)
    return (c[1:] - c[:-1]) / c[:-1]


def sharpe_ratio(
    annual_return_percent: Optional[float],
    volatility_percent: Optional[float],
    risk_free: float = RISK_FREE_RATE_PERCENT,
) -> Optional[float]:
    if annual_return_percent is None or volatility_percent is None:
        return None
    if volatility_percent <= 0:
        return None
    return (annual_return_percent - risk_free) / volatility_percent


def compound_annual_return(
    end_price: Optional[float],
    start_price: Optional[float],
    n_years: int,
) -> Optional[float]:
    """(end / start) ** (1 / n) - 1; None ("--") when an endpoint is missing."""
    if end_price is None or start_price is None:
        return None
    if end_price <= 0 or start_price <= 0 or n_years <= 0:
        return None
    return (end_price / start_price) ** (1.0 / n_years) - 1


def moving_average(series: Sequence[float], window: int, index: int) -> Optional[float]:
    """
    Mean of the ``window`` values before ``index`` (the current point is
    excluded). None when fewer than ``window`` prior points exist.
    """
    if window < 1:
        raise ValueError(f"window must be positive, got {window}")
    if index < window or index > len(series):
        return None
    return float(np.mean(np.asarray(series[index - window:index], dtype=float)))


def moving_average_column(series: Sequence[float], window: int) -> list:
    return [moving_average(series, window, i) for i in range(len(series))]


def max_drawdown(series: Sequence[float]) -> float:
    """Largest (peak - price) / peak over the series, as a fraction."""
    prices = np.asarray(series, dtype=float)
    if prices.size == 0:
        return 0.0
    peak = np.maximum.accumulate(prices)
    return float(np.max((peak - prices) / peak))


def max_drawdown_percent(series: Sequence[float]) -> float:
    return max_drawdown(series) * 100


def series_annualized_volatility(
    closes: Sequence[float],
    periods: int = SERIES_TRADING_DAYS,
) -> Optional[float]:
    """Whole-series volatility from simple returns, sample deviation."""
    return annualized_volatility(simple_returns(closes), periods, ddof=1)


def series_sharpe_ratio(
    closes: Sequence[float],
    risk_free: float = SERIES_RISK_FREE_RATE,
    periods: int = SERIES_TRADING_DAYS,
) -> Optional[float]:
    """
    Whole-series Sharpe ratio with a simple (non-compounded) annualized
    return: total return * periods / (n - 1). Fractions, not percent.
    """
    if len(closes) < 2 or closes[0] <= 0:
        return None
    total = (closes[-1] - closes[0]) / closes[0]
    annualized = total * (periods / (len(closes) - 1))
    vol = series_annualized_volatility(closes, periods)
    if vol is None or vol <= 0:
        return None
    return (annualized - risk_free) / vol


def _ratio(numerator, denominator) -> Optional[float]:
    if numerator is None or denominator is None or denominator == 0:
        return None
    return numerator / denominator


def daily_indicators(
    open_price: Optional[float],
    high: Optional[float],
    low: Optional[float],
    close: Optional[float],
    volume: Optional[float],
) -> Dict[str, Optional[float]]:
    """Intraday indicators for one row; any missing input yields None."""
    spread = None if high is None or low is None else high - low
    position = None
    if spread is not None and close is not None:
        position = (close - low) / spread if spread > 0 else 0.0
    volume_ratio = None
    if volume is not None and close is not None:
        volume_ratio = volume / close if close > 0 else 0.0
    return {
        "daily_volatility": _ratio(spread, open_price),
        "daily_range": spread,
        "close_open_diff": None if close is None or open_price is None else close - open_price,
        "range_position": position,
        "volume_price_ratio": volume_ratio,
    }


def ma_crossover(short_ma: Optional[float], long_ma: Optional[float]):
    """(short > long, short < long) as 1/0 flags; (None, None) before both exist."""
    if short_ma is None or long_ma is None or math.isnan(short_ma) or math.isnan(long_ma):
        return None, None
    return int(short_ma > long_ma), int(short_ma < long_ma)
