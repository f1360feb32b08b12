import math
from datetime import date

import numpy as np
import pytest

from index_metrics.errors import EmptyInputError
from index_metrics.records import TradingRecord
from index_metrics.yearly import (
    compute_year_metrics,
    partition_by_year,
    trailing_annual_returns,
    trailing_endpoints,
    yearly_log_volatility,
)

from conftest import PRICE_ROWS


def _records():
    return [
        TradingRecord(date(d // 10000, d // 100 % 100, d % 100), close, change, i)
        for i, (d, _open, close, change, _n) in enumerate(PRICE_ROWS)
    ]


def test_partition_sorts_and_buckets():
    records = _records()
    shuffled = records[::-1] + [TradingRecord(None, 5.0), TradingRecord(date(2020, 3, 3), -1.0)]
    buckets = partition_by_year(shuffled)

    assert list(buckets) == [2019, 2020, 2021]
    union = [r for b in buckets.values() for r in b.records]
    assert sorted(union, key=lambda r: r.row) == records
    for year, bucket in buckets.items():
        assert all(r.date.year == year for r in bucket.records)
        assert bucket.last.date == max(r.date for r in bucket.records)
    assert buckets[2020].last.close == 110.0
    assert buckets[2019].first.close == 90.0


def test_partition_rejects_empty_input():
    with pytest.raises(EmptyInputError):
        partition_by_year([])
    with pytest.raises(EmptyInputError):
        partition_by_year([TradingRecord(None, 1.0), TradingRecord(date(2020, 1, 1), 0.0)])


def test_year_metrics():
    metrics = compute_year_metrics(partition_by_year(_records()))

    assert metrics[2019].annual_return is None
    assert metrics[2019].volatility == pytest.approx(np.std([1.0, -1.0, 2.0]) * math.sqrt(252))
    assert metrics[2019].sharpe is None

    assert metrics[2020].annual_return == pytest.approx(10.0)
    assert metrics[2020].volatility == pytest.approx(0.0)
    assert metrics[2020].sharpe is None

    vol_2021 = 1.0 * math.sqrt(252)
    assert metrics[2021].annual_return == pytest.approx(-10.0)
    assert metrics[2021].volatility == pytest.approx(vol_2021)
    assert metrics[2021].sharpe == pytest.approx((-10.0 - 3.0) / vol_2021)


def test_year_metrics_needs_the_previous_calendar_year():
    records = [r for r in _records() if r.date.year != 2020]
    metrics = compute_year_metrics(partition_by_year(records))
    assert metrics[2021].annual_return is None


def test_single_record_year_has_no_volatility():
    buckets = partition_by_year([TradingRecord(date(2020, 12, 31), 100.0, 1.0)])
    assert compute_year_metrics(buckets)[2020].volatility is None


def test_yearly_log_volatility():
    vols = yearly_log_volatility(partition_by_year(_records()))
    expected = np.std(np.log([95 / 90, 100 / 95]), ddof=1) * math.sqrt(252)
    assert vols[2019] == pytest.approx(expected)
    assert vols[2021] is None        # one log return only


def test_trailing_returns_from_latest_record():
    buckets = partition_by_year(_records())
    returns = trailing_annual_returns(buckets, spans=(1, 2, 3))

    assert returns[1] == pytest.approx(99 / 110 - 1)
    assert returns[2] == pytest.approx((99 / 100) ** 0.5 - 1)
    assert returns[3] is None


def test_trailing_returns_to_a_given_year():
    buckets = partition_by_year(_records())
    end, starts = trailing_endpoints(buckets, (1,), end_year=2020)
    assert end.close == 110.0
    assert starts[1].close == 100.0
    assert trailing_annual_returns(buckets, (1,), end_year=2020)[1] == pytest.approx(0.1)
    assert trailing_annual_returns(buckets, (1, 3), end_year=2030) == {1: None, 3: None}
