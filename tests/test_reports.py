import math

import numpy as np
import openpyxl
import pandas as pd
import pytest

from index_metrics.config import MetricsConfig
from index_metrics.errors import MissingColumnError
from index_metrics.excel import SourceSheet, resolve_columns
from index_metrics.metric import FORMULA, NOTE, Metric
from index_metrics.records import records_from_frame
from index_metrics.reports import (
    daily_indicators_plan,
    run_workbook,
    trailing_returns_plan,
    yearly_metrics_plan,
    yearly_volatility_plan,
)
from index_metrics.yearly import partition_by_year, trailing_annual_returns

from conftest import PRICE_ROWS, price_frame


def test_yearly_metrics_plan(price_sheet):
    plan = yearly_metrics_plan(price_sheet, MetricsConfig())

    assert plan.new_columns == ["年收益率(%)", "年波动率(%)", "夏普比率"]
    assert plan.start_column == 5
    assert plan.highlight_rows == {2, 5, 7}
    assert plan.hidden_rows == {0, 1, 3, 4, 6}

    ret_2020 = plan.cells[(5, 0)].value
    assert ret_2020.kind == FORMULA
    assert ret_2020.provenance == "=(C7/C4-1)*100"
    assert ret_2020.value == pytest.approx(10.0)

    assert plan.cells[(2, 0)].value is None          # first year
    assert plan.cells[(5, 2)].value is None          # zero volatility

    vol_2019 = plan.cells[(2, 1)].value
    assert vol_2019.kind == NOTE
    assert vol_2019.provenance == "=STDEV.P(D2:D4)*SQRT(252)"
    assert vol_2019.value == pytest.approx(np.std([1.0, -1.0, 2.0]) * math.sqrt(252))

    sharpe_2021 = plan.cells[(7, 2)].value
    assert sharpe_2021.provenance == "=(F9-3)/G9"
    assert sharpe_2021.value == pytest.approx(-13.0 / math.sqrt(252))


def test_yearly_metrics_plan_options(price_sheet):
    plan = yearly_metrics_plan(price_sheet, MetricsConfig(hide_other_rows=False, change_percent_ddof=1))
    assert plan.hidden_rows == set()
    assert plan.cells[(2, 1)].value.provenance.startswith("=STDEV.S(")


def test_yearly_metrics_plan_requires_change_column():
    sheet = SourceSheet.from_frame("s", price_frame(headers=["日期", "开盘", "收盘", "备注", "样本数量"]))
    with pytest.raises(MissingColumnError):
        yearly_metrics_plan(sheet, MetricsConfig())


def test_yearly_volatility_plan(price_sheet):
    plan = yearly_volatility_plan(price_sheet, MetricsConfig())
    assert plan.new_columns == ["波动率"]
    assert plan.cells[(2, 0)].value.value == pytest.approx(
        np.std(np.log([95 / 90, 100 / 95]), ddof=1) * math.sqrt(252)
    )
    assert plan.cells[(7, 0)].value is None
    assert plan.highlight_rows == {2, 5, 7}

    with pytest.raises(MissingColumnError):
        yearly_volatility_plan(price_sheet, MetricsConfig(fixed_columns=True))


def test_trailing_returns_plan(price_sheet):
    plan = trailing_returns_plan(price_sheet, MetricsConfig(year_spans=(1, 2, 3)))
    assert plan.new_columns == ["近1年年化收益率", "近2年年化收益率", "近3年年化收益率"]

    one = plan.cells[(0, 0)].value
    assert one.provenance == "=(C9/C7)^(1/1)-1"
    assert one.value == pytest.approx(99 / 110 - 1)
    assert plan.cells[(0, 1)].value.value == pytest.approx((99 / 100) ** 0.5 - 1)
    assert plan.cells[(0, 2)].value is None
    assert plan.highlight_rows == {7}


def test_trailing_returns_plan_missing_end_year(price_sheet):
    plan = trailing_returns_plan(price_sheet, MetricsConfig(year_spans=(1,), end_year=2030))
    assert plan.cells[(0, 0)].value is None
    assert plan.highlight_rows == set()


def test_daily_indicators_plan():
    headers = ["日期", "开盘价", "最高价", "最低价", "收盘价", "成交量（万手）"]
    closes = [10.0, 11.0, 12.0, None, 13.0, 9.0]
    rows = [[20200101 + i, 10.0, 14.0, 8.0, c, 100.0] for i, c in enumerate(closes)]
    sheet = SourceSheet.from_frame("s", pd.DataFrame([headers] + rows))

    plan = daily_indicators_plan(sheet, MetricsConfig(ma_windows=(2, 3)))
    assert plan.new_columns[5:7] == ["2日移动平均", "3日移动平均"]
    assert plan.new_columns[7:] == ["2日>3日", "2日<3日", "年化波动率", "最大回撤", "夏普比率"]

    assert plan.cells[(0, 0)].value == pytest.approx(0.6)     # (14 - 8) / 10
    assert plan.cells[(0, 4)].value == pytest.approx(10.0)    # 100 / 10
    assert plan.cells[(2, 5)].value == pytest.approx(10.5)
    assert plan.cells[(2, 6)].value is None
    assert plan.cells[(3, 5)].value is None                   # no close on this row
    assert plan.cells[(4, 5)].value == pytest.approx(11.5)
    assert plan.cells[(4, 6)].value == pytest.approx(11.0)
    assert (plan.cells[(4, 7)].value, plan.cells[(4, 8)].value) == (1, 0)

    drawdown = plan.cells[(0, 10)].value
    assert isinstance(drawdown, Metric)
    assert drawdown.value == pytest.approx(4 / 13 * 100)
    assert plan.cells[(5, 10)].value == pytest.approx(4 / 13 * 100)


def test_run_workbook_writes_styled_output(price_workbook, tmp_path):
    out = tmp_path / "out" / "result.xlsx"
    path, processed, skipped = run_workbook(price_workbook, out, yearly_metrics_plan)

    assert path == out and out.exists()
    assert processed == ["沪深300"]
    assert skipped == ["notes"]

    wb = openpyxl.load_workbook(out)
    ws = wb["沪深300"]
    assert [ws.cell(1, c).value for c in range(6, 9)] == ["年收益率(%)", "年波动率(%)", "夏普比率"]
    assert ws["A7"].value == 20201231
    assert [ws.row_dimensions[r].hidden for r in range(2, 10)] == [True, True, False, True, True, False, True, False]
    assert ws["A4"].font.color.rgb == "FFFF0000"
    assert ws["A4"].font.b
    assert ws["F7"].value == "=(C7/C4-1)*100"
    assert ws["F4"].value == "--"
    assert ws["G4"].comment.text == "公式: =STDEV.P(D2:D4)*SQRT(252)"
    assert wb["notes"]["A1"].value == "foo"

    cached = openpyxl.load_workbook(out, data_only=True)["沪深300"]
    assert cached["F7"].value == pytest.approx(10.0)
    assert cached["G7"].value == pytest.approx(0.0)


def test_run_workbook_missing_input(tmp_path):
    with pytest.raises(FileNotFoundError):
        run_workbook(tmp_path / "nope.xlsx", tmp_path / "out.xlsx", yearly_metrics_plan)


def test_yearly_volatility_skips_single_day_years():
    rows = PRICE_ROWS + [(20220104, 98.0, 97.0, -2.0, 300)]
    sheet = SourceSheet.from_frame("s", price_frame(rows=rows))
    plan = yearly_volatility_plan(sheet, MetricsConfig())

    assert all(position != 8 for position, _ in plan.cells)
    assert plan.highlight_rows == {2, 5, 7}
    assert 8 in plan.hidden_rows


def test_trailing_returns_plan_matches_yearly_operation(price_sheet):
    spans = (1, 2, 3)
    plan = trailing_returns_plan(price_sheet, MetricsConfig(year_spans=spans))
    columns = resolve_columns(price_sheet.headers, ("date", "close"))
    expected = trailing_annual_returns(partition_by_year(records_from_frame(price_sheet.data, columns)), spans)

    for offset, n in enumerate(spans):
        cell = plan.cells[(0, offset)].value
        if expected[n] is None:
            assert cell is None
        else:
            assert cell.value == expected[n]
