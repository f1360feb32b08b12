from pathlib import Path

import pandas as pd
import pytest

from index_metrics.errors import MissingColumnError
from index_metrics.excel import (
    SourceSheet,
    cell_ref,
    column_letter,
    find_column,
    output_path_for,
    positional_columns,
    resolve_columns,
)


def test_resolve_chinese_headers():
    headers = ["交易日期", "开盘价", "收盘价", "涨跌幅(%)", "样本数量"]
    columns = resolve_columns(headers, ("date", "close", "change_percent"), ("sample_count", "volume"))
    assert columns == {"date": 0, "close": 2, "change_percent": 3, "sample_count": 4}


def test_resolve_english_headers_case_insensitively():
    headers = ["Date", "Open_Price", "Close Price", "Change_Percent"]
    columns = resolve_columns(headers, ("date", "open", "close", "change_percent"))
    assert columns == {"date": 0, "open": 1, "close": 2, "change_percent": 3}


def test_synonym_order_wins_over_header_order():
    assert find_column(["收盘", "收盘价"], ("收盘价", "收盘")) == 1


def test_missing_required_column():
    with pytest.raises(MissingColumnError) as exc_info:
        resolve_columns(["日期", "收盘"], ("date", "close", "change_percent"), sheet="s1")
    assert exc_info.value.missing == ["change_percent"]
    assert exc_info.value.sheet == "s1"


def test_custom_synonym_table():
    columns = resolve_columns(["px_last", "as_of"], ("date", "close"),
                              synonyms={"date": ("as_of",), "close": ("px_last",)})
    assert columns == {"date": 1, "close": 0}


def test_positional_columns():
    wide = SourceSheet.from_frame("w", pd.DataFrame([list("ABCDEFGHIJK"), list(range(11))]))
    assert positional_columns(wide) == {"date": 0, "close": 9}
    narrow = SourceSheet.from_frame("n", pd.DataFrame([list("ABC"), [1, 2, 3]]))
    with pytest.raises(MissingColumnError):
        positional_columns(narrow)


def test_source_sheet_from_frame():
    frame = pd.DataFrame([[" 日期 ", None, "收盘"], [20200102, 1, 100.0], [20200103, 2, 101.0]])
    sheet = SourceSheet.from_frame("s", frame)
    assert sheet.headers == ["日期", "", "收盘"]
    assert sheet.n_rows == 2
    assert sheet.n_columns == 3
    assert list(sheet.data.columns) == [0, 1, 2]
    assert sheet.data.iloc[0, 2] == 100.0

    empty = SourceSheet.from_frame("e", pd.DataFrame())
    assert empty.n_rows == 0 and empty.headers == []


def test_references():
    assert cell_ref(0, 2) == "C2"
    assert cell_ref(5, 5) == "F7"
    assert column_letter(27) == "AB"


def test_output_path_for():
    assert output_path_for(Path("data") / "指数.xlsx", "处理结果") == Path("data") / "指数_处理结果.xlsx"
