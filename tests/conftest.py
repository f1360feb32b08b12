import pandas as pd
import pytest

HEADERS = ["日期", "开盘", "收盘", "涨跌幅(%)", "样本数量"]

# (date, open, close, change %, constituents); year ends fall on rows 2, 5 and 7
PRICE_ROWS = [
    (20190102, 89.0, 90.0, 1.0, 300),
    (20190601, 94.0, 95.0, -1.0, 300),
    (20191231, 99.0, 100.0, 2.0, 300),
    (20200102, 100.0, 101.0, 1.0, 300),
    (20200701, 104.0, 105.0, 1.0, 300),
    (20201231, 109.0, 110.0, 1.0, 300),
    (20210104, 110.0, 111.0, 0.5, 300),
    (20211231, 100.0, 99.0, -1.5, 300),
]


def price_frame(rows=PRICE_ROWS, headers=HEADERS) -> pd.DataFrame:
    """Raw sheet layout: header texts in the first row, as read with header=None."""
    return pd.DataFrame([list(headers)] + [list(r) for r in rows])


@pytest.fixture
def price_sheet():
    from index_metrics.excel import SourceSheet
    return SourceSheet.from_frame("沪深300", price_frame())


@pytest.fixture
def price_workbook(tmp_path):
    path = tmp_path / "indices.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(PRICE_ROWS, columns=HEADERS).to_excel(writer, sheet_name="沪深300", index=False)
        pd.DataFrame({"foo": [1, 2], "bar": [3, 4]}).to_excel(writer, sheet_name="notes", index=False)
    return path
