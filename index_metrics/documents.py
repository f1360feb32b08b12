"""
Per-index Markdown documents from the index-introduction workbook.

The workbook has two header rows. The first names the descriptive
fields and the three grouped sections; the second labels the columns
inside each group (years for the yearly return and volatility sections,
``近N年`` for the recent annualized returns).
"""

import logging
import re
from numbers import Number
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from .config import YEAR_SPANS
from .errors import EmptyInputError, MissingColumnError
from .records import parse_date, parse_number

logger = logging.getLogger(__name__)

RETURN_SECTION = "指定年份年收益(%)"
VOLATILITY_SECTION = "指定年份年波动率(%)"
RECENT_SECTION = "基日以来近几年年化收益(%)"
GROUP_TITLES = (RETURN_SECTION, VOLATILITY_SECTION, RECENT_SECTION)

MAIN_FIELDS = (
    "指数简称", "指数代码", "指数名称", "样本数量", "选样范围", "选样指标", "计算方式",
    "权重上限", "调样周期", "基点", "基日", "发布日期", "基日以来全部年份年平均收益(%)",
)
DATE_FIELDS = ("基日", "发布日期")
AVERAGE_RETURN_FIELD = "基日以来全部年份年平均收益(%)"

FIRST_YEAR = 2005
LAST_YEAR = 2025

_UNSAFE = re.compile(r'[<>:"/\\|?*]')


def to_percent(value) -> str:
    """Render a ratio such as 0.1234 as ``12.34%``; leave non-ratios alone."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, str):
        text = value.strip()
        if not text or text.endswith("%"):
            return text
    number = parse_number(value)
    if number is None or number < -10 or number > 100:
        return str(value).strip()
    return f"{number * 100:.2f}%"


def format_date(value) -> str:
    day = parse_date(value)
    if day is not None:
        return day.isoformat()
    return "" if value is None or pd.isna(value) else str(value).strip()


def scrollable_table(headers: Sequence[str], values: Sequence[object]) -> str:
    if not headers:
        return "无数据\n\n"
    cells = [to_percent(v) for v in values]
    header_row = f"| {' | '.join(headers)} |\n"
    separator = f"|{'|'.join('---' for _ in headers)}|\n"
    data_row = f"| {' | '.join(cells)} |\n"
    return f'<div style="overflow-x: auto;">\n\n{header_row}{separator}{data_row}\n</div>\n\n'


def _header_text(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, Number) and float(value).is_integer():
        return str(int(value))
    return str(value).strip()


def combine_headers(first: Sequence[object], second: Sequence[object]) -> List[str]:
    """Second-row label where present, else the first-row field unless it is a group title."""
    headers = []
    for i in range(max(len(first), len(second))):
        sub = _header_text(second[i]) if i < len(second) else ""
        top = _header_text(first[i]) if i < len(first) else ""
        if sub:
            headers.append(sub)
        elif top and top not in GROUP_TITLES:
            headers.append(top)
        else:
            headers.append("")
    return headers


def render_document(row: Sequence[object], headers: Sequence[str],
                    years: Sequence[str], periods: Sequence[str]) -> str:
    field_columns: Dict[str, int] = {h: i for i, h in enumerate(headers) if h in MAIN_FIELDS}
    return_start = headers.index(years[0])
    vol_start = return_start + len(years)
    recent_start = vol_start + len(years)

    def cell(col):
        return row[col] if col < len(row) else None

    parts = []
    for name in MAIN_FIELDS:
        value = cell(field_columns[name]) if name in field_columns else None
        if name in DATE_FIELDS:
            text = format_date(value)
        elif name == AVERAGE_RETURN_FIELD:
            text = to_percent(value)
        else:
            text = "" if value is None or (not isinstance(value, str) and pd.isna(value)) else str(value).strip()
        parts.append(f"## {name}\n\n{text or '无'}\n\n")

    parts.append(f"## {RETURN_SECTION}\n\n")
    parts.append(scrollable_table(years, [cell(return_start + i) for i in range(len(years))]))
    parts.append(f"## {VOLATILITY_SECTION}\n\n")
    parts.append(scrollable_table(years, [cell(vol_start + i) for i in range(len(years))]))
    parts.append(f"## {RECENT_SECTION}\n\n")
    parts.append(scrollable_table(periods, [cell(recent_start + i) for i in range(len(periods))]))
    return "".join(parts)


def document_filename(short_name: str) -> str:
    return _UNSAFE.sub("_", f"认识“{short_name}”指数.md")


def generate_documents(input_path, output_dir, first_year: int = FIRST_YEAR,
                       last_year: int = LAST_YEAR, spans: Sequence[int] = YEAR_SPANS) -> List[Path]:
    """Write one Markdown file per index row; returns the written paths."""
    input_path = Path(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"input workbook not found: {input_path}")
    frame = pd.read_excel(input_path, sheet_name=0, header=None, dtype=object)
    if len(frame) < 3:
        raise EmptyInputError("need two header rows and at least one data row")

    rows = [list(r) for r in frame.itertuples(index=False, name=None)]
    headers = combine_headers(rows[0], rows[1])
    years = [str(y) for y in range(first_year, last_year + 1)]
    periods = [f"近{n}年" for n in spans]
    if years[0] not in headers:
        raise MissingColumnError(input_path.name, [years[0]])
    logger.info("Return columns start at %d", headers.index(years[0]))

    name_col = headers.index("指数简称") if "指数简称" in headers else 0
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for row in rows[2:]:
        short = row[name_col] if name_col < len(row) else None
        short_name = _header_text(short)
        if not short_name:
            continue
        path = output_dir / document_filename(short_name)
        path.write_text(render_document(row, headers, years, periods), encoding="utf-8")
        logger.info("Wrote %s", path.name)
        written.append(path)

    logger.info("%d documents written to %s", len(written), output_dir)
    return written
