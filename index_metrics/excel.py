"""
Workbook reading, header resolution and XlsxWriter output.

Input sheets are read raw (``header=None``, ``dtype=object``) so that the
first row can be matched against the synonym table and every data cell
reaches the parsers untouched. Output is written cell by cell through
XlsxWriter so highlighted rows, hidden rows, formulas and comments can
be set per cell.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from numbers import Number
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import pandas as pd
from xlsxwriter.utility import xl_col_to_name, xl_rowcol_to_cell

from .config import CLOSE_COLUMN_POSITION, COLUMN_SYNONYMS, DATE_COLUMN_POSITION
from .errors import MissingColumnError
from .metric import FORMULA, Metric

logger = logging.getLogger(__name__)

MISSING = "--"


# ---------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------
@dataclass
class SourceSheet:
    """One input sheet: header texts plus the data rows below them."""
    name: str
    headers: List[str]
    header_values: List[object]
    data: pd.DataFrame

    @classmethod
    def from_frame(cls, name: str, frame: pd.DataFrame) -> "SourceSheet":
        if frame.empty:
            return cls(name, [], [], pd.DataFrame())
        header_values = [None if _blank(v) else v for v in frame.iloc[0].tolist()]
        headers = ["" if v is None else str(v).strip() for v in header_values]
        data = frame.iloc[1:].reset_index(drop=True)
        data.columns = range(data.shape[1])
        return cls(name, headers, header_values, data)

    @property
    def n_rows(self) -> int:
        return len(self.data)

    @property
    def n_columns(self) -> int:
        return len(self.headers)


def read_workbook(path) -> Dict[str, SourceSheet]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"input workbook not found: {path}")
    frames = pd.read_excel(path, sheet_name=None, header=None, dtype=object)
    logger.info("Loaded %s (%d sheets)", path, len(frames))
    return {name: SourceSheet.from_frame(name, frame) for name, frame in frames.items()}


def _blank(value) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


# ---------------------------------------------------------------------
# Header resolution
# ---------------------------------------------------------------------
def find_column(headers: Sequence[str], synonyms: Iterable[str]) -> Optional[int]:
    """First header containing a synonym, trying synonyms in priority order."""
    lowered = [h.lower().strip() for h in headers]
    for keyword in synonyms:
        key = keyword.lower()
        for i, header in enumerate(lowered):
            if header and key in header:
                return i
    return None


def resolve_columns(
    headers: Sequence[str],
    required: Sequence[str],
    optional: Sequence[str] = (),
    synonyms: Mapping[str, Sequence[str]] = COLUMN_SYNONYMS,
    sheet: str = "",
) -> Dict[str, int]:
    """Map canonical field names to column positions; raise if a required one is absent."""
    columns = {}
    missing = []
    for name in list(required) + list(optional):
        index = find_column(headers, synonyms.get(name, (name,)))
        if index is not None:
            columns[name] = index
        elif name in required:
            missing.append(name)
    if missing:
        raise MissingColumnError(sheet, missing)
    logger.debug("Sheet %s columns: %s", sheet, columns)
    return columns


def positional_columns(sheet: SourceSheet) -> Dict[str, int]:
    """Fixed A (date) / J (close) layout for sheets without a usable header."""
    if sheet.n_columns <= CLOSE_COLUMN_POSITION:
        raise MissingColumnError(sheet.name, ["close"])
    return {"date": DATE_COLUMN_POSITION, "close": CLOSE_COLUMN_POSITION}


def cell_ref(position: int, column: int) -> str:
    """A1 reference of a data cell; position 0 is the row under the header."""
    return xl_rowcol_to_cell(position + 1, column)


def column_letter(column: int) -> str:
    return xl_col_to_name(column)


def output_path_for(input_path, suffix: str) -> Path:
    path = Path(input_path)
    return path.with_name(f"{path.stem}_{suffix}.xlsx")


# ---------------------------------------------------------------------
# Sheet plans
# ---------------------------------------------------------------------
@dataclass
class Cell:
    value: object                 # Metric, number, text or None ("--")
    num_format: Optional[str] = None


@dataclass
class SheetPlan:
    """
    Everything a report adds to one sheet. ``cells`` is keyed by
    (data position, offset into ``new_columns``).
    """
    new_columns: List[str]
    start_column: int
    cells: Dict[Tuple[int, int], Cell] = field(default_factory=dict)
    highlight_rows: Set[int] = field(default_factory=set)
    hidden_rows: Set[int] = field(default_factory=set)

    def put(self, position: int, offset: int, value, num_format: Optional[str] = None) -> None:
        self.cells[(position, offset)] = Cell(value, num_format)

    def column(self, offset: int) -> int:
        return self.start_column + offset


# ---------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------
class ReportFormats:
    """Cache of XlsxWriter formats keyed by (num_format, highlight, bold)."""

    def __init__(self, workbook, highlight_color: str = "#FF0000"):
        self._workbook = workbook
        self._highlight_color = highlight_color
        self._cache = {}

    def get(self, num_format: Optional[str] = None, highlight: bool = False, bold: bool = False):
        key = (num_format, highlight, bold)
        if key not in self._cache:
            props = {}
            if num_format:
                props["num_format"] = num_format
            if highlight:
                props["font_color"] = self._highlight_color
                props["bold"] = True
            if bold:
                props["bold"] = True
            self._cache[key] = self._workbook.add_format(props) if props else None
        return self._cache[key]


class SheetWriter:
    def __init__(self, workbook, name: str, formats: ReportFormats, column_width: int = 12):
        self.worksheet = workbook.add_worksheet(name)
        self.formats = formats
        self.column_width = column_width

    def write(self, sheet: SourceSheet, plan: Optional[SheetPlan] = None) -> None:
        highlight = plan.highlight_rows if plan else set()
        self._write_header(sheet, plan)
        for position, values in enumerate(sheet.data.itertuples(index=False, name=None)):
            row = position + 1
            marked = position in highlight
            for col, value in enumerate(values):
                self._write_value(row, col, value, self.formats.get(None, marked), marked)
            if plan and position in plan.hidden_rows:
                self.worksheet.set_row(row, None, None, {"hidden": True})

        if plan is None:
            return
        for (position, offset), cell in sorted(plan.cells.items()):
            fmt = self.formats.get(cell.num_format, position in highlight)
            self._write_cell(position + 1, plan.column(offset), cell.value, fmt)
        if plan.new_columns:
            self.worksheet.set_column(
                plan.start_column, plan.start_column + len(plan.new_columns) - 1, self.column_width
            )

    def _write_header(self, sheet: SourceSheet, plan: Optional[SheetPlan]) -> None:
        bold = self.formats.get(bold=True)
        for col, value in enumerate(sheet.header_values):
            self._write_value(0, col, value, None, False)
        if plan:
            for offset, title in enumerate(plan.new_columns):
                self.worksheet.write_string(0, plan.column(offset), title, bold)

    def _write_value(self, row: int, col: int, value, fmt, marked: bool) -> None:
        ws = self.worksheet
        if _blank(value):
            if marked:
                ws.write_blank(row, col, None, fmt)
        elif isinstance(value, (datetime, date)):
            date_fmt = self.formats.get("yyyy-mm-dd", marked)
            ws.write_datetime(row, col, pd.Timestamp(value).to_pydatetime(), date_fmt)
        elif isinstance(value, bool):
            ws.write_boolean(row, col, value, fmt)
        elif isinstance(value, Number):
            ws.write_number(row, col, float(value), fmt)
        else:
            ws.write_string(row, col, str(value), fmt)

    def _write_cell(self, row: int, col: int, value, fmt) -> None:
        ws = self.worksheet
        if isinstance(value, Metric):
            if value.value is None or not math.isfinite(value.value):
                ws.write_string(row, col, MISSING, fmt)
            elif value.kind == FORMULA and value.provenance:
                ws.write_formula(row, col, value.provenance, fmt, value.value)
            else:
                ws.write_number(row, col, value.value, fmt)
                if value.provenance:
                    ws.write_comment(row, col, f"公式: {value.provenance}")
        elif value is None:
            ws.write_string(row, col, MISSING, fmt)
        else:
            self._write_value(row, col, value, fmt, False)


def write_workbook(output_path, sheets: Sequence[Tuple[SourceSheet, Optional[SheetPlan]]],
                   highlight_color: str = "#FF0000", column_width: int = 12) -> Path:
    output_path = Path(output_path)
    if output_path.parent and not output_path.parent.exists():
        output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="xlsxwriter", datetime_format="yyyy-mm-dd") as writer:
        wb = writer.book
        formats = ReportFormats(wb, highlight_color)
        for sheet, plan in sheets:
            SheetWriter(wb, sheet.name, formats, column_width).write(sheet, plan)
    logger.info("Wrote %s", output_path)
    return output_path
