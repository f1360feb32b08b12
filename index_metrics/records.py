"""
Trading records and the cell parsers that build them.

Source sheets mix real Excel dates, ``YYYYMMDD`` integers, ``YYYYMMDD``
strings, ``YYYY-MM-DD`` / ``YYYY/MM/DD`` strings and raw Excel serial
numbers in the same date column, so every cell goes through
:func:`parse_date`. Rows that do not parse are dropped, not reported.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from numbers import Number
from typing import Dict, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

EXCEL_EPOCH = date(1899, 12, 30)

_COMPACT_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_SEPARATED_DATE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[ T].*)?$")


@dataclass(frozen=True)
class TradingRecord:
    """One parsed row of daily index data."""
    date: date
    close: float
    change_percent: Optional[float] = None
    row: Optional[int] = None        # 0-based data row in the source sheet


def _is_missing(value) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _make_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value) -> Optional[date]:
    """Return the calendar date a cell stands for, or None."""
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if isinstance(value, Number):
        number = float(value)
        if not math.isfinite(number):
            return None
        whole = int(math.floor(number))
        if 19000000 <= whole < 25000000:
            text = str(whole)
            return _make_date(int(text[:4]), int(text[4:6]), int(text[6:]))
        # Excel serial day number
        if 1 <= whole < 73051:
            return EXCEL_EPOCH + timedelta(days=whole)
        return None

    if isinstance(value, str):
        text = value.strip()
        match = _COMPACT_DATE.match(text) or _SEPARATED_DATE.match(text)
        if match:
            year, month, day = (int(part) for part in match.groups())
            return _make_date(year, month, day)
    return None


def parse_number(value) -> Optional[float]:
    """Return a finite float, or None for blanks and text."""
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, Number):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "").rstrip("%")
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_price(value) -> Optional[float]:
    """Like :func:`parse_number` but only positive prices survive."""
    number = parse_number(value)
    if number is None or number <= 0:
        return None
    return number


def is_valid(record: TradingRecord) -> bool:
    return (
        isinstance(record.date, date)
        and isinstance(record.close, Number)
        and math.isfinite(record.close)
        and record.close > 0
    )


def records_from_frame(frame: pd.DataFrame, columns: Dict[str, int]) -> List[TradingRecord]:
    """
    Build TradingRecords from the data rows of a sheet.

    ``frame`` holds data rows only (no header) with positional columns;
    ``columns`` maps ``date``, ``close`` and optionally ``change_percent``
    to column positions. The record's ``row`` is the frame position.
    """
    date_col = columns["date"]
    close_col = columns["close"]
    change_col = columns.get("change_percent")

    records = []
    for position, values in enumerate(frame.itertuples(index=False, name=None)):
        day = parse_date(values[date_col])
        close = parse_price(values[close_col])
        if day is None or close is None:
            logger.debug("Dropping data row %d: date=%r close=%r",
                         position, values[date_col], values[close_col])
            continue
        change = parse_number(values[change_col]) if change_col is not None else None
        records.append(TradingRecord(day, close, change, position))
    return records
