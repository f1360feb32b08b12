"""Run-wide defaults and the header synonym table."""

from dataclasses import asdict, dataclass, field
from typing import Dict, Optional, Tuple

DOCUMENTS_DIR = "认识指数"

RISK_FREE_RATE_PERCENT = 3.0
TRADING_DAYS_PER_YEAR = 252
# The daily-indicator sheet annualizes on 250 days and a 3% decimal rate.
SERIES_TRADING_DAYS = 250
SERIES_RISK_FREE_RATE = 0.03

YEAR_SPANS = (1, 3, 5, 7, 9, 11, 13, 15, 17, 19, 21)
LONG_YEAR_SPANS = (3, 5, 7, 9, 11, 13, 15, 17, 19, 21)
MA_WINDOWS = (5, 10, 20, 60, 120, 250)

# Fixed positions (A and J) for sheets whose headers do not match the synonym table.
DATE_COLUMN_POSITION = 0
CLOSE_COLUMN_POSITION = 9

# canonical field -> synonyms, tried in order against each header cell
COLUMN_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "date": ("日期", "交易日期", "date", "trade_date"),
    "index_code": ("指数代码", "代码", "index_code", "code"),
    "full_name": ("指数中文全称", "全称", "index_full_name", "full_name"),
    "short_name": ("指数中文简称", "简称", "index_short_name", "short_name"),
    "open": ("开盘价", "开盘", "open_price", "open"),
    "high": ("最高价", "最高", "high_price", "high"),
    "low": ("最低价", "最低", "low_price", "low"),
    "close": ("收盘价", "收盘", "close_price", "closeprice", "close"),
    "change_points": ("涨跌点数", "change_points", "changepoints"),
    "change_percent": ("涨跌幅", "change_percent", "changepercent", "pct_change", "percent"),
    "volume": ("成交量", "volume"),
    "amount": ("成交金额", "amount"),
    "sample_count": ("样本数量", "sample_count", "samplecount", "constituents"),
}


@dataclass
class MetricsConfig:
    """
    Tunable parameters for one workbook run.
    """
    risk_free_rate: float = RISK_FREE_RATE_PERCENT   # percent, e.g. 3.0
    trading_days: int = TRADING_DAYS_PER_YEAR
    # ddof for the daily-change column (population) and log returns (sample)
    change_percent_ddof: int = 0
    log_return_ddof: int = 1

    year_spans: Tuple[int, ...] = YEAR_SPANS
    end_year: Optional[int] = None   # None: measure from the latest record
    ma_windows: Tuple[int, ...] = MA_WINDOWS

    fixed_columns: bool = False      # date in A, close in J instead of header lookup
    hide_other_rows: bool = True
    highlight_color: str = "#FF0000"
    column_width: int = 12

    column_synonyms: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(COLUMN_SYNONYMS)
    )

    def to_dict(self) -> dict:
        """Run settings for the log, without the synonym table."""
        return {k: v for k, v in asdict(self).items() if k != "column_synonyms"}
