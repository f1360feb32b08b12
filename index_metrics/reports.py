"""
Sheet transforms behind the command-line scripts.

Each ``*_plan`` function reads one :class:`SourceSheet` and returns the
:class:`SheetPlan` describing the columns, cells and row styling to add.
:func:`run_workbook` applies a plan function to every sheet in turn; a
sheet whose columns cannot be resolved or which has no valid rows is
logged and copied through unchanged.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .config import MetricsConfig
from .errors import EmptyInputError, MissingColumnError
from .excel import SheetPlan, SourceSheet, cell_ref, column_letter, positional_columns, read_workbook, resolve_columns, write_workbook
from .metric import Metric
from .records import parse_number, parse_price, records_from_frame
from .stats import daily_indicators, ma_crossover, max_drawdown_percent, moving_average, series_annualized_volatility, series_sharpe_ratio
from .yearly import compute_year_metrics, partition_by_year, trailing_annual_returns, trailing_endpoints, yearly_log_volatility

logger = logging.getLogger(__name__)

PlanFunction = Callable[[SourceSheet, MetricsConfig], SheetPlan]

PCT = "0.00%"
NUM2 = "0.00"
NUM4 = "0.0000"


def _price_columns(sheet: SourceSheet, config: MetricsConfig, optional=()) -> Dict[str, int]:
    if config.fixed_columns:
        return positional_columns(sheet)
    return resolve_columns(
        sheet.headers, ("date", "close"), optional, config.column_synonyms, sheet.name
    )


def _mark_year_ends(plan: SheetPlan, sheet: SourceSheet, buckets, config: MetricsConfig) -> None:
    plan.highlight_rows = {bucket.last.row for bucket in buckets.values()}
    if config.hide_other_rows:
        plan.hidden_rows = set(range(sheet.n_rows)) - plan.highlight_rows


# ---------------------------------------------------------------------
# Yearly return / volatility / Sharpe
# ---------------------------------------------------------------------
def yearly_metrics_plan(sheet: SourceSheet, config: MetricsConfig) -> SheetPlan:
    columns = resolve_columns(
        sheet.headers, ("date", "close", "change_percent"), (), config.column_synonyms, sheet.name
    )
    buckets = partition_by_year(records_from_frame(sheet.data, columns))
    metrics = compute_year_metrics(
        buckets, config.risk_free_rate, config.trading_days, config.change_percent_ddof
    )

    plan = SheetPlan(["年收益率(%)", "年波动率(%)", "夏普比率"], sheet.n_columns)
    close_col = columns["close"]
    change = column_letter(columns["change_percent"])
    stdev = "STDEV.P" if config.change_percent_ddof == 0 else "STDEV.S"

    for year, bucket in buckets.items():
        m = metrics[year]
        last = bucket.last.row
        ret_ref = cell_ref(last, plan.column(0))
        vol_ref = cell_ref(last, plan.column(1))

        ret = None
        if m.annual_return is not None:
            prior = buckets[year - 1].last.row
            ret = Metric.formula(
                m.annual_return,
                f"=({cell_ref(last, close_col)}/{cell_ref(prior, close_col)}-1)*100",
            )
        vol = None
        if m.volatility is not None:
            rows = [r.row for r in bucket.records]
            vol = Metric.note(
                m.volatility,
                f"={stdev}({change}{min(rows) + 2}:{change}{max(rows) + 2})*SQRT({config.trading_days})",
            )
        sharpe = None
        if m.sharpe is not None:
            sharpe = Metric.note(m.sharpe, f"=({ret_ref}-{config.risk_free_rate:g})/{vol_ref}")

        plan.put(last, 0, ret, NUM2)
        plan.put(last, 1, vol, NUM2)
        plan.put(last, 2, sharpe, NUM2)

    _mark_year_ends(plan, sheet, buckets, config)
    logger.info("Sheet %s: %d years (%d-%d)", sheet.name, len(buckets), min(buckets), max(buckets))
    return plan


# ---------------------------------------------------------------------
# Yearly volatility from log returns
# ---------------------------------------------------------------------
def yearly_volatility_plan(sheet: SourceSheet, config: MetricsConfig) -> SheetPlan:
    columns = _price_columns(sheet, config)
    buckets = partition_by_year(records_from_frame(sheet.data, columns))
    vols = yearly_log_volatility(buckets, config.trading_days, config.log_return_ddof)

    # single-day years get no cell and stay unmarked
    measured = {year: bucket for year, bucket in buckets.items() if len(bucket.records) >= 2}

    plan = SheetPlan(["波动率"], sheet.n_columns)
    for year, bucket in measured.items():
        vol = vols[year]
        note = (
            f"stdev(ln(close_t / close_t-1), ddof={config.log_return_ddof}) * sqrt({config.trading_days}), "
            f"{len(bucket.records)} trading days {bucket.first.date:%Y-%m-%d}..{bucket.last.date:%Y-%m-%d}"
        )
        plan.put(bucket.last.row, 0, None if vol is None else Metric.note(vol, note), PCT)

    _mark_year_ends(plan, sheet, measured, config)
    logger.info("Sheet %s: volatility for %d years", sheet.name, sum(v is not None for v in vols.values()))
    return plan


# ---------------------------------------------------------------------
# N-year annualized returns
# ---------------------------------------------------------------------
def trailing_returns_plan(sheet: SourceSheet, config: MetricsConfig) -> SheetPlan:
    columns = _price_columns(sheet, config)
    buckets = partition_by_year(records_from_frame(sheet.data, columns))
    spans = tuple(config.year_spans)
    end, starts = trailing_endpoints(buckets, spans, config.end_year)
    returns = trailing_annual_returns(buckets, spans, config.end_year)

    plan = SheetPlan([f"近{n}年年化收益率" for n in spans], sheet.n_columns)
    if end is None:
        logger.warning("Sheet %s has no data for end year %s", sheet.name, config.end_year)
    else:
        plan.highlight_rows = {end.row}
        logger.info("Sheet %s: measuring from %s", sheet.name, end.date)

    close_col = columns["close"]
    for offset, n in enumerate(spans):
        start = starts[n]
        value = returns[n]
        if value is None:
            logger.debug("Sheet %s: no year-end close %d years back, writing --", sheet.name, n)
            plan.put(0, offset, None, PCT)
            continue
        formula = f"=({cell_ref(end.row, close_col)}/{cell_ref(start.row, close_col)})^(1/{n})-1"
        plan.put(0, offset, Metric.formula(value, formula), PCT)
    return plan


# ---------------------------------------------------------------------
# Daily indicators and whole-series statistics
# ---------------------------------------------------------------------
DAILY_HEADERS = ("日波动率", "日波动幅度", "收盘-开盘价差", "价格区间位置", "成交量/价格比")
DAILY_KEYS = ("daily_volatility", "daily_range", "close_open_diff", "range_position", "volume_price_ratio")


def daily_indicators_plan(sheet: SourceSheet, config: MetricsConfig) -> SheetPlan:
    columns = resolve_columns(
        sheet.headers, ("open", "high", "low", "close", "volume"), (), config.column_synonyms, sheet.name
    )
    rows = list(sheet.data.itertuples(index=False, name=None))
    closes = [parse_price(values[columns["close"]]) for values in rows]
    series = [c for c in closes if c is not None]
    if not series:
        raise EmptyInputError(f"sheet {sheet.name!r} has no valid close prices")

    windows = tuple(config.ma_windows)
    short, long_ = windows[0], windows[1]
    headers = list(DAILY_HEADERS)
    headers += [f"{w}日移动平均" for w in windows]
    headers += [f"{short}日>{long_}日", f"{short}日<{long_}日", "年化波动率", "最大回撤", "夏普比率"]
    plan = SheetPlan(headers, sheet.n_columns)

    vol = series_annualized_volatility(series)
    mdd = max_drawdown_percent(series)
    sharpe = series_sharpe_ratio(series)
    logger.info("Sheet %s: %d closes, volatility=%s, max drawdown=%.4f%%, sharpe=%s",
                sheet.name, len(series), vol, mdd, sharpe)

    ma_offset = len(DAILY_HEADERS)
    flag_offset = ma_offset + len(windows)
    k = 0
    for position, values in enumerate(rows):
        indicators = daily_indicators(*(parse_number(values[columns[f]])
                                        for f in ("open", "high", "low", "close", "volume")))
        for offset, key in enumerate(DAILY_KEYS):
            plan.put(position, offset, indicators[key], NUM4)

        averages = {}
        if closes[position] is not None:
            averages = {w: moving_average(series, w, k) for w in windows}
            k += 1
        for offset, w in enumerate(windows):
            plan.put(position, ma_offset + offset, averages.get(w), NUM2)
        above, below = ma_crossover(averages.get(short), averages.get(long_))
        plan.put(position, flag_offset, above)
        plan.put(position, flag_offset + 1, below)

        plan.put(position, flag_offset + 2, vol, NUM4)
        plan.put(position, flag_offset + 3, mdd, NUM2)
        plan.put(position, flag_offset + 4, sharpe, NUM4)

    if sheet.n_rows:
        plan.put(0, flag_offset + 2, None if vol is None else Metric.note(vol, "stdev(daily returns) * sqrt(250)"), NUM4)
        plan.put(0, flag_offset + 3, Metric.note(mdd, "(running peak - later low) / running peak, %"), NUM2)
        plan.put(0, flag_offset + 4, None if sharpe is None else Metric.note(sharpe, "(annualized return - 3%) / annualized volatility"), NUM4)
    return plan


# ---------------------------------------------------------------------
# Workbook runner
# ---------------------------------------------------------------------
def run_workbook(
    input_path,
    output_path,
    plan_function: PlanFunction,
    config: Optional[MetricsConfig] = None,
) -> Tuple[Path, List[str], List[str]]:
    """
    Apply ``plan_function`` to every sheet and write the result.

    Returns (output path, processed sheet names, skipped sheet names).
    """
    config = config or MetricsConfig()
    sheets = read_workbook(input_path)

    planned = []
    processed, skipped = [], []
    for name, sheet in sheets.items():
        logger.info("Processing sheet %s", name)
        if sheet.n_rows == 0:
            logger.warning("Skipping empty sheet %s", name)
            planned.append((sheet, None))
            skipped.append(name)
            continue
        try:
            plan = plan_function(sheet, config)
        except (MissingColumnError, EmptyInputError) as exc:
            logger.warning("Skipping sheet %s: %s", name, exc)
            planned.append((sheet, None))
            skipped.append(name)
            continue
        planned.append((sheet, plan))
        processed.append(name)

    path = write_workbook(output_path, planned, config.highlight_color, config.column_width)
    return path, processed, skipped
