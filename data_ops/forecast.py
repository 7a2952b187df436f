"""
Time-series forecasting and synthetic forex scenarios.

forecast_time_series fits an ordinary least-squares line through
(date, value) points and projects it forward with a 95% band.
calculate_correlated_forex_scenario synthesizes a rate path for a
hypothetical exchange rate and a correlated pair.
"""

import logging
from datetime import date, timedelta
from typing import Optional

import numpy as np
import pandas as pd

from .errors import InsufficientDataError, ValidationError
from .results import OpResult, dataset_payload
from .store import DatasetStore
from .transforms import coerce_number, parse_date, require_columns

logger = logging.getLogger("tabula")

# Offsets used to step forward from the last observed date
FREQUENCIES = {
    "daily": pd.DateOffset(days=1),
    "monthly": pd.DateOffset(months=1),
    "quarterly": pd.DateOffset(months=3),
}

FORECAST_COLUMNS = ("forecast", "forecast_upper", "forecast_lower")

# 95% two-sided normal quantile
Z_95 = 1.96

CORRELATED_PAIRS = {
    "USD/JPY": "EUR/JPY",
    "EUR/JPY": "USD/JPY",
}
DEFAULT_CORRELATED_PAIR = "EUR/USD"


def forecast_time_series(
    store: DatasetStore,
    dataset_name: str,
    date_column: str,
    value_column: str,
    forecast_periods: int,
    frequency: str,
) -> OpResult:
    """Project *value_column* forward with a linear trend.

    Output rows are the original rows (forecast columns null) followed by one
    row per forecast period, where only the date and forecast columns are
    populated.
    """
    dataset = store.get(dataset_name)
    frequency = str(frequency).strip().lower()
    if frequency not in FREQUENCIES:
        raise ValidationError(
            f'Unsupported frequency "{frequency}". Supported: {", ".join(FREQUENCIES)}'
        )
    try:
        periods = int(forecast_periods)
    except (TypeError, ValueError):
        raise ValidationError(f"forecast_periods must be an integer, got {forecast_periods!r}") from None
    if periods < 1:
        raise ValidationError("forecast_periods must be at least 1.")
    require_columns(dataset, date_column, value_column)

    points = []
    for row in dataset.rows:
        ts = parse_date(row.get(date_column))
        value = coerce_number(row.get(value_column))
        if ts is not None and value is not None:
            points.append((ts, float(value)))
    points.sort(key=lambda p: p[0])

    n = len(points)
    if n < 2:
        raise InsufficientDataError("Time series forecasting requires at least two data points.")

    origin = points[0][0]
    x = np.array([(ts - origin) / pd.Timedelta(days=1) for ts, _ in points])
    y = np.array([v for _, v in points])
    if np.ptp(x) == 0:
        raise InsufficientDataError(
            "Time series forecasting requires at least two distinct dates."
        )
    slope, intercept = np.polyfit(x, y, 1)
    residuals = y - (slope * x + intercept)
    sse = float(np.sum(residuals ** 2))
    std_error = float(np.sqrt(sse / (n - 2))) if n > 2 else 0.0
    logger.debug(
        "forecast %s: n=%d slope=%.6g/day intercept=%.6g stderr=%.6g",
        dataset_name, n, slope, intercept, std_error,
    )

    rows = [{**row, **dict.fromkeys(FORECAST_COLUMNS)} for row in dataset.rows]
    current = points[-1][0]
    offset = FREQUENCIES[frequency]
    for _ in range(periods):
        current = current + offset
        estimate = float(slope * ((current - origin) / pd.Timedelta(days=1)) + intercept)
        new_row = dict.fromkeys(dataset.column_names)
        new_row[date_column] = current.strftime("%Y-%m-%d")
        new_row["forecast"] = estimate
        new_row["forecast_upper"] = estimate + Z_95 * std_error
        new_row["forecast_lower"] = estimate - Z_95 * std_error
        rows.append(new_row)

    columns = list(dataset.column_names) + [c for c in FORECAST_COLUMNS if c not in dataset.column_names]
    new = store.get(store.save(rows, columns=columns))
    message = f"Generated a forecast for {periods} {frequency} periods."
    return OpResult(result=dataset_payload(new, message=message), dataset=new)


def calculate_correlated_forex_scenario(
    store: DatasetStore,
    base_currency_pair: str,
    scenario_rate: float,
    periods: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    today: Optional[date] = None,
) -> OpResult:
    """Simulate a daily path from a synthetic current rate to *scenario_rate*.

    The correlated pair moves by the same relative change with up to 1%
    noise either way.  Results are random unless *rng* is supplied.
    """
    rate = coerce_number(scenario_rate)
    if rate is None or rate <= 0:
        raise ValidationError(f"scenario_rate must be a positive number, got {scenario_rate!r}")
    periods = 30 if periods is None else int(periods)
    if periods < 1:
        raise ValidationError("periods must be at least 1.")

    rng = rng or np.random.default_rng()
    today = today or date.today()
    base_pair = str(base_currency_pair).strip().upper()
    correlated_pair = CORRELATED_PAIRS.get(base_pair, DEFAULT_CORRELATED_PAIR)

    current_base = rate * rng.uniform(0.9, 1.0)
    current_correlated = current_base * 1.1 * rng.uniform(0.9, 1.1)
    change_ratio = (rate - current_base) / current_base
    scenario_correlated = current_correlated * (1 + change_ratio)

    base_column = f"{base_pair.replace('/', '_')}_rate"
    correlated_column = f"{correlated_pair.replace('/', '_')}_rate"
    rows = []
    for i in range(1, periods + 1):
        progress = i / periods
        base_rate = current_base + (rate - current_base) * progress
        correlated_rate = current_correlated + (scenario_correlated - current_correlated) * progress
        correlated_rate += rng.uniform(-0.01, 0.01) * correlated_rate
        rows.append({
            "date": (today + timedelta(days=i)).isoformat(),
            base_column: round(base_rate, 4),
            correlated_column: round(correlated_rate, 4),
        })

    new = store.get(store.save(rows))
    message = (
        f"Simulated {correlated_pair} rates over {periods} days for a scenario "
        f"where {base_pair} reaches {rate:g}."
    )
    return OpResult(result=dataset_payload(new, message=message), dataset=new)
