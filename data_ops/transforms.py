"""
Tabular transformations exposed as model tools.

Every function takes the session's DatasetStore plus the tool arguments and
returns an OpResult.  Functions never modify an existing dataset; derived
tables are saved under a new step_<n>_result name.

Errors are raised from data_ops.errors; an empty filter or join result is
reported as a ``warning`` in the payload instead.
"""

import logging
import re
from typing import Any, Optional

import pandas as pd

from .errors import InsufficientDataError, NotFoundError, ValidationError
from .expression import RowEvaluationError, compile_expression
from .results import OpResult, dataset_payload
from .store import Dataset, DatasetStore, to_scalar

logger = logging.getLogger("tabula")

DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")

FILTER_OPERATORS = ("==", "!=", ">", "<", ">=", "<=", "contains")
AGGREGATION_FUNCTIONS = ("sum", "count", "average", "max", "min")
JOIN_TYPES = ("inner", "left", "right", "full")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse *value* into a timezone-naive Timestamp, or None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        ts = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is pd.NaT or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def infer_type(value: Any) -> str:
    """Classify a single cell as number, date, string, boolean or unknown."""
    if value is None:
        return "unknown"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        if DATE_PREFIX.match(value) and parse_date(value) is not None:
            return "date"
        return "string"
    return type(value).__name__


def column_type(dataset: Dataset, column: str) -> str:
    """Type of the first non-null value in *column*."""
    for value in dataset.column(column):
        if value is not None:
            return infer_type(value)
    return "unknown"


def coerce_number(value: Any) -> Optional[float]:
    """Return *value* as a number, or None when it has no numeric reading."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value != value else value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return None if number != number else number
    return None


def require_columns(dataset: Dataset, *columns: str) -> None:
    """Raise NotFoundError for the first column the dataset lacks.

    Empty datasets carry no reliable schema and are not checked.
    """
    if dataset.row_count == 0 and not dataset.column_names:
        return
    for column in columns:
        if column not in dataset.column_names:
            raise NotFoundError(
                f'Column "{column}" does not exist in dataset "{dataset.name}". '
                f"Available columns: {', '.join(dataset.column_names)}"
            )


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _save(store: DatasetStore, rows: list[dict], columns: list[str]) -> Dataset:
    return store.get(store.save(rows, columns=columns))


# ---------------------------------------------------------------------------
# get_dataset_schema
# ---------------------------------------------------------------------------

def get_dataset_schema(store: DatasetStore, dataset_name: str) -> OpResult:
    dataset = store.get(dataset_name)
    columns = [{"name": c, "type": column_type(dataset, c)} for c in dataset.column_names]
    return OpResult(result={
        "dataset_name": dataset.name,
        "rows": dataset.row_count,
        "columns": columns,
        "preview_rows": dataset.preview(),
    })


# ---------------------------------------------------------------------------
# filter_data
# ---------------------------------------------------------------------------

def _compare(row_value: Any, operator: str, value: Any) -> bool:
    if operator == "contains":
        return _as_text(value).lower() in _as_text(row_value).lower()

    if isinstance(row_value, bool):
        right = value if isinstance(value, bool) else str(value).strip().lower() == "true"
        left = row_value
    else:
        left, right = coerce_number(row_value), coerce_number(value)
        if left is None or right is None:
            left, right = _as_text(row_value), _as_text(value)

    if operator == "==":
        return left == right
    if operator == "!=":
        return left != right
    if operator == ">":
        return left > right
    if operator == "<":
        return left < right
    if operator == ">=":
        return left >= right
    return left <= right


def filter_data(store: DatasetStore, dataset_name: str, column: str, operator: str, value: Any) -> OpResult:
    """Keep rows where ``row[column] <operator> value``.

    Rows whose value is missing or null never match.
    """
    dataset = store.get(dataset_name)
    operator = str(operator).strip()
    if operator not in FILTER_OPERATORS:
        raise ValidationError(
            f'Unsupported filter operator "{operator}". Supported: {", ".join(FILTER_OPERATORS)}'
        )
    require_columns(dataset, column)

    kept = [
        row for row in dataset.rows
        if row.get(column) is not None and _compare(row[column], operator, value)
    ]
    new = _save(store, kept, list(dataset.column_names))

    warning = None
    if not kept:
        warning = (
            f'The filter {column} {operator} {value!r} on "{dataset_name}" resulted in 0 rows. '
            "Check the value spelling or use a different condition."
        )
    return OpResult(result=dataset_payload(new, warning=warning), dataset=new)


# ---------------------------------------------------------------------------
# aggregate_data
# ---------------------------------------------------------------------------

def _numeric_values(values: list) -> list[float]:
    return [n for n in (coerce_number(v) for v in values) if n is not None]


def _extreme(values: list, pick) -> Any:
    present = [v for v in values if v is not None]
    if not present:
        return None
    numbers = [coerce_number(v) for v in present]
    if all(n is not None for n in numbers):
        return present[numbers.index(pick(numbers))]
    return pick(present, key=_as_text)


def _aggregate(func: str, values: list) -> Any:
    if func == "count":
        return len(values)
    if func == "sum":
        return sum(_numeric_values(values))
    if func == "average":
        numbers = _numeric_values(values)
        return sum(numbers) / len(numbers) if numbers else None
    if func == "max":
        return _extreme(values, max)
    return _extreme(values, min)


def aggregate_data(
    store: DatasetStore,
    dataset_name: str,
    group_by_columns: list[str],
    aggregation_column: str,
    aggregation_function: str,
) -> OpResult:
    """Group rows and aggregate one column per group.

    The new column is named ``<aggregation_column>_<aggregation_function>``.
    """
    dataset = store.get(dataset_name)
    func = str(aggregation_function).strip().lower()
    if func not in AGGREGATION_FUNCTIONS:
        raise ValidationError(
            f"Unsupported aggregation function: {aggregation_function}. "
            f"Supported: {', '.join(AGGREGATION_FUNCTIONS)}"
        )
    if isinstance(group_by_columns, str):
        group_by_columns = [group_by_columns]
    group_by_columns = list(group_by_columns or [])
    require_columns(dataset, *group_by_columns, aggregation_column)

    groups: dict[tuple, list[dict]] = {}
    for row in dataset.rows:
        key = tuple(row.get(c) for c in group_by_columns)
        groups.setdefault(key, []).append(row)

    new_column = f"{aggregation_column}_{func}"
    aggregated = []
    for key, rows in groups.items():
        out = dict(zip(group_by_columns, key))
        out[new_column] = _aggregate(func, [r.get(aggregation_column) for r in rows])
        aggregated.append(out)

    new = _save(store, aggregated, group_by_columns + [new_column])
    extra = {}
    if len(aggregated) == 1:
        extra["data"] = dict(new.rows[0])
    return OpResult(result=dataset_payload(new, **extra), dataset=new)


# ---------------------------------------------------------------------------
# add_column
# ---------------------------------------------------------------------------

def _scalar_resolver(store: DatasetStore):
    def resolve(dataset_name: str, column: str) -> Any:
        lookup = store.get(dataset_name)
        if lookup.row_count != 1:
            raise ValidationError(
                f'Scalar lookup failed: Dataset "{dataset_name}" does not have exactly one row.'
            )
        return lookup.rows[0].get(column)
    return resolve


def add_column(store: DatasetStore, dataset_name: str, new_column_name: str, expression: str) -> OpResult:
    """Derive *new_column_name* by evaluating *expression* on every row.

    Rows where evaluation fails get a null value; the number of such rows is
    reported in a single warning.
    """
    dataset = store.get(dataset_name)
    if not str(new_column_name).strip():
        raise ValidationError("new_column_name must not be empty.")
    compiled = compile_expression(
        str(expression), dataset.column_names, _scalar_resolver(store), dataset_name=dataset_name
    )
    logger.debug("add_column %s: %s -> %s", dataset_name, expression, compiled.rewritten)

    failed = 0
    first_reason = ""
    rows = []
    for row in dataset.rows:
        try:
            value = compiled.evaluate(row)
        except RowEvaluationError as e:
            value = None
            failed += 1
            first_reason = first_reason or str(e)
        rows.append({**row, new_column_name: value})

    columns = list(dataset.column_names)
    if new_column_name not in columns:
        columns.append(new_column_name)
    new = _save(store, rows, columns)

    warning = None
    if failed:
        noun = "row" if failed == 1 else "rows"
        warning = (
            "The expression could not be computed for some rows (for example null values "
            f"or division by zero); their result is null. First failure: {first_reason}. "
            f"({failed} {noun} affected)"
        )
    return OpResult(result=dataset_payload(new, warning=warning), dataset=new)


# ---------------------------------------------------------------------------
# get_descriptive_stats
# ---------------------------------------------------------------------------

def get_descriptive_stats(store: DatasetStore, dataset_name: str, column: str) -> OpResult:
    dataset = store.get(dataset_name)
    require_columns(dataset, column)
    values = [v for v in dataset.column(column) if v is not None and v != ""]
    if not values:
        raise ValidationError(f'Column "{column}" is empty or contains only null/empty values.')

    kind = infer_type(values[0])
    if kind == "number":
        series = pd.to_numeric(pd.Series(values, dtype=object), errors="coerce").dropna()
        if series.empty:
            raise InsufficientDataError(
                f'No numerical data found in column "{column}" after attempting conversion.'
            )
        desc = series.describe()
        stats = {
            "count": int(desc["count"]),
            "mean": to_scalar(desc["mean"]),
            "median": to_scalar(series.median()),
            "std_dev": to_scalar(desc["std"]),
            "min": to_scalar(desc["min"]),
            "max": to_scalar(desc["max"]),
            "q1": to_scalar(desc["25%"]),
            "q3": to_scalar(desc["75%"]),
        }
        message = f'Numerical statistics for column "{column}" have been calculated.'
    elif kind == "date":
        dates = [d for d in (parse_date(v) for v in values) if d is not None]
        if not dates:
            raise InsufficientDataError(
                f'No valid date data found in column "{column}" after attempting conversion.'
            )
        start, end = min(dates), max(dates)
        stats = {
            "count": len(dates),
            "unique_count": len(set(dates)),
            "start_date": start.strftime("%Y-%m-%d"),
            "end_date": end.strftime("%Y-%m-%d"),
            "duration_days": int(round((end - start) / pd.Timedelta(days=1))),
        }
        message = f'Date statistics for column "{column}" have been calculated.'
    else:
        raise ValidationError(
            f'Column "{column}" does not contain numerical or date data (detected type: {kind}). '
            "Descriptive statistics are only available for number and date columns."
        )
    return OpResult(result={"column": column, "statistics": stats, "message": message})


# ---------------------------------------------------------------------------
# join_datasets
# ---------------------------------------------------------------------------

def join_datasets(
    store: DatasetStore,
    left_dataset_name: str,
    right_dataset_name: str,
    left_on_column: str,
    right_on_column: str,
    join_type: str,
) -> OpResult:
    """Join two datasets on a key column.

    Right-hand columns that collide with left-hand names get a ``_right``
    suffix.  The join key is taken from the left row, falling back to the
    right row when the left value is null.  Null keys never match.

    Matched pairs are emitted for inner, left and full joins only; right and
    full joins add the right rows that no left row matched.
    """
    join_type = str(join_type).strip().lower()
    if join_type not in JOIN_TYPES:
        raise ValidationError(
            f'Unsupported join type: "{join_type}". Supported types are: {", ".join(JOIN_TYPES)}.'
        )
    left = store.get(left_dataset_name)
    right = store.get(right_dataset_name)
    require_columns(left, left_on_column)
    require_columns(right, right_on_column)

    left_columns = list(left.column_names) or [left_on_column]
    right_columns = [
        (col, f"{col}_right" if col in left_columns else col)
        for col in right.column_names
        if col != right_on_column
    ]
    columns = left_columns + [out for _, out in right_columns]

    def merge(left_row: Optional[dict], right_row: Optional[dict]) -> dict:
        row = {c: (left_row.get(c) if left_row else None) for c in left_columns}
        if row.get(left_on_column) is None and right_row is not None:
            row[left_on_column] = right_row.get(right_on_column)
        for source, out in right_columns:
            row[out] = right_row.get(source) if right_row else None
        return row

    right_index: dict[Any, list[dict]] = {}
    for row in right.rows:
        key = row.get(right_on_column)
        if key is not None:
            right_index.setdefault(key, []).append(row)

    joined: list[dict] = []
    matched_keys: set = set()
    for left_row in left.rows:
        key = left_row.get(left_on_column)
        matches = right_index.get(key) if key is not None else None
        if matches:
            matched_keys.add(key)
            if join_type != "right":
                joined.extend(merge(left_row, r) for r in matches)
        elif join_type in ("left", "full"):
            joined.append(merge(left_row, None))

    if join_type in ("right", "full"):
        for right_row in right.rows:
            key = right_row.get(right_on_column)
            if key is None or key not in matched_keys:
                joined.append(merge(None, right_row))

    new = _save(store, joined, columns)
    warning = None
    if not joined:
        warning = (
            f'Joining "{left_dataset_name}" and "{right_dataset_name}" resulted in 0 rows. '
            "The join keys may not match."
        )
    return OpResult(result=dataset_payload(new, warning=warning), dataset=new)


# ---------------------------------------------------------------------------
# union_datasets
# ---------------------------------------------------------------------------

def union_datasets(store: DatasetStore, dataset_names: list[str]) -> OpResult:
    """Concatenate datasets that share exactly the same column order."""
    if isinstance(dataset_names, str) or not dataset_names or len(dataset_names) < 2:
        raise ValidationError("union_datasets requires an array of at least two dataset names.")

    first = store.get(dataset_names[0])
    schema = list(first.column_names)
    rows = list(first.rows)
    for name in dataset_names[1:]:
        current = store.get(name)
        if list(current.column_names) != schema:
            raise ValidationError(
                f'Schema mismatch: Dataset "{name}" does not have the same columns and order as '
                f'"{dataset_names[0]}". Expected [{", ".join(schema)}] '
                f'but got [{", ".join(current.column_names)}].'
            )
        rows.extend(current.rows)

    new = _save(store, rows, schema)
    return OpResult(result=dataset_payload(new), dataset=new)
