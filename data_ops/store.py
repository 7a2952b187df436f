"""
In-memory dataset store for a single analysis session.

Dataset holds one table as an ordered list of records (column name → scalar).
DatasetStore keeps two namespaces:

    base          supplied once by the caller (CSV uploads), never mutated
    intermediate  produced by transformations, named step_<n>_result

Lookup checks the intermediate namespace first, then the base one.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from .errors import NotFoundError

logger = logging.getLogger("tabula")

Record = dict[str, Any]

PREVIEW_ROWS = 5


def to_scalar(value: Any) -> Any:
    """Convert numpy/pandas scalars to plain Python values (NaN/NaT → None)."""
    if value is None:
        return None
    if isinstance(value, (np.bool_,)):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        value = float(value)
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.isoformat()
    if value is pd.NaT:
        return None
    return value


@dataclass(frozen=True)
class Dataset:
    """A named, immutable table.

    Attributes:
        name: Unique name within the session (e.g. "sales" or "step_3_result").
        rows: Ordered records. Callers must treat them as read-only.
        column_names: Ordered column names.
        source: "base" for caller-supplied data, "computed" for derived data.
    """

    name: str
    rows: tuple = ()
    column_names: tuple = ()
    source: str = "computed"

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def preview(self, n: int = PREVIEW_ROWS) -> list[Record]:
        """Return copies of the first *n* rows."""
        return [dict(r) for r in self.rows[:n]]

    def column(self, name: str) -> list:
        """Return every value of column *name* (None where missing)."""
        return [r.get(name) for r in self.rows]

    @classmethod
    def from_records(
        cls,
        name: str,
        rows: Iterable[Mapping],
        columns: Optional[Iterable[str]] = None,
        source: str = "computed",
    ) -> "Dataset":
        """Build a dataset, copying every record.

        Column names come from the first row; *columns* is only used when
        there are no rows, so an empty result still carries its schema.
        """
        copied = tuple({k: to_scalar(v) for k, v in r.items()} for r in rows)
        if copied:
            column_names = tuple(copied[0].keys())
        else:
            column_names = tuple(columns or ())
        return cls(name=name, rows=copied, column_names=column_names, source=source)

    @classmethod
    def from_frame(cls, name: str, df: pd.DataFrame, source: str = "base") -> "Dataset":
        """Build a dataset from a DataFrame (NaN becomes None)."""
        clean = df.astype(object).where(pd.notna(df), None)
        records = clean.to_dict(orient="records")
        return cls.from_records(name, records, columns=[str(c) for c in df.columns], source=source)


@dataclass
class DatasetStore:
    """Session-owned container for base and intermediate datasets."""

    _base: dict[str, Dataset] = field(default_factory=dict)
    _intermediate: dict[str, Dataset] = field(default_factory=dict)
    _step_counter: int = 0

    def load_base(self, datasets: Mapping[str, Any]) -> None:
        """Replace the base datasets.

        Values may be Dataset instances, DataFrames, or lists of records.
        """
        loaded: dict[str, Dataset] = {}
        for name, value in datasets.items():
            if isinstance(value, Dataset):
                loaded[name] = Dataset(name, value.rows, value.column_names, "base")
            elif isinstance(value, pd.DataFrame):
                loaded[name] = Dataset.from_frame(name, value)
            else:
                loaded[name] = Dataset.from_records(name, value, source="base")
        self._base = loaded
        logger.debug("Loaded %d base dataset(s): %s", len(loaded), ", ".join(loaded))

    def get(self, name: str) -> Dataset:
        dataset = self._intermediate.get(name) or self._base.get(name)
        if dataset is None:
            raise NotFoundError(f'Dataset "{name}" not found.')
        return dataset

    def save(self, rows: Iterable[Mapping], columns: Optional[Iterable[str]] = None) -> str:
        """Store *rows* under the next sequential name and return that name.

        Numbers whose name is already taken by a base dataset are skipped.
        """
        self._step_counter += 1
        name = f"step_{self._step_counter}_result"
        while name in self._base:
            self._step_counter += 1
            name = f"step_{self._step_counter}_result"
        self._intermediate[name] = Dataset.from_records(name, rows, columns=columns)
        logger.debug("Saved %s (%d rows)", name, self._intermediate[name].row_count)
        return name

    def names(self) -> list[str]:
        return list(self._base) + list(self._intermediate)

    def base_datasets(self) -> list[Dataset]:
        return list(self._base.values())

    def reset(self) -> None:
        """Drop all intermediate datasets and restart the step counter."""
        self._intermediate.clear()
        self._step_counter = 0

    def __contains__(self, name: str) -> bool:
        return name in self._intermediate or name in self._base

    def __len__(self) -> int:
        return len(self._base) + len(self._intermediate)
