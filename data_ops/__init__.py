"""
Data operations package for in-memory tabular analysis.

Provides the session dataset store, the add_column expression engine, and
the filter/aggregate/join/forecast operations exposed to the planner model.
"""

from .errors import DataOpsError, InsufficientDataError, NotFoundError, ValidationError
from .results import OpResult
from .store import Dataset, DatasetStore

__all__ = [
    "DataOpsError",
    "Dataset",
    "DatasetStore",
    "InsufficientDataError",
    "NotFoundError",
    "OpResult",
    "ValidationError",
]
