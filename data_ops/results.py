"""Return type shared by every tool implementation."""

from dataclasses import dataclass
from typing import Any, Optional

from .store import Dataset


@dataclass
class OpResult:
    """Outcome of one tool call.

    Attributes:
        result: JSON-friendly summary fed back to the model.
        artifact: Visual artifact produced by render/report tools.
        dataset: Dataset created by the call, if any.
    """

    result: dict
    artifact: Optional[Any] = None
    dataset: Optional[Dataset] = None


def dataset_payload(dataset: Dataset, **extra) -> dict:
    """Standard payload for tools that create a dataset."""
    payload = {
        "new_dataset_name": dataset.name,
        "rows": dataset.row_count,
        "columns": list(dataset.column_names),
        "data_preview": dataset.preview(),
    }
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload
