"""Exceptions raised by the transformation library.

Empty filter or join results are not errors; they are reported through a
``warning`` key in the tool result instead.
"""


class DataOpsError(Exception):
    """Base class for every error a data tool can raise."""


class NotFoundError(DataOpsError, LookupError):
    """A dataset, column, or tool name could not be resolved."""


class ValidationError(DataOpsError, ValueError):
    """Arguments are well-formed but not acceptable for the operation."""


class InsufficientDataError(DataOpsError):
    """Not enough usable rows to compute the requested result."""
