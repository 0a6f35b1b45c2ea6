from __future__ import annotations


class ReportFeedError(RuntimeError):
    """Base class for report feed failures."""


class TransportError(ReportFeedError):
    """Raised when the initial fetch or the push subscription fails."""


class InvalidStateError(ReportFeedError):
    """Raised when an operation is not valid in the current lifecycle state."""


class DataError(ReportFeedError, ValueError):
    """Raised when a report payload or its date cannot be interpreted."""
