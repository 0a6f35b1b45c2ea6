"""report_feed package."""

from .config import RuntimeConfig, load_runtime_config
from .errors import DataError, InvalidStateError, ReportFeedError, TransportError
from .export import EXPORT_HEADER, project, to_frame
from .filters import matches
from .models import DateRange, FilterCriteria, Report, parse_report_date
from .session import FeedSession, PushChannel, ReportSource, SessionState
from .sources import HttpReportSource, JsonFileReportSource, LocalPushChannel, replay_events
from .stats import FeedSummary, summarize
from .store import CollectionStore, MergeOutcome, StoreChange
from .view import DerivedView, Facets, Page, facets, paginate, recompute

__all__ = [
    "CollectionStore",
    "DataError",
    "DateRange",
    "DerivedView",
    "EXPORT_HEADER",
    "Facets",
    "FeedSession",
    "FeedSummary",
    "FilterCriteria",
    "HttpReportSource",
    "InvalidStateError",
    "JsonFileReportSource",
    "LocalPushChannel",
    "MergeOutcome",
    "Page",
    "PushChannel",
    "Report",
    "ReportFeedError",
    "ReportSource",
    "RuntimeConfig",
    "SessionState",
    "StoreChange",
    "TransportError",
    "facets",
    "load_runtime_config",
    "matches",
    "paginate",
    "parse_report_date",
    "project",
    "recompute",
    "replay_events",
    "summarize",
    "to_frame",
]
