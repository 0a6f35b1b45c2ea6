from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Sequence

import pandas as pd

from .models import Report


MONTH_FORMAT = "%Y-%m"


@dataclass(frozen=True)
class FeedSummary:
    total: int
    by_category: dict[str, int]
    by_status: dict[str, int]
    by_month: dict[str, int]
    unparseable_dates: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize(view: Sequence[Report]) -> FeedSummary:
    """KPI counts for the chart panels: per category, per status and per month."""
    frame = pd.DataFrame(
        {
            "category": pd.Series([report.category for report in view], dtype="object"),
            "status": pd.Series([report.status for report in view], dtype="object"),
        }
    )
    # Parsed years can fall outside the datetime64[ns] range.
    months = pd.Series(
        [report.instant.strftime(MONTH_FORMAT) for report in view if report.instant is not None],
        dtype="object",
    )

    return FeedSummary(
        total=int(len(frame)),
        by_category=_counts(frame["category"]),
        by_status=_counts(frame["status"]),
        by_month=_counts(months),
        unparseable_dates=sum(1 for report in view if report.instant is None),
    )


def _counts(values: pd.Series) -> dict[str, int]:
    counted = values.value_counts().sort_index()
    return {str(label): int(count) for label, count in counted.items()}
