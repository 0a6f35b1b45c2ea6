from __future__ import annotations

from typing import Iterable, Sequence

import pandas as pd

from .models import Report


EXPORT_HEADER = ("ID", "Category", "Status", "Date")
DEFAULT_EXPORT_FILENAME = "reportes.csv"
DEFAULT_DATE_FORMAT = "%Y-%m-%d"

ExportRow = tuple[str, str, str, str]


def format_report_date(report: Report, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    if report.instant is None:
        return report.date
    return report.instant.strftime(date_format)


def project(view: Sequence[Report], date_format: str = DEFAULT_DATE_FORMAT) -> list[ExportRow]:
    return [
        (str(report.id), report.category, report.status, format_report_date(report, date_format))
        for report in view
    ]


def to_frame(rows: Iterable[ExportRow], header: Sequence[str] = EXPORT_HEADER) -> pd.DataFrame:
    return pd.DataFrame(list(rows), columns=list(header), dtype="string")
