from __future__ import annotations

from .models import FilterCriteria, Report


def matches(report: Report, criteria: FilterCriteria) -> bool:
    return (
        _category_matches(report, criteria)
        and _status_matches(report, criteria)
        and _search_matches(report, criteria)
        and _date_matches(report, criteria)
    )


def date_clause_skipped(report: Report, criteria: FilterCriteria) -> bool:
    """True when a date bound is active but the report's date could not be parsed.

    Such reports are not rejected by the date clause; they are only subject to
    the remaining clauses.
    """
    return report.instant is None and not criteria.date_range.is_unbounded


def _category_matches(report: Report, criteria: FilterCriteria) -> bool:
    return not criteria.categories or report.category in criteria.categories


def _status_matches(report: Report, criteria: FilterCriteria) -> bool:
    return not criteria.statuses or report.status in criteria.statuses


def _search_matches(report: Report, criteria: FilterCriteria) -> bool:
    if not criteria.search:
        return True
    needle = criteria.search.casefold()
    return needle in report.description.casefold() or needle in report.category.casefold()


def _date_matches(report: Report, criteria: FilterCriteria) -> bool:
    if criteria.date_range.is_unbounded or report.instant is None:
        return True
    lower = criteria.date_range.lower
    upper = criteria.date_range.upper
    if lower is not None and report.instant < lower:
        return False
    if upper is not None and report.instant > upper:
        return False
    return True
