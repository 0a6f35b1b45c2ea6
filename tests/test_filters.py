from __future__ import annotations

from datetime import date, datetime

from report_feed import DateRange, FilterCriteria, matches
from report_feed.filters import date_clause_skipped


def test_empty_criteria_match_everything(make_report) -> None:
    report = make_report(1, category="fire", status="open")
    assert matches(report, FilterCriteria())


def test_category_and_status_are_exact_and_case_sensitive(make_report) -> None:
    report = make_report(1, category="Fire", status="open")
    assert not matches(report, FilterCriteria(categories={"fire"}))
    assert matches(report, FilterCriteria(categories={"Fire", "flood"}))
    assert matches(report, FilterCriteria(statuses={"open"}))
    assert not matches(report, FilterCriteria(statuses={"resolved"}))


def test_search_is_case_insensitive_over_description_and_category(make_report) -> None:
    report = make_report(1, category="Flood", description="Water rising near the BRIDGE")
    assert matches(report, FilterCriteria(search="bridge"))
    assert matches(report, FilterCriteria(search="FLO"))
    assert not matches(report, FilterCriteria(search="fire"))


def test_date_bounds_are_inclusive(make_report) -> None:
    report = make_report(1, date="2024-02-01")
    exact = DateRange(start=date(2024, 2, 1), end=date(2024, 2, 1))
    assert matches(report, FilterCriteria(date_range=exact))
    assert not matches(report, FilterCriteria(date_range=DateRange(start=date(2024, 2, 2))))
    assert not matches(report, FilterCriteria(date_range=DateRange(end=date(2024, 1, 31))))
    assert matches(report, FilterCriteria(date_range=DateRange(end=datetime(2024, 2, 1, 0, 0))))


def test_date_upper_bound_as_date_is_midnight(make_report) -> None:
    report = make_report(1, date="2024-02-01T09:00:00")
    assert not matches(report, FilterCriteria(date_range=DateRange(end=date(2024, 2, 1))))


def test_unparseable_date_skips_only_the_date_clause(make_report) -> None:
    report = make_report(1, category="fire", date="not-a-date")
    in_range = FilterCriteria(date_range=DateRange(start=date(2030, 1, 1)))
    assert matches(report, in_range)
    assert date_clause_skipped(report, in_range)
    assert not date_clause_skipped(report, FilterCriteria())

    other_category = FilterCriteria(categories={"flood"}, date_range=DateRange(start=date(2030, 1, 1)))
    assert not matches(report, other_category)


def test_all_clauses_are_anded(make_report) -> None:
    report = make_report(1, category="fire", status="open", description="smoke", date="2024-01-10")
    criteria = FilterCriteria(
        categories={"fire"},
        statuses={"open"},
        search="smoke",
        date_range=DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31)),
    )
    assert matches(report, criteria)
    assert not matches(report, FilterCriteria(categories={"fire"}, statuses={"resolved"}, search="smoke"))
