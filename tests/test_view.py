from __future__ import annotations

import pytest

from report_feed import CollectionStore, DerivedView, FilterCriteria, facets, paginate, recompute


def test_unrestricted_view_equals_snapshot(make_report) -> None:
    store = CollectionStore()
    store.seed([make_report(3), make_report(1), make_report(2)])
    store.merge(make_report(4))

    view = DerivedView(store)

    assert view.current() == store.snapshot()


def test_recompute_is_idempotent(make_report) -> None:
    reports = [make_report(1, category="fire"), make_report(2, category="flood"), make_report(3, category="fire")]
    criteria = FilterCriteria(categories={"fire"})

    first = recompute(reports, criteria)
    second = recompute(reports, criteria)

    assert first == second
    assert all(a is b for a, b in zip(first, second))
    assert [report.id for report in first] == [1, 3]


def test_current_is_cached_until_an_input_changes(make_report) -> None:
    store = CollectionStore()
    store.seed([make_report(1, category="fire"), make_report(2, category="flood")])
    view = DerivedView(store)

    first = view.current()
    assert view.current() is first
    assert view.recompute_count == 1

    view.set_criteria(FilterCriteria(categories={"flood"}))
    assert [report.id for report in view.current()] == [2]
    assert view.recompute_count == 2

    store.merge(make_report(5, category="flood"))
    assert [report.id for report in view.current()] == [5, 2]
    assert view.recompute_count == 3


def test_both_invalidation_sources_notify_listeners(make_report) -> None:
    store = CollectionStore()
    store.seed([make_report(1)])
    view = DerivedView(store)
    notifications: list[str] = []
    view.subscribe(lambda: notifications.append("changed"))

    store.merge(make_report(2))
    view.set_criteria(FilterCriteria(search="x"))

    assert notifications == ["changed", "changed"]


def test_set_criteria_requires_filter_criteria(make_report) -> None:
    view = DerivedView(CollectionStore())
    with pytest.raises(TypeError, match="FilterCriteria"):
        view.set_criteria({"categories": ["fire"]})  # type: ignore[arg-type]


def test_closed_view_stops_following_the_store(make_report) -> None:
    store = CollectionStore()
    view = DerivedView(store)
    notifications: list[str] = []
    view.subscribe(lambda: notifications.append("changed"))
    view.close()
    store.merge(make_report(1))
    assert notifications == []


def test_paginate_slices_and_reports_navigation(make_report) -> None:
    view = tuple(make_report(idx) for idx in range(1, 24))

    first = paginate(view, 0, 10)
    last = paginate(view, 2, 10)

    assert [report.id for report in first.items] == list(range(1, 11))
    assert first.page_count == 3
    assert not first.has_previous and first.has_next
    assert [report.id for report in last.items] == [21, 22, 23]
    assert last.has_previous and not last.has_next
    assert paginate(view, 99, 10).page_index == 2


def test_paginate_empty_view_has_one_empty_page() -> None:
    page = paginate((), 0, 10)
    assert page.items == ()
    assert page.page_count == 1
    assert page.total == 0
    with pytest.raises(ValueError, match="page_size"):
        paginate((), 0, 0)


def test_facets_are_distinct_in_first_seen_order(make_report) -> None:
    found = facets(
        [
            make_report(1, category="flood", status="open"),
            make_report(2, category="fire", status="resolved"),
            make_report(3, category="flood", status="open"),
        ]
    )
    assert found.categories == ("flood", "fire")
    assert found.statuses == ("open", "resolved")
