from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .filters import matches
from .models import FilterCriteria, Report
from .store import CollectionStore, StoreChange


DEFAULT_PAGE_SIZE = 10

ViewListener = Callable[[], None]


def recompute(reports: Iterable[Report], criteria: FilterCriteria) -> tuple[Report, ...]:
    return tuple(report for report in reports if matches(report, criteria))


@dataclass(frozen=True)
class Page:
    items: tuple[Report, ...]
    page_index: int
    page_size: int
    page_count: int
    total: int

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < self.page_count


def paginate(view: Sequence[Report], page_index: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    if page_size <= 0:
        raise ValueError("page_size must be > 0.")
    if page_index < 0:
        raise ValueError("page_index must be >= 0.")

    total = len(view)
    page_count = max(1, math.ceil(total / page_size))
    # Out-of-range requests clamp to the last page.
    index = min(page_index, page_count - 1)
    start = index * page_size
    return Page(
        items=tuple(view[start : start + page_size]),
        page_index=index,
        page_size=page_size,
        page_count=page_count,
        total=total,
    )


@dataclass(frozen=True)
class Facets:
    categories: tuple[str, ...]
    statuses: tuple[str, ...]


def facets(reports: Iterable[Report]) -> Facets:
    categories: dict[str, None] = {}
    statuses: dict[str, None] = {}
    for report in reports:
        categories.setdefault(report.category, None)
        statuses.setdefault(report.status, None)
    return Facets(categories=tuple(categories), statuses=tuple(statuses))


class DerivedView:
    """Filtered view over a store, recomputed when either input changes.

    Store mutations arrive through a store subscription and criteria changes
    through ``set_criteria``; both only invalidate. The next ``current()`` call
    recomputes, unless the inputs it last saw are unchanged.
    """

    def __init__(self, store: CollectionStore, criteria: FilterCriteria | None = None) -> None:
        self._store = store
        self._criteria = criteria if criteria is not None else FilterCriteria()
        self._cached: tuple[Report, ...] | None = None
        self._cached_key: tuple[int, FilterCriteria] | None = None
        self._listeners: list[ViewListener] = []
        self._recompute_count = 0
        self._detach = store.subscribe(self._on_store_change)

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def recompute_count(self) -> int:
        return self._recompute_count

    def set_criteria(self, criteria: FilterCriteria) -> None:
        if not isinstance(criteria, FilterCriteria):
            raise TypeError(f"Expected FilterCriteria, got {type(criteria).__name__}.")
        self._criteria = criteria
        self._invalidate()

    def current(self) -> tuple[Report, ...]:
        key = (self._store.version, self._criteria)
        if self._cached is not None and self._cached_key == key:
            return self._cached
        self._cached = recompute(self._store.snapshot(), self._criteria)
        self._cached_key = key
        self._recompute_count += 1
        return self._cached

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        self._detach()
        self._listeners.clear()

    def _on_store_change(self, change: StoreChange) -> None:
        self._invalidate()

    def _invalidate(self) -> None:
        self._cached = None
        self._cached_key = None
        for listener in list(self._listeners):
            listener()
