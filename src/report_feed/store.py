from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from .errors import InvalidStateError
from .logging_config import get_logger, log_event
from .models import Report, ReportId


logger = get_logger(__name__)


class MergeOutcome(str, Enum):
    INSERT = "insert"
    REPLACE = "replace"


@dataclass(frozen=True)
class StoreChange:
    kind: str  # "seed", "insert", "replace" or "clear"
    report: Report | None
    size: int
    version: int


StoreListener = Callable[[StoreChange], None]


class CollectionStore:
    """Authoritative, id-unique collection of reports, newest arrival first."""

    def __init__(self) -> None:
        self._reports: OrderedDict[ReportId, Report] = OrderedDict()
        self._listeners: list[StoreListener] = []
        self._merge_count = 0
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    @property
    def merge_count(self) -> int:
        return self._merge_count

    def __len__(self) -> int:
        return len(self._reports)

    def __contains__(self, report_id: object) -> bool:
        return report_id in self._reports

    def get(self, report_id: ReportId) -> Report | None:
        return self._reports.get(report_id)

    def seed(self, reports: Iterable[Report]) -> int:
        if self._merge_count:
            raise InvalidStateError(
                f"Cannot seed after {self._merge_count} live merge(s); initial load is one-shot."
            )

        seeded: OrderedDict[ReportId, Report] = OrderedDict()
        for report in reports:
            if report.id in seeded:
                log_event(logger, "warning", "seed_duplicate_id", report_id=report.id)
            seeded[report.id] = report

        self._reports = seeded
        self._notify("seed", None)
        return len(seeded)

    def merge(self, report: Report) -> MergeOutcome:
        outcome = MergeOutcome.REPLACE if report.id in self._reports else MergeOutcome.INSERT
        self._reports[report.id] = report
        self._reports.move_to_end(report.id, last=False)
        self._merge_count += 1
        self._notify(outcome.value, report)
        return outcome

    def snapshot(self) -> tuple[Report, ...]:
        return tuple(self._reports.values())

    def clear(self) -> None:
        self._reports = OrderedDict()
        self._notify("clear", None)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, kind: str, report: Report | None) -> None:
        self._version += 1
        change = StoreChange(kind=kind, report=report, size=len(self._reports), version=self._version)
        for listener in list(self._listeners):
            listener(change)
