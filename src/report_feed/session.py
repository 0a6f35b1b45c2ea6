"""Feed session: initial load, live merges and teardown for one dashboard view.

A session owns its collection store and derived view. Push-channel callbacks
never touch the store directly; they enqueue envelopes into an inbox that a
single consumer task drains, one envelope at a time. ``stop()`` closes the
subscriptions, cancels the consumer and drops whatever is still queued, so an
event delivered after ``stop()`` can never reach the store.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence

from .config import DEFAULT_EVENT_NAME, DEFAULT_EXPORT_DATE_FORMAT, DEFAULT_PAGE_SIZE
from .errors import DataError, InvalidStateError, ReportFeedError, TransportError
from .export import ExportRow, project
from .logging_config import get_logger, log_event
from .models import FilterCriteria, Report
from .stats import FeedSummary, summarize
from .store import CollectionStore, MergeOutcome
from .view import DerivedView, Facets, Page, facets, paginate


DISCONNECT_EVENT = "disconnect"
CONNECT_ERROR_EVENT = "connect_error"

TRANSPORT_ERRORS = (OSError, ValueError)

logger = get_logger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LIVE = "live"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.STOPPED, SessionState.FAILED)


class ReportSource(Protocol):
    async def fetch_reports(self) -> Sequence[Report | Mapping[str, Any]]: ...


class Subscription(Protocol):
    def close(self) -> None: ...


class PushChannel(Protocol):
    def subscribe(self, event_name: str, handler: Callable[[Any], None]) -> Subscription: ...


ReportListener = Callable[[Report, MergeOutcome], None]
StateListener = Callable[[SessionState, SessionState], None]


@dataclass(frozen=True)
class _Envelope:
    kind: str
    payload: Any


class FeedSession:
    def __init__(
        self,
        source: ReportSource,
        channel: PushChannel,
        *,
        event_name: str = DEFAULT_EVENT_NAME,
        criteria: FilterCriteria | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        export_date_format: str = DEFAULT_EXPORT_DATE_FORMAT,
        session_id: str | None = None,
    ) -> None:
        if not str(event_name).strip():
            raise ValueError("event_name must not be empty.")
        if page_size <= 0:
            raise ValueError("page_size must be > 0.")

        self.source = source
        self.channel = channel
        self.event_name = str(event_name).strip()
        self.page_size = int(page_size)
        self.export_date_format = export_date_format
        self.session_id = session_id or uuid.uuid4().hex[:12]

        self._store = CollectionStore()
        self._view = DerivedView(self._store, criteria)
        self._state = SessionState.IDLE
        self._error: BaseException | None = None
        self._subscriptions: list[Subscription] = []
        self._inbox: asyncio.Queue[_Envelope] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()
        self._final_snapshot: tuple[Report, ...] | None = None
        self._final_view: tuple[Report, ...] | None = None
        self._report_listeners: list[ReportListener] = []
        self._state_listeners: list[StateListener] = []
        self._disconnect_count = 0
        self._discarded_count = 0
        self._rejected_count = 0
        self._log = logger.bind(session_id=self.session_id)

    async def __aenter__(self) -> FeedSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def criteria(self) -> FilterCriteria:
        return self._view.criteria

    @property
    def disconnect_count(self) -> int:
        return self._disconnect_count

    @property
    def discarded_count(self) -> int:
        return self._discarded_count

    @property
    def rejected_count(self) -> int:
        return self._rejected_count

    async def start(self) -> None:
        if self._state is not SessionState.IDLE:
            raise InvalidStateError(
                f"FeedSession can only start from idle (state={self._state.value}); "
                "construct a new session to restart."
            )

        self._set_state(SessionState.LOADING)
        try:
            batch = await self.source.fetch_reports()
            reports = self._coerce_batch(batch)
        except ReportFeedError as exc:
            self._fail(exc)
            raise
        except TRANSPORT_ERRORS as exc:
            error = TransportError(f"Initial fetch failed: {exc}")
            self._fail(error)
            raise error from exc
        except Exception as exc:
            self._fail(exc)
            raise

        if self._state is not SessionState.LOADING:
            log_event(self._log, "info", "initial_batch_discarded", state=self._state.value)
            return

        seeded = self._store.seed(reports)
        log_event(
            self._log,
            "info",
            "initial_batch_seeded",
            reports=seeded,
            rejected=self._rejected_count,
        )

        self._inbox = asyncio.Queue()
        self._set_state(SessionState.LIVE)
        try:
            self._subscriptions.append(
                self.channel.subscribe(self.event_name, self._handler("report"))
            )
            self._subscriptions.append(
                self.channel.subscribe(DISCONNECT_EVENT, self._handler("disconnect"))
            )
            self._subscriptions.append(
                self.channel.subscribe(CONNECT_ERROR_EVENT, self._handler("connect_error"))
            )
        except ReportFeedError as exc:
            self._fail(exc)
            raise
        except TRANSPORT_ERRORS as exc:
            error = TransportError(f"Push subscription failed: {exc}")
            self._fail(error)
            raise error from exc
        except Exception as exc:
            self._fail(exc)
            raise

        self._consumer = asyncio.create_task(
            self._consume(), name=f"feed-session-{self.session_id}"
        )
        log_event(self._log, "info", "push_subscribed", event_name=self.event_name)

    def stop(self) -> None:
        if self._state.is_terminal:
            log_event(self._log, "debug", "stop_ignored", state=self._state.value)
            return
        self._teardown()
        self._set_state(SessionState.STOPPED)

    async def join(self) -> None:
        """Wait until every event queued so far has been applied."""
        if self._inbox is not None:
            await self._inbox.join()

    async def wait_closed(self) -> None:
        await self._closed.wait()
        if self._error is not None:
            raise self._error

    def on_report(self, listener: ReportListener) -> Callable[[], None]:
        self._report_listeners.append(listener)
        return lambda: _discard(self._report_listeners, listener)

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        self._state_listeners.append(listener)
        return lambda: _discard(self._state_listeners, listener)

    def on_view_change(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self._view.subscribe(listener)

    def set_criteria(self, criteria: FilterCriteria) -> None:
        if self._state.is_terminal:
            raise InvalidStateError(
                f"Cannot change criteria on a {self._state.value} session."
            )
        self._view.set_criteria(criteria)
        log_event(self._log, "debug", "criteria_changed", criteria=repr(criteria))

    def snapshot(self) -> tuple[Report, ...]:
        if self._final_snapshot is not None:
            return self._final_snapshot
        return self._store.snapshot()

    def current_view(self) -> tuple[Report, ...]:
        if self._final_view is not None:
            return self._final_view
        return self._view.current()

    def export_current_view(self) -> list[ExportRow]:
        return project(self.current_view(), self.export_date_format)

    def page(self, page_index: int = 0, page_size: int | None = None) -> Page:
        return paginate(self.current_view(), page_index, page_size or self.page_size)

    def facets(self) -> Facets:
        return facets(self.snapshot())

    def summary(self) -> FeedSummary:
        return summarize(self.current_view())

    def data_errors(self) -> list[tuple[Any, str]]:
        return [
            (report.id, report.date_error)
            for report in self.snapshot()
            if report.date_error is not None
        ]

    def _coerce_batch(self, batch: Iterable[Report | Mapping[str, Any]]) -> list[Report]:
        if isinstance(batch, (str, bytes, Mapping)) or not isinstance(batch, Iterable):
            raise TransportError(
                f"Initial fetch returned {type(batch).__name__}; expected a sequence of reports."
            )
        reports: list[Report] = []
        for payload in batch:
            report = self._validate(payload)
            if report is not None:
                reports.append(report)
        return reports

    def _validate(self, payload: Any) -> Report | None:
        try:
            report = Report.from_payload(payload)
        except DataError as exc:
            self._rejected_count += 1
            log_event(self._log, "warning", "report_rejected", error=str(exc))
            return None
        if report.date_error is not None:
            log_event(
                self._log,
                "warning",
                "report_date_unparseable",
                report_id=report.id,
                error=report.date_error,
            )
        return report

    def _handler(self, kind: str) -> Callable[[Any], None]:
        def _enqueue(payload: Any = None) -> None:
            if self._state is not SessionState.LIVE or self._inbox is None:
                self._discarded_count += 1
                log_event(
                    self._log,
                    "debug",
                    "late_event_discarded",
                    kind=kind,
                    state=self._state.value,
                )
                return
            self._inbox.put_nowait(_Envelope(kind=kind, payload=payload))

        return _enqueue

    async def _consume(self) -> None:
        inbox = self._inbox
        if inbox is None:
            return
        while self._state is SessionState.LIVE:
            envelope = await inbox.get()
            try:
                if self._state is SessionState.LIVE:
                    self._dispatch(envelope)
                else:
                    self._discarded_count += 1
            except Exception as exc:
                log_event(self._log, "error", "event_dispatch_failed", kind=envelope.kind, error=str(exc))
                self._fail(exc)
            finally:
                inbox.task_done()

    def _dispatch(self, envelope: _Envelope) -> None:
        if envelope.kind == "report":
            report = self._validate(envelope.payload)
            if report is None:
                return
            outcome = self._store.merge(report)
            log_event(
                self._log,
                "info",
                "report_merged",
                report_id=report.id,
                outcome=outcome.value,
                size=len(self._store),
            )
            for listener in list(self._report_listeners):
                listener(report, outcome)
        elif envelope.kind == "disconnect":
            self._disconnect_count += 1
            log_event(
                self._log,
                "warning",
                "push_channel_disconnected",
                reason=str(envelope.payload) if envelope.payload is not None else None,
                disconnects=self._disconnect_count,
            )
        elif envelope.kind == "connect_error":
            self._fail(TransportError(f"Push channel error: {envelope.payload}"))
        else:
            raise ValueError(f"Unknown envelope kind '{envelope.kind}'.")

    def _fail(self, error: BaseException) -> None:
        if self._state.is_terminal:
            return
        self._error = error
        log_event(self._log, "error", "session_failed", state=self._state.value, error=str(error))
        self._teardown()
        self._set_state(SessionState.FAILED)

    def _teardown(self) -> None:
        for subscription in self._subscriptions:
            try:
                subscription.close()
            except TRANSPORT_ERRORS as exc:
                log_event(self._log, "warning", "unsubscribe_failed", error=str(exc))
        self._subscriptions.clear()

        consumer = self._consumer
        if consumer is not None and not consumer.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if consumer is not current:
                consumer.cancel()

        inbox = self._inbox
        if inbox is not None:
            dropped = 0
            while not inbox.empty():
                inbox.get_nowait()
                inbox.task_done()
                dropped += 1
            if dropped:
                self._discarded_count += dropped
                log_event(self._log, "info", "queued_events_dropped", dropped=dropped)

        self._final_snapshot = self._store.snapshot()
        self._final_view = self._view.current()
        self._view.close()
        self._store.clear()
        self._closed.set()

    def _set_state(self, new_state: SessionState) -> None:
        previous = self._state
        self._state = new_state
        log_event(
            self._log,
            "info",
            "session_state_changed",
            previous=previous.value,
            state=new_state.value,
        )
        for listener in list(self._state_listeners):
            listener(previous, new_state)


def _discard(listeners: list[Any], listener: Any) -> None:
    if listener in listeners:
        listeners.remove(listener)
