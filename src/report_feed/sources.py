from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Callable

from .config import DEFAULT_EVENT_NAME, DEFAULT_FETCH_TIMEOUT_SEC
from .errors import TransportError
from .logging_config import get_logger, log_event
from .session import CONNECT_ERROR_EVENT, DISCONNECT_EVENT


logger = get_logger(__name__)

Handler = Callable[[Any], None]


def extract_reports(payload: Any) -> list[Any]:
    """Accept either a bare JSON list or an object wrapping it under ``reports``."""
    if isinstance(payload, dict):
        payload = payload.get("reports", payload.get("reportes"))
    if not isinstance(payload, list):
        raise ValueError("Invalid reports JSON format: expected a list or a 'reports' list.")
    return payload


class JsonFileReportSource:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser().resolve()

    async def fetch_reports(self) -> list[Any]:
        if not self.path.exists():
            raise FileNotFoundError(f"Reports file not found: {self.path}")
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        reports = extract_reports(raw)
        log_event(logger, "debug", "reports_file_loaded", path=str(self.path), count=len(reports))
        return reports


class HttpReportSource:
    def __init__(self, url: str, timeout_sec: float = DEFAULT_FETCH_TIMEOUT_SEC) -> None:
        if not str(url).strip():
            raise ValueError("url must not be empty.")
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be > 0.")
        self.url = str(url).strip()
        self.timeout_sec = float(timeout_sec)

    async def fetch_reports(self) -> list[Any]:
        return await asyncio.to_thread(self._fetch_blocking)

    def _fetch_blocking(self) -> list[Any]:
        request = urllib.request.Request(
            self.url,
            headers={"Accept": "application/json"},
            method="GET",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout_sec) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")
            raise TransportError(f"HTTP {exc.code} from {self.url}: {error_body}") from exc
        except urllib.error.URLError as exc:
            raise TransportError(f"Connection error for {self.url}: {exc.reason}") from exc

        try:
            return extract_reports(json.loads(body))
        except (json.JSONDecodeError, ValueError) as exc:
            raise TransportError(f"Malformed reports payload from {self.url}: {exc}") from exc


class LocalSubscription:
    def __init__(self, channel: LocalPushChannel, event_name: str, handler: Handler) -> None:
        self.channel = channel
        self.event_name = event_name
        self.handler = handler
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.channel._remove(self.event_name, self.handler)


class LocalPushChannel:
    """In-process push channel with socket.io-style named events.

    While disconnected, emitted events are dropped, as they would be on a
    real connection that is down.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self.connected = True

    def subscribe(self, event_name: str, handler: Handler) -> LocalSubscription:
        self._handlers.setdefault(event_name, []).append(handler)
        return LocalSubscription(self, event_name, handler)

    def subscriber_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, ()))

    def emit(self, event_name: str, payload: Any = None) -> int:
        if not self.connected and event_name != DISCONNECT_EVENT:
            return 0
        handlers = list(self._handlers.get(event_name, ()))
        for handler in handlers:
            handler(payload)
        return len(handlers)

    def disconnect(self, reason: str = "transport close") -> None:
        self.connected = False
        self.emit(DISCONNECT_EVENT, reason)

    def reconnect(self) -> None:
        self.connected = True

    def fail(self, message: str) -> None:
        self.emit(CONNECT_ERROR_EVENT, message)

    def _remove(self, event_name: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._handlers.pop(event_name, None)


def replay_events(
    channel: LocalPushChannel,
    path: Path | str,
    event_name: str = DEFAULT_EVENT_NAME,
) -> int:
    """Emit every JSON line of ``path`` as one pushed report; returns lines emitted."""
    events_path = Path(path).expanduser().resolve()
    if not events_path.exists():
        raise FileNotFoundError(f"Events file not found: {events_path}")

    emitted = 0
    with events_path.open("r", encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            stripped = line.strip()
            if not stripped:
                continue
            try:
                payload = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON on line {line_no} of {events_path}: {exc}") from exc
            channel.emit(event_name, payload)
            emitted += 1

    log_event(logger, "debug", "events_replayed", path=str(events_path), emitted=emitted)
    return emitted
