from __future__ import annotations

import asyncio
import io
import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

import pytest

from report_feed import (
    HttpReportSource,
    JsonFileReportSource,
    LocalPushChannel,
    TransportError,
    replay_events,
)
from report_feed.session import CONNECT_ERROR_EVENT, DISCONNECT_EVENT
from report_feed.sources import extract_reports


def _write_json(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_extract_reports_accepts_list_and_wrapped_forms(make_payload) -> None:
    batch = [make_payload(1), make_payload(2)]
    assert extract_reports(batch) == batch
    assert extract_reports({"reports": batch}) == batch
    assert extract_reports({"reportes": batch}) == batch


@pytest.mark.parametrize("payload", [{"items": []}, "reports", 42, None])
def test_extract_reports_rejects_unexpected_shapes(payload: object) -> None:
    with pytest.raises(ValueError, match="Invalid reports JSON format"):
        extract_reports(payload)


def test_json_file_source_reads_batch(tmp_path: Path, make_payload) -> None:
    path = _write_json(tmp_path / "reports.json", {"reports": [make_payload(7)]})
    reports = asyncio.run(JsonFileReportSource(path).fetch_reports())
    assert [payload["id"] for payload in reports] == [7]


def test_json_file_source_missing_file(tmp_path: Path) -> None:
    source = JsonFileReportSource(tmp_path / "missing.json")
    with pytest.raises(FileNotFoundError, match="Reports file not found"):
        asyncio.run(source.fetch_reports())


def test_http_source_validates_arguments() -> None:
    with pytest.raises(ValueError, match="url must not be empty"):
        HttpReportSource("  ")
    with pytest.raises(ValueError, match="timeout_sec"):
        HttpReportSource("http://localhost:3000/api/reportes", timeout_sec=0)

    source = HttpReportSource(" http://localhost:3000/api/reportes ", timeout_sec=2)
    assert source.url == "http://localhost:3000/api/reportes"
    assert source.timeout_sec == 2.0


API_URL = "http://localhost:3000/api/reportes"


class _FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def read(self) -> bytes:
        return self._body


def _patch_urlopen(monkeypatch: pytest.MonkeyPatch, outcome: Any) -> list[float]:
    timeouts: list[float] = []

    def _fake_urlopen(request: urllib.request.Request, timeout: float) -> _FakeResponse:
        timeouts.append(timeout)
        if isinstance(outcome, Exception):
            raise outcome
        return _FakeResponse(outcome)

    monkeypatch.setattr(urllib.request, "urlopen", _fake_urlopen)
    return timeouts


def test_http_source_returns_batch(monkeypatch: pytest.MonkeyPatch, make_payload) -> None:
    body = json.dumps({"reportes": [make_payload(1), make_payload(2)]}).encode("utf-8")
    timeouts = _patch_urlopen(monkeypatch, body)

    reports = asyncio.run(HttpReportSource(API_URL, timeout_sec=3).fetch_reports())

    assert [payload["id"] for payload in reports] == [1, 2]
    assert timeouts == [3.0]


def test_http_source_maps_http_error(monkeypatch: pytest.MonkeyPatch) -> None:
    error = urllib.error.HTTPError(
        API_URL, 503, "Service Unavailable", {}, io.BytesIO(b"backend down")
    )
    _patch_urlopen(monkeypatch, error)

    with pytest.raises(TransportError, match="HTTP 503.*backend down") as excinfo:
        asyncio.run(HttpReportSource(API_URL).fetch_reports())
    assert excinfo.value.__cause__ is error


def test_http_source_maps_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_urlopen(monkeypatch, urllib.error.URLError("Connection refused"))

    with pytest.raises(TransportError, match="Connection error.*Connection refused"):
        asyncio.run(HttpReportSource(API_URL).fetch_reports())


@pytest.mark.parametrize("body", [b"<html>oops</html>", b'{"items": []}'])
def test_http_source_maps_malformed_body(monkeypatch: pytest.MonkeyPatch, body: bytes) -> None:
    _patch_urlopen(monkeypatch, body)

    with pytest.raises(TransportError, match="Malformed reports payload"):
        asyncio.run(HttpReportSource(API_URL).fetch_reports())


def test_push_channel_delivers_until_subscription_closed() -> None:
    channel = LocalPushChannel()
    received: list[object] = []
    subscription = channel.subscribe("nuevo-reporte", received.append)

    assert channel.emit("nuevo-reporte", {"id": 1}) == 1
    subscription.close()
    subscription.close()

    assert channel.emit("nuevo-reporte", {"id": 2}) == 0
    assert received == [{"id": 1}]
    assert channel.subscriber_count("nuevo-reporte") == 0


def test_push_channel_drops_events_while_disconnected() -> None:
    channel = LocalPushChannel()
    reports: list[object] = []
    lifecycle: list[object] = []
    channel.subscribe("nuevo-reporte", reports.append)
    channel.subscribe(DISCONNECT_EVENT, lifecycle.append)
    channel.subscribe(CONNECT_ERROR_EVENT, lifecycle.append)

    channel.disconnect("io server disconnect")
    assert channel.emit("nuevo-reporte", {"id": 1}) == 0

    channel.reconnect()
    channel.emit("nuevo-reporte", {"id": 2})
    channel.fail("timeout")

    assert reports == [{"id": 2}]
    assert lifecycle == ["io server disconnect", "timeout"]


def test_replay_events_emits_each_line(tmp_path: Path, make_payload) -> None:
    path = tmp_path / "events.jsonl"
    lines = [json.dumps(make_payload(idx)) for idx in (3, 4)]
    path.write_text("\n".join([lines[0], "", lines[1]]) + "\n", encoding="utf-8")

    channel = LocalPushChannel()
    received: list[dict] = []
    channel.subscribe("custom-event", received.append)

    assert replay_events(channel, path, event_name="custom-event") == 2
    assert [payload["id"] for payload in received] == [3, 4]


def test_replay_events_reports_bad_line(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    path.write_text('{"id": 1}\n{not json}\n', encoding="utf-8")

    with pytest.raises(ValueError, match="line 2"):
        replay_events(LocalPushChannel(), path)


def test_replay_events_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        replay_events(LocalPushChannel(), tmp_path / "absent.jsonl")
