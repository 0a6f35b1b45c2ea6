from __future__ import annotations

from typing import Any, Callable

import pytest

from report_feed import Report


ReportFactory = Callable[..., Report]


def _payload(
    report_id: int | str,
    category: str = "fire",
    status: str = "open",
    date: str = "2024-01-01",
    description: str = "",
    **extra: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": report_id,
        "lat": -34.6,
        "lng": -58.4,
        "category": category,
        "status": status,
        "date": date,
        "description": description,
        "photo": f"photos/{report_id}.jpg",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    return _payload


@pytest.fixture
def make_report() -> ReportFactory:
    def _make(report_id: int | str, **fields: Any) -> Report:
        return Report.from_payload(_payload(report_id, **fields))

    return _make


@pytest.fixture
def scenario_payloads() -> list[dict[str, Any]]:
    return [
        _payload(1, category="fire", status="open", date="2024-01-01"),
        _payload(2, category="flood", status="resolved", date="2024-02-01"),
    ]
