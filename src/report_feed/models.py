from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Union

from jsonschema import Draft202012Validator

from .errors import DataError


ReportId = Union[int, str]

REPORT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Report",
    "type": "object",
    "required": ["id", "lat", "lng", "category", "status", "date"],
    "properties": {
        "id": {"type": ["integer", "string"], "minLength": 1},
        "lat": {"type": "number"},
        "lng": {"type": "number"},
        "category": {"type": "string"},
        "status": {"type": "string"},
        "date": {"type": "string"},
        "description": {"type": "string"},
        "photo": {"type": "string"},
    },
}

_REPORT_VALIDATOR = Draft202012Validator(REPORT_SCHEMA)


def parse_report_date(raw: str) -> datetime:
    text = str(raw).strip()
    if not text:
        raise DataError("Report date is empty.")
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise DataError(f"Unparseable report date '{raw}'.") from exc
    return to_instant(parsed)


def to_instant(value: date | datetime) -> datetime:
    """Return a naive datetime comparable with every other instant in the feed.

    Offset-aware values are shifted to UTC first; naive values are kept as-is.
    A bare ``date`` maps to midnight of that day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}.")


@dataclass(frozen=True)
class Report:
    id: ReportId
    lat: float
    lng: float
    category: str
    status: str
    date: str
    description: str = ""
    photo: str = ""
    instant: datetime | None = field(init=False, compare=False, repr=False)
    date_error: str | None = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        try:
            instant: datetime | None = parse_report_date(self.date)
            error: str | None = None
        except DataError as exc:
            instant = None
            error = str(exc)
        object.__setattr__(self, "instant", instant)
        object.__setattr__(self, "date_error", error)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | Report) -> Report:
        if isinstance(payload, Report):
            return payload
        if not isinstance(payload, Mapping):
            raise DataError(
                f"Report payload must be an object, got {type(payload).__name__}."
            )
        errors = sorted(_REPORT_VALIDATOR.iter_errors(dict(payload)), key=lambda e: list(e.path))
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.path) or "<root>"
            raise DataError(f"Invalid report payload at {location}: {first.message}")

        return cls(
            id=_normalize_id(payload["id"]),
            lat=float(payload["lat"]),
            lng=float(payload["lng"]),
            category=str(payload["category"]),
            status=str(payload["status"]),
            date=str(payload["date"]),
            description=str(payload.get("description", "")),
            photo=str(payload.get("photo", "")),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lat": self.lat,
            "lng": self.lng,
            "category": self.category,
            "status": self.status,
            "date": self.date,
            "description": self.description,
            "photo": self.photo,
        }


@dataclass(frozen=True)
class DateRange:
    start: date | datetime | None = None
    end: date | datetime | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None:
            if to_instant(self.start) > to_instant(self.end):
                raise ValueError("DateRange start must be <= end.")

    @property
    def lower(self) -> datetime | None:
        return to_instant(self.start) if self.start is not None else None

    @property
    def upper(self) -> datetime | None:
        return to_instant(self.end) if self.end is not None else None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True)
class FilterCriteria:
    categories: frozenset[str] = frozenset()
    statuses: frozenset[str] = frozenset()
    search: str = ""
    date_range: DateRange = DateRange()

    def __post_init__(self) -> None:
        object.__setattr__(self, "categories", _as_label_set(self.categories))
        object.__setattr__(self, "statuses", _as_label_set(self.statuses))
        object.__setattr__(self, "search", str(self.search or ""))

    @property
    def is_unrestricted(self) -> bool:
        return (
            not self.categories
            and not self.statuses
            and not self.search
            and self.date_range.is_unbounded
        )


def _as_label_set(values: Iterable[str] | None) -> frozenset[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        return frozenset({values})
    return frozenset(str(value) for value in values)


def _normalize_id(value: Any) -> ReportId:
    # JSON integers may arrive as whole floats (1.0); they key the store as ints.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
