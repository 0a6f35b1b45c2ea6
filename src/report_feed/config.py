from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "auto"
DEFAULT_FETCH_TIMEOUT_SEC = 10.0
DEFAULT_EVENT_NAME = "nuevo-reporte"
DEFAULT_PAGE_SIZE = 10
DEFAULT_EXPORT_DATE_FORMAT = "%Y-%m-%d"

_VALID_LOG_FORMATS = {"auto", "json", "console"}
_VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


@dataclass(frozen=True)
class RuntimeConfig:
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = DEFAULT_LOG_FORMAT
    api_url: str | None = None
    fetch_timeout_sec: float = DEFAULT_FETCH_TIMEOUT_SEC
    event_name: str = DEFAULT_EVENT_NAME
    page_size: int = DEFAULT_PAGE_SIZE
    export_date_format: str = DEFAULT_EXPORT_DATE_FORMAT


def normalize_log_level(value: str) -> str:
    level = str(value).strip().upper()
    if level in _VALID_LOG_LEVELS:
        return level

    # Numeric logging levels are accepted as well.
    try:
        numeric = int(level)
    except ValueError as exc:
        raise ValueError(
            f"Invalid REPORT_FEED_LOG_LEVEL '{value}'. "
            f"Expected one of {sorted(_VALID_LOG_LEVELS)} or a numeric level."
        ) from exc

    if numeric < 0:
        raise ValueError(
            f"Invalid REPORT_FEED_LOG_LEVEL '{value}'. Numeric levels must be >= 0."
        )
    return str(numeric)


def normalize_log_format(value: str) -> str:
    fmt = str(value).strip().lower()
    if fmt not in _VALID_LOG_FORMATS:
        raise ValueError(
            f"Invalid REPORT_FEED_LOG_FORMAT '{value}'. "
            f"Expected one of {sorted(_VALID_LOG_FORMATS)}."
        )
    return fmt


def parse_positive_float(value: str, *, env_var: str) -> float:
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid {env_var} '{value}'. Expected a positive float.") from exc
    if parsed <= 0:
        raise ValueError(f"Invalid {env_var} '{value}'. Value must be > 0.")
    return parsed


def parse_positive_int(value: str, *, env_var: str) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid {env_var} '{value}'. Expected a positive integer.") from exc
    if parsed <= 0:
        raise ValueError(f"Invalid {env_var} '{value}'. Value must be > 0.")
    return parsed


def parse_optional_url(value: str, *, env_var: str) -> str | None:
    stripped = str(value).strip()
    if not stripped:
        return None
    if not stripped.startswith(("http://", "https://")):
        raise ValueError(f"Invalid {env_var} '{value}'. Expected an http(s) URL.")
    return stripped


def normalize_event_name(value: str) -> str:
    name = str(value).strip()
    if not name:
        raise ValueError("REPORT_FEED_EVENT_NAME must not be empty.")
    return name


def normalize_date_format(value: str) -> str:
    fmt = str(value)
    if "%" not in fmt:
        raise ValueError(
            f"Invalid REPORT_FEED_EXPORT_DATE_FORMAT '{value}'. Expected a strftime pattern."
        )
    return fmt


def load_runtime_config(env: Mapping[str, str] | None = None) -> RuntimeConfig:
    source = env if env is not None else os.environ

    log_level = normalize_log_level(source.get("REPORT_FEED_LOG_LEVEL", DEFAULT_LOG_LEVEL))
    log_format = normalize_log_format(source.get("REPORT_FEED_LOG_FORMAT", DEFAULT_LOG_FORMAT))
    api_url = parse_optional_url(
        source.get("REPORT_FEED_API_URL", ""),
        env_var="REPORT_FEED_API_URL",
    )
    fetch_timeout_sec = parse_positive_float(
        source.get("REPORT_FEED_FETCH_TIMEOUT_SEC", str(DEFAULT_FETCH_TIMEOUT_SEC)),
        env_var="REPORT_FEED_FETCH_TIMEOUT_SEC",
    )
    event_name = normalize_event_name(source.get("REPORT_FEED_EVENT_NAME", DEFAULT_EVENT_NAME))
    page_size = parse_positive_int(
        source.get("REPORT_FEED_PAGE_SIZE", str(DEFAULT_PAGE_SIZE)),
        env_var="REPORT_FEED_PAGE_SIZE",
    )
    export_date_format = normalize_date_format(
        source.get("REPORT_FEED_EXPORT_DATE_FORMAT", DEFAULT_EXPORT_DATE_FORMAT)
    )

    return RuntimeConfig(
        log_level=log_level,
        log_format=log_format,
        api_url=api_url,
        fetch_timeout_sec=fetch_timeout_sec,
        event_name=event_name,
        page_size=page_size,
        export_date_format=export_date_format,
    )
