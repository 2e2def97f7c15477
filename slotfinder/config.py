from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

DEFAULT_BULK_PUBLISH_URL = (
    "https://raw.githubusercontent.com/Culby/smart-scheduling-links/refs/heads/master/examples/%24bulk-publish"
)


def _parse_url_rewrite(raw: str) -> tuple[str, str] | None:
    # SLOTFINDER_URL_REWRITE=old=new, e.g. smart-on-fhir=Culby
    raw = raw.strip()
    if not raw:
        return None
    old, sep, new = raw.partition("=")
    if not sep or not old.strip():
        raise RuntimeError(f"Invalid SLOTFINDER_URL_REWRITE value: {raw!r}. Expected 'old=new'.")
    return old.strip(), new.strip()


def _parse_timezone(raw: str) -> dt.tzinfo:
    name = raw.strip() or "UTC"
    if name.upper() == "UTC":
        return dt.timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RuntimeError(f"Invalid SLOTFINDER_TIMEZONE value: {name!r}") from e


def _positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1")
    return value


@dataclass(frozen=True)
class Settings:
    bulk_publish_url: str = DEFAULT_BULK_PUBLISH_URL
    url_rewrite: tuple[str, str] | None = ("smart-on-fhir", "Culby")

    # Used both for the month filter and for YYYY-MM-DD day keys.
    timezone: dt.tzinfo = dt.timezone.utc

    http_timeout_seconds: float = 20.0
    fetch_retry_attempts: int = 3

    # Read NDJSON files from here instead of the network when set.
    data_dir: str | None = None

    log_level: str = "INFO"


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Real environment variables win over values from the .env file.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    log_level = os.getenv("SLOTFINDER_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise RuntimeError(f"Invalid SLOTFINDER_LOG_LEVEL value: {log_level!r}")

    timeout_raw = os.getenv("SLOTFINDER_HTTP_TIMEOUT_SECONDS", "20")
    try:
        http_timeout_seconds = float(timeout_raw)
    except ValueError as e:
        raise RuntimeError(f"SLOTFINDER_HTTP_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}") from e
    if http_timeout_seconds <= 0:
        raise RuntimeError("SLOTFINDER_HTTP_TIMEOUT_SECONDS must be > 0")

    return Settings(
        bulk_publish_url=os.getenv("SLOTFINDER_BULK_PUBLISH_URL") or DEFAULT_BULK_PUBLISH_URL,
        url_rewrite=_parse_url_rewrite(os.getenv("SLOTFINDER_URL_REWRITE", "smart-on-fhir=Culby")),
        timezone=_parse_timezone(os.getenv("SLOTFINDER_TIMEZONE", "UTC")),
        http_timeout_seconds=http_timeout_seconds,
        fetch_retry_attempts=_positive_int("SLOTFINDER_FETCH_RETRY_ATTEMPTS", "3"),
        data_dir=os.getenv("SLOTFINDER_DATA_DIR") or None,
        log_level=log_level,
    )
