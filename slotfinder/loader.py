from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Iterable, TypeVar

import httpx
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from slotfinder.config import Settings
from slotfinder.domain import Dataset, PractitionerRole, Schedule, Slot

logger = logging.getLogger(__name__)

RESOURCE_TYPES = ("PractitionerRole", "Schedule", "Slot")

T = TypeVar("T")


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
    reason = f"{type(exc).__name__}: {exc}" if exc is not None else "unknown"
    if sleep_seconds is None:
        logger.info("Retrying request after attempt %s (reason: %s)", retry_state.attempt_number, reason)
        return
    logger.info(
        "Retrying request in %.0f sec. after attempt %s (reason: %s)",
        sleep_seconds,
        retry_state.attempt_number,
        reason,
    )


def _get(client: httpx.Client, url: str) -> httpx.Response:
    response = client.get(url)
    response.raise_for_status()
    return response


def _get_with_retry(client: httpx.Client, url: str, attempts: int) -> httpx.Response:
    decorated = retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(httpx.HTTPError),
        before_sleep=_log_before_sleep,
        reraise=True,
    )(_get)

    return decorated(client, url)


def rewrite_url(url: str, rewrite: tuple[str, str] | None) -> str:
    if rewrite is None:
        return url
    old, new = rewrite
    return url.replace(old, new)


def fetch_manifest(client: httpx.Client, url: str, *, attempts: int = 1) -> dict[str, Any]:
    response = _get_with_retry(client, url, attempts)
    data = response.json()
    if not isinstance(data, dict):
        raise RuntimeError(f"Bulk publish manifest is not a JSON object: {url}")
    return data


def urls_by_type(manifest: dict[str, Any] | None, resource_type: str) -> list[str]:
    if not manifest:
        return []
    return [
        str(item["url"])
        for item in manifest.get("output") or []
        if isinstance(item, dict) and item.get("type") == resource_type and item.get("url")
    ]


def parse_ndjson(text: str, *, source: str = "<text>") -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    # Split on "\n" only: JSON strings may carry raw U+2028 and similar separators.
    for lineno, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Skipping bad NDJSON line %s:%d (%s)", source, lineno, e)
            continue
        if isinstance(record, dict):
            records.append(record)
    return records


def fetch_ndjson(client: httpx.Client, url: str, *, attempts: int = 1) -> list[dict[str, Any]]:
    try:
        response = _get_with_retry(client, url, attempts)
    except httpx.HTTPError as e:
        # One broken file should not sink the whole dataset.
        logger.warning("Failed to fetch NDJSON %s (%s: %s)", url, type(e).__name__, e)
        return []
    return parse_ndjson(response.text, source=url)


def _to_records(raw: Iterable[dict[str, Any]], factory: Callable[[dict[str, Any]], T], kind: str) -> tuple[T, ...]:
    result: list[T] = []
    for item in raw:
        try:
            result.append(factory(item))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Skipping %s record (%s)", kind, e)
    return tuple(result)


def build_dataset(
    practitioners: Iterable[dict[str, Any]],
    schedules: Iterable[dict[str, Any]],
    slots: Iterable[dict[str, Any]],
) -> Dataset:
    return Dataset(
        practitioners=_to_records(practitioners, PractitionerRole.from_resource, "PractitionerRole"),
        schedules=_to_records(schedules, Schedule.from_resource, "Schedule"),
        slots=_to_records(slots, Slot.from_resource, "Slot"),
    )


def _load_with_client(settings: Settings, client: httpx.Client) -> Dataset:
    attempts = settings.fetch_retry_attempts

    logger.info("Fetching bulk publish manifest: %s", settings.bulk_publish_url)
    manifest = fetch_manifest(client, settings.bulk_publish_url, attempts=attempts)

    raw: dict[str, list[dict[str, Any]]] = {}
    for resource_type in RESOURCE_TYPES:
        records: list[dict[str, Any]] = []
        for url in urls_by_type(manifest, resource_type):
            records.extend(fetch_ndjson(client, rewrite_url(url, settings.url_rewrite), attempts=attempts))
        raw[resource_type] = records

    dataset = build_dataset(raw["PractitionerRole"], raw["Schedule"], raw["Slot"])
    logger.info(
        "Loaded practitioners=%d schedules=%d slots=%d",
        len(dataset.practitioners),
        len(dataset.schedules),
        len(dataset.slots),
    )
    return dataset


def load_dataset(settings: Settings, client: httpx.Client | None = None) -> Dataset:
    if client is not None:
        return _load_with_client(settings, client)

    with httpx.Client(timeout=settings.http_timeout_seconds, follow_redirects=True) as own_client:
        return _load_with_client(settings, own_client)


def load_dataset_from_dir(path: str) -> Dataset:
    """Read ``<ResourceType>.ndjson`` files from a directory; missing files count as empty."""
    raw: dict[str, list[dict[str, Any]]] = {}
    for resource_type in RESOURCE_TYPES:
        file_path = os.path.join(path, f"{resource_type}.ndjson")
        if not os.path.exists(file_path):
            logger.warning("No %s file in %s", resource_type, path)
            raw[resource_type] = []
            continue
        with open(file_path, "r", encoding="utf-8") as f:
            raw[resource_type] = parse_ndjson(f.read(), source=file_path)

    return build_dataset(raw["PractitionerRole"], raw["Schedule"], raw["Slot"])
