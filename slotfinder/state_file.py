from __future__ import annotations

import datetime as dt
import json
import os
import tempfile
from typing import Any

from slotfinder.domain import AvailabilityEntry, MonthIndex


def _entry_to_dict(entry: AvailabilityEntry) -> dict[str, Any]:
    return {
        "start": entry.start.isoformat(),
        "end": entry.end.isoformat(),
        "practitioner": entry.practitioner,
        "location": entry.location,
        "booking_url": entry.booking_url,
        "phone": entry.phone,
    }


def _entry_from_dict(item: dict[str, Any]) -> AvailabilityEntry:
    return AvailabilityEntry(
        start=dt.datetime.fromisoformat(item["start"]),
        end=dt.datetime.fromisoformat(item["end"]),
        practitioner=str(item["practitioner"]),
        location=str(item["location"]),
        booking_url=item.get("booking_url"),
        phone=item.get("phone"),
    )


def load_month_index(path: str) -> MonthIndex | None:
    if not os.path.exists(path):
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        year_raw, month_raw = str(raw["month"]).split("-", 1)
        days = {
            str(day): tuple(_entry_from_dict(item) for item in items)
            for day, items in (raw.get("days") or {}).items()
        }
        return MonthIndex(year=int(year_raw), month=int(month_raw), days=days)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
        # A corrupted export is treated as absent.
        return None


def save_month_index(path: str, index: MonthIndex) -> None:
    data = {
        "month": f"{index.year:04d}-{index.month:02d}",
        "days": {day: [_entry_to_dict(e) for e in index[day]] for day in sorted(index)},
    }

    folder = os.path.dirname(os.path.abspath(path))
    if folder and not os.path.exists(folder):
        os.makedirs(folder, exist_ok=True)

    # Readers never see a half-written export.
    with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".json.tmp") as tf:
        json.dump(data, tf, ensure_ascii=False, indent=2)
        export_tmp = tf.name

    os.replace(export_tmp, path)
