from __future__ import annotations

import calendar
import datetime as dt
from typing import Sequence

from slotfinder.availability import day_of_week_index
from slotfinder.domain import AvailabilityEntry, MonthIndex

_DAY_LABELS = ("Su", "Mo", "Tu", "We", "Th", "Fr", "Sa")
_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def render_month(index: MonthIndex, *, first_weekday: str = "sun") -> str:
    """Six-week text grid; days with availability are marked with ``*``."""
    start_col = day_of_week_index(first_weekday)
    first = dt.date(index.year, index.month, 1)
    days_in_month = calendar.monthrange(index.year, index.month)[1]
    # isoweekday() % 7 gives 0=sun ... 6=sat
    offset = (first.isoweekday() % 7 - start_col) % 7

    lines = [
        f"{_MONTH_NAMES[index.month - 1]} {index.year}",
        " ".join(f"{_DAY_LABELS[(start_col + i) % 7]:>3}" for i in range(7)),
    ]

    day = 1
    for week in range(6):
        cells: list[str] = []
        for col in range(7):
            if (week == 0 and col < offset) or day > days_in_month:
                cells.append("   ")
                continue
            key = f"{index.year:04d}-{index.month:02d}-{day:02d}"
            cells.append(f"{day:>2}{'*' if key in index else ' '}")
            day += 1
        lines.append(" ".join(cells).rstrip())

    return "\n".join(lines).rstrip() + "\n"


def render_day(
    day_key: str,
    groups: Sequence[tuple[dt.datetime, Sequence[AvailabilityEntry]]],
    *,
    tz: dt.tzinfo = dt.timezone.utc,
) -> str:
    if not groups:
        return f"{day_key}: no availability\n"

    lines = [day_key]
    for start, entries in groups:
        lines.append(f"  {start.astimezone(tz):%H:%M}")
        for entry in entries:
            line = f"    {entry.practitioner} @ {entry.location}"
            if entry.booking_url:
                line += f" Book: {entry.booking_url}"
            if entry.phone:
                line += f" | {entry.phone}"
            lines.append(line)
    return "\n".join(lines) + "\n"
