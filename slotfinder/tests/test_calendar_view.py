from __future__ import annotations

import datetime as dt

from slotfinder.availability import group_by_start
from slotfinder.calendar_view import render_day, render_month
from slotfinder.domain import AvailabilityEntry, MonthIndex

UTC = dt.timezone.utc


def _entry(hour: int, who: str, *, url: str | None = None, phone: str | None = None) -> AvailabilityEntry:
    start = dt.datetime(2024, 3, 5, hour, tzinfo=UTC)
    return AvailabilityEntry(
        start=start,
        end=start + dt.timedelta(minutes=30),
        practitioner=who,
        location="Main Clinic",
        booking_url=url,
        phone=phone,
    )


def test_month_grid_marks_available_days() -> None:
    index = MonthIndex(year=2024, month=3, days={"2024-03-05": (_entry(9, "Dr. A"),)})

    lines = render_month(index).splitlines()

    assert lines[0] == "March 2024"
    assert lines[1].split() == ["Su", "Mo", "Tu", "We", "Th", "Fr", "Sa"]
    # March 1st 2024 is a Friday.
    assert lines[2].split() == ["1", "2"]
    assert " 5*" in lines[3]
    assert " 6 " in lines[3]
    assert lines[-1].split()[-1] == "31"


def test_month_grid_can_start_on_monday() -> None:
    index = MonthIndex(year=2024, month=4)

    lines = render_month(index, first_weekday="mon").splitlines()

    assert lines[1].split()[0] == "Mo"
    # April 1st 2024 is a Monday.
    assert lines[2].split()[0] == "1"


def test_day_listing() -> None:
    entries = [
        _entry(10, "Dr. B", phone="555-0100"),
        _entry(9, "Dr. A", url="https://book/1"),
        _entry(10, "Dr. C"),
    ]

    text = render_day("2024-03-05", group_by_start(entries))

    assert text.splitlines() == [
        "2024-03-05",
        "  09:00",
        "    Dr. A @ Main Clinic Book: https://book/1",
        "  10:00",
        "    Dr. B @ Main Clinic | 555-0100",
        "    Dr. C @ Main Clinic",
    ]


def test_empty_day_listing() -> None:
    assert render_day("2024-03-06", []) == "2024-03-06: no availability\n"
