from __future__ import annotations

import datetime as dt
import logging
import threading
from typing import Iterable, Sequence

from slotfinder.domain import (
    FREE_STATUS,
    AvailabilityEntry,
    CacheKeyCollision,
    Dataset,
    MalformedTimestamp,
    MonthIndex,
    PractitionerRole,
    Schedule,
    Slot,
    UnresolvedSchedule,
    date_key,
    month_key,
    parse_instant,
)
from slotfinder.resolver import ReferenceResolver, booking_phone, booking_url

logger = logging.getLogger(__name__)

_WEEKDAYS = {"sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6}


def day_of_week_index(day: str) -> int:
    """Weekday name to index, Sunday first (0=sun ... 6=sat). Unknown names give 0."""
    return _WEEKDAYS.get(day.strip().lower(), 0)


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")


def build_month_availability(
    year: int,
    month: int,
    practitioners: Iterable[PractitionerRole],
    schedules: Iterable[Schedule],
    slots: Iterable[Slot],
    *,
    tz: dt.tzinfo = dt.timezone.utc,
    resolver: ReferenceResolver | None = None,
) -> MonthIndex:
    """Bucket the free slots of one month by calendar day.

    ``month`` is 1-based. Year/month filtering and the ``YYYY-MM-DD`` key are
    both taken in ``tz``. Entries keep source order inside a day; slots that
    are not free, fall outside the month, carry a bad timestamp or point at an
    unknown schedule are left out. Pass ``resolver`` to reuse id maps already
    built for the same practitioners and schedules.
    """
    _check_month(month)
    if resolver is None:
        resolver = ReferenceResolver(practitioners, schedules)

    buckets: dict[str, list[AvailabilityEntry]] = {}
    unresolved = malformed = 0

    for slot in slots:
        if slot.status != FREE_STATUS:
            continue

        try:
            start = parse_instant(slot.start, "start", tz).astimezone(tz)
        except MalformedTimestamp as e:
            logger.warning("Skipping slot (%s)", e)
            malformed += 1
            continue

        if start.year != year or start.month != month:
            continue

        try:
            end = parse_instant(slot.end, "end", tz).astimezone(tz)
        except MalformedTimestamp as e:
            logger.warning("Skipping slot starting %s (%s)", slot.start, e)
            malformed += 1
            continue

        try:
            resolution = resolver.resolve(slot)
        except UnresolvedSchedule as e:
            logger.debug("Dropping slot starting %s (%s)", slot.start, e)
            unresolved += 1
            continue

        buckets.setdefault(date_key(start, tz), []).append(
            AvailabilityEntry(
                start=start,
                end=end,
                practitioner=resolution.practitioner,
                location=resolution.location,
                booking_url=booking_url(slot),
                phone=booking_phone(slot),
            )
        )

    logger.info(
        "Month %s: days=%d entries=%d unresolved=%d malformed=%d",
        month_key(year, month),
        len(buckets),
        sum(len(b) for b in buckets.values()),
        unresolved,
        malformed,
    )
    return MonthIndex(year=year, month=month, days={k: tuple(v) for k, v in buckets.items()})


class MonthCache:
    """Lazily built month indexes for one loaded dataset.

    Entries are never evicted. Reloading the dataset means creating a new cache.
    """

    def __init__(self, dataset: Dataset, *, tz: dt.tzinfo = dt.timezone.utc):
        self._dataset = dataset
        self._tz = tz
        self._resolver = ReferenceResolver(dataset.practitioners, dataset.schedules)
        self._months: dict[str, MonthIndex] = {}
        self._lock = threading.Lock()

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    @property
    def tz(self) -> dt.tzinfo:
        return self._tz

    def get(self, year: int, month: int) -> MonthIndex:
        _check_month(month)
        key = month_key(year, month)

        with self._lock:
            cached = self._months.get(key)
            if cached is None:
                cached = build_month_availability(
                    year,
                    month,
                    self._dataset.practitioners,
                    self._dataset.schedules,
                    self._dataset.slots,
                    tz=self._tz,
                    resolver=self._resolver,
                )
                self._months[key] = cached
            elif (cached.year, cached.month) != (year, month):
                raise CacheKeyCollision(
                    f"Cache key {key!r} holds {cached.year}-{cached.month}, requested {year}-{month}"
                )
            return cached

    def __contains__(self, year_month: object) -> bool:
        if not isinstance(year_month, tuple) or len(year_month) != 2:
            return False
        return month_key(*year_month) in self._months

    def __len__(self) -> int:
        return len(self._months)


def group_by_start(entries: Sequence[AvailabilityEntry]) -> list[tuple[dt.datetime, list[AvailabilityEntry]]]:
    """Group one day's entries by exact start instant, earliest first.

    Inside a group the original order is kept.
    """
    groups: dict[dt.datetime, list[AvailabilityEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.start, []).append(entry)
    return sorted(groups.items(), key=lambda item: item[0])
