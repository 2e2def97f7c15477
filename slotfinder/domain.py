from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping

UNKNOWN = "Unknown"
FREE_STATUS = "free"

BOOKING_LINK_MARKER = "booking-deep-link"
BOOKING_PHONE_MARKER = "booking-phone"


@dataclass(frozen=True)
class ActorRef:
    reference: str | None
    display: str | None

    @classmethod
    def from_resource(cls, raw: Mapping[str, Any]) -> ActorRef:
        return cls(reference=_text(raw.get("reference")), display=_text(raw.get("display")))


@dataclass(frozen=True)
class PractitionerRole:
    id: str
    practitioner_display: str | None = None

    @classmethod
    def from_resource(cls, raw: Mapping[str, Any]) -> PractitionerRole:
        practitioner = _mapping(raw.get("practitioner"))
        return cls(id=_require_id(raw, "PractitionerRole"), practitioner_display=_text(practitioner.get("display")))


@dataclass(frozen=True)
class Schedule:
    id: str
    actors: tuple[ActorRef, ...] = ()

    @classmethod
    def from_resource(cls, raw: Mapping[str, Any]) -> Schedule:
        actors = tuple(ActorRef.from_resource(a) for a in _items(raw.get("actor")) if isinstance(a, Mapping))
        return cls(id=_require_id(raw, "Schedule"), actors=actors)


@dataclass(frozen=True)
class Extension:
    url: str
    value_url: str | None = None
    value_string: str | None = None


@dataclass(frozen=True)
class Slot:
    """One offered time window, as loaded.

    Timestamps stay raw strings here; they are validated when the month
    index is built so a bad record only costs itself.
    """

    status: str | None
    start: str | None
    end: str | None
    schedule_reference: str | None
    extensions: tuple[Extension, ...] = ()

    @classmethod
    def from_resource(cls, raw: Mapping[str, Any]) -> Slot:
        schedule = _mapping(raw.get("schedule"))
        extensions = tuple(
            Extension(
                url=_text(e.get("url")) or "",
                value_url=_text(e.get("valueUrl")),
                value_string=_text(e.get("valueString")),
            )
            for e in _items(raw.get("extension"))
            if isinstance(e, Mapping)
        )
        return cls(
            status=_text(raw.get("status")),
            start=raw.get("start"),
            end=raw.get("end"),
            schedule_reference=_text(schedule.get("reference")),
            extensions=extensions,
        )


@dataclass(frozen=True)
class AvailabilityEntry:
    start: dt.datetime
    end: dt.datetime
    practitioner: str
    location: str
    booking_url: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Dataset:
    practitioners: tuple[PractitionerRole, ...] = ()
    schedules: tuple[Schedule, ...] = ()
    slots: tuple[Slot, ...] = ()


@dataclass(frozen=True)
class MonthIndex:
    """Day buckets of one (year, month), keyed by ``YYYY-MM-DD``."""

    year: int
    month: int
    days: Mapping[str, tuple[AvailabilityEntry, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "days", MappingProxyType(dict(self.days)))

    @property
    def key(self) -> str:
        return month_key(self.year, self.month)

    def __contains__(self, day_key: object) -> bool:
        return day_key in self.days

    def __getitem__(self, day_key: str) -> tuple[AvailabilityEntry, ...]:
        return self.days[day_key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.days)

    def __len__(self) -> int:
        return len(self.days)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MonthIndex):
            return NotImplemented
        return (self.year, self.month, dict(self.days)) == (other.year, other.month, dict(other.days))

    def get(self, day_key: str) -> tuple[AvailabilityEntry, ...] | None:
        return self.days.get(day_key)


class UnresolvedSchedule(LookupError):
    """The slot points at a Schedule that is not in the dataset."""

    def __init__(self, reference: str | None):
        super().__init__(f"Schedule not found for reference {reference!r}")
        self.reference = reference


class MalformedTimestamp(ValueError):
    def __init__(self, field_name: str, raw: object):
        super().__init__(f"Malformed {field_name} timestamp: {raw!r}")
        self.field_name = field_name
        self.raw = raw


class CacheKeyCollision(RuntimeError):
    """Two different (year, month) pairs ended up under one cache key."""


def month_key(year: int, month: int) -> str:
    return f"{year}-{month}"


def parse_instant(raw: object, field_name: str, tz: dt.tzinfo) -> dt.datetime:
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedTimestamp(field_name, raw)

    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        value = dt.datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedTimestamp(field_name, raw) from e

    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def date_key(instant: dt.datetime, tz: dt.tzinfo) -> str:
    return instant.astimezone(tz).date().isoformat()


def _text(value: object) -> str | None:
    # Non-string values in optional fields are treated as absent.
    return value if isinstance(value, str) else None


def _mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _items(value: object) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _require_id(raw: Mapping[str, Any], resource_type: str) -> str:
    value = raw.get("id")
    if not value:
        raise ValueError(f"{resource_type} record without id")
    return str(value)
