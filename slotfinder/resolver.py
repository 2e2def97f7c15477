from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from slotfinder.domain import (
    BOOKING_LINK_MARKER,
    BOOKING_PHONE_MARKER,
    UNKNOWN,
    PractitionerRole,
    Schedule,
    Slot,
    UnresolvedSchedule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    practitioner: str
    location: str
    # True when practitioner or location fell back to UNKNOWN.
    degraded: bool = False


def reference_id(reference: str | None, resource_type: str) -> str | None:
    """Return ``<id>`` for a ``"<resource_type>/<id>"`` reference, else None."""
    if not reference:
        return None
    prefix = f"{resource_type}/"
    if not reference.startswith(prefix):
        return None
    return reference[len(prefix):] or None


def booking_url(slot: Slot) -> str | None:
    for ext in slot.extensions:
        if BOOKING_LINK_MARKER in ext.url:
            return ext.value_url
    return None


def booking_phone(slot: Slot) -> str | None:
    for ext in slot.extensions:
        if BOOKING_PHONE_MARKER in ext.url:
            return ext.value_string
    return None


class ReferenceResolver:
    """Walks slot -> schedule -> practitioner role -> practitioner display."""

    def __init__(self, practitioners: Iterable[PractitionerRole], schedules: Iterable[Schedule]):
        self._practitioners = {p.id: p for p in practitioners}
        self._schedules = {s.id: s for s in schedules}

    def schedule_for(self, slot: Slot) -> Schedule:
        schedule_id = reference_id(slot.schedule_reference, "Schedule")
        schedule = self._schedules.get(schedule_id) if schedule_id else None
        if schedule is None:
            raise UnresolvedSchedule(slot.schedule_reference)
        return schedule

    def practitioner_for(self, schedule: Schedule) -> PractitionerRole | None:
        role_ids = [
            rid for rid in (reference_id(a.reference, "PractitionerRole") for a in schedule.actors) if rid
        ]
        if not role_ids:
            return None
        if len(role_ids) > 1:
            logger.debug("Schedule %s has %d practitioner roles, using the first", schedule.id, len(role_ids))
        return self._practitioners.get(role_ids[0])

    def resolve(self, slot: Slot) -> Resolution:
        schedule = self.schedule_for(slot)

        role = self.practitioner_for(schedule)
        practitioner = role.practitioner_display if role is not None else None

        labels = [a.display for a in schedule.actors if a.display]
        location = ", ".join(labels) if labels else None

        return Resolution(
            practitioner=practitioner or UNKNOWN,
            location=location or UNKNOWN,
            degraded=not practitioner or not location,
        )
