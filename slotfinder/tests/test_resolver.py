from __future__ import annotations

import pytest

from slotfinder.domain import ActorRef, Extension, PractitionerRole, Schedule, Slot, UnresolvedSchedule
from slotfinder.resolver import ReferenceResolver, booking_phone, booking_url, reference_id


def _slot(schedule_ref: str | None = "Schedule/S1", extensions: tuple[Extension, ...] = ()) -> Slot:
    return Slot(
        status="free",
        start="2024-03-05T09:00:00Z",
        end="2024-03-05T09:15:00Z",
        schedule_reference=schedule_ref,
        extensions=extensions,
    )


def _resolver(*schedules: Schedule) -> ReferenceResolver:
    practitioners = [
        PractitionerRole(id="P1", practitioner_display="Dr. A. Smith"),
        PractitionerRole(id="P2", practitioner_display="Dr. B. Jones"),
    ]
    return ReferenceResolver(practitioners, schedules)


def test_reference_id_extracts_id_for_matching_type() -> None:
    assert reference_id("Schedule/S1", "Schedule") == "S1"
    assert reference_id("PractitionerRole/P1", "Schedule") is None
    assert reference_id("Schedule/", "Schedule") is None
    assert reference_id(None, "Schedule") is None


def test_resolve_full_chain() -> None:
    schedule = Schedule(
        id="S1",
        actors=(ActorRef("PractitionerRole/P1", "Dr. A"), ActorRef("Location/L1", "Main Clinic")),
    )

    resolution = _resolver(schedule).resolve(_slot())

    assert resolution.practitioner == "Dr. A. Smith"
    assert resolution.location == "Dr. A, Main Clinic"
    assert resolution.degraded is False


def test_unknown_schedule_raises() -> None:
    with pytest.raises(UnresolvedSchedule):
        _resolver(Schedule(id="S1")).resolve(_slot("Schedule/S_missing"))


def test_missing_schedule_reference_raises() -> None:
    with pytest.raises(UnresolvedSchedule):
        _resolver(Schedule(id="S1")).resolve(_slot(None))


def test_no_practitioner_actor_degrades_to_unknown() -> None:
    schedule = Schedule(id="S1", actors=(ActorRef("Location/L1", "Main Clinic"),))

    resolution = _resolver(schedule).resolve(_slot())

    assert resolution.practitioner == "Unknown"
    assert resolution.location == "Main Clinic"
    assert resolution.degraded is True


def test_unknown_practitioner_role_degrades_to_unknown() -> None:
    schedule = Schedule(id="S1", actors=(ActorRef("PractitionerRole/P404", "Dr. Ghost"),))

    resolution = _resolver(schedule).resolve(_slot())

    assert resolution.practitioner == "Unknown"
    assert resolution.location == "Dr. Ghost"
    assert resolution.degraded is True


def test_schedule_without_actors_degrades_both_fields() -> None:
    resolution = _resolver(Schedule(id="S1")).resolve(_slot())

    assert resolution.practitioner == "Unknown"
    assert resolution.location == "Unknown"
    assert resolution.degraded is True


def test_first_practitioner_role_wins() -> None:
    schedule = Schedule(
        id="S1",
        actors=(ActorRef("PractitionerRole/P2", "Dr. B"), ActorRef("PractitionerRole/P1", "Dr. A")),
    )

    assert _resolver(schedule).resolve(_slot()).practitioner == "Dr. B. Jones"


def test_booking_extensions() -> None:
    slot = _slot(
        extensions=(
            Extension(url="http://fhir-registry.smarthealthit.org/StructureDefinition/booking-deep-link", value_url="https://book/1"),
            Extension(url="http://fhir-registry.smarthealthit.org/StructureDefinition/booking-phone", value_string="555-0100"),
        )
    )

    assert booking_url(slot) == "https://book/1"
    assert booking_phone(slot) == "555-0100"


def test_missing_booking_extensions_are_none() -> None:
    slot = _slot(extensions=(Extension(url="http://example.org/other", value_string="x"),))

    assert booking_url(slot) is None
    assert booking_phone(slot) is None
