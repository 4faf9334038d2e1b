"""Read models for the physician dashboard and the patient portal."""

from referral_loop.fhir import referral_to_service_request
from referral_loop.lifecycle import LifecycleManager
from referral_loop.database.encounter_repository import EncounterRepository
from referral_loop.database.referral_repository import ReferralRepository
from referral_loop.database.routed_event_repository import RoutedEventRepository


def physician_dashboard(
    referrals: ReferralRepository | None = None,
    routed_events: RoutedEventRepository | None = None,
) -> dict:
    """All referrals with their tasks, all routed events, and a fresh overdue sweep."""
    referrals = referrals or ReferralRepository()
    routed_events = routed_events or RoutedEventRepository()

    # Sweep first so the listed tasks reflect it
    overdue = LifecycleManager(referrals).sweep_overdue()
    return {
        "referrals": [
            {"serviceRequest": referral_to_service_request(r.referral), "task": r.task}
            for r in referrals.list_referrals()
        ],
        "routedEvents": routed_events.list_all(),
        "overdue": overdue,
    }


def patient_encounters(
    patient_id: str,
    encounters: EncounterRepository | None = None,
    routed_events: RoutedEventRepository | None = None,
) -> list[dict]:
    """A patient's encounters, each flagged with whether it reached a physician."""
    encounters = encounters or EncounterRepository()
    routed_events = routed_events or RoutedEventRepository()
    return [
        {**resource, "_shared": routed_events.get_by_encounter(resource["id"]) is not None}
        for resource in encounters.list_for_patient(patient_id)
    ]
