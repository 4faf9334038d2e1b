"""
Encounter processing pipeline.

Given a new or updated encounter:
1. Resolve the upstream patient ID to our canonical patient ID
2. Store the encounter (the patient portal always sees it)
3. Score it against the patient's open referrals
4. Advance the matched referral's task (independent of consent)
5. Check the patient's sharing preference
6. Route to the referring physician if appropriate
"""

import logging
import uuid
from dataclasses import dataclass, field

from referral_loop import config
from referral_loop.consent import decide_routing, qualifying_match
from referral_loop.dates import utcnow
from referral_loop.events import EventBroadcaster, broadcaster
from referral_loop.fhir import Encounter
from referral_loop.lifecycle import LifecycleManager
from referral_loop.locks import patient_locks
from referral_loop.matching import (
    DirectoryMatchContext,
    MatchContext,
    MatchResult,
    match_encounter_to_referrals,
)
from referral_loop.database.consent_repository import ConsentRepository
from referral_loop.database.encounter_repository import EncounterRepository
from referral_loop.database.referral_repository import OpenReferral, ReferralRepository
from referral_loop.database.routed_event_repository import RoutedEvent, RoutedEventRepository
from referral_loop.database.session_repository import SessionRepository

logger = logging.getLogger(__name__)

CONSENT_STRATEGIES = ("first-open-referral", "matched-referral")


@dataclass
class ProcessEncounterResult:
    encounter_id: str
    patient_id: str
    match_results: list[MatchResult] = field(default_factory=list)
    best_match: MatchResult | None = None
    routed: bool = False
    routed_to: str | None = None
    task_updated: str | None = None
    reason: str = ""


class EncounterPipeline:
    """Runs one encounter at a time per patient through matching and routing."""

    def __init__(
        self,
        referrals: ReferralRepository | None = None,
        encounters: EncounterRepository | None = None,
        consents: ConsentRepository | None = None,
        routed_events: RoutedEventRepository | None = None,
        sessions: SessionRepository | None = None,
        context: MatchContext | None = None,
        events: EventBroadcaster | None = None,
        consent_strategy: str | None = None,
    ):
        self.referrals = referrals or ReferralRepository()
        self.encounters = encounters or EncounterRepository()
        self.consents = consents or ConsentRepository()
        self.routed_events = routed_events or RoutedEventRepository()
        self.sessions = sessions or SessionRepository()
        self.context = context or DirectoryMatchContext()
        self.events = events or broadcaster
        self.lifecycle = LifecycleManager(self.referrals)
        self.consent_strategy = consent_strategy or config.CONSENT_PROVIDER_STRATEGY
        if self.consent_strategy not in CONSENT_STRATEGIES:
            raise ValueError(f"Unknown consent provider strategy: {self.consent_strategy}")

    def process_encounter(self, encounter: Encounter) -> ProcessEncounterResult:
        raw_patient_id = encounter.patient_id
        patient_id = self.sessions.resolve_patient_id(raw_patient_id)

        # Downstream consumers only ever see the canonical patient ID
        if patient_id != raw_patient_id:
            encounter = encounter.with_patient(patient_id)

        with patient_locks.hold(patient_id):
            return self._process(encounter, patient_id)

    def _process(self, encounter: Encounter, patient_id: str) -> ProcessEncounterResult:
        snapshot = encounter.to_fhir()
        is_update = self.encounters.upsert(encounter.id, patient_id, encounter.status, snapshot)
        logger.info(
            "Encounter %s %s for patient %s (status=%s)",
            encounter.id, "updated" if is_update else "stored", patient_id, encounter.status,
        )
        self.events.broadcast(
            "patient",
            {
                "type": "encounter-updated" if is_update else "encounter-stored",
                "encounterId": encounter.id,
                "encounter": snapshot,
            },
            patient_id,
        )

        open_referrals = self.referrals.list_open_referrals(patient_id)
        match_results = match_encounter_to_referrals(encounter, open_referrals, self.context)
        best_match = qualifying_match(match_results[0] if match_results else None)

        task_updated = None
        if best_match:
            self.lifecycle.advance_task(best_match.task_id, encounter)
            task_updated = best_match.task_id

        physician_ref = self._consent_provider(open_referrals, best_match)
        preference = (
            self.consents.get_preference(patient_id, physician_ref) if physician_ref else None
        )
        decision = decide_routing(preference, best_match)
        logger.info(
            "Encounter %s: %d match(es), best=%s, routed=%s (%s)",
            encounter.id, len(match_results),
            f"{best_match.score:.2f}" if best_match else "none",
            decision.routed, decision.reason,
        )

        routed = decision.routed and physician_ref is not None
        if routed:
            self.routed_events.upsert(RoutedEvent(
                id=f"route-{uuid.uuid4()}",
                encounter_id=encounter.id,
                patient_id=patient_id,
                physician_ref=physician_ref,
                routed_at=utcnow().isoformat(),
                encounter=snapshot,
                task_id=best_match.task_id if best_match else None,
                match_score=best_match.score if best_match else None,
            ))
            self.events.broadcast("physician", {
                "type": "encounter-updated" if is_update else "encounter-routed",
                "encounterId": encounter.id,
                "encounter": snapshot,
                "matchScore": best_match.score if best_match else None,
                "taskId": task_updated,
            })
        elif self.routed_events.delete_by_encounter(encounter.id):
            # A routed event only stands while the latest evaluation routes
            logger.info("Encounter %s withdrawn from %s", encounter.id, physician_ref or "physician view")

        return ProcessEncounterResult(
            encounter_id=encounter.id,
            patient_id=patient_id,
            match_results=match_results,
            best_match=best_match,
            routed=routed,
            routed_to=physician_ref if routed else None,
            task_updated=task_updated,
            reason=decision.reason,
        )

    def _consent_provider(
        self, open_referrals: list[OpenReferral], best_match: MatchResult | None
    ) -> str | None:
        """
        The referring physician whose sharing preference governs routing.

        By default this is the requester of the first open referral, whichever
        referral matched. The matched-referral strategy uses the requester of
        the matched referral instead when there is one.
        """
        if self.consent_strategy == "matched-referral" and best_match:
            for open_referral in open_referrals:
                if open_referral.referral.id == best_match.referral_id:
                    return open_referral.referral.requester_ref
        if open_referrals:
            return open_referrals[0].referral.requester_ref or None
        return None

    def sweep_overdue(self) -> list[str]:
        return self.lifecycle.sweep_overdue()
