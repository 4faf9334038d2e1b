"""Handles subscription notification bundles delivered by the broker."""

import logging
from typing import Callable

from pydantic import Field, ValidationError

from referral_loop.ehr_client import EhrClientError, fetch_encounter
from referral_loop.fhir import Encounter, FhirModel, Reference
from referral_loop.pipeline import EncounterPipeline, ProcessEncounterResult

logger = logging.getLogger(__name__)


class NotificationEvent(FhirModel):
    event_number: str | int | None = Field(None, alias="eventNumber")
    focus: Reference | None = None


class SubscriptionStatus(FhirModel):
    notification_event: list[NotificationEvent] = Field(default_factory=list, alias="notificationEvent")


class BundleEntry(FhirModel):
    resource: SubscriptionStatus | None = None


class NotificationBundle(FhirModel):
    entry: list[BundleEntry] = Field(default_factory=list)


def extract_focus_references(bundle: dict) -> list[str]:
    """Encounter references named by the bundle's SubscriptionStatus entry."""
    try:
        parsed = NotificationBundle.model_validate(bundle or {})
    except ValidationError:
        logger.warning("Ignoring malformed notification bundle")
        return []
    if not parsed.entry or parsed.entry[0].resource is None:
        return []
    return [
        event.focus.reference
        for event in parsed.entry[0].resource.notification_event
        if event.focus and event.focus.reference
    ]


def handle_notification_bundle(
    bundle: dict,
    pipeline: EncounterPipeline,
    fetch: Callable[[str], Encounter] = fetch_encounter,
) -> dict:
    """Fetch and process every encounter a notification names.

    A failed fetch is logged and skipped; the remaining events still run.
    """
    focus_refs = extract_focus_references(bundle)
    logger.info("Received %d notification event(s) from broker", len(focus_refs))

    results: list[ProcessEncounterResult] = []
    for focus_ref in focus_refs:
        try:
            encounter = fetch(focus_ref)
        except EhrClientError as e:
            logger.warning("Failed to fetch %s: %s", focus_ref, e)
            continue

        result = pipeline.process_encounter(encounter)
        logger.info(
            "Processed %s: patient=%s matched=%s routed=%s reason=%r",
            focus_ref, result.patient_id, result.best_match is not None,
            result.routed, result.reason,
        )
        results.append(result)

    return {"ok": True, "processed": len(results), "results": results}
