"""
Scores an encounter against a patient's open referrals.

Signals and weights:
- Organization NPI exact match:  0.35
- Organization name fuzzy match: 0.20 * similarity
- Practitioner NPI exact match:  0.25
- Specialty taxonomy code match: 0.10
- Date within referral window:   0.10

Scores >= 0.70 are high confidence (auto-link), 0.40-0.69 medium, below that
low. Scores under 0.10 are dropped as noise.
"""

import logging
from dataclasses import dataclass, field

from referral_loop.dates import in_window
from referral_loop.fhir import NPI_SYSTEM, Encounter
from referral_loop.fuzzy import fuzzy_name_match
from referral_loop.database.directory_repository import DirectoryRepository
from referral_loop.database.referral_repository import OpenReferral

logger = logging.getLogger(__name__)

WEIGHTS = {
    "org_npi": 0.35,
    "org_name": 0.20,
    "practitioner_npi": 0.25,
    "specialty": 0.10,
    "date_in_window": 0.10,
}

MIN_SCORE_THRESHOLD = 0.10
HIGH_CONFIDENCE = 0.70
MEDIUM_CONFIDENCE = 0.40


@dataclass
class MatchSignals:
    org_npi: bool = False
    org_name: float = 0.0
    practitioner_npi: bool = False
    specialty: bool = False
    date_in_window: bool = False


@dataclass
class MatchResult:
    referral_id: str
    task_id: str
    score: float
    confidence: str
    signals: MatchSignals = field(default_factory=MatchSignals)


class MatchContext:
    """
    Resolves encounter references to identifiers.

    Every method returns None for an unknown reference; the matcher treats
    that as an absent signal.
    """

    def organization_npi(self, org_ref: str) -> str | None:
        return None

    def practitioner_npi(self, practitioner_ref: str) -> str | None:
        return None

    def specialty_code(self, practitioner_ref: str) -> str | None:
        return None


class DirectoryMatchContext(MatchContext):
    """Match context backed by the provider directory tables."""

    def __init__(self, directory: DirectoryRepository | None = None):
        self.directory = directory or DirectoryRepository()

    def organization_npi(self, org_ref: str) -> str | None:
        org = self.directory.get_organization(org_ref)
        return org.npi if org else None

    def practitioner_npi(self, practitioner_ref: str) -> str | None:
        practitioner = self.directory.get_practitioner(practitioner_ref)
        return practitioner.npi if practitioner else None

    def specialty_code(self, practitioner_ref: str) -> str | None:
        role = self.directory.get_primary_role(practitioner_ref)
        return role.specialty_code if role else None


def confidence_for(score: float) -> str:
    if score >= HIGH_CONFIDENCE:
        return "high"
    if score >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def match_encounter_to_referrals(
    encounter: Encounter,
    open_referrals: list[OpenReferral],
    context: MatchContext | None = None,
) -> list[MatchResult]:
    """Score the encounter against each referral; best match first."""
    if encounter.service_provider is None or not encounter.service_provider.reference:
        return []
    context = context or MatchContext()

    org_ref = encounter.service_provider.reference
    org_name = encounter.service_provider.display or ""
    org_npi = context.organization_npi(org_ref)

    practitioner = encounter.first_practitioner()
    practitioner_ref = practitioner.reference if practitioner else None
    embedded = practitioner.identifier if practitioner else None
    embedded_npi = embedded.value if embedded and embedded.system == NPI_SYSTEM else None
    practitioner_npi = (
        context.practitioner_npi(practitioner_ref) if practitioner_ref else None
    ) or embedded_npi
    specialty = context.specialty_code(practitioner_ref) if practitioner_ref else None

    encounter_start = encounter.period_start

    results = []
    for open_referral in open_referrals:
        referral = open_referral.referral
        targets = referral.targets
        if not targets.is_matchable():
            continue

        score = 0.0
        signals = MatchSignals()

        if targets.organization_npi and org_npi and targets.organization_npi == org_npi:
            score += WEIGHTS["org_npi"]
            signals.org_npi = True

        if targets.organization_name and org_name:
            similarity = fuzzy_name_match(targets.organization_name, org_name)
            score += WEIGHTS["org_name"] * similarity
            signals.org_name = similarity

        if targets.practitioner_npi and practitioner_npi and targets.practitioner_npi == practitioner_npi:
            score += WEIGHTS["practitioner_npi"]
            signals.practitioner_npi = True

        if targets.specialty_code and specialty and targets.specialty_code == specialty:
            score += WEIGHTS["specialty"]
            signals.specialty = True

        has_window = referral.window_start is not None or referral.window_end is not None
        if encounter_start and has_window and in_window(
            encounter_start, referral.window_start, referral.window_end
        ):
            score += WEIGHTS["date_in_window"]
            signals.date_in_window = True

        # 0.6 + 0.1 must land on 0.70, not just under it
        score = min(round(score, 10), 1.0)

        if score < MIN_SCORE_THRESHOLD:
            continue

        results.append(MatchResult(
            referral_id=referral.id,
            task_id=open_referral.task.id,
            score=score,
            confidence=confidence_for(score),
            signals=signals,
        ))

    results.sort(key=lambda r: r.score, reverse=True)

    logger.debug(
        "Scored encounter %s against %d referral(s): %d result(s), best=%s",
        encounter.id, len(open_referrals), len(results),
        f"{results[0].score:.2f}" if results else "n/a",
    )
    return results
