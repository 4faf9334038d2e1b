"""Consent-gated routing decision.

Routing rules:
- no preference / inactive      -> not routed
- "all-encounters"              -> routed
- "referrals-only" + match      -> routed
- "referrals-only" + no match   -> not routed

Only a match at or above the auto-link threshold counts as a match.
"""

from dataclasses import dataclass

from referral_loop.matching import HIGH_CONFIDENCE, MatchResult
from referral_loop.database.consent_repository import ConsentMode, SharingPreference

AUTO_LINK_THRESHOLD = HIGH_CONFIDENCE


@dataclass
class RoutingDecision:
    routed: bool
    reason: str


def qualifying_match(match: MatchResult | None) -> MatchResult | None:
    if match is not None and match.score >= AUTO_LINK_THRESHOLD:
        return match
    return None


def decide_routing(
    preference: SharingPreference | None, match: MatchResult | None
) -> RoutingDecision:
    if preference is None or not preference.active:
        return RoutingDecision(False, "No active sharing preference")

    if preference.mode == ConsentMode.ALL_ENCOUNTERS:
        return RoutingDecision(True, "Patient elected to share all encounters")

    match = qualifying_match(match)
    if match is None:
        return RoutingDecision(False, "No referral match found (referrals-only mode)")
    return RoutingDecision(
        True, f"Matched referral {match.referral_id} (score: {match.score:.2f})"
    )
