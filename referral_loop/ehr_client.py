"""Fetches full encounters from the upstream EHR named in broker notifications."""

import requests
from pydantic import ValidationError

from referral_loop import config
from referral_loop.fhir import Encounter


class EhrClientError(Exception):
    """Raised when an encounter cannot be fetched from the EHR."""
    pass


def fetch_encounter(focus_ref: str, access_token: str | None = None) -> Encounter:
    """
    GET {EHR_BASE_URL}/{focus_ref} and parse it as an Encounter.

    Args:
        focus_ref: Resource reference from the notification, e.g. "Encounter/enc-1"
        access_token: Optional bearer token for the EHR

    Raises:
        EhrClientError on timeout, connection failure, non-200 or malformed body
    """
    if not focus_ref or not focus_ref.startswith("Encounter/"):
        raise EhrClientError(f"Not an encounter reference: {focus_ref!r}")

    headers = {"Accept": "application/fhir+json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"

    url = f"{config.EHR_BASE_URL}/{focus_ref}"
    try:
        response = requests.get(url, headers=headers, timeout=config.EHR_TIMEOUT_SECONDS)
    except requests.exceptions.Timeout:
        raise EhrClientError(f"EHR request timed out for {focus_ref}")
    except requests.exceptions.ConnectionError:
        raise EhrClientError("Failed to connect to EHR")

    if response.status_code == 404:
        raise EhrClientError(f"{focus_ref} not found at EHR")
    elif response.status_code != 200:
        raise EhrClientError(f"EHR error: {response.status_code}")

    try:
        return Encounter.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise EhrClientError(f"Unexpected EHR response for {focus_ref}: {e}")
