"""Tests for FHIR parsing at the boundary."""

import pytest
from pydantic import ValidationError

from referral_loop.fhir import (
    TARGET_IDENTIFIERS_URL,
    Encounter,
    parse_target_identifiers,
    referral_from_service_request,
    referral_to_service_request,
    strip_prefix,
)
from referral_loop.database.referral_repository import TargetIdentifiers

SERVICE_REQUEST = {
    "resourceType": "ServiceRequest",
    "id": "referral-001",
    "status": "active",
    "intent": "order",
    "subject": {"reference": "Patient/patient-001"},
    "requester": {"reference": "Practitioner/dr-smith", "display": "Dr. Robert Smith"},
    "code": {"text": "Cardiology consultation"},
    "reasonCode": [{"coding": [{"system": "http://snomed.info/sct", "code": "29857009", "display": "Chest pain"}]}],
    "occurrencePeriod": {"start": "2025-01-01", "end": "2025-03-01"},
    "authoredOn": "2025-01-01T09:00:00Z",
    "extension": [{
        "url": TARGET_IDENTIFIERS_URL,
        "extension": [
            {"url": "organizationNpi", "valueString": "1538246790"},
            {"url": "organizationName", "valueString": "Mercy General Hospital"},
            {"url": "practitionerNpi", "valueString": "9876543210"},
            {"url": "specialty", "valueCoding": {
                "system": "http://nucc.org/provider-taxonomy",
                "code": "207RC0000X",
                "display": "Cardiovascular Disease",
            }},
        ],
    }],
}


class TestParseTargetIdentifiers:

    def test_full_extension(self):
        targets = parse_target_identifiers(SERVICE_REQUEST["extension"])
        assert targets == TargetIdentifiers(
            organization_npi="1538246790",
            organization_name="Mercy General Hospital",
            practitioner_npi="9876543210",
            specialty_code="207RC0000X",
            specialty_display="Cardiovascular Disease",
        )

    @pytest.mark.parametrize("extensions", [
        None,
        "not a list",
        [],
        [{"url": "http://example.org/other", "extension": []}],
        [{"url": TARGET_IDENTIFIERS_URL}],
        [{"url": TARGET_IDENTIFIERS_URL, "extension": {"url": "organizationNpi"}}],
    ])
    def test_missing_or_malformed_yields_empty(self, extensions):
        targets = parse_target_identifiers(extensions)
        assert targets == TargetIdentifiers()
        assert not targets.is_matchable()

    def test_partial_extension(self):
        """Bad entries are ignored; good ones are kept."""
        targets = parse_target_identifiers([{
            "url": TARGET_IDENTIFIERS_URL,
            "extension": [
                "garbage",
                {"url": "organizationNpi", "valueString": 1538246790},
                {"url": "organizationName", "valueString": "Valley Cardiology"},
                {"url": "specialty", "valueCoding": "207RC0000X"},
            ],
        }])
        assert targets.organization_npi is None
        assert targets.organization_name == "Valley Cardiology"
        assert targets.specialty_code is None
        assert targets.is_matchable()


class TestServiceRequest:

    def test_referral_from_service_request(self):
        referral = referral_from_service_request(SERVICE_REQUEST)
        assert referral.id == "referral-001"
        assert referral.patient_id == "patient-001"
        assert referral.requester_ref == "Practitioner/dr-smith"
        assert referral.window_start == "2025-01-01"
        assert referral.window_end == "2025-03-01"
        assert referral.reason_code == "29857009"
        assert referral.targets.organization_npi == "1538246790"

    def test_minimal_service_request(self):
        referral = referral_from_service_request({"id": "sr-1", "subject": {"reference": "Patient/p-1"}})
        assert referral.patient_id == "p-1"
        assert referral.window_start is None
        assert referral.targets == TargetIdentifiers()

    def test_serialize_back(self):
        resource = referral_to_service_request(referral_from_service_request(SERVICE_REQUEST))
        assert resource["resourceType"] == "ServiceRequest"
        assert resource["occurrencePeriod"] == {"start": "2025-01-01", "end": "2025-03-01"}
        assert parse_target_identifiers(resource["extension"]).practitioner_npi == "9876543210"


class TestEncounter:

    def test_parse_aliases(self):
        encounter = Encounter.model_validate({
            "resourceType": "Encounter",
            "id": "enc-1",
            "status": "on-leave",
            "class": {"code": "AMB"},
            "subject": {"reference": "Patient/p-1"},
            "participant": None,
            "serviceProvider": {"reference": "Organization/org-1"},
        })
        assert encounter.status == "on-leave"
        assert encounter.to_fhir()["status"] == "on-leave"
        assert encounter.participant == []
        assert encounter.first_practitioner() is None
        assert encounter.period_start is None
        assert encounter.to_fhir()["class"] == {"code": "AMB"}
        assert encounter.to_fhir()["serviceProvider"]["reference"] == "Organization/org-1"

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            Encounter.model_validate({"id": "enc-1", "status": "done", "subject": {"reference": "Patient/p"}})

    def test_with_patient(self, make_encounter):
        encounter = make_encounter(patient_id="ehr-77")
        rewritten = encounter.with_patient("patient-001")
        assert rewritten.patient_id == "patient-001"
        assert encounter.patient_id == "ehr-77"

    def test_strip_prefix(self):
        assert strip_prefix("Patient/p-1", "Patient") == "p-1"
        assert strip_prefix("p-1", "Patient") == "p-1"
        assert strip_prefix(None, "Patient") == ""
