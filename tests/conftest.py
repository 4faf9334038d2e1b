"""Shared pytest fixtures."""

import pytest

from referral_loop.database import DirectoryRepository, ReferralRepository, init_database, reset_database
from referral_loop.database.directory_repository import Organization, Practitioner, PractitionerRole
from referral_loop.database.referral_repository import Referral, TargetIdentifiers
from referral_loop.events import EventBroadcaster
from referral_loop.fhir import NPI_SYSTEM, Encounter


@pytest.fixture(autouse=True)
def database():
    """Fresh tables for every test."""
    init_database()
    reset_database()
    yield
    reset_database()


@pytest.fixture
def directory():
    """Valley Cardiology, Metro Orthopedic, the referring PCP and a cardiologist."""
    repo = DirectoryRepository()
    repo.save_organization(Organization(id="org-valley", name="Valley Cardiology", npi="1122334455"))
    repo.save_organization(Organization(id="org-metro", name="Metro Orthopedic Group", npi="9999999999"))
    repo.save_practitioner(Practitioner(id="dr-smith", name="Dr. Robert Smith", npi="1234567890"))
    repo.save_practitioner(Practitioner(id="dr-jones", name="Dr. Emily Jones", npi="1112223334"))
    repo.save_practitioner(Practitioner(id="dr-johnson", name="Dr. Sarah Johnson", npi="9876543210"))
    repo.save_role(PractitionerRole(
        id="role-cardio",
        practitioner_ref="Practitioner/dr-johnson",
        organization_ref="Organization/org-valley",
        specialty_code="207RC0000X",
        specialty_display="Cardiovascular Disease",
    ))
    return repo


@pytest.fixture
def make_encounter():
    def _make(
        id="enc-001",
        patient_id="patient-001",
        status="finished",
        org_ref="Organization/org-valley",
        org_display="Valley Cardiology",
        practitioner_ref=None,
        embedded_npi=None,
        period_start="2025-03-10T10:00:00Z",
    ) -> Encounter:
        resource = {
            "resourceType": "Encounter",
            "id": id,
            "status": status,
            "class": {"code": "AMB", "display": "ambulatory"},
            "subject": {"reference": f"Patient/{patient_id}"},
            "period": {"start": period_start},
        }
        if org_ref:
            resource["serviceProvider"] = {"reference": org_ref, "display": org_display}
        if practitioner_ref or embedded_npi:
            individual = {"reference": practitioner_ref or "Practitioner/external"}
            if embedded_npi:
                individual["identifier"] = {"system": NPI_SYSTEM, "value": embedded_npi}
            resource["participant"] = [{"individual": individual}]
        return Encounter.model_validate(resource)
    return _make


@pytest.fixture
def make_referral():
    repo = ReferralRepository()

    def _make(
        id="referral-001",
        task_id="task-001",
        patient_id="patient-001",
        requester_ref="Practitioner/dr-smith",
        org_npi="1122334455",
        org_name="Valley Cardiology",
        practitioner_npi="9876543210",
        specialty="207RC0000X",
        window_start="2025-01-01",
        window_end="2025-12-31",
    ):
        return repo.create(
            Referral(
                id=id,
                patient_id=patient_id,
                requester_ref=requester_ref,
                window_start=window_start,
                window_end=window_end,
                targets=TargetIdentifiers(
                    organization_npi=org_npi,
                    organization_name=org_name,
                    practitioner_npi=practitioner_npi,
                    specialty_code=specialty,
                ),
            ),
            task_id=task_id,
        )
    return _make


@pytest.fixture
def events():
    """A private broadcaster that records everything it sends."""
    broadcaster = EventBroadcaster()
    broadcaster.received = {"patient": [], "physician": []}
    broadcaster.subscribe("patient", broadcaster.received["patient"].append)
    broadcaster.subscribe("physician", broadcaster.received["physician"].append)
    return broadcaster
