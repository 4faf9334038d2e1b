"""Seed the database with a demo provider directory and referral."""

from datetime import datetime, timedelta, timezone

from referral_loop.database import DirectoryRepository, ReferralRepository, init_database
from referral_loop.database.directory_repository import Organization, Practitioner, PractitionerRole
from referral_loop.database.referral_repository import Referral, TargetIdentifiers


MOCK_ORGANIZATIONS = [
    # Upstream EHR data source; its ID matches the EHR's serviceProvider reference
    Organization(
        id="mercy-hospital",
        name="Mercy General Hospital",
        npi="1538246790",
        city="Springfield",
        state="IL",
    ),
    Organization(
        id="org-valley-cardiology",
        name="Valley Cardiology",
        npi="1122334455",
        city="Springfield",
        state="IL",
    ),
]

MOCK_PRACTITIONERS = [
    Practitioner(id="dr-smith", name="Dr. Robert Smith", npi="1234567890", credentials="MD"),
    Practitioner(id="dr-johnson", name="Dr. Sarah Johnson", npi="9876543210", credentials="MD"),
]

MOCK_ROLES = [
    PractitionerRole(
        id="role-cardio",
        practitioner_ref="Practitioner/dr-johnson",
        organization_ref="Organization/org-valley-cardiology",
        specialty_code="207RC0000X",
        specialty_display="Cardiovascular Disease",
    ),
]


def seed_directory() -> None:
    directory = DirectoryRepository()
    for org in MOCK_ORGANIZATIONS:
        directory.save_organization(org)
        print(f"  Saved {org.name}")
    for practitioner in MOCK_PRACTITIONERS:
        directory.save_practitioner(practitioner)
        print(f"  Saved {practitioner.name}")
    for role in MOCK_ROLES:
        directory.save_role(role)


def seed_demo_referral() -> None:
    """Cardiology referral for patient-001, open for the next 60 days."""
    repo = ReferralRepository()
    if repo.get_referral("referral-001"):
        print("  Skipping referral-001 (already exists)")
        return

    now = datetime.now(timezone.utc)
    repo.create(
        Referral(
            id="referral-001",
            patient_id="patient-001",
            requester_ref="Practitioner/dr-smith",
            requester_display="Dr. Robert Smith",
            code_text="Cardiology consultation",
            reason_code="29857009",
            reason_display="Chest pain",
            authored_on=now.isoformat(),
            window_start=now.date().isoformat(),
            window_end=(now + timedelta(days=60)).date().isoformat(),
            targets=TargetIdentifiers(
                organization_npi="1538246790",
                organization_name="Mercy General Hospital",
                practitioner_npi="9876543210",
                specialty_code="207RC0000X",
                specialty_display="Cardiovascular Disease",
            ),
        ),
        task_id="task-001",
        owner_ref="Organization/mercy-hospital",
        owner_display="Mercy General Hospital",
    )
    print("  Created referral-001 / task-001")


def seed_database() -> None:
    init_database()
    print("Seeding provider directory...")
    seed_directory()
    print("Seeding demo referral...")
    seed_demo_referral()
    print("\nDatabase seeded successfully!")


if __name__ == "__main__":
    seed_database()
