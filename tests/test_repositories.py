"""Tests for the SQLite repositories."""

from referral_loop.database import (
    DirectoryRepository,
    EncounterRepository,
    ReferralRepository,
    RoutedEventRepository,
    SessionRepository,
)
from referral_loop.database.directory_repository import Organization
from referral_loop.database.referral_repository import BusinessStatus, Referral, TaskStatus
from referral_loop.database.routed_event_repository import RoutedEvent
from referral_loop.database.session_repository import BrokerSession


class TestDirectoryRepository:

    def test_lookup_by_id_or_reference(self, directory):
        assert directory.get_organization("org-valley").npi == "1122334455"
        assert directory.get_organization("Organization/org-valley").name == "Valley Cardiology"
        assert directory.get_practitioner("Practitioner/dr-johnson").npi == "9876543210"
        assert directory.get_organization("Organization/nowhere") is None

    def test_primary_role(self, directory):
        role = directory.get_primary_role("Practitioner/dr-johnson")
        assert role.specialty_code == "207RC0000X"
        assert directory.get_primary_role("Practitioner/dr-smith") is None

    def test_save_organization_upserts(self):
        repo = DirectoryRepository()
        repo.save_organization(Organization(id="org-1", name="Old Name", city="Springfield"))
        repo.save_organization(Organization(id="org-1", name="New Name", npi="1"))

        org = repo.get_organization("org-1")
        assert org.name == "New Name"
        assert org.npi == "1"
        assert org.city is None


class TestReferralRepository:

    def test_create_sets_up_requested_task(self, make_referral):
        created = make_referral(window_end="2025-06-30")
        repo = ReferralRepository()

        task = repo.get_task("task-001")
        assert task.status == TaskStatus.REQUESTED
        assert task.business_status == BusinessStatus.AWAITING_SCHEDULING
        assert task.due_date == "2025-06-30"
        assert task.output == []
        assert repo.get_task_for_referral("referral-001").id == "task-001"
        assert repo.get_referral("referral-001") == created.referral
        assert created.referral.authored_on == task.authored_on

    def test_generated_task_id(self):
        repo = ReferralRepository()
        created = repo.create(Referral(id="sr-9", patient_id="p-9", requester_ref="Practitioner/x"))
        assert created.task.id.startswith("task-")
        assert repo.get_task(created.task.id).referral_id == "sr-9"

    def test_save_task(self, make_referral):
        make_referral()
        repo = ReferralRepository()
        task = repo.get_task("task-001")
        task.status = TaskStatus.COMPLETED
        task.business_status = BusinessStatus.LOOP_CLOSED
        task.output.append("Encounter/enc-1")
        repo.save_task(task)

        stored = repo.get_task("task-001")
        assert stored.status == TaskStatus.COMPLETED
        assert stored.output == ["Encounter/enc-1"]

    def test_open_referrals_in_creation_order(self, make_referral):
        make_referral(id="referral-b", task_id="task-b")
        make_referral(id="referral-a", task_id="task-a")
        make_referral(id="referral-other", task_id="task-other", patient_id="patient-002")
        repo = ReferralRepository()

        task = repo.get_task("task-b")
        task.status = TaskStatus.CANCELLED
        repo.save_task(task)
        make_referral(id="referral-c", task_id="task-c")

        open_ids = [r.referral.id for r in repo.list_open_referrals("patient-001")]
        assert open_ids == ["referral-a", "referral-c"]
        assert len(repo.list_referrals()) == 4
        assert len(repo.list_referrals("patient-001")) == 3


class TestEncounterRepository:

    def test_upsert(self):
        repo = EncounterRepository()
        assert repo.upsert("enc-1", "patient-001", "planned", {"id": "enc-1", "status": "planned"}) is False
        assert repo.upsert("enc-1", "patient-001", "finished", {"id": "enc-1", "status": "finished"}) is True

        assert repo.count() == 1
        assert repo.get("enc-1")["status"] == "finished"
        assert repo.list_for_patient("patient-001") == [{"id": "enc-1", "status": "finished"}]
        assert repo.get("enc-2") is None


class TestRoutedEventRepository:

    def event(self, id, physician_ref="Practitioner/dr-smith", task_id=None):
        return RoutedEvent(
            id=id, encounter_id="enc-1", patient_id="patient-001", physician_ref=physician_ref,
            routed_at="2025-03-10T10:00:00+00:00", encounter={"id": "enc-1"}, task_id=task_id,
        )

    def test_one_event_per_encounter(self):
        repo = RoutedEventRepository()
        assert repo.upsert(self.event("route-1")) is False
        assert repo.upsert(self.event("route-2", task_id="task-001")) is True

        events = repo.list_all()
        assert len(events) == 1
        assert events[0].id == "route-2"
        assert repo.list_for_task("task-001")[0].encounter == {"id": "enc-1"}

    def test_delete_by_encounter(self):
        repo = RoutedEventRepository()
        repo.upsert(self.event("route-1"))

        assert repo.delete_by_encounter("enc-1") is True
        assert repo.delete_by_encounter("enc-1") is False
        assert repo.get_by_encounter("enc-1") is None


class TestSessionRepository:

    def test_resolve_patient_id(self):
        repo = SessionRepository()
        repo.save(BrokerSession(patient_id="patient-001", source_id="mercy-77", access_token="tok"))

        assert repo.resolve_patient_id("mercy-77") == "patient-001"
        assert repo.resolve_patient_id("unknown") == "unknown"
        assert repo.get("patient-001").access_token == "tok"
        assert repo.get("patient-404") is None
