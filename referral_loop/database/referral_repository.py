"""Referral and tracking-task repository."""

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from .connection import transaction


class TaskStatus(Enum):
    """Tracking task status."""
    REQUESTED = "requested"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BusinessStatus(Enum):
    """Human-readable lifecycle detail for a tracking task."""
    AWAITING_SCHEDULING = "awaiting-scheduling"
    APPOINTMENT_SCHEDULED = "appointment-scheduled"
    ENCOUNTER_IN_PROGRESS = "encounter-in-progress"
    LOOP_CLOSED = "loop-closed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED}


@dataclass(frozen=True)
class TargetIdentifiers:
    """Where the patient was referred to."""
    organization_npi: str | None = None
    organization_name: str | None = None
    practitioner_npi: str | None = None
    specialty_code: str | None = None
    specialty_display: str | None = None

    def is_matchable(self) -> bool:
        return bool(self.organization_npi or self.organization_name or self.practitioner_npi)


@dataclass(frozen=True)
class Referral:
    id: str
    patient_id: str
    requester_ref: str
    targets: TargetIdentifiers = field(default_factory=TargetIdentifiers)
    window_start: str | None = None
    window_end: str | None = None
    requester_display: str | None = None
    code_text: str | None = None
    reason_code: str | None = None
    reason_display: str | None = None
    authored_on: str | None = None


@dataclass
class ReferralTask:
    id: str
    referral_id: str
    patient_id: str
    requester_ref: str
    status: TaskStatus = TaskStatus.REQUESTED
    business_status: BusinessStatus = BusinessStatus.AWAITING_SCHEDULING
    owner_ref: str | None = None
    owner_display: str | None = None
    authored_on: str | None = None
    last_modified: str | None = None
    due_date: str | None = None
    output: list[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status not in TERMINAL_STATUSES


@dataclass
class OpenReferral:
    """A referral paired with its tracking task."""
    referral: Referral
    task: ReferralTask


class ReferralRepository:
    """Repository for referrals and their tracking tasks."""

    def create(
        self,
        referral: Referral,
        task_id: str | None = None,
        owner_ref: str | None = None,
        owner_display: str | None = None,
    ) -> OpenReferral:
        """Create a referral and its requested tracking task in one transaction."""
        now = datetime.now(timezone.utc).isoformat()
        authored_on = referral.authored_on or now
        task = ReferralTask(
            id=task_id or f"task-{uuid.uuid4()}",
            referral_id=referral.id,
            patient_id=referral.patient_id,
            requester_ref=referral.requester_ref,
            owner_ref=owner_ref,
            owner_display=owner_display,
            authored_on=authored_on,
            last_modified=authored_on,
            due_date=referral.window_end,
        )
        targets = referral.targets

        with transaction() as cursor:
            cursor.execute("""
                INSERT INTO referrals (
                    id, patient_id, requester_ref, requester_display, code_text,
                    reason_code, reason_display, authored_on, window_start, window_end,
                    target_org_npi, target_org_name, target_practitioner_npi,
                    target_specialty_code, target_specialty_display
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                referral.id, referral.patient_id, referral.requester_ref,
                referral.requester_display, referral.code_text, referral.reason_code,
                referral.reason_display, authored_on, referral.window_start,
                referral.window_end, targets.organization_npi, targets.organization_name,
                targets.practitioner_npi, targets.specialty_code, targets.specialty_display,
            ))
            cursor.execute("""
                INSERT INTO referral_tasks (
                    id, referral_id, patient_id, requester_ref, owner_ref, owner_display,
                    status, business_status, authored_on, last_modified, due_date, output
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                task.id, task.referral_id, task.patient_id, task.requester_ref,
                task.owner_ref, task.owner_display, task.status.value,
                task.business_status.value, task.authored_on, task.last_modified,
                task.due_date, json.dumps(task.output),
            ))

        return OpenReferral(referral=replace(referral, authored_on=authored_on), task=task)

    def get_referral(self, referral_id: str) -> Referral | None:
        with transaction() as cursor:
            cursor.execute("SELECT * FROM referrals WHERE id = ?", (referral_id,))
            row = cursor.fetchone()
        return self._row_to_referral(row) if row else None

    def get_task(self, task_id: str) -> ReferralTask | None:
        with transaction() as cursor:
            cursor.execute("SELECT * FROM referral_tasks WHERE id = ?", (task_id,))
            row = cursor.fetchone()
        return self._row_to_task(row) if row else None

    def get_task_for_referral(self, referral_id: str) -> ReferralTask | None:
        with transaction() as cursor:
            cursor.execute("SELECT * FROM referral_tasks WHERE referral_id = ?", (referral_id,))
            row = cursor.fetchone()
        return self._row_to_task(row) if row else None

    def save_task(self, task: ReferralTask) -> ReferralTask:
        """Persist the mutable fields of a tracking task."""
        with transaction() as cursor:
            cursor.execute(
                """UPDATE referral_tasks
                   SET status = ?, business_status = ?, last_modified = ?, output = ?
                   WHERE id = ?""",
                (
                    task.status.value, task.business_status.value,
                    task.last_modified, json.dumps(task.output), task.id,
                ),
            )
        return task

    def list_tasks(self) -> list[ReferralTask]:
        """All tracking tasks in creation order."""
        with transaction() as cursor:
            cursor.execute("SELECT * FROM referral_tasks ORDER BY rowid")
            rows = cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    def list_open_referrals(self, patient_id: str) -> list[OpenReferral]:
        """Referrals for a patient whose tracking task is not terminal, in creation order."""
        return [r for r in self.list_referrals(patient_id) if r.task.is_open]

    def list_referrals(self, patient_id: str | None = None) -> list[OpenReferral]:
        """Every referral with its task, optionally limited to one patient."""
        query = """
            SELECT r.*, t.id AS task_id FROM referral_tasks t
            JOIN referrals r ON r.id = t.referral_id
        """
        params: list = []
        if patient_id is not None:
            query += " WHERE t.patient_id = ?"
            params.append(patient_id)
        query += " ORDER BY t.rowid"

        with transaction() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
            results = []
            for row in rows:
                cursor.execute("SELECT * FROM referral_tasks WHERE id = ?", (row["task_id"],))
                task_row = cursor.fetchone()
                results.append(OpenReferral(
                    referral=self._row_to_referral(row),
                    task=self._row_to_task(task_row),
                ))
        return results

    def _row_to_referral(self, row) -> Referral:
        return Referral(
            id=row["id"],
            patient_id=row["patient_id"],
            requester_ref=row["requester_ref"],
            requester_display=row["requester_display"],
            code_text=row["code_text"],
            reason_code=row["reason_code"],
            reason_display=row["reason_display"],
            authored_on=row["authored_on"],
            window_start=row["window_start"],
            window_end=row["window_end"],
            targets=TargetIdentifiers(
                organization_npi=row["target_org_npi"],
                organization_name=row["target_org_name"],
                practitioner_npi=row["target_practitioner_npi"],
                specialty_code=row["target_specialty_code"],
                specialty_display=row["target_specialty_display"],
            ),
        )

    def _row_to_task(self, row) -> ReferralTask:
        return ReferralTask(
            id=row["id"],
            referral_id=row["referral_id"],
            patient_id=row["patient_id"],
            requester_ref=row["requester_ref"],
            status=TaskStatus(row["status"]),
            business_status=BusinessStatus(row["business_status"]),
            owner_ref=row["owner_ref"],
            owner_display=row["owner_display"],
            authored_on=row["authored_on"],
            last_modified=row["last_modified"],
            due_date=row["due_date"],
            output=json.loads(row["output"]) if row["output"] else [],
        )
